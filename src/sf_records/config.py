"""Configuration management for sf-records.

Loads OAuth credentials from the environment (or .env) and the object
catalog from config/objects.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from sf_records.utils.errors import ConfigurationError


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    client_id: str = Field(default="", description="Connected app consumer key")
    client_secret: str = Field(default="", description="Connected app consumer secret")
    username: str = Field(default="", description="Resource-owner username (password grant)")
    password: str = Field(default="", description="Resource-owner password plus security token")
    token_url: str = Field(default="", description="OAuth2 token endpoint")
    scope: str = Field(default="", description="Optional OAuth scope string")
    api_version: str = Field(default="v59.0", description="REST API version segment")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    default_object_type: str = Field(default="Account", description="Fallback type for unknown identifiers")

    @property
    def uses_password_grant(self) -> bool:
        """Resource-owner grant is selected when both username and password are set."""
        return bool(self.username and self.password)


class ObjectCatalog(BaseModel):
    """Object naming data: aliases for custom types and extra key prefixes."""
    aliases: dict[str, str] = Field(default_factory=dict)
    prefixes: dict[str, str] = Field(default_factory=dict)


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    objects: ObjectCatalog = Field(default_factory=ObjectCatalog)

    def missing_credentials(self) -> list[str]:
        """Names of required settings that are empty for the selected grant."""
        s = self.settings
        missing = [
            name for name in ("client_id", "client_secret", "token_url")
            if not getattr(s, name)
        ]
        # Username and password must be set together
        if bool(s.username) != bool(s.password):
            missing.append("password" if s.username else "username")
        return missing


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "objects.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_objects(project_root: Path) -> ObjectCatalog:
    """Load the object catalog from objects.yaml. A missing file is an empty catalog."""
    objects_path = project_root / "config" / "objects.yaml"
    if not objects_path.exists():
        return ObjectCatalog()

    with open(objects_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"{objects_path} must contain a mapping")

    aliases = {str(k).lower(): str(v) for k, v in (data.get("aliases") or {}).items()}
    prefixes = {str(k): str(v) for k, v in (data.get("prefixes") or {}).items()}
    bad = [p for p in prefixes if len(p) != 3]
    if bad:
        raise ConfigurationError(
            f"Key prefixes in {objects_path} must be 3 characters: {', '.join(sorted(bad))}"
        )
    return ObjectCatalog(aliases=aliases, prefixes=prefixes)


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both SF_* and the longer SALESFORCE_* names.
    """
    timeout = _env("SF_REQUEST_TIMEOUT", default="30")
    try:
        request_timeout = float(timeout)
    except ValueError as e:
        raise ConfigurationError(f"SF_REQUEST_TIMEOUT must be a number, got '{timeout}'") from e

    return Settings(
        client_id=_env("SF_CLIENT_ID", "SALESFORCE_CLIENT_ID"),
        client_secret=_env("SF_CLIENT_SECRET", "SALESFORCE_CLIENT_SECRET"),
        username=_env("SF_USERNAME", "SALESFORCE_USERNAME"),
        password=_env("SF_PASSWORD", "SALESFORCE_PASSWORD"),
        token_url=_env("SF_TOKEN_URL", "SALESFORCE_TOKEN_URL"),
        scope=_env("SF_SCOPE"),
        api_version=_env("SF_API_VERSION", default="v59.0"),
        request_timeout=request_timeout,
        default_object_type=_env("SF_DEFAULT_OBJECT_TYPE", default="Account"),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    objects = _load_objects(project_root)

    return Config(settings=settings, objects=objects)
