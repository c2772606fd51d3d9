"""OAuth2 authentication for the Salesforce REST API.

Handles credential exchange, caching, and expiry tracking.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

import httpx
from pydantic import ValidationError

from sf_records.config import Config
from sf_records.models.auth import SAFETY_MARGIN, Token, TokenResponse, TokenStatus
from sf_records.utils.cache import DEFAULT_KEY, TokenCache
from sf_records.utils.errors import AuthError, ConfigurationError, SalesforceError

logger = logging.getLogger(__name__)

# Buffer before expiry to trigger refresh
EXPIRY_BUFFER = SAFETY_MARGIN

PASSWORD_GRANT = "password"
CLIENT_CREDENTIALS_GRANT = "client_credentials"


class TokenManager:
    """Manages the single cached OAuth2 access token."""

    def __init__(
        self,
        config: Config,
        cache: TokenCache | None = None,
        clock: Callable[[], float] = time.time,
        http: httpx.Client | None = None,
        timeout: float | None = None,
    ) -> None:
        self._config = config
        self._cache = cache if cache is not None else TokenCache()
        self._clock = clock
        self._http = http or httpx.Client(timeout=timeout or config.settings.request_timeout)

    @property
    def grant_type(self) -> str:
        """Grant selected by configuration; never switched at runtime."""
        if self._config.settings.uses_password_grant:
            return PASSWORD_GRANT
        return CLIENT_CREDENTIALS_GRANT

    def get_access_token(self) -> Token:
        """Get a valid access token, exchanging credentials if needed.

        Concurrent callers that find the cache empty or expired wait on one
        exchange and all receive its token, or its error if it failed.

        Returns:
            A Token that is not expired at the time of return.

        Raises:
            ConfigurationError: Required credentials are missing.
            AuthError: The token endpoint rejected the request or returned an unusable payload.
        """
        token = self._valid_cached()
        if token is not None:
            return token

        seen = self._cache.refresh_count(DEFAULT_KEY)
        with self._cache.refresh_lock(DEFAULT_KEY):
            # Another thread may have refreshed while we waited
            token = self._valid_cached()
            if token is not None:
                return token
            if self._cache.refresh_count(DEFAULT_KEY) != seen:
                error = self._cache.last_failure(DEFAULT_KEY)
                if error is not None:
                    raise error

            try:
                token = self._exchange()
            except SalesforceError as e:
                self._cache.record_refresh(DEFAULT_KEY, error=e)
                raise
            self._cache.put(token, DEFAULT_KEY)
            self._cache.record_refresh(DEFAULT_KEY)
            return token

    def invalidate(self, stale: Token | None = None) -> None:
        """Discard the cached token so the next call performs a fresh exchange.

        Args:
            stale: Only discard if the cached token is still this one.
        """
        if self._cache.invalidate(DEFAULT_KEY, stale=stale):
            logger.info("Access token invalidated")

    def get_status(self) -> TokenStatus:
        """Get the current token status."""
        token = self._cache.get(DEFAULT_KEY)
        if token is None:
            return TokenStatus(has_token=False, is_expired=True, grant_type=self.grant_type)

        now = self._clock()
        is_expired = token.is_expired(now)
        seconds_remaining = None
        if not is_expired:
            seconds_remaining = int(token.expires_at - now)

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=datetime.fromtimestamp(token.expires_at),
            seconds_remaining=seconds_remaining,
            instance_url=token.instance_url,
            grant_type=self.grant_type,
        )

    def _valid_cached(self) -> Token | None:
        token = self._cache.get(DEFAULT_KEY)
        if token is not None and not token.is_expired(self._clock()):
            logger.debug("Using cached access token")
            return token
        return None

    def _build_request_body(self) -> dict[str, str]:
        settings = self._config.settings
        body = {
            "grant_type": self.grant_type,
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
        }
        if self.grant_type == PASSWORD_GRANT:
            body["username"] = settings.username
            body["password"] = settings.password
        if settings.scope:
            body["scope"] = settings.scope
        return body

    def _exchange(self) -> Token:
        """Exchange the configured credentials for a new token."""
        missing = self._config.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Salesforce OAuth credentials not configured: {', '.join(missing)}. "
                "Check your .env file."
            )

        token_url = self._config.settings.token_url
        logger.info("Requesting access token from %s (grant=%s)", token_url, self.grant_type)

        try:
            response = self._http.post(token_url, data=self._build_request_body())
        except httpx.TimeoutException as e:
            raise AuthError(f"Token request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise AuthError(f"Token request failed (connection error): {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error("Token request rejected (HTTP %s)", response.status_code)
            raise AuthError(
                f"Token request failed (HTTP {response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError(
                "Token response is not valid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e
        if not isinstance(payload, dict):
            raise AuthError(
                "Token response is not a JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        if not payload.get("access_token"):
            raise AuthError(
                "Token response missing access_token",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_data = TokenResponse(**{k: v for k, v in payload.items() if v is not None})
        except ValidationError as e:
            raise AuthError(
                f"Token response could not be parsed: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        instance_url = token_data.derive_instance_url()
        if not instance_url:
            raise AuthError(
                "Token response has neither instance_url nor a derivable id URL",
                status_code=response.status_code,
                body=response.text,
            )

        token = Token(
            access_token=token_data.access_token,
            instance_url=instance_url,
            token_type=token_data.token_type,
            expires_in=max(token_data.expires_in, 0),
            issued_at=self._clock(),
            refresh_token=token_data.refresh_token,
            scope=token_data.scope,
            id=token_data.id,
            signature=token_data.signature,
        )
        logger.info("Obtained access token for instance %s", token.instance_url)
        return token

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
