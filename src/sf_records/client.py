"""Base API client for the Salesforce REST API.

Handles bearer header injection, URL construction, bounded timeouts, and
the one-shot token refresh on authentication failures.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sf_records.auth import TokenManager
from sf_records.config import Config
from sf_records.models.auth import Token
from sf_records.utils.errors import RemoteError

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)
USERINFO_PATH = "/services/oauth2/userinfo"


def _error_detail(response: httpx.Response) -> str:
    """Pull the first platform error message out of a response, else its text."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, list) and data and isinstance(data[0], dict):
        first = data[0]
        code = first.get("errorCode")
        message = first.get("message", response.text)
        return f"{code}: {message}" if code else message
    if isinstance(data, dict):
        return data.get("message", data.get("error_description", response.text))
    return response.text


class SalesforceClient:
    """HTTP client for the Salesforce REST API with auth handling."""

    def __init__(
        self,
        config: Config,
        auth: TokenManager,
        timeout: float | None = None,
        verbose: bool = False,
    ) -> None:
        self._config = config
        self._auth = auth
        self._verbose = verbose
        self._http = httpx.Client(timeout=timeout or config.settings.request_timeout)

    @property
    def data_path(self) -> str:
        """Instance-relative root of the versioned data API."""
        return f"/services/data/{self._config.settings.api_version}"

    def build_url(self, token: Token, path: str) -> str:
        """Resolve a path against the token's instance URL.

        Paths starting with ``/services/`` are instance-relative (e.g.
        ``nextRecordsUrl``); all others are relative to the data API root.
        """
        base = token.instance_url.rstrip("/")
        if path.startswith("/services/"):
            return base + path
        return base + self.data_path + path

    def request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | list | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        A 401/403 invalidates the token and retries once with a fresh one;
        every other failure is raised immediately.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE).
            path: API path (e.g. "/query"), see ``build_url``.
            body: JSON request body.
            params: Query parameters.
            timeout: Override the client timeout for this call.

        Returns:
            The httpx.Response object.

        Raises:
            RemoteError: On a non-2xx status or transport failure.
        """
        extra: dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = timeout

        for attempt in (1, 2):
            token = self._auth.get_access_token()
            url = self.build_url(token, path)
            headers = self._build_headers(token)

            if self._verbose:
                logger.info(f"[Attempt {attempt}/2] {method} {url}")
                if body:
                    logger.info(f"Body: {body}")

            try:
                response = self._http.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=body,
                    params=params,
                    **extra,
                )
            except httpx.TimeoutException as e:
                raise RemoteError(f"Request to {url} timed out: {e}") from e
            except httpx.HTTPError as e:
                raise RemoteError(f"Request to {url} failed (connection error): {e}") from e

            if self._verbose:
                logger.info(f"Response: {response.status_code}")

            if response.status_code in AUTH_FAILURE_STATUSES and attempt == 1:
                logger.warning(f"Got {response.status_code}, invalidating token and retrying...")
                self._auth.invalidate(token)
                continue

            if response.status_code >= 400:
                raise RemoteError(
                    f"API error (HTTP {response.status_code}): {_error_detail(response)}",
                    status_code=response.status_code,
                    body=response.text,
                )

            return response

        # Unreachable: the second attempt either returns or raises
        raise RemoteError(f"Request to {path} failed after retry")

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for GET requests."""
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for POST requests."""
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PATCH requests."""
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for DELETE requests."""
        return self.request("DELETE", path, **kwargs)

    def get_user_info(self) -> dict[str, Any]:
        """Identity of the user the token was issued to."""
        return self.get(USERINFO_PATH).json()

    def _build_headers(self, token: Token) -> dict[str, str]:
        """Build request headers with the bearer credential."""
        return {
            "Authorization": f"Bearer {token.access_token}",
            "Accept": "application/json",
        }

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
        self._auth.close()
