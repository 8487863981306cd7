"""
Governed HTTP client for the remote API.

Every request runs through a ResilientExecutor: the governor admits it, the
outcome is recorded, and transient failures are retried with backoff.
httpx errors are translated into UpstreamError so the executor can classify
them without knowing about HTTP.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from api_governor.core.config import Settings, get_settings
from api_governor.executor import ResilientExecutor, UpstreamError, get_retry_config, parse_retry_after
from api_governor.governor import create_governor, get_governor_config

logger = logging.getLogger(__name__)


def to_upstream_error(response: httpx.Response) -> UpstreamError:
    """Build an UpstreamError from a non-2xx response."""
    error_text = response.reason_phrase or "An error occurred"
    details = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_text = body.get("error") or error_text
        details = body.get("details")

    return UpstreamError(
        f"API Error {response.status_code}: {error_text}",
        status_code=response.status_code,
        retry_after=parse_retry_after(response.headers.get("retry-after")),
        details=details
    )


def decode_body(response: httpx.Response) -> Any:
    """Decode a successful response: JSON when it parses, raw text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ResilientHttpClient:
    """HTTP client whose requests are governed, recorded and retried."""

    def __init__(self,
                 executor: ResilientExecutor,
                 base_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 settings: Optional[Settings] = None):
        """
        Initialize client.

        Args:
            executor: Executor (and through it, the governor) for every request
            base_url: Remote API base URL, defaults to settings
            timeout: Per-request timeout in seconds, defaults to settings
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
            settings: Settings override
        """
        self.settings = settings or get_settings()
        self.executor = executor
        self._default_headers: Dict[str, str] = {}
        self.http_client = httpx.AsyncClient(
            base_url=base_url or self.settings.API_BASE_URL,
            timeout=timeout or self.settings.API_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json"},
            follow_redirects=True,
            transport=transport
        )

    @classmethod
    def from_settings(cls,
                      settings: Optional[Settings] = None,
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> "ResilientHttpClient":
        """Build a client with its own governor and executor from settings."""
        settings = settings or get_settings()
        governor = create_governor(get_governor_config(settings))
        executor = ResilientExecutor(governor, get_retry_config(settings))
        return cls(executor, transport=transport, settings=settings)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    def set_default_headers(self, headers: Dict[str, str]) -> None:
        """Merge headers sent with every subsequent request."""
        self._default_headers.update(headers)

    def get_default_headers(self) -> Dict[str, str]:
        return dict(self._default_headers)

    def clear_default_headers(self) -> None:
        self._default_headers = {}

    async def request(self,
                      method: str,
                      path: str,
                      headers: Optional[Dict[str, str]] = None,
                      deadline_seconds: Optional[float] = None,
                      **kwargs: Any) -> Any:
        """
        Send a governed request and return its decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            headers: Per-request headers, merged over the default headers
            deadline_seconds: Optional bound on the whole retried call
            **kwargs: Passed through to httpx (json, params, ...)

        Returns:
            Decoded JSON body, the raw text of a non-JSON body, or None for an empty response

        Raises:
            UpstreamError: If the request ultimately failed
            CallCancelledError: If the deadline expired first
        """
        merged_headers = {**self._default_headers, **(headers or {})}

        async def attempt() -> httpx.Response:
            try:
                response = await self.http_client.request(method, path, headers=merged_headers, **kwargs)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise to_upstream_error(e.response) from e
            except httpx.RequestError as e:
                logger.debug(
                    "No response received",
                    extra={"method": method, "path": path, "error": str(e)}
                )
                raise UpstreamError(
                    f"Network error: No response received from server ({type(e).__name__})"
                ) from e
            return response

        response = await self.executor.run(attempt, deadline_seconds=deadline_seconds)

        return decode_body(response)
