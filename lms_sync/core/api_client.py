"""
HTTP client for the WordPress REST collection API.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from lms_sync.core.config import ApiSettings
from lms_sync.core.exceptions import (
    ApiError,
    AuthenticationError,
    NetworkError,
    PermissionDeniedError,
    RequestTimeoutError,
    ResourceNotFoundError,
)
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import PaginationMeta


logger = get_logger(__name__)

TOTAL_HEADER = "X-WP-Total"
TOTAL_PAGES_HEADER = "X-WP-TotalPages"


@dataclass
class ApiResponse:
    """Decoded JSON body plus the response headers."""

    data: Any
    headers: httpx.Headers
    status_code: int = 200


def _to_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def extract_pagination(headers: httpx.Headers, page: int, per_page: int) -> PaginationMeta:
    """Translate WordPress pagination headers into a PaginationMeta envelope."""
    return PaginationMeta(
        current_page=page,
        total_pages=_to_int(headers.get(TOTAL_PAGES_HEADER), 1),
        total=_to_int(headers.get(TOTAL_HEADER), 0),
        per_page=per_page,
    )


class WordPressClient:
    """Client for the collection API; attaches the nonce to every request."""

    def __init__(self, settings: ApiSettings, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the API client.

        Args:
            settings: Connection settings (base URL, nonce, timeout)
            transport: Optional httpx transport, mainly for tests
        """
        self.settings = settings
        self.client = httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            transport=transport,
            headers=self._default_headers(),
        )

    def _default_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.nonce:
            headers["X-WP-Nonce"] = self.settings.nonce
        return headers

    def endpoint(self, key: str) -> str:
        return self.settings.endpoint(key)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json: Any = None,
    ) -> ApiResponse:
        """
        Send a request and decode the JSON body.

        Raises:
            ApiError: (or a subclass) for non-2xx responses
            NetworkError: when no response was received
        """
        try:
            response = await self.client.request(method, url, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error("api_request_timeout", method=method, url=url)
            raise RequestTimeoutError(f"Request timeout: {method} {url}") from e
        except httpx.TransportError as e:
            logger.error("api_request_failed", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e!s}") from e

        if response.is_error:
            raise self._error_for(response)

        try:
            data = response.json() if response.content else None
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON response from {url}", status_code=response.status_code
            ) from e
        return ApiResponse(data=data, headers=response.headers, status_code=response.status_code)

    async def get(self, url: str, params: Any = None) -> ApiResponse:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, json: Any = None) -> ApiResponse:
        # WordPress REST API uses POST for both create and update
        return await self.request("POST", url, json=json)

    async def delete(self, url: str, params: Any = None) -> ApiResponse:
        return await self.request("DELETE", url, params=params)

    @staticmethod
    def _error_for(response: httpx.Response) -> ApiError:
        message = None
        code = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("message")
                code = body.get("code")
        except ValueError:
            pass

        message = message or f"API request failed: {response.status_code} {response.reason_phrase}"
        error_class = {
            401: AuthenticationError,
            403: PermissionDeniedError,
            404: ResourceNotFoundError,
        }.get(response.status_code, ApiError)

        logger.error(
            "api_request_error",
            status_code=response.status_code,
            url=str(response.request.url),
            error=message,
        )
        return error_class(message, status_code=response.status_code, error_code=code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "WordPressClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
