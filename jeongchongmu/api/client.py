"""
HTTP client shared by the backend API collaborators.

Wraps httpx.AsyncClient with the configured base URL, timeout and bearer
token, and turns transport failures and error statuses into ApiError
subclasses.
"""
import logging
from typing import Any, Callable, Dict, Optional
import httpx
from jeongchongmu.core.config import settings
from jeongchongmu.core.exceptions import (
    ApiError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NetworkError,
    NotFoundError,
)
from jeongchongmu.core.utils import extract_error_message

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


class ApiClient:
    """Async JSON client for the group expense backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token_provider: Optional[TokenProvider] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT,
            headers=dict(settings.API_DEFAULT_HEADERS),
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )
        if settings.DEBUG:
            logger.debug(f"API base URL: {self.base_url}")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, default_error: str = "Request failed.") -> Any:
        return await self.request("GET", path, params=params, default_error=default_error)

    async def post(self, path: str, json: Any = None, default_error: str = "Request failed.") -> Any:
        return await self.request("POST", path, json=json, default_error=default_error)

    async def put(self, path: str, json: Any = None, default_error: str = "Request failed.") -> Any:
        return await self.request("PUT", path, json=json, default_error=default_error)

    async def patch(self, path: str, json: Any = None, default_error: str = "Request failed.") -> Any:
        return await self.request("PATCH", path, json=json, default_error=default_error)

    async def delete(self, path: str, default_error: str = "Request failed.") -> Any:
        return await self.request("DELETE", path, default_error=default_error)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        default_error: str = "Request failed.",
    ) -> Any:
        """
        Send a request and return the decoded body.

        Returns parsed JSON when the backend answers with JSON, the text body
        otherwise, and None for an empty body.

        Raises:
            NetworkError: timeout or connectivity failure
            ApiError: any non-2xx status (see raise_for_status)
        """
        headers = {}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling {method} {path}: {e}")
            raise NetworkError("The server did not respond in time.") from e
        except httpx.TransportError as e:
            logger.error(f"Network error calling {method} {path}: {e}")
            raise NetworkError("Cannot reach the server.") from e

        body = decode_body(response)
        if response.is_error:
            self.raise_for_status(response.status_code, body, default_error)
        return body

    def raise_for_status(self, status_code: int, body: Any, default_error: str) -> None:
        """Map an error status onto the exception taxonomy."""
        message = extract_error_message(body, default_error)
        logger.error(f"API error {status_code}: {message}")

        if status_code == 401:
            if self.on_unauthorized:
                self.on_unauthorized()
            raise AuthorizationError(message, status_code)
        if status_code == 403:
            raise AuthorizationError(message, status_code)
        if status_code == 404:
            raise NotFoundError(message, status_code)
        if status_code == 409:
            raise ConflictError(message, status_code)
        if status_code == 400:
            raise BadRequestError(message, status_code)
        raise ApiError(message, status_code)

    async def _log_request(self, request: httpx.Request) -> None:
        if settings.DEBUG:
            logger.debug(f"API request: {request.method} {request.url}")

    async def _log_response(self, response: httpx.Response) -> None:
        if settings.DEBUG:
            logger.debug(f"API response: {response.request.method} {response.request.url} -> {response.status_code}")


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON when possible."""
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Invalid JSON body from {response.request.url}")
    return response.text
