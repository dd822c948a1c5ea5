"""
Backend REST client with retry, timeout and error normalization.

Every service goes through ``ApiClient``: it resolves URLs against the
configured origin, attaches the stored bearer token, encodes JSON or
multipart bodies and turns failures into the ``ApiError`` hierarchy.
"""

import json
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

import httpx
import structlog

from cardlink.core.config import ClientConfig
from cardlink.core.exceptions import (
    ApiError,
    ApiTimeoutError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ServerError,
    UnexpectedResponseError,
)
from cardlink.core.models import ApiResponse, FormData
from cardlink.data.storage import KeyValueStore, StorageKeys
from cardlink.utils.reliability import build_retrying

logger = structlog.get_logger(__name__)

Body = Union[Mapping[str, Any], FormData, None]

TIMEOUT_MESSAGE = (
    "Connection timeout. The server might be starting up, please wait a moment and try again."
)
NETWORK_MESSAGE = "Network error - Please check your internet connection and try again."
HTML_MESSAGE = "Server error - received HTML error page instead of JSON"

HEALTH_CHECK_TIMEOUT = 8.0


def _query_params(params: Optional[Mapping[str, Any]]) -> Optional[Dict[str, str]]:
    """Drop unset values and stringify the rest."""
    if not params:
        return None
    query = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)
    return query or None


def _parse_body(text: str) -> Any:
    """JSON when possible, raw text otherwise, None for an empty body."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _looks_like_html(text: str) -> bool:
    return text.lstrip().startswith("<")


def error_for_response(status: int, url: str, data: Any, text: str, reason: str) -> ApiError:
    """Map a non-2xx response onto the error hierarchy."""
    server_message = data.get("message") if isinstance(data, dict) else None

    if status == 401:
        return AuthenticationError(
            "Authentication required. Please log in again.", status=status, url=url, body=data
        )
    if status == 404:
        return NotFoundError(
            server_message or "Requested resource not found (404).",
            status=status,
            url=url,
            body=data,
        )
    if status >= 500:
        return ServerError(
            "Server error. Please try again later.", status=status, url=url, body=data
        )
    return ApiError(
        server_message or f"HTTP {status}: {text or reason}", status=status, url=url, body=data
    )


class NonCriticalApi:
    """Same verbs as ``ApiClient`` but failures yield None instead of raising."""

    def __init__(self, client: "ApiClient"):
        self._client = client

    def _call(self, method: str, path: str, **kwargs) -> Optional[ApiResponse]:
        try:
            return self._client.request(method, path, **kwargs)
        except ApiError as e:
            logger.debug(
                "Non-critical request failed",
                method=method,
                path=path,
                status=e.status,
                error=str(e),
            )
            return None

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None):
        return self._call("GET", path, params=params)

    def post(self, path: str, body: Body = None, headers: Optional[Dict[str, str]] = None):
        return self._call("POST", path, body=body, headers=headers)

    def put(self, path: str, body: Body = None):
        return self._call("PUT", path, body=body)

    def patch(self, path: str, body: Body = None):
        return self._call("PATCH", path, body=body)

    def delete(self, path: str):
        return self._call("DELETE", path)


class ApiClient:
    """
    Authenticated client for the card sharing backend.

    Each call is independent: no deduplication, caching or concurrency limits.
    """

    def __init__(
        self,
        config: ClientConfig,
        store: KeyValueStore,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.store = store
        self._sleep = sleep
        self._clock = clock

        self.client = httpx.Client(
            timeout=httpx.Timeout(config.timeout), transport=transport, follow_redirects=True
        )
        self.non_critical = NonCriticalApi(self)

        logger.debug(
            "API client initialized",
            base_url=config.base_url,
            api_prefix=config.api_prefix,
            max_attempts=config.max_attempts,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _build_headers(
        self,
        body: Body,
        headers: Optional[Mapping[str, str]],
        idempotency_key: Optional[str],
    ) -> Dict[str, str]:
        """Merge caller headers with content type, bearer token and idempotency key."""
        result = dict(headers or {})

        # httpx picks the multipart boundary itself
        if not isinstance(body, FormData):
            result["Content-Type"] = "application/json"

        token = self.store.get_item(StorageKeys.TOKEN)
        if token:
            result["Authorization"] = f"Bearer {token}"

        if idempotency_key:
            result["Idempotency-Key"] = idempotency_key

        return result

    def _read_text(self, response: httpx.Response, deadline: float, url: str) -> str:
        """Read the body, aborting once the attempt's overall deadline has passed."""
        chunks = []
        for chunk in response.iter_text():
            chunks.append(chunk)
            if self._clock() > deadline:
                logger.warning("API response exceeded deadline", url=url)
                raise ApiTimeoutError(TIMEOUT_MESSAGE, status=0, url=url)
        return "".join(chunks)

    def _send_once(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Body,
        params: Optional[Dict[str, str]],
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        """Perform a single attempt and classify its outcome."""
        timeout = timeout if timeout is not None else self.config.timeout
        kwargs: Dict[str, Any] = {
            "headers": headers,
            "params": params,
            "timeout": httpx.Timeout(timeout),
        }
        if isinstance(body, FormData):
            # (None, value) parts are plain fields, so the body is multipart even without files
            parts: Dict[str, Any] = {k: (None, str(v)) for k, v in body.fields.items()}
            parts.update(body.files)
            kwargs["files"] = parts
        elif body is not None:
            kwargs["json"] = dict(body)

        logger.debug("Making API request", method=method, url=url, has_body=body is not None)

        # httpx timeouts bound each phase separately; the deadline bounds the whole attempt
        deadline = self._clock() + timeout
        try:
            request = self.client.build_request(method, url, **kwargs)
            response = self.client.send(request, stream=True)
            try:
                text = self._read_text(response, deadline, url)
            finally:
                response.close()
        except httpx.ConnectTimeout as e:
            logger.warning("API connection timed out", method=method, url=url, error=str(e))
            raise ApiTimeoutError(TIMEOUT_MESSAGE, connect_failed=True, status=0, url=url) from e
        except httpx.TimeoutException as e:
            logger.warning("API request timed out", method=method, url=url, error=str(e))
            raise ApiTimeoutError(TIMEOUT_MESSAGE, status=0, url=url) from e
        except httpx.ConnectError as e:
            logger.warning("API connection failed", method=method, url=url, error=str(e))
            raise NetworkError(NETWORK_MESSAGE, connect_failed=True, status=0, url=url) from e
        except httpx.TransportError as e:
            logger.warning("API transport error", method=method, url=url, error=str(e))
            raise NetworkError(NETWORK_MESSAGE, status=0, url=url) from e

        status = response.status_code

        if _looks_like_html(text) and not 400 <= status < 500:
            logger.error("HTML response from API", method=method, url=url, status=status)
            raise UnexpectedResponseError(HTML_MESSAGE, status=status, url=url, body=text)

        data = _parse_body(text)

        if not response.is_success:
            error = error_for_response(status, url, data, text, response.reason_phrase)
            logger.error(
                "API HTTP error",
                method=method,
                url=url,
                status=status,
                response_text=text[:500],
            )
            raise error

        return ApiResponse(status=status, url=url, body=data)

    def request(
        self,
        method: str,
        path: str,
        body: Body = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> ApiResponse:
        """
        Call the backend.

        Args:
            method: HTTP method
            path: Route relative to the API prefix, e.g. ``/cards``
            body: JSON mapping or ``FormData``
            headers: Extra request headers
            params: Query parameters; None values are dropped
            idempotency_key: Sent as ``Idempotency-Key``; lets mutating calls retry
            timeout: Per-attempt ceiling overriding the configured one
            max_attempts: Attempt budget overriding the configured one

        Returns:
            Tagged response with status, URL and parsed body

        Raises:
            ApiError: Classified failure after the allowed attempts
        """
        method = method.upper()
        url = self.config.url_for(path)
        request_headers = self._build_headers(body, headers, idempotency_key)

        retrying = build_retrying(
            method,
            path,
            max_attempts=max_attempts or self.config.max_attempts,
            backoff_step=self.config.backoff_step,
            idempotent=True if idempotency_key else None,
            sleep=self._sleep,
        )
        return retrying(
            self._send_once, method, url, request_headers, body, _query_params(params), timeout
        )

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self.request("GET", path, params=params)

    def post(
        self,
        path: str,
        body: Body = None,
        headers: Optional[Mapping[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> ApiResponse:
        return self.request(
            "POST", path, body=body, headers=headers, idempotency_key=idempotency_key
        )

    def put(self, path: str, body: Body = None) -> ApiResponse:
        return self.request("PUT", path, body=body)

    def patch(self, path: str, body: Body = None) -> ApiResponse:
        return self.request("PATCH", path, body=body)

    def delete(self, path: str) -> ApiResponse:
        return self.request("DELETE", path)

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the backend.

        One attempt with a short ceiling, so a dead host is reported quickly.

        Returns:
            Health status information
        """
        try:
            response = self.request("GET", "/health", timeout=HEALTH_CHECK_TIMEOUT, max_attempts=1)
            return {"status": "healthy", "http_status": response.status, "body": response.body}
        except ApiError as e:
            return {"status": "unhealthy", "error": str(e), "error_type": type(e).__name__}
