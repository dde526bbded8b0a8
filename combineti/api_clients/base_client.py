"""Base API client with shared HTTP logic, retry handling, and usage tracking"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)

# Characters of an error body kept for diagnostics
BODY_PREVIEW_CHARS = 200


# ============================================================================
# CUSTOM EXCEPTION CLASSES
# ============================================================================

class APIError(Exception):
    """Base exception for API-related errors"""

    def __init__(
        self,
        platform: str,
        operation: str,
        status_code: Optional[int] = None,
        message: str = "",
        details: Optional[Dict] = None
    ):
        self.platform = platform
        self.operation = operation
        self.status_code = status_code
        self.details = details or {}

        full_message = f"[{platform}] {operation}"
        if status_code:
            full_message += f" (HTTP {status_code})"
        if message:
            full_message += f": {message}"

        super().__init__(full_message)


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (HTTP 429)"""

    def __init__(
        self,
        platform: str,
        attempts: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        message = ""
        if attempts:
            message = f"Failed after {attempts} attempts due to API rate limiting"
        super().__init__(
            platform=platform,
            operation="Rate limit exceeded",
            status_code=429,
            message=message,
            details={'retry_after': retry_after, 'attempts': attempts}
        )
        self.attempts = attempts
        self.retry_after = retry_after


class AuthenticationError(APIError):
    """Raised when authentication fails (HTTP 401)"""

    def __init__(self, platform: str, message: str = "Invalid API key"):
        super().__init__(
            platform=platform,
            operation="Authentication failed",
            status_code=401,
            message=message
        )


class ServerError(APIError):
    """Raised when server returns 5xx error"""

    def __init__(self, platform: str, status_code: int, response_text: str = ""):
        super().__init__(
            platform=platform,
            operation="Server error",
            status_code=status_code,
            message=f"Body: {response_text[:BODY_PREVIEW_CHARS]}"
        )


class ClientError(APIError):
    """Raised when request is rejected (non-2xx except 401/429 and 5xx)"""

    def __init__(self, platform: str, status_code: int, response_text: str = ""):
        super().__init__(
            platform=platform,
            operation="Client error",
            status_code=status_code,
            message=f"Body: {response_text[:BODY_PREVIEW_CHARS]}"
        )


class APIDataError(APIError):
    """Response arrived but its payload has the wrong shape"""

    def __init__(self, platform: str, operation: str, message: str, data: Any = None):
        if data is not None:
            message = f"{message}. Data: {str(data)[:BODY_PREVIEW_CHARS]}"
        super().__init__(platform=platform, operation=operation, message=message)
        self.data = data


# ============================================================================
# USAGE TRACKING
# ============================================================================

@dataclass
class APIUsage:
    """Track API usage for token-counted services"""

    timestamp: datetime
    operation: str
    input_tokens: int = 0
    output_tokens: int = 0
    platform: str = "unknown"


class UsageTracker:
    """Accumulates token usage across requests"""

    def __init__(self):
        self.usage_history: List[APIUsage] = []

    def record_usage(self, usage: APIUsage) -> None:
        self.usage_history.append(usage)

    def get_stats(self) -> Dict[str, Any]:
        total_requests = len(self.usage_history)
        return {
            'total_requests': total_requests,
            'total_input_tokens': sum(u.input_tokens for u in self.usage_history),
            'total_output_tokens': sum(u.output_tokens for u in self.usage_history),
        }


# ============================================================================
# BASE API CLIENT
# ============================================================================

class BaseAPIClient:
    """
    Base client for the remote services with shared functionality:
    - Consistent error handling with custom exceptions
    - Bounded retry with exponential backoff
    - Token usage tracking for generative services
    - Request timeout handling

    The client has no knowledge of caching; every call is a real request.
    """

    def __init__(
        self,
        platform_name: str,
        api_key: Optional[str] = None,
        base_url: str = "",
        timeout: int = 30,
        max_retries: int = 3,
        backoff_base: float = 2.0,
    ):
        """
        Initialize base API client

        Args:
            platform_name: Name of the service (e.g., 'sportsdata', 'gemini')
            api_key: API key, sent as the ``key`` query parameter
            base_url: Base URL for API endpoints
            timeout: Request timeout in seconds
            max_retries: Total number of attempts per request (>= 1)
            backoff_base: Base for exponential backoff (2 = 1s, 2s, 4s, 8s...)
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")

        self.platform_name = platform_name
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base

        # HTTP session (created in __aenter__)
        self.session: Optional[aiohttp.ClientSession] = None

        self.usage_tracker = UsageTracker()

    async def __aenter__(self):
        """Async context manager entry"""
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        self.session = aiohttp.ClientSession(timeout=timeout)
        logger.debug(f"✅ Created session for {self.platform_name}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session:
            await self.session.close()
            self.session = None
            logger.debug(f"✅ Closed session for {self.platform_name}")

    def _build_headers(self, additional_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if additional_headers:
            headers.update(additional_headers)
        return headers

    def _auth_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Query parameters with the API key added"""
        if not self.api_key:
            raise ValueError(f"{self.platform_name} API key is not configured")
        merged = dict(params or {})
        merged["key"] = self.api_key
        return merged

    # ========================================================================
    # RETRY LOGIC WITH EXPONENTIAL BACKOFF
    # ========================================================================

    def _backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-indexed): 1, 2, 4, ..."""
        return float(self.backoff_base ** (attempt - 1))

    async def _call_with_retry(
        self,
        coro_fn: Callable[[], Awaitable[Any]],
        operation_name: str = "API call",
        max_retries: Optional[int] = None,
    ) -> Any:
        """
        Execute an async operation with bounded exponential backoff

        Rate limits and transient network failures are retried until
        ``max_retries`` attempts have been made. Every other APIError
        is raised on the first occurrence.

        Args:
            coro_fn: Async function to execute (as callable, not coroutine)
            operation_name: Human-readable operation description for logging
            max_retries: Override default attempt bound for this call

        Returns:
            Result from the async function

        Raises:
            RateLimitError: once the bound is exhausted on HTTP 429
            aiohttp.ClientError / asyncio.TimeoutError: the last network error
            APIError: non-retryable HTTP errors, immediately
        """
        max_attempts = max_retries or self.max_retries

        for attempt in range(1, max_attempts + 1):
            try:
                logger.debug(f"[{self.platform_name}] {operation_name} (attempt {attempt}/{max_attempts})")
                return await coro_fn()

            except RateLimitError as e:
                if attempt >= max_attempts:
                    logger.error(
                        f"[{self.platform_name}] Rate limit exceeded after {max_attempts} attempts"
                    )
                    raise RateLimitError(
                        self.platform_name, attempts=max_attempts, retry_after=e.retry_after
                    ) from e
                wait_time = self._backoff_delay(attempt)
                logger.warning(
                    f"[{self.platform_name}] Rate limited. "
                    f"Retrying in {wait_time:.1f}s... (attempt {attempt}/{max_attempts})"
                )
                await asyncio.sleep(wait_time)

            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                if attempt >= max_attempts:
                    logger.error(
                        f"[{self.platform_name}] {operation_name} failed after {max_attempts} attempts: {e}"
                    )
                    raise
                wait_time = self._backoff_delay(attempt)
                logger.warning(
                    f"[{self.platform_name}] {operation_name} network error: {e!r}. "
                    f"Retrying in {wait_time:.1f}s... (attempt {attempt}/{max_attempts})"
                )
                await asyncio.sleep(wait_time)

            except APIError as e:
                logger.error(f"[{self.platform_name}] {operation_name} failed: {e}")
                raise

        raise RuntimeError(f"[{self.platform_name}] {operation_name}: retry loop exited without a result")

    # ========================================================================
    # REQUESTS
    # ========================================================================

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        if not self.session:
            raise RuntimeError("Session not initialized. Use 'async with' context manager.")

        # Log the path only: the query string carries the API key
        operation_name = operation_name or f"{method} {url}"

        async def make_request():
            async with self.session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=self._build_headers(),
            ) as response:
                await self._handle_response_status(response)
                text = await response.text()
                try:
                    return json.loads(text)
                except ValueError as e:
                    raise APIDataError(
                        self.platform_name, operation_name, f"Response is not JSON ({e})", text
                    ) from e

        return await self._call_with_retry(make_request, operation_name=operation_name)

    async def fetch_with_retry(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``url`` and return the parsed JSON body"""
        return await self._request_json("GET", url, params=params)

    async def post_with_retry(
        self,
        url: str,
        payload: Dict[str, Any],
        params: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        """POST a JSON ``payload`` and return the parsed JSON body"""
        return await self._request_json(
            "POST", url, params=params, payload=payload, operation_name=operation_name
        )

    # ========================================================================
    # RESPONSE HANDLING
    # ========================================================================

    async def _handle_response_status(self, response: aiohttp.ClientResponse) -> None:
        """
        Check HTTP response status and raise appropriate exceptions

        Raises:
            RateLimitError: If status is 429
            AuthenticationError: If status is 401
            ServerError: If status is 5xx
            ClientError: Any other non-2xx status
        """
        if 200 <= response.status < 300:
            return

        if response.status == 429:
            raise RateLimitError(self.platform_name, retry_after=_parse_retry_after(response))

        elif response.status == 401:
            raise AuthenticationError(self.platform_name)

        text = await response.text()
        if response.status >= 500:
            raise ServerError(self.platform_name, response.status, text)
        raise ClientError(self.platform_name, response.status, text)

    # ========================================================================
    # USAGE TRACKING (for token-counted APIs like Gemini)
    # ========================================================================

    def record_usage(self, operation: str, input_tokens: int = 0, output_tokens: int = 0) -> None:
        usage = APIUsage(
            timestamp=datetime.now(),
            operation=operation,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            platform=self.platform_name,
        )
        self.usage_tracker.record_usage(usage)

    def get_usage_stats(self) -> Dict[str, Any]:
        return self.usage_tracker.get_stats()


def _parse_retry_after(response: aiohttp.ClientResponse) -> Optional[int]:
    raw = response.headers.get('Retry-After') if response.headers else None
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
