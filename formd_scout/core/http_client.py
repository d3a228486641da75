"""
HTTP fetch client with pacing, bounded retry logic and error classification.

All outbound SEC traffic goes through FetchClient.fetch(). The client never
parses content; it returns raw bytes and the status code.

Retry policy:
- HTTP 5xx, HTTP 429 and transport errors are retried up to max_retries times
- Retry i (0-indexed) waits initial_backoff * 2**i seconds (1s, 2s, 4s by default)
- Other 4xx responses fail immediately
- Exhaustion raises FetchExhaustedError with the last status/error
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from formd_scout.core.api_errors import (
    ConfigurationError,
    FetchExhaustedError,
    RetryableError,
    classify_http_error,
)
from formd_scout.core.config import Settings, get_settings
from formd_scout.core.pacing import PacingGate, get_pacing_gate

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class FetchResponse:
    """Raw result of a successful fetch."""
    body: bytes
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class FetchClient:
    """
    Paced, retrying HTTP GET client.

    Responsibilities:
    - Reject requests without an identifying User-Agent (configuration error)
    - Pass every attempt through the shared PacingGate
    - Retry transient failures with a fixed exponential schedule
    - Classify permanent failures into APIError subclasses
    """

    SOURCE_NAME: str = "sec"

    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_INITIAL_BACKOFF: float = 1.0

    def __init__(
        self,
        gate: Optional[PacingGate] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the fetch client.

        Args:
            gate: Shared pacing gate (a private one is created if omitted)
            max_retries: Retries after the first attempt
            initial_backoff: Delay before the first retry, doubled each time
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            http_client: Optional externally owned httpx.AsyncClient
            sleep: Backoff sleep function (tests pass a recorder)
        """
        self.gate = gate or PacingGate()
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._sleep = sleep or asyncio.sleep

        self._client = http_client
        self._owns_client = http_client is None

        logger.info(
            f"Initialized {self.SOURCE_NAME} fetch client: "
            f"min_interval={self.gate.min_interval}, "
            f"max_retries={max_retries}, "
            f"initial_backoff={initial_backoff}"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.SOURCE_NAME} fetch client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number `attempt` (0-indexed)."""
        return self.initial_backoff * (2 ** attempt)

    @staticmethod
    def _prepare_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
        prepared = dict(headers or {})
        user_agent = next(
            (v for k, v in prepared.items() if k.lower() == "user-agent"), None
        )
        if not user_agent or not str(user_agent).strip():
            raise ConfigurationError(
                "Outbound SEC requests require a contact-identifying User-Agent header",
                source=FetchClient.SOURCE_NAME,
                missing_config="User-Agent",
            )
        if not any(k.lower() == "accept" for k in prepared):
            prepared["Accept"] = "application/json"
        return prepared

    async def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> FetchResponse:
        """
        GET a URL, retrying transient failures.

        Args:
            url: Absolute URL
            headers: Request headers; must include User-Agent
            params: Query parameters

        Returns:
            FetchResponse with raw body and status code

        Raises:
            ConfigurationError: User-Agent header missing (nothing is sent)
            FatalError: Non-retryable 4xx response
            FetchExhaustedError: Transient failures outlasted every retry
        """
        request_headers = self._prepare_headers(headers)
        client = await self._get_client()

        last_status: Optional[int] = None
        last_error: Optional[str] = None
        total_attempts = self.max_retries + 1

        for attempt in range(total_attempts):
            await self.gate.wait()

            try:
                response = await client.get(url, params=params, headers=request_headers)
            except httpx.TransportError as e:
                last_status = None
                last_error = f"{type(e).__name__}: {e}"
                reason = last_error
            else:
                if response.status_code < 400:
                    logger.debug(
                        f"[{self.SOURCE_NAME}] GET {url} -> {response.status_code}"
                    )
                    return FetchResponse(
                        body=response.content,
                        status_code=response.status_code,
                        headers=dict(response.headers),
                    )

                error = classify_http_error(
                    response.status_code, response.text[:500], self.SOURCE_NAME
                )
                if not isinstance(error, RetryableError):
                    raise error

                last_status = response.status_code
                last_error = None
                reason = f"HTTP {response.status_code}"

            if attempt >= self.max_retries:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(
                f"[{self.SOURCE_NAME}] Request to {url} failed ({reason}), "
                f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
            )
            await self._sleep(delay)

        raise FetchExhaustedError(
            url=url,
            attempts=total_attempts,
            last_status=last_status,
            last_error=last_error,
            source=self.SOURCE_NAME,
        )

    async def get_json(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Fetch a URL and decode the body as JSON."""
        response = await self.fetch(url, headers=headers, params=params)
        return response.json()


def create_fetch_client(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    gate: Optional[PacingGate] = None,
) -> FetchClient:
    """
    Build a FetchClient from Settings (retry and timeout values).

    Every client shares the process-wide pacing gate unless one is passed in.
    """
    settings = settings or get_settings()
    return FetchClient(
        gate=gate or get_pacing_gate(),
        max_retries=settings.max_retries,
        initial_backoff=settings.initial_backoff,
        timeout=settings.request_timeout,
        http_client=http_client,
    )
