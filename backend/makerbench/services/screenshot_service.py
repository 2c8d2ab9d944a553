"""
MakerBench Backend — Browserless Screenshot Service
=====================================================

What:  Captures PNG screenshots of submitted pages through the Browserless
       HTTP API, with retry logic and a circuit breaker.
How:   httpx.AsyncClient POSTs the render request; tenacity retries transient
       failures with exponential backoff and jitter; CircuitBreaker stops
       calling Browserless after repeated failures.
Who:   Called by BookmarkService when a page has no Open Graph image.

Request:
    POST {BROWSERLESS_URL}?token={BROWSERLESS_API_KEY}
    {
        "url": "<page>",
        "options": {"type": "png", "fullPage": false},
        "viewport": {"width": 1280, "height": 800},
        "waitForTimeout": 3000
    }

Error Handling Chain:
    Transport error / timeout / 429 / 5xx → tenacity retries (3 attempts)
    Other 4xx → no retry
    Any final failure → circuit breaker failure recorded → ScreenshotServiceError
    Threshold reached → CircuitBreakerOpenError without calling Browserless
    Recovery timeout elapsed → one test call (HALF_OPEN)
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from makerbench.config import settings
from makerbench.exceptions import CircuitBreakerOpenError, ScreenshotServiceError
from makerbench.services.screenshot_base import ScreenshotProvider

logger = logging.getLogger(__name__)


class _RetryableStatusError(Exception):
    """Browserless answered 429 or 5xx; worth another attempt."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Browserless API error: {status_code} - {body}")
        self.status_code = status_code


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not shared across worker processes; each uvicorn worker keeps its own.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError: OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            remaining = max(int(self.recovery_timeout - elapsed), 1)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Circuit breaker OPENING after %d consecutive failures",
                    self.failure_count,
                )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Browserless Service
# ══════════════════════════════════════════════════════════════════════════

class ScreenshotService(ScreenshotProvider):
    """
    Browserless implementation of ScreenshotProvider.

    Args:
        api_key:     Browserless token; None reads settings, "" disables capture
        endpoint:    Screenshot API URL
        transport:   Optional httpx transport (tests pass httpx.MockTransport)
        wait:        tenacity wait strategy (tests pass wait_none())
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        wait: Optional[wait_base] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = settings.browserless_api_key if api_key is None else api_key
        self.endpoint = endpoint or settings.browserless_url
        self.transport = transport
        self.wait = wait or wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def status(self) -> str:
        if not self.enabled:
            return "disabled"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"

    def build_payload(self, url: str) -> Dict[str, Any]:
        return {
            "url": url,
            "options": {"type": "png", "fullPage": False},
            "viewport": {
                "width": settings.screenshot_viewport_width,
                "height": settings.screenshot_viewport_height,
            },
            "waitForTimeout": settings.screenshot_settle_ms,
        }

    async def capture(self, url: str) -> bytes:
        """
        Render `url` with Browserless and return PNG bytes.

        Flow:
            1. Fail fast when no API key is configured
            2. Check circuit breaker → may raise CircuitBreakerOpenError
            3. POST with retry (transient failures only)
            4. Record success/failure in circuit breaker
        """
        if not self.enabled:
            raise ScreenshotServiceError(message="BROWSERLESS_API_KEY not configured")

        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Capturing screenshot of %s", call_id, url)
        start_time = time.perf_counter()
        try:
            content = await self._capture_with_retry(url)
        except httpx.TimeoutException as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Screenshot capture timed out: %s", call_id, str(e))
            raise ScreenshotServiceError(
                message="Screenshot capture timeout",
                context={"call_id": call_id},
            ) from e
        except (httpx.HTTPError, _RetryableStatusError) as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Screenshot capture failed: %s", call_id, str(e))
            raise ScreenshotServiceError(
                message=str(e) or "Screenshot capture failed",
                context={"call_id": call_id, "attempts": settings.retry_max_attempts},
            ) from e
        except ScreenshotServiceError:
            self.circuit_breaker.record_failure()
            raise

        self.circuit_breaker.record_success()
        logger.info(
            "[%s] Screenshot captured in %.0fms (%d bytes)",
            call_id,
            (time.perf_counter() - start_time) * 1000,
            len(content),
        )
        return content

    async def _capture_with_retry(self, url: str) -> bytes:
        """POSTs the render request; the circuit breaker check is not retried."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatusError)),
            stop=stop_after_attempt(settings.retry_max_attempts),
            wait=self.wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(
                    timeout=settings.screenshot_timeout,
                    transport=self.transport,
                ) as client:
                    response = await client.post(
                        self.endpoint,
                        params={"token": self.api_key},
                        json=self.build_payload(url),
                    )

                if response.status_code == 429 or response.status_code >= 500:
                    raise _RetryableStatusError(response.status_code, response.text[:200])
                if not response.is_success:
                    raise ScreenshotServiceError(
                        message=(
                            f"Browserless API error: {response.status_code} - "
                            f"{response.text[:200]}"
                        ),
                        context={"status_code": response.status_code},
                    )
                return response.content

        raise ScreenshotServiceError(message="Screenshot capture failed")


# ── Singleton Instance ────────────────────────────────────────────────────
screenshot_service = ScreenshotService()
