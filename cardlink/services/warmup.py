"""
Server warm-up.

The backend sleeps when idle; a cheap health ping before login gives it time
to start and lets the app report connectivity problems early.
"""

import threading
import time
from typing import Callable, Optional

import structlog

from cardlink.core.exceptions import ApiError, WarmupError
from cardlink.data.api_client import ApiClient

logger = structlog.get_logger(__name__)

WARM_WINDOW_SECONDS = 5 * 60
WARMUP_TIMEOUT_SECONDS = 8.0


class ServerWarmup:
    """Tracks whether the backend answered a health check recently."""

    def __init__(
        self,
        client: ApiClient,
        clock: Callable[[], float] = time.monotonic,
        warm_window: float = WARM_WINDOW_SECONDS,
        timeout: float = WARMUP_TIMEOUT_SECONDS,
    ):
        self.client = client
        self._clock = clock
        self.warm_window = warm_window
        self.timeout = timeout

        self._lock = threading.Lock()
        self._warm = False
        self._last_warmup: Optional[float] = None

    def is_warm(self) -> bool:
        return (
            self._warm
            and self._last_warmup is not None
            and self._clock() - self._last_warmup < self.warm_window
        )

    def warmup(self) -> None:
        """
        Ping ``/health`` unless the server was reached within the warm window.

        Concurrent callers wait for the ping already in flight.

        Raises:
            WarmupError: The health check failed or timed out
        """
        with self._lock:
            if self.is_warm():
                return

            started = self._clock()
            try:
                self.client.request("GET", "/health", timeout=self.timeout, max_attempts=1)
            except ApiError as e:
                self._warm = False
                logger.warning("Server warmup failed", error=str(e), status=e.status)
                raise WarmupError(
                    "Unable to connect to server. Please check your internet connection "
                    "and try again.",
                    details={"status": e.status},
                ) from e

            self._warm = True
            self._last_warmup = self._clock()
            logger.info("Server warm", duration_seconds=round(self._last_warmup - started, 3))

    def reset(self) -> None:
        with self._lock:
            self._warm = False
            self._last_warmup = None
