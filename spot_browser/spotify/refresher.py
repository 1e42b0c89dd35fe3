"""
Background token refresh.

TokenRefresher wakes up every REFRESH_INTERVAL seconds and asks the
TokenStore for a fresh access token. A failure is broadcast as an
AuthErrorEvent and the loop simply waits for the next tick; the next
successful refresh clears the condition implicitly.
"""

import threading

from spot_browser.core.events import AuthErrorEvent, EventBus, get_event_bus
from spot_browser.core.exceptions import SpotBrowserError
from spot_browser.core.logger import get_logger
from spot_browser.spotify.token_store import TokenStore

logger = get_logger(__name__)


REFRESH_INTERVAL = 20 * 60


class TokenRefresher:
    """
    Periodic refresh task running on its own daemon thread.

    Args:
        token_store: Store whose refresh() is called.
        interval: Seconds between attempts.
        bus: Event bus for AuthErrorEvent, defaults to the process bus.
        refresh_immediately: Also refresh once right after start(), used
                             when a stale token was loaded from cache.
    """

    def __init__(
        self,
        token_store: TokenStore,
        interval: float = REFRESH_INTERVAL,
        bus: EventBus | None = None,
        refresh_immediately: bool = False
    ) -> None:
        self._token_store = token_store
        self._interval = interval
        self._bus = bus
        self._refresh_immediately = refresh_immediately
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.failures = 0
        self.successes = 0
        self._failing = False

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="token-refresher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def tick(self) -> bool:
        """
        Run one refresh attempt.

        Returns:
            True on success, False if an AuthErrorEvent was published.
        """
        try:
            self._token_store.refresh()
        except SpotBrowserError as e:
            logger.warning(f"Token refresh failed: {e}")
            self._fail(e.message)
            return False
        except Exception as e:
            logger.error(f"Token refresh failed unexpectedly: {e}", exc_info=True)
            self._fail(f"Token refresh failed: {e}")
            return False
        if self._failing:
            logger.info("Token refresh recovered")
        self._failing = False
        self.successes += 1
        return True

    def _fail(self, message: str) -> None:
        self.failures += 1
        self._failing = True
        (self._bus or get_event_bus()).publish(AuthErrorEvent(message))

    def _run(self) -> None:
        if self._refresh_immediately:
            self.tick()
        while not self._stop.wait(self._interval):
            self.tick()
