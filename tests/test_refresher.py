"""Test the background token refresher"""

import threading
from unittest.mock import Mock

import pytest

from spot_browser.core import AuthError, AuthErrorEvent
from spot_browser.spotify import TokenRefresher


@pytest.fixture
def auth_events(bus):
    events = []
    bus.subscribe(AuthErrorEvent, events.append, weak=False)
    return events


class TestTokenRefresher:
    """Test TokenRefresher"""

    def test_successful_tick(self, bus, auth_events):
        store = Mock()
        refresher = TokenRefresher(store, bus=bus)

        assert refresher.tick() is True
        store.refresh.assert_called_once_with()
        assert auth_events == []
        assert refresher.successes == 1

    def test_failed_tick_publishes_auth_error(self, bus, auth_events):
        """Test a refresh failure is broadcast and not raised"""
        store = Mock()
        store.refresh.side_effect = AuthError("Token request rejected: invalid_client")
        refresher = TokenRefresher(store, bus=bus)

        assert refresher.tick() is False
        assert [e.message for e in auth_events] == ["Token request rejected: invalid_client"]
        assert refresher.failures == 1

    def test_recovers_on_next_tick(self, bus, auth_events, caplog):
        """Test a later success clears the failing condition"""
        store = Mock()
        store.refresh.side_effect = [AuthError("down"), None]
        refresher = TokenRefresher(store, bus=bus)

        refresher.tick()
        with caplog.at_level("INFO", logger="spot_browser.spotify.refresher"):
            assert refresher.tick() is True

        assert len(auth_events) == 1
        assert "recovered" in caplog.text

    def test_unexpected_error_is_published(self, bus, auth_events, caplog):
        """Test a non-auth exception is logged, broadcast and not raised"""
        store = Mock()
        store.refresh.side_effect = TypeError("int() argument must be a string")
        refresher = TokenRefresher(store, bus=bus)

        assert refresher.tick() is False

        assert refresher.failures == 1
        assert [e.message for e in auth_events] == ["Token refresh failed: int() argument must be a string"]
        assert "failed unexpectedly" in caplog.text

    def test_thread_survives_unexpected_error(self, bus, auth_events):
        """Test the loop keeps ticking after a crash in refresh()"""
        calls = []
        recovered = threading.Event()
        store = Mock()

        def refresh():
            calls.append(1)
            if len(calls) == 1:
                raise ValueError("bad payload")
            recovered.set()

        store.refresh.side_effect = refresh
        refresher = TokenRefresher(store, interval=0.01, bus=bus, refresh_immediately=True)

        refresher.start()
        try:
            assert recovered.wait(5)
        finally:
            refresher.stop()

        assert len(auth_events) == 1
        assert refresher.successes >= 1

    def test_background_thread_refreshes_immediately(self, bus):
        """Test refresh_immediately triggers a tick right after start()"""
        refreshed = threading.Event()
        store = Mock()
        store.refresh.side_effect = lambda: refreshed.set()
        refresher = TokenRefresher(store, interval=3600, bus=bus, refresh_immediately=True)

        refresher.start()
        try:
            assert refreshed.wait(5)
        finally:
            refresher.stop()

    def test_stop_without_start(self, bus):
        TokenRefresher(Mock(), bus=bus).stop()

    def test_periodic_ticks(self, bus):
        """Test the loop keeps refreshing on every interval"""
        calls = []
        enough = threading.Event()
        store = Mock()

        def refresh():
            calls.append(1)
            if len(calls) >= 3:
                enough.set()

        store.refresh.side_effect = refresh
        refresher = TokenRefresher(store, interval=0.01, bus=bus)

        refresher.start()
        try:
            assert enough.wait(5)
        finally:
            refresher.stop()
