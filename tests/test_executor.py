"""Test the UI executor and worker pool"""

import threading

import pytest

from spot_browser.core import UiExecutor, WorkerPool


class TestUiExecutor:
    """Test UiExecutor"""

    def test_post_runs_in_order(self, ui):
        """Test callbacks run FIFO on run_pending()"""
        seen = []
        ui.post(seen.append, 1)
        ui.post(seen.append, 2)

        assert seen == []
        assert ui.run_pending() == 2
        assert seen == [1, 2]

    def test_post_delayed_waits_for_clock(self, ui, clock):
        """Test delayed callbacks are held until they are due"""
        seen = []
        ui.post_delayed(0.5, seen.append, "late")
        ui.post(seen.append, "now")

        ui.run_pending()
        assert seen == ["now"]
        assert ui.pending() == 1

        clock.advance(0.5)
        ui.run_pending()
        assert seen == ["now", "late"]

    def test_delayed_callbacks_ordered_by_due_time(self, ui, clock):
        """Test the earliest deadline runs first"""
        seen = []
        ui.post_delayed(2, seen.append, "b")
        ui.post_delayed(1, seen.append, "a")

        clock.advance(3)
        ui.run_pending()

        assert seen == ["a", "b"]

    def test_failing_callback_is_logged(self, ui, caplog):
        """Test an exception does not stop the queue"""
        seen = []

        def broken():
            raise RuntimeError("boom")

        ui.post(broken)
        ui.post(seen.append, "after")
        ui.run_pending()

        assert seen == ["after"]
        assert "boom" in caplog.text

    def test_run_until_predicate(self):
        """Test run_until() returns once the predicate holds"""
        ui = UiExecutor()
        seen = []
        threading.Thread(target=lambda: ui.post(seen.append, "x")).start()

        assert ui.run_until(lambda: seen, timeout=5)
        assert seen == ["x"]

    def test_run_until_timeout(self):
        """Test run_until() gives up after the timeout"""
        ui = UiExecutor()
        assert ui.run_until(lambda: False, timeout=0.1, poll_interval=0.01) is False


class TestWorkerPool:
    """Test WorkerPool"""

    @pytest.fixture
    def real_pool(self):
        pool = WorkerPool(UiExecutor(), max_workers=2)
        yield pool
        pool.shutdown()

    def test_result_delivered_on_ui_thread(self, real_pool):
        """Test on_done runs on the thread driving the UI executor"""
        results = []
        main_thread = threading.current_thread()

        def on_done(future):
            results.append((future.result(), threading.current_thread() is main_thread))

        real_pool.ask(lambda x: x * 2, on_done, 21)
        assert real_pool.ui.run_until(lambda: results, timeout=5)

        assert results == [(42, True)]

    def test_exception_surfaces_in_on_done(self, real_pool):
        """Test task exceptions reach on_done through the future"""
        errors = []

        def task():
            raise ValueError("bad")

        def on_done(future):
            errors.append(future.exception())

        real_pool.ask(task, on_done)
        real_pool.ui.run_until(lambda: errors, timeout=5)

        assert isinstance(errors[0], ValueError)

    def test_in_flight_counts_until_delivery(self, real_pool):
        """Test in_flight drops only after on_done ran"""
        release = threading.Event()
        done = []

        real_pool.ask(release.wait, done.append, 5)
        assert real_pool.in_flight == 1

        release.set()
        real_pool.ui.run_until(lambda: done, timeout=5)

        assert real_pool.in_flight == 0

    def test_spawn_failures_logged(self, real_pool, caplog):
        """Test fire-and-forget failures are logged"""
        def task():
            raise RuntimeError("background boom")

        future = real_pool.spawn(task)
        assert isinstance(future.exception(5), RuntimeError)
        real_pool.shutdown(wait=True)

        assert "background boom" in caplog.text
