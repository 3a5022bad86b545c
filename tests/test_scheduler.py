"""
Tests for the poll scheduler and watcher status
"""
import threading
import time
from unittest.mock import MagicMock

from apscheduler.schedulers.background import BackgroundScheduler
import pytest

from geserver.jobs.scheduler import POLL_JOB_ID, PollScheduler, WatcherStatus
from geserver.reconciler import ReconcileResult, UploadReconciler


@pytest.fixture
def fake_scheduler():
    scheduler = MagicMock()
    scheduler.running = False
    return scheduler


@pytest.fixture
def poller(store, itch_client, fake_scheduler):
    reconciler = UploadReconciler(store, itch_client)
    return PollScheduler(reconciler, status=WatcherStatus(), scheduler=fake_scheduler)


class TestPollCycle:

    def test_failure_in_one_title_does_not_stop_others(self, store, itch_client, poller, sample_uploads):
        itch_client.errors['broken'] = 'timeout'
        itch_client.uploads['g1'] = sample_uploads
        poller.title_ids = ['broken', 'g1']

        poller.run_cycle()

        assert itch_client.calls == ['broken', 'g1']
        assert store.get('titles')['g1']['version'] == '1002'
        status = poller.status.snapshot()
        assert status['perTitle']['broken']['lastError']['message'] == 'timeout'
        assert status['perTitle']['g1']['lastError'] is None
        assert status['perTitle']['g1']['updatesFound'] == 1
        assert status['lastError']['message'] == 'timeout'

    def test_unexpected_exception_is_isolated(self, itch_client, fake_scheduler):
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = [RuntimeError('disk full'), ReconcileResult()]
        poller = PollScheduler(reconciler, scheduler=fake_scheduler)
        poller.title_ids = ['a', 'b']

        poller.run_cycle()

        assert reconciler.reconcile.call_count == 2
        status = poller.status.snapshot()
        assert status['perTitle']['a']['lastError']['message'] == 'disk full'
        assert status['perTitle']['b']['lastSuccess'] is not None

    def test_errors_are_forwarded_to_notifier(self, itch_client, poller):
        notifier = MagicMock()
        poller.notifier = notifier
        itch_client.errors['g1'] = '401 Unauthorized'
        poller.title_ids = ['g1']

        poller.run_cycle()

        notifier.notify.assert_called_once_with('Watcher error for game g1: 401 Unauthorized')

    def test_counters_accumulate(self, itch_client, poller, sample_uploads):
        itch_client.uploads['g1'] = sample_uploads
        poller.title_ids = ['g1']

        poller.run_cycle()
        poller.run_cycle()

        status = poller.status.snapshot()
        assert status['checksCount'] == 2
        assert status['updatesFound'] == 1
        assert status['lastSuccess'] is not None

    def test_cycle_does_not_overlap(self, poller):
        poller._cycle_running = True
        assert poller.run_cycle() is False


class TestStart:

    def test_empty_title_list_does_not_poll(self, poller, fake_scheduler):
        assert poller.start([], 1000) is False
        fake_scheduler.start.assert_not_called()
        fake_scheduler.add_job.assert_not_called()

    def test_start_schedules_immediate_run(self, poller, fake_scheduler):
        assert poller.start(['g1', 'g2'], 60000) is True

        fake_scheduler.start.assert_called_once()
        kwargs = fake_scheduler.add_job.call_args.kwargs
        assert kwargs['id'] == POLL_JOB_ID
        assert kwargs['replace_existing'] is True
        assert kwargs['misfire_grace_time'] is None
        assert kwargs['coalesce'] is True
        assert poller.status.snapshot()['titleIds'] == ['g1', 'g2']
        assert poller.status.snapshot()['pollIntervalMinutes'] == 1

    def test_next_cycle_is_scheduled_after_completion(self, itch_client, poller, fake_scheduler):
        poller.title_ids = ['g1']
        poller.interval_ms = 5000

        poller._run_and_reschedule()

        assert itch_client.calls == ['g1']
        assert fake_scheduler.add_job.call_count == 1

    def test_shutdown_stops_rescheduling(self, poller, fake_scheduler):
        poller.title_ids = ['g1']
        poller.shutdown()

        poller._run_and_reschedule()

        fake_scheduler.add_job.assert_not_called()


class SlowReconciler:
    """Records each reconcile and how many ran at the same time"""

    def __init__(self, duration=0.02):
        self.duration = duration
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def reconcile(self, title_id):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.duration)
        with self._lock:
            self.active -= 1
        return ReconcileResult()


def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def background_scheduler():
    scheduler = BackgroundScheduler()
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


class TestWithBackgroundScheduler:

    def test_cycles_run_in_sequence_without_overlap(self, background_scheduler):
        reconciler = SlowReconciler()
        poller = PollScheduler(reconciler, scheduler=background_scheduler)

        poller.start(['g1'], 50)

        assert _wait_for(lambda: reconciler.calls >= 3)
        poller.shutdown()
        assert reconciler.max_active == 1
        assert poller.status.snapshot()['checksCount'] >= 3

    def test_polling_resumes_after_a_late_wakeup(self, background_scheduler):
        reconciler = SlowReconciler(duration=0)
        poller = PollScheduler(reconciler, scheduler=background_scheduler)
        poller.start(['g1'], 200)
        assert _wait_for(lambda: reconciler.calls >= 1)

        # Stall the scheduler past APScheduler's default one second grace time
        background_scheduler.pause()
        time.sleep(1.5)
        calls_before = reconciler.calls
        background_scheduler.resume()

        assert _wait_for(lambda: reconciler.calls >= calls_before + 2)
        poller.shutdown()
