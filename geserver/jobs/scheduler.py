"""
Background Jobs - itch.io poll loop and watcher status
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from datetime import datetime, timedelta
import copy
import logging
import threading
import time

from geserver import metrics
from geserver.utils import now_iso

logger = logging.getLogger('main')

POLL_JOB_ID = 'poll_itch_uploads'


class WatcherStatus:
    """Process-lifetime counters for the poll loop, global and per title"""

    def __init__(self, title_ids=None, poll_interval_ms=0):
        self._lock = threading.Lock()
        self.title_ids = list(title_ids or [])
        self.poll_interval_ms = poll_interval_ms
        self.last_check = None
        self.last_success = None
        self.last_error = None
        self.checks_count = 0
        self.updates_found = 0
        self.per_title = {}

    def _title(self, title_id):
        return self.per_title.setdefault(title_id, {
            'lastCheck': None,
            'lastSuccess': None,
            'lastError': None,
            'updatesFound': 0,
        })

    def cycle_started(self):
        with self._lock:
            self.last_check = now_iso()
            self.checks_count += 1

    def title_checked(self, title_id):
        with self._lock:
            self._title(title_id)['lastCheck'] = now_iso()

    def title_succeeded(self, title_id, new_version=False):
        with self._lock:
            now = now_iso()
            self.last_success = now
            entry = self._title(title_id)
            entry['lastSuccess'] = now
            if new_version:
                self.updates_found += 1
                entry['updatesFound'] += 1

    def title_failed(self, title_id, message):
        with self._lock:
            error = {'time': now_iso(), 'message': message}
            self.last_error = error
            self._title(title_id)['lastError'] = dict(error)

    def snapshot(self):
        with self._lock:
            return {
                'lastCheck': self.last_check,
                'lastSuccess': self.last_success,
                'lastError': copy.deepcopy(self.last_error),
                'checksCount': self.checks_count,
                'updatesFound': self.updates_found,
                'perTitle': copy.deepcopy(self.per_title),
                'pollIntervalMinutes': self.poll_interval_ms / (1000 * 60),
                'titleIds': list(self.title_ids),
            }


class PollScheduler:
    """
    Runs the reconciler for every tracked title, one after another.

    The first cycle runs right away and each following cycle is scheduled only
    once the previous one has finished, so cycles never overlap. Errors for one
    title are recorded and reported without stopping the rest of the cycle.
    """

    def __init__(self, reconciler, status=None, notifier=None, scheduler=None):
        self.reconciler = reconciler
        self.status = status or WatcherStatus()
        self.notifier = notifier
        self.scheduler = scheduler or BackgroundScheduler()
        self.title_ids = []
        self.interval_ms = 0
        self._cycle_lock = threading.Lock()
        self._cycle_running = False
        self._stopped = False

    def start(self, title_ids, interval_ms):
        """Begin polling ``title_ids`` every ``interval_ms`` milliseconds."""
        self.title_ids = [str(t) for t in title_ids or []]
        self.interval_ms = interval_ms
        self.status.title_ids = list(self.title_ids)
        self.status.poll_interval_ms = interval_ms

        if not self.title_ids:
            logger.warning('No GAME_ID or GAME_IDS configured; itch watcher will not run.')
            return False

        self._stopped = False
        self.ensure_running()
        self._schedule_next(datetime.now())
        logger.info(f"itch.io watcher started for games: {', '.join(self.title_ids)}")
        return True

    def _schedule_next(self, run_date):
        self.scheduler.add_job(
            func=self._run_and_reschedule,
            trigger=DateTrigger(run_date=run_date),
            id=POLL_JOB_ID,
            name='Poll itch.io uploads',
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=None,
        )

    def _run_and_reschedule(self):
        try:
            self.run_cycle()
        finally:
            if not self._stopped:
                self._schedule_next(datetime.now() + timedelta(milliseconds=self.interval_ms))

    def run_cycle(self):
        """One sequential pass over every tracked title."""
        with self._cycle_lock:
            if self._cycle_running:
                logger.info('Skipping poll cycle: a cycle is already in progress.')
                return False
            self._cycle_running = True

        started = time.time()
        try:
            self.status.cycle_started()
            for title_id in self.title_ids:
                self.poll_title(title_id)
            metrics.poll_cycles_total.inc()
            return True
        finally:
            metrics.poll_cycle_duration_seconds.observe(time.time() - started)
            with self._cycle_lock:
                self._cycle_running = False

    def poll_title(self, title_id):
        self.status.title_checked(title_id)
        try:
            result = self.reconciler.reconcile(title_id)
            error = result.error
        except Exception as e:
            logger.error(f"Unexpected error reconciling {title_id}: {e}", exc_info=True)
            result = None
            error = str(e)

        if error is not None:
            self._record_failure(title_id, error)
            return result

        self.status.title_succeeded(title_id, new_version=result.new_version_detected)
        metrics.title_checks_total.labels(title_id=title_id, status='ok').inc()
        if result.new_version_detected:
            metrics.updates_detected_total.labels(title_id=title_id).inc()
        return result

    def _record_failure(self, title_id, message):
        logger.error(f"Error checking itch.io updates for {title_id}: {message}")
        self.status.title_failed(title_id, message)
        metrics.title_checks_total.labels(title_id=title_id, status='error').inc()
        if self.notifier is not None:
            self.notifier.notify(f"Watcher error for game {title_id}: {message}")

    def ensure_running(self):
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Job scheduler initialized")

    def add_job(self, job_id, func, **kwargs):
        """Register an extra job on the same scheduler"""
        self.scheduler.add_job(id=job_id, func=func, replace_existing=True, **kwargs)

    def shutdown(self):
        self._stopped = True
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Poll scheduler shutdown")
