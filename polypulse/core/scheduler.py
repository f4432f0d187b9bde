# 📁 polypulse/core/scheduler.py
import logging
import threading

import schedule

from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)


class JobHealth:
    def __init__(self, name):
        self.name = name
        self.runs = 0
        self.consecutive_failures = 0
        self.last_error = None
        self.last_success_at = None
        self.last_failure_at = None

    def as_dict(self):
        return {
            'runs': self.runs,
            'consecutive_failures': self.consecutive_failures,
            'last_error': self.last_error,
            'last_success_at': self.last_success_at,
            'last_failure_at': self.last_failure_at,
        }


class JobScheduler:
    """
    Periodic background jobs on a private schedule.Scheduler.

    A failing tick is logged and recorded in the job's health; the next
    tick still runs.
    """

    def __init__(self, poll_seconds=1):
        self.scheduler = schedule.Scheduler()
        self.poll_seconds = poll_seconds
        self.health = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None

    def _guard(self, name, func):
        health = self.health.setdefault(name, JobHealth(name))

        def tick():
            try:
                func()
            except Exception as e:
                with self._lock:
                    health.runs += 1
                    health.consecutive_failures += 1
                    health.last_error = str(e)
                    health.last_failure_at = utcnow()
                logger.exception(f"❌ Job {name} failed ({health.consecutive_failures} in a row): {e}")
                return None
            with self._lock:
                health.runs += 1
                health.consecutive_failures = 0
                health.last_success_at = utcnow()
            return None

        return tick

    def run_job(self, name):
        """Run a registered job once, right now"""
        for job in self.scheduler.get_jobs(name):
            job.job_func()

    def every(self, seconds, name, func, first_delay=None):
        tick = self._guard(name, func)
        self.scheduler.every(seconds).seconds.do(tick).tag(name)
        if first_delay is not None:
            self._once_after(first_delay, name, tick)
        logger.info(f"⏰ Job {name} scheduled every {seconds}s")

    def hourly(self, name, func, minute=0):
        tick = self._guard(name, func)
        self.scheduler.every().hour.at(f":{minute:02d}").do(tick).tag(name)
        logger.info(f"⏰ Job {name} scheduled hourly at :{minute:02d}")

    def _once_after(self, delay, name, tick):
        def once():
            tick()
            return schedule.CancelJob

        self.scheduler.every(delay).seconds.do(once).tag(name, 'initial')

    def run_pending(self):
        self.scheduler.run_pending()

    def status(self):
        with self._lock:
            return {name: health.as_dict() for name, health in self.health.items()}

    def start(self):
        if self._thread is not None:
            return self._thread

        def loop():
            while not self._stop.is_set():
                self.run_pending()
                self._stop.wait(self.poll_seconds)

        self._thread = threading.Thread(target=loop, name='polypulse-jobs', daemon=True)
        self._thread.start()
        logger.info(f"✅ Job scheduler started with {len(self.scheduler.get_jobs())} jobs")
        return self._thread

    def stop(self, timeout=5):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.scheduler.clear()
        logger.info("🛑 Job scheduler stopped")
