"""
In-process periodic jobs.

The scheduler does not call the services directly: each job issues a
loopback HTTP request to the server's own cron routes with the shared
``CRON_SECRET``, so the work runs in a regular request cycle.  A failed
tick is logged and simply retried on the next interval.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import requests
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings

logger = logging.getLogger(__name__)


@dataclass
class CronJob:
    id: str
    method: str
    path: str
    minutes: int
    # secret as ?secret= instead of a bearer header
    query_secret: bool = False


def default_jobs() -> List[CronJob]:
    return [
        CronJob('follow_up', 'POST', '/api/emails/follow-up', settings.CRON_FOLLOW_UP_MINUTES),
        CronJob('inbox', 'GET', '/api/emails/check-inbox', settings.CRON_INBOX_MINUTES, query_secret=True),
        CronJob('survey_sync', 'POST', '/api/surveys/sync', settings.CRON_SURVEY_MINUTES),
    ]


def call_route(job: CronJob, base_url: Optional[str] = None) -> Optional[dict]:
    """Run one tick; returns the decoded response or ``None`` on failure."""
    url = f"{(base_url or settings.CRON_BASE_URL).rstrip('/')}{job.path}"
    headers = {'Content-Type': 'application/json'}
    params = None
    if job.query_secret:
        params = {'secret': settings.CRON_SECRET}
    else:
        headers['Authorization'] = f"Bearer {settings.CRON_SECRET}"

    logger.info("[cron] %s: %s %s", job.id, job.method, job.path)
    try:
        resp = requests.request(job.method, url, headers=headers, params=params,
                                timeout=settings.CRON_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        logger.error("[cron] %s error: %s", job.id, e)
        return None
    if resp.status_code >= 400:
        logger.error("[cron] %s failed (HTTP %s): %s", job.id, resp.status_code, resp.text[:500])
        return None
    try:
        payload = resp.json()
    except ValueError:
        logger.info("[cron] %s complete", job.id)
        return {}
    logger.info("[cron] %s complete: %s", job.id, payload.get('data'))
    return payload


class ServerCron:
    """Wraps a ``BackgroundScheduler``; ``start`` may be called more than once."""

    def __init__(self, jobs: Optional[List[CronJob]] = None, base_url: Optional[str] = None):
        self._jobs = jobs
        self.base_url = base_url
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def jobs(self) -> List[CronJob]:
        return self._jobs if self._jobs is not None else default_jobs()

    def start(self, *, blocking_scheduler=None) -> bool:
        """Schedule the jobs; returns False when already started."""
        with self._lock:
            if self._scheduler is not None:
                return False
            scheduler = blocking_scheduler or BackgroundScheduler(timezone=settings.TIME_ZONE)
            first_run = datetime.now(scheduler.timezone) + timedelta(seconds=settings.CRON_STARTUP_DELAY_SECONDS)
            for job in self.jobs:
                scheduler.add_job(
                    call_route,
                    IntervalTrigger(minutes=job.minutes, start_date=first_run),
                    args=[job, self.base_url],
                    id=job.id,
                    name=f"{job.method} {job.path}",
                    replace_existing=True,
                    max_instances=1,
                    coalesce=True,
                )
            self._scheduler = scheduler
        logger.info("[cron] %s", ' | '.join(f"{j.id}: every {j.minutes}min" for j in self.jobs))
        scheduler.start()
        return True

    def stop(self) -> None:
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("[cron] stopped")

    def status(self) -> Dict[str, Optional[str]]:
        if self._scheduler is None:
            return {}
        return {
            job.id: job.next_run_time.isoformat() if job.next_run_time else None
            for job in self._scheduler.get_jobs()
        }


server_cron = ServerCron()
