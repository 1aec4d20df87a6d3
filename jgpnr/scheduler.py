# jgpnr/scheduler.py
"""
In-process scheduler for ticket housekeeping.

Only one job runs today: the sweep that flips overdue ACTIVE and PENDING
tickets to EXPIRED so stats and listings do not wait for a gate scan to
notice them.
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED

from jgpnr.background_tasks.ticket_tasks import expire_overdue_tickets
from jgpnr.core.config import settings

logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "expire_overdue_tickets"

_scheduler = None


def _log_job_event(event):
    if event.code == EVENT_JOB_MISSED:
        logger.warning(
            f"Job {event.job_id} missed its run at {event.scheduled_run_time}"
        )
        return
    logger.error(
        f"Job {event.job_id} raised {type(event.exception).__name__}: {event.exception}"
    )
    if event.traceback:
        logger.error(event.traceback)


def init_scheduler() -> BackgroundScheduler:
    """Start the scheduler once per process; later calls return the running one."""
    global _scheduler

    if _scheduler is not None:
        logger.warning("init_scheduler called twice; reusing the running scheduler")
        return _scheduler

    interval = settings.TICKET_EXPIRY_SWEEP_MINUTES
    scheduler = BackgroundScheduler(
        timezone="UTC",
        # One sweep at a time, and a backlog collapses into a single run
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
    )
    scheduler.add_listener(_log_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    scheduler.add_job(
        expire_overdue_tickets,
        trigger=IntervalTrigger(minutes=interval),
        id=EXPIRY_JOB_ID,
        name="Expire overdue tickets",
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler

    logger.info(f"Scheduler started: {EXPIRY_JOB_ID} every {interval} min")
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler

    if _scheduler is None:
        return
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Snapshot of the scheduler for the health endpoint."""
    if _scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    return {
        "status": "running" if _scheduler.running else "stopped",
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in _scheduler.get_jobs()
        ],
    }
