"""
Scheduled Tasks

Background job that runs periodically:
- reconcile_expired_appointments: sweeps overdue scheduled/confirmed
  appointments independently of read traffic
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from clinic_scheduler.core import config
from clinic_scheduler.database import SessionLocal
from clinic_scheduler.scheduling.sweeper import sweep_due

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'reconcile_expired_appointments'

_scheduler: BackgroundScheduler | None = None


def reconcile_expired_appointments(session_factory=SessionLocal) -> int:
    db = session_factory()
    try:
        return sweep_due(db)
    except Exception:
        logger.exception('Periodic appointment reconciliation failed')
        return 0
    finally:
        db.close()


def start_scheduler(interval_minutes: int | None = None) -> BackgroundScheduler:
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        return _scheduler

    interval_minutes = interval_minutes or config.SWEEPER_INTERVAL_MINUTES
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        reconcile_expired_appointments,
        'interval',
        minutes=interval_minutes,
        id=SWEEP_JOB_ID,
        name='Reconcile expired appointments',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    _scheduler = scheduler

    logger.info('Registered %s every %d minutes', SWEEP_JOB_ID, interval_minutes)
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None
