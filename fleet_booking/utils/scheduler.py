import logging
from apscheduler.schedulers.background import BackgroundScheduler
from fleet_booking.config import RECONCILE_INTERVAL_SECONDS
from fleet_booking.db import SessionLocal
from fleet_booking.exceptions import DomainError
from fleet_booking.services.lifecycle import BookingLifecycleManager

logger = logging.getLogger(__name__)


def run_reconciliation(session_factory=SessionLocal):
    """One sweep: re-derive every vehicle status and flag overdue keys."""
    db = session_factory()
    try:
        manager = BookingLifecycleManager(db)
        changed = manager.vehicles.reconcile_all()
        overdue = manager.mark_overdue_keys()
        logger.debug(f"Reconciliation sweep: {changed} vehicles updated, {overdue} keys overdue")
        return changed, overdue
    except DomainError as e:
        logger.error(f"Reconciliation sweep failed: {e.message}")
        raise
    finally:
        db.close()


def start(interval_seconds=RECONCILE_INTERVAL_SECONDS):
    scheduler = BackgroundScheduler()
    scheduler.add_job(run_reconciliation, "interval", seconds=interval_seconds, id="reconcile_vehicles", max_instances=1)
    scheduler.start()
    logger.info(f"Reconciliation sweep scheduled every {interval_seconds}s")
    return scheduler
