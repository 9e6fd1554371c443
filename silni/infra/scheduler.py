# silni/infra/scheduler.py
# optional in-process cron for deployments without an external scheduler
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from silni.application.announcement.announcement import send_scheduled_announcements
from silni.application.reminder.reminder import send_scheduled_reminders
from silni.application.streak.streak import check_streak_alerts
from silni.infra.config import settings
from silni.infra.db.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone=settings.reference_tz)

def run_job(job, gateway_factory):
    db = SessionLocal()
    try:
        result = job(db, gateway_factory())
        logger.info(f"{job.__name__}: {result.get('message')}")
    except Exception as e:
        logger.error(f"{job.__name__} failed: {e}", exc_info=True)
    finally:
        db.close()

def start_scheduler(gateway_factory):
    # reminders: every hour on the hour
    scheduler.add_job(
        run_job, args=[send_scheduled_reminders, gateway_factory],
        trigger=CronTrigger(minute=0, timezone=settings.reference_tz),
        id='send_scheduled_reminders', name='Scheduled reminders',
        replace_existing=True, max_instances=1, coalesce=True
    )

    # announcements: every 15 minutes
    scheduler.add_job(
        run_job, args=[send_scheduled_announcements, gateway_factory],
        trigger=CronTrigger(minute='*/15', timezone=settings.reference_tz),
        id='send_scheduled_announcements', name='Scheduled announcements',
        replace_existing=True, max_instances=1, coalesce=True
    )

    # streak alerts: once a day in the evening
    scheduler.add_job(
        run_job, args=[check_streak_alerts, gateway_factory],
        trigger=CronTrigger(hour=20, minute=0, timezone=settings.reference_tz),
        id='check_streak_alerts', name='Streak alerts',
        replace_existing=True, max_instances=1, coalesce=True
    )

    scheduler.start()
    logger.info("Notification scheduler started")

def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Notification scheduler stopped")
