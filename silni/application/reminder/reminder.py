# silni/application/reminder/reminder.py
# hourly job: per-relative reminders whose rule fires in the current reference hour
import logging
from datetime import datetime

import pytz
from sqlalchemy.orm import Session

from silni.application.notification.notification import DispatchResult, PushDispatcher, PushPayload
from silni.application.scheduling.recurrence import current_hour, should_fire
from silni.application.scheduling.state import already_sent_today, mark_schedule_sent
from silni.domain.reminder.models import Relative, ReminderSchedule
from silni.infra.firebase.fcm import PushAuthError
from silni.infra.monitoring import track_job

logger = logging.getLogger(__name__)

FREQUENCY_TITLES = {
    "daily": "تذكير يومي",
    "weekly": "تذكير أسبوعي",
    "monthly": "تذكير شهري",
    "friday": "تذكير الجمعة",
    "custom": "تذكير مخصص",
}

def build_reminder_payload(schedule: ReminderSchedule, relative: Relative) -> PushPayload:
    title = schedule.custom_title or FREQUENCY_TITLES.get(schedule.frequency, "تذكير")
    body = schedule.custom_message or f"حان وقت التواصل مع {relative.full_name}"
    return PushPayload(
        notification_type="reminder",
        title=title,
        body=body,
        data={
            "relative_id": relative.id,
            "schedule_id": schedule.id,
            "frequency": schedule.frequency,
        },
    )

@track_job("reminders")
def send_scheduled_reminders(db: Session, gateway, now: datetime = None) -> dict:
    now = now or datetime.now(pytz.utc)
    hour = current_hour(now)
    logger.info(f"Starting scheduled reminders check for hour {hour:02d}")

    # stage 1: hour bucket
    schedules = db.query(ReminderSchedule).filter(
        ReminderSchedule.is_active.is_(True),
        ReminderSchedule.notification_hour == hour
    ).all()

    checked = len(schedules)
    skipped = 0
    due = []

    # stage 2: per-frequency check, plus at most one fire per reference day
    for schedule in schedules:
        try:
            fires = should_fire(schedule, now)
            sent_today = fires and already_sent_today(schedule.last_sent_at, now)
        except Exception as e:
            logger.error(f"Error evaluating schedule {schedule.id}: {e}", exc_info=True)
            skipped += 1
            continue

        if not fires:
            logger.debug(f"Schedule {schedule.id} ({schedule.frequency}) not due today")
            skipped += 1
            continue
        if sent_today:
            logger.info(f"Schedule {schedule.id} already fired today, skipping")
            skipped += 1
            continue
        due.append((schedule, schedule.last_sent_at))

    totals = DispatchResult()
    fired = 0

    if due:
        dispatcher = PushDispatcher(db, gateway)
        dispatcher.authenticate()

        for schedule, previous_sent_at in due:
            schedule_id = schedule.id
            try:
                relative = db.get(Relative, schedule.relative_id)
                if relative is None:
                    logger.warning(f"Relative {schedule.relative_id} of schedule {schedule_id} not found, skipping")
                    skipped += 1
                    continue

                payload = build_reminder_payload(schedule, relative)
                totals.add(dispatcher.dispatch(schedule.user_id, payload))
                mark_schedule_sent(db, schedule_id, previous_sent_at, now)
                fired += 1
            except PushAuthError:
                raise
            except Exception as e:
                # last_sent_at stays untouched so the next eligible window retries
                db.rollback()
                logger.error(f"Error processing schedule {schedule_id}: {e}", exc_info=True)

    logger.info(f"Reminder check complete: {checked} checked, {fired} fired, {skipped} skipped, "
                f"{totals.sent} sent, {totals.failed} failed")

    return {
        "success": True,
        "checked": checked,
        "fired": fired,
        "sent": totals.sent,
        "failed": totals.failed,
        "skipped": skipped,
        "message": f"Sent {totals.sent} reminder notification(s) for {hour:02d}:00",
    }
