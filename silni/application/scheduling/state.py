# silni/application/scheduling/state.py
# status writes after a dispatch pass; every write is conditional on the state we expect
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from silni.application.scheduling.recurrence import reference_now
from silni.domain.announcement.models import AdminAnnouncement
from silni.domain.reminder.models import ReminderSchedule
from silni.infra.clock import to_naive_utc

logger = logging.getLogger(__name__)

# 1) reminders
def already_sent_today(last_sent_at: Optional[datetime], now: datetime) -> bool:
    if last_sent_at is None:
        return False
    return reference_now(last_sent_at).date() == reference_now(now).date()

def mark_schedule_sent(db: Session, schedule_id: str, previous_sent_at: Optional[datetime], now: datetime) -> bool:
    query = db.query(ReminderSchedule).filter(ReminderSchedule.id == schedule_id)
    if previous_sent_at is None:
        query = query.filter(ReminderSchedule.last_sent_at.is_(None))
    else:
        query = query.filter(ReminderSchedule.last_sent_at == previous_sent_at)

    updated = query.update({ReminderSchedule.last_sent_at: to_naive_utc(now)}, synchronize_session=False)
    db.commit()
    if not updated:
        logger.warning(f"Schedule {schedule_id} was updated by another run, last_sent_at left untouched")
    return updated == 1

# 2) announcements: scheduled -> sending -> sent, or back to draft
def claim_announcement(db: Session, announcement_id: str, from_statuses: Iterable[str] = ("scheduled",)) -> bool:
    updated = db.query(AdminAnnouncement).filter(
        AdminAnnouncement.id == announcement_id,
        AdminAnnouncement.status.in_(tuple(from_statuses))
    ).update({AdminAnnouncement.status: "sending"}, synchronize_session=False)
    db.commit()
    return updated == 1

def complete_announcement(db: Session, announcement_id: str, total_recipients: int, sent: int, failed: int, now: datetime) -> bool:
    updated = db.query(AdminAnnouncement).filter(
        AdminAnnouncement.id == announcement_id,
        AdminAnnouncement.status == "sending"
    ).update({
        AdminAnnouncement.status: "sent",
        AdminAnnouncement.sent_at: to_naive_utc(now),
        AdminAnnouncement.total_recipients: total_recipients,
        AdminAnnouncement.successful_sends: sent,
        AdminAnnouncement.failed_sends: failed,
    }, synchronize_session=False)
    db.commit()
    return updated == 1

def revert_announcement(db: Session, announcement_id: str) -> bool:
    db.rollback()
    updated = db.query(AdminAnnouncement).filter(
        AdminAnnouncement.id == announcement_id,
        AdminAnnouncement.status == "sending"
    ).update({AdminAnnouncement.status: "draft"}, synchronize_session=False)
    db.commit()
    return updated == 1
