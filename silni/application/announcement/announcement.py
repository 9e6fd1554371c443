# silni/application/announcement/announcement.py
# admin broadcasts: the 15-minute scheduled job and the manual "send now"
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from silni.application.notification.notification import DispatchResult, PushDispatcher, PushPayload
from silni.application.recipient.resolver import resolve_recipients
from silni.application.scheduling.state import claim_announcement, complete_announcement, revert_announcement
from silni.domain.announcement.models import AdminAnnouncement
from silni.infra.clock import to_naive_utc
from silni.infra.config import settings
from silni.infra.monitoring import track_job

logger = logging.getLogger(__name__)


@dataclass
class AnnouncementOutcome:
    total_recipients: int
    result: DispatchResult


def build_announcement_payload(announcement: AdminAnnouncement) -> PushPayload:
    data = dict(announcement.notification_data or {})
    data["announcement_id"] = announcement.id
    return PushPayload(
        notification_type="announcement",
        title=announcement.title,
        body=announcement.body,
        data=data,
        channel_id=settings.ANNOUNCEMENT_CHANNEL_ID,
        badge=1,
    )

# 1) one announcement: claim, resolve, fan out, complete (or revert to draft)
def process_announcement(db: Session, dispatcher: PushDispatcher, announcement: AdminAnnouncement,
                         now: datetime, from_statuses=("scheduled",)) -> Optional[AnnouncementOutcome]:
    announcement_id = announcement.id
    if not claim_announcement(db, announcement_id, from_statuses):
        logger.info(f"Announcement {announcement_id} already claimed by another run, skipping")
        return None

    try:
        payload = build_announcement_payload(announcement)
        recipients = resolve_recipients(db, announcement.target_users, announcement.custom_user_ids, now)

        if recipients:
            logger.info(f"Sending announcement {announcement_id} to {len(recipients)} user(s)")
            result = dispatcher.dispatch_many(recipients, payload)
        else:
            logger.info(f"No target users for announcement {announcement_id}")
            result = DispatchResult()

        if not complete_announcement(db, announcement_id, len(recipients), result.sent, result.failed, now):
            logger.warning(f"Announcement {announcement_id} left 'sending' during dispatch, final counts not written")
        logger.info(f"Announcement {announcement_id}: {result.sent} sent, {result.failed} failed")
        return AnnouncementOutcome(total_recipients=len(recipients), result=result)
    except Exception:
        logger.error(f"Error processing announcement {announcement_id}, reverting to draft", exc_info=True)
        revert_announcement(db, announcement_id)
        raise

# 2) scheduled job
@track_job("announcements")
def send_scheduled_announcements(db: Session, gateway, now: datetime = None) -> dict:
    now = now or datetime.now(pytz.utc)
    logger.info("Starting scheduled announcements check")

    announcements = db.query(AdminAnnouncement).filter(
        AdminAnnouncement.status == "scheduled",
        AdminAnnouncement.scheduled_for.isnot(None),
        AdminAnnouncement.scheduled_for <= to_naive_utc(now)
    ).order_by(AdminAnnouncement.scheduled_for.asc()).all()

    if not announcements:
        logger.info("No pending announcements to send")
        return {
            "success": True, "processed": 0, "announcementsSent": 0,
            "sent": 0, "failed": 0, "skipped": 0, "reverted": 0,
            "message": "No pending announcements",
        }

    dispatcher = PushDispatcher(db, gateway)
    dispatcher.authenticate()

    totals = DispatchResult()
    announcements_sent = skipped = reverted = 0

    for announcement in announcements:
        try:
            outcome = process_announcement(db, dispatcher, announcement, now)
        except Exception:
            reverted += 1
            continue
        if outcome is None:
            skipped += 1
            continue
        announcements_sent += 1
        totals.add(outcome.result)

    logger.info(f"Announcement check complete: {announcements_sent} sent, {reverted} reverted to draft")

    return {
        "success": True,
        "processed": len(announcements),
        "announcementsSent": announcements_sent,
        "sent": totals.sent,
        "failed": totals.failed,
        "skipped": skipped,
        "reverted": reverted,
        "message": f"Sent {announcements_sent} announcement(s)",
    }

# 3) manual send from the admin panel
def send_announcement_now(db: Session, gateway, announcement_id: str, now: datetime = None) -> dict:
    now = now or datetime.now(pytz.utc)
    announcement = db.get(AdminAnnouncement, announcement_id)
    if not announcement:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Announcement not found")
    if announcement.status in ("sent", "sending"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Announcement already sent or in progress")

    dispatcher = PushDispatcher(db, gateway)
    dispatcher.authenticate()

    outcome = process_announcement(db, dispatcher, announcement, now, from_statuses=("draft", "scheduled", "failed"))
    if outcome is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Announcement already sent or in progress")

    return {
        "success": True,
        "totalRecipients": outcome.total_recipients,
        "sent": outcome.result.sent,
        "failed": outcome.result.failed,
        "message": f"Announcement sent to {outcome.result.sent} device(s)",
    }
