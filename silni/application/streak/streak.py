# silni/application/streak/streak.py
# daily job: warn users whose streak is alive but who have not interacted today
import logging
from datetime import datetime

import pytz
from sqlalchemy.orm import Session

from silni.application.notification.notification import DispatchResult, PushDispatcher, PushPayload
from silni.application.recipient.resolver import find_streak_candidates, has_activity_today
from silni.infra.config import settings
from silni.infra.firebase.fcm import PushAuthError
from silni.infra.monitoring import track_job

logger = logging.getLogger(__name__)

STREAK_TITLE = "🔥 حافظ على شعلتك!"

def build_streak_payload(streak: int) -> PushPayload:
    return PushPayload(
        notification_type="streak",
        title=STREAK_TITLE,
        body=f"لم تتواصل مع أحد اليوم، حافظ على شعلة {streak} يوم",
        data={"streak_count": streak},
    )

@track_job("streak_alerts")
def check_streak_alerts(db: Session, gateway, now: datetime = None) -> dict:
    now = now or datetime.now(pytz.utc)
    logger.info("Starting streak alert check")

    candidates = [(user.id, user.current_streak) for user in find_streak_candidates(db)]
    if not candidates:
        logger.info("No users with an active streak")
        return {
            "success": True, "checked": 0, "alertsSent": 0,
            "sent": 0, "failed": 0, "skipped": 0,
            "message": "No users with active streaks",
        }

    # each candidate needs its own existence check; one failure never affects the others
    targets = []
    skipped = 0
    for user_id, streak in candidates:
        try:
            if has_activity_today(db, user_id, now):
                skipped += 1
                continue
        except Exception as e:
            db.rollback()
            logger.error(f"Error checking activity for user {user_id}: {e}", exc_info=True)
            skipped += 1
            continue
        targets.append((user_id, streak))

    totals = DispatchResult()
    alerts_sent = 0

    if targets:
        dispatcher = PushDispatcher(db, gateway, send_delay_ms=settings.STREAK_SEND_DELAY_MS)
        dispatcher.authenticate()

        for user_id, streak in targets:
            try:
                result = dispatcher.dispatch(user_id, build_streak_payload(streak))
            except PushAuthError:
                raise
            except Exception as e:
                db.rollback()
                logger.error(f"Error sending streak alert to user {user_id}: {e}", exc_info=True)
                continue
            totals.add(result)
            if result.sent > 0:
                alerts_sent += 1

    logger.info(f"Streak check complete: {len(candidates)} checked, {alerts_sent} alerts sent, {skipped} skipped")

    return {
        "success": True,
        "checked": len(candidates),
        "alertsSent": alerts_sent,
        "sent": totals.sent,
        "failed": totals.failed,
        "skipped": skipped,
        "message": f"Checked {len(candidates)} users with active streaks, sent {alerts_sent} alerts",
    }
