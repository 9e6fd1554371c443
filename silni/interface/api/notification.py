# silni/interface/api/notification.py
# scheduler-triggered jobs and the ad-hoc push / manual announcement endpoints
import logging
from datetime import datetime

import pytz
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from silni.application.announcement.announcement import send_announcement_now, send_scheduled_announcements
from silni.application.auth.auth import require_service_role
from silni.application.notification.notification import PushDispatcher, PushPayload
from silni.application.reminder.reminder import send_scheduled_reminders
from silni.application.streak.streak import check_streak_alerts
from silni.infra.db.database import get_db
from silni.infra.firebase.fcm import PushGateway
from silni.interface.schema.notification import (
    AnnouncementRunOut, PushNotificationOut, PushNotificationRequest, ReminderRunOut,
    SendAnnouncementOut, SendAnnouncementRequest, StreakRunOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_service_role)])

_gateway = None

def get_push_gateway() -> PushGateway:
    global _gateway
    if _gateway is None:
        _gateway = PushGateway.from_settings()
    return _gateway

# the gateway is built lazily inside the request so credential errors surface as {"error": ...}
def get_gateway_factory():
    return get_push_gateway

def get_now() -> datetime:
    return datetime.now(pytz.utc)

def error_response(e: Exception) -> JSONResponse:
    logger.error(f"Unexpected error: {e}", exc_info=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})

# 1) hourly reminders
@router.post("/send-scheduled-reminders", response_model=ReminderRunOut)
def send_scheduled_reminders_route(db: Session = Depends(get_db), gateway_factory=Depends(get_gateway_factory), now: datetime = Depends(get_now)):
    try:
        return send_scheduled_reminders(db, gateway_factory(), now)
    except Exception as e:
        return error_response(e)

# 2) announcements (every 15 minutes)
@router.post("/send-scheduled-announcements", response_model=AnnouncementRunOut)
def send_scheduled_announcements_route(db: Session = Depends(get_db), gateway_factory=Depends(get_gateway_factory), now: datetime = Depends(get_now)):
    try:
        return send_scheduled_announcements(db, gateway_factory(), now)
    except Exception as e:
        return error_response(e)

# 3) daily streak check
@router.post("/check-streak-alerts", response_model=StreakRunOut)
def check_streak_alerts_route(db: Session = Depends(get_db), gateway_factory=Depends(get_gateway_factory), now: datetime = Depends(get_now)):
    try:
        return check_streak_alerts(db, gateway_factory(), now)
    except Exception as e:
        return error_response(e)

# 4) one notification to one user's devices
@router.post("/send-push-notification", response_model=PushNotificationOut)
def send_push_notification_route(body: PushNotificationRequest, db: Session = Depends(get_db), gateway_factory=Depends(get_gateway_factory)):
    if not (body.userId and body.notificationType and body.title and body.body):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Missing required fields"})

    try:
        dispatcher = PushDispatcher(db, gateway_factory(), send_delay_ms=0)
        payload = PushPayload(
            notification_type=body.notificationType,
            title=body.title,
            body=body.body,
            data=body.data or {},
        )
        result = dispatcher.dispatch(body.userId, payload)
    except Exception as e:
        return error_response(e)

    return {
        "success": True,
        "sent": result.sent,
        "failed": result.failed,
        "message": f"Notification sent to {result.sent} device(s)",
    }

# 5) admin "send now"
@router.post("/send-announcement", response_model=SendAnnouncementOut)
def send_announcement_route(body: SendAnnouncementRequest, db: Session = Depends(get_db), gateway_factory=Depends(get_gateway_factory), now: datetime = Depends(get_now)):
    if not body.announcementId:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Missing announcementId"})

    try:
        return send_announcement_now(db, gateway_factory(), body.announcementId, now)
    except HTTPException:
        raise
    except Exception as e:
        return error_response(e)
