# silni/interface/schema/notification.py
from pydantic import BaseModel
from typing import Dict, Optional, Any

class PushNotificationRequest(BaseModel):
    userId: Optional[str] = None
    notificationType: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

class SendAnnouncementRequest(BaseModel):
    announcementId: Optional[str] = None

class ReminderRunOut(BaseModel):
    success: bool
    checked: int
    fired: int
    sent: int
    failed: int
    skipped: int
    message: str

class AnnouncementRunOut(BaseModel):
    success: bool
    processed: int
    announcementsSent: int
    sent: int
    failed: int
    skipped: int
    reverted: int
    message: str

class StreakRunOut(BaseModel):
    success: bool
    checked: int
    alertsSent: int
    sent: int
    failed: int
    skipped: int
    message: str

class PushNotificationOut(BaseModel):
    success: bool
    sent: int
    failed: int
    message: str

class SendAnnouncementOut(BaseModel):
    success: bool
    totalRecipients: int
    sent: int
    failed: int
    message: str
