# silni/domain/announcement/models.py
# admin authored broadcast notifications
from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, Text

from silni.infra.clock import utcnow
from silni.infra.db.database import Base

TARGET_RULES = ("all", "active", "premium", "custom")
ANNOUNCEMENT_STATUSES = ("draft", "scheduled", "sending", "sent", "failed")

class AdminAnnouncement(Base):
    __tablename__ = "admin_announcements"

    id = Column(String(36), primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    target_users = Column(Enum(*TARGET_RULES, name="announcement_target_enum"), default="all", nullable=False)
    custom_user_ids = Column(JSON, nullable=True)
    notification_data = Column(JSON, nullable=True)

    scheduled_for = Column(DateTime, nullable=True, index=True)
    status = Column(Enum(*ANNOUNCEMENT_STATUSES, name="announcement_status_enum"), default="draft", index=True)
    sent_at = Column(DateTime, nullable=True)

    total_recipients = Column(Integer, default=0)
    successful_sends = Column(Integer, default=0)
    failed_sends = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)
