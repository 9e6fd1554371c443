# silni/domain/notification/models.py
# delivery audit trail (one row per recipient per dispatch)
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Text, JSON
from sqlalchemy.orm import relationship

from silni.infra.clock import utcnow
from silni.infra.db.database import Base

class NotificationHistory(Base):
    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    notification_type = Column(String(50), nullable=False)  # reminder / streak / announcement / ...
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    sent_at = Column(DateTime, default=utcnow)
    status = Column(Enum("sent", "failed", name="delivery_status_enum"), nullable=False)

    user = relationship("User", back_populates="notifications")
