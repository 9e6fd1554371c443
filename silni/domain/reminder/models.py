# silni/domain/reminder/models.py
# relatives and their per-relative reminder rules
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, JSON, Text
from sqlalchemy.orm import relationship

from silni.infra.clock import utcnow
from silni.infra.db.database import Base

FREQUENCIES = ("daily", "weekly", "monthly", "friday", "custom")

class Relative(Base):
    __tablename__ = "relatives"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    full_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    schedules = relationship("ReminderSchedule", back_populates="relative")

class ReminderSchedule(Base):
    __tablename__ = "reminder_schedules"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    relative_id = Column(String(36), ForeignKey("relatives.id"), index=True)

    frequency = Column(Enum(*FREQUENCIES, name="reminder_frequency_enum"), nullable=False)
    days_of_week = Column(JSON, nullable=True)       # weekly only, 1=Mon .. 7=Sun
    interval_days = Column(Integer, nullable=True)   # custom only
    day_of_month = Column(Integer, nullable=True)    # monthly override, falls back to created_at
    notification_hour = Column(Integer, nullable=False, index=True)  # 0-23, reference timezone

    custom_title = Column(String(255), nullable=True)
    custom_message = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=utcnow)  # anchor
    last_sent_at = Column(DateTime, nullable=True)

    relative = relationship("Relative", back_populates="schedules")
