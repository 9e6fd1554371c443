# silni/domain/user/models.py
# recipient directory, device tokens and activity records
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from silni.infra.clock import utcnow
from silni.infra.db.database import Base
from silni.domain.notification.models import NotificationHistory

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    full_name = Column(String(255))
    email = Column(String(255), unique=True, index=True)
    last_sign_in_at = Column(DateTime, nullable=True, index=True)
    is_premium = Column(Boolean, default=False, index=True)
    current_streak = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    tokens = relationship("NotificationToken", back_populates="user")
    interactions = relationship("Interaction", back_populates="user")
    notifications = relationship(NotificationHistory, back_populates="user")

class NotificationToken(Base):
    __tablename__ = "notification_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    fcm_token = Column(String(512), nullable=False)
    platform = Column(Enum("ios", "android", name="platform_enum"), nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="tokens")

class Interaction(Base):
    __tablename__ = "interactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    relative_id = Column(String(36), ForeignKey("relatives.id"), nullable=True)
    type = Column(String(50), default="call")
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User", back_populates="interactions")
