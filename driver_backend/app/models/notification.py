"""
Notification and push token database models.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from driver_backend.app.db.session import Base


class Notification(Base):
    """
    In-app notification history, one row per recipient.
    Device push delivery is driven from these rows outside this service.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    app_type = Column(String(30), nullable=False, index=True)

    # Content
    notification_type = Column(String(50), nullable=False, default="general")
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)

    read = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, type='{self.notification_type}')>"


class PushToken(Base):
    """Device push token, one per user/app/platform."""
    __tablename__ = "push_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "app_type", "platform", name="uq_push_tokens_user_app_platform"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    app_type = Column(String(30), nullable=False)
    platform = Column(String(20), nullable=False)
    push_token = Column(String(500), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
