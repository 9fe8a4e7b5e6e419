from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from docflow.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    notification_type = Column(Text, nullable=False, default="info")
    document_kind = Column(Text)
    document_id = Column(Integer)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="notifications")


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(Text, nullable=False, unique=True)
    subscription = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="push_subscriptions")
