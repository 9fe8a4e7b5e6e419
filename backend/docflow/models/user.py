from sqlalchemy import Column, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from docflow.database import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("role", "email", name="uq_users_role_email"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    full_name = Column(Text, nullable=False)
    password_hash = Column(Text, nullable=False)
    company_name = Column(Text)
    address = Column(Text)
    phone = Column(Text)
    position = Column(Text)
    signature_path = Column(Text)
    notification_preferences = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    push_subscriptions = relationship("PushSubscription", back_populates="user", cascade="all, delete-orphan")
