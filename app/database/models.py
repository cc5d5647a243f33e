from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, ForeignKey, Float, UniqueConstraint, DateTime
from datetime import datetime as dt
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


# Base class for all models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    # Firebase uid doubles as the primary key
    id = Column(String(128), primary_key=True)
    email = Column(Text, nullable=True, index=True)
    role = Column(String(20), default="user", nullable=False)
    language = Column(String(10), nullable=True)
    # NULL means "never set", which counts as enabled
    notifications_enabled = Column(Boolean, default=True, nullable=True)
    created_at = Column(DateTime, default=dt.now, nullable=False)
    last_token_update = Column(DateTime, nullable=True)

    device_tokens = relationship("DeviceToken", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")


class DeviceToken(Base):
    __tablename__ = "device_tokens"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    token = Column(Text, nullable=False)
    device_name = Column(String(255), nullable=True)
    device_type = Column(String(20), default="unknown", nullable=False)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=dt.now, nullable=False)
    last_used = Column(DateTime, nullable=True)
    interaction_count = Column(Integer, default=1, nullable=False)

    user = relationship("User", back_populates="device_tokens")
    __table_args__ = (UniqueConstraint('user_id', 'token', name='_user_token_uc'),)


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(String(36), primary_key=True, default=_new_id)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(DateTime, nullable=False, index=True)
    type = Column(String(20), nullable=False)
    category_id = Column(String(128), nullable=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    group_id = Column(String(128), nullable=True)
    shopping_list_id = Column(String(128), nullable=True)
    # status and is_recurring stay nullable so legacy rows can be backfilled
    status = Column(String(20), nullable=True, index=True)
    is_recurring = Column(Boolean, nullable=True, index=True)
    recurring_date = Column(Integer, nullable=True)
    # Set on occurrences generated from a recurring rule
    recurring_rule_id = Column(String(36), ForeignKey("transactions.id"), nullable=True)
    period_key = Column(String(7), nullable=True)
    created_at = Column(DateTime, default=dt.now, nullable=False)
    updated_at = Column(DateTime, default=dt.now, nullable=False)

    __table_args__ = (UniqueConstraint('recurring_rule_id', 'period_key', name='_rule_period_uc'),)


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    type = Column(String(64), nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=dt.now, nullable=False)
    data = Column(JSON, nullable=True)
    language = Column(String(10), nullable=True)
    dedupe_key = Column(String(255), nullable=True, unique=True)

    user = relationship("User", back_populates="notifications")


class JobLease(Base):
    __tablename__ = "job_leases"
    name = Column(String(64), primary_key=True)
    holder = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
