# file: models/notification.py

from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    SYSTEM_NOTIFICATION = "system_notification"
    GROUP_INVITATION = "group_invitation"
    TRANSACTION_UPCOMING = "transaction_upcoming"
    TRANSACTION_OVERDUE = "transaction_overdue"
    TRANSACTION_REMINDER = "transaction_reminder"


class NotificationBase(BaseModel):
    title: str
    body: str


class NotificationCreate(NotificationBase):
    user_id: str
    type: NotificationType
    data: Optional[Dict[str, Any]] = None
    language: Optional[str] = None
    dedupe_key: Optional[str] = None


class NotificationResponse(NotificationBase):
    id: str
    user_id: str
    type: str
    read: bool
    created_at: datetime
    data: Optional[Dict[str, Any]] = None
    language: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int


class ReadAllResult(BaseModel):
    updated: int


class GroupInvitation(BaseModel):
    id: Optional[str] = None
    group_id: str
    group_name: str
    invited_user_email: str


class GroupInvitationResult(BaseModel):
    created: bool
    notification_id: Optional[str] = None
