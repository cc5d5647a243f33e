# file: models/transaction.py

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum


class TransactionStatus(str, Enum):
    DRAFT = "draft"
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    PAID = "paid"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionRecord(BaseModel):
    """Validated view of a transaction row as read by the scheduled jobs."""
    id: str
    amount: float
    description: str = ""
    date: datetime
    type: TransactionType
    category_id: Optional[str] = None
    user_id: str
    group_id: Optional[str] = None
    shopping_list_id: Optional[str] = None
    # Legacy rows may lack a status until migrated; recurring rules never read it
    status: Optional[TransactionStatus] = None
    is_recurring: bool = False
    recurring_date: Optional[int] = None
    recurring_rule_id: Optional[str] = None
    period_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('is_recurring', mode='before')
    def default_is_recurring(cls, v):
        return False if v is None else v

    @field_validator('description', mode='before')
    def default_description(cls, v):
        return "" if v is None else v

    @field_validator('recurring_date')
    def validate_recurring_date(cls, v):
        if v is not None and not 1 <= v <= 31:
            raise ValueError('recurring_date must be a day of month between 1 and 31')
        return v


class TransactionNotificationData(BaseModel):
    transactionId: str
    amount: float
    description: str
    date: str
    groupId: Optional[str] = None
    isDueToday: Optional[bool] = None

    def to_document(self) -> dict:
        """Payload stored on the notification record; unset optional keys are left out."""
        return self.model_dump(exclude_none=True)

    def to_push_data(self, notification_type: str) -> dict[str, str]:
        """Push data maps only carry strings."""
        data = {
            "type": notification_type,
            "transactionId": self.transactionId,
            "amount": str(self.amount),
            "description": self.description,
            "date": self.date,
        }
        if self.groupId:
            data["groupId"] = self.groupId
        if self.isDueToday is not None:
            data["isDueToday"] = str(self.isDueToday).lower()
        return data
