# file: models/push.py

from pydantic import BaseModel
from typing import Dict, List, Optional


class PushNotification(BaseModel):
    title: str
    body: str


class PushMessage(BaseModel):
    notification: PushNotification
    data: Dict[str, str] = {}
    tokens: List[str]


class PushResponse(BaseModel):
    success: bool
    error_code: Optional[str] = None


class BatchPushResponse(BaseModel):
    success_count: int
    failure_count: int
    responses: List[PushResponse]
