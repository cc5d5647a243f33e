# file: models/device_token.py

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Literal, Optional
from datetime import datetime

DeviceType = Literal["mobile", "desktop", "tablet", "unknown"]


class TokenMetadata(BaseModel):
    device_name: Optional[str] = None
    device_type: DeviceType = "unknown"
    user_agent: Optional[str] = None


class TokenRegister(TokenMetadata):
    token: str

    @field_validator('token')
    def validate_token(cls, v):
        if not v.strip():
            raise ValueError('Token cannot be empty')
        return v.strip()


class DeviceTokenResponse(BaseModel):
    token: str
    device_name: Optional[str] = None
    device_type: str
    user_agent: Optional[str] = None
    created_at: datetime
    last_used: Optional[datetime] = None
    interaction_count: int

    model_config = ConfigDict(from_attributes=True)


class TokenCleanupResult(BaseModel):
    removed: list[str]
    remaining: int
