# file: controllers/device_tokens.py

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import async_sessionmaker
from typing import List

from app.database.connection import get_session_factory
from app.database.models import User
from app.models.device_token import DeviceTokenResponse, TokenCleanupResult, TokenRegister
from app.services.firebase_auth import get_current_user
from app.services.token_registry import DeviceTokenRegistry, MAX_FCM_TOKENS

router = APIRouter()


def get_token_registry(session_factory: async_sessionmaker = Depends(get_session_factory)) -> DeviceTokenRegistry:
    return DeviceTokenRegistry(session_factory)


@router.post("/tokens", response_model=DeviceTokenResponse, status_code=status.HTTP_201_CREATED)
async def register_token(
        payload: TokenRegister,
        current_user: User = Depends(get_current_user),
        registry: DeviceTokenRegistry = Depends(get_token_registry),
):
    """
    Registers a push token for the current device, or refreshes it when it is
    already known.
    """
    return await registry.register(current_user.id, payload.token, payload)


@router.get("/tokens", response_model=List[DeviceTokenResponse])
async def list_tokens(
        current_user: User = Depends(get_current_user),
        registry: DeviceTokenRegistry = Depends(get_token_registry),
):
    return await registry.list_tokens(current_user.id)


@router.delete("/tokens/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_token(
        token: str,
        current_user: User = Depends(get_current_user),
        registry: DeviceTokenRegistry = Depends(get_token_registry),
):
    if not await registry.remove(current_user.id, token):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return


@router.post("/tokens/cleanup", response_model=TokenCleanupResult)
async def cleanup_tokens(
        max_tokens: int = Query(MAX_FCM_TOKENS, ge=0),
        current_user: User = Depends(get_current_user),
        registry: DeviceTokenRegistry = Depends(get_token_registry),
):
    removed = await registry.cleanup(current_user.id, max_tokens)
    remaining = await registry.list_tokens(current_user.id)
    return TokenCleanupResult(removed=removed, remaining=len(remaining))
