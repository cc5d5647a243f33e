# file: controllers/notification.py

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import func, select, update
from typing import List

from app.database.connection import get_db, get_session_factory
from app.database.models import Notification as NotificationModel, User
from app.models.notification import (GroupInvitation, GroupInvitationResult, NotificationResponse,
                                     ReadAllResult, UnreadCount)
from app.services.firebase_auth import get_current_user
from app.services.group_invitation import send_group_invitation_notification
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.push_gateway import PushGateway, get_push_gateway

router = APIRouter()


@router.get("/", response_model=List[NotificationResponse])
async def get_user_notifications(
        unread_only: bool = Query(False),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """
    Lists the current user's notifications, newest first.
    """
    stmt = select(NotificationModel).where(NotificationModel.user_id == current_user.id)
    if unread_only:
        stmt = stmt.where(NotificationModel.read.is_(False))
    result = await db.execute(stmt.order_by(NotificationModel.created_at.desc()))
    return result.scalars().all()


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    stmt = select(func.count()).select_from(NotificationModel).where(
        NotificationModel.user_id == current_user.id,
        NotificationModel.read.is_(False),
    )
    return UnreadCount(count=(await db.execute(stmt)).scalar_one())


@router.put("/read-all", response_model=ReadAllResult)
async def mark_all_notifications_as_read(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        update(NotificationModel)
        .where(NotificationModel.user_id == current_user.id, NotificationModel.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return ReadAllResult(updated=result.rowcount or 0)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
        notification_id: str,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    # read is the only field a user may change
    notification = await db.get(NotificationModel, notification_id)
    if notification is None or notification.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    notification.read = True
    await db.commit()
    return notification


@router.post("/group-invitations", response_model=GroupInvitationResult, status_code=status.HTTP_201_CREATED)
async def notify_group_invitation(
        invitation: GroupInvitation,
        current_user: User = Depends(get_current_user),
        session_factory: async_sessionmaker = Depends(get_session_factory),
        push_gateway: PushGateway = Depends(get_push_gateway),
):
    """
    Tells the invited user about a group invitation sent by the current user.
    Nothing is created when the invitee has no account or has muted notifications.
    """
    dispatcher = NotificationDispatcher(session_factory, push_gateway)
    notification_id = await send_group_invitation_notification(
        session_factory, dispatcher, invitation, inviter_name=current_user.email or current_user.id
    )
    return GroupInvitationResult(created=notification_id is not None, notification_id=notification_id)
