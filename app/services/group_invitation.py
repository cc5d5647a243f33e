# file: services/group_invitation.py

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import User
from app.models.notification import GroupInvitation, NotificationCreate, NotificationType
from app.models.push import PushNotification
from app.services.i18n import get_translated_message, get_translated_title, get_user_language
from app.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

INVITATIONS_LINK = "/settings?tab=groups&subtab=invitations"


async def send_group_invitation_notification(
        session_factory: async_sessionmaker,
        dispatcher: NotificationDispatcher,
        invitation: GroupInvitation,
        inviter_name: str,
) -> Optional[str]:
    """
    Notifies the invited user about a group invitation.
    Returns the notification id, or None when there is nobody to notify.
    """
    logger.info(f"Sending group invitation notification for invitation: {invitation.id}")

    async with session_factory() as session:
        stmt = select(User).where(User.email == invitation.invited_user_email).limit(1)
        user = (await session.execute(stmt)).scalars().first()

    if user is None:
        logger.info(f"No user found with email: {invitation.invited_user_email}")
        return None
    if user.notifications_enabled is False:
        logger.info(f"Notifications are disabled for user: {invitation.invited_user_email}")
        return None

    language = await get_user_language(session_factory, user.id)
    notification_type = NotificationType.GROUP_INVITATION
    data = {
        "groupId": invitation.group_id,
        "groupName": invitation.group_name,
        "invitationId": invitation.id or "",
        "link": INVITATIONS_LINK,
    }
    notification = NotificationCreate(
        user_id=user.id,
        title=get_translated_title(notification_type.value, language),
        body=get_translated_message(notification_type.value, language, {
            "inviterName": inviter_name,
            "groupName": invitation.group_name,
        }),
        type=notification_type,
        data=data,
        language=language,
    )
    notification_id = await dispatcher.create(notification)

    await dispatcher.dispatch_push(
        user.id,
        PushNotification(title=notification.title, body=notification.body),
        {"type": notification_type.value, **data},
    )
    return notification_id
