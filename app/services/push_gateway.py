# file: services/push_gateway.py

import asyncio
import logging
import os
from typing import Optional

import httpx
from dotenv import load_dotenv
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.models.push import BatchPushResponse, PushMessage, PushResponse
from app.services.firebase_auth import init_firebase_app

load_dotenv()

logger = logging.getLogger(__name__)

PUSH_PROVIDER = os.getenv("PUSH_PROVIDER", "fcm")
EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")

TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
INVALID_ARGUMENT = "messaging/invalid-argument"
INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"

# Failures meaning the token itself is dead; anything else is worth retrying later
PERMANENT_ERROR_CODES = frozenset({TOKEN_NOT_REGISTERED, INVALID_ARGUMENT, INVALID_REGISTRATION_TOKEN})


def is_permanent_error(error_code: Optional[str]) -> bool:
    return error_code in PERMANENT_ERROR_CODES


class PushGateway:
    """Sends one notification to many device tokens and reports a result per token."""

    async def send_multicast(self, message: PushMessage) -> BatchPushResponse:
        raise NotImplementedError


def fcm_error_code(exc: Optional[Exception]) -> Optional[str]:
    if exc is None:
        return None
    if isinstance(exc, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        return INVALID_ARGUMENT
    if isinstance(exc, messaging.SenderIdMismatchError):
        return "messaging/mismatched-credential"
    if isinstance(exc, messaging.QuotaExceededError):
        return "messaging/quota-exceeded"
    if isinstance(exc, messaging.ThirdPartyAuthError):
        return "messaging/third-party-auth-error"
    if isinstance(exc, firebase_exceptions.UnavailableError):
        return "messaging/server-unavailable"
    code = getattr(exc, "code", None)
    if code:
        return "messaging/" + str(code).lower().replace("_", "-")
    return "messaging/unknown-error"


class FirebasePushGateway(PushGateway):
    async def send_multicast(self, message: PushMessage) -> BatchPushResponse:
        init_firebase_app()
        multicast = messaging.MulticastMessage(
            tokens=message.tokens,
            notification=messaging.Notification(
                title=message.notification.title,
                body=message.notification.body,
            ),
            data=message.data,
        )
        # The Admin SDK is blocking; keep it off the event loop
        response = await asyncio.to_thread(messaging.send_each_for_multicast, multicast)
        return BatchPushResponse(
            success_count=response.success_count,
            failure_count=response.failure_count,
            responses=[
                PushResponse(success=r.success, error_code=fcm_error_code(r.exception))
                for r in response.responses
            ],
        )


EXPO_ERROR_CODES = {
    "DeviceNotRegistered": TOKEN_NOT_REGISTERED,
    "InvalidCredentials": "messaging/third-party-auth-error",
    "MessageTooBig": "messaging/payload-size-limit-exceeded",
    "MessageRateExceeded": "messaging/message-rate-exceeded",
}


class ExpoPushGateway(PushGateway):
    """Sends through Expo's Push API; tickets come back in token order."""

    def __init__(self, url: str = EXPO_PUSH_URL, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def send_multicast(self, message: PushMessage) -> BatchPushResponse:
        headers = {
            'Accept': 'application/json',
            'Accept-Encoding': 'gzip, deflate',
            'Content-Type': 'application/json',
        }
        payload = [
            {
                'to': token,
                'sound': 'default',
                'title': message.notification.title,
                'body': message.notification.body,
                'data': message.data,
                'channelId': 'default',  # Required for custom Android notification channels
            }
            for token in message.tokens
        ]

        async with httpx.AsyncClient() as client:
            response = await client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            tickets = response.json().get("data", [])

        responses = []
        for idx in range(len(message.tokens)):
            ticket = tickets[idx] if idx < len(tickets) else {}
            if ticket.get("status") == "ok":
                responses.append(PushResponse(success=True))
                continue
            expo_error = (ticket.get("details") or {}).get("error")
            responses.append(PushResponse(
                success=False,
                error_code=EXPO_ERROR_CODES.get(expo_error, "messaging/unknown-error"),
            ))

        success_count = sum(1 for r in responses if r.success)
        return BatchPushResponse(
            success_count=success_count,
            failure_count=len(responses) - success_count,
            responses=responses,
        )


def get_push_gateway() -> PushGateway:
    if PUSH_PROVIDER == "expo":
        return ExpoPushGateway()
    return FirebasePushGateway()
