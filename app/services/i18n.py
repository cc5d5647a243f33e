# file: services/i18n.py

import logging
import os
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import User

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "pl")
FALLBACK_LANGUAGE = "pl"

TRANSLATIONS: dict[str, dict[str, dict[str, str]]] = {
    "transaction_upcoming": {
        "title": {
            "pl": "Nowa nadchodząca transakcja",
            "en": "New upcoming transaction",
        },
        "body": {
            "pl": 'Powtarzająca się transakcja "{description}" na kwotę {amount} została zaplanowana na dzień {date}.',
            "en": 'Recurring transaction "{description}" of {amount} has been scheduled for {date}.',
        },
    },
    "transaction_overdue": {
        "title": {
            "pl": "Zaległa transakcja",
            "en": "Overdue transaction",
        },
        "body": {
            "pl": 'Transakcja "{description}" na kwotę {amount} jest teraz zaległa.',
            "en": 'Transaction "{description}" of {amount} is now overdue.',
        },
    },
    "transaction_reminder_today": {
        "title": {
            "pl": "Transakcja do zapłaty dzisiaj",
            "en": "Transaction due today",
        },
        "body": {
            "pl": 'Transakcja "{description}" na kwotę {amount} jest do zapłaty dzisiaj.',
            "en": 'Transaction "{description}" of {amount} is due today.',
        },
    },
    "transaction_reminder_tomorrow": {
        "title": {
            "pl": "Transakcja do zapłaty jutro",
            "en": "Transaction due tomorrow",
        },
        "body": {
            "pl": 'Transakcja "{description}" na kwotę {amount} jest do zapłaty jutro.',
            "en": 'Transaction "{description}" of {amount} is due tomorrow.',
        },
    },
    "group_invitation": {
        "title": {
            "pl": "Nowe zaproszenie do grupy",
            "en": "New group invitation",
        },
        "body": {
            "pl": '{inviterName} zaprosił(a) Cię do dołączenia do grupy "{groupName}"',
            "en": '{inviterName} invited you to join the group "{groupName}"',
        },
    },
}


def _lookup(key: str, part: str, language: str) -> str:
    variants = TRANSLATIONS.get(key, {}).get(part, {})
    return variants.get(language) or variants.get(FALLBACK_LANGUAGE) or ""


def get_translated_title(key: str, language: str) -> str:
    return _lookup(key, "title", language)


def get_translated_message(key: str, language: str, params: Optional[Mapping[str, object]] = None) -> str:
    message = _lookup(key, "body", language)
    for name, value in (params or {}).items():
        message = message.replace(f"{{{name}}}", str(value))
    return message


def format_amount(amount: float, language: str) -> str:
    """PLN amount in the user's locale: ``1 234,56 zł`` for Polish, ``PLN 1,234.56`` otherwise."""
    if language == "pl":
        grouped = f"{amount:,.2f}".replace(",", " ").replace(".", ",")
        return f"{grouped} zł"
    return f"PLN {amount:,.2f}"


def format_date(value: datetime) -> str:
    return value.strftime("%d.%m.%Y")


async def get_user_language(session_factory: async_sessionmaker, user_id: Optional[str]) -> str:
    """User's preferred language; any lookup problem falls back to the default."""
    if not user_id:
        return DEFAULT_LANGUAGE
    try:
        async with session_factory() as session:
            user = await session.get(User, user_id)
        if user is not None and user.language:
            return user.language
        return DEFAULT_LANGUAGE
    except Exception as e:
        logger.warning(f"Error getting user language for {user_id}: {e}")
        return DEFAULT_LANGUAGE
