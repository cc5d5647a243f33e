import firebase_admin
from firebase_admin import credentials, auth
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from dotenv import load_dotenv
import logging
import os

from app.database.models import User
from app.database.connection import get_db

load_dotenv()

logger = logging.getLogger(__name__)

FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", "serviceAccountKey.json")


def init_firebase_app() -> None:
    """Initializes the Firebase Admin SDK once per process."""
    if firebase_admin._apps:
        return
    try:
        firebase_admin.initialize_app(credentials.Certificate(FIREBASE_CREDENTIALS_PATH))
        logger.info("Firebase Admin SDK initialized successfully.")
    except Exception as e:
        logger.error(f"FATAL: Error initializing Firebase Admin SDK: {e}")
        raise


# Bearer token from the Authorization header; a missing header is handled below
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_firebase_token(token: str) -> dict:
    """Decoded claims of a Firebase ID token, or a 401."""
    try:
        return auth.verify_id_token(token)
    except auth.ExpiredIdTokenError:
        raise _unauthorized("Token has expired")
    except Exception:
        raise _unauthorized("Could not validate credentials")


async def get_current_user(
        token: str = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db)
) -> User:
    """
    The user behind the request's Firebase ID token. Users that authenticate
    for the first time get a row with notifications enabled.
    """
    if not token:
        raise _unauthorized("Could not validate credentials")

    claims = verify_firebase_token(token)
    user = await db.get(User, claims['uid'])
    if user is not None:
        return user

    user = User(id=claims['uid'], email=claims.get('email'), notifications_enabled=True)
    db.add(user)
    await db.commit()
    logger.info(f"Provisioned user profile for {user.id}")
    return user
