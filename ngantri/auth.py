"""
Merchant and admin authentication
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import bcrypt
from fastapi import Cookie, Depends
from sqlalchemy.orm import Session

from . import errors
from .config import settings
from .database import get_db
from .models import Merchant, utcnow

logger = logging.getLogger(__name__)

MERCHANT_SESSION_COOKIE = "merchant_session"
ADMIN_SESSION_COOKIE = "admin_session"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # Malformed stored hash
        return False


# Merchant session

def get_current_merchant(
    merchant_session: Optional[str] = Cookie(None),
    db: Session = Depends(get_db),
) -> Merchant:
    """Dependency resolving the logged-in merchant from its session cookie"""
    if not merchant_session:
        raise errors.unauthorized()

    merchant = (
        db.query(Merchant)
        .filter(Merchant.id == merchant_session, Merchant.deleted_at.is_(None))
        .first()
    )
    if not merchant:
        raise errors.unauthorized()
    return merchant


# Admin session

@dataclass
class AdminSession:
    username: str
    login_time: datetime

    @property
    def expires_at(self) -> datetime:
        return self.login_time + timedelta(hours=settings.admin_session_hours)


class AdminSessionStore:
    """In-process admin sessions keyed by an opaque token"""

    def __init__(self):
        self.sessions: Dict[str, AdminSession] = {}

    def validate_credentials(self, username: str, password: str) -> bool:
        return (
            secrets.compare_digest(username, settings.admin_username)
            and secrets.compare_digest(password, settings.admin_password)
        )

    def create(self, username: str) -> str:
        token = secrets.token_urlsafe(32)
        self.sessions[token] = AdminSession(username=username, login_time=utcnow())
        logger.info("Admin %s logged in", username)
        return token

    def get(self, token: Optional[str]) -> Optional[AdminSession]:
        if not token:
            return None
        session = self.sessions.get(token)
        if session is None:
            return None
        if utcnow() > session.expires_at:
            del self.sessions[token]
            return None
        return session

    def clear(self, token: Optional[str]):
        if token:
            self.sessions.pop(token, None)


admin_sessions = AdminSessionStore()


def require_admin(admin_session: Optional[str] = Cookie(None)) -> AdminSession:
    session = admin_sessions.get(admin_session)
    if not session:
        raise errors.unauthorized("Unauthorized")
    return session
