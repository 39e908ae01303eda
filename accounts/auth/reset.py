import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlencode

from pydantic import BaseModel

from accounts.auth.password import hash_password, validate_strength
from accounts.shared.config import settings
from accounts.shared.db import SessionFactory, session_scope, utcnow
from accounts.shared.errors import OAuthOnlyAccount, TokenError, UserNotFound, WeakPassword
from accounts.shared.mailer import ResetLinkSender
from accounts.users import store
from accounts.users.models import User

log = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = "If an account exists with this email, you will receive a password reset link."


class IssuedToken(BaseModel):
    token: str          # plaintext; handed out once, never stored
    expires: datetime


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class ResetTokenService:
    """
    Single-use, expiring password reset tokens.

    Only the SHA-256 of the secret is persisted. Issuing a new token
    overwrites the previous one, so a user has at most one live token.
    """

    def __init__(
        self,
        sessions: SessionFactory,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta | None = None,
    ):
        self._sessions = sessions
        self._now = clock
        self._ttl = ttl or timedelta(minutes=settings.RESET_TOKEN_TTL_MIN)

    # ----- primitives -----

    def issue(self, email: str) -> IssuedToken | None:
        """None for an unknown email. Callers must not surface the difference."""
        now = self._now()
        with session_scope(self._sessions, "reset.issue") as db:
            user = store.find_by_email(db, email)
            if user is None:
                return None
            token = secrets.token_hex(32)
            expires = now + self._ttl
            store.update_user(
                db, user.id, now,
                reset_token=hash_token(token),
                reset_token_expires=expires,
                reset_requested_at=now,
            )
        log.info("reset token issued for user %s", user.id)
        return IssuedToken(token=token, expires=expires)

    def validate(self, token: str) -> User:
        if not token:
            raise TokenError()
        with session_scope(self._sessions, "reset.validate") as db:
            user = store.find_by_reset_hash(db, hash_token(token), self._now())
        if user is None:
            raise TokenError()
        return user

    def consume(self, user_id: int, new_hash: str, token_hash: str | None = None) -> None:
        """
        Set the new password hash and clear the token in one UPDATE.
        With token_hash given, the update only lands while that token is still stored.
        """
        now = self._now()
        conditions = [User.reset_token == token_hash, User.reset_token_expires > now] if token_hash else []
        with session_scope(self._sessions, "reset.consume") as db:
            touched = store.update_user(
                db, user_id, now, *conditions,
                password_hash=new_hash,
                reset_token=None,
                reset_token_expires=None,
                reset_requested_at=None,
            )
        if not touched:
            raise TokenError() if token_hash else UserNotFound()
        log.info("password reset completed for user %s", user_id)

    def clear(self, user_id: int) -> None:
        with session_scope(self._sessions, "reset.clear") as db:
            touched = store.update_user(
                db, user_id, self._now(),
                reset_token=None,
                reset_token_expires=None,
                reset_requested_at=None,
            )
        if not touched:
            raise UserNotFound()
        log.info("reset token cleared for user %s", user_id)

    # ----- flows -----

    def request_reset(self, email: str, send: ResetLinkSender) -> str:
        """Same answer for known and unknown emails."""
        issued = self.issue(email)
        if issued is None:
            log.info("reset requested for unknown email")
            return GENERIC_RESET_MESSAGE
        query = urlencode({"token": issued.token})
        send(email, f"{settings.PUBLIC_BASE_URL.rstrip('/')}/auth/reset-password?{query}")
        return GENERIC_RESET_MESSAGE

    def complete_reset(self, token: str, new_password: str) -> User:
        user = self.validate(token)
        if user.is_oauth_only:
            raise OAuthOnlyAccount()
        strength = validate_strength(new_password)
        if not strength.valid:
            raise WeakPassword(strength.reason)
        self.consume(user.id, hash_password(new_password), token_hash=hash_token(token))
        return user
