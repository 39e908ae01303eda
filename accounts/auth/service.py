import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError

from accounts.auth.password import (
    burn_verify, hash_password, validate_email, validate_strength, verify_password,
)
from accounts.shared.db import SessionFactory, session_scope, utcnow
from accounts.shared.errors import (
    CreationConflict, EmailAlreadyRegistered, InvalidCredentials, InvalidEmail,
    LinkageConflict, OAuthOnlyAccount, UserNotFound, WeakPassword,
)
from accounts.users import store
from accounts.users.models import User

log = logging.getLogger(__name__)


class IdentityResolver:
    """
    Find-or-create users by email and verify sign-in attempts.

    Email is the only linking key: an external-provider sign-in for an email
    that already has a row reuses that row as-is, whichever provider created it.
    """

    def __init__(self, sessions: SessionFactory, clock: Callable[[], datetime] = utcnow):
        self._sessions = sessions
        self._now = clock

    # ----- lookups -----

    def get_user(self, user_id: int) -> User | None:
        with session_scope(self._sessions, "get_user") as db:
            return store.find_by_id(db, user_id)

    def get_user_by_oauth(self, provider: str, provider_account_id: str) -> User | None:
        with session_scope(self._sessions, "get_user_by_oauth") as db:
            return store.find_by_oauth(db, provider, provider_account_id)

    # ----- credentials -----

    def register(self, email: str, password: str, name: str | None = None) -> User:
        if not validate_email(email):
            raise InvalidEmail()
        strength = validate_strength(password)
        if not strength.valid:
            raise WeakPassword(strength.reason)

        with session_scope(self._sessions, "register.lookup") as db:
            if store.find_by_email(db, email):
                raise EmailAlreadyRegistered()

        # hash outside any open session; bcrypt is the slow part
        password_hash = hash_password(password)
        now = self._now()
        with session_scope(self._sessions, "register.insert") as db:
            try:
                user = store.insert_user(
                    db, now,
                    email=email,
                    password_hash=password_hash,
                    name=name or None,
                    email_verified=False,
                    subscription_status="trial",
                )
            except IntegrityError:
                db.rollback()
                log.warning("registration lost a creation race")
                raise CreationConflict()
        log.info("registered user %s with credentials", user.id)
        return user

    def authenticate(self, email: str, password: str) -> User:
        with session_scope(self._sessions, "authenticate.lookup") as db:
            user = store.find_by_email(db, email)

        if user is None:
            burn_verify(password)
            raise InvalidCredentials()
        if user.is_oauth_only:
            raise OAuthOnlyAccount()
        if not verify_password(password, user.password_hash):
            log.info("password sign-in rejected for user %s", user.id)
            raise InvalidCredentials()

        self._stamp_login(user)
        log.info("password sign-in for user %s", user.id)
        return user

    # ----- external providers -----

    def resolve_oauth(
        self,
        email: str,
        provider: str,
        provider_account_id: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        now = self._now()
        with session_scope(self._sessions, "resolve_oauth") as db:
            user = store.find_by_email(db, email)
            if user is not None:
                store.update_user(db, user.id, now, last_login_at=now)
                log.info("%s sign-in for existing user %s", provider, user.id)
                return user

            try:
                user = store.insert_user(
                    db, now,
                    email=email,
                    oauth_provider=provider,
                    oauth_id=provider_account_id,
                    name=name or None,
                    avatar_url=avatar_url or None,
                    email_verified=True,
                    subscription_status="trial",
                    last_login_at=now,
                )
            except IntegrityError:
                db.rollback()
                if store.find_by_email(db, email) is None and store.find_by_oauth(db, provider, provider_account_id):
                    log.warning("%s account already linked to another email", provider)
                    raise LinkageConflict()
                log.warning("%s sign-in lost a creation race", provider)
                raise CreationConflict()

        log.info("created user %s from %s sign-in", user.id, provider)
        return user

    # ----- misc writes -----

    def verify_email(self, user_id: int) -> None:
        now = self._now()
        with session_scope(self._sessions, "verify_email") as db:
            if not store.update_user(db, user_id, now, email_verified=True):
                raise UserNotFound()

    def _stamp_login(self, user: User) -> None:
        now = self._now()
        with session_scope(self._sessions, "stamp_login") as db:
            store.update_user(db, user.id, now, last_login_at=now)
        user.last_login_at = now
