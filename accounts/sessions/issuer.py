import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict

from jose import JWTError, jwt  # python-jose[cryptography]

from accounts.auth.service import IdentityResolver
from accounts.billing.service import EntitlementEngine
from accounts.sessions.claims import CLAIMS_VERSION, SessionClaims, SignInResult
from accounts.shared.config import settings
from accounts.shared.db import SessionFactory, utcnow
from accounts.shared.errors import AccountsError, SessionError, StorageError
from accounts.users.models import TIER_FREE, User

log = logging.getLogger(__name__)


class SessionIssuer:
    """
    Mints sessions whose token carries only the subject (user id), and
    rebuilds entitlement claims from storage on every read so trial expiry
    and cancellations show up without re-authentication.
    """

    def __init__(
        self,
        sessions: SessionFactory,
        clock: Callable[[], datetime] = utcnow,
        resolver: IdentityResolver | None = None,
        engine: EntitlementEngine | None = None,
    ):
        self._now = clock
        self.resolver = resolver or IdentityResolver(sessions, clock)
        self.engine = engine or EntitlementEngine(sessions, clock)

    # ----- token -----

    def mint(self, user: User) -> str:
        now = self._now()
        exp = now + timedelta(days=settings.SESSION_MAX_AGE_DAYS)
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "ver": CLAIMS_VERSION,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        if settings.JWT_ISS:
            payload["iss"] = settings.JWT_ISS
        if settings.JWT_AUD:
            payload["aud"] = settings.JWT_AUD
        return jwt.encode(payload, settings.JWT_KEY, algorithm=settings.JWT_ALG)

    def subject_of(self, token: str) -> int:
        try:
            payload = jwt.decode(
                token,
                settings.JWT_KEY,
                algorithms=[settings.JWT_ALG],
                audience=settings.JWT_AUD,
                issuer=settings.JWT_ISS,
                options={
                    "verify_aud": bool(settings.JWT_AUD),
                    "verify_iss": bool(settings.JWT_ISS),
                },
            )
        except JWTError:
            raise SessionError()
        sub = payload.get("sub")
        if not sub or not str(sub).isdigit():
            raise SessionError()
        return int(sub)

    # ----- per-read claims -----

    def read(self, token: str) -> SessionClaims:
        user_id = self.subject_of(token)
        try:
            found = self.engine.entitlement_for(user_id)
        except StorageError:
            # fail closed: keep the session, drop access
            log.error("entitlement unavailable for user %s; reporting not entitled", user_id)
            return SessionClaims(subject=str(user_id), entitled=False, tier=TIER_FREE)
        if found is None:
            raise SessionError()
        user, ent = found
        return SessionClaims(
            subject=str(user.id),
            entitled=ent.entitled,
            tier=ent.tier,
            subscription_id=user.stripe_subscription_id,
            state=ent.state,
        )

    # ----- sign-in boundary -----

    def sign_in_credentials(self, email: str, password: str) -> SignInResult:
        return self._sign_in("credentials", lambda: self.resolver.authenticate(email, password))

    def sign_in_oauth(
        self,
        email: str,
        provider: str,
        provider_account_id: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> SignInResult:
        return self._sign_in(
            provider,
            lambda: self.resolver.resolve_oauth(email, provider, provider_account_id, name, avatar_url),
        )

    def _sign_in(self, method: str, resolve: Callable[[], User]) -> SignInResult:
        try:
            user = resolve()
        except AccountsError as e:
            log.info("%s sign-in denied: %s", method, e.code)
            return SignInResult(ok=False, error=e.code, message=e.message, retryable=e.retryable)
        return SignInResult(ok=True, access_token=self.mint(user), subject=str(user.id))