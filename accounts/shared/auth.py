# accounts/shared/auth.py
import hmac
from datetime import datetime
from typing import Callable

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import sessionmaker

from accounts.sessions.claims import SessionClaims
from accounts.sessions.issuer import SessionIssuer
from accounts.shared.config import settings
from accounts.shared.db import get_clock, get_sessions
from accounts.shared.errors import SessionError
from accounts.shared.http import err, err_from

bearer = HTTPBearer(auto_error=False, scheme_name="bearerAuth")

def get_issuer(
    sessions: sessionmaker = Depends(get_sessions),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SessionIssuer:
    return SessionIssuer(sessions, clock)

def bearer_token(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    # Always require a bearer token
    if not creds:
        err("missing bearer token", code="missing_token", status=401)
    return creds.credentials

def current_subject(token: str = Depends(bearer_token), issuer: SessionIssuer = Depends(get_issuer)) -> int:
    """Subject only; no storage read."""
    try:
        return issuer.subject_of(token)
    except SessionError as e:
        err_from(e)

def get_claims(token: str = Depends(bearer_token), issuer: SessionIssuer = Depends(get_issuer)) -> SessionClaims:
    """Claims rebuilt from storage on every request."""
    try:
        return issuer.read(token)
    except SessionError as e:
        err_from(e)

def require_provider_bridge(
    bridge_secret: str | None = Header(default=None, alias="X-Provider-Bridge-Secret"),
) -> None:
    """
    Provider sign-in is only accepted from the trusted front end that ran the
    provider handshake. Unconfigured or wrong secret: refuse.
    """
    expected = settings.OAUTH_BRIDGE_SECRET
    if not expected:
        err("provider sign-in is not configured", code="provider_signin_disabled", status=503)
    if not bridge_secret or not hmac.compare_digest(bridge_secret.encode(), expected.encode()):
        err("untrusted provider sign-in", code="untrusted_caller", status=401)
