# accounts/auth/api.py
import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import sessionmaker

from accounts.auth.password import validate_email
from accounts.auth.reset import ResetTokenService
from accounts.auth.service import IdentityResolver
from accounts.sessions.claims import SignInResult
from accounts.sessions.issuer import SessionIssuer
from accounts.shared.auth import get_issuer, require_provider_bridge
from accounts.shared.db import get_clock, get_sessions
from accounts.shared.errors import (
    AccountsError, CreationConflict, LinkageConflict, OAuthOnlyAccount, StorageError,
)
from accounts.shared.http import err, err_from, ok
from accounts.shared.mailer import ResetLinkSender, get_reset_sender
from accounts.users.models import User

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

# email stays a plain str: lookups are exact and case-sensitive
class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)
    name: str | None = Field(default=None, max_length=200)

class TokenIn(BaseModel):
    email: str
    password: str

class OAuthIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    provider: str = Field(pattern="^(google|github)$")
    provider_account_id: str = Field(min_length=1)
    name: str | None = None
    avatar_url: str | None = None

class ForgotIn(BaseModel):
    email: str

class ResetIn(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)

def get_resolver(
    sessions: sessionmaker = Depends(get_sessions),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> IdentityResolver:
    return IdentityResolver(sessions, clock)

def get_reset_service(
    sessions: sessionmaker = Depends(get_sessions),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ResetTokenService:
    return ResetTokenService(sessions, clock)

def _user_out(u: User) -> dict:
    return {"id": u.id, "email": u.email, "name": u.name, "email_verified": u.email_verified,
            "tier": u.subscription_tier}

def _deny(result: SignInResult):
    if result.error in (CreationConflict.code, LinkageConflict.code):
        status = 409
    elif result.error == StorageError.code:
        status = 503
    else:
        status = 401
    err(result.message or "sign-in denied", code=result.error or "denied", status=status,
        details={"retryable": True} if result.retryable else None)

@router.post("/register", status_code=201)
def api_register(inb: RegisterIn, resolver: IdentityResolver = Depends(get_resolver)):
    try:
        user = resolver.register(inb.email, inb.password, inb.name)
    except AccountsError as e:
        err_from(e)
    return {"ok": True, "user": _user_out(user)}

@router.post("/token", response_model=SignInResult)
def api_token(inb: TokenIn, issuer: SessionIssuer = Depends(get_issuer)):
    result = issuer.sign_in_credentials(inb.email, inb.password)
    if not result.ok:
        _deny(result)
    return result

@router.post("/oauth", response_model=SignInResult, dependencies=[Depends(require_provider_bridge)])
def api_oauth(inb: OAuthIn, issuer: SessionIssuer = Depends(get_issuer)):
    # caller is the front end that completed the provider handshake
    result = issuer.sign_in_oauth(inb.email, inb.provider, inb.provider_account_id, inb.name, inb.avatar_url)
    if not result.ok:
        _deny(result)
    return result

@router.post("/forgot-password")
def api_forgot_password(
    inb: ForgotIn,
    svc: ResetTokenService = Depends(get_reset_service),
    send: ResetLinkSender = Depends(get_reset_sender),
):
    if not inb.email:
        err("Email is required")
    if not validate_email(inb.email):
        err("Invalid email format", code="invalid_email")
    try:
        message = svc.request_reset(inb.email, send)
    except StorageError as e:
        err_from(e)
    except OSError as e:
        log.error("reset link delivery failed: %s", e.__class__.__name__)
        err("Failed to send reset email. Please try again later.", code="delivery_failed", status=500)
    return {"success": True, "message": message}

@router.get("/reset-password")
def api_check_reset_token(token: str = Query(""), svc: ResetTokenService = Depends(get_reset_service)):
    if not token:
        err("Token is required")
    try:
        user = svc.validate(token)
    except AccountsError as e:
        err_from(e)
    return {"valid": True, "email": user.email}

@router.post("/reset-password")
def api_reset_password(inb: ResetIn, svc: ResetTokenService = Depends(get_reset_service)):
    try:
        svc.complete_reset(inb.token, inb.password)
    except OAuthOnlyAccount as e:
        err(e.message, code=e.code, status=400)
    except AccountsError as e:
        err_from(e)
    return ok(message="Password has been reset successfully. You can now sign in with your new password.")
