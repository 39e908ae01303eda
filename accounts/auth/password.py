# accounts/auth/password.py
import re
import bcrypt
from functools import lru_cache
from pydantic import BaseModel

from accounts.shared.config import settings

# bcrypt only reads the first 72 bytes; cut explicitly so hash and verify agree.
_BCRYPT_MAX_BYTES = 72
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class StrengthResult(BaseModel):
    valid: bool
    reason: str


def _pw_bytes(pw: str) -> bytes:
    return pw.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(pw: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_pw_bytes(pw), salt).decode()


def verify_password(pw: str, ph: str | None) -> bool:
    """False for a missing or malformed hash; never raises."""
    if not ph:
        return False
    try:
        return bcrypt.checkpw(_pw_bytes(pw), ph.encode())
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password("decoy-password-never-matches")


def burn_verify(pw: str) -> None:
    # Spend one bcrypt round-trip so an unknown email costs as much as a wrong password.
    verify_password(pw, _decoy_hash())


def validate_strength(pw: str) -> StrengthResult:
    if len(pw) < 8:
        return StrengthResult(valid=False, reason="Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", pw):
        return StrengthResult(valid=False, reason="Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", pw):
        return StrengthResult(valid=False, reason="Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", pw):
        return StrengthResult(valid=False, reason="Password must contain at least one number")
    return StrengthResult(valid=True, reason="Password is strong")


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))
