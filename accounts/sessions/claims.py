from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from accounts.billing.entitlement import EntitlementState

CLAIMS_VERSION = 1


class SessionClaims(BaseModel):
    """
    Per-read view of a session. Only `subject` comes from the token; the
    rest is recomputed from storage on every read and is informational.
    Enforcement must re-evaluate entitlement itself (see shared/guard.py).
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    version: int = CLAIMS_VERSION
    subject: str
    entitled: bool
    tier: str
    subscription_id: str | None = None
    state: EntitlementState = EntitlementState.FREE


class SignInResult(BaseModel):
    ok: bool
    access_token: str | None = None
    token_type: str = "bearer"
    subject: str | None = None
    error: str | None = None        # error code on deny
    message: str | None = None      # user-facing text on deny
    retryable: bool = False
