"""
Entitlement evaluation.

A user's paid-tier access is derived from stored timestamps and the tier
flag every time it is asked for. Nothing here writes, and nothing here is
cached.

Precedence (first match wins):

1. TRIAL_ACTIVE  trial_ends_at set and strictly in the future
2. PRO_ACTIVE    tier 'pro', no cancellation recorded, and not a lapsed
                 unpaid trial
3. PRO_GRACE     tier 'pro', canceled, subscription_ends_at strictly in the future
4. FREE          everything else

An active trial wins regardless of tier or cancellation fields.

A lapsed unpaid trial is a trial that has ended with no payment recorded
since it started. start_trial() already sets the tier to 'pro', so without
this rule a trial would never run out on its own.
"""
from datetime import datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from accounts.shared.db import utcnow
from accounts.users.models import TIER_PRO


class EntitlementState(str, Enum):
    TRIAL_ACTIVE = "trial_active"
    PRO_ACTIVE = "pro_active"
    PRO_GRACE = "pro_grace"
    FREE = "free"

    @property
    def entitled(self) -> bool:
        return self is not EntitlementState.FREE


class EntitlementInputs(Protocol):
    subscription_tier: str
    trial_started_at: datetime | None
    trial_ends_at: datetime | None
    subscription_canceled_at: datetime | None
    subscription_ends_at: datetime | None
    last_payment_at: datetime | None


class Entitlement(BaseModel):
    state: EntitlementState
    entitled: bool
    tier: str


def _unpaid_trial(user: EntitlementInputs) -> bool:
    if user.trial_ends_at is None:
        return False
    if user.last_payment_at is None:
        return True
    return user.trial_started_at is not None and user.last_payment_at < user.trial_started_at


def evaluate_state(user: EntitlementInputs, now: datetime | None = None) -> EntitlementState:
    now = now or utcnow()
    if user.trial_ends_at is not None and user.trial_ends_at > now:
        return EntitlementState.TRIAL_ACTIVE
    if user.subscription_tier == TIER_PRO:
        if user.subscription_canceled_at is None:
            # trial is over here, so an unpaid one has lapsed
            if not _unpaid_trial(user):
                return EntitlementState.PRO_ACTIVE
        elif user.subscription_ends_at is not None and user.subscription_ends_at > now:
            return EntitlementState.PRO_GRACE
    return EntitlementState.FREE


def evaluate(user: EntitlementInputs, now: datetime | None = None) -> Entitlement:
    state = evaluate_state(user, now)
    return Entitlement(state=state, entitled=state.entitled, tier=user.subscription_tier)
