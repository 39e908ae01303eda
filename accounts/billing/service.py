import logging
from datetime import datetime, timedelta
from typing import Callable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from accounts.billing.entitlement import Entitlement, evaluate
from accounts.shared.config import settings
from accounts.shared.db import SessionFactory, session_scope, utcnow
from accounts.shared.errors import UserNotFound
from accounts.users import store
from accounts.users.models import TIER_FREE, TIER_PRO, User

log = logging.getLogger(__name__)


class SubscriptionCheck(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    has_access: bool
    status: str
    tier: str
    trial_ends_at: datetime | None = None
    subscription_ends_at: datetime | None = None


class EntitlementEngine:
    """
    Billing lifecycle writes plus read-time entitlement.

    The write operations are driven by the billing collaborator only; each
    one is a single UPDATE keyed by user id. A missing user raises
    UserNotFound and is not retried.
    """

    def __init__(
        self,
        sessions: SessionFactory,
        clock: Callable[[], datetime] = utcnow,
        trial_days: int | None = None,
    ):
        self._sessions = sessions
        self._now = clock
        self._trial = timedelta(days=trial_days or settings.TRIAL_DAYS)

    # ----- writes -----

    def _apply(self, op: str, user_id: int, now: datetime, **values) -> None:
        with session_scope(self._sessions, op) as db:
            if not store.update_user(db, user_id, now, **values):
                raise UserNotFound()
        log.info("%s applied to user %s", op, user_id)

    def start_trial(self, user_id: int, customer_id: str, subscription_id: str) -> None:
        now = self._now()
        self._apply(
            "start_trial", user_id, now,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            subscription_tier=TIER_PRO,
            subscription_status="trial",
            trial_started_at=now,
            trial_ends_at=now + self._trial,
        )

    def activate(self, user_id: int, subscription_id: str) -> None:
        now = self._now()
        self._apply(
            "activate", user_id, now,
            stripe_subscription_id=subscription_id,
            subscription_tier=TIER_PRO,
            subscription_status="active",
            last_payment_at=now,
            subscription_canceled_at=None,
        )

    def cancel(self, user_id: int, ends_at: datetime) -> None:
        # access continues through ends_at (grace period)
        now = self._now()
        self._apply(
            "cancel", user_id, now,
            subscription_status="canceled",
            subscription_canceled_at=now,
            subscription_ends_at=ends_at,
        )

    def downgrade_to_free(self, user_id: int) -> None:
        self._apply(
            "downgrade_to_free", user_id, self._now(),
            subscription_tier=TIER_FREE,
            subscription_status="inactive",
            stripe_subscription_id=None,
        )

    def set_customer_id(self, user_id: int, customer_id: str) -> None:
        self._apply("set_customer_id", user_id, self._now(), stripe_customer_id=customer_id)

    # ----- reads -----

    def find_user_by_customer(self, customer_id: str) -> User | None:
        with session_scope(self._sessions, "find_user_by_customer") as db:
            return store.find_by_customer_id(db, customer_id)

    def entitlement_for(self, user_id: int) -> tuple[User, Entitlement] | None:
        with session_scope(self._sessions, "entitlement_for") as db:
            user = store.find_by_id(db, user_id)
        if user is None:
            return None
        return user, evaluate(user, self._now())

    def check_subscription(self, email: str) -> SubscriptionCheck:
        with session_scope(self._sessions, "check_subscription") as db:
            user = store.find_by_email(db, email)
        if user is None:
            return SubscriptionCheck(has_access=False, status="no_account", tier=TIER_FREE)
        ent = evaluate(user, self._now())
        return SubscriptionCheck(
            has_access=ent.entitled,
            status=user.subscription_status,
            tier=user.subscription_tier,
            trial_ends_at=user.trial_ends_at,
            subscription_ends_at=user.subscription_ends_at,
        )
