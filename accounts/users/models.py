from datetime import datetime
from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from accounts.shared.db import Base, UTCDateTime, utcnow

TIER_FREE = "free"
TIER_PRO = "pro"

class User(Base):
    __tablename__ = "router_users"
    __table_args__ = (UniqueConstraint("oauth_provider", "oauth_id", name="uq_router_users_oauth"),)

    # identity
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)  # exact, case-sensitive
    password_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)  # null => provider-only account
    oauth_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    oauth_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # entitlement inputs (entitlement itself is never stored)
    subscription_status: Mapped[str] = mapped_column(String(16), default="trial")  # display label only
    subscription_tier: Mapped[str] = mapped_column(String(8), default=TIER_FREE)   # free|pro
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    trial_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    trial_ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    subscription_ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    subscription_canceled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_payment_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # password reset (hash only)
    reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_token_expires: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reset_requested_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # audit
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_oauth_only(self) -> bool:
        return self.password_hash is None
