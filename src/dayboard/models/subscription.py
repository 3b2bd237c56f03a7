from sqlalchemy import Boolean, Column, DateTime, Integer, String

from dayboard.models.base import Base


class UserSubscription(Base):
    """Per-user billing state (Free, Pro, Premium). Never hard-deleted."""
    __tablename__ = "user_subscriptions"

    user_id = Column(String, nullable=False, unique=True)
    plan_type = Column(String, default="free", nullable=False)  # "free", "pro", "premium"
    status = Column(String, default="none", nullable=False)
    stripe_customer_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)
    stripe_price_id = Column(String, nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    # Loyalty bonus bookkeeping
    pro_started_at = Column(DateTime(timezone=True), nullable=True)  # start of the current continuous pro period
    pro_payment_count = Column(Integer, default=0, nullable=False)
    pro_trial_used = Column(Boolean, default=False, nullable=False)
    premium_bonus_claimed = Column(Boolean, default=False, nullable=False)


class PlanChangeLog(Base):
    """Append-only audit trail of plan changes."""
    __tablename__ = "plan_change_log"

    user_id = Column(String, nullable=False, index=True)
    from_plan = Column(String, nullable=False)
    to_plan = Column(String, nullable=False)
    reason = Column(String, nullable=False)
