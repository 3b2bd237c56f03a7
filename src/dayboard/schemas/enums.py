from enum import Enum


class FrequencyType(str, Enum):
    """How often a routine recurs."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PlanType(str, Enum):
    """Billing tier, independent of billing status."""
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    """Billing status of a subscription."""
    NONE = "none"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    INCOMPLETE = "incomplete"
    CANCELED = "canceled"


class PlanChangeReason(str, Enum):
    """Reasons recorded in the plan change log."""
    TRIAL_STARTED = "trial_started"
    SUBSCRIPTION_STARTED = "subscription_started"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    LOYALTY_BONUS_CLAIMED = "loyalty_bonus_claimed"
    PLAN_CHANGED = "plan_changed"
    MANUAL_GRANT = "manual_grant"


PAID_PLANS = (PlanType.PRO, PlanType.PREMIUM)
