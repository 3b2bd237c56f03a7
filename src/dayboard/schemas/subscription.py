from typing import Optional
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from .base import BaseSchema
from .enums import PlanType, SubscriptionStatus


class Subscription(BaseSchema):
    """Billing state of one user."""
    user_id: str
    plan_type: PlanType = PlanType.FREE
    status: SubscriptionStatus = SubscriptionStatus.NONE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    trial_end: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    pro_started_at: Optional[datetime] = None
    pro_payment_count: int = 0
    pro_trial_used: bool = False
    premium_bonus_claimed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def default_for(cls, user_id: str) -> "Subscription":
        """Implicit record of a user who never went through checkout."""
        return cls(user_id=user_id)


class SubscriptionResponse(BaseModel):
    """Response of GET /subscription."""
    subscription: Subscription
    eligible_for_premium_bonus: bool


class PlanChangeLogEntry(BaseSchema):
    """One row of the plan change audit trail."""
    id: UUID
    user_id: str
    from_plan: PlanType
    to_plan: PlanType
    reason: str
    created_at: datetime


class CheckoutRequest(BaseModel):
    """Body of POST /stripe/create-checkout and /subscription/change-plan."""
    plan: str


class CheckoutResponse(BaseModel):
    url: Optional[str] = None
    session_id: str


class PortalResponse(BaseModel):
    url: str


class ClaimBonusResponse(BaseModel):
    success: bool = True
    message: str
    subscription: Subscription


class FeaturesResponse(BaseModel):
    """Effective plan of the caller and the features it unlocks."""
    plan: PlanType
    name: str
    limits: dict[str, bool]


class ProviderSubscription(BaseModel):
    """Billing provider subscription, normalized at the client boundary."""
    id: str
    customer_id: Optional[str] = None
    status: str
    item_id: Optional[str] = None
    price_id: Optional[str] = None
    trial_end: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    metadata: dict[str, str] = {}


class CheckoutSession(BaseModel):
    id: str
    url: Optional[str] = None


class PortalSession(BaseModel):
    id: str
    url: str


class ProviderCustomer(BaseModel):
    id: str
    email: Optional[str] = None
