from .base import BaseSchema, SuccessResponse
from .enums import FrequencyType, PlanType, SubscriptionStatus, PlanChangeReason
from .auth import Identity
from .routine import Routine, RoutineCreate, RoutineUpdate
from .subscription import (
    Subscription, SubscriptionResponse, PlanChangeLogEntry, CheckoutRequest, CheckoutResponse,
    PortalResponse, ClaimBonusResponse, FeaturesResponse, ProviderSubscription, CheckoutSession,
    PortalSession, ProviderCustomer,
)
