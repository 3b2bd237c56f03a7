from fastapi import APIRouter

from dayboard.api.deps import CurrentIdentity, SubscriptionServiceDep
from dayboard.core.entitlements import get_plan
from dayboard.crud.crud_subscription import subscription as crud_subscription
from dayboard.db.session import SessionDep
from dayboard.schemas import (
    CheckoutRequest,
    ClaimBonusResponse,
    FeaturesResponse,
    PlanChangeLogEntry,
    Subscription,
    SubscriptionResponse,
)
from dayboard.services.subscription_service import effective_plan

router = APIRouter()


@router.get("", response_model=SubscriptionResponse)
async def read_subscription(identity: CurrentIdentity, service: SubscriptionServiceDep) -> SubscriptionResponse:
    """Get the subscription of the current user and whether the loyalty bonus can be claimed."""
    return await service.get_subscription(identity.user_id)


@router.get("/features", response_model=FeaturesResponse)
async def read_features(identity: CurrentIdentity, service: SubscriptionServiceDep) -> FeaturesResponse:
    """Get the effective plan of the current user and the features it unlocks."""
    current = await service.get_subscription(identity.user_id)
    plan = effective_plan(current.subscription)
    definition = get_plan(plan)
    return FeaturesResponse(plan=plan, name=definition.name, limits=definition.limits)


@router.get("/history", response_model=list[PlanChangeLogEntry])
async def read_plan_history(identity: CurrentIdentity, db: SessionDep) -> list[PlanChangeLogEntry]:
    """Get the plan change log of the current user."""
    return await crud_subscription.get_plan_history(db, user_id=identity.user_id)


@router.post("/claim-premium-bonus", response_model=ClaimBonusResponse)
async def claim_premium_bonus(identity: CurrentIdentity, service: SubscriptionServiceDep) -> ClaimBonusResponse:
    """Claim one free month of Premium after three months of Pro."""
    subscription = await service.claim_premium_bonus(identity.user_id)
    return ClaimBonusResponse(
        message="Premium bonus activated! Enjoy 1 month free.",
        subscription=subscription,
    )


@router.post("/cancel", response_model=Subscription)
async def cancel_subscription(identity: CurrentIdentity, service: SubscriptionServiceDep) -> Subscription:
    """Cancel the subscription at the end of the current billing period."""
    return await service.cancel_subscription(identity.user_id)


@router.post("/reactivate", response_model=Subscription)
async def reactivate_subscription(identity: CurrentIdentity, service: SubscriptionServiceDep) -> Subscription:
    """Undo a pending cancellation."""
    return await service.reactivate_subscription(identity.user_id)


@router.post("/change-plan", response_model=Subscription)
async def change_plan(
    request: CheckoutRequest,
    identity: CurrentIdentity,
    service: SubscriptionServiceDep,
) -> Subscription:
    """Switch between Pro and Premium."""
    return await service.change_plan(identity.user_id, request.plan)
