import logging
import os
from functools import lru_cache
from typing import Annotated, Dict, List, Optional

from fastapi import Depends, HTTPException, status
from pydantic import BaseModel
from yaml import safe_load

from dayboard.api.deps import CurrentIdentity
from dayboard.crud.crud_subscription import subscription as crud_subscription
from dayboard.db.session import SessionDep
from dayboard.schemas import Identity, PlanType, Subscription
from dayboard.services.subscription_service import effective_plan

logger = logging.getLogger(__name__)

PLANS_FILE = os.path.join(os.path.dirname(__file__), "..", "plans.yaml")


class PlanDefinition(BaseModel):
    name: str
    price: float
    trial_days: Optional[int] = None
    features: List[str] = []
    limits: Dict[str, bool]


# Load plan definitions from YAML file
@lru_cache(maxsize=1)
def load_plans() -> Dict[PlanType, PlanDefinition]:
    path = os.environ.get("DAYBOARD_PLANS_FILE", PLANS_FILE)
    logger.info(f"Loading plans from: {path}")
    with open(path, "r") as f:
        raw = safe_load(f) or {}
    return {PlanType(key): PlanDefinition(**value) for key, value in raw.get("plans", {}).items()}


def get_plan(plan: PlanType) -> PlanDefinition:
    return load_plans()[PlanType(plan)]


def has_feature_access(plan: PlanType, feature: str) -> bool:
    """Check whether `plan` unlocks `feature`. Unknown features are locked."""
    return get_plan(plan).limits.get(feature, False) is True


async def get_effective_plan(identity: CurrentIdentity, db: SessionDep) -> PlanType:
    """Plan the caller is entitled to right now."""
    row = await crud_subscription.get_for_user(db, user_id=identity.user_id)
    record = Subscription.model_validate(row) if row else Subscription.default_for(identity.user_id)
    return effective_plan(record)


def require_feature(feature: str):
    """Dependency requiring the caller's plan to unlock `feature`.

    No route of this service is feature-gated; the AI planner, agent and
    workflow routes that are gated live in other services and mount this
    dependency, e.g. `Depends(require_feature("ai_agent"))`.
    """
    async def feature_dependency(
        identity: CurrentIdentity,
        plan: Annotated[PlanType, Depends(get_effective_plan)],
    ) -> Identity:
        if not has_feature_access(plan, feature):
            logger.info(f"User {identity.user_id} on plan {plan.value} lacks feature {feature}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Your plan does not include {feature}"
            )
        return identity

    return feature_dependency
