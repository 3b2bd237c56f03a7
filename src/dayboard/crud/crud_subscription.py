import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dayboard.crud.base import CRUDBase
from dayboard.models.subscription import PlanChangeLog, UserSubscription
from dayboard.schemas.subscription import PlanChangeLogEntry, Subscription

logger = logging.getLogger(__name__)


class CRUDSubscription(CRUDBase[Subscription, UserSubscription]):
    """Storage of per-user billing state and its audit trail.

    Writes here only flush; the caller commits, so that a state change and
    its plan change log entry land in the same transaction.
    """

    async def get_for_user(self, db: AsyncSession, *, user_id: str) -> Optional[UserSubscription]:
        """Get the subscription row of a user, if any."""
        stmt = (
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, db: AsyncSession, *, user_id: str, values: Dict[str, Any]) -> UserSubscription:
        """Insert or update the subscription row keyed by `user_id`."""
        db_obj = await self.get_for_user(db, user_id=user_id)
        if db_obj is None:
            db_obj = UserSubscription(user_id=user_id)
            db.add(db_obj)
        for field, value in values.items():
            setattr(db_obj, field, value)
        await db.flush()
        return db_obj

    async def mark_premium_bonus_claimed(self, db: AsyncSession, *, user_id: str, values: Dict[str, Any]) -> bool:
        """Flip `premium_bonus_claimed` to true together with `values`.

        Conditional on the flag still being false, so two concurrent claims
        cannot both succeed. Returns whether this call won.
        """
        stmt = (
            update(UserSubscription)
            .where(
                UserSubscription.user_id == user_id,
                UserSubscription.premium_bonus_claimed.is_(False),
            )
            .values(premium_bonus_claimed=True, **values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def log_plan_change(
        self, db: AsyncSession, *, user_id: str, from_plan: str, to_plan: str, reason: str
    ) -> PlanChangeLog:
        """Append an entry to the plan change log."""
        entry = PlanChangeLog(user_id=user_id, from_plan=from_plan, to_plan=to_plan, reason=reason)
        db.add(entry)
        await db.flush()
        logger.info(f"Plan change for user {user_id}: {from_plan} -> {to_plan} ({reason})")
        return entry

    async def get_plan_history(self, db: AsyncSession, *, user_id: str) -> list[PlanChangeLogEntry]:
        """Get the plan change log of a user, oldest first."""
        stmt = (
            select(PlanChangeLog)
            .where(PlanChangeLog.user_id == user_id)
            .order_by(PlanChangeLog.created_at.asc())
        )
        result = await db.execute(stmt)
        return [PlanChangeLogEntry.model_validate(row) for row in result.scalars().all()]


subscription = CRUDSubscription(Subscription, UserSubscription)
