from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dayboard.crud.base import CRUDBase
from dayboard.models.routine import Routine as RoutineModel
from dayboard.schemas.routine import Routine


class CRUDRoutine(CRUDBase[Routine, RoutineModel]):
    """CRUD operations for routines."""

    async def get_active_by_user(self, db: AsyncSession, *, user_id: str) -> list[RoutineModel]:
        """Get the active routines of a user in creation order."""
        stmt = (
            select(RoutineModel)
            .where(RoutineModel.user_id == user_id, RoutineModel.is_active.is_(True))
            .order_by(RoutineModel.created_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


routine = CRUDRoutine(Routine, RoutineModel)
