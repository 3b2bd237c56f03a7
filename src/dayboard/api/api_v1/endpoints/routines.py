import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from dayboard.api.deps import CurrentIdentity
from dayboard.core.exceptions import InvalidInput
from dayboard.crud.crud_routine import routine as crud_routine
from dayboard.db.session import SessionDep
from dayboard.schemas import Routine, RoutineCreate, RoutineUpdate, SuccessResponse
from dayboard.schemas.routine import check_day_sets
from dayboard.services.recurrence import resolve_due_routines
from dayboard.utils.validation import is_valid_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_owned_routine(db: SessionDep, routine_id: str, user_id: str):
    if not is_valid_uuid(routine_id):
        raise HTTPException(status_code=404, detail="Routine not found")
    db_obj = await crud_routine.get_owned(db, id=routine_id, user_id=user_id)
    if not db_obj:
        raise HTTPException(status_code=404, detail="Routine not found")
    return db_obj


@router.get("", response_model=list[Routine])
async def read_routines(identity: CurrentIdentity, db: SessionDep) -> list[Routine]:
    """Get all routines of the current user, newest first."""
    rows = await crud_routine.get_by_user(db, user_id=identity.user_id)
    return [crud_routine.to_record(row) for row in rows]


@router.get("/for-date", response_model=list[Routine])
async def read_routines_for_date(
    identity: CurrentIdentity,
    db: SessionDep,
    on: date = Query(..., alias="date", description="Calendar date, YYYY-MM-DD"),
) -> list[Routine]:
    """Get the active routines that are due on a given date."""
    rows = await crud_routine.get_active_by_user(db, user_id=identity.user_id)
    routines = [crud_routine.to_record(row) for row in rows]
    due = resolve_due_routines(routines, on)
    logger.debug(f"{len(due)}/{len(routines)} routines due on {on} for user {identity.user_id}")
    return due


@router.post("", response_model=Routine, status_code=status.HTTP_201_CREATED)
async def create_routine(routine_in: RoutineCreate, identity: CurrentIdentity, db: SessionDep) -> Routine:
    """Create a routine."""
    db_obj = await crud_routine.create(db, user_id=identity.user_id, obj_in=routine_in.model_dump(mode="json"))
    logger.info(f"Created routine {db_obj.id} for user {identity.user_id}")
    return crud_routine.to_record(db_obj)


@router.patch("/{routine_id}", response_model=Routine)
async def update_routine(
    routine_id: str,
    routine_in: RoutineUpdate,
    identity: CurrentIdentity,
    db: SessionDep,
) -> Routine:
    """Update a routine. Day sets are re-checked against the resulting frequency."""
    db_obj = await _get_owned_routine(db, routine_id, identity.user_id)
    changes = routine_in.model_dump(mode="json", exclude_unset=True)

    frequency = changes.get("frequency_type", db_obj.frequency_type)
    try:
        weekly_days, monthly_days = check_day_sets(
            frequency,
            changes.get("weekly_days", db_obj.weekly_days),
            changes.get("monthly_days", db_obj.monthly_days),
        )
    except ValueError as e:
        raise InvalidInput(str(e))
    changes["weekly_days"] = weekly_days
    changes["monthly_days"] = monthly_days
    if frequency != "daily":
        changes["skip_weekends"] = False

    db_obj = await crud_routine.update(db, db_obj=db_obj, obj_in=changes)
    return crud_routine.to_record(db_obj)


@router.delete("/{routine_id}", response_model=SuccessResponse)
async def delete_routine(routine_id: str, identity: CurrentIdentity, db: SessionDep) -> SuccessResponse:
    """Delete a routine."""
    db_obj = await _get_owned_routine(db, routine_id, identity.user_id)
    await crud_routine.remove(db, db_obj=db_obj)
    logger.info(f"Deleted routine {routine_id} for user {identity.user_id}")
    return SuccessResponse(success=True)
