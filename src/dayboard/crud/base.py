from typing import Any, Dict, Generic, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dayboard.models.base import Base

ModelType = TypeVar("ModelType", bound=BaseModel)
SQLModelType = TypeVar("SQLModelType", bound=Base)


class CRUDBase(Generic[ModelType, SQLModelType]):
    def __init__(self, model: Type[ModelType], sql_model: Type[SQLModelType]):
        """
        CRUD object with default methods to Create, Read, Update, Delete (CRUD)
        rows owned by a user.
        **Parameters**
        * `model`: A Pydantic model class, the typed record rows are validated into
        * `sql_model`: A SQLAlchemy model class with a `user_id` column
        """
        self.model = model
        self.sql_model = sql_model

    def to_record(self, db_obj: SQLModelType) -> ModelType:
        """Validate an ORM row into its typed record."""
        return self.model.model_validate(db_obj)

    async def get_owned(self, db: AsyncSession, *, id: UUID | str, user_id: str) -> Optional[SQLModelType]:
        """Get a single object by ID, only if it belongs to `user_id`."""
        stmt = select(self.sql_model).where(
            self.sql_model.id == (id if isinstance(id, UUID) else UUID(str(id))),
            self.sql_model.user_id == user_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user(self, db: AsyncSession, *, user_id: str) -> list[SQLModelType]:
        """Get all objects of a user, newest first."""
        stmt = (
            select(self.sql_model)
            .where(self.sql_model.user_id == user_id)
            .order_by(self.sql_model.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, user_id: str, obj_in: Dict[str, Any]) -> SQLModelType:
        """Create a new object owned by `user_id`."""
        db_obj = self.sql_model(user_id=user_id, **obj_in)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: SQLModelType, obj_in: Dict[str, Any]) -> SQLModelType:
        """Update an object with the given fields."""
        for field, value in obj_in.items():
            setattr(db_obj, field, value)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: SQLModelType) -> SQLModelType:
        """Remove an object."""
        await db.delete(db_obj)
        await db.commit()
        return db_obj
