import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from dayboard.db.session import AsyncSessionLocal, engine
from dayboard.models import Base, Routine
from dayboard.schemas import RoutineCreate

logger = logging.getLogger(__name__)

SEED_DIR = Path(__file__).parent / "seed" / "routines"


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables that don't exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created")


async def _create_routines(db: AsyncSession, seed_dir: Path = SEED_DIR) -> int:
    """Create routines from JSON seed files if they don't exist.

    Each file holds ``{"user_id": ..., "routines": [...]}``; a routine is
    skipped when the user already has one with the same title.

    Returns:
        int: Number of routines created
    """
    if not seed_dir.exists():
        logger.info("No routines seed directory found - skipping routine creation")
        return 0

    created = 0
    for seed_file in sorted(seed_dir.glob("*.json")):
        with open(seed_file, "r") as f:
            seed = json.load(f)

        user_id = seed.get("user_id")
        if not user_id:
            logger.warning(f"No user_id in {seed_file}, skipping")
            continue

        for raw in seed.get("routines", []):
            try:
                routine_in = RoutineCreate(**raw)
            except ValidationError as e:
                logger.warning(f"Invalid routine in {seed_file}: {e.errors()}")
                continue

            result = await db.execute(
                select(Routine.id).where(Routine.user_id == user_id, Routine.title == routine_in.title)
            )
            if result.first():
                logger.info(f"Routine already exists: {routine_in.title} - skipping")
                continue

            db.add(Routine(user_id=user_id, **routine_in.model_dump(mode="json")))
            created += 1
            logger.info(f"Created routine: {routine_in.title} for user {user_id}")
    return created


async def init_db(seed_dir: Path = SEED_DIR) -> None:
    """Initialize the database schema and seed data."""
    await create_tables()
    async with AsyncSessionLocal() as db:
        try:
            await _create_routines(db, seed_dir)
            await db.commit()
            logger.info("Database initialization completed successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {str(e)}")
            await db.rollback()
            raise


def main() -> None:
    """Main function to run database initialization."""
    try:
        asyncio.run(init_db())
        print("✅ Database initialization completed successfully!")
    except Exception as e:
        print(f"❌ Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
