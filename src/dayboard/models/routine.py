from sqlalchemy import JSON, Boolean, Column, Float, String, Text

from dayboard.models.base import Base


class Routine(Base):
    """A user-defined recurring obligation (daily, weekly or monthly)."""
    __tablename__ = "routines"

    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False)
    frequency_type = Column(String, nullable=False)  # "daily", "weekly", "monthly"
    start_time = Column(String, nullable=True)  # "HH:MM"
    duration_hours = Column(Float, default=1.0, nullable=False)
    weekly_days = Column(JSON, nullable=True)  # [0-6], Sunday = 0
    monthly_days = Column(JSON, nullable=True)  # [1-31]
    skip_weekends = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
