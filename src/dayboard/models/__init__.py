from .base import Base
from .routine import Routine
from .subscription import UserSubscription, PlanChangeLog

__all__ = [
    "Base",
    "Routine",
    "UserSubscription",
    "PlanChangeLog",
]
