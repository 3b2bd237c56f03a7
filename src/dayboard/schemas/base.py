from typing import Optional

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common fields."""
    model_config = ConfigDict(from_attributes=True)


class SuccessResponse(BaseSchema):
    """Schema for operations that only report success."""
    success: bool = True
    message: Optional[str] = None
