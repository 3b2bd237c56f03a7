from typing import Optional

from pydantic import BaseModel


class Identity(BaseModel):
    """Authenticated caller as vouched for by the identity provider."""
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
