from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated staff user resolved from the bearer token."""

    id: UUID
    center_id: Optional[UUID] = None
    role: str
    full_name: str
