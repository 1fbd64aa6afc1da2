"""
app/hire/schemas.py

Hire Schemas
Pydantic schemas for hire-related operations:
- Hire creation (Authenticated Client)
- Worker status update (accept / reject)
- Reading hire details, including completion flags and the embedded review
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.hire.models import HireStatus


# ---------------------------------------------------
# Partial Schemas for Embedding
# ---------------------------------------------------
class HireUserInfo(BaseModel):
    """Partial user information (client or worker) for embedding in HireRead."""

    id: UUID = Field(..., description="User's unique identifier")
    first_name: str | None = Field(None, description="User's first name")
    last_name: str | None = Field(None, description="User's last name")
    profile_picture: str | None = Field(None, description="URL of the user's photo")
    rating: float | None = Field(None, description="Worker's average rating")

    model_config = ConfigDict(from_attributes=True)


class HireReview(BaseModel):
    """Review embedded in a hire once the client has left one."""

    rating: int = Field(..., description="Star rating from 1 to 5")
    comment: str = Field("", description="Review text")
    reviewed_at: datetime = Field(..., description="Timestamp when the review was left")


# ---------------------------------------------------
# Hire Creation Schema (Authenticated Client)
# ---------------------------------------------------
class HireCreate(BaseModel):
    """Schema used when a client hires a worker."""

    model_config = ConfigDict(str_strip_whitespace=True)

    worker_id: UUID = Field(..., description="UUID of the worker being hired")
    service: str = Field(..., min_length=1, max_length=255, description="Requested service")
    description: str = Field(..., min_length=1, description="Description of the work")
    budget: float | None = Field(default=None, ge=0, description="Optional proposed budget")


# ---------------------------------------------------
# Status Update Schema (Authenticated Worker)
# ---------------------------------------------------
class HireStatusUpdate(BaseModel):
    """Schema used when a worker accepts or rejects a pending hire."""

    status: HireStatus = Field(..., description="Target status (ACCEPTED or REJECTED)")


# ---------------------------------------------------
# Read Hire Schema (Authenticated Output)
# ---------------------------------------------------
class HireRead(BaseModel):
    """Schema returned when reading hire details (authenticated users)."""

    id: UUID = Field(..., description="Hire unique identifier")

    client: HireUserInfo = Field(..., description="Client who created the hire")
    worker: HireUserInfo = Field(..., description="Worker assigned to the hire")

    service: str = Field(..., description="Requested service")
    description: str = Field(..., description="Description of the work")
    budget: float | None = Field(default=None, description="Proposed budget")

    status: HireStatus = Field(..., description="Current status of the hire")
    worker_completed: bool = Field(..., description="Worker marked the work as done")
    client_completed: bool = Field(..., description="Client confirmed the work as done")
    completed_at: datetime | None = Field(
        default=None, description="Timestamp when both parties confirmed completion"
    )
    review: HireReview | None = Field(default=None, description="Review left by the client")

    created_at: datetime = Field(..., description="Timestamp when the hire was created")
    updated_at: datetime = Field(..., description="Timestamp when the hire was last updated")

    model_config = ConfigDict(from_attributes=True)
