from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class DeactivationRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Why the account is deactivated")


class AccountStatusResponse(BaseModel):
    id: str = Field(..., description="User ID of the account")
    is_active: bool = Field(..., description="Whether the account can be used")
    deactivation_reason: Optional[str] = Field(None, description="Reason given by the admin")
    deactivated_at: Optional[datetime] = Field(None, description="Deactivation time")
    reactivated_at: Optional[datetime] = Field(None, description="Last reactivation time")
    cancelled_bookings: int = Field(0, description="Upcoming bookings cancelled by the deactivation")
