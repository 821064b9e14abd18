"""Customer model for renter records."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Customer(BaseModel):
    """A customer, deduplicated by email.

    Email is the natural key and never changes once stored.
    """

    model_config = ConfigDict(strict=True)

    customer_id: str = Field(..., description="Unique customer ID")
    name: str = Field(..., description="Display name")
    phone: str = Field(..., description="Phone number")
    email: EmailStr = Field(..., description="Email (unique)")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class CustomerDetails(BaseModel):
    """Customer identity supplied with a booking request."""

    model_config = ConfigDict(strict=False, str_strip_whitespace=True)

    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    phone: str = Field(..., description="Phone number")
