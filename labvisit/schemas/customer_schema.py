"""Customer data models."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Customer(BaseModel):
    """Customer record keyed by normalized phone number."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    phone_number: str
    name: str
    address: str = ""
    neighborhood: Optional[str] = None
    reference_point: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def has_address(self) -> bool:
        return bool(self.address and self.address.strip())


class CustomerStats(BaseModel):
    """Appointment history summary for one customer."""

    total: int = 0
    completed: int = 0
    cancelled: int = 0
    pending: int = 0
    last_appointment_date: Optional[date] = None
    is_frequent: bool = False
