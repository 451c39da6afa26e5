from labvisit.db.models import AppointmentRow, Base, CustomerRow, TimeSlotRow
from labvisit.db.session import Database

__all__ = [
    "Database",
    "Base",
    "CustomerRow",
    "TimeSlotRow",
    "AppointmentRow",
]
