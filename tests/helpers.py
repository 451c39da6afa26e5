"""Constants, fakes and builders shared by the test modules."""

from datetime import date, datetime, timedelta

from labvisit.schemas.booking_schema import SampleType

# Wednesday 2025-03-05, 07:00 in Buga.
NOW = datetime(2025, 3, 5, 7, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)

VALID_ADDRESS = "Barrio Centro, Carrera 5 #10-25"
CAPACITY = 10
BASE_PRICE = 20000


class FixedClock:
    """Injectable clock that only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.booked: list = []
        self.cancelled: list = []

    def appointment_booked(self, appointment, customer, slot) -> None:
        self.booked.append((appointment, customer, slot))

    def appointment_cancelled(self, appointment, customer, slot) -> None:
        self.cancelled.append((appointment, customer, slot))


class FailingNotifier:
    def appointment_booked(self, appointment, customer, slot) -> None:
        raise RuntimeError("WhatsApp gateway down")

    def appointment_cancelled(self, appointment, customer, slot) -> None:
        raise RuntimeError("WhatsApp gateway down")


def make_customers(directory, count: int, prefix: str = "310000") -> list:
    """Create ``count`` customers with distinct mobile numbers."""
    return [
        directory.find_or_create(f"{prefix}{index:04d}", f"Cliente {index}")
        for index in range(count)
    ]


def book(store, customer_id: str, slot_id: str, day: date = TOMORROW,
         sample_type: SampleType = SampleType.URINE):
    return store.create(customer_id, day, slot_id, sample_type)


def fill_slot(store, directory, slot_id: str, day: date = TOMORROW, count: int = CAPACITY) -> list:
    """Book ``count`` distinct customers into one (date, slot)."""
    return [
        book(store, customer.id, slot_id, day=day)
        for customer in make_customers(directory, count, prefix="320000")
    ]
