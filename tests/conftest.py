"""Shared test fixtures."""

import pytest

from labvisit.config import AppConfig, ServiceConfig
from labvisit.db import Database
from labvisit.engine import SchedulingEngine
from labvisit.tools.availability import AvailabilityCalculator
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.cancellation import CancellationPolicy
from labvisit.tools.customer import CustomerDirectory
from labvisit.tools.slots import SlotCatalog
from tests.helpers import BASE_PRICE, CAPACITY, NOW, VALID_ADDRESS, FixedClock, RecordingNotifier


@pytest.fixture
def config():
    return AppConfig(
        service=ServiceConfig(
            name="Laboratorio de prueba",
            base_price=BASE_PRICE,
            slot_capacity=CAPACITY,
            default_slot_start="05:30",
            default_slot_end="06:30",
        )
    )


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def catalog(database):
    slots = SlotCatalog(database)
    slots.ensure_default_slot("05:30", "06:30")
    return slots


@pytest.fixture
def slot(catalog):
    return catalog.list_active_slots()[0]


@pytest.fixture
def directory(database, clock):
    return CustomerDirectory(database, clock)


@pytest.fixture
def store(database, clock):
    return AppointmentStore(database, clock, capacity=CAPACITY, base_price=BASE_PRICE)


@pytest.fixture
def availability(catalog, store, clock):
    return AvailabilityCalculator(catalog, store, clock)


@pytest.fixture
def policy(store, catalog):
    return CancellationPolicy(store, catalog, min_notice_minutes=120)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(config, database, catalog, directory, store, availability, policy, notifier, clock):
    return SchedulingEngine(
        config=config,
        database=database,
        catalog=catalog,
        directory=directory,
        store=store,
        availability=availability,
        policy=policy,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def customer(directory):
    """First-contact customer without an address."""
    return directory.find_or_create("+57 315 555 1234", "María Fernanda")


@pytest.fixture
def customer_with_address(directory):
    created = directory.find_or_create("3169876543", "Jorge Ramírez")
    return directory.update_address(created.id, VALID_ADDRESS)
