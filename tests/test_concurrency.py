"""Concurrent writers against one (date, time slot) never exceed capacity."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from labvisit.db import Database
from labvisit.exceptions import SlotFull
from labvisit.schemas.booking_schema import SampleType
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.customer import CustomerDirectory
from labvisit.tools.slots import SlotCatalog
from tests.helpers import TOMORROW, make_customers


class TestConcurrentCreate:
    def test_exactly_capacity_writers_succeed(self, tmp_path, clock):
        database = Database(f"sqlite:///{tmp_path / 'race.db'}", timeout_seconds=10)
        database.init_schema()
        try:
            slot = SlotCatalog(database).ensure_default_slot("05:30", "06:30")[0]
            directory = CustomerDirectory(database, clock)
            store = AppointmentStore(database, clock, capacity=3, base_price=20000)
            customers = make_customers(directory, 10)

            def attempt(customer):
                try:
                    return store.create(customer.id, TOMORROW, slot.id, SampleType.URINE)
                except SlotFull:
                    return None

            with ThreadPoolExecutor(max_workers=10) as pool:
                results = list(pool.map(attempt, customers))

            assert sum(1 for r in results if r is not None) == 3
            assert store.count_booked(TOMORROW, TOMORROW)[(TOMORROW, slot.id)] == 3
        finally:
            database.close()


class TestWritersOnSeparateDatabases:
    """Two stores with their own engines share one SQLite file, like two worker processes."""

    def test_one_seat_goes_to_one_writer(self, tmp_path, clock):
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        first_db = Database(url, timeout_seconds=10)
        second_db = Database(url, timeout_seconds=10)
        first_db.init_schema()
        try:
            slot = SlotCatalog(first_db).ensure_default_slot("05:30", "06:30")[0]
            customers = make_customers(CustomerDirectory(first_db, clock), 2)
            stores = [
                AppointmentStore(first_db, clock, capacity=1, base_price=20000),
                AppointmentStore(second_db, clock, capacity=1, base_price=20000),
            ]
            for store in stores:
                counted = store._count_occupying

                def slow_count(*args, _counted=counted):
                    booked = _counted(*args)
                    time.sleep(0.3)
                    return booked

                store._count_occupying = slow_count

            outcomes = []
            start = threading.Barrier(2)

            def attempt(store, customer):
                start.wait()
                try:
                    store.create(customer.id, TOMORROW, slot.id, SampleType.URINE)
                    outcomes.append("booked")
                except SlotFull:
                    outcomes.append("full")

            threads = [
                threading.Thread(target=attempt, args=pair) for pair in zip(stores, customers)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert sorted(outcomes) == ["booked", "full"]
            assert stores[1].count_booked(TOMORROW, TOMORROW)[(TOMORROW, slot.id)] == 1
        finally:
            first_db.close()
            second_db.close()
