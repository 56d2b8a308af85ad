"""Pytest fixtures: a 2x2, depth-5 machine with a small catalogue."""

import pytest

from vending_fleet.locking import MachineLocks
from vending_fleet.models import Machine, Position
from vending_fleet.purchase import PurchaseProcessor
from vending_fleet.restock import RestockPlanner
from vending_fleet.store import Store


@pytest.fixture
def store() -> Store:
    store = Store()

    store.add_product(1, "Chips", price=150)
    store.add_product(2, "Soda", price=125)
    store.add_product(3, "Gum", price=50, active=False)
    store.add_product(4, "Candy", price=100)

    store.add_customer(1, "Krutz", balance=200)
    store.add_customer(2, "Lane", balance=100)
    store.add_customer(3, "Rich", balance=10_000)

    return store


@pytest.fixture
def locks() -> MachineLocks:
    return MachineLocks()


@pytest.fixture
def machine(store: Store) -> Machine:
    machine = store.add_machine(1, rows=2, columns=2, depth=5)

    chips = machine.current.slot_at(Position(0, 0))
    chips.fill(store.products[1])
    chips.set_remaining(3)
    machine.current.slot_at(Position(0, 1)).fill(store.products[2])
    machine.current.slot_at(Position(1, 0)).fill(store.products[3])  # inactive
    # (1, 1) stays empty

    machine.staging = machine.current.copy()
    store.update_machine(machine)
    return machine


@pytest.fixture
def processor(store: Store, locks: MachineLocks) -> PurchaseProcessor:
    return PurchaseProcessor(store, locks)


@pytest.fixture
def planner(store: Store, locks: MachineLocks) -> RestockPlanner:
    return RestockPlanner(store, locks)


@pytest.fixture
def krutz(store: Store):
    return store.fetch_customer(1)


@pytest.fixture
def lane(store: Store):
    return store.fetch_customer(2)


@pytest.fixture
def rich(store: Store):
    return store.fetch_customer(3)
