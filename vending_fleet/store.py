from __future__ import annotations

import copy
import logging
from typing import Dict, Iterable, List, Optional, Set

from vending_fleet.models import Customer, Location, Machine, Product, Transaction

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    pass


class Store:
    """
    In-memory persistence collaborator.

    Every write stores a deep copy, so what the store holds and what the
    caller holds can disagree; that is exactly what the purchase and commit
    paths have to keep in sync.

    `fail_on` names store operations that should raise PersistenceError,
    e.g. {"update_machine"}. Used by tests and the demo scripts.
    """

    def __init__(self, fail_on: Optional[Iterable[str]] = None) -> None:
        self.machines: Dict[int, Machine] = {}
        self.customers: Dict[int, Customer] = {}
        self.products: Dict[int, Product] = {}
        self.transactions: List[Transaction] = []

        self.fail_on: Set[str] = set(fail_on or ())
        self.logs: List[str] = []

    def log(self, message: str) -> None:
        self.logs.append(message)
        logger.info(message)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            logger.error("store operation %s failed", operation)
            raise PersistenceError(f"Store operation {operation} failed")

    # Persistence operations
    def update_transaction(self, transaction: Transaction) -> None:
        self._check("update_transaction")
        self.transactions.append(transaction)

    def update_customer(self, customer: Customer) -> None:
        self._check("update_customer")
        if customer.id is None:
            raise PersistenceError("Cash customers have no record to update")
        self.customers[customer.id] = copy.deepcopy(customer)

    def update_machine(self, machine: Machine) -> None:
        self._check("update_machine")
        self.machines[machine.id] = copy.deepcopy(machine)

    def transactions_for_customer(self, customer: Customer) -> List[Transaction]:
        self._check("transactions_for_customer")
        if customer.id is None:
            return []
        return [t for t in self.transactions if t.customer_id == customer.id]

    def all_products(self) -> List[Product]:
        self._check("all_products")
        return sorted(self.products.values(), key=lambda p: p.id)

    def fetch_machine(self, machine_id: int) -> Machine:
        self._check("fetch_machine")
        machine = self.machines.get(machine_id)
        if machine is None:
            raise PersistenceError(f"Machine {machine_id} not found")
        return copy.deepcopy(machine)

    def fetch_customer(self, customer_id: int) -> Customer:
        self._check("fetch_customer")
        customer = self.customers.get(customer_id)
        if customer is None:
            raise PersistenceError(f"Customer {customer_id} not found")
        return copy.deepcopy(customer)

    def active_machines(self) -> List[Machine]:
        self._check("active_machines")
        return [copy.deepcopy(m) for _, m in sorted(self.machines.items()) if m.active]

    # Seed helpers for tests and demos
    def add_product(self, product_id: int, name: str, price: int, active: bool = True) -> Product:
        product = Product(id=product_id, name=name, price=price, active=active)
        self.products[product_id] = product
        return product

    def add_customer(self, customer_id: int, name: str, balance: int) -> Customer:
        self.customers[customer_id] = Customer(name=name, balance=balance, id=customer_id)
        return copy.deepcopy(self.customers[customer_id])

    def add_machine(
        self,
        machine_id: int,
        rows: int,
        columns: int,
        depth: int,
        location: Optional[Location] = None,
        active: bool = True,
    ) -> Machine:
        machine = Machine.build(machine_id, rows, columns, depth, location=location or Location(), active=active)
        self.machines[machine_id] = machine
        return copy.deepcopy(machine)
