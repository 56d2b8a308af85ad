from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from vending_fleet.ledger import TransactionLedger
from vending_fleet.locking import MachineLocks
from vending_fleet.models import Customer, Layout, Machine, Position, Product, Transaction, as_position
from vending_fleet.services import BillingService, StockService
from vending_fleet.store import PersistenceError, Store


class PurchaseOutcome(Enum):
    GOOD = "Good"
    INVALID_LOCATION = "Invalid location"
    NO_PRODUCT = "No product"
    SOLD_OUT = "Item sold out"
    ITEM_INACTIVE = "Item inactive"
    INSUFFICIENT_FUNDS = "Insufficient funds"
    ITEM_NOT_FOUND = "Item not found"
    PERSISTENCE_ERROR = "Persistence error"


@dataclass(slots=True)
class PurchaseResult:
    outcome: PurchaseOutcome
    product: Optional[Product] = None
    transaction: Optional[Transaction] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is PurchaseOutcome.GOOD


class Step(ABC):
    def __init__(self, store: Store, machine_id: int):
        self.store = store
        self.machine_id = machine_id

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def execute(self) -> None: ...

    @abstractmethod
    def compensate(self) -> None: ...

    def run(self) -> None:
        self.store.log(f"[machine={self.machine_id}] STEP {self.name()}")
        self.execute()
        self.store.log(f"[machine={self.machine_id}] STEP {self.name()} OK")

    def run_compensation(self) -> None:
        self.store.log(f"[machine={self.machine_id}] COMPENSATE {self.name()}")
        self.compensate()
        self.store.log(f"[machine={self.machine_id}] COMPENSATE {self.name()} OK")


class DebitBalance(Step):
    def __init__(self, store: Store, machine_id: int, customer: Customer, amount: int):
        super().__init__(store, machine_id)
        self.customer = customer
        self.amount = amount
        self.service = BillingService(store)

    def name(self) -> str:
        return "DebitBalance"

    def execute(self) -> None:
        self.service.debit_balance(self.machine_id, self.customer, self.amount)

    def compensate(self) -> None:
        self.service.refund_balance(self.machine_id, self.customer, self.amount)


class DecrementStock(Step):
    def __init__(self, store: Store, machine: Machine, position: Position):
        super().__init__(store, machine.id)
        self.machine = machine
        self.position = position
        self.service = StockService(store)

    def name(self) -> str:
        return "DecrementStock"

    def execute(self) -> None:
        self.service.take_unit(self.machine, self.position)

    def compensate(self) -> None:
        self.service.return_unit(self.machine, self.position)


class RecordTransaction(Step):
    def __init__(self, store: Store, transaction: Transaction):
        super().__init__(store, transaction.machine_id)
        self.transaction = transaction
        self.ledger = TransactionLedger(store)

    def name(self) -> str:
        return "RecordTransaction"

    def execute(self) -> None:
        self.ledger.record(self.transaction)

    def compensate(self) -> None:
        # Last step: if it ran, the purchase went through.
        self.store.log(f"[machine={self.machine_id}] transaction has no compensation")


class PurchaseProcessor:
    """
    Customer-facing operations on a machine's current layout.

    A successful purchase debits the balance, takes one unit from the slot and
    records a transaction. If any of those writes fails, the completed ones are
    compensated in reverse order and PERSISTENCE_ERROR is returned.
    """

    def __init__(self, store: Store, locks: MachineLocks, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.locks = locks
        self.clock = clock
        self.ledger = TransactionLedger(store)

    def _validate(self, layout: Layout, customer: Customer, position: Optional[Position]) -> Tuple[Optional[PurchaseOutcome], Optional[Product]]:
        if position is None or not layout.contains(position):
            return PurchaseOutcome.INVALID_LOCATION, None
        slot = layout.slot_at(position)
        if slot.product is None:
            return PurchaseOutcome.NO_PRODUCT, None
        if slot.remaining <= 0:
            return PurchaseOutcome.SOLD_OUT, slot.product
        if not slot.product.active:
            return PurchaseOutcome.ITEM_INACTIVE, slot.product
        if customer.balance < slot.product.price:
            return PurchaseOutcome.INSUFFICIENT_FUNDS, slot.product
        return None, slot.product

    def attempt_purchase(self, machine: Machine, customer: Customer, position) -> PurchaseResult:
        with self.locks.hold(machine.id):
            pos = as_position(position)
            self.store.log(f"[machine={machine.id}] PURCHASE START customer={customer.name} slot={position}")

            failure, product = self._validate(machine.current, customer, pos)
            if failure is not None:
                self.store.log(f"[machine={machine.id}] PURCHASE REJECTED: {failure.value}")
                return PurchaseResult(outcome=failure, product=product)

            transaction = Transaction(
                timestamp=self.clock(),
                machine_id=machine.id,
                customer_id=customer.id,
                product=product,
                position=pos,
            )
            steps: List[Step] = [
                DebitBalance(self.store, machine.id, customer, product.price),
                DecrementStock(self.store, machine, pos),
                RecordTransaction(self.store, transaction),
            ]

            completed: List[Step] = []
            try:
                for step in steps:
                    step.run()
                    completed.append(step)
            except PersistenceError as e:
                self.store.log(f"[machine={machine.id}] PURCHASE FAILED: {e}")
                for step in reversed(completed):
                    try:
                        step.run_compensation()
                    except PersistenceError as comp_exc:
                        self.store.log(f"[machine={machine.id}] COMPENSATION FAILED at {step.name()}: {comp_exc}")
                return PurchaseResult(outcome=PurchaseOutcome.PERSISTENCE_ERROR, product=product, error=str(e))

            self.store.log(f"[machine={machine.id}] PURCHASE OK product={product.name} balance={customer.balance}")
            return PurchaseResult(outcome=PurchaseOutcome.GOOD, product=product, transaction=transaction)

    def purchase_product(self, machine: Machine, customer: Customer, product: Product) -> PurchaseResult:
        """Buy `product` from the first slot that still has one."""
        with self.locks.hold(machine.id):
            for slot in machine.current.iter_slots():
                if slot.remaining > 0 and slot.holds(product):
                    return self.attempt_purchase(machine, customer, slot.position)
            self.store.log(f"[machine={machine.id}] PURCHASE REJECTED: {PurchaseOutcome.ITEM_NOT_FOUND.value} product={product.name}")
            return PurchaseResult(outcome=PurchaseOutcome.ITEM_NOT_FOUND, product=product)

    def list_layout(self, machine: Machine) -> List[List[Optional[Product]]]:
        """Product grid as customers see it: sold-out and inactive slots are None."""
        with self.locks.hold(machine.id):
            return [
                [
                    slot.product if slot.product is not None and slot.remaining > 0 and slot.product.active else None
                    for slot in row
                ]
                for row in machine.current.slots
            ]

    def balance(self, customer: Customer) -> int:
        return customer.balance

    def most_frequently_purchased(self, machine: Machine, customer: Customer) -> List[Product]:
        with self.locks.hold(machine.id):
            return self.ledger.most_frequently_purchased(machine, customer)
