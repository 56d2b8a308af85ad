from __future__ import annotations

import copy
from dataclasses import replace

from vending_fleet.models import Customer, Machine, Position
from vending_fleet.store import Store


def _who(customer: Customer) -> str:
    return "cash" if customer.is_cash else str(customer.id)


class BillingService:
    """
    Balance changes. The store is written first; the in-memory customer only
    changes once that write went through.
    """

    def __init__(self, store: Store):
        self.store = store

    def debit_balance(self, machine_id: int, customer: Customer, amount: int) -> None:
        if customer.balance < amount:
            raise ValueError(f"Insufficient balance for customer {_who(customer)}: have={customer.balance}, need={amount}")
        new_balance = customer.balance - amount
        # cash customers have no stored record
        if not customer.is_cash:
            self.store.update_customer(replace(customer, balance=new_balance))
        customer.balance = new_balance
        self.store.log(f"[machine={machine_id}] debited customer={_who(customer)} amount={amount} (balance={customer.balance})")

    def refund_balance(self, machine_id: int, customer: Customer, amount: int) -> None:
        customer.balance += amount
        if not customer.is_cash:
            self.store.update_customer(customer)
        self.store.log(f"[machine={machine_id}] refunded customer={_who(customer)} amount={amount} (balance={customer.balance})")


class StockService:
    """
    Slot quantity changes on a machine's current layout.

    Machine writes keep whatever staging layout the store already holds, so
    an open restock session's unsaved edits never reach the store from here.
    """

    def __init__(self, store: Store):
        self.store = store

    def _pending(self, machine: Machine) -> Machine:
        pending = copy.deepcopy(machine)
        stored = self.store.machines.get(machine.id)
        if stored is not None:
            pending.staging = stored.staging.copy()
        return pending

    def take_unit(self, machine: Machine, position: Position) -> None:
        pending = self._pending(machine)
        pending.current.slot_at(position).take_one()
        self.store.update_machine(pending)

        slot = machine.current.slot_at(position)
        slot.take_one()
        self.store.log(f"[machine={machine.id}] stock taken: slot={position} (remaining={slot.remaining})")

    def return_unit(self, machine: Machine, position: Position) -> None:
        slot = machine.current.slot_at(position)
        slot.set_remaining(slot.remaining + 1)
        self.store.update_machine(self._pending(machine))
        self.store.log(f"[machine={machine.id}] stock returned: slot={position} (remaining={slot.remaining})")
