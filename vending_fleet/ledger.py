from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Set, Tuple

from vending_fleet.models import Customer, Machine, Position, Product, RestockInstruction, Transaction
from vending_fleet.store import Store

logger = logging.getLogger(__name__)


class TransactionLedger:
    """Append-only purchase history backed by the store."""

    def __init__(self, store: Store):
        self.store = store

    def record(self, transaction: Transaction) -> None:
        self.store.update_transaction(transaction)
        self.store.log(
            f"[machine={transaction.machine_id}] transaction recorded: product={transaction.product.name} "
            f"slot={transaction.position} customer={transaction.customer_id}"
        )

    def most_frequently_purchased(self, machine: Machine, customer: Customer) -> List[Product]:
        """
        Products the customer bought most often, most popular first.

        Only products still in stock somewhere in the machine's current layout
        are returned. Equal counts are ordered by product id.
        """
        stocked: Dict[int, Product] = {}
        for slot in machine.current.iter_slots():
            if slot.product is not None and slot.remaining > 0:
                stocked.setdefault(slot.product.id, slot.product)

        counts = Counter(
            t.product.id for t in self.store.transactions_for_customer(customer) if t.product.id in stocked
        )
        ranked = sorted(counts, key=lambda product_id: (-counts[product_id], product_id))
        return [stocked[product_id] for product_id in ranked]


class InstructionLedger:
    """
    Numbered restock instructions for one session.

    Ids start at 1 and are never handed out twice. Regenerating the checklist
    keeps the id (and completion) of an instruction whose position and
    description did not change.
    """

    def __init__(self) -> None:
        self._next_id = 1
        self._instructions: Dict[int, RestockInstruction] = {}
        self._completed: Set[int] = set()

    def reconcile(self, wanted: Iterable[Tuple[Position, str, bool]]) -> List[RestockInstruction]:
        known = {(i.position, i.description): i for i in self._instructions.values()}
        fresh: Dict[int, RestockInstruction] = {}
        for position, description, required in wanted:
            existing = known.get((position, description))
            if existing is not None and existing.required == required:
                fresh[existing.id] = existing
                continue
            instruction = RestockInstruction(id=self._next_id, description=description, required=required, position=position)
            self._next_id += 1
            fresh[instruction.id] = instruction

        dropped = set(self._instructions) - set(fresh)
        if dropped:
            logger.debug("dropping instructions no longer needed: %s", sorted(dropped))
        self._instructions = fresh
        self._completed &= set(fresh)
        return self.outstanding()

    def complete(self, instruction_id: int) -> bool:
        if instruction_id not in self._instructions or instruction_id in self._completed:
            return False
        self._completed.add(instruction_id)
        return True

    def get(self, instruction_id: int) -> RestockInstruction:
        return self._instructions[instruction_id]

    def outstanding(self) -> List[RestockInstruction]:
        return [i for _, i in sorted(self._instructions.items()) if i.id not in self._completed]

    def required_outstanding(self) -> List[RestockInstruction]:
        return [i for i in self.outstanding() if i.required]

    def clear(self) -> None:
        self._instructions.clear()
        self._completed.clear()
