from __future__ import annotations

import copy
from enum import Enum
from typing import List, Optional, Tuple

from vending_fleet.ledger import InstructionLedger
from vending_fleet.locking import MachineLocks
from vending_fleet.models import Layout, LayoutMismatchError, Machine, Position, Product, RestockInstruction, as_position
from vending_fleet.store import PersistenceError, Store


class RestockError(Exception):
    pass


class SessionState(Enum):
    PLANNING = "planning"
    READY = "ready"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


class StageOutcome(Enum):
    GOOD = "Good"
    INVALID_LOCATION = "Invalid location"


def diff_layouts(current: Layout, staging: Layout) -> List[Tuple[Position, str, bool]]:
    """
    Work needed to turn `current` into `staging`, as (position, description,
    required) in row-major order.

    Product swaps and removals are required; topping up a slot that already
    holds the right product is optional.
    """
    if not current.same_shape(staging):
        raise LayoutMismatchError(
            f"Cannot diff a {current.rows}x{current.columns}/{current.depth} layout "
            f"against a {staging.rows}x{staging.columns}/{staging.depth} one"
        )

    work: List[Tuple[Position, str, bool]] = []
    for position in staging.positions():
        now = current.slot_at(position)
        planned = staging.slot_at(position)
        if planned.product is None:
            if now.product is not None:
                work.append((position, f"Remove {now.product.name} from slot {position}", True))
        elif not now.holds(planned.product):
            description = f"Load {planned.remaining} x {planned.product.name} into slot {position}"
            if now.product is not None:
                description += f" (take out {now.product.name} first)"
            work.append((position, description, True))
        elif now.remaining != planned.remaining:
            work.append((position, f"Top up {planned.product.name} in slot {position} to {planned.remaining}", False))
    return work


class RestockSession:
    """
    One restocker's pass over a machine.

    Edits go to the staging layout only. The session moves PLANNING -> READY
    once every required instruction is completed, and READY -> COMMITTED when
    the staging layout has been written to the store as the new current
    layout. Leaving without a commit (ABANDONED) puts the staging layout back
    the way it was when the session opened, or when the plan was last saved.
    """

    def __init__(self, store: Store, locks: MachineLocks, machine: Machine):
        machine.check_layouts()
        locks.claim_staging(machine.id)

        self.store = store
        self.locks = locks
        self.machine = machine
        self.ledger = InstructionLedger()
        self.state = SessionState.PLANNING
        self.last_error: Optional[str] = None
        self._saved_staging = machine.staging.copy()
        self.store.log(f"[machine={machine.id}] RESTOCK OPEN")

    def __enter__(self) -> "RestockSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.finished:
            self.abandon()
        return False

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.COMMITTED, SessionState.ABANDONED)

    def _ensure_open(self) -> None:
        if self.finished:
            raise RestockError(f"Restock session for machine {self.machine.id} is {self.state.value}")

    def _update_state(self) -> None:
        self.state = SessionState.PLANNING if self.ledger.required_outstanding() else SessionState.READY

    def _refresh(self) -> List[RestockInstruction]:
        outstanding = self.ledger.reconcile(diff_layouts(self.machine.current, self.machine.staging))
        self._update_state()
        return outstanding

    def list_staging(self) -> List[List[Optional[Product]]]:
        return [[slot.product for slot in row] for row in self.machine.staging.slots]

    def list_products(self) -> List[Product]:
        return self.store.all_products()

    def stage_change(self, position, product: Optional[Product]) -> StageOutcome:
        """Plan `product` (or an empty slot for None) fully stocked at `position`."""
        self._ensure_open()
        pos = as_position(position)
        staging = self.machine.staging
        if pos is None or staging is None or not staging.contains(pos):
            self.store.log(f"[machine={self.machine.id}] STAGE REJECTED: slot={position}")
            return StageOutcome.INVALID_LOCATION

        with self.locks.hold(self.machine.id):
            staging.slot_at(pos).fill(product)
        # checklist is stale until regenerated
        self.state = SessionState.PLANNING
        name = product.name if product is not None else "nothing"
        self.store.log(f"[machine={self.machine.id}] staged {name} at slot={pos}")
        return StageOutcome.GOOD

    def generate_instructions(self) -> List[RestockInstruction]:
        self._ensure_open()
        with self.locks.hold(self.machine.id):
            outstanding = self._refresh()
        self.store.log(f"[machine={self.machine.id}] {len(outstanding)} instruction(s) outstanding")
        return outstanding

    def outstanding(self) -> List[RestockInstruction]:
        return self.ledger.outstanding()

    def complete_instruction(self, instruction_id: int) -> bool:
        self._ensure_open()
        if not self.ledger.complete(instruction_id):
            self.store.log(f"[machine={self.machine.id}] unknown instruction {instruction_id}")
            return False
        self._update_state()
        self.store.log(f"[machine={self.machine.id}] instruction {instruction_id} done: {self.ledger.get(instruction_id).description}")
        return True

    def save_plan(self) -> bool:
        """Persist the staging edits without promoting them."""
        self._ensure_open()
        with self.locks.hold(self.machine.id):
            try:
                self.store.update_machine(self.machine)
            except PersistenceError as e:
                self.last_error = str(e)
                self.store.log(f"[machine={self.machine.id}] PLAN SAVE FAILED: {e}")
                return False
            self._saved_staging = self.machine.staging.copy()
        self.last_error = None
        self.store.log(f"[machine={self.machine.id}] plan saved")
        return True

    def attempt_commit(self) -> bool:
        """
        Promote the staging layout to current.

        Returns False without touching the current layout while required
        instructions are outstanding, or when the store write fails (the
        session then stays READY and the commit can be retried).
        """
        self._ensure_open()
        with self.locks.hold(self.machine.id):
            self._refresh()
            if self.state is not SessionState.READY:
                required = [i.id for i in self.ledger.required_outstanding()]
                self.store.log(f"[machine={self.machine.id}] RESTOCK NOT READY: required instructions {required}")
                return False

            self.machine.check_layouts()
            promoted = self.machine.staging.copy()
            pending = copy.deepcopy(self.machine)
            pending.current = promoted.copy()
            try:
                self.store.update_machine(pending)
            except PersistenceError as e:
                self.last_error = str(e)
                self.store.log(f"[machine={self.machine.id}] RESTOCK COMMIT FAILED: {e}")
                return False

            self.machine.current = promoted
            self.state = SessionState.COMMITTED
            self.store.log(f"[machine={self.machine.id}] RESTOCK COMMITTED")

        self.last_error = None
        self.ledger.clear()
        self.locks.release_staging(self.machine.id)
        return True

    def abandon(self) -> None:
        if self.finished:
            return
        with self.locks.hold(self.machine.id):
            self.machine.staging = self._saved_staging.copy()
        self.state = SessionState.ABANDONED
        self.ledger.clear()
        self.locks.release_staging(self.machine.id)
        self.store.log(f"[machine={self.machine.id}] RESTOCK ABANDONED")


class RestockPlanner:
    def __init__(self, store: Store, locks: MachineLocks):
        self.store = store
        self.locks = locks

    def open_session(self, machine: Machine) -> RestockSession:
        return RestockSession(self.store, self.locks, machine)
