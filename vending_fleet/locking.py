from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator, Set

logger = logging.getLogger(__name__)


class StagingBusyError(Exception):
    pass


class MachineLocks:
    """
    Per-machine exclusion shared by the purchase and commit paths, plus
    exclusive staging claims held by restock sessions.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[int, RLock] = {}
        self._staging_claims: Set[int] = set()

    def for_machine(self, machine_id: int) -> RLock:
        with self._guard:
            lock = self._locks.get(machine_id)
            if lock is None:
                lock = self._locks[machine_id] = RLock()
            return lock

    @contextmanager
    def hold(self, machine_id: int) -> Iterator[None]:
        with self.for_machine(machine_id):
            yield

    def claim_staging(self, machine_id: int) -> None:
        with self._guard:
            if machine_id in self._staging_claims:
                raise StagingBusyError(f"Machine {machine_id} already has an open restock session")
            self._staging_claims.add(machine_id)
        logger.debug("staging claimed for machine %s", machine_id)

    def release_staging(self, machine_id: int) -> None:
        with self._guard:
            self._staging_claims.discard(machine_id)
        logger.debug("staging released for machine %s", machine_id)

    def staging_claimed(self, machine_id: int) -> bool:
        with self._guard:
            return machine_id in self._staging_claims
