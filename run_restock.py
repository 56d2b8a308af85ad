from __future__ import annotations

import argparse
import logging
from typing import List, Tuple

from vending_fleet.display import render_instructions, render_layout
from vending_fleet.locking import MachineLocks
from vending_fleet.models import Position
from vending_fleet.restock import RestockPlanner, StageOutcome
from vending_fleet.store import Store

from run_purchase import seed


def parse_stage(value: str) -> Tuple[Position, int]:
    """"row,col,product_id" with product_id 0 meaning an empty slot."""
    try:
        row, col, product_id = (int(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected row,col,product_id, got {value!r}")
    return Position(row, col), product_id


def main() -> None:
    p = argparse.ArgumentParser(description="Stage layout changes on a demo machine, work the checklist and commit.")
    p.add_argument("--machine-id", type=int, default=None, help="Defaults to the first active machine")
    p.add_argument("--stage", type=parse_stage, action="append", default=[], help="row,col,product_id (0 empties the slot)")
    p.add_argument("--complete", type=int, action="append", default=None, help="Instruction id to mark done; all if omitted")
    p.add_argument("--abandon", action="store_true", help="Leave without committing")
    p.add_argument("--fail-at", type=str, default=None, help="Store operation to fail (e.g. update_machine)")
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    store = Store()
    seed(store)

    machines = store.active_machines()
    for m in machines:
        print(f"machine {m.id}: {m.location.nickname or 'unnamed'} {m.current.rows}x{m.current.columns}")
    machine_id = args.machine_id if args.machine_id is not None else machines[0].id
    machine = store.fetch_machine(machine_id)

    if args.fail_at:
        store.fail_on.add(args.fail_at)

    with RestockPlanner(store, MachineLocks()).open_session(machine) as session:
        stages: List[Tuple[Position, int]] = args.stage
        for position, product_id in stages:
            product = store.products.get(product_id) if product_id else None
            if product_id and product is None:
                print(f"unknown product {product_id}, slot {position} left as planned")
                continue
            if session.stage_change(position, product) is not StageOutcome.GOOD:
                print(f"cannot stage slot {position}")

        instructions = session.generate_instructions()
        print("\n=== INSTRUCTIONS ===")
        print(render_instructions(instructions))

        done = args.complete if args.complete is not None else [i.id for i in instructions]
        for instruction_id in done:
            session.complete_instruction(instruction_id)

        if args.abandon:
            session.abandon()
        elif session.attempt_commit():
            print("\nRestocking completed.")
        else:
            print(f"\nRestocking not yet complete ({session.last_error or 'required tasks outstanding'}).")

    print("\n=== CURRENT LAYOUT ===")
    print(render_layout([[s.product for s in row] for row in machine.current.slots], hide_inactive=False))


if __name__ == "__main__":
    main()
