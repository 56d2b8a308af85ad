from __future__ import annotations

import argparse
import logging

from vending_fleet.display import format_money, render_layout
from vending_fleet.locking import MachineLocks
from vending_fleet.models import Customer, Position
from vending_fleet.purchase import PurchaseProcessor
from vending_fleet.store import Store


def seed(store: Store) -> None:
    chips = store.add_product(1, "Chips", price=150)
    soda = store.add_product(2, "Soda", price=125)
    store.add_product(3, "Gum", price=50, active=False)

    store.add_customer(1, "Krutz", balance=1000)
    store.add_customer(2, "Lane", balance=100)

    store.add_machine(1, rows=2, columns=2, depth=5)
    machine = store.machines[1]
    machine.current.slot_at(Position(0, 0)).fill(chips)
    machine.current.slot_at(Position(0, 0)).set_remaining(3)
    machine.current.slot_at(Position(0, 1)).fill(soda)
    machine.current.slot_at(Position(1, 0)).fill(store.products[3])
    machine.staging = machine.current.copy()


def main() -> None:
    p = argparse.ArgumentParser(description="Run one purchase against a demo machine and print the logs.")
    p.add_argument("--machine-id", type=int, default=1)
    p.add_argument("--customer-id", type=int, default=1, help="0 for an anonymous cash customer")
    p.add_argument("--cash", type=int, default=0, help="Cents inserted by a cash customer")
    p.add_argument("--row", type=int, default=0)
    p.add_argument("--col", type=int, default=0)
    p.add_argument("--product-id", type=int, default=None, help="Buy by product instead of by slot")
    p.add_argument("--fail-at", type=str, default=None, help="Store operation to fail (e.g. update_machine)")
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    store = Store()
    seed(store)
    if args.fail_at:
        store.fail_on.add(args.fail_at)

    machine = store.fetch_machine(args.machine_id)
    if args.customer_id == 0:
        customer = Customer.cash()
        customer.add_funds(args.cash)
    else:
        customer = store.fetch_customer(args.customer_id)

    processor = PurchaseProcessor(store, MachineLocks())
    print(render_layout(processor.list_layout(machine)))

    if args.product_id is not None:
        product = store.products.get(args.product_id)
        if product is None:
            p.error(f"unknown product id {args.product_id}")
        result = processor.purchase_product(machine, customer, product)
    else:
        result = processor.attempt_purchase(machine, customer, (args.row, args.col))

    print("\n=== RESULT ===")
    print("outcome:", result.outcome.value)
    print("product:", result.product.name if result.product else None)
    print("balance:", format_money(processor.balance(customer)))
    print("favourites:", [p.name for p in processor.most_frequently_purchased(machine, customer)])


if __name__ == "__main__":
    main()
