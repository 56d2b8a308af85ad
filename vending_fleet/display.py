from __future__ import annotations

from typing import List, Optional, Sequence

from vending_fleet.models import Product, RestockInstruction


def format_money(amount: int) -> str:
    """Cents to dollars, e.g. 150 -> "$1.50"."""
    sign = "-" if amount < 0 else ""
    dollars, cents = divmod(abs(amount), 100)
    return f"{sign}${dollars}.{cents:02d}"


def render_layout(grid: Sequence[Sequence[Optional[Product]]], hide_inactive: bool = True) -> str:
    lines: List[str] = []
    for r, row in enumerate(grid):
        names = []
        prices = []
        for c, product in enumerate(row):
            if product is None:
                name, price = "EMPTY", ""
            elif product.active:
                name, price = product.name, format_money(product.price)
            elif hide_inactive:
                name, price = "INACTIVE", ""
            else:
                name, price = product.name, "(INACTIVE)"
            names.append(f"({r}, {c}) {name:<10}")
            prices.append(f"{'':7}{price:>10}")
        lines.append(" ".join(names))
        lines.append(" ".join(prices))
        lines.append("")
    return "\n".join(lines)


def render_instructions(instructions: Sequence[RestockInstruction]) -> str:
    lines = []
    for instruction in instructions:
        line = f"{instruction.id}: {instruction.description}"
        if instruction.required:
            line += "\tREQUIRED"
        lines.append(line)
    return "\n".join(lines)
