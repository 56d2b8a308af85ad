from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, NamedTuple, Optional


CASH_NAME = "Anonymous"


class LayoutMismatchError(Exception):
    pass


class Position(NamedTuple):
    row: int
    column: int

    def __str__(self) -> str:
        return f"({self.row}, {self.column})"


def as_position(value) -> Optional[Position]:
    """Coerce a (row, column) pair into a Position; None if it is not one."""
    try:
        row, column = value
    except (TypeError, ValueError):
        return None
    if type(row) is not int or type(column) is not int:
        return None
    return Position(row, column)


@dataclass(frozen=True, slots=True)
class Product:
    """
    Catalogue entry. Prices are integer minor-currency units (cents).

    Instances are immutable: a price or active-flag change is stored as a new
    instance with the same id.
    """

    id: int
    name: str
    price: int
    active: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Product name must not be empty")
        if not isinstance(self.price, int) or self.price < 0:
            raise ValueError(f"Price must be a non-negative integer, got {self.price!r}")


@dataclass(slots=True)
class Slot:
    position: Position
    depth: int
    product: Optional[Product] = None
    remaining: int = 0

    def __post_init__(self) -> None:
        self.set_remaining(self.remaining)

    def is_empty(self) -> bool:
        return self.product is None

    def set_remaining(self, quantity: int) -> None:
        if quantity < 0 or quantity > self.depth:
            raise ValueError(f"Quantity must be within 0..{self.depth}, got {quantity}")
        self.remaining = quantity

    def fill(self, product: Optional[Product]) -> None:
        # an empty slot carries no quantity
        self.product = product
        self.remaining = self.depth if product is not None else 0

    def take_one(self) -> None:
        if self.remaining <= 0:
            raise ValueError(f"Slot {self.position} is sold out")
        self.remaining -= 1

    def holds(self, product: Optional[Product]) -> bool:
        if self.product is None or product is None:
            return self.product is None and product is None
        return self.product.id == product.id


@dataclass(slots=True)
class Layout:
    """Rectangular grid of slots; every slot shares the layout's depth."""

    depth: int
    slots: List[List[Slot]]

    def __post_init__(self) -> None:
        if self.depth <= 0:
            raise ValueError("Layout depth must be positive")
        widths = {len(row) for row in self.slots}
        if len(widths) > 1:
            raise LayoutMismatchError(f"Layout rows differ in width: {sorted(widths)}")

    @classmethod
    def empty(cls, rows: int, columns: int, depth: int) -> "Layout":
        if rows <= 0 or columns <= 0:
            raise ValueError("Layout must have at least one row and one column")
        return cls(
            depth=depth,
            slots=[[Slot(Position(r, c), depth) for c in range(columns)] for r in range(rows)],
        )

    @property
    def rows(self) -> int:
        return len(self.slots)

    @property
    def columns(self) -> int:
        return len(self.slots[0]) if self.slots else 0

    def contains(self, position) -> bool:
        row, column = position
        return 0 <= row < self.rows and 0 <= column < self.columns

    def slot_at(self, position) -> Slot:
        if not self.contains(position):
            raise IndexError(f"Position {tuple(position)} is outside a {self.rows}x{self.columns} layout")
        row, column = position
        return self.slots[row][column]

    def positions(self) -> Iterator[Position]:
        for r in range(self.rows):
            for c in range(self.columns):
                yield Position(r, c)

    def iter_slots(self) -> Iterator[Slot]:
        for row in self.slots:
            yield from row

    def same_shape(self, other: "Layout") -> bool:
        return (self.rows, self.columns, self.depth) == (other.rows, other.columns, other.depth)

    def copy(self) -> "Layout":
        return copy.deepcopy(self)


@dataclass(slots=True)
class Location:
    nickname: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


@dataclass(slots=True)
class Machine:
    """
    A vending machine with two independently addressable layouts.

    `current` is what customers buy from; `staging` is what restockers edit.
    Both must always have the same rows, columns and depth.
    """

    id: int
    current: Layout
    staging: Layout
    location: Location = field(default_factory=Location)
    active: bool = True

    def __post_init__(self) -> None:
        self.check_layouts()

    @classmethod
    def build(cls, machine_id: int, rows: int, columns: int, depth: int, **kwargs) -> "Machine":
        return cls(
            id=machine_id,
            current=Layout.empty(rows, columns, depth),
            staging=Layout.empty(rows, columns, depth),
            **kwargs,
        )

    def check_layouts(self) -> None:
        if not self.current.same_shape(self.staging):
            raise LayoutMismatchError(
                f"Machine {self.id}: current is {self.current.rows}x{self.current.columns}/{self.current.depth}, "
                f"staging is {self.staging.rows}x{self.staging.columns}/{self.staging.depth}"
            )


@dataclass(slots=True)
class Customer:
    name: str
    balance: int = 0
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Customer name must not be empty")
        if self.balance < 0:
            raise ValueError("Balance must not be negative")

    @classmethod
    def cash(cls) -> "Customer":
        """Anonymous customer paying with inserted cash; starts with no funds."""
        return cls(name=CASH_NAME, balance=0, id=None)

    @property
    def is_cash(self) -> bool:
        return self.id is None

    def add_funds(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot add a negative amount")
        self.balance += amount


@dataclass(frozen=True, slots=True)
class Transaction:
    timestamp: datetime
    machine_id: int
    customer_id: Optional[int]
    product: Product
    position: Position


@dataclass(frozen=True, slots=True)
class RestockInstruction:
    id: int
    description: str
    required: bool
    position: Position
