"""
Point-of-sale cart.

Lines hold a by-value snapshot of the product (id, name, price, image) so a
price edit made while a sale is in progress does not change the cart.
Quantities are always positive; a line that reaches zero is removed.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable, Mapping

from ..validation import ValidationError
from .ledger import line_total, cart_total


@dataclass
class CartItem:
    id: int
    name: str
    price_cents: int
    image_url: str | None
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return line_total(self)

    def to_dict(self) -> dict:
        return asdict(self)


def _snapshot(product) -> dict:
    if isinstance(product, Mapping):
        return {
            "id": product["id"],
            "name": product["name"],
            "price_cents": int(product["price_cents"]),
            "image_url": product.get("image_url"),
        }
    return product.snapshot()


class Cart:
    def __init__(self):
        self._lines: dict[int, CartItem] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id) -> bool:
        return product_id in self._lines

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def add(self, product, quantity: int = 1) -> CartItem:
        """Add one unit (or `quantity`), creating the line when absent."""
        if quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        snap = _snapshot(product)
        line = self._lines.get(snap["id"])
        if line is None:
            line = CartItem(quantity=quantity, **snap)
            self._lines[snap["id"]] = line
        else:
            line.quantity += quantity
        return line

    def set_quantity(self, product_id: int, quantity: int) -> None:
        if product_id not in self._lines:
            raise ValidationError("Product is not in the cart")
        if quantity <= 0:
            self.remove(product_id)
        else:
            self._lines[product_id].quantity = quantity

    def change_quantity(self, product_id: int, delta: int) -> None:
        """+1 / -1 buttons; the line disappears when it reaches zero."""
        line = self._lines.get(product_id)
        if line is None:
            raise ValidationError("Product is not in the cart")
        self.set_quantity(product_id, line.quantity + delta)

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def items(self) -> list[CartItem]:
        return list(self._lines.values())

    @property
    def total_cents(self) -> int:
        return cart_total(self._lines.values())

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def to_list(self) -> list[dict]:
        return [line.to_dict() for line in self._lines.values()]

    @classmethod
    def from_lines(cls, products_by_id: Mapping, lines: Iterable) -> "Cart":
        """
        Build a cart from request lines [{"product_id", "quantity"}, ...].

        Unknown product ids and non-positive or non-integer quantities raise
        ValidationError. Repeated ids accumulate.
        """
        if lines is None or isinstance(lines, (str, bytes, Mapping)):
            raise ValidationError("items must be a list")

        cart = cls()
        for raw in lines:
            if not isinstance(raw, Mapping):
                raise ValidationError("each item must be an object")
            product_id = raw.get("product_id")
            quantity = raw.get("quantity", 1)
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError("quantity must be a positive integer")
            product = products_by_id.get(product_id)
            if product is None:
                raise ValidationError(f"Unknown product: {product_id}")
            cart.add(product, quantity)
        return cart
