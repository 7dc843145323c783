# Overview: Pytest coverage for the point-of-sale cart.

import pytest

from mercado.services.cart import Cart
from mercado.validation import ValidationError


ARROZ = {"id": 1, "name": "Arroz 5kg", "price_cents": 2599, "image_url": None, "barcode": "789"}
LEITE = {"id": 2, "name": "Leite 1L", "price_cents": 499, "image_url": "leite.png", "barcode": None}


class TestCart:
    def test_add_creates_line_then_increments(self):
        cart = Cart()
        cart.add(ARROZ)
        cart.add(ARROZ)
        cart.add(LEITE, 3)

        assert len(cart) == 2
        assert cart.item_count == 5
        assert cart.total_cents == 2 * 2599 + 3 * 499

    def test_line_keeps_price_snapshot(self):
        product = dict(ARROZ)
        cart = Cart()
        cart.add(product)
        product["price_cents"] = 9999

        assert cart.items[0].price_cents == 2599

    def test_change_quantity_to_zero_removes_line(self):
        cart = Cart()
        cart.add(LEITE)
        cart.change_quantity(2, -1)

        assert cart.is_empty
        assert 2 not in cart

    def test_set_quantity(self):
        cart = Cart()
        cart.add(LEITE)
        cart.set_quantity(2, 4)
        assert cart.items[0].quantity == 4

    def test_set_quantity_unknown_product(self):
        with pytest.raises(ValidationError):
            Cart().set_quantity(99, 1)

    def test_add_rejects_non_positive_quantity(self):
        with pytest.raises(ValidationError):
            Cart().add(ARROZ, 0)

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add(ARROZ)
        cart.add(LEITE)
        cart.remove(1)
        assert [i.id for i in cart.items] == [2]
        cart.clear()
        assert cart.is_empty
        assert cart.total_cents == 0

    def test_to_list(self):
        cart = Cart()
        cart.add(LEITE, 2)
        assert cart.to_list() == [
            {"id": 2, "name": "Leite 1L", "price_cents": 499, "image_url": "leite.png", "quantity": 2}
        ]


class TestFromLines:
    def test_repeated_ids_accumulate(self):
        cart = Cart.from_lines({1: ARROZ}, [{"product_id": 1, "quantity": 2}, {"product_id": 1}])
        assert cart.items[0].quantity == 3

    def test_unknown_product(self):
        with pytest.raises(ValidationError):
            Cart.from_lines({1: ARROZ}, [{"product_id": 5, "quantity": 1}])

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_bad_quantity(self, quantity):
        with pytest.raises(ValidationError):
            Cart.from_lines({1: ARROZ}, [{"product_id": 1, "quantity": quantity}])

    def test_lines_must_be_a_list(self):
        with pytest.raises(ValidationError):
            Cart.from_lines({1: ARROZ}, {"product_id": 1})

