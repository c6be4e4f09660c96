"""
Stock primitive tests.

Verifies the on-hand quantity only moves through decrement / increment /
adjust_stock and never drops below zero.
"""

import pytest

from duka.errors import InsufficientStockError, NotFoundError
from duka.services import stock_service
from duka.services.stock_service import adjust_stock, can_delete
from duka.validation import ValidationError


class TestStockPrimitives:

    def test_decrement_exact_stock_reaches_zero(self, db_session, product):
        stock_service.decrement_stock(product, 10)
        assert product.stock_quantity == 0

    def test_decrement_beyond_stock_refused(self, db_session, product):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.decrement_stock(product, 11)
        assert exc.value.details == {
            "product_id": product.id,
            "requested_quantity": 11,
            "on_hand": 10,
        }
        assert product.stock_quantity == 10

    def test_increment_has_no_upper_bound(self, db_session, product):
        stock_service.increment_stock(product, 10_000)
        assert product.stock_quantity == 10_010

    @pytest.mark.parametrize("quantity", [0, -1, True, "3"])
    def test_quantity_must_be_positive_int(self, db_session, product, quantity):
        with pytest.raises(ValidationError):
            stock_service.decrement_stock(product, quantity)
        with pytest.raises(ValidationError):
            stock_service.increment_stock(product, quantity)

    def test_lock_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.lock_product("missing")


class TestAdjustStock:

    def test_restock_and_shrinkage(self, db_session, product, stock_of):
        pid = product.id

        adjust_stock(pid, 15, user_id="user-1")
        assert stock_of(pid) == 25

        adjust_stock(pid, -20, user_id="user-1")
        assert stock_of(pid) == 5

    def test_shrinkage_below_zero_refused(self, db_session, product, stock_of):
        pid = product.id
        with pytest.raises(InsufficientStockError):
            adjust_stock(pid, -11)
        assert stock_of(pid) == 10

    @pytest.mark.parametrize("delta", [0, 1.5, False])
    def test_delta_must_be_nonzero_int(self, db_session, product, delta):
        with pytest.raises(ValidationError):
            adjust_stock(product.id, delta)

    def test_can_delete_only_without_sales(self, db_session, product):
        from duka.services.input_schemas import CreateSaleInput
        from duka.services.sales_service import create_sale

        pid = product.id
        assert can_delete(pid) is True

        create_sale(CreateSaleInput.from_payload({"product_id": pid, "quantity": 1, "payment_method": "cash"}))
        assert can_delete(pid) is False
