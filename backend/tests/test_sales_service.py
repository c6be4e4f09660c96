"""
Sale orchestration tests.

Verifies:
- Stock moves with every create / update / delete and never goes negative
- Failed sales leave no trace
- Debt sales open exactly one linked debt; other methods open none
- Deleting a sale restores stock and removes its debt and payments
"""

from decimal import Decimal

import pytest

from duka.errors import InsufficientStockError, InvalidAmountError, InvalidStateError, NotFoundError
from duka.models import Debt, DebtPayment, Sale
from duka.services import debt_service, sales_service
from duka.services.input_schemas import CreateSaleInput, PaymentInput, UpdateSaleInput
from duka.validation import ValidationError


def _sell(product_id, quantity, method="cash", **extra):
    payload = {"product_id": product_id, "quantity": quantity, "payment_method": method}
    payload.update(extra)
    return sales_service.create_sale(CreateSaleInput.from_payload(payload), user_id="user-1")


def _debt_sale(product_id, quantity, **extra):
    extra.setdefault("customer_name", "Jane")
    extra.setdefault("customer_phone", "0712000000")
    return _sell(product_id, quantity, "debt", **extra)


def _update(sale_id, **changes):
    return sales_service.update_sale(sale_id, UpdateSaleInput.from_payload(changes))


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:

    def test_cash_sale_takes_stock_and_opens_no_debt(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 3)

        assert sale.total == Decimal("300.00")
        assert sale.unit_price == Decimal("100.00")
        assert sale.product_name == "Maize Flour 2kg"
        assert sale.created_by == "user-1"
        assert stock_of(pid) == 7
        assert db_session.query(Debt).count() == 0

    def test_oversell_fails_and_changes_nothing(self, db_session, product, stock_of):
        pid = product.id
        _sell(pid, 3)

        with pytest.raises(InsufficientStockError) as exc:
            _sell(pid, 8)

        assert exc.value.details["on_hand"] == 7
        assert stock_of(pid) == 7
        assert db_session.query(Sale).count() == 1

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            _sell("00000000-0000-0000-0000-000000000000", 1)
        assert db_session.query(Sale).count() == 0

    def test_debt_sale_opens_one_pending_debt(self, db_session, make_product, stock_of):
        product = make_product(stock=10, price="100.00")
        pid = product.id

        sale = _debt_sale(pid, 2, unit_price="50")

        assert sale.total == Decimal("100.00")
        debts = db_session.query(Debt).all()
        assert len(debts) == 1
        debt = debts[0]
        assert debt.sale_id == sale.id
        assert debt.amount == Decimal("100.00")
        assert debt.amount_paid == Decimal("0.00")
        assert debt.balance == Decimal("100.00")
        assert debt.status == "pending"
        assert debt.customer_name == "Jane"
        assert debt.notes == f"Sale: {product.name} (2 units)"
        assert stock_of(pid) == 8

    def test_debt_sale_requires_customer(self, db_session, product):
        with pytest.raises(ValidationError):
            _sell(product.id, 1, "debt", customer_name="Jane")

    def test_mobile_money_legacy_name_is_normalized(self, db_session, product):
        sale = _sell(product.id, 1, "mpesa", mpesaCode="QK12AB34")
        assert sale.payment_method == "mobile-money"
        assert sale.payment_reference == "QK12AB34"

    def test_client_total_is_checked_not_trusted(self, db_session, product, stock_of):
        pid = product.id
        with pytest.raises(InvalidAmountError):
            _sell(pid, 2, total="150.00")
        assert stock_of(pid) == 10

        sale = _sell(pid, 2, total="200.004")
        assert sale.total == Decimal("200.00")

    def test_failed_debt_insert_rolls_back_stock(self, db_session, product, stock_of, monkeypatch):
        pid = product.id

        def boom(*args, **kwargs):
            raise RuntimeError("debt insert failed")

        monkeypatch.setattr(sales_service, "_create_sale_debt", boom)
        with pytest.raises(RuntimeError):
            _debt_sale(pid, 4)

        assert stock_of(pid) == 10
        assert db_session.query(Sale).count() == 0
        assert db_session.query(Debt).count() == 0


# =============================================================================
# DELETE
# =============================================================================


class TestDeleteSale:

    def test_delete_restores_exact_quantity(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 4)
        assert stock_of(pid) == 6

        result = sales_service.delete_sale(sale.id)

        assert result["sale"]["quantity"] == 4
        assert result["product"]["stock_quantity"] == 10
        assert stock_of(pid) == 10
        assert db_session.query(Sale).count() == 0

    def test_delete_removes_debt_and_payments(self, db_session, product, stock_of):
        pid = product.id
        sale = _debt_sale(pid, 2)
        debt_id = db_session.query(Debt).filter_by(sale_id=sale.id).one().id
        debt_service.make_payment(debt_id, PaymentInput(amount=Decimal("50.00")))

        result = sales_service.delete_sale(sale.id)

        assert result["deleted_debt_id"] == debt_id
        assert db_session.query(Debt).count() == 0
        assert db_session.query(DebtPayment).count() == 0
        assert stock_of(pid) == 10

    def test_delete_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.delete_sale("missing")

    def test_stock_never_negative_over_mixed_sequence(self, db_session, make_product, stock_of):
        product = make_product(stock=5)
        pid = product.id
        kept = []

        for qty in (2, 2, 2, 1, 3):
            try:
                kept.append(_sell(pid, qty))
            except InsufficientStockError:
                pass
            assert stock_of(pid) >= 0

        sales_service.delete_sale(kept.pop(0).id)
        for qty in (4, 1):
            try:
                kept.append(_sell(pid, qty))
            except InsufficientStockError:
                pass
            assert stock_of(pid) >= 0

        sold = sum(s.quantity for s in db_session.query(Sale).all())
        assert stock_of(pid) + sold == 5


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateSale:

    def test_quantity_increase_takes_difference(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 3)

        updated = _update(sale.id, quantity=5)

        assert updated.quantity == 5
        assert updated.total == Decimal("500.00")
        assert stock_of(pid) == 5

    def test_quantity_decrease_returns_difference(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 5)

        _update(sale.id, quantity=2)

        assert stock_of(pid) == 8

    def test_quantity_increase_beyond_stock_fails(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 8)

        with pytest.raises(InsufficientStockError):
            _update(sale.id, quantity=11)

        assert stock_of(pid) == 2
        db_session.expire_all()
        assert db_session.get(Sale, sale.id).quantity == 8

    def test_product_change_moves_stock_between_products(self, db_session, make_product, stock_of):
        rice = make_product(stock=10, price="100.00", name="Rice 1kg")
        sugar = make_product(stock=4, price="80.00", name="Sugar 1kg")
        rice_id, sugar_id = rice.id, sugar.id
        sale = _sell(rice_id, 3)

        updated = _update(sale.id, product_id=sugar_id, quantity=2)

        assert stock_of(rice_id) == 10
        assert stock_of(sugar_id) == 2
        assert updated.product_name == "Sugar 1kg"
        assert updated.unit_price == Decimal("80.00")
        assert updated.total == Decimal("160.00")

    def test_product_change_with_short_stock_rolls_back(self, db_session, make_product, stock_of):
        rice = make_product(stock=10, name="Rice 1kg")
        sugar = make_product(stock=1, name="Sugar 1kg")
        rice_id, sugar_id = rice.id, sugar.id
        sale = _sell(rice_id, 3)

        with pytest.raises(InsufficientStockError):
            _update(sale.id, product_id=sugar_id)

        assert stock_of(rice_id) == 7
        assert stock_of(sugar_id) == 1

    def test_status_change_does_not_touch_stock(self, db_session, product, stock_of):
        pid = product.id
        sale = _sell(pid, 3)

        updated = sales_service.update_sale_status(sale.id, "cancelled")

        assert updated.status == "cancelled"
        assert stock_of(pid) == 7

    def test_cash_to_debt_opens_debt(self, db_session, product):
        sale = _sell(product.id, 2)

        _update(sale.id, payment_method="debt", customer_name="Otieno", customer_phone="0722000000")

        debt = db_session.query(Debt).filter_by(sale_id=sale.id).one()
        assert debt.amount == Decimal("200.00")
        assert debt.status == "pending"

    def test_cash_to_debt_without_customer_fails(self, db_session, product):
        sale = _sell(product.id, 2)

        with pytest.raises(ValidationError):
            _update(sale.id, payment_method="debt")
        assert db_session.query(Debt).count() == 0

    def test_debt_to_cash_drops_unpaid_debt(self, db_session, product):
        sale = _debt_sale(product.id, 2)

        updated = _update(sale.id, payment_method="cash")

        assert updated.payment_method == "cash"
        assert db_session.query(Debt).count() == 0

    def test_debt_to_cash_refused_once_paid_into(self, db_session, product):
        sale = _debt_sale(product.id, 2)
        debt = db_session.query(Debt).filter_by(sale_id=sale.id).one()
        debt_service.make_payment(debt.id, PaymentInput(amount=Decimal("10.00")))

        with pytest.raises(InvalidStateError):
            _update(sale.id, payment_method="cash")

        db_session.expire_all()
        assert db_session.get(Sale, sale.id).payment_method == "debt"
        assert db_session.query(Debt).count() == 1

    def test_debt_amount_follows_total(self, db_session, product):
        sale = _debt_sale(product.id, 2)
        debt = db_session.query(Debt).filter_by(sale_id=sale.id).one()
        debt_id = debt.id
        debt_service.make_payment(debt_id, PaymentInput(amount=Decimal("150.00")))

        _update(sale.id, quantity=3)
        db_session.expire_all()
        debt = db_session.get(Debt, debt_id)
        assert debt.amount == Decimal("300.00")
        assert debt.balance == Decimal("150.00")
        assert debt.status == "partially-paid"

        with pytest.raises(InvalidAmountError):
            _update(sale.id, quantity=1)

    def test_edit_does_not_reopen_deleted_debt(self, db_session, product):
        sale = _debt_sale(product.id, 2)
        debt = db_session.query(Debt).filter_by(sale_id=sale.id).one()
        debt_id = debt.id
        debt_service.make_payment(debt_id, PaymentInput(amount=Decimal("200.00")))
        debt_service.delete_debt(debt_id)

        updated = _update(sale.id, notes="typo fix")

        assert updated.notes == "typo fix"
        assert updated.payment_method == "debt"
        assert db_session.query(Debt).count() == 0

    def test_empty_update_rejected(self, db_session, product):
        sale = _sell(product.id, 1)
        with pytest.raises(ValidationError):
            _update(sale.id)
