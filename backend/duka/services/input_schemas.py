"""
Typed inputs for the write operations.

Each request body is normalized once (duka.validation.normalize_keys) and
parsed into one frozen dataclass here, so the services never look at raw
JSON or guess between field spellings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from duka.money import ZERO
from duka.models.sales import PAYMENT_DEBT, PAYMENT_METHODS, SALE_STATUSES
from duka.time_utils import parse_iso_date
from duka.validation import (
    ValidationError,
    normalize_keys,
    parse_int,
    parse_money,
    parse_text,
    require_text,
)

# Older clients send the mobile-money method under the provider's name
PAYMENT_METHOD_ALIASES = {
    "mpesa": "mobile-money",
    "m-pesa": "mobile-money",
    "mobile_money": "mobile-money",
    "mobilemoney": "mobile-money",
}

_UNSET = object()


def parse_payment_method(value: Any) -> str:
    method = require_text("payment_method", value).lower()
    method = PAYMENT_METHOD_ALIASES.get(method, method)
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    return method


def parse_sale_status(value: Any) -> str:
    status = require_text("status", value).lower()
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
    return status


def parse_positive_int(field: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    number = parse_int(field, value)
    if number <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return number


def parse_positive_money(field: str, value: Any) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")
    amount = parse_money(field, value)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than 0")
    return amount


def parse_due_date(value: Any) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("due_date must be an ISO-8601 date (YYYY-MM-DD)")


@dataclass(frozen=True)
class CreateSaleInput:
    product_id: str
    quantity: int
    payment_method: str
    unit_price: Decimal | None = None
    # Advisory only; checked against the server-computed total
    total: Decimal | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    status: str = "completed"
    due_date: date | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateSaleInput":
        data = normalize_keys(payload)

        product_id = require_text("product_id", data.get("product_id"), max_length=36)
        quantity = parse_positive_int("quantity", data.get("quantity"))
        payment_method = parse_payment_method(data.get("payment_method"))

        unit_price = None
        if data.get("unit_price") is not None:
            unit_price = parse_positive_money("unit_price", data.get("unit_price"))

        total = None
        if data.get("total") is not None:
            total = parse_money("total", data.get("total"))

        customer_name = parse_text("customer_name", data.get("customer_name"), max_length=255)
        customer_phone = parse_text("customer_phone", data.get("customer_phone"), max_length=32)
        if payment_method == PAYMENT_DEBT and (not customer_name or not customer_phone):
            raise ValidationError("customer_name and customer_phone are required for debt sales")

        status = "completed"
        if data.get("status") is not None:
            status = parse_sale_status(data.get("status"))

        return cls(
            product_id=product_id,
            quantity=quantity,
            payment_method=payment_method,
            unit_price=unit_price,
            total=total,
            customer_name=customer_name,
            customer_phone=customer_phone,
            payment_reference=parse_text("payment_reference", data.get("payment_reference"), max_length=64),
            notes=parse_text("notes", data.get("notes")),
            status=status,
            due_date=parse_due_date(data.get("due_date")),
        )


@dataclass(frozen=True)
class UpdateSaleInput:
    """
    Partial update. Fields left as None were not sent; the `provided` set
    distinguishes "not sent" from "sent as blank" for the free-text fields.
    """
    product_id: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    total: Decimal | None = None
    payment_method: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    status: str | None = None
    provided: frozenset = frozenset()

    @classmethod
    def from_payload(cls, payload: Any) -> "UpdateSaleInput":
        data = normalize_keys(payload)
        allowed = {
            "product_id", "quantity", "unit_price", "total", "payment_method",
            "customer_name", "customer_phone", "payment_reference", "notes", "status",
            # Read-only fields older clients echo back; ignored
            "id", "product_name", "created_at", "updated_at", "created_by",
        }
        unknown = sorted(k for k in data if k not in allowed)
        if unknown:
            raise ValidationError(f"Field not allowed: {unknown[0]}")

        kwargs: dict = {}
        if data.get("product_id") is not None:
            kwargs["product_id"] = require_text("product_id", data["product_id"], max_length=36)
        if data.get("quantity") is not None:
            kwargs["quantity"] = parse_positive_int("quantity", data["quantity"])
        if data.get("unit_price") is not None:
            kwargs["unit_price"] = parse_positive_money("unit_price", data["unit_price"])
        if data.get("total") is not None:
            kwargs["total"] = parse_money("total", data["total"])
        if data.get("payment_method") is not None:
            kwargs["payment_method"] = parse_payment_method(data["payment_method"])
        if data.get("status") is not None:
            kwargs["status"] = parse_sale_status(data["status"])

        provided = set()
        for field, max_length in (
            ("customer_name", 255),
            ("customer_phone", 32),
            ("payment_reference", 64),
            ("notes", None),
        ):
            if field in data:
                provided.add(field)
                kwargs[field] = parse_text(field, data[field], max_length=max_length)

        return cls(provided=frozenset(provided), **kwargs)

    def is_empty(self) -> bool:
        return not self.provided and all(
            getattr(self, name) is None
            for name in ("product_id", "quantity", "unit_price", "total", "payment_method", "status")
        )


@dataclass(frozen=True)
class PaymentInput:
    amount: Decimal
    payment_method: str = "cash"
    payment_reference: str | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PaymentInput":
        data = normalize_keys(payload)
        if data.get("amount") is None:
            raise ValidationError("amount is required")
        amount = parse_money("amount", data["amount"])

        # Free-form tag (cash, mobile-money, bank, ...); only normalized
        method = parse_text("payment_method", data.get("payment_method"), max_length=32) or "cash"
        method = method.lower()
        method = PAYMENT_METHOD_ALIASES.get(method, method)

        return cls(
            amount=amount,
            payment_method=method,
            payment_reference=parse_text("payment_reference", data.get("payment_reference"), max_length=64),
            notes=parse_text("notes", data.get("notes")),
        )


@dataclass(frozen=True)
class DebtInput:
    customer_name: str
    customer_phone: str
    amount: Decimal
    due_date: date | None = None
    notes: str | None = None
    # Deposit taken when the debt is recorded; posted as the first payment
    initial_payment: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DebtInput":
        data = normalize_keys(payload)
        initial_payment = None
        if data.get("amount_paid") not in (None, "", 0, "0"):
            initial_payment = parse_money("amount_paid", data["amount_paid"])
            if initial_payment < ZERO:
                raise ValidationError("amount_paid must be >= 0")
            if initial_payment == ZERO:
                initial_payment = None

        return cls(
            customer_name=require_text("customer_name", data.get("customer_name"), max_length=255),
            customer_phone=require_text("customer_phone", data.get("customer_phone"), max_length=32),
            amount=parse_positive_money("amount", data.get("amount")),
            due_date=parse_due_date(data.get("due_date")),
            notes=parse_text("notes", data.get("notes")),
            initial_payment=initial_payment,
        )


@dataclass(frozen=True)
class DebtUpdateInput:
    customer_name: Any = _UNSET
    customer_phone: Any = _UNSET
    amount: Any = _UNSET
    due_date: Any = _UNSET
    notes: Any = _UNSET

    @classmethod
    def from_payload(cls, payload: Any) -> "DebtUpdateInput":
        data = normalize_keys(payload)
        # Stored ledger fields are only moved by payments
        for field in ("amount_paid", "balance", "status"):
            if field in data:
                raise ValidationError(f"Field not allowed: {field}")

        allowed = {"customer_name", "customer_phone", "amount", "due_date", "notes"}
        unknown = sorted(k for k in data if k not in allowed)
        if unknown:
            raise ValidationError(f"Field not allowed: {unknown[0]}")

        kwargs: dict = {}
        if "customer_name" in data:
            kwargs["customer_name"] = require_text("customer_name", data["customer_name"], max_length=255)
        if "customer_phone" in data:
            kwargs["customer_phone"] = require_text("customer_phone", data["customer_phone"], max_length=32)
        if "amount" in data:
            kwargs["amount"] = parse_positive_money("amount", data["amount"])
        if "due_date" in data:
            kwargs["due_date"] = parse_due_date(data["due_date"])
        if "notes" in data:
            kwargs["notes"] = parse_text("notes", data["notes"])
        return cls(**kwargs)

    def changes(self) -> dict:
        return {
            name: getattr(self, name)
            for name in ("customer_name", "customer_phone", "amount", "due_date", "notes")
            if getattr(self, name) is not _UNSET
        }
