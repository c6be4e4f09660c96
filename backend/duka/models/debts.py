from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..extensions import db
from duka.money import ZERO, money_str, quantize
from duka.time_utils import to_utc_z, today, utcnow
from .inventory import new_id

DEBT_STATUS_PENDING = "pending"
DEBT_STATUS_PARTIALLY_PAID = "partially-paid"
DEBT_STATUS_PAID = "paid"
# Never stored; derived from due_date at read time
DEBT_STATUS_OVERDUE = "overdue"

DEBT_STATUSES = (DEBT_STATUS_PENDING, DEBT_STATUS_PARTIALLY_PAID, DEBT_STATUS_PAID)


def balance_for(amount: Decimal, amount_paid: Decimal) -> Decimal:
    """Outstanding balance, floored at zero."""
    remaining = quantize(Decimal(amount) - Decimal(amount_paid))
    return remaining if remaining > ZERO else ZERO


def status_for(amount_paid: Decimal, balance: Decimal) -> str:
    if balance <= ZERO:
        return DEBT_STATUS_PAID
    if amount_paid > ZERO:
        return DEBT_STATUS_PARTIALLY_PAID
    return DEBT_STATUS_PENDING


class Debt(db.Model):
    """
    Money owed by a customer, either from a debt-method sale or recorded standalone.

    WHY: amount_paid is the running sum of the payment ledger below it. The only
    writer of amount_paid after creation is debt_service.make_payment, which
    appends the DebtPayment row in the same transaction.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_debts_amount_positive"),
        db.CheckConstraint("amount_paid >= 0", name="ck_debts_amount_paid_nonnegative"),
        db.CheckConstraint("balance >= 0", name="ck_debts_balance_nonnegative"),
        db.Index("ix_debts_status_due_date", "status", "due_date"),
        db.Index("ix_debts_customer", "customer_name", "customer_phone"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # At most one debt per sale; survives (unlinked) if the sale row goes away
    sale_id = db.Column(
        db.String(36),
        db.ForeignKey("sales.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    balance = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=DEBT_STATUS_PENDING)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    sale = db.relationship("Sale", backref=db.backref("debt", uselist=False, lazy=True))
    payments = db.relationship(
        "DebtPayment",
        back_populates="debt",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DebtPayment.created_at",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Debt id={self.id} amount={self.amount} paid={self.amount_paid} status={self.status}>"

    def effective_status(self, on: date | None = None) -> str:
        """Stored status, or "overdue" when past due_date with money still owed."""
        on = on or today()
        if (
            self.status != DEBT_STATUS_PAID
            and self.due_date is not None
            and self.due_date < on
            and Decimal(self.balance) > ZERO
        ):
            return DEBT_STATUS_OVERDUE
        return self.status

    def to_dict(self, on: date | None = None) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "amount": money_str(self.amount),
            "amount_paid": money_str(self.amount_paid),
            "balance": money_str(self.balance),
            "status": self.effective_status(on),
            "stored_status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DebtPayment(db.Model):
    """
    One payment against a debt. Append-only ledger entry.

    There is no update or delete path; rows only disappear when the owning
    debt is deleted.
    """
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_debt_payments_amount_positive"),
        db.Index("ix_debt_payments_debt_created", "debt_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    debt_id = db.Column(
        db.String(36),
        db.ForeignKey("debts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    payment_reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(36), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    debt = db.relationship("Debt", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
