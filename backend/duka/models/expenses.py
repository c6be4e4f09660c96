from __future__ import annotations

from ..extensions import db
from duka.money import money_str
from duka.time_utils import to_utc_z, utcnow
from .inventory import new_id

EXPENSE_STATUS_PENDING = "pending"
EXPENSE_STATUS_APPROVED = "approved"
EXPENSE_STATUS_REJECTED = "rejected"

EXPENSE_STATUSES = (EXPENSE_STATUS_PENDING, EXPENSE_STATUS_APPROVED, EXPENSE_STATUS_REJECTED)


class Expense(db.Model):
    """Operating expense awaiting (or past) manager approval."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        db.Index("ix_expenses_status_created", "status", "created_at"),
        db.Index("ix_expenses_category", "category"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    description = db.Column(db.String(500), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=EXPENSE_STATUS_PENDING)
    approved_by = db.Column(db.String(36), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)

    created_by = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "amount": money_str(self.amount),
            "status": self.status,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
