from __future__ import annotations

from ..extensions import db
from duka.money import money_str
from duka.time_utils import to_utc_z, utcnow
from .inventory import new_id

PAYMENT_CASH = "cash"
PAYMENT_MOBILE_MONEY = "mobile-money"
PAYMENT_DEBT = "debt"

PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MOBILE_MONEY, PAYMENT_DEBT)

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PENDING = "pending"
SALE_STATUS_CANCELLED = "cancelled"

SALE_STATUSES = (SALE_STATUS_COMPLETED, SALE_STATUS_PENDING, SALE_STATUS_CANCELLED)


class Sale(db.Model):
    """
    A single-product sale.

    unit_price and total are captured when the sale is written and never
    re-read from the product, so later price changes do not rewrite history.
    product_name is kept for display even if the product is renamed.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_payment_method_created", "payment_method", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    product_id = db.Column(
        db.String(36),
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    payment_reference = db.Column(db.String(64), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Authenticated user that rang up the sale (opaque to the core)
    created_by = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("sales", lazy=True, passive_deletes="all"))

    def __repr__(self) -> str:
        return f"<Sale id={self.id} product_id={self.product_id} qty={self.quantity} total={self.total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "status": self.status,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
