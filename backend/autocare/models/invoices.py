from __future__ import annotations

from ..extensions import db
from autocare.time_utils import to_utc_z


PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_PARTIAL = "PARTIALLY_PAID"
PAYMENT_STATUS_UNPAID = "UNPAID"


class Invoice(db.Model):
    """
    Customer invoice for tyres sold and services performed.

    Money columns are integer paise. Line totals, subtotals and taxes are
    always computed server-side (see totals_service); the grand total is
    total_amount + cgst + sgst.

    IDENTITY:
    - invoice_number is the human-facing id ("GM-001"), immutable after create
    - invoice_number_sequence gives numeric ordering independent of formatting

    PAYMENT STATUS:
    payment_status is a tagged state derived from pending_amount_paise:
    PAID (nothing owed), PARTIALLY_PAID (0 < owed < grand total), UNPAID.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.UniqueConstraint("invoice_number_sequence", name="uq_invoices_sequence"),
        db.Index("ix_invoices_customer_name", "customer_name"),
        db.Index("ix_invoices_customer_phone", "customer_phone"),
        db.Index("ix_invoices_invoice_date", "invoice_date"),
        db.Index("ix_invoices_car_number", "car_number"),
        db.Index("ix_invoices_payment_method", "payment_method"),
        db.Index("ix_invoices_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    invoice_number_sequence = db.Column(db.Integer, nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_gst = db.Column(db.String(15), nullable=True)
    car_model = db.Column(db.String(128), nullable=True)
    car_number = db.Column(db.String(32), nullable=True)
    usage_reading = db.Column(db.Integer, nullable=True)

    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False)

    items_subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    services_subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    total_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    cgst_paise = db.Column(db.Integer, nullable=False, default=0)
    sgst_paise = db.Column(db.Integer, nullable=False, default=0)
    grand_total_paise = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    cash_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    online_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    online_reference = db.Column(db.String(128), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID)
    pending_amount_paise = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy=True,
    )
    services = db.relationship(
        "ServiceItem",
        backref="invoice",
        cascade="all, delete-orphan",
        order_by="ServiceItem.position",
        lazy=True,
    )

    @property
    def is_pending(self) -> bool:
        return self.payment_status != PAYMENT_STATUS_PAID

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number!r} grand_total_paise={self.grand_total_paise}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_number_sequence": self.invoice_number_sequence,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_gst": self.customer_gst,
            "car_model": self.car_model,
            "car_number": self.car_number,
            "usage_reading": self.usage_reading,
            "invoice_date": to_utc_z(self.invoice_date),
            "items_subtotal_paise": self.items_subtotal_paise,
            "services_subtotal_paise": self.services_subtotal_paise,
            "total_amount_paise": self.total_amount_paise,
            "cgst_paise": self.cgst_paise,
            "sgst_paise": self.sgst_paise,
            "grand_total_paise": self.grand_total_paise,
            "payment_method": self.payment_method,
            "payment_details": {
                "cash_amount_paise": self.cash_amount_paise,
                "online_amount_paise": self.online_amount_paise,
                "online_reference": self.online_reference,
            },
            "payment_status": self.payment_status,
            "is_pending": self.is_pending,
            "pending_amount_paise": self.pending_amount_paise,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["services"] = [service.to_dict() for service in self.services]
        return data


class InvoiceItem(db.Model):
    """Tyre/material line. (dimension, pattern) is the stock matching key."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.Index("ix_invoice_items_dimension_pattern", "dimension", "pattern"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    material_code = db.Column(db.String(64), nullable=False)
    dimension = db.Column(db.String(64), nullable=False)
    pattern = db.Column(db.String(64), nullable=False)
    price_paise = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_paise = db.Column(db.Integer, nullable=False)
    # Units this line actually took out of stock (less than quantity when the
    # tyre was untracked or ran out)
    stock_deducted = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "material_code": self.material_code,
            "dimension": self.dimension,
            "pattern": self.pattern,
            "price_paise": self.price_paise,
            "quantity": self.quantity,
            "total_paise": self.total_paise,
        }


class ServiceItem(db.Model):
    """Labour/service line (alignment, balancing, ...)."""
    __tablename__ = "service_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    service_type = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    rate_paise = db.Column(db.Integer, nullable=False)
    total_paise = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "service_type": self.service_type,
            "quantity": self.quantity,
            "rate_paise": self.rate_paise,
            "total_paise": self.total_paise,
        }


class InvoiceSequence(db.Model):
    """
    Atomic invoice counter.

    WHY: Deriving the next number from max(invoice_number_sequence) lets two
    concurrent creates read the same max. The counter row is incremented
    with a single UPDATE so every caller gets a distinct value.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_invoice_sequences_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
