from __future__ import annotations

from ..extensions import db
from autocare.time_utils import to_utc_z


class Tire(db.Model):
    """
    Tyre stock item.

    IDENTITY: (dimension, pattern) is the natural key used by purchases and
    invoice lines; `id` is only a surrogate for CRUD routes.

    STOCK: mutated by manual edits, purchase increments and sale decrements.
    Decrements never take stock below zero (see stock_service.apply_delta).
    """
    __tablename__ = "tires"
    __table_args__ = (
        db.UniqueConstraint("dimension", "pattern", name="uq_tires_dimension_pattern"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    dimension = db.Column(db.String(64), nullable=False)
    pattern = db.Column(db.String(64), nullable=False)
    # Brand / material code
    material_code = db.Column(db.String(64), nullable=False, default="")
    lisi = db.Column(db.String(32), nullable=False, default="")

    billing_price_paise = db.Column(db.Integer, nullable=False, default=0)
    our_price_paise = db.Column(db.Integer, nullable=False, default=0)
    customer_price_paise = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tire {self.dimension!r}/{self.pattern!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dimension": self.dimension,
            "pattern": self.pattern,
            "material_code": self.material_code,
            "lisi": self.lisi,
            "billing_price_paise": self.billing_price_paise,
            "our_price_paise": self.our_price_paise,
            "customer_price_paise": self.customer_price_paise,
            "stock": self.stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TyrePurchase(db.Model):
    """Supplier purchase of tyres; each create/update/delete moves Tire.stock."""
    __tablename__ = "tyre_purchases"
    __table_args__ = (
        # Bill numbers repeat across suppliers, so no unique constraint
        db.Index("ix_tyre_purchases_bill_no", "bill_no"),
        db.Index("ix_tyre_purchases_date", "date"),
        db.Index("ix_tyre_purchases_size_pattern", "tyre_size", "pattern"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    bill_no = db.Column(db.String(64), nullable=False)
    tyre_size = db.Column(db.String(64), nullable=False)
    pattern = db.Column(db.String(64), nullable=False)
    brand = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "bill_no": self.bill_no,
            "tyre_size": self.tyre_size,
            "pattern": self.pattern,
            "brand": self.brand,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }
