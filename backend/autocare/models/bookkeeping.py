from __future__ import annotations

from ..extensions import db
from autocare.time_utils import to_utc_z


class Expense(db.Model):
    """Shop expense keyed by a free-text label. No cross-entity effects."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date", "date"),
        db.Index("ix_expenses_key", "key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), nullable=False)
    value_paise = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "value_paise": self.value_paise,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StaffPayment(db.Model):
    """Payroll-style payment to a staff member (salary, advance or deposit)."""
    __tablename__ = "staff_payments"
    __table_args__ = (
        db.Index("ix_staff_payments_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    amount_paise = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount_paise": self.amount_paise,
            "type": self.type,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }
