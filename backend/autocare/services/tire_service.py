# Overview: Manual CRUD for tyre stock items.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Tire
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_tire,
    validate_payload,
)
from .pagination import LIKE_ESCAPE, contains_pattern


TIRE_POLICY = ModelValidationPolicy(
    writable_fields={
        "dimension",
        "pattern",
        "material_code",
        "lisi",
        "billing_price_paise",
        "our_price_paise",
        "customer_price_paise",
        "stock",
    },
    required_on_create={"dimension", "pattern"},
)


def list_tires(search: str | None = None) -> list[Tire]:
    query = db.session.query(Tire)
    if search:
        like = contains_pattern(search)
        query = query.filter(
            or_(
                Tire.dimension.ilike(like, escape=LIKE_ESCAPE),
                Tire.pattern.ilike(like, escape=LIKE_ESCAPE),
                Tire.material_code.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    return query.order_by(Tire.dimension.asc(), Tire.pattern.asc()).all()


def get_tire(tire_id: int) -> Tire:
    tire = db.session.get(Tire, tire_id)
    if tire is None:
        raise NotFoundError("Tire not found")
    return tire


def create_tire(payload: dict) -> Tire:
    patch = validate_payload(model=Tire, payload=payload, policy=TIRE_POLICY, partial=False)
    enforce_rules_tire(patch)

    tire = Tire(**patch)
    db.session.add(tire)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Tire {patch['dimension']} / {patch['pattern']} already exists") from exc
    return tire


def update_tire(tire_id: int, payload: dict) -> Tire:
    patch = validate_payload(model=Tire, payload=payload, policy=TIRE_POLICY, partial=True)
    enforce_rules_tire(patch)

    tire = get_tire(tire_id)
    for key, value in patch.items():
        setattr(tire, key, value)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Another tire already uses that dimension and pattern") from exc
    return tire


def delete_tire(tire_id: int) -> None:
    tire = get_tire(tire_id)
    db.session.delete(tire)
    db.session.commit()
