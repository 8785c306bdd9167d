"""
Stock ledger: atomic deltas keyed by (dimension, pattern), zero clamp,
create-on-purchase and the partial-success batch endpoint.
"""

import pytest

from autocare.models import Tire
from autocare.services.stock_service import (
    STATUS_ADJUSTED,
    STATUS_CREATED,
    STATUS_NOT_FOUND,
    STATUS_SKIPPED_ZERO_STOCK,
    apply_delta,
    apply_deltas,
    find_tire,
)
from autocare.validation import ValidationError


class TestApplyDelta:

    def test_increment_existing(self, db_session, tire):
        adjustment = apply_delta("195/65R15", "XYZ", 5)
        db_session.commit()

        assert adjustment.status == STATUS_ADJUSTED
        assert adjustment.stock == 15
        assert find_tire("195/65R15", "XYZ").stock == 15

    @pytest.mark.parametrize("start,delta,expected", [(10, -3, 7), (10, -10, 0), (10, -25, 0), (1, -2, 0)])
    def test_decrement_clamps_at_zero(self, db_session, start, delta, expected):
        db_session.add(Tire(dimension="205/55R16", pattern="P7", stock=start))
        db_session.commit()

        adjustment = apply_delta("205/55R16", "P7", delta)
        db_session.commit()

        assert adjustment.status == STATUS_ADJUSTED
        assert find_tire("205/55R16", "P7").stock == expected

    def test_decrement_zero_stock_is_noop_but_takes_brand(self, db_session):
        db_session.add(Tire(dimension="205/55R16", pattern="P7", stock=0, material_code="OLD"))
        db_session.commit()

        adjustment = apply_delta("205/55R16", "P7", -4, brand_hint="NEW")
        db_session.commit()

        assert adjustment.status == STATUS_SKIPPED_ZERO_STOCK
        tire = find_tire("205/55R16", "P7")
        assert tire.stock == 0
        assert tire.material_code == "NEW"
        assert adjustment.applied_quantity == 0

    def test_clamped_decrement_reports_units_taken(self, db_session):
        db_session.add(Tire(dimension="205/55R16", pattern="P7", stock=3))
        db_session.commit()

        adjustment = apply_delta("205/55R16", "P7", -5)
        db_session.commit()

        assert adjustment.applied_quantity == 3
        assert adjustment.stock == 0

    def test_decrement_missing_tire_reports_not_found(self, db_session):
        adjustment = apply_delta("nope", "nope", -1)
        db_session.commit()

        assert adjustment.status == STATUS_NOT_FOUND
        assert not adjustment.applied
        assert db_session.query(Tire).count() == 0

    def test_increment_missing_tire_creates_it(self, db_session):
        adjustment = apply_delta("195/65R15", "XYZ", 10, brand_hint="Apollo")
        db_session.commit()

        assert adjustment.status == STATUS_CREATED
        tire = find_tire("195/65R15", "XYZ")
        assert tire.stock == 10
        assert tire.material_code == "Apollo"
        assert tire.billing_price_paise == 0
        assert tire.our_price_paise == 0
        assert tire.customer_price_paise == 0

    def test_restock_without_create_reports_not_found(self, db_session):
        adjustment = apply_delta("195/65R15", "XYZ", 2, create_missing=False)
        db_session.commit()

        assert adjustment.status == STATUS_NOT_FOUND
        assert adjustment.applied_quantity == 0
        assert db_session.query(Tire).count() == 0

    def test_restock_without_create_still_increments_existing(self, db_session, tire):
        adjustment = apply_delta("195/65R15", "XYZ", 2, create_missing=False)
        db_session.commit()

        assert adjustment.status == STATUS_ADJUSTED
        assert find_tire("195/65R15", "XYZ").stock == 12

    def test_brand_hint_overwrites_material_code(self, db_session, tire):
        apply_delta("195/65R15", "XYZ", 1, brand_hint="  Bridgestone ")
        db_session.commit()
        assert find_tire("195/65R15", "XYZ").material_code == "Bridgestone"

    def test_blank_brand_keeps_material_code(self, db_session, tire):
        apply_delta("195/65R15", "XYZ", 1, brand_hint="   ")
        db_session.commit()
        assert find_tire("195/65R15", "XYZ").material_code == "MICHELIN"

    def test_rejects_non_integer_delta(self, db_session):
        with pytest.raises(ValidationError):
            apply_delta("195/65R15", "XYZ", 1.5)


class TestBatchDeltas:

    def test_all_succeed(self, db_session, tire):
        result = apply_deltas([
            {"dimension": "195/65R15", "pattern": "XYZ", "quantity_delta": -2},
            {"dimension": "175/70R13", "pattern": "NEW", "quantity_delta": 4, "brand": "MRF"},
        ])

        assert not result.is_partial
        assert result.succeeded == 2
        assert find_tire("195/65R15", "XYZ").stock == 8
        assert find_tire("175/70R13", "NEW").stock == 4

    def test_partial_failure_keeps_successes(self, db_session, tire):
        result = apply_deltas([
            {"dimension": "195/65R15", "pattern": "XYZ", "quantity_delta": 3},
            {"dimension": "missing", "pattern": "missing", "quantity_delta": -1},
            {"dimension": "195/65R15", "pattern": "XYZ", "quantity_delta": 0},
            "not-an-object",
        ])

        assert result.is_partial
        assert result.succeeded == 1
        assert result.failed == 3
        errors = {r["index"]: r.get("error") for r in result.results if not r["success"]}
        assert errors[1] == "tire not found"
        assert "non-zero" in errors[2]
        assert 3 in errors
        assert find_tire("195/65R15", "XYZ").stock == 13

    def test_empty_batch_rejected(self, db_session):
        with pytest.raises(ValidationError):
            apply_deltas([])


class TestBatchRoute:

    def test_returns_207_on_partial_failure(self, client, auth_headers, tire):
        resp = client.post(
            "/api/tires/stock/batch",
            json={"entries": [
                {"dimension": "195/65R15", "pattern": "XYZ", "quantity_delta": -1},
                {"dimension": "ghost", "pattern": "ghost", "quantity_delta": -1},
            ]},
            headers=auth_headers,
        )
        assert resp.status_code == 207
        assert resp.json["summary"] == {"total": 2, "succeeded": 1, "failed": 1}

    def test_returns_200_when_all_applied(self, client, auth_headers, tire):
        resp = client.post(
            "/api/tires/stock/batch",
            json=[{"dimension": "195/65R15", "pattern": "XYZ", "quantity_delta": 2}],
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json["results"][0]["stock"] == 12
