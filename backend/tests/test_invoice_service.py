"""
Invoice lifecycle: create, update, pending, payment changes, delete.
"""

import pytest

from conftest import invoice_payload, service_only_payload
from autocare.models import Invoice
from autocare.models.invoices import PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_UNPAID
from autocare.services import invoice_service
from autocare.services.payment_service import InvalidPaymentError
from autocare.services.stock_service import find_tire
from autocare.validation import ConflictError, NotFoundError, ValidationError


# =============================================================================
# CREATE
# =============================================================================


class TestCreateInvoice:

    def test_totals_computed_server_side(self, db_session, tire):
        payload = invoice_payload(grand_total_paise=1, cgst_paise=999, total_amount_paise=5)
        invoice = invoice_service.create_invoice(payload).invoice

        assert invoice.items_subtotal_paise == 1000000
        assert invoice.cgst_paise == 140000
        assert invoice.sgst_paise == 140000
        assert invoice.total_amount_paise == 1000000
        assert invoice.grand_total_paise == 1280000
        assert invoice.cash_amount_paise == 1280000
        assert invoice.online_amount_paise == 0

    def test_number_allocated_from_counter(self, db_session, tire):
        first = invoice_service.create_invoice(invoice_payload()).invoice
        second = invoice_service.create_invoice(invoice_payload()).invoice

        assert first.invoice_number == "GM-001"
        assert second.invoice_number == "GM-002"
        assert second.invoice_number_sequence == first.invoice_number_sequence + 1

    def test_items_leave_stock(self, db_session, tire):
        result = invoice_service.create_invoice(invoice_payload())

        assert find_tire("195/65R15", "XYZ").stock == 8
        assert [a.quantity_delta for a in result.stock_adjustments] == [-2]

    def test_split_payment_matching_total(self, db_session):
        payload = service_only_payload(
            1000,
            payment_method="both",
            payment_details={"cash_amount_paise": 400, "online_amount_paise": 600},
        )
        invoice = invoice_service.create_invoice(payload).invoice

        assert invoice.grand_total_paise == 1000
        assert invoice.to_dict()["payment_details"] == {
            "cash_amount_paise": 400,
            "online_amount_paise": 600,
            "online_reference": None,
        }

    def test_split_payment_short_is_rejected(self, db_session):
        payload = service_only_payload(
            1000,
            payment_method="both",
            payment_details={"cash_amount_paise": 400, "online_amount_paise": 500},
        )
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(payload)
        assert db_session.query(Invoice).count() == 0

    def test_gst_uppercase_accepted(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(500, customer_gst="22AAAAA0000A1Z5")).invoice
        assert invoice.customer_gst == "22AAAAA0000A1Z5"

    def test_gst_lowercase_rejected(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(service_only_payload(500, customer_gst="22aaaaa0000a1z5"))

    def test_blank_gst_stored_as_null(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(500, customer_gst="  ")).invoice
        assert invoice.customer_gst is None

    def test_requires_a_line(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(invoice_payload(items=[], services=[]))

    def test_missing_customer_name(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(service_only_payload(500, customer_name=""))

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(service_only_payload(500, payment_status="PAID"))

    def test_duplicate_number_conflicts(self, db_session):
        invoice_service.create_invoice(service_only_payload(500, invoice_number="GM-777"))
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(service_only_payload(500, invoice_number="GM-777"))

    def test_client_sequence_is_reserved(self, db_session):
        first = invoice_service.create_invoice(service_only_payload(500, invoice_number_sequence=10)).invoice
        second = invoice_service.create_invoice(service_only_payload(500)).invoice

        assert first.invoice_number == "GM-010"
        assert second.invoice_number_sequence == 11

    def test_client_number_reserves_its_sequence(self, db_session):
        manual = invoice_service.create_invoice(service_only_payload(10000, invoice_number="GM-002")).invoice
        assert manual.invoice_number_sequence == 2

        numbers = [invoice_service.create_invoice(service_only_payload(10000)).invoice.invoice_number for _ in range(3)]
        assert numbers == ["GM-003", "GM-004", "GM-005"]

    def test_counter_skips_numbers_already_taken(self, db_session):
        invoice_service.create_invoice(
            service_only_payload(500, invoice_number="GM-003", invoice_number_sequence=1)
        )

        numbers = [invoice_service.create_invoice(service_only_payload(500)).invoice.invoice_number for _ in range(3)]
        assert numbers == ["GM-002", "GM-004", "GM-005"]

    def test_free_form_number_takes_counter_sequence(self, db_session):
        walk_in = invoice_service.create_invoice(service_only_payload(500, invoice_number="WALKIN-7")).invoice
        regular = invoice_service.create_invoice(service_only_payload(500)).invoice

        assert walk_in.invoice_number_sequence == 1
        assert regular.invoice_number == "GM-002"

    def test_lines_record_units_taken(self, db_session, tire):
        items = invoice_payload()["items"]
        items[0]["quantity"] = 12
        invoice = invoice_service.create_invoice(invoice_payload(items=items)).invoice

        assert invoice.items[0].stock_deducted == 10
        assert find_tire("195/65R15", "XYZ").stock == 0

    def test_pending_without_amount_owes_total(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(800, is_pending=True)).invoice
        assert invoice.payment_status == PAYMENT_STATUS_UNPAID
        assert invoice.pending_amount_paise == 800

    def test_sale_of_untracked_tyre_still_bills(self, db_session):
        result = invoice_service.create_invoice(invoice_payload())
        assert result.invoice.id is not None
        assert result.stock_adjustments[0].status == "NOT_FOUND"


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateInvoice:

    def test_item_change_applies_net_stock_difference(self, db_session, tire):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        assert find_tire("195/65R15", "XYZ").stock == 8

        items = invoice_payload()["items"]
        items[0]["quantity"] = 5
        result = invoice_service.update_invoice(invoice.invoice_number, {"items": items})

        assert find_tire("195/65R15", "XYZ").stock == 5
        assert [a.quantity_delta for a in result.stock_adjustments] == [-3]
        assert result.invoice.grand_total_paise == 3200000
        assert result.invoice.cash_amount_paise == 3200000

    def test_fewer_items_return_stock(self, db_session, tire):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        items = invoice_payload()["items"]
        items[0]["quantity"] = 1

        invoice_service.update_invoice(invoice.invoice_number, {"items": items})
        assert find_tire("195/65R15", "XYZ").stock == 9

    def test_dropping_untracked_line_never_creates_tire(self, db_session):
        payload = invoice_payload(services=[{"service_type": "Fitting", "quantity": 1, "rate_paise": 20000}])
        created = invoice_service.create_invoice(payload)
        assert [a.status for a in created.stock_adjustments] == ["NOT_FOUND"]

        result = invoice_service.update_invoice(created.invoice.invoice_number, {"items": []})

        assert result.stock_adjustments == []
        assert find_tire("195/65R15", "XYZ") is None

    def test_skipped_units_are_not_returned(self, db_session, tire):
        tire.stock = 1
        db_session.commit()
        payload = invoice_payload(services=[{"service_type": "Fitting", "quantity": 1, "rate_paise": 20000}])
        invoice = invoice_service.create_invoice(payload).invoice
        assert find_tire("195/65R15", "XYZ").stock == 0

        invoice_service.update_invoice(invoice.invoice_number, {"items": []})
        assert find_tire("195/65R15", "XYZ").stock == 1

    def test_selling_fewer_after_clamp_returns_nothing(self, db_session, tire):
        items = invoice_payload()["items"]
        items[0]["quantity"] = 15
        invoice = invoice_service.create_invoice(invoice_payload(items=items)).invoice

        items[0]["quantity"] = 12
        result = invoice_service.update_invoice(invoice.invoice_number, {"items": items})

        assert result.stock_adjustments == []
        assert result.invoice.items[0].stock_deducted == 10
        assert find_tire("195/65R15", "XYZ").stock == 0

    def test_unpaid_owes_new_grand_total(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(1000, is_pending=True)).invoice

        result = invoice_service.update_invoice(
            invoice.invoice_number,
            {"services": [{"service_type": "Balancing", "quantity": 1, "rate_paise": 1500}]},
        )

        assert result.invoice.payment_status == PAYMENT_STATUS_UNPAID
        assert result.invoice.pending_amount_paise == 1500

    def test_partial_keeps_owed_amount(self, db_session):
        invoice = invoice_service.create_invoice(
            service_only_payload(1000, is_pending=True, pending_amount_paise=300)
        ).invoice

        result = invoice_service.update_invoice(
            invoice.invoice_number,
            {"services": [{"service_type": "Balancing", "quantity": 1, "rate_paise": 1500}]},
        )

        assert result.invoice.payment_status == PAYMENT_STATUS_PARTIAL
        assert result.invoice.pending_amount_paise == 300

    def test_header_only_update_leaves_stock(self, db_session, tire):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        result = invoice_service.update_invoice(invoice.invoice_number, {"car_model": "Baleno"})

        assert result.invoice.car_model == "Baleno"
        assert result.stock_adjustments == []
        assert find_tire("195/65R15", "XYZ").stock == 8

    def test_number_is_immutable(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(500)).invoice
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice.invoice_number, {"invoice_number": "GM-999"})

    def test_split_payment_rechecked_when_total_changes(self, db_session):
        payload = service_only_payload(
            1000,
            payment_method="both",
            payment_details={"cash_amount_paise": 400, "online_amount_paise": 600},
        )
        invoice = invoice_service.create_invoice(payload).invoice

        with pytest.raises(InvalidPaymentError):
            invoice_service.update_invoice(
                invoice.invoice_number,
                {"services": [{"service_type": "Balancing", "quantity": 1, "rate_paise": 2000}]},
            )

    def test_pending_larger_than_new_total_rejected(self, db_session):
        invoice = invoice_service.create_invoice(
            service_only_payload(1000, is_pending=True, pending_amount_paise=900)
        ).invoice

        with pytest.raises(ValidationError):
            invoice_service.update_invoice(
                invoice.invoice_number,
                {"services": [{"service_type": "Balancing", "quantity": 1, "rate_paise": 500}]},
            )

    def test_bulk_update_propagates_customer_fields(self, db_session):
        first = invoice_service.create_invoice(service_only_payload(500)).invoice
        invoice_service.create_invoice(service_only_payload(600))
        invoice_service.create_invoice(service_only_payload(700, customer_name="Someone Else"))

        result = invoice_service.update_invoice(
            first.invoice_number,
            {"customer_phone": "9000000000", "customer_gst": "22AAAAA0000A1Z5", "bulk_update": True},
        )

        assert result.bulk_update == {
            "customer_name": "Ravi Kumar",
            "fields": ["customer_gst", "customer_phone"],
            "updated_invoices": 1,
        }
        same_customer = db_session.query(Invoice).filter(Invoice.customer_name == "Ravi Kumar").all()
        assert len(same_customer) == 2
        assert {inv.customer_phone for inv in same_customer} == {"9000000000"}
        assert {inv.customer_gst for inv in same_customer} == {"22AAAAA0000A1Z5"}
        other = db_session.query(Invoice).filter_by(customer_name="Someone Else").one()
        assert other.customer_phone == "9876543210"

    def test_missing_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_service.update_invoice("GM-404", {"car_model": "X"})


# =============================================================================
# PENDING / PAYMENT / USAGE
# =============================================================================


class TestPatches:

    def test_partial_then_paid(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(1000)).invoice

        invoice = invoice_service.update_pending(
            invoice.invoice_number, {"is_pending": True, "pending_amount_paise": 250}
        )
        assert invoice.payment_status == PAYMENT_STATUS_PARTIAL
        assert invoice.pending_amount_paise == 250

        invoice = invoice_service.update_pending(invoice.invoice_number, {"is_pending": False})
        assert invoice.payment_status == PAYMENT_STATUS_PAID
        assert invoice.pending_amount_paise == 0

    def test_switch_to_online(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(1000)).invoice
        invoice = invoice_service.update_payment(
            invoice.invoice_number,
            {"payment_method": "online", "payment_details": {"online_reference": "UPI123"}},
        )
        assert invoice.cash_amount_paise == 0
        assert invoice.online_amount_paise == 1000
        assert invoice.online_reference == "UPI123"

    def test_usage_reading_must_be_non_negative(self, db_session):
        invoice = invoice_service.create_invoice(service_only_payload(1000)).invoice
        with pytest.raises(ValidationError):
            invoice_service.update_usage_reading(invoice.invoice_number, {"usage_reading": -1})

        invoice = invoice_service.update_usage_reading(invoice.invoice_number, {"usage_reading": 50500})
        assert invoice.usage_reading == 50500


# =============================================================================
# DELETE
# =============================================================================


class TestDeleteInvoice:

    def test_delete_does_not_restock_by_default(self, db_session, tire):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        adjustments = invoice_service.delete_invoice(invoice.invoice_number)

        assert adjustments == []
        assert db_session.query(Invoice).count() == 0
        assert find_tire("195/65R15", "XYZ").stock == 8

    def test_delete_restocks_when_enabled(self, app, db_session, tire):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        app.config["RESTOCK_ON_INVOICE_DELETE"] = True
        try:
            invoice_service.delete_invoice(invoice.invoice_number)
        finally:
            app.config["RESTOCK_ON_INVOICE_DELETE"] = False

        assert find_tire("195/65R15", "XYZ").stock == 10

    def test_delete_restocks_only_units_taken(self, app, db_session, tire):
        items = invoice_payload()["items"]
        items[0]["quantity"] = 12
        invoice = invoice_service.create_invoice(invoice_payload(items=items)).invoice
        app.config["RESTOCK_ON_INVOICE_DELETE"] = True
        try:
            adjustments = invoice_service.delete_invoice(invoice.invoice_number)
        finally:
            app.config["RESTOCK_ON_INVOICE_DELETE"] = False

        assert [a.quantity_delta for a in adjustments] == [10]
        assert find_tire("195/65R15", "XYZ").stock == 10

    def test_delete_restock_never_creates_tire(self, app, db_session):
        invoice = invoice_service.create_invoice(invoice_payload()).invoice
        app.config["RESTOCK_ON_INVOICE_DELETE"] = True
        try:
            adjustments = invoice_service.delete_invoice(invoice.invoice_number)
        finally:
            app.config["RESTOCK_ON_INVOICE_DELETE"] = False

        assert adjustments == []
        assert find_tire("195/65R15", "XYZ") is None

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_service.delete_invoice("GM-404")


class TestReads:

    def test_search_is_case_insensitive(self, db_session):
        invoice_service.create_invoice(service_only_payload(500))
        invoice_service.create_invoice(service_only_payload(500, customer_name="Anita"))

        assert [inv.customer_name for inv in invoice_service.search_invoices("ravi")] == ["Ravi Kumar"]
        assert len(invoice_service.search_invoices("gm-00")) == 2

    def test_search_wildcards_match_literally(self, db_session):
        invoice_service.create_invoice(service_only_payload(500, customer_name="Auto_Zone"))
        invoice_service.create_invoice(service_only_payload(500, customer_name="AutoXZone"))
        invoice_service.create_invoice(service_only_payload(500, customer_name="Hundred Percent"))

        assert [inv.customer_name for inv in invoice_service.search_invoices("o_z")] == ["Auto_Zone"]
        assert invoice_service.search_invoices("%") == []

    def test_list_is_paginated_newest_first(self, db_session):
        for _ in range(3):
            invoice_service.create_invoice(service_only_payload(500))

        invoices, meta = invoice_service.list_invoices(page=1, limit=2)
        assert [inv.invoice_number for inv in invoices] == ["GM-003", "GM-002"]
        assert meta["total"] == 3
        assert meta["has_next"] is True

    def test_breakdown_splits_classes(self, db_session, tire):
        payload = invoice_payload(
            services=[{"service_type": "Alignment", "quantity": 1, "rate_paise": 50000}]
        )
        invoice = invoice_service.create_invoice(payload).invoice
        breakdown = invoice_service.invoice_breakdown(invoice.invoice_number)

        assert breakdown["items"]["cgst_paise"] == 140000
        assert breakdown["services"]["cgst_paise"] == 0
        assert breakdown["overall"]["grand_total_paise"] == invoice.grand_total_paise

    def test_next_number_preview(self, db_session):
        assert invoice_service.next_invoice_number() == {"invoice_number": "GM-001", "next_number": 1}
        invoice_service.create_invoice(service_only_payload(500))
        assert invoice_service.next_invoice_number()["invoice_number"] == "GM-002"

    def test_next_number_preview_skips_taken_numbers(self, db_session):
        invoice_service.create_invoice(
            service_only_payload(500, invoice_number="GM-002", invoice_number_sequence=1)
        )
        assert invoice_service.next_invoice_number() == {"invoice_number": "GM-003", "next_number": 3}
        assert invoice_service.create_invoice(service_only_payload(500)).invoice.invoice_number == "GM-003"
