"""
Tracking, label request and invoice tests.
"""

import pytest
from sqlalchemy.exc import OperationalError

from buygroup.extensions import db
from buygroup.models import Tracking
from buygroup.services import (
    commitment_service,
    concurrency,
    deal_service,
    invoice_service,
    label_service,
    tracking_service,
)
from buygroup.services.commitment_service import RoleNotPermittedError, TransitionError
from buygroup.validation import ConflictError, ForbiddenError, ValidationError


@pytest.fixture
def pending(seller, active_deal, warehouses):
    """A pending SHIP commitment headed to the DE shipping hub."""
    commitment = commitment_service.create_commitment(actor=seller, deal_id=active_deal.id, quantity=3)
    commitment_service.update_commitment(
        actor=seller, commitment_id=commitment.id, delivery_method="SHIP", warehouse="DE"
    )
    return commitment


class TestTracking:

    def test_submit_detects_carrier_and_ships(self, seller, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="1z999aa1 0123456784"
        )
        assert tracking.carrier == "UPS"
        assert tracking.tracking_number == "1Z999AA10123456784"
        assert tracking.last_status == "Label Created"
        assert pending.status == "IN_TRANSIT"
        assert pending.shipped_at is not None

    def test_explicit_carrier_wins(self, seller, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="1Z999AA10123456784", carrier="dhl"
        )
        assert tracking.carrier == "DHL"

    def test_unknown_shape_is_accepted_as_unknown(self, seller, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="ABC-123-XYZ"
        )
        assert tracking.carrier == "UNKNOWN"

    def test_second_submission_rejected(self, seller, pending):
        tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="123456789012")
        with pytest.raises(TransitionError):
            tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="123456789012")

    def test_drop_off_has_no_tracking(self, seller, pending):
        commitment_service.update_commitment(
            actor=seller, commitment_id=pending.id, delivery_method="DROP_OFF", warehouse="MA"
        )
        with pytest.raises(TransitionError):
            tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="123456789012")

    def test_blank_number_rejected(self, seller, pending):
        with pytest.raises(ValidationError):
            tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="  ")

    def test_only_owner_submits(self, other_seller, pending):
        with pytest.raises(ForbiddenError):
            tracking_service.submit_tracking(
                actor=other_seller, commitment_id=pending.id, tracking_number="123456789012"
            )

    def test_vendor_removes_tracking(self, seller, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        commitment = tracking_service.remove_tracking(actor=seller, tracking_id=tracking.id)
        assert commitment.status == "PENDING"
        assert commitment.shipped_at is None
        assert db.session.query(Tracking).count() == 0

    def test_stranger_cannot_remove(self, seller, other_seller, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        with pytest.raises(ForbiddenError):
            tracking_service.remove_tracking(actor=other_seller, tracking_id=tracking.id)

    def test_removal_blocked_after_delivery(self, seller, worker, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        commitment_service.mark_delivered(actor=worker, commitment_id=pending.id)
        with pytest.raises(TransitionError):
            tracking_service.remove_tracking(actor=worker, tracking_id=tracking.id)

    def test_staff_mirror_update_and_delivery(self, seller, worker, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        tracking_service.admin_update_tracking(
            actor=worker,
            tracking_id=tracking.id,
            last_status="Out for delivery",
            last_location="Wilmington, DE",
            estimated_delivery="2030-01-02T15:00:00Z",
            commitment_status="DELIVERED",
        )
        assert tracking.last_status == "Out for delivery"
        assert tracking.estimated_delivery.year == 2030
        assert pending.status == "DELIVERED"

    def test_mirror_survives_a_lock_retry(self, seller, worker, pending, monkeypatch):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        real_stage = commitment_service.stage_staff_status
        calls = []

        def _locked_once(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE commitments", {}, Exception("database is locked"))
            return real_stage(*args, **kwargs)

        monkeypatch.setattr(commitment_service, "stage_staff_status", _locked_once)
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

        tracking_service.admin_update_tracking(
            actor=worker,
            tracking_id=tracking.id,
            last_status="Delivered",
            last_location="Wilmington, DE",
            commitment_status="DELIVERED",
        )

        db.session.expire_all()
        reloaded = db.session.get(Tracking, tracking.id)
        assert len(calls) == 2
        assert reloaded.last_status == "Delivered"
        assert reloaded.last_location == "Wilmington, DE"
        assert reloaded.commitment.status == "DELIVERED"

    def test_rejected_move_discards_mirror_edits(self, seller, worker, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        with pytest.raises(RoleNotPermittedError):
            tracking_service.admin_update_tracking(
                actor=worker, tracking_id=tracking.id, last_status="Delivered", commitment_status="FULFILLED"
            )

        db.session.expire_all()
        reloaded = db.session.get(Tracking, tracking.id)
        assert reloaded.last_status == "Label Created"
        assert reloaded.commitment.status == "IN_TRANSIT"

    def test_worker_cannot_fulfill_through_tracking(self, seller, worker, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        commitment_service.mark_delivered(actor=worker, commitment_id=pending.id)
        with pytest.raises(RoleNotPermittedError):
            tracking_service.admin_update_tracking(
                actor=worker, tracking_id=tracking.id, commitment_status="FULFILLED"
            )

    def test_bad_estimated_delivery(self, seller, admin, pending):
        tracking = tracking_service.submit_tracking(
            actor=seller, commitment_id=pending.id, tracking_number="123456789012"
        )
        with pytest.raises(ValidationError):
            tracking_service.admin_update_tracking(
                actor=admin, tracking_id=tracking.id, estimated_delivery="next tuesday"
            )

    def test_staff_search(self, seller, pending):
        tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="123456789012")
        assert len(tracking_service.list_all_tracking(search="seller@")) == 1
        assert len(tracking_service.list_all_tracking(search="switch")) == 1
        assert len(tracking_service.list_all_tracking(search="nomatch")) == 0
        assert len(tracking_service.list_all_tracking(carrier="FEDEX", warehouse="de")) == 1
        assert len(tracking_service.list_all_tracking(carrier="UPS")) == 0


class TestLabels:

    def test_request_and_approve(self, seller, admin, pending):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        assert label.status == "PENDING"
        assert pending.status == "PENDING"

        label_service.process_label_request(
            actor=admin, label_id=label.id, status="approved", label_files=["labels/1.pdf"]
        )
        assert label.status == "APPROVED"
        assert label.label_files == ["labels/1.pdf"]
        assert label.processed_by_id == admin.id

    def test_one_label_per_commitment(self, seller, pending):
        label_service.request_label(actor=seller, commitment_id=pending.id)
        with pytest.raises(ConflictError) as exc:
            label_service.request_label(actor=seller, commitment_id=pending.id)
        assert exc.value.code == "LABEL_EXISTS"

    def test_drop_off_cannot_request(self, seller, pending):
        commitment_service.update_commitment(
            actor=seller, commitment_id=pending.id, delivery_method="DROP_OFF", warehouse="NJ"
        )
        with pytest.raises(TransitionError):
            label_service.request_label(actor=seller, commitment_id=pending.id)

    def test_approval_needs_a_file(self, seller, admin, pending):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        with pytest.raises(ValidationError):
            label_service.process_label_request(actor=admin, label_id=label.id, status="APPROVED")

    def test_rejection_clears_files(self, seller, admin, pending):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        label_service.process_label_request(
            actor=admin, label_id=label.id, status="REJECTED", label_url="https://x", notes="Quantity too low"
        )
        assert label.label_url is None
        assert label.label_files is None
        assert label.notes == "Quantity too low"

    def test_processed_is_final(self, seller, admin, pending):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        label_service.process_label_request(actor=admin, label_id=label.id, status="REJECTED")
        with pytest.raises(ConflictError):
            label_service.process_label_request(
                actor=admin, label_id=label.id, status="APPROVED", label_url="https://x"
            )
        with pytest.raises(ConflictError):
            label_service.cancel_label_request(actor=seller, label_id=label.id)

    @pytest.mark.parametrize("closing", ["CANCELLED", "FULFILLED"])
    def test_no_approval_for_closed_commitment(self, seller, admin, pending, closing):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        if closing == "CANCELLED":
            commitment_service.cancel_commitment(actor=seller, commitment_id=pending.id)
        else:
            tracking_service.submit_tracking(actor=seller, commitment_id=pending.id, tracking_number="123456789012")
            commitment_service.mark_delivered(actor=admin, commitment_id=pending.id)
            commitment_service.fulfill_commitment(actor=admin, commitment_id=pending.id)

        with pytest.raises(ConflictError) as exc:
            label_service.process_label_request(
                actor=admin, label_id=label.id, status="APPROVED", label_files=["labels/1.pdf"]
            )
        assert exc.value.code == "COMMITMENT_CLOSED"
        assert label.status == "PENDING"

        label_service.process_label_request(actor=admin, label_id=label.id, status="REJECTED")
        assert label.status == "REJECTED"

    def test_owner_cancels_pending(self, seller, other_seller, pending):
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        with pytest.raises(ForbiddenError):
            label_service.cancel_label_request(actor=other_seller, label_id=label.id)
        label_service.cancel_label_request(actor=seller, label_id=label.id)
        assert label_service.list_label_requests_for(seller) == []

    def test_free_label_threshold(self, seller, pending, admin):
        deal_service.update_deal(actor=admin, deal_id=pending.deal_id, payload={"free_label_min": 3})
        label = label_service.request_label(actor=seller, commitment_id=pending.id)
        assert label_service.label_summary(label)["commitment"]["qualifies_for_free_label"] is True


class TestInvoices:

    @pytest.fixture
    def invoice(self, seller, admin, pending):
        commitment_service.update_commitment(
            actor=seller, commitment_id=pending.id, delivery_method="DROP_OFF", warehouse="NY"
        )
        commitment_service.fulfill_commitment(
            actor=admin, commitment_id=pending.id, invoice_url="https://invoices.example.com/9"
        )
        return pending.invoice

    def test_default_amount_is_quantity_times_rate(self, invoice):
        assert invoice.amount_cents == 3 * 36000
        assert invoice.skynova_url == "https://invoices.example.com/9"

    def test_second_invoice_rejected(self, invoice, pending):
        with pytest.raises(ConflictError) as exc:
            invoice_service.create_invoice_for(pending, skynova_url="https://again")
        assert exc.value.code == "INVOICE_EXISTS"

    def test_vendor_sees_own_invoices(self, invoice, seller, other_seller):
        assert [i.id for i in invoice_service.list_invoices_for(seller)] == [invoice.id]
        assert invoice_service.list_invoices_for(other_seller) == []

    def test_mark_paid(self, invoice):
        invoice_service.update_invoice(
            invoice_id=invoice.id, payload={"status": "paid", "check_number": " 1042 "}
        )
        assert invoice.status == "PAID"
        assert invoice.paid_at is not None
        assert invoice.check_number == "1042"

        invoice_service.update_invoice(invoice_id=invoice.id, payload={"status": "PENDING"})
        assert invoice.paid_at is None

    def test_unknown_fields_rejected(self, invoice):
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice_id=invoice.id, payload={"amount_cents": 1})

    def test_status_filter(self, invoice):
        assert len(invoice_service.list_all_invoices(status="PENDING")) == 1
        assert invoice_service.list_all_invoices(status="PAID") == []
        with pytest.raises(ValidationError):
            invoice_service.list_all_invoices(status="VOID")
