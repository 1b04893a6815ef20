"""
Quantity allocator tests.

Verifies:
- Allowance arithmetic (fulfilled + active, cancelled counts for nothing)
- Guard order for new commitments
- Quantity edits exclude the commitment being edited
- Monotonicity in the requested quantity
"""

from types import SimpleNamespace

import pytest

from buygroup.services.allocation_service import (
    ACTIVE_COMMITMENT_EXISTS,
    DEAL_NOT_ACTIVE,
    MAX_QUANTITY_FULFILLED,
    UNBOUNDED_VENDOR_LIMIT,
    VENDOR_LIMIT_EXCEEDED,
    AllocationError,
    can_commit,
    can_update_quantity,
    check_new_commitment,
    effective_limit,
)


def c(quantity, status):
    return {"quantity": quantity, "status": status}


def _deal(limit=10, status="ACTIVE"):
    return SimpleNamespace(limit_per_vendor=limit, status=status)


class TestCanCommit:

    def test_active_commitment_eats_allowance(self):
        result = can_commit([c(8, "PENDING")], 5, 10)
        assert result.allowed is False
        assert result.remaining_allowance == 2

    def test_fulfilled_and_active_both_count(self):
        result = can_commit([c(5, "FULFILLED"), c(2, "PENDING")], 2, 10)
        assert result.allowed is True
        assert result.remaining_allowance == 3
        assert result.fulfilled_qty == 5
        assert result.active_qty == 2

    def test_cancelled_counts_for_nothing(self):
        result = can_commit([c(5, "CANCELLED"), c(3, "PENDING")], 5, 10)
        assert result.total_committed == 3
        assert result.allowed is True

    @pytest.mark.parametrize(
        "existing",
        [
            [],
            [c(5, "CANCELLED")],
            [c(3, "FULFILLED"), c(1, "IN_TRANSIT"), c(9, "CANCELLED")],
            [c(2, "DELIVERED"), c(2, "DROP_OFF_PENDING"), c(4, "FULFILLED")],
        ],
    )
    def test_total_is_fulfilled_plus_active(self, existing):
        result = can_commit(existing, 1, 10)
        assert result.total_committed == result.fulfilled_qty + result.active_qty
        assert result.total_committed == sum(x["quantity"] for x in existing if x["status"] != "CANCELLED")

    def test_no_limit_means_unbounded_default(self):
        assert effective_limit(None) == UNBOUNDED_VENDOR_LIMIT
        assert can_commit([], 500, None).allowed is True

    def test_zero_limit_blocks(self):
        result = can_commit([], 1, 0)
        assert result.allowed is False
        assert result.remaining_allowance == 0

    @pytest.mark.parametrize("limit", [0, 1, 5, 10, None])
    def test_monotonic_in_requested_quantity(self, limit):
        existing = [c(3, "FULFILLED"), c(1, "CANCELLED")]
        seen_denied = False
        for qty in range(1, 30):
            allowed = can_commit(existing, qty, limit).allowed
            if seen_denied:
                assert allowed is False, f"qty={qty} allowed after a smaller qty was denied"
            seen_denied = seen_denied or not allowed


class TestCanUpdateQuantity:

    def test_increase_within_limit(self):
        result = can_update_quantity(other_qty=4, new_quantity=6, vendor_limit=10)
        assert result.can_update is True
        assert result.available == 6
        assert result.new_total == 10

    def test_increase_past_limit_blocked(self):
        result = can_update_quantity(other_qty=4, new_quantity=7, vendor_limit=10)
        assert result.can_update is False
        assert result.new_total == 11

    def test_decrease_allowed_when_within_limit(self):
        assert can_update_quantity(other_qty=0, new_quantity=1, vendor_limit=10).can_update is True


class TestCheckNewCommitment:

    def test_inactive_deal_rejected_first(self):
        with pytest.raises(AllocationError) as exc:
            check_new_commitment(_deal(status="PAUSED"), [c(1, "PENDING")], 1)
        assert exc.value.code == DEAL_NOT_ACTIVE

    def test_existing_active_commitment_rejected(self):
        with pytest.raises(AllocationError) as exc:
            check_new_commitment(_deal(), [c(1, "IN_TRANSIT")], 1)
        assert exc.value.code == ACTIVE_COMMITMENT_EXISTS
        assert exc.value.details["remaining_allowance"] == 9

    def test_fulfilled_max_rejected(self):
        with pytest.raises(AllocationError) as exc:
            check_new_commitment(_deal(limit=5), [c(5, "FULFILLED")], 1)
        assert exc.value.code == MAX_QUANTITY_FULFILLED
        assert exc.value.details["remaining_allowance"] == 0

    def test_over_remaining_allowance_rejected_with_numbers(self):
        with pytest.raises(AllocationError) as exc:
            check_new_commitment(_deal(), [c(7, "FULFILLED")], 4)
        assert exc.value.code == VENDOR_LIMIT_EXCEEDED
        assert exc.value.status_code == 409
        assert exc.value.details == {
            "remaining_allowance": 3,
            "limit": 10,
            "fulfilled_qty": 7,
            "active_qty": 0,
        }
        assert "3 more units" in str(exc.value)

    def test_zero_limit_reports_max_fulfilled(self):
        with pytest.raises(AllocationError) as exc:
            check_new_commitment(_deal(limit=0), [], 1)
        assert exc.value.code == MAX_QUANTITY_FULFILLED

    def test_allowed_after_cancellation(self):
        result = check_new_commitment(_deal(limit=5), [c(5, "CANCELLED")], 5)
        assert result.allowed is True
