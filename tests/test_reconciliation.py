"""
Tests for day status classification, remaining hours and the save gate.
"""
from datetime import date

import pytest

from errors import MissingTotal
from ledger import Ledger
from reconciliation import (
    DayStatus,
    classify,
    classify_hours,
    is_over_allocated,
    prepare_save,
    reconcile,
    remaining,
)

DAY = date(2024, 3, 12)


def make_ledger(total: float, *hours: float) -> Ledger:
    ledger = Ledger.empty("user-1", DAY)
    ledger.set_total_hours(total)
    for i, h in enumerate(hours):
        ledger.add_allocation(f"P{i + 1}", hours=h)
    return ledger


class TestClassify:
    """none / partial / complete from total and distributed hours."""

    def test_nothing_recorded_is_none(self):
        """No total and no allocations is none."""
        assert classify(make_ledger(0)) is DayStatus.NONE

    def test_exact_match_is_complete(self):
        """Allocations that add up to the total make the day complete."""
        assert classify(make_ledger(8, 4, 4)) is DayStatus.COMPLETE

    def test_match_after_storage_rounding_is_complete(self):
        """Three thirds of 8h sum to 8.0 at two decimals."""
        assert classify(make_ledger(8, 8 / 3, 8 / 3, 8 / 3)) is DayStatus.COMPLETE

    @pytest.mark.parametrize("distributed", [8.01, 7.99])
    def test_one_unit_off_is_partial(self, distributed):
        """A difference of one hundredth is enough to stay partial."""
        assert classify(make_ledger(8, distributed)) is DayStatus.PARTIAL

    def test_total_without_allocations_is_partial(self):
        """A total with nothing distributed is partial."""
        assert classify(make_ledger(8)) is DayStatus.PARTIAL

    def test_over_distribution_is_partial(self):
        """Distributing more than the total is partial, not complete."""
        assert classify(make_ledger(8, 5, 5)) is DayStatus.PARTIAL

    def test_allocations_without_total_is_partial(self):
        """Hours distributed without a total are partial."""
        assert classify_hours(0, 3) is DayStatus.PARTIAL

    def test_status_values(self):
        """Status values are the lowercase names used in storage and views."""
        assert [s.value for s in DayStatus] == ["none", "partial", "complete"]


class TestRemaining:
    """Remaining hours and the reconciliation snapshot."""

    def test_under_allocated(self):
        """Remaining is total minus distributed."""
        assert remaining(make_ledger(8, 4, 2)) == 2.0

    def test_balanced(self):
        """A balanced day has nothing remaining."""
        assert remaining(make_ledger(8, 4, 4)) == 0.0

    def test_over_allocated_is_negative_not_clamped(self):
        """Over-allocation shows as a negative remaining value."""
        ledger = make_ledger(8, 5, 5)
        assert remaining(ledger) == -2.0
        assert is_over_allocated(ledger) is True

    def test_reconcile_snapshot(self):
        """reconcile collects total, distributed, remaining and status in one value."""
        rec = reconcile(make_ledger(7.5, 5, 3))
        assert rec.total_hours == 7.5
        assert rec.distributed_hours == 8.0
        assert rec.remaining == -0.5
        assert rec.status is DayStatus.PARTIAL
        assert rec.over_allocated and not rec.is_complete


class TestSaveGate:
    """What prepare_save lets through to storage."""

    def test_missing_total_blocks_save(self):
        """A day without a total cannot be saved."""
        with pytest.raises(MissingTotal):
            prepare_save(make_ledger(0, 4))

    def test_incomplete_rows_are_dropped(self):
        """Rows without a project or without hours are left out and counted."""
        ledger = make_ledger(8, 4)
        ledger.add_allocation("", hours=2)
        ledger.add_allocation("P9", hours=0)
        plan = prepare_save(ledger)
        assert [a.project_id for a in plan.allocations] == ["P1"]
        assert plan.dropped == 2
        assert plan.distributed_hours == 4.0
        assert plan.reconciliation().status is DayStatus.PARTIAL

    def test_values_rounded_for_storage(self):
        """Total and rows are rounded to two decimals before saving."""
        ledger = make_ledger(7 + 10 / 60, 7 + 10 / 60)
        plan = prepare_save(ledger)
        assert plan.total_hours == 7.17
        assert plan.allocations[0].hours == 7.17
        assert plan.reconciliation().status is DayStatus.COMPLETE
