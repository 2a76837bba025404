"""
Reconciliation of a day's clocked total against its allocations.
Status is always derived here and never stored.
"""
import enum
import logging
from dataclasses import dataclass, replace
from typing import Iterable

from duration import to_hundredths, to_storage_decimal
from errors import MissingTotal
from ledger import Allocation, Ledger

logger = logging.getLogger(__name__)

# One storage unit (0.01 h). Totals match when they differ by less than this after rounding.
EPSILON = 0.01


class DayStatus(str, enum.Enum):
    NONE = "none"
    PARTIAL = "partial"
    COMPLETE = "complete"


def classify_hours(total_hours: float, distributed_hours: float) -> DayStatus:
    """Classify a day from its total and distributed hours.
    Both zero: none. Positive total equal to distributed at storage precision: complete.
    Anything else (under, over, or no allocations yet): partial."""
    total = to_hundredths(total_hours)
    distributed = to_hundredths(distributed_hours)
    if total == 0 and distributed == 0:
        return DayStatus.NONE
    if total > 0 and total == distributed:
        return DayStatus.COMPLETE
    return DayStatus.PARTIAL


def classify(ledger: Ledger) -> DayStatus:
    return classify_hours(ledger.total_hours, ledger.distributed_hours())


def remaining_hours(total_hours: float, distributed_hours: float) -> float:
    """Total minus distributed at storage precision. Negative means over-allocated."""
    return (to_hundredths(total_hours) - to_hundredths(distributed_hours)) / 100


def remaining(ledger: Ledger) -> float:
    return remaining_hours(ledger.total_hours, ledger.distributed_hours())


def is_over_allocated(ledger: Ledger) -> bool:
    return remaining(ledger) < 0


@dataclass(frozen=True)
class Reconciliation:
    total_hours: float
    distributed_hours: float
    remaining: float
    status: DayStatus

    @property
    def over_allocated(self) -> bool:
        return self.remaining < 0

    @property
    def is_complete(self) -> bool:
        return self.status is DayStatus.COMPLETE


def reconcile_hours(total_hours: float, distributed_hours: float) -> Reconciliation:
    return Reconciliation(
        total_hours=to_storage_decimal(total_hours),
        distributed_hours=to_storage_decimal(distributed_hours),
        remaining=remaining_hours(total_hours, distributed_hours),
        status=classify_hours(total_hours, distributed_hours),
    )


def reconcile(ledger: Ledger) -> Reconciliation:
    """Snapshot of total, distributed, remaining and status for a ledger."""
    result = reconcile_hours(ledger.total_hours, ledger.distributed_hours())
    if result.over_allocated:
        logger.warning(
            "Over-allocated %s on %s by %s h",
            ledger.user_id,
            ledger.work_date,
            -result.remaining,
        )
    return result


def is_saveable(allocation: Allocation) -> bool:
    """A row can be persisted once it has a project and positive hours."""
    return bool(allocation.project_id) and allocation.hours > 0


def saveable_allocations(allocations: Iterable[Allocation]) -> list[Allocation]:
    """Drop incomplete rows (no project or no hours), keeping order."""
    return [a for a in allocations if is_saveable(a)]


@dataclass(frozen=True)
class SavePlan:
    """What actually gets written for a day: rounded total, saveable rows, and how many were dropped."""

    total_hours: float
    allocations: tuple[Allocation, ...]
    dropped: int

    @property
    def distributed_hours(self) -> float:
        return to_storage_decimal(sum(a.hours for a in self.allocations))

    def reconciliation(self) -> Reconciliation:
        return reconcile_hours(self.total_hours, self.distributed_hours)


def prepare_save(ledger: Ledger) -> SavePlan:
    """Gate a ledger for saving. Raises MissingTotal when no positive total is recorded."""
    if ledger.total_hours <= 0:
        raise MissingTotal("Record the total hours worked before saving.", field="total_hours")
    kept = saveable_allocations(replace(a, hours=to_storage_decimal(a.hours)) for a in ledger.allocations)
    dropped = len(ledger.allocations) - len(kept)
    if dropped:
        logger.warning("Dropping %d incomplete allocation(s) for %s on %s", dropped, ledger.user_id, ledger.work_date)
    return SavePlan(
        total_hours=to_storage_decimal(ledger.total_hours),
        allocations=tuple(kept),
        dropped=dropped,
    )
