"""
Persistence boundary for the ledger core.
Only implementations of PersistenceGateway touch durable storage; everything else works on the
plain WorkDay / Allocation / Catalog values they return.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from catalog import Catalog
from ledger import Allocation, WorkDay

SAVING_TOTAL = "saving total"
SAVING_ALLOCATIONS = "saving allocations"
FETCHING_RANGE = "fetching range"
FETCHING_DAY = "fetching day"
FETCHING_CATALOG = "fetching catalog"


class GatewayError(RuntimeError):
    """A storage failure, tagged with the logical operation that was in flight.
    The original exception is available as __cause__."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed {operation}{detail}")
        self.operation = operation


@dataclass(frozen=True)
class RangeRecords:
    work_days: list[WorkDay] = field(default_factory=list)
    allocations: list[Allocation] = field(default_factory=list)


class PersistenceGateway(ABC):
    """Storage operations used by the ledger service."""

    @abstractmethod
    def fetch_work_day(self, user_id: str, work_date: date) -> WorkDay | None:
        ...

    @abstractmethod
    def fetch_allocations(self, user_id: str, work_date: date) -> list[Allocation]:
        ...

    @abstractmethod
    def fetch_range(self, user_id: str, start: date, end: date) -> RangeRecords:
        """Work days and allocations with start <= date <= end."""
        ...

    @abstractmethod
    def save_work_day(self, user_id: str, work_date: date, total_hours: float) -> int:
        """Upsert the total for (user_id, work_date). Returns the work day id."""
        ...

    @abstractmethod
    def replace_allocations(
        self, user_id: str, work_date: date, allocations: Sequence[Allocation]
    ) -> None:
        """Delete the day's allocations and insert the given set, in one transaction."""
        ...

    @abstractmethod
    def save_day(
        self,
        user_id: str,
        work_date: date,
        total_hours: float,
        allocations: Sequence[Allocation],
    ) -> int:
        """save_work_day and replace_allocations applied together, or not at all."""
        ...

    @abstractmethod
    def fetch_catalog(self) -> Catalog:
        ...
