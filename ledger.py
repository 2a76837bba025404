"""
In-memory ledger for one user's one calendar day: the clocked total and its allocations.
The ledger never talks to storage; callers load and save it through a PersistenceGateway.
"""
import logging
import math
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable

from catalog import Catalog, check_structure
from duration import format_duration
from errors import DuplicateAllocation, InvalidDuration, NotFound

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("project_id", "stage_id", "task_id", "hours", "description")


@dataclass(frozen=True)
class WorkDay:
    user_id: str
    work_date: date
    total_hours: float = 0.0
    id: int | None = None


@dataclass(frozen=True)
class Allocation:
    id: str
    user_id: str
    work_date: date
    project_id: str
    stage_id: str | None = None
    task_id: str | None = None
    hours: float = 0.0
    description: str | None = None

    @property
    def display_hours(self) -> str:
        return format_duration(self.hours)


def new_allocation_id() -> str:
    return uuid.uuid4().hex


def _check_hours(hours: float, field: str) -> float:
    if hours is None or not math.isfinite(hours) or hours < 0:
        raise InvalidDuration("Hours must be a finite, non-negative number.", field=field)
    return float(hours)


class Ledger:
    """One WorkDay plus its ordered allocations."""

    def __init__(
        self,
        work_day: WorkDay,
        allocations: Iterable[Allocation] = (),
        catalog: Catalog | None = None,
        *,
        validate: bool = True,
    ) -> None:
        self._work_day = work_day
        self._catalog = catalog
        self._allocations: list[Allocation] = []
        # Raw text of the last total typed by the user, kept for retry after a failed save.
        self.total_input: str | None = None
        for allocation in allocations:
            if validate:
                self._validate(allocation)
            self._allocations.append(allocation)

    @classmethod
    def empty(cls, user_id: str, work_date: date, catalog: Catalog | None = None) -> "Ledger":
        return cls(WorkDay(user_id=user_id, work_date=work_date), catalog=catalog)

    @property
    def work_day(self) -> WorkDay:
        return self._work_day

    @property
    def user_id(self) -> str:
        return self._work_day.user_id

    @property
    def work_date(self) -> date:
        return self._work_day.work_date

    @property
    def total_hours(self) -> float:
        return self._work_day.total_hours

    @property
    def allocations(self) -> tuple[Allocation, ...]:
        return tuple(self._allocations)

    @property
    def catalog(self) -> Catalog | None:
        return self._catalog

    def _validate(self, allocation: Allocation) -> None:
        if self._catalog is not None:
            self._catalog.check(allocation.project_id, allocation.stage_id, allocation.task_id)
        else:
            check_structure(allocation.project_id, allocation.stage_id, allocation.task_id)
        _check_hours(allocation.hours, "hours")

    def _index(self, allocation_id: str) -> int | None:
        for i, allocation in enumerate(self._allocations):
            if allocation.id == allocation_id:
                return i
        return None

    def set_total_hours(self, hours: float) -> None:
        """Set the clocked total. Raises InvalidDuration if negative."""
        hours = _check_hours(hours, "total_hours")
        self._work_day = replace(self._work_day, total_hours=hours)
        logger.debug("Total for %s on %s set to %s", self.user_id, self.work_date, hours)

    def add_allocation(
        self,
        project_id: str,
        stage_id: str | None = None,
        task_id: str | None = None,
        hours: float = 0.0,
        description: str | None = None,
        *,
        allocation_id: str | None = None,
    ) -> Allocation:
        """Append an allocation. A caller-supplied allocation_id is kept as is.
        Raises DuplicateAllocation if that id is already in the ledger; use update_allocation
        to change an existing row."""
        if allocation_id and self._index(allocation_id) is not None:
            raise DuplicateAllocation(f"Allocation {allocation_id!r} already exists.", field="id")
        allocation = Allocation(
            id=allocation_id or new_allocation_id(),
            user_id=self.user_id,
            work_date=self.work_date,
            project_id=project_id or "",
            stage_id=stage_id or None,
            task_id=task_id or None,
            hours=hours,
            description=description,
        )
        self._validate(allocation)
        allocation = replace(allocation, hours=float(hours))
        self._allocations.append(allocation)
        logger.debug("Allocation %s added: %s h on %s", allocation.id, allocation.hours, allocation.project_id)
        return allocation

    def get_allocation(self, allocation_id: str) -> Allocation | None:
        index = self._index(allocation_id)
        return self._allocations[index] if index is not None else None

    def remove_allocation(self, allocation_id: str) -> bool:
        """Remove an allocation. Returns False (and does nothing) when the id is absent."""
        index = self._index(allocation_id)
        if index is None:
            return False
        del self._allocations[index]
        logger.debug("Allocation %s removed", allocation_id)
        return True

    def update_allocation(self, allocation_id: str, **fields) -> Allocation:
        """Update fields of an allocation.
        A new project_id clears stage_id and task_id, a new stage_id clears task_id; explicit values
        passed in the same call are applied after the reset. Validated like add_allocation and
        applied only if valid. Raises NotFound for an unknown id."""
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown allocation fields: {', '.join(sorted(unknown))}")
        index = self._index(allocation_id)
        if index is None:
            raise NotFound(f"Allocation {allocation_id!r} not found.", field="id")
        current = self._allocations[index]
        changes: dict = {}
        if "project_id" in fields and (fields["project_id"] or "") != current.project_id:
            changes.update(project_id=fields["project_id"] or "", stage_id=None, task_id=None)
        if "stage_id" in fields and (fields["stage_id"] or None) != changes.get("stage_id", current.stage_id):
            changes.update(stage_id=fields["stage_id"] or None, task_id=None)
        if "task_id" in fields:
            changes["task_id"] = fields["task_id"] or None
        if "hours" in fields:
            changes["hours"] = fields["hours"]
        if "description" in fields:
            changes["description"] = fields["description"]
        updated = replace(current, **changes)
        self._validate(updated)
        updated = replace(updated, hours=float(updated.hours))
        self._allocations[index] = updated
        return updated

    def replace_allocations(self, allocations: Iterable[Allocation]) -> None:
        """Swap in a whole allocation set. Nothing changes if any allocation is invalid."""
        validated = []
        seen = set()
        for allocation in allocations:
            self._validate(allocation)
            if allocation.id in seen:
                raise DuplicateAllocation(f"Allocation {allocation.id!r} appears twice.", field="id")
            seen.add(allocation.id)
            validated.append(allocation)
        self._allocations = validated

    def distributed_hours(self) -> float:
        """Sum of allocation hours."""
        return sum(a.hours for a in self._allocations)
