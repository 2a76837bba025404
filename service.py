"""
Operations exposed to the UI layer.
Validation problems come back inside the result objects; storage failures are raised as
GatewayError naming the operation that failed, and never discard the ledger being edited.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from aggregation import (
    DEFAULT_WEEK_START,
    AggregationEngine,
    DayView,
    ProjectRollup,
    RangeView,
    WeekSummary,
    calendar_bounds,
)
from catalog import Catalog
from config import Settings
from database_manager import DatabaseManager
from duration import format_duration, parse_duration_strict, to_storage_decimal
from errors import LedgerError, MissingTotal
from gateway import (
    FETCHING_CATALOG,
    FETCHING_DAY,
    FETCHING_RANGE,
    SAVING_ALLOCATIONS,
    SAVING_TOTAL,
    GatewayError,
    PersistenceGateway,
)
from ledger import Ledger, WorkDay
from reconciliation import DayStatus, Reconciliation, prepare_save, reconcile_hours, saveable_allocations

logger = logging.getLogger(__name__)

# Ledgers kept open at once; the least recently opened one is dropped first.
MAX_OPEN_DAYS = 64


@dataclass(frozen=True)
class AllocationInput:
    """One row of the distribution form. hours may be typed text ("730") or a number."""

    project_id: str | None
    hours: str | float = ""
    stage_id: str | None = None
    task_id: str | None = None
    description: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class TotalHoursResult:
    total_hours: float = 0.0
    status: DayStatus = DayStatus.NONE
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def display(self) -> str:
        return format_duration(self.total_hours)


@dataclass(frozen=True)
class AllocationsResult:
    distributed_hours: float = 0.0
    remaining: float = 0.0
    status: DayStatus = DayStatus.NONE
    dropped: int = 0
    error: LedgerError | None = None
    # Index of the input row the error refers to, when it refers to one.
    row: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def over_allocated(self) -> bool:
        return self.remaining < 0

    @classmethod
    def from_reconciliation(cls, rec: Reconciliation, dropped: int = 0) -> "AllocationsResult":
        return cls(
            distributed_hours=rec.distributed_hours,
            remaining=rec.remaining,
            status=rec.status,
            dropped=dropped,
        )


def _hours_value(value: str | float | None) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return parse_duration_strict(value)


def _persisted_state(ledger: Ledger) -> Reconciliation:
    """Reconciliation over the rows that would survive a save."""
    kept = saveable_allocations(ledger.allocations)
    return reconcile_hours(ledger.total_hours, sum(a.hours for a in kept))


class LedgerService:
    """Loads, edits and saves day ledgers and builds calendar/report views for one gateway."""

    def __init__(self, gateway: PersistenceGateway, week_start_day: int = DEFAULT_WEEK_START) -> None:
        self.gateway = gateway
        self.week_start_day = week_start_day
        self._catalog: Catalog | None = None
        self._ledgers: OrderedDict[tuple[str, date], Ledger] = OrderedDict()

    def _call(self, operation: str, fn, *args):
        try:
            return fn(*args)
        except Exception as exc:
            logger.exception("Gateway failure while %s", operation)
            raise GatewayError(operation, exc) from exc

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = self._call(FETCHING_CATALOG, self.gateway.fetch_catalog)
        return self._catalog

    def refresh_catalog(self) -> Catalog:
        self._catalog = None
        return self.catalog

    def open_day(self, user_id: str, work_date: date) -> Ledger:
        """Ledger for (user_id, work_date), loaded from the gateway on first use and cached."""
        key = (user_id, work_date)
        ledger = self._ledgers.get(key)
        if ledger is not None:
            self._ledgers.move_to_end(key)
            return ledger
        catalog = self.catalog
        work_day = self._call(FETCHING_DAY, self.gateway.fetch_work_day, user_id, work_date)
        allocations = self._call(FETCHING_DAY, self.gateway.fetch_allocations, user_id, work_date)
        if work_day is None:
            work_day = WorkDay(user_id=user_id, work_date=work_date)
        # Stored rows are trusted even if the catalog has moved on since they were saved.
        ledger = Ledger(work_day, allocations, catalog=catalog, validate=False)
        self._ledgers[key] = ledger
        while len(self._ledgers) > MAX_OPEN_DAYS:
            self._ledgers.popitem(last=False)
        return ledger

    def close_day(self, user_id: str, work_date: date) -> None:
        """Forget the cached ledger so the next open_day reloads it."""
        self._ledgers.pop((user_id, work_date), None)

    def record_total_hours(self, user_id: str, work_date: date, duration_input: str) -> TotalHoursResult:
        """Parse and save the clocked total for a day."""
        ledger = self.open_day(user_id, work_date)
        ledger.total_input = duration_input
        try:
            hours = parse_duration_strict(duration_input)
            if hours <= 0:
                raise MissingTotal("Enter the total hours worked.", field="total_hours")
            ledger.set_total_hours(hours)
        except LedgerError as err:
            logger.debug("Rejected total %r: %s", duration_input, err)
            return TotalHoursResult(
                total_hours=ledger.total_hours,
                status=_persisted_state(ledger).status,
                error=err,
            )
        self._call(SAVING_TOTAL, self.gateway.save_work_day, user_id, work_date, to_storage_decimal(hours))
        ledger.total_input = None
        state = _persisted_state(ledger)
        return TotalHoursResult(total_hours=state.total_hours, status=state.status)

    def record_allocations(
        self,
        user_id: str,
        work_date: date,
        allocation_inputs: Sequence[AllocationInput],
    ) -> AllocationsResult:
        """Replace the day's allocations with the given rows and save total + rows as one unit.
        Rows without a project or hours are kept in the ledger but not persisted."""
        ledger = self.open_day(user_id, work_date)
        draft = Ledger(ledger.work_day, catalog=ledger.catalog)
        for row, item in enumerate(allocation_inputs):
            try:
                draft.add_allocation(
                    item.project_id or "",
                    item.stage_id,
                    item.task_id,
                    _hours_value(item.hours),
                    item.description,
                    allocation_id=item.id,
                )
            except LedgerError as err:
                state = _persisted_state(ledger)
                return AllocationsResult(
                    distributed_hours=state.distributed_hours,
                    remaining=state.remaining,
                    status=state.status,
                    error=err,
                    row=row,
                )
        ledger.replace_allocations(draft.allocations)
        try:
            plan = prepare_save(ledger)
        except MissingTotal as err:
            state = _persisted_state(ledger)
            return AllocationsResult(
                distributed_hours=state.distributed_hours,
                remaining=state.remaining,
                status=state.status,
                error=err,
            )
        self._call(
            SAVING_ALLOCATIONS,
            self.gateway.save_day,
            user_id,
            work_date,
            plan.total_hours,
            list(plan.allocations),
        )
        if not plan.dropped:
            # Storage now holds everything this ledger had; reload on next open_day.
            self.close_day(user_id, work_date)
        rec = plan.reconciliation()
        if rec.over_allocated:
            logger.warning("Saved over-allocated day %s for %s (%s h over)", work_date, user_id, -rec.remaining)
        return AllocationsResult.from_reconciliation(rec, dropped=plan.dropped)

    def _engine(
        self, user_id: str, start: date, end: date, catalog: Catalog | None = None
    ) -> AggregationEngine:
        records = self._call(FETCHING_RANGE, self.gateway.fetch_range, user_id, start, end)
        return AggregationEngine(
            user_id,
            records.work_days,
            records.allocations,
            week_start_day=self.week_start_day,
            catalog=catalog,
        )

    def get_day_view(self, user_id: str, day: date) -> DayView:
        return self._engine(user_id, day, day).day_view(day)

    def get_range_view(self, user_id: str, start: date, end: date) -> RangeView:
        return self._engine(user_id, start, end).range_view(start, end)

    def get_month_view(self, user_id: str, year: int, month: int) -> RangeView:
        start, end = calendar_bounds(year, month, self.week_start_day)
        return self._engine(user_id, start, end).month_view(year, month)

    def get_week_rollup(self, user_id: str, start: date, end: date) -> list[WeekSummary]:
        return self._engine(user_id, start, end).week_rollup(start, end)

    def get_project_rollup(
        self,
        user_id: str,
        start: date,
        end: date,
        project_id: str | None = None,
        search: str | None = None,
    ) -> dict[str, ProjectRollup]:
        """Project report rows named from the catalog, optionally narrowed by a name search."""
        engine = self._engine(user_id, start, end, catalog=self.catalog)
        return engine.project_rollup(start, end, project_id, search)


def build_service(settings: Settings) -> LedgerService:
    """Service backed by a SQLAlchemy DatabaseManager configured from settings."""
    manager = DatabaseManager(db_path=settings.db_path, database_url=settings.database_url)
    manager.init_db()
    return LedgerService(manager, week_start_day=settings.week_start_day)
