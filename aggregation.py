"""
Rollups of a user's work days and allocations for calendar and report views.
Records are supplied by the caller (usually from PersistenceGateway.fetch_range); nothing is fetched here.
"""
import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator

from catalog import UNNAMED_PROJECT, Catalog
from duration import to_hundredths, to_storage_decimal
from ledger import Allocation, WorkDay
from reconciliation import DayStatus, classify_hours, remaining_hours

DEFAULT_WEEK_START = calendar.SUNDAY


@dataclass(frozen=True)
class DayView:
    """One calendar cell / detail panel."""

    work_date: date
    total_hours: float
    distributed_hours: float
    remaining: float
    status: DayStatus
    allocations: tuple[Allocation, ...] = ()
    in_current_period: bool = True

    @property
    def over_allocated(self) -> bool:
        return self.remaining < 0


@dataclass(frozen=True)
class WeekSummary:
    week_start: date
    week_end: date
    total_hours: float
    distributed_hours: float
    complete_days: int
    partial_days: int

    @property
    def remaining(self) -> float:
        return remaining_hours(self.total_hours, self.distributed_hours)


@dataclass(frozen=True)
class ProjectRollup:
    project_id: str
    total_hours: float
    record_count: int
    last_activity_date: date
    project_name: str = UNNAMED_PROJECT


def _days(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValueError("End date must not be before start date.")


def week_bounds(day: date, week_start_day: int = DEFAULT_WEEK_START) -> tuple[date, date]:
    """First and last date of the week containing day. week_start_day uses calendar numbering (MONDAY=0)."""
    offset = (day.weekday() - week_start_day) % 7
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=6)


def calendar_bounds(year: int, month: int, week_start_day: int = DEFAULT_WEEK_START) -> tuple[date, date]:
    """Date range of a month grid: the month extended to whole weeks on both sides."""
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    return week_bounds(first, week_start_day)[0], week_bounds(last, week_start_day)[1]


class RangeView:
    """Day views for every date in start..end (inclusive), zero-filled.
    Iterating again yields the same sequence; nothing is cached."""

    def __init__(
        self,
        engine: "AggregationEngine",
        start: date,
        end: date,
        period: tuple[date, date] | None = None,
    ) -> None:
        _check_range(start, end)
        self.engine = engine
        self.start = start
        self.end = end
        self.period = period

    def __iter__(self) -> Iterator[DayView]:
        for day in _days(self.start, self.end):
            in_period = self.period is None or self.period[0] <= day <= self.period[1]
            yield self.engine.day_view(day, in_current_period=in_period)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1


class AggregationEngine:
    """Per-day, per-week and per-project rollups over one user's records."""

    def __init__(
        self,
        user_id: str,
        work_days: Iterable[WorkDay] = (),
        allocations: Iterable[Allocation] = (),
        week_start_day: int = DEFAULT_WEEK_START,
        catalog: Catalog | None = None,
    ) -> None:
        if not 0 <= week_start_day <= 6:
            raise ValueError(f"week_start_day must be 0..6, got {week_start_day}.")
        self.user_id = user_id
        self.week_start_day = week_start_day
        self.catalog = catalog
        self._totals: dict[date, float] = {}
        self._allocations: dict[date, list[Allocation]] = defaultdict(list)
        for wd in work_days:
            if wd.user_id == user_id:
                self._totals[wd.work_date] = wd.total_hours
        for a in allocations:
            if a.user_id == user_id:
                self._allocations[a.work_date].append(a)

    def day_view(self, day: date, *, in_current_period: bool = True) -> DayView:
        total = self._totals.get(day, 0.0)
        allocations = tuple(self._allocations.get(day, ()))
        distributed = sum(a.hours for a in allocations)
        return DayView(
            work_date=day,
            total_hours=to_storage_decimal(total),
            distributed_hours=to_storage_decimal(distributed),
            remaining=remaining_hours(total, distributed),
            status=classify_hours(total, distributed),
            allocations=allocations,
            in_current_period=in_current_period,
        )

    def range_view(self, start: date, end: date, period: tuple[date, date] | None = None) -> RangeView:
        return RangeView(self, start, end, period)

    def month_view(self, year: int, month: int) -> RangeView:
        """Month grid covering whole weeks; days of adjacent months are flagged out of period."""
        start, end = calendar_bounds(year, month, self.week_start_day)
        period = (date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1]))
        return RangeView(self, start, end, period)

    def week_view(self, day: date) -> RangeView:
        start, end = week_bounds(day, self.week_start_day)
        return RangeView(self, start, end)

    def week_rollup(self, start: date, end: date) -> list[WeekSummary]:
        """Totals per week for weeks overlapping start..end; only days inside the range are counted."""
        _check_range(start, end)
        weeks: dict[date, list[DayView]] = {}
        for view in self.range_view(start, end):
            week_start = week_bounds(view.work_date, self.week_start_day)[0]
            weeks.setdefault(week_start, []).append(view)
        result = []
        for week_start, views in weeks.items():
            result.append(
                WeekSummary(
                    week_start=week_start,
                    week_end=week_start + timedelta(days=6),
                    total_hours=to_storage_decimal(sum(v.total_hours for v in views)),
                    distributed_hours=to_storage_decimal(sum(v.distributed_hours for v in views)),
                    complete_days=sum(1 for v in views if v.status is DayStatus.COMPLETE),
                    partial_days=sum(1 for v in views if v.status is DayStatus.PARTIAL),
                )
            )
        return result

    def project_name(self, project_id: str) -> str:
        if self.catalog is None:
            return UNNAMED_PROJECT
        return self.catalog.project_name(project_id)

    def project_rollup(
        self,
        start: date,
        end: date,
        project_id: str | None = None,
        search: str | None = None,
    ) -> dict[str, ProjectRollup]:
        """Hours per project in start..end, largest first, ties by project id.
        search keeps only projects whose name contains it, ignoring case; blank means no filter."""
        _check_range(start, end)
        needle = (search or "").strip().casefold()
        totals: dict[str, float] = defaultdict(float)
        counts: dict[str, int] = defaultdict(int)
        last: dict[str, date] = {}
        for day, allocations in self._allocations.items():
            if not start <= day <= end:
                continue
            for a in allocations:
                if not a.project_id or (project_id is not None and a.project_id != project_id):
                    continue
                totals[a.project_id] += a.hours
                counts[a.project_id] += 1
                if a.project_id not in last or day > last[a.project_id]:
                    last[a.project_id] = day
        names = {pid: self.project_name(pid) for pid in totals}
        if needle:
            names = {pid: name for pid, name in names.items() if needle in name.casefold()}
        order = sorted(names, key=lambda pid: (-to_hundredths(totals[pid]), pid))
        return {
            pid: ProjectRollup(
                project_id=pid,
                total_hours=to_storage_decimal(totals[pid]),
                record_count=counts[pid],
                last_activity_date=last[pid],
                project_name=names[pid],
            )
            for pid in order
        }


def rollup_grand_total(rollup: dict[str, ProjectRollup]) -> float:
    """Sum over the rows given, so a searched rollup totals only the matching projects."""
    return to_storage_decimal(sum(entry.total_hours for entry in rollup.values()))


def percentage_of_total(entry: ProjectRollup, grand_total: float) -> float:
    """Share of grand_total in percent; 0.0 when grand_total is 0."""
    if grand_total == 0:
        return 0.0
    return entry.total_hours / grand_total * 100
