"""
Database manager for the hours ledger: work days, allocations and a mirrored project catalog.
Supports local SQLite (default) or any SQLAlchemy URL (e.g. PostgreSQL) via DATABASE_URL.
Every read and write is scoped by the user id passed in.
"""
import logging
import os
from pathlib import Path
from datetime import date
from contextlib import contextmanager
from typing import Generator, Sequence

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from catalog import Catalog, Project, Stage, Task
from gateway import PersistenceGateway, RangeRecords
from ledger import Allocation, WorkDay
from models import Base, AllocationRow, ProjectRow, StageRow, TaskRow, WorkDayRow

logger = logging.getLogger(__name__)


def _work_day_from_row(row: WorkDayRow) -> WorkDay:
    return WorkDay(
        user_id=row.user_id,
        work_date=row.work_date,
        total_hours=row.total_hours or 0.0,
        id=row.id,
    )


def _allocation_from_row(row: AllocationRow) -> Allocation:
    return Allocation(
        id=row.id,
        user_id=row.user_id,
        work_date=row.work_date,
        project_id=row.project_id,
        stage_id=row.stage_id,
        task_id=row.task_id,
        hours=row.worked_hours or 0.0,
        description=row.description,
    )


class DatabaseManager(PersistenceGateway):
    """Database as an object: owns engine and sessions, exposes gateway operations as methods."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        database_url: str | None = None,
    ) -> None:
        url = database_url or os.environ.get("DATABASE_URL")
        if url:
            self._engine = create_engine(url, echo=False)
        else:
            if db_path is None:
                db_path = Path(__file__).resolve().parent / "hours_ledger.db"
            path_str = str(db_path)
            self._engine = create_engine(f"sqlite:///{path_str}", echo=False)
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False
        )

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        """Yield a new session (context manager)."""
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        Base.metadata.create_all(self._engine)

    def _upsert_work_day(
        self, session: Session, user_id: str, work_date: date, total_hours: float
    ) -> WorkDayRow:
        row = (
            session.query(WorkDayRow)
            .filter(WorkDayRow.user_id == user_id, WorkDayRow.work_date == work_date)
            .first()
        )
        if row is None:
            row = WorkDayRow(user_id=user_id, work_date=work_date, total_hours=total_hours)
            session.add(row)
        else:
            row.total_hours = total_hours
        return row

    def _replace_allocations(
        self,
        session: Session,
        user_id: str,
        work_date: date,
        allocations: Sequence[Allocation],
    ) -> None:
        session.query(AllocationRow).filter(
            AllocationRow.user_id == user_id, AllocationRow.work_date == work_date
        ).delete(synchronize_session=False)
        for position, a in enumerate(allocations):
            if a.user_id != user_id or a.work_date != work_date:
                raise ValueError(f"Allocation {a.id} does not belong to {user_id} on {work_date}.")
            session.add(
                AllocationRow(
                    id=a.id,
                    user_id=user_id,
                    work_date=work_date,
                    project_id=a.project_id,
                    stage_id=a.stage_id,
                    task_id=a.task_id,
                    worked_hours=a.hours,
                    position=position,
                    description=a.description,
                )
            )

    def fetch_work_day(self, user_id: str, work_date: date) -> WorkDay | None:
        with self._session() as session:
            row = (
                session.query(WorkDayRow)
                .filter(WorkDayRow.user_id == user_id, WorkDayRow.work_date == work_date)
                .first()
            )
            return _work_day_from_row(row) if row else None

    def fetch_allocations(self, user_id: str, work_date: date) -> list[Allocation]:
        """Allocations of one day in insertion order."""
        with self._session() as session:
            rows = (
                session.query(AllocationRow)
                .filter(AllocationRow.user_id == user_id, AllocationRow.work_date == work_date)
                .order_by(AllocationRow.position)
                .all()
            )
            return [_allocation_from_row(r) for r in rows]

    def fetch_range(self, user_id: str, start: date, end: date) -> RangeRecords:
        if end < start:
            raise ValueError("End date must not be before start date.")
        with self._session() as session:
            days = (
                session.query(WorkDayRow)
                .filter(
                    WorkDayRow.user_id == user_id,
                    WorkDayRow.work_date >= start,
                    WorkDayRow.work_date <= end,
                )
                .order_by(WorkDayRow.work_date)
                .all()
            )
            allocations = (
                session.query(AllocationRow)
                .filter(
                    AllocationRow.user_id == user_id,
                    AllocationRow.work_date >= start,
                    AllocationRow.work_date <= end,
                )
                .order_by(AllocationRow.work_date, AllocationRow.position)
                .all()
            )
            return RangeRecords(
                work_days=[_work_day_from_row(r) for r in days],
                allocations=[_allocation_from_row(r) for r in allocations],
            )

    def save_work_day(self, user_id: str, work_date: date, total_hours: float) -> int:
        with self._session() as session:
            row = self._upsert_work_day(session, user_id, work_date, total_hours)
            session.commit()
            session.refresh(row)
            logger.info("Saved total %s h for %s on %s", total_hours, user_id, work_date)
            return row.id

    def replace_allocations(
        self, user_id: str, work_date: date, allocations: Sequence[Allocation]
    ) -> None:
        with self._session() as session:
            try:
                self._replace_allocations(session, user_id, work_date, allocations)
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.info("Replaced allocations for %s on %s (%d rows)", user_id, work_date, len(allocations))

    def save_day(
        self,
        user_id: str,
        work_date: date,
        total_hours: float,
        allocations: Sequence[Allocation],
    ) -> int:
        with self._session() as session:
            try:
                row = self._upsert_work_day(session, user_id, work_date, total_hours)
                self._replace_allocations(session, user_id, work_date, allocations)
                session.commit()
            except Exception:
                session.rollback()
                raise
            session.refresh(row)
            logger.info(
                "Saved day %s for %s: %s h total, %d allocation(s)",
                work_date,
                user_id,
                total_hours,
                len(allocations),
            )
            return row.id

    def fetch_catalog(self) -> Catalog:
        with self._session() as session:
            return Catalog.from_items(
                projects=[
                    Project(id=p.id, name=p.name, status=p.status)
                    for p in session.query(ProjectRow).order_by(ProjectRow.name).all()
                ],
                stages=[
                    Stage(id=s.id, project_id=s.project_id, name=s.name, status=s.status)
                    for s in session.query(StageRow).order_by(StageRow.name).all()
                ],
                tasks=[
                    Task(id=t.id, stage_id=t.stage_id, name=t.name, status=t.status)
                    for t in session.query(TaskRow).order_by(TaskRow.name).all()
                ],
            )

    def import_catalog(self, catalog: Catalog) -> None:
        """
        Replace the mirrored catalog with the given snapshot. Projects, stages and tasks are
        authored elsewhere; existing allocations keep their ids.
        """
        with self._session() as session:
            try:
                # Delete in FK order
                session.query(TaskRow).delete(synchronize_session=False)
                session.query(StageRow).delete(synchronize_session=False)
                session.query(ProjectRow).delete(synchronize_session=False)
                session.flush()
                for p in catalog.projects.values():
                    session.add(ProjectRow(id=p.id, name=p.name, status=p.status))
                session.flush()
                for s in catalog.stages.values():
                    session.add(StageRow(id=s.id, project_id=s.project_id, name=s.name, status=s.status))
                session.flush()
                for t in catalog.tasks.values():
                    session.add(TaskRow(id=t.id, stage_id=t.stage_id, name=t.name, status=t.status))
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.info(
            "Imported catalog: %d projects, %d stages, %d tasks",
            len(catalog.projects),
            len(catalog.stages),
            len(catalog.tasks),
        )
