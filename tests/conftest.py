"""
Pytest fixtures for the hours ledger tests.
Uses a temporary SQLite database seeded with a small catalog, and two user ids so tests can
exercise per-user scoping.
"""
from datetime import date
from pathlib import Path

import pytest

from catalog import Catalog, Project, Stage, Task
from database_manager import DatabaseManager
from service import LedgerService

USER1 = "user-1"
USER2 = "user-2"
DAY = date(2024, 3, 12)


@pytest.fixture
def catalog() -> Catalog:
    """P1 > S1 > T1 and T2, P1 > S2, P2 > S3; P3 has no stages."""
    return Catalog.from_items(
        projects=[
            Project(id="P1", name="Website"),
            Project(id="P2", name="Mobile app"),
            Project(id="P3", name="Internal"),
        ],
        stages=[
            Stage(id="S1", project_id="P1", name="Design"),
            Stage(id="S2", project_id="P1", name="Build"),
            Stage(id="S3", project_id="P2", name="Discovery"),
        ],
        tasks=[
            Task(id="T1", stage_id="S1", name="Wireframes"),
            Task(id="T2", stage_id="S1", name="Mockups"),
            Task(id="T3", stage_id="S3", name="Interviews"),
        ],
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A temporary SQLite database path (same path for all managers in a test)."""
    return tmp_path / "test_hours_ledger.db"


@pytest.fixture
def db(db_path: Path, catalog: Catalog, monkeypatch) -> DatabaseManager:
    """Initialised database with the test catalog imported."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    dm = DatabaseManager(db_path=db_path)
    dm.init_db()
    dm.import_catalog(catalog)
    return dm


@pytest.fixture
def service(db: DatabaseManager) -> LedgerService:
    return LedgerService(db)
