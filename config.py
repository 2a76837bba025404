"""
Settings read from the environment, and logging setup.
DATABASE_URL takes precedence over HOURS_LEDGER_DB_PATH, as in DatabaseManager.
"""
import calendar
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

WEEKDAYS = {name.lower(): i for i, name in enumerate(calendar.day_name)}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str | None
    db_path: Path | None
    week_start_day: int
    log_level: str


def parse_week_start(value: str | None) -> int:
    """Weekday name ('sunday', 'Mon', ...) or number 0-6 (Monday=0). Default Sunday."""
    if value is None or not value.strip():
        return calendar.SUNDAY
    value = value.strip().lower()
    if value.isdigit() and 0 <= int(value) <= 6:
        return int(value)
    for name, number in WEEKDAYS.items():
        if len(value) >= 3 and name.startswith(value):
            return number
    raise ValueError(f"Unknown week start day: {value!r}")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    db_path = env.get("HOURS_LEDGER_DB_PATH")
    return Settings(
        database_url=env.get("DATABASE_URL") or None,
        db_path=Path(db_path) if db_path else None,
        week_start_day=parse_week_start(env.get("HOURS_LEDGER_WEEK_START")),
        log_level=(env.get("HOURS_LEDGER_LOG_LEVEL") or "WARNING").upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
