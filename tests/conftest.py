"""Shared test fixtures and data loading for schedule-reflow.

All test data lives in data/fixtures/ as JSON files.  This module loads
that data and exposes helper functions + pytest fixtures for the tests.

Reference week: Mon 2025-01-06 through Sun 2025-01-12, UTC.
Epoch: Mon 2025-01-06 00:00Z, also the default reflow time.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest

from schedule_reflow.loaders import reflow_input_from_documents
from schedule_reflow.reflow import ReflowEngine
from schedule_reflow.timestamps import parse_instant
from schedule_reflow.types import MaintenanceWindow, Shift, WorkCenter, WorkOrder

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "data" / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------
def _load_json(path: Path):
    with open(path) as f:
        return json.load(f)


_reference = _load_json(FIXTURES_DIR / "reference.json")
_work_centers = _load_json(FIXTURES_DIR / "work_centers.json")


# ---------------------------------------------------------------------------
# Reference constants derived from reference.json
# ---------------------------------------------------------------------------
EPOCH = parse_instant(_reference["epoch"])

# Day lookup:  DAYS["mon"] -> {"date": date(...), "datetime": datetime(...), ...}
DAYS: dict[str, dict] = {}
for _d in _reference["days"]:
    _date = date.fromisoformat(_d["date"])
    DAYS[_d["name"]] = {
        "date": _date,
        "datetime": datetime.combine(_date, time(0, 0), tzinfo=timezone.utc),
        "day_of_week": _d["day_of_week"],
    }


# ---------------------------------------------------------------------------
# Convenience helpers (importable by test modules)
# ---------------------------------------------------------------------------
def dt(day: str, time_label: str = "00:00") -> datetime:
    """UTC datetime from day name and time label.

    >>> dt("mon", "09:00")
    datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
    """
    hours, minutes = (int(part) for part in time_label.split(":"))
    return DAYS[day]["datetime"] + timedelta(hours=hours, minutes=minutes)


def day_date(day: str) -> date:
    """Date object for a named day."""
    return DAYS[day]["date"]


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------
def make_work_center(name: str = "standard", wc_id: str = "wc-1") -> WorkCenter:
    """Build a WorkCenter from work_centers.json by name."""
    config = _work_centers[name]
    return WorkCenter(
        id=wc_id,
        name=config["name"],
        shifts=tuple(Shift(*s) for s in config["shifts"]),
        maintenance_windows=tuple(
            MaintenanceWindow(parse_instant(start), parse_instant(end), reason)
            for start, end, reason in config["maintenance_windows"]
        ),
    )


def make_work_order(
    wo_id: str,
    start: datetime,
    end: datetime | None = None,
    duration: int = 60,
    *,
    work_center_id: str = "wc-1",
    depends_on: tuple[str, ...] = (),
    is_maintenance: bool = False,
) -> WorkOrder:
    """Build a WorkOrder. end defaults to start + duration wall-clock minutes."""
    return WorkOrder(
        id=wo_id,
        work_order_number=wo_id.upper(),
        manufacturing_order_id="mo-1",
        work_center_id=work_center_id,
        start_date=start,
        end_date=end if end is not None else start + timedelta(minutes=duration),
        duration_minutes=duration,
        is_maintenance=is_maintenance,
        depends_on=tuple(depends_on),
    )


# ---------------------------------------------------------------------------
# Scenario loader
# ---------------------------------------------------------------------------
def load_scenarios(name: str):
    """Load a scenario file from data/fixtures/scenarios/{name}.json."""
    return _load_json(SCENARIOS_DIR / f"{name}.json")


def load_reflow_scenario(name: str):
    """(ReflowInput, raw scenario dict) for a reflow_{name}.json file."""
    data = load_scenarios(f"reflow_{name}")
    return reflow_input_from_documents(data, source=name), data


REFLOW_SCENARIOS = ["delay_cascade", "shift_boundary", "maintenance"]


# ---------------------------------------------------------------------------
# pytest fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def epoch() -> datetime:
    return EPOCH


@pytest.fixture
def standard_center() -> WorkCenter:
    return make_work_center("standard")


@pytest.fixture
def maintenance_center() -> WorkCenter:
    """Standard shifts with a Monday 10:00-12:00 maintenance window."""
    return make_work_center("standard_maintenance")


@pytest.fixture
def engine() -> ReflowEngine:
    """Engine pinned to the reference epoch."""
    return ReflowEngine(now=EPOCH)
