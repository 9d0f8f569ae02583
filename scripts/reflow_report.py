#!/usr/bin/env python
"""Visual verification report for schedule-reflow.

Run:  python scripts/reflow_report.py

Produces a formatted report showing:
  1. Reference data (epoch, day table with Sunday=0 weekday numbers)
  2. Work center configurations (shift tables, maintenance windows)
  3. Calendar arithmetic cases  -- input/output tables with PASS/FAIL
  4. Reflow scenarios  -- before/after tables, ASCII timelines, change log
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths and data loading
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
FIXTURES = ROOT / "data" / "fixtures"
SCENARIOS = FIXTURES / "scenarios"

sys.path.insert(0, str(ROOT / "src"))

from schedule_reflow.calendar import calculate_end_date, get_earliest_start_time
from schedule_reflow.debug import show_changes, show_schedule
from schedule_reflow.loaders import load_reflow_input_json
from schedule_reflow.reflow import ReflowEngine
from schedule_reflow.timestamps import parse_instant
from schedule_reflow.types import MaintenanceWindow, ReflowError, Shift, WorkCenter

logger = logging.getLogger("reflow_report")


def _load(path: Path):
    with open(path) as f:
        return json.load(f)


_ref = _load(FIXTURES / "reference.json")
_centers = _load(FIXTURES / "work_centers.json")

EPOCH = parse_instant(_ref["epoch"])
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
SCENARIO_NAMES = ["delay_cascade", "shift_boundary", "maintenance"]

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
WIDTH = 90


def banner(title: str):
    print()
    print("=" * WIDTH)
    print(f"  {title}")
    print("=" * WIDTH)


def heading(title: str):
    print()
    print(f"  {title}")
    print(f"  {'-' * (len(title) + 2)}")


def table(headers: list[str], rows: list[list[str]], indent: int = 4):
    """Print a formatted table with auto-sized columns."""
    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    pad = " " * indent
    fmt = pad + "  ".join(f"{{:<{w}}}" for w in col_widths)
    sep = pad + "  ".join("-" * w for w in col_widths)

    print(fmt.format(*headers))
    print(sep)
    for row in rows:
        padded = row + [""] * (len(headers) - len(row))
        print(fmt.format(*padded))


def _fmt_dt(value: datetime | str) -> str:
    """Format an instant as 'Mon 06 Jan 09:00' (UTC)."""
    dt = parse_instant(value) if isinstance(value, str) else value
    day_name = DAY_NAMES[(dt.weekday() + 1) % 7]
    return f"{day_name} {dt.strftime('%d %b %H:%M')}"


def _make_center(name: str) -> WorkCenter:
    config = _centers[name]
    return WorkCenter(
        id=name,
        name=config["name"],
        shifts=tuple(Shift(*s) for s in config["shifts"]),
        maintenance_windows=tuple(
            MaintenanceWindow(parse_instant(start), parse_instant(end), reason)
            for start, end, reason in config["maintenance_windows"]
        ),
    )


def _check(result: datetime, expected: str) -> str:
    return "PASS" if result == parse_instant(expected) else "FAIL"


# ---------------------------------------------------------------------------
# Section 1: Reference Data
# ---------------------------------------------------------------------------
def section_reference():
    banner("REFERENCE DATA")
    print(f"\n    Epoch:          {EPOCH.strftime('%A %Y-%m-%d %H:%M')} UTC")
    print("    Weekdays:       Sunday=0 .. Saturday=6")

    heading("Day Mapping")
    rows = []
    for d in _ref["days"]:
        rows.append([d["name"], d["date"], DAY_NAMES[d["day_of_week"]], str(d["day_of_week"])])
    table(["Name", "Date", "Day", "dayOfWeek"], rows)


# ---------------------------------------------------------------------------
# Section 2: Work Centers
# ---------------------------------------------------------------------------
def section_work_centers():
    banner("WORK CENTER CONFIGURATIONS")

    for name in _centers:
        wc = _make_center(name)
        heading(f"{name}: {wc.name}")
        rows = [
            [DAY_NAMES[s.day_of_week], f"{s.start_hour:02d}:00-{s.end_hour:02d}:00", str(s.minutes)]
            for s in sorted(wc.shifts, key=lambda s: s.day_of_week)
        ]
        if rows:
            table(["Day", "Shift", "Minutes"], rows)
        else:
            print("    (no shifts)")
        for w in wc.maintenance_windows:
            print(f"    Maintenance: {_fmt_dt(w.start_date)} -> {_fmt_dt(w.end_date)}"
                  f"  ({w.reason})")


# ---------------------------------------------------------------------------
# Section 3: Calendar Arithmetic
# ---------------------------------------------------------------------------
def section_calendar_arithmetic():
    banner("CALENDAR ARITHMETIC")
    cases = _load(SCENARIOS / "calendar.json")

    heading("calculate_end_date")
    rows = []
    for spec in cases["calculate_end_date"]:
        wc = _make_center(spec["work_center"])
        result = calculate_end_date(
            parse_instant(spec["start"]), spec["minutes"],
            wc.shifts, wc.maintenance_windows,
        )
        rows.append([
            spec["id"], spec["work_center"], _fmt_dt(spec["start"]),
            str(spec["minutes"]), _fmt_dt(result), _check(result, spec["expected"]),
        ])
    table(["Case", "Center", "Start", "Minutes", "End", "Check"], rows)

    heading("get_earliest_start_time")
    rows = []
    for spec in cases["get_earliest_start_time"]:
        wc = _make_center(spec["work_center"])
        result = get_earliest_start_time(
            [parse_instant(p) for p in spec["parents"]],
            parse_instant(spec["available"]),
            wc.shifts, wc.maintenance_windows,
        )
        parents = ", ".join(_fmt_dt(p) for p in spec["parents"]) or "-"
        rows.append([
            spec["id"], parents, _fmt_dt(spec["available"]),
            _fmt_dt(result), _check(result, spec["expected"]),
        ])
    table(["Case", "Parents end", "Center free", "Earliest", "Check"], rows)


# ---------------------------------------------------------------------------
# Section 4: Reflow Scenarios
# ---------------------------------------------------------------------------
def section_scenario(name: str):
    path = SCENARIOS / f"reflow_{name}.json"
    data = _load(path)
    banner(f"SCENARIO: {name}")
    print(f"\n    {data['description']}")
    print(f"    Reflow time: {_fmt_dt(data['now'])}")

    reflow_input = load_reflow_input_json(path)
    result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
    updated = {wo.id: wo for wo in result.updated_work_orders}

    heading("Before / After")
    rows = []
    for wo in reflow_input.work_orders:
        new = updated.get(wo.id)
        expected = data.get("expected", {}).get(wo.id)
        check = ""
        if new is not None and expected is not None:
            ok = (new.start_date, new.end_date) == tuple(parse_instant(e) for e in expected)
            check = "PASS" if ok else "FAIL"
        rows.append([
            wo.work_order_number,
            wo.work_center_id,
            "M" if wo.is_maintenance else "",
            f"{_fmt_dt(wo.start_date)} -> {_fmt_dt(wo.end_date)}",
            f"{_fmt_dt(new.start_date)} -> {_fmt_dt(new.end_date)}" if new else "-",
            check,
        ])
    table(["WO", "Center", "Mnt", "Planned", "Reflowed", "Check"], rows)

    if result.updated_work_orders:
        first_day = min(wo.start_date for wo in result.updated_work_orders).date()
        last_day = max(wo.end_date for wo in result.updated_work_orders).date()
        print()
        show_schedule(
            result.updated_work_orders,
            reflow_input.work_centers,
            first_day,
            last_day + timedelta(days=1),
        )

    heading("Change log")
    show_changes(result)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    banner("SCHEDULE-REFLOW   --  VISUAL VERIFICATION REPORT")
    print(f"    Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print(f"    Fixture data: {FIXTURES.relative_to(ROOT)}/")

    section_reference()
    section_work_centers()
    try:
        section_calendar_arithmetic()
    except ReflowError as e:
        logger.error("Calendar arithmetic failed: %s", e)
    for name in SCENARIO_NAMES:
        section_scenario(name)

    banner("END OF REPORT")
    print()


if __name__ == "__main__":
    main()
