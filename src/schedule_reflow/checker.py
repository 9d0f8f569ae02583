"""Layer 3: constraint checker. Certifies a finished schedule.

Independent of the reflow engine: it re-derives every violation from the
work orders and work centers alone, so it can check schedules produced
anywhere. All four passes always run; nothing short-circuits.

Rules:
    1. Work center: one order at a time (no overlapping [start, end))
    2. Dependencies: every parent ends no later than its child starts
    3. Shifts: start and end instants fall inside a shift
    4. Maintenance: no work inside a maintenance window
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from schedule_reflow.calendar import (
    calculate_end_date,
    is_during_shift,
    overlaps_maintenance,
    time_periods_overlap,
)
from schedule_reflow.graph import DependencyGraph
from schedule_reflow.timestamps import format_instant, minutes_between
from schedule_reflow.types import (
    ConstraintViolation,
    SchedulingBoundExceeded,
    ViolationType,
    WorkCenter,
    WorkOrder,
)


def validate(
    work_orders: Sequence[WorkOrder],
    work_centers: Sequence[WorkCenter],
) -> list[ConstraintViolation]:
    """Check a schedule against all constraints. Empty list = valid.

    Raises GraphConstructionError if a work order depends on an unknown id.
    """
    centers = {wc.id: wc for wc in work_centers}

    violations: list[ConstraintViolation] = []
    violations.extend(check_work_center_conflicts(work_orders, centers))
    violations.extend(check_dependencies(work_orders))
    violations.extend(check_shift_boundaries(work_orders, centers))
    violations.extend(check_maintenance_conflicts(work_orders, centers))
    return violations


def is_valid(
    work_orders: Sequence[WorkOrder],
    work_centers: Sequence[WorkCenter],
) -> bool:
    return not validate(work_orders, work_centers)


def _center_name(centers: dict[str, WorkCenter], work_center_id: str) -> str:
    center = centers.get(work_center_id)
    return center.name if center is not None else work_center_id


def check_work_center_conflicts(
    work_orders: Sequence[WorkOrder],
    centers: dict[str, WorkCenter],
) -> list[ConstraintViolation]:
    """Overlapping orders on the same work center.

    Orders are sorted by start, and each one is compared with the
    latest-ending order seen so far on that center. That catches every
    overlapping neighbour plus a long order spanning several short ones.
    """
    violations: list[ConstraintViolation] = []

    by_center: dict[str, list[WorkOrder]] = defaultdict(list)
    for wo in work_orders:
        by_center[wo.work_center_id].append(wo)

    for wc_id, orders in by_center.items():
        ordered = sorted(orders, key=lambda wo: wo.start_date)
        latest = ordered[0]
        for current in ordered[1:]:
            if time_periods_overlap(
                latest.start_date, latest.end_date,
                current.start_date, current.end_date,
            ):
                violations.append(ConstraintViolation(
                    type=ViolationType.WORK_CENTER_OVERLAP,
                    work_order_id=current.id,
                    message=(
                        f"Work order {current.work_order_number} overlaps with "
                        f"{latest.work_order_number} on work center "
                        f"{_center_name(centers, wc_id)}"
                    ),
                    details={
                        "conflicts_with": latest.id,
                        "work_center_id": wc_id,
                        "overlap": [
                            {
                                "id": wo.id,
                                "number": wo.work_order_number,
                                "start": format_instant(wo.start_date),
                                "end": format_instant(wo.end_date),
                            }
                            for wo in (latest, current)
                        ],
                    },
                ))
            if current.end_date > latest.end_date:
                latest = current

    return violations


def check_dependencies(work_orders: Sequence[WorkOrder]) -> list[ConstraintViolation]:
    """Every parent must complete before its child starts."""
    violations: list[ConstraintViolation] = []
    graph = DependencyGraph(work_orders)

    for wo in work_orders:
        for parent in graph.get_parents(wo.id):
            if parent.end_date > wo.start_date:
                violations.append(ConstraintViolation(
                    type=ViolationType.DEPENDENCY_NOT_MET,
                    work_order_id=wo.id,
                    message=(
                        f"Work order {wo.work_order_number} starts before its "
                        f"dependency {parent.work_order_number} completes"
                    ),
                    details={
                        "parent_id": parent.id,
                        "parent_number": parent.work_order_number,
                        "parent_end": format_instant(parent.end_date),
                        "child_start": format_instant(wo.start_date),
                        "violation_minutes": minutes_between(
                            wo.start_date, parent.end_date
                        ),
                    },
                ))

    return violations


def check_shift_boundaries(
    work_orders: Sequence[WorkOrder],
    centers: dict[str, WorkCenter],
) -> list[ConstraintViolation]:
    """Start and end instants must fall inside a shift.

    The start uses the opening convention [shift_start, shift_end) and the
    end the closing convention (shift_start, shift_end]. Maintenance orders
    are exempt.
    """
    violations: list[ConstraintViolation] = []

    for wo in work_orders:
        center = centers.get(wo.work_center_id)
        if center is None or wo.is_maintenance:
            continue

        checks = (
            ("starts", "start_date", wo.start_date, False),
            ("ends", "end_date", wo.end_date, True),
        )
        for verb, key, instant, closing in checks:
            if is_during_shift(instant, center.shifts, closing=closing):
                continue
            violations.append(ConstraintViolation(
                type=ViolationType.OUTSIDE_SHIFT,
                work_order_id=wo.id,
                message=(
                    f"Work order {wo.work_order_number} {verb} outside shift hours"
                ),
                details={
                    key: format_instant(instant),
                    "work_center_id": center.id,
                    "shifts": [
                        (s.day_of_week, s.start_hour, s.end_hour)
                        for s in center.shifts
                    ],
                },
            ))

    return violations


def _pauses_cleanly(wo: WorkOrder, center: WorkCenter) -> bool:
    """Whether an order spanning maintenance only pauses across it.

    True when the start is not inside a window and the recorded end is
    exactly where the work completes when it stops for every window.
    """
    windows = center.maintenance_windows
    if any(window.covers(wo.start_date) for window in windows):
        return False
    try:
        expected_end = calculate_end_date(
            wo.start_date, wo.duration_minutes, center.shifts, windows
        )
    except SchedulingBoundExceeded:
        return False
    return expected_end == wo.end_date


def check_maintenance_conflicts(
    work_orders: Sequence[WorkOrder],
    centers: dict[str, WorkCenter],
) -> list[ConstraintViolation]:
    """No work inside maintenance windows. Maintenance orders are exempt."""
    violations: list[ConstraintViolation] = []

    for wo in work_orders:
        center = centers.get(wo.work_center_id)
        if center is None or wo.is_maintenance:
            continue

        windows = center.maintenance_windows
        if not overlaps_maintenance(wo.start_date, wo.end_date, windows):
            continue
        if _pauses_cleanly(wo, center):
            continue

        violations.append(ConstraintViolation(
            type=ViolationType.DURING_MAINTENANCE,
            work_order_id=wo.id,
            message=(
                f"Work order {wo.work_order_number} is scheduled during "
                f"maintenance window"
            ),
            details={
                "work_order_start": format_instant(wo.start_date),
                "work_order_end": format_instant(wo.end_date),
                "maintenance_windows": [
                    {
                        "start": format_instant(w.start_date),
                        "end": format_instant(w.end_date),
                        "reason": w.reason,
                    }
                    for w in windows
                    if time_periods_overlap(
                        wo.start_date, wo.end_date, w.start_date, w.end_date
                    )
                ],
            },
        ))

    return violations
