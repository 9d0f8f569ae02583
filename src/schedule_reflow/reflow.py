"""Reflow engine: greedy rescheduling of a batch of work orders.

Composes the layers below into one deterministic pass:

1. Build the dependency graph; a cycle ends the reflow with an invalid result
2. Walk work orders in topological order
3. Place each order at its earliest feasible start on its work center,
   given parent completions, the center's availability, shifts and
   maintenance, and compute its end by walking working time
4. Certify the produced schedule with the constraint checker

The engine never raises: every failure becomes an invalid ReflowResult.
It is greedy, not optimal. Orders are placed one at a time and never
revisited.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from schedule_reflow.calendar import (
    MAX_SCHEDULE_DAYS,
    MAX_SHIFT_SEARCH_DAYS,
    calculate_end_date,
    find_next_shift_start,
    get_earliest_start_time,
    time_periods_overlap,
)
from schedule_reflow.checker import validate
from schedule_reflow.graph import CyclicOrder, DependencyGraph, SortedOrder
from schedule_reflow.timestamps import format_instant, minutes_between
from schedule_reflow.types import (
    ConstraintViolation,
    MissingWorkCenterError,
    ReflowError,
    ReflowInput,
    ReflowResult,
    ViolationType,
    WorkCenter,
    WorkOrder,
    WorkOrderChange,
)

logger = logging.getLogger(__name__)

# Violations listed in the explanation text before summarising the rest
_EXPLAIN_LIMIT = 5


class ReflowEngine:
    """Reschedules work orders after a disruption.

    Args:
        now: Instant the new schedule may start from. Sampled from the
            clock once per reflow when None.
        max_schedule_days: Day ceiling for completing a single order.
        max_shift_search_days: Day ceiling for finding the next shift.
        preserve_planned_starts: When True an order never starts before
            its currently planned start; reflow only pushes work later.
            When False every order is pulled to its earliest feasible slot.
    """

    def __init__(
        self,
        now: datetime | None = None,
        *,
        max_schedule_days: int = MAX_SCHEDULE_DAYS,
        max_shift_search_days: int = MAX_SHIFT_SEARCH_DAYS,
        preserve_planned_starts: bool = True,
    ) -> None:
        if now is not None and (now.tzinfo is None or now.utcoffset() is None):
            raise TypeError("now must be a timezone-aware datetime")
        self.now = now
        self.max_schedule_days = max_schedule_days
        self.max_shift_search_days = max_shift_search_days
        self.preserve_planned_starts = preserve_planned_starts

    def reflow(self, reflow_input: ReflowInput) -> ReflowResult:
        """Produce a new schedule. Always returns a result, never raises."""
        try:
            return self._reflow(reflow_input)
        except ReflowError as e:
            logger.warning("Reflow failed: %s", e)
            return _failed_result(str(e))
        except Exception as e:
            logger.exception("Reflow failed unexpectedly")
            return _failed_result(f"{type(e).__name__}: {e}")

    # ------------------------------------------------------------------
    # The pass
    # ------------------------------------------------------------------

    def _reflow(self, reflow_input: ReflowInput) -> ReflowResult:
        work_orders = list(reflow_input.work_orders)
        work_centers = list(reflow_input.work_centers)

        graph = DependencyGraph(work_orders)
        match graph.resolve_order():
            case CyclicOrder() as cyclic:
                return _cycle_result(cyclic)
            case SortedOrder(work_orders=ordered):
                pass

        centers = {wc.id: wc for wc in work_centers}
        for wo in work_orders:
            if wo.work_center_id not in centers:
                raise MissingWorkCenterError(wo.work_center_id, wo.id)

        # Maintenance orders hold their work center; nothing may overlap them
        reserved: dict[str, list[WorkOrder]] = {wc.id: [] for wc in work_centers}
        for wo in work_orders:
            if wo.is_maintenance:
                reserved[wo.work_center_id].append(wo)

        now = self.now or datetime.now(timezone.utc)
        available_from: dict[str, datetime] = {}
        occupied_by: dict[str, WorkOrder] = {}
        for wc in work_centers:
            available_from[wc.id] = find_next_shift_start(
                now, wc.shifts, inclusive=True, max_days=self.max_shift_search_days
            )

        updated: dict[str, WorkOrder] = {}
        changes: list[WorkOrderChange] = []

        for wo in ordered:
            if wo.is_maintenance:
                updated[wo.id] = wo
                continue

            center = centers[wo.work_center_id]
            parents = [updated[p.id] for p in graph.get_parents(wo.id)]
            center_free = available_from[center.id]

            new_start, new_end = self._place(
                wo, center, parents, center_free, reserved[center.id]
            )
            available_from[center.id] = new_end
            previous = occupied_by.get(center.id)
            occupied_by[center.id] = wo

            new_wo = replace(wo, start_date=new_start, end_date=new_end)
            updated[wo.id] = new_wo
            logger.debug(
                "Scheduled %s on %s: %s -> %s",
                wo.work_order_number, center.id,
                format_instant(new_start), format_instant(new_end),
            )

            if new_start != wo.start_date or new_end != wo.end_date:
                reason = _change_reason(wo, parents, center, center_free, previous, now)
                changes.extend(_record_changes(wo, new_wo, reason))

        updated_orders = tuple(updated[wo.id] for wo in work_orders)
        violations = validate(updated_orders, work_centers)
        is_valid = not violations

        rescheduled = len({c.work_order_id for c in changes})
        logger.info(
            "Reflow completed: %d work orders, %d rescheduled, %d violations",
            len(work_orders), rescheduled, len(violations),
        )
        if violations:
            logger.warning("Reflowed schedule has %d violations", len(violations))

        return ReflowResult(
            updated_work_orders=updated_orders,
            changes=tuple(changes),
            explanation=_explain(len(work_orders), rescheduled, violations),
            is_valid=is_valid,
            violations=tuple(violations),
        )

    def _place(
        self,
        wo: WorkOrder,
        center: WorkCenter,
        parents: list[WorkOrder],
        center_free: datetime,
        reserved: list[WorkOrder],
    ) -> tuple[datetime, datetime]:
        """Earliest (start, end) for one order on its work center."""
        lower_bounds = [p.end_date for p in parents]
        if self.preserve_planned_starts:
            lower_bounds.append(wo.start_date)

        start = self._earliest_start(lower_bounds, center_free, center)
        end = self._end_for(wo, start, center)

        # Each reserved order is cleared at most once: start only moves forward
        while True:
            clash = next(
                (
                    r for r in reserved
                    if time_periods_overlap(start, end, r.start_date, r.end_date)
                ),
                None,
            )
            if clash is None:
                return start, end
            start = self._earliest_start([clash.end_date], start, center)
            end = self._end_for(wo, start, center)

    def _earliest_start(
        self, lower_bounds: list[datetime], center_free: datetime, center: WorkCenter
    ) -> datetime:
        return get_earliest_start_time(
            lower_bounds,
            center_free,
            center.shifts,
            center.maintenance_windows,
            max_days=self.max_shift_search_days,
        )

    def _end_for(self, wo: WorkOrder, start: datetime, center: WorkCenter) -> datetime:
        return calculate_end_date(
            start,
            wo.duration_minutes,
            center.shifts,
            center.maintenance_windows,
            max_days=self.max_schedule_days,
        )


# ---------------------------------------------------------------------------
# Results and explanations
# ---------------------------------------------------------------------------

def _failed_result(message: str) -> ReflowResult:
    return ReflowResult(
        updated_work_orders=(),
        changes=(),
        explanation=f"Reflow failed: {message}",
        is_valid=False,
        violations=(
            ConstraintViolation(
                type=ViolationType.REFLOW_FAILED,
                work_order_id=None,
                message=message,
            ),
        ),
    )


def _cycle_result(cyclic: CyclicOrder) -> ReflowResult:
    message = cyclic.describe()
    return ReflowResult(
        updated_work_orders=(),
        changes=(),
        explanation=f"Cannot create valid schedule: {message}",
        is_valid=False,
        violations=(
            ConstraintViolation(
                type=ViolationType.CIRCULAR_DEPENDENCY,
                work_order_id=cyclic.cycle[0] if cyclic.cycle else None,
                message=message,
                details={"cycle": list(cyclic.cycle)},
            ),
        ),
    )


def _record_changes(
    original: WorkOrder, updated: WorkOrder, reason: str
) -> list[WorkOrderChange]:
    """One entry for the start and one for the end, each with its own delay."""
    return [
        WorkOrderChange(
            work_order_id=original.id,
            work_order_number=original.work_order_number,
            field=field,
            old_value=old,
            new_value=new,
            delay_minutes=minutes_between(old, new),
            reason=reason,
        )
        for field, old, new in (
            ("startDate", original.start_date, updated.start_date),
            ("endDate", original.end_date, updated.end_date),
        )
    ]


def _change_reason(
    original: WorkOrder,
    parents: list[WorkOrder],
    center: WorkCenter,
    center_free: datetime,
    previous: WorkOrder | None,
    now: datetime,
) -> str:
    """Human-readable cause of a move.

    Attributes the delay to dependencies finishing after the planned start,
    to the work center being occupied, or otherwise to realignment with the
    shift calendar and maintenance windows.
    """
    reasons: list[str] = []
    planned = original.start_date

    late_parents = [p for p in parents if p.end_date > planned]
    if late_parents:
        listed = ", ".join(
            f"{p.work_order_number} (ends {format_instant(p.end_date)})"
            for p in late_parents
        )
        reasons.append(f"waiting for dependencies: {listed}")

    if center_free > planned:
        if previous is not None:
            reasons.append(
                f"work center {center.name} occupied by "
                f"{previous.work_order_number} until {format_instant(center_free)}"
            )
        elif now > planned:
            reasons.append(f"cannot start before reflow time {format_instant(now)}")

    if not reasons:
        return "realigned to shift calendar and maintenance windows"
    return "; ".join(reasons)


def _explain(
    total: int, rescheduled: int, violations: list[ConstraintViolation]
) -> str:
    lines = [
        f"Reflow completed: {total} work orders processed.",
        f"{rescheduled} work orders rescheduled.",
    ]
    if not violations:
        lines.append("Schedule is valid - all constraints satisfied.")
    else:
        lines.append(f"Schedule has {len(violations)} constraint violations.")
        for v in violations[:_EXPLAIN_LIMIT]:
            lines.append(f"  - {v.message}")
        if len(violations) > _EXPLAIN_LIMIT:
            lines.append(f"  ... and {len(violations) - _EXPLAIN_LIMIT} more violations")
    return "\n".join(lines)
