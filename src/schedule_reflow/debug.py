"""ASCII visualisation for development-time verification.

This module is dev-only and not imported by production code.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from schedule_reflow.calendar import working_segments_for_date
from schedule_reflow.timestamps import format_instant
from schedule_reflow.types import ReflowResult, WorkCenter, WorkOrder

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

# 24-hour timeline, each char = 30 minutes (48 chars per day)
CHARS_PER_DAY = 48
MINUTES_PER_CHAR = 30


def _header() -> str:
    header_hours = "".join(f"{h:02d}" if h % 3 == 0 else "  " for h in range(24))
    return f"{'':>16s}  {header_hours}"


def show_schedule(
    work_orders: Sequence[WorkOrder],
    work_centers: Sequence[WorkCenter],
    start: date,
    end: date,
) -> str:
    """Print one ASCII timeline per work center for a date range (UTC).

    Legend: '.' = no shift, '-' = free shift time, '#' = maintenance window,
    'A'-'Z' = work order (by order of appearance). Work orders are drawn
    over their whole [start, end) envelope, including paused time.
    Returns the string and also prints to stdout.

    Args:
        work_orders: Orders to draw
        work_centers: Centers to draw, one section each
        start: First date to show (inclusive)
        end: Last date to show (exclusive)
    """
    label_chars = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    labels: dict[str, str] = {}
    for wo in work_orders:
        if wo.id not in labels:
            labels[wo.id] = label_chars[len(labels) % len(label_chars)]

    lines: list[str] = []
    for wc in work_centers:
        lines.append(f"=== {wc.name} ({wc.id}) ===")
        lines.append(_header())
        orders = [wo for wo in work_orders if wo.work_center_id == wc.id]

        current = start
        while current < end:
            day_start = datetime.combine(current, time(0, 0), tzinfo=timezone.utc)
            label = f"{DAY_NAMES[current.weekday()]} {current.strftime('%d %b')}"
            working = working_segments_for_date(current, wc.shifts)
            row = []

            for char_idx in range(CHARS_PER_DAY):
                block_start = day_start + timedelta(minutes=char_idx * MINUTES_PER_CHAR)
                block_end = block_start + timedelta(minutes=MINUTES_PER_CHAR)

                owner = next(
                    (
                        wo for wo in orders
                        if wo.start_date < block_end and wo.end_date > block_start
                    ),
                    None,
                )
                in_shift = any(s < block_end and e > block_start for s, e in working)
                in_maintenance = any(
                    w.start_date < block_end and w.end_date > block_start
                    for w in wc.maintenance_windows
                )

                if owner is not None:
                    row.append(labels[owner.id])
                elif in_maintenance:
                    row.append("#")
                elif in_shift:
                    row.append("-")
                else:
                    row.append(".")

            lines.append(f"{label:>16s}  {''.join(row)}")
            current += timedelta(days=1)
        lines.append("")

    if labels:
        by_id = {wo.id: wo for wo in work_orders}
        legend_parts = [f"{v}={by_id[k].work_order_number}" for k, v in labels.items()]
        lines.append(
            f"Legend: . = no shift, - = free, # = maintenance, {', '.join(legend_parts)}"
        )

    result = "\n".join(lines)
    print(result)
    return result


def show_changes(result: ReflowResult) -> str:
    """Print the change log grouped by work order, then any violations.

    Returns the string and also prints to stdout.
    """
    lines: list[str] = [result.explanation, ""]

    if not result.changes:
        lines.append("No changes needed - schedule already satisfies all constraints")

    grouped: dict[str, list] = {}
    for change in result.changes:
        grouped.setdefault(change.work_order_id, []).append(change)

    for changes in grouped.values():
        lines.append(f"{changes[0].work_order_number}:")
        for change in changes:
            delay = (
                f"+{change.delay_minutes} min" if change.delay_minutes > 0
                else f"{change.delay_minutes} min" if change.delay_minutes < 0
                else "on time"
            )
            lines.append(f"  {change.field}: {format_instant(change.old_value)}")
            lines.append(f"    -> {format_instant(change.new_value)} ({delay})")
        lines.append(f"  Reason: {changes[0].reason}")

    if result.violations:
        lines.append("")
        lines.append("Violations:")
        for v in result.violations:
            lines.append(f"  x [{v.type.value}] {v.message}")

    output = "\n".join(lines)
    print(output)
    return output
