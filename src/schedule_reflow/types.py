"""Shared types: the immutable schedule records and the error hierarchy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


def _require_aware(value: datetime, name: str) -> None:
    """Reject naive datetimes. All instants are UTC-comparable."""
    if not isinstance(value, datetime):
        raise TypeError(f"{name} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise TypeError(
            f"{name} must be a timezone-aware datetime, got naive {value.isoformat()}. "
            f"Shift hours are evaluated in UTC."
        )


@dataclass(frozen=True)
class Shift:
    """Recurring weekly capacity window. day_of_week: 0=Sunday .. 6=Saturday."""

    day_of_week: int
    start_hour: int
    end_hour: int

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(
                f"day_of_week must be 0-6 (Sunday=0), got {self.day_of_week}"
            )
        if not 0 <= self.start_hour < self.end_hour < 24:
            raise ValueError(
                f"Shift hours must satisfy 0 <= start_hour < end_hour < 24, "
                f"got {self.start_hour}-{self.end_hour}"
            )

    @property
    def minutes(self) -> int:
        """Capacity of one occurrence of this shift."""
        return (self.end_hour - self.start_hour) * 60


@dataclass(frozen=True)
class MaintenanceWindow:
    """Blackout interval [start_date, end_date). Reason is informational."""

    start_date: datetime
    end_date: datetime
    reason: str = ""

    def __post_init__(self) -> None:
        _require_aware(self.start_date, "start_date")
        _require_aware(self.end_date, "end_date")
        if self.end_date <= self.start_date:
            raise ValueError(
                f"Maintenance window must end after it starts: "
                f"{self.start_date.isoformat()} -> {self.end_date.isoformat()}"
            )

    def covers(self, instant: datetime) -> bool:
        return self.start_date <= instant < self.end_date


@dataclass(frozen=True)
class WorkCenter:
    """A resource that processes one work order at a time.

    Invariants:
        - At most one shift per weekday
        - A weekday without a shift has zero capacity
    """

    id: str
    name: str
    shifts: tuple[Shift, ...] = ()
    maintenance_windows: tuple[MaintenanceWindow, ...] = ()

    def __post_init__(self) -> None:
        seen: set[int] = set()
        for shift in self.shifts:
            if shift.day_of_week in seen:
                raise ValueError(
                    f"Work center {self.id!r} has more than one shift on "
                    f"day_of_week={shift.day_of_week}"
                )
            seen.add(shift.day_of_week)

    def shift_for(self, day_of_week: int) -> Shift | None:
        for shift in self.shifts:
            if shift.day_of_week == day_of_week:
                return shift
        return None


@dataclass(frozen=True)
class WorkOrder:
    """A schedulable unit of production work on one work center.

    Invariants:
        - duration_minutes >= 1 (working time, excluding pauses)
        - Maintenance orders are never rescheduled
        - depends_on references other work orders of the same batch
    """

    id: str
    work_order_number: str
    manufacturing_order_id: str
    work_center_id: str
    start_date: datetime
    end_date: datetime
    duration_minutes: int
    is_maintenance: bool = False
    depends_on: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require_aware(self.start_date, "start_date")
        _require_aware(self.end_date, "end_date")
        if not isinstance(self.duration_minutes, int) or self.duration_minutes < 1:
            raise ValueError(
                f"Work order {self.id!r}: duration_minutes must be a positive "
                f"integer, got {self.duration_minutes!r}"
            )


@dataclass(frozen=True)
class ManufacturingOrder:
    """Parent order of work orders. Carried through, not used for scheduling."""

    id: str
    manufacturing_order_number: str
    item_id: str
    quantity: int
    due_date: datetime


@dataclass(frozen=True)
class ReflowInput:
    work_orders: tuple[WorkOrder, ...]
    work_centers: tuple[WorkCenter, ...]
    manufacturing_orders: tuple[ManufacturingOrder, ...] = ()


class ViolationType(str, Enum):
    WORK_CENTER_OVERLAP = "WORK_CENTER_OVERLAP"
    DEPENDENCY_NOT_MET = "DEPENDENCY_NOT_MET"
    OUTSIDE_SHIFT = "OUTSIDE_SHIFT"
    DURING_MAINTENANCE = "DURING_MAINTENANCE"
    # Batch-level, only produced by the reflow engine
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    REFLOW_FAILED = "REFLOW_FAILED"


@dataclass(frozen=True)
class ConstraintViolation:
    type: ViolationType
    work_order_id: str | None
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkOrderChange:
    """One field of one work order moved by a reflow.

    delay_minutes is signed: positive means later than planned.
    """

    work_order_id: str
    work_order_number: str
    field: str
    old_value: datetime
    new_value: datetime
    delay_minutes: int
    reason: str


@dataclass(frozen=True)
class ReflowResult:
    updated_work_orders: tuple[WorkOrder, ...]
    changes: tuple[WorkOrderChange, ...]
    explanation: str
    is_valid: bool
    violations: tuple[ConstraintViolation, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [v.message for v in self.violations]

    @property
    def changed_work_order_ids(self) -> list[str]:
        """Distinct ids of rescheduled orders, in change-log order."""
        return list(dict.fromkeys(c.work_order_id for c in self.changes))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ReflowError(Exception):
    """Base class for scheduling failures raised below the reflow engine."""


class GraphConstructionError(ReflowError):
    """The work-order list cannot form a dependency graph."""


class UnknownDependencyError(GraphConstructionError):
    """Raised when a work order depends on an id that is not in the batch."""

    def __init__(self, work_order_id: str, missing_id: str) -> None:
        self.work_order_id = work_order_id
        self.missing_id = missing_id
        super().__init__(
            f"Work order {work_order_id!r} depends on {missing_id!r}, "
            f"but {missing_id!r} does not exist"
        )


class DuplicateWorkOrderError(GraphConstructionError):
    def __init__(self, work_order_id: str) -> None:
        self.work_order_id = work_order_id
        super().__init__(f"Work order id {work_order_id!r} appears more than once")


class UnknownWorkOrderError(ReflowError):
    def __init__(self, work_order_id: str) -> None:
        self.work_order_id = work_order_id
        super().__init__(f"Work order {work_order_id!r} not found")


class CycleError(ReflowError):
    """Raised when the dependency graph contains a circular dependency."""

    def __init__(self, cycle: tuple[str, ...] | list[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(self.cycle) if self.cycle else "unknown path"
        super().__init__(
            f"Circular dependency detected: {path}. Cannot create valid schedule."
        )


class SchedulingBoundExceeded(ReflowError):
    """Raised when a day-by-day search hits its safety ceiling."""

    def __init__(self, limit_days: int, reason: str) -> None:
        self.limit_days = limit_days
        self.reason = reason
        super().__init__(f"{reason} (searched {limit_days} days)")


class MissingWorkCenterError(ReflowError):
    def __init__(self, work_center_id: str, work_order_id: str) -> None:
        self.work_center_id = work_center_id
        self.work_order_id = work_order_id
        super().__init__(
            f"Work center {work_center_id!r} not found "
            f"(referenced by work order {work_order_id!r})"
        )
