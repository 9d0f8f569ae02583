"""schedule-reflow: Shift-aware rescheduling of dependent work orders."""

from schedule_reflow.calendar import (
    MAX_SCHEDULE_DAYS,
    MAX_SHIFT_SEARCH_DAYS,
    calculate_end_date,
    find_next_shift_start,
    get_earliest_start_time,
    is_during_shift,
    overlaps_maintenance,
    time_periods_overlap,
    working_minutes_between,
)
from schedule_reflow.checker import is_valid, validate
from schedule_reflow.graph import CyclicOrder, DependencyGraph, SortedOrder
from schedule_reflow.loaders import load_reflow_input_json, result_to_documents
from schedule_reflow.reflow import ReflowEngine
from schedule_reflow.types import (
    ConstraintViolation,
    CycleError,
    MaintenanceWindow,
    ManufacturingOrder,
    MissingWorkCenterError,
    ReflowError,
    ReflowInput,
    ReflowResult,
    SchedulingBoundExceeded,
    Shift,
    UnknownDependencyError,
    ViolationType,
    WorkCenter,
    WorkOrder,
    WorkOrderChange,
)

__all__ = [
    "ConstraintViolation",
    "CycleError",
    "CyclicOrder",
    "DependencyGraph",
    "MAX_SCHEDULE_DAYS",
    "MAX_SHIFT_SEARCH_DAYS",
    "MaintenanceWindow",
    "ManufacturingOrder",
    "MissingWorkCenterError",
    "ReflowEngine",
    "ReflowError",
    "ReflowInput",
    "ReflowResult",
    "SchedulingBoundExceeded",
    "Shift",
    "SortedOrder",
    "UnknownDependencyError",
    "ViolationType",
    "WorkCenter",
    "WorkOrder",
    "WorkOrderChange",
    "calculate_end_date",
    "find_next_shift_start",
    "get_earliest_start_time",
    "is_during_shift",
    "is_valid",
    "load_reflow_input_json",
    "overlaps_maintenance",
    "result_to_documents",
    "time_periods_overlap",
    "validate",
    "working_minutes_between",
]
