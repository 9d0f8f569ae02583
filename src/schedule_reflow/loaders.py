"""Data loading: envelope documents <-> schedule records.

Documents follow the {docId, docType, data} envelope with camelCase data
fields and ISO-8601 instants. Loading validates first and raises
ValueError listing every problem found.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

from schedule_reflow.schema import (
    MANUFACTURING_ORDER,
    WORK_CENTER,
    WORK_ORDER,
    validate_manufacturing_order_document,
    validate_work_center_document,
    validate_work_order_document,
)
from schedule_reflow.timestamps import format_instant, parse_instant
from schedule_reflow.types import (
    ConstraintViolation,
    MaintenanceWindow,
    ManufacturingOrder,
    ReflowInput,
    ReflowResult,
    Shift,
    WorkCenter,
    WorkOrder,
    WorkOrderChange,
)


def _raise_if_errors(errors: list[str], source: str) -> None:
    if errors:
        raise ValueError(
            f"Validation errors in {source}:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _work_order(doc: dict) -> WorkOrder:
    data = doc["data"]
    return WorkOrder(
        id=doc["docId"],
        work_order_number=data["workOrderNumber"],
        manufacturing_order_id=data["manufacturingOrderId"],
        work_center_id=data["workCenterId"],
        start_date=parse_instant(data["startDate"], "startDate"),
        end_date=parse_instant(data["endDate"], "endDate"),
        duration_minutes=data["durationMinutes"],
        is_maintenance=data.get("isMaintenance", False),
        depends_on=tuple(data.get("dependsOnWorkOrderIds", [])),
    )


def _work_center(doc: dict) -> WorkCenter:
    data = doc["data"]
    return WorkCenter(
        id=doc["docId"],
        name=data["name"],
        shifts=tuple(
            Shift(s["dayOfWeek"], s["startHour"], s["endHour"])
            for s in data.get("shifts", [])
        ),
        maintenance_windows=tuple(
            MaintenanceWindow(
                start_date=parse_instant(w["startDate"], "startDate"),
                end_date=parse_instant(w["endDate"], "endDate"),
                reason=w.get("reason", ""),
            )
            for w in data.get("maintenanceWindows", [])
        ),
    )


def _manufacturing_order(doc: dict) -> ManufacturingOrder:
    data = doc["data"]
    return ManufacturingOrder(
        id=doc["docId"],
        manufacturing_order_number=data["manufacturingOrderNumber"],
        item_id=data["itemId"],
        quantity=data["quantity"],
        due_date=parse_instant(data["dueDate"], "dueDate"),
    )


def work_order_from_document(doc: dict) -> WorkOrder:
    _raise_if_errors(validate_work_order_document(doc), WORK_ORDER)
    return _work_order(doc)


def work_center_from_document(doc: dict) -> WorkCenter:
    _raise_if_errors(validate_work_center_document(doc), WORK_CENTER)
    return _work_center(doc)


def manufacturing_order_from_document(doc: dict) -> ManufacturingOrder:
    _raise_if_errors(validate_manufacturing_order_document(doc), MANUFACTURING_ORDER)
    return _manufacturing_order(doc)


def reflow_input_from_documents(data: dict, source: str = "input") -> ReflowInput:
    """Build a ReflowInput from {workOrders, workCenters, manufacturingOrders}.

    All documents are validated before any is converted, so one ValueError
    reports every problem in the input.
    """
    sections: list[tuple[str, Callable[[Any], list[str]], Callable[[dict], Any]]] = [
        ("workOrders", validate_work_order_document, _work_order),
        ("workCenters", validate_work_center_document, _work_center),
        ("manufacturingOrders", validate_manufacturing_order_document, _manufacturing_order),
    ]

    errors: list[str] = []
    for key, validator, _ in sections:
        docs = data.get(key, [])
        if not isinstance(docs, list):
            errors.append(f"{key!r} must be a list")
            continue
        for doc in docs:
            errors.extend(validator(doc))
    _raise_if_errors(errors, source)

    work_orders, work_centers, manufacturing_orders = (
        tuple(build(doc) for doc in data.get(key, []))
        for key, _, build in sections
    )
    return ReflowInput(
        work_orders=work_orders,
        work_centers=work_centers,
        manufacturing_orders=manufacturing_orders,
    )


def load_reflow_input_json(path: str | Path) -> ReflowInput:
    """Load a ReflowInput from a JSON scenario file.

    The JSON file must have the envelope format:
    {
        "workOrders": [{"docId": "...", "docType": "workOrder", "data": {...}}],
        "workCenters": [...],
        "manufacturingOrders": [...]
    }
    Other top-level keys (name, description, now) are ignored.

    Raises ValueError if validation fails.
    """
    path = Path(path)
    with open(path) as f:
        data = json.load(f)
    return reflow_input_from_documents(data, source=path.name)


# ---------------------------------------------------------------------------
# Records -> documents
# ---------------------------------------------------------------------------

def work_order_to_document(wo: WorkOrder) -> dict:
    return {
        "docId": wo.id,
        "docType": WORK_ORDER,
        "data": {
            "workOrderNumber": wo.work_order_number,
            "manufacturingOrderId": wo.manufacturing_order_id,
            "workCenterId": wo.work_center_id,
            "startDate": format_instant(wo.start_date),
            "endDate": format_instant(wo.end_date),
            "durationMinutes": wo.duration_minutes,
            "isMaintenance": wo.is_maintenance,
            "dependsOnWorkOrderIds": list(wo.depends_on),
        },
    }


def change_to_dict(change: WorkOrderChange) -> dict:
    return {
        "workOrderId": change.work_order_id,
        "workOrderNumber": change.work_order_number,
        "field": change.field,
        "oldValue": format_instant(change.old_value),
        "newValue": format_instant(change.new_value),
        "delayMinutes": change.delay_minutes,
        "reason": change.reason,
    }


def violation_to_dict(violation: ConstraintViolation) -> dict:
    return {
        "type": violation.type.value,
        "workOrderId": violation.work_order_id,
        "message": violation.message,
        "details": dict(violation.details),
    }


def result_to_documents(result: ReflowResult) -> dict:
    """JSON-ready form of a ReflowResult."""
    return {
        "updatedWorkOrders": [work_order_to_document(wo) for wo in result.updated_work_orders],
        "changes": [change_to_dict(c) for c in result.changes],
        "explanation": result.explanation,
        "isValid": result.is_valid,
        "violations": [violation_to_dict(v) for v in result.violations],
    }
