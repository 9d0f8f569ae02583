"""Input validation for envelope documents: {docId, docType, data}."""

from __future__ import annotations

from typing import Any

from schedule_reflow.timestamps import parse_instant

WORK_ORDER = "workOrder"
WORK_CENTER = "workCenter"
MANUFACTURING_ORDER = "manufacturingOrder"


def _validate_envelope(doc: Any, doc_type: str) -> tuple[str, list[str]]:
    """Check the envelope. Returns (label for messages, errors)."""
    if not isinstance(doc, dict):
        return "document", [f"expected an object, got {type(doc).__name__}"]

    errors: list[str] = []
    doc_id = doc.get("docId")
    label = f"{doc_type} {doc_id!r}"
    if not isinstance(doc_id, str) or not doc_id:
        errors.append(f"{label}: 'docId' must be a non-empty string")
    if doc.get("docType") != doc_type:
        errors.append(
            f"{label}: 'docType' must be {doc_type!r}, got {doc.get('docType')!r}"
        )
    if not isinstance(doc.get("data"), dict):
        errors.append(f"{label}: 'data' must be an object")
    return label, errors


def _check_instant(data: dict, key: str, label: str, errors: list[str]) -> None:
    if key not in data:
        errors.append(f"{label}: missing {key!r}")
        return
    try:
        parse_instant(data[key], key)
    except (TypeError, ValueError) as e:
        errors.append(f"{label}: {e}")


def _check_str(data: dict, key: str, label: str, errors: list[str]) -> None:
    if not isinstance(data.get(key), str):
        errors.append(f"{label}: {key!r} must be a string")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_work_order_document(doc: Any) -> list[str]:
    """Validate a work order document. Returns list of error messages.

    Checks:
    - Envelope shape and docType
    - Required string fields and ISO-8601 instants
    - durationMinutes is a positive integer
    - isMaintenance is boolean, dependsOnWorkOrderIds a list of ids
    """
    label, errors = _validate_envelope(doc, WORK_ORDER)
    if not isinstance(doc, dict) or not isinstance(doc.get("data"), dict):
        return errors

    data = doc["data"]
    for key in ("workOrderNumber", "manufacturingOrderId", "workCenterId"):
        _check_str(data, key, label, errors)
    _check_instant(data, "startDate", label, errors)
    _check_instant(data, "endDate", label, errors)

    duration = data.get("durationMinutes")
    if not _is_int(duration) or duration < 1:
        errors.append(f"{label}: 'durationMinutes' must be a positive integer, got {duration!r}")

    if not isinstance(data.get("isMaintenance", False), bool):
        errors.append(f"{label}: 'isMaintenance' must be boolean")

    depends_on = data.get("dependsOnWorkOrderIds", [])
    if not isinstance(depends_on, list) or not all(isinstance(d, str) for d in depends_on):
        errors.append(f"{label}: 'dependsOnWorkOrderIds' must be a list of ids")

    return errors


def validate_work_center_document(doc: Any) -> list[str]:
    """Validate a work center document. Returns list of error messages.

    Checks:
    - Shift dayOfWeek is 0-6 and hours satisfy 0 <= start < end < 24
    - At most one shift per weekday
    - Maintenance windows have valid instants and end after start
    """
    label, errors = _validate_envelope(doc, WORK_CENTER)
    if not isinstance(doc, dict) or not isinstance(doc.get("data"), dict):
        return errors

    data = doc["data"]
    _check_str(data, "name", label, errors)

    shifts = data.get("shifts", [])
    if not isinstance(shifts, list):
        errors.append(f"{label}: 'shifts' must be a list")
        shifts = []
    seen_days: set[int] = set()
    for i, shift in enumerate(shifts):
        if not isinstance(shift, dict):
            errors.append(f"{label}, shift {i}: expected an object, got {shift!r}")
            continue
        day = shift.get("dayOfWeek")
        start = shift.get("startHour")
        end = shift.get("endHour")
        if not _is_int(day) or not 0 <= day <= 6:
            errors.append(f"{label}, shift {i}: invalid dayOfWeek {day!r} (must be 0-6)")
        elif day in seen_days:
            errors.append(f"{label}, shift {i}: more than one shift on dayOfWeek {day}")
        else:
            seen_days.add(day)
        if not (_is_int(start) and _is_int(end) and 0 <= start < end < 24):
            errors.append(
                f"{label}, shift {i}: hours must satisfy 0 <= startHour < endHour < 24, "
                f"got {start!r}-{end!r}"
            )

    windows = data.get("maintenanceWindows", [])
    if not isinstance(windows, list):
        errors.append(f"{label}: 'maintenanceWindows' must be a list")
        windows = []
    for i, window in enumerate(windows):
        window_label = f"{label}, maintenance window {i}"
        if not isinstance(window, dict):
            errors.append(f"{window_label}: expected an object")
            continue
        before = len(errors)
        _check_instant(window, "startDate", window_label, errors)
        _check_instant(window, "endDate", window_label, errors)
        if len(errors) == before:
            if parse_instant(window["endDate"]) <= parse_instant(window["startDate"]):
                errors.append(f"{window_label}: endDate must be after startDate")

    return errors


def validate_manufacturing_order_document(doc: Any) -> list[str]:
    label, errors = _validate_envelope(doc, MANUFACTURING_ORDER)
    if not isinstance(doc, dict) or not isinstance(doc.get("data"), dict):
        return errors

    data = doc["data"]
    for key in ("manufacturingOrderNumber", "itemId"):
        _check_str(data, key, label, errors)
    if not _is_int(data.get("quantity")):
        errors.append(f"{label}: 'quantity' must be an integer")
    _check_instant(data, "dueDate", label, errors)
    return errors
