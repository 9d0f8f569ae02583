"""Tests for the reflow engine.

Scenario data loaded from: data/fixtures/scenarios/reflow_*.json
"""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from conftest import (
    EPOCH,
    REFLOW_SCENARIOS,
    dt,
    load_reflow_scenario,
    make_work_center,
    make_work_order,
)
from schedule_reflow.calendar import working_minutes_between
from schedule_reflow.checker import validate
from schedule_reflow.reflow import ReflowEngine
from schedule_reflow.timestamps import parse_instant
from schedule_reflow.types import ReflowInput, ViolationType


def _by_id(result):
    return {wo.id: wo for wo in result.updated_work_orders}


def _changes_for(result, wo_id):
    return {c.field: c for c in result.changes if c.work_order_id == wo_id}


class TestScenarios:
    """End-to-end reflow of the JSON scenarios."""

    @pytest.mark.parametrize("name", REFLOW_SCENARIOS)
    def test_expected_schedule(self, name):
        reflow_input, data = load_reflow_scenario(name)
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)

        assert result.is_valid, result.explanation
        assert result.violations == ()
        updated = _by_id(result)
        for wo_id, (start, end) in data["expected"].items():
            assert updated[wo_id].start_date == parse_instant(start), wo_id
            assert updated[wo_id].end_date == parse_instant(end), wo_id
        assert result.changed_work_order_ids == data["expected_changed_ids"]

    @pytest.mark.parametrize("name", REFLOW_SCENARIOS)
    def test_idempotent(self, name):
        """Reflowing a reflowed schedule changes nothing."""
        reflow_input, data = load_reflow_scenario(name)
        engine = ReflowEngine(now=parse_instant(data["now"]))
        first = engine.reflow(reflow_input)
        second = engine.reflow(ReflowInput(
            work_orders=first.updated_work_orders,
            work_centers=reflow_input.work_centers,
        ))
        assert second.changes == ()
        assert second.updated_work_orders == first.updated_work_orders

    @pytest.mark.parametrize("name", REFLOW_SCENARIOS)
    def test_updated_orders_in_input_order(self, name):
        reflow_input, data = load_reflow_scenario(name)
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
        assert [wo.id for wo in result.updated_work_orders] == [
            wo.id for wo in reflow_input.work_orders
        ]

    @pytest.mark.parametrize("name", REFLOW_SCENARIOS)
    def test_durations_preserved(self, name):
        """Each order still gets exactly its duration of working time."""
        reflow_input, data = load_reflow_scenario(name)
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
        centers = {wc.id: wc for wc in reflow_input.work_centers}
        for wo in result.updated_work_orders:
            if wo.is_maintenance:
                continue
            wc = centers[wo.work_center_id]
            assert working_minutes_between(
                wo.start_date, wo.end_date, wc.shifts, wc.maintenance_windows
            ) == wo.duration_minutes

    def test_delay_cascade_changes(self):
        reflow_input, data = load_reflow_scenario("delay_cascade")
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)

        assert len(result.changes) == 4
        b = _changes_for(result, "wo-002")
        assert b["startDate"].delay_minutes == 120
        assert b["endDate"].delay_minutes == 120
        assert b["startDate"].reason.startswith("waiting for dependencies: WO-001")

        c = _changes_for(result, "wo-003")
        assert c["startDate"].old_value == dt("mon", "11:00")
        assert c["startDate"].new_value == dt("mon", "13:00")
        assert "WO-002" in c["startDate"].reason
        assert "occupied by WO-001" in c["startDate"].reason

    def test_shift_boundary_changes(self):
        reflow_input, data = load_reflow_scenario("shift_boundary")
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
        changes = _changes_for(result, "wo-101")
        assert changes["startDate"].delay_minutes == 0
        assert changes["endDate"].delay_minutes == 15 * 60
        assert changes["endDate"].reason == (
            "realigned to shift calendar and maintenance windows"
        )

    def test_maintenance_order_unchanged(self):
        reflow_input, data = load_reflow_scenario("maintenance")
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
        original = next(wo for wo in reflow_input.work_orders if wo.id == "wo-300")
        assert _by_id(result)["wo-300"] == original
        assert "wo-300" not in result.changed_work_order_ids

    def test_explanation(self):
        reflow_input, data = load_reflow_scenario("maintenance")
        result = ReflowEngine(now=parse_instant(data["now"])).reflow(reflow_input)
        assert result.explanation.splitlines() == [
            "Reflow completed: 4 work orders processed.",
            "3 work orders rescheduled.",
            "Schedule is valid - all constraints satisfied.",
        ]


class TestPlacement:

    def test_already_valid_schedule_unchanged(self, engine, standard_center):
        orders = (
            make_work_order("a", dt("mon", "08:00"), duration=60),
            make_work_order("b", dt("mon", "09:00"), duration=60, depends_on=("a",)),
        )
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        assert result.is_valid
        assert result.changes == ()
        assert result.updated_work_orders == orders
        assert "0 work orders rescheduled." in result.explanation

    def test_center_conflict_resolved(self, engine, standard_center):
        orders = (
            make_work_order("a", dt("mon", "08:00"), duration=120),
            make_work_order("b", dt("mon", "09:00"), duration=60),
        )
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        assert result.is_valid
        b = _by_id(result)["b"]
        assert (b.start_date, b.end_date) == (dt("mon", "10:00"), dt("mon", "11:00"))

    def test_weekend_start_moves_to_monday(self, engine, standard_center):
        orders = (make_work_order("a", dt("sat", "10:00"), duration=60),)
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        a = _by_id(result)["a"]
        assert (a.start_date, a.end_date) == (dt("next_mon", "08:00"), dt("next_mon", "09:00"))

    def test_start_inside_maintenance_moves_after(self, engine, maintenance_center):
        orders = (make_work_order("a", dt("mon", "10:30"), duration=60),)
        result = engine.reflow(ReflowInput(orders, (maintenance_center,)))
        a = _by_id(result)["a"]
        assert (a.start_date, a.end_date) == (dt("mon", "12:00"), dt("mon", "13:00"))
        assert result.is_valid

    def test_now_is_a_lower_bound(self, standard_center):
        engine = ReflowEngine(now=dt("wed", "12:00"))
        orders = (make_work_order("a", dt("mon", "08:00"), duration=60),)
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        a = _by_id(result)["a"]
        assert a.start_date == dt("thu", "08:00")
        reason = result.changes[0].reason
        assert reason.startswith("cannot start before reflow time")

    def test_compress_when_not_preserving_planned_starts(self, standard_center):
        engine = ReflowEngine(now=EPOCH, preserve_planned_starts=False)
        orders = (make_work_order("a", dt("wed", "08:00"), duration=60),)
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        a = _by_id(result)["a"]
        assert a.start_date == dt("mon", "08:00")
        assert result.changes[0].delay_minutes < 0

    def test_preserves_planned_starts_by_default(self, engine, standard_center):
        orders = (make_work_order("a", dt("wed", "08:00"), duration=60),)
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        assert result.changes == ()

    def test_work_moves_around_maintenance_order(self, engine, standard_center):
        orders = (
            make_work_order("m", dt("mon", "10:00"), duration=120, is_maintenance=True),
            make_work_order("a", dt("mon", "09:00"), duration=120),
        )
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        a = _by_id(result)["a"]
        assert (a.start_date, a.end_date) == (dt("mon", "12:00"), dt("mon", "14:00"))
        assert _by_id(result)["m"] == orders[0]
        assert result.is_valid

    def test_child_on_other_center_waits(self, engine):
        first = make_work_center("standard", "wc-1")
        second = make_work_center("standard", "wc-2")
        orders = (
            make_work_order("a", dt("mon", "16:00"), duration=120),
            make_work_order("b", dt("mon", "16:00"), duration=60,
                            work_center_id="wc-2", depends_on=("a",)),
        )
        result = engine.reflow(ReflowInput(orders, (first, second)))
        b = _by_id(result)["b"]
        assert b.start_date == dt("tue", "09:00")
        assert result.is_valid
        assert validate(result.updated_work_orders, [first, second]) == []

    def test_now_defaults_to_clock(self, standard_center):
        """Without an injected now, orders land no earlier than the present."""
        orders = (make_work_order("a", dt("mon", "08:00"), duration=60),)
        result = ReflowEngine().reflow(ReflowInput(orders, (standard_center,)))
        assert result.updated_work_orders[0].start_date > dt("next_mon")

    def test_naive_now_rejected(self):
        with pytest.raises(TypeError):
            ReflowEngine(now=datetime(2025, 1, 6))


class TestFailures:
    """Batch-level failures come back as invalid results, never exceptions."""

    def test_cycle(self, engine, standard_center):
        orders = (
            make_work_order("a", dt("mon", "08:00"), depends_on=("b",)),
            make_work_order("b", dt("mon", "08:00"), depends_on=("a",)),
        )
        result = engine.reflow(ReflowInput(orders, (standard_center,)))
        assert not result.is_valid
        assert result.updated_work_orders == ()
        assert result.changes == ()
        assert [v.type for v in result.violations] == [ViolationType.CIRCULAR_DEPENDENCY]
        assert set(result.violations[0].details["cycle"]) == {"a", "b"}
        assert result.explanation.startswith("Cannot create valid schedule: Circular")

    def test_unknown_dependency(self, engine, standard_center, caplog):
        orders = (make_work_order("a", dt("mon", "08:00"), depends_on=("ghost",)),)
        with caplog.at_level(logging.WARNING, logger="schedule_reflow.reflow"):
            result = engine.reflow(ReflowInput(orders, (standard_center,)))
        assert not result.is_valid
        assert [v.type for v in result.violations] == [ViolationType.REFLOW_FAILED]
        assert "ghost" in result.explanation
        assert "Reflow failed" in caplog.text

    def test_missing_work_center(self, engine):
        orders = (make_work_order("a", dt("mon", "08:00"), work_center_id="nowhere"),)
        result = engine.reflow(ReflowInput(orders, ()))
        assert not result.is_valid
        assert "'nowhere' not found" in result.violations[0].message

    def test_no_shifts(self, engine):
        idle = make_work_center("no_shifts")
        orders = (make_work_order("a", dt("mon", "08:00")),)
        result = engine.reflow(ReflowInput(orders, (idle,)))
        assert not result.is_valid
        assert result.violations[0].type is ViolationType.REFLOW_FAILED
        assert "No shift found" in result.explanation

    def test_empty_batch(self, engine):
        result = engine.reflow(ReflowInput((), ()))
        assert result.is_valid
        assert result.updated_work_orders == ()
        assert result.explanation.startswith("Reflow completed: 0 work orders processed.")
