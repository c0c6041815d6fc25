"""
Tests for Commands — parsing raw requests into typed commands

Tests verify:
- each mode parses into its own command type
- mode aliases (step, resume) resolve
- malformed requests raise CommandError naming the field
- empty plans and empty summaries pass through to the core
"""

from decimal import Decimal

import pytest

from taskchain.commands import (
    CommandError, parse_command, parse_plan, MODES,
    InitializeCommand, StartCommand, CompleteCommand, InsertCommand,
    UpdateCommand, DeleteCommand, FinishCommand, StatusCommand,
)
from taskchain.core.step import PlanEntry


# =============================================================================
# Valid Commands
# =============================================================================

class TestParseModes:

    def test_initialize(self):
        command = parse_command({
            "mode": "initialize",
            "task_id": "T1",
            "description": "analyze and write",
            "plan": [{"name": "search", "input": "code_search()"}, {"name": "write"}],
        })
        assert isinstance(command, InitializeCommand)
        assert command.plan == (PlanEntry("search", "code_search()"), PlanEntry("write"))

    def test_start(self):
        command = parse_command({"mode": "start", "task_id": "T1", "step_number": 2})
        assert command == StartCommand("T1", Decimal(2))

    def test_complete(self):
        command = parse_command({
            "mode": "complete", "task_id": "T1", "step_number": 1.1, "summary": "found X",
        })
        assert command == CompleteCommand("T1", Decimal("1.1"), "found X")

    def test_insert(self):
        command = parse_command({
            "mode": "insert", "task_id": "T1", "after": 1,
            "insert_plan": [{"name": "read file"}],
        })
        assert isinstance(command, InsertCommand)
        assert command.after == Decimal(1)
        assert command.steps[0].name == "read file"

    @pytest.mark.parametrize("key", ["from", "from_step"])
    def test_update_anchor_keys(self, key):
        command = parse_command({
            "mode": "update", "task_id": "T1", key: 2, "update_plan": [{"name": "x"}],
        })
        assert isinstance(command, UpdateCommand)
        assert command.from_step == Decimal(2)

    def test_delete_single(self):
        command = parse_command({"mode": "delete", "task_id": "T1", "step_number": 3})
        assert command == DeleteCommand("T1", step_number=Decimal(3))

    def test_delete_remaining(self):
        command = parse_command({"mode": "delete", "task_id": "T1", "delete_scope": "remaining"})
        assert command == DeleteCommand("T1", scope="remaining")

    def test_finish_and_status(self):
        assert isinstance(parse_command({"mode": "finish", "task_id": "T1"}), FinishCommand)
        assert isinstance(parse_command({"mode": "status", "task_id": "T1"}), StatusCommand)

    def test_extra_fields_ignored(self):
        command = parse_command({
            "mode": "start", "task_id": "T1", "step_number": 2, "summary": "unused",
        })
        assert command == StartCommand("T1", Decimal(2))

    def test_task_id_stripped(self):
        command = parse_command({"mode": "status", "task_id": "  T1 "})
        assert command.task_id == "T1"

    def test_modes_listed(self):
        assert set(MODES) == {
            "initialize", "start", "complete", "insert",
            "update", "delete", "finish", "status",
        }


class TestAliases:

    def test_step_means_initialize(self):
        command = parse_command({"mode": "step", "task_id": "T1", "plan": [{"name": "a"}]})
        assert isinstance(command, InitializeCommand)

    def test_resume_means_status(self):
        assert isinstance(parse_command({"mode": "resume", "task_id": "T1"}), StatusCommand)


class TestPassThrough:
    """Conditions the core reports with its own error kinds."""

    def test_empty_plan_allowed(self):
        command = parse_command({"mode": "initialize", "task_id": "T1", "plan": []})
        assert command.plan == ()

    def test_missing_plan_is_empty(self):
        assert parse_command({"mode": "initialize", "task_id": "T1"}).plan == ()

    def test_empty_summary_allowed(self):
        command = parse_command({"mode": "complete", "task_id": "T1", "step_number": 1})
        assert command.summary == ""


# =============================================================================
# Invalid Commands
# =============================================================================

class TestInvalid:

    @pytest.mark.parametrize("data", [
        None,
        [],
        {},
        {"mode": 3, "task_id": "T1"},
    ])
    def test_not_a_command(self, data):
        with pytest.raises(CommandError):
            parse_command(data)

    def test_unknown_mode(self):
        with pytest.raises(CommandError) as exc:
            parse_command({"mode": "explode", "task_id": "T1"})
        assert exc.value.mode == "explode"
        assert "valid:" in str(exc.value)

    @pytest.mark.parametrize("task_id", [None, "", "   ", 7])
    def test_bad_task_id(self, task_id):
        with pytest.raises(CommandError) as exc:
            parse_command({"mode": "status", "task_id": task_id})
        assert exc.value.mode == "status"

    def test_missing_step_number(self):
        with pytest.raises(CommandError) as exc:
            parse_command({"mode": "start", "task_id": "T1"})
        assert "step_number" in str(exc.value)
        assert exc.value.task_id == "T1"

    @pytest.mark.parametrize("value", ["two", True, float("nan"), "1e999999999"])
    def test_bad_step_number(self, value):
        with pytest.raises(CommandError):
            parse_command({"mode": "start", "task_id": "T1", "step_number": value})

    def test_update_without_anchor(self):
        with pytest.raises(CommandError) as exc:
            parse_command({"mode": "update", "task_id": "T1", "update_plan": [{"name": "x"}]})
        assert "from" in str(exc.value)

    def test_delete_needs_target_or_scope(self):
        with pytest.raises(CommandError):
            parse_command({"mode": "delete", "task_id": "T1"})

    def test_delete_unknown_scope(self):
        with pytest.raises(CommandError) as exc:
            parse_command({"mode": "delete", "task_id": "T1", "delete_scope": "all"})
        assert "remaining" in str(exc.value)

    def test_summary_must_be_text(self):
        with pytest.raises(CommandError):
            parse_command({"mode": "complete", "task_id": "T1", "step_number": 1, "summary": 42})


class TestParsePlan:

    def test_entries_stripped(self):
        assert parse_plan([{"name": " search ", "input": " grep "}]) == (PlanEntry("search", "grep"),)

    def test_plan_entries_pass_through(self):
        entry = PlanEntry("a")
        assert parse_plan([entry]) == (entry,)

    @pytest.mark.parametrize("raw", [
        "search",
        [{"input": "x"}],
        [{"name": ""}],
        [{"name": "a", "input": 3}],
        ["search"],
    ])
    def test_malformed(self, raw):
        with pytest.raises(CommandError):
            parse_plan(raw)

    def test_error_names_position(self):
        with pytest.raises(CommandError) as exc:
            parse_plan([{"name": "ok"}, {"name": " "}], key="insert_plan")
        assert "insert_plan[1]" in str(exc.value)
