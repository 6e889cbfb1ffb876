"""Tests for resolving ordered hook outputs into event outcomes."""

import pytest

from hookgate.core.config import EngineSettings
from hookgate.core.hooks.coordinator import (
    DENIED_FALLBACK_TEXT,
    EXECUTION_FAILED_TEXT,
    TIMED_OUT_TEXT,
    ExecutionCoordinator,
    MutationKind,
)
from hookgate.core.hooks.events import HookEvent, PermissionDecision
from hookgate.core.hooks.parser import OutputInterpreter


@pytest.fixture
def resolve(interpreter, coordinator):
    """Parse raw results for an event and resolve them."""

    def _resolve(event, *results):
        return coordinator.resolve(event, [interpreter.parse(result, event) for result in results])

    return _resolve


def _kinds(outcome):
    return [mutation.kind for mutation in outcome.transcript_mutations]


def _pre_tool(decision=None, reason=None, **extra):
    output = {"hookEventName": "PreToolUse", **extra}
    if decision is not None:
        output["permissionDecision"] = decision
    if reason is not None:
        output["permissionDecisionReason"] = reason
    return {"continue": True, "hookSpecificOutput": output}


def _block(event, reason="blocked", **extra):
    return {
        "continue": True,
        "hookSpecificOutput": {"hookEventName": event.value, "decision": "block", "reason": reason, **extra},
    }


# ─────────────────────────────────────────────────────────────────────────────
# UserPromptSubmit
# ─────────────────────────────────────────────────────────────────────────────


class TestUserPromptSubmit:
    """Tests for prompt-submission gating."""

    EVENT = HookEvent.USER_PROMPT_SUBMIT

    def test_silent_success_injects_nothing(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result())
        assert outcome.should_continue is True
        assert outcome.transcript_mutations == []
        assert outcome.tool_gate is None

    def test_no_hooks(self, resolve):
        outcome = resolve(self.EVENT)
        assert outcome.should_continue is True
        assert outcome.transcript_mutations == []

    def test_exit_code_2_blocks_with_stderr_verbatim(self, resolve, make_result):
        stderr = "Prompt validation failed: inappropriate content detected"
        outcome = resolve(self.EVENT, make_result(exit_code=2, stderr=stderr))
        assert outcome.should_continue is False
        assert _kinds(outcome) == [
            MutationKind.REMOVE_LAST_USER_MESSAGE,
            MutationKind.APPEND_ERROR_MESSAGE,
        ]
        assert outcome.transcript_mutations[1].text == stderr
        assert outcome.blocking_reason == stderr

    def test_blocking_without_stderr_uses_generic_text(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=2))
        assert outcome.error_messages == [EXECUTION_FAILED_TEXT]

    def test_non_blocking_failure_shows_stderr(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, stderr="Non-critical hook failure: network timeout"))
        assert outcome.should_continue is True
        assert outcome.error_messages == ["Non-critical hook failure: network timeout"]

    def test_non_blocking_failure_without_stderr(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, stderr=""))
        assert outcome.error_messages == ["Hook execution failed"]

    def test_first_blocking_result_wins(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(stdout="first context"),
            make_result(exit_code=2, stderr="Security policy violation"),
            make_result(exit_code=2, stderr="Third hook"),
        )
        assert outcome.should_continue is False
        assert outcome.error_messages == ["Security policy violation"]
        assert outcome.context_messages == []

    def test_json_continue_false_uses_stop_reason(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout={"continue": False, "stopReason": "No secrets"}))
        assert outcome.should_continue is False
        assert outcome.error_messages == ["No secrets"]

    def test_json_block_decision(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_block(self.EVENT, "Off-topic prompt")))
        assert outcome.should_continue is False
        assert outcome.blocking_reason == "Off-topic prompt"

    def test_plain_stdout_becomes_user_context(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout="  Current branch: main \n"))
        assert _kinds(outcome) == [MutationKind.APPEND_CONTEXT_MESSAGE]
        assert outcome.transcript_mutations[0].text == "Current branch: main"
        assert outcome.transcript_mutations[0].role == "user"

    def test_whitespace_stdout_injects_nothing(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout="   \n"))
        assert outcome.transcript_mutations == []

    def test_unparseable_json_stdout_is_not_context(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout="{broken}"))
        assert outcome.transcript_mutations == []

    def test_additional_context_from_json(self, resolve, make_result):
        stdout = {
            "continue": True,
            "hookSpecificOutput": {"hookEventName": "UserPromptSubmit", "additionalContext": "Sprint 12"},
        }
        outcome = resolve(self.EVENT, make_result(stdout=stdout))
        assert outcome.context_messages == ["Sprint 12"]

    def test_failures_and_context_keep_hook_order(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(exit_code=1, stderr="first failed"),
            make_result(stdout="second context"),
            make_result(exit_code=3, stderr="third failed"),
        )
        assert [(m.kind, m.text) for m in outcome.transcript_mutations] == [
            (MutationKind.APPEND_ERROR_MESSAGE, "first failed"),
            (MutationKind.APPEND_CONTEXT_MESSAGE, "second context"),
            (MutationKind.APPEND_ERROR_MESSAGE, "third failed"),
        ]

    def test_json_validation_errors_are_surfaced(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout={"continue": True, "systemMessage": 5}))
        assert outcome.should_continue is True
        assert outcome.error_messages == ["systemMessage: systemMessage must be a string"]

    def test_json_warnings_are_not_failures(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout={"continue": True, "stopReason": "x"}))
        assert outcome.transcript_mutations == []

    def test_system_messages_are_collected(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout={"continue": True, "systemMessage": "Heads up"}))
        assert outcome.system_messages == ["Heads up"]

    def test_timeout_is_non_blocking_by_default(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, timed_out=True))
        assert outcome.should_continue is True
        assert outcome.error_messages == [TIMED_OUT_TEXT]

    def test_timeout_can_be_made_blocking(self, make_result):
        settings = EngineSettings(block_on_timeout=True)
        interpreter = OutputInterpreter(settings)
        result = make_result(exit_code=1, timed_out=True)
        outcome = ExecutionCoordinator(settings).resolve(
            self.EVENT, [interpreter.parse(result, self.EVENT)]
        )
        assert outcome.should_continue is False
        assert outcome.error_messages == [TIMED_OUT_TEXT]


# ─────────────────────────────────────────────────────────────────────────────
# PreToolUse
# ─────────────────────────────────────────────────────────────────────────────


class TestPreToolUse:
    """Tests for per-call tool gating."""

    EVENT = HookEvent.PRE_TOOL_USE

    def test_no_hooks_allows(self, resolve):
        outcome = resolve(self.EVENT)
        assert outcome.tool_gate.decision == PermissionDecision.ALLOW
        assert outcome.tool_gate.should_proceed is True

    def test_deny_blocks_only_the_tool_call(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_pre_tool("deny", "rm -rf is not allowed")))
        assert outcome.should_continue is True
        assert outcome.tool_gate.decision == PermissionDecision.DENY
        assert outcome.tool_gate.should_proceed is False
        assert _kinds(outcome) == [MutationKind.ANNOTATE_TOOL_RESULT]
        assert outcome.transcript_mutations[0].text == "rm -rf is not allowed"

    def test_deny_without_reason_uses_fallback(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_pre_tool("deny")))
        assert outcome.tool_gate.reason == DENIED_FALLBACK_TEXT

    def test_exit_code_2_denies_with_stderr(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=2, stderr="Protected path"))
        assert outcome.tool_gate.should_proceed is False
        assert outcome.tool_gate.reason == "Protected path"

    def test_continue_false_denies(self, resolve, make_result):
        stdout = {"continue": False, "stopReason": "Frozen repository"}
        outcome = resolve(self.EVENT, make_result(stdout=stdout))
        assert outcome.tool_gate.decision == PermissionDecision.DENY
        assert outcome.blocking_reason == "Frozen repository"

    def test_first_deny_stops_scanning(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(stdout=_pre_tool("deny", "first")),
            make_result(exit_code=1, stderr="never shown"),
        )
        assert _kinds(outcome) == [MutationKind.ANNOTATE_TOOL_RESULT]

    def test_ask(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_pre_tool("ask", "Writes outside the project")))
        assert outcome.tool_gate.decision == PermissionDecision.ASK
        assert outcome.tool_gate.should_proceed is False
        assert outcome.tool_gate.reason == "Writes outside the project"
        assert outcome.transcript_mutations == []

    def test_deny_after_ask_wins(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(stdout=_pre_tool("ask", "check")),
            make_result(stdout=_pre_tool("deny", "no")),
        )
        assert outcome.tool_gate.decision == PermissionDecision.DENY

    def test_allow_with_updated_input(self, resolve, make_result):
        stdout = _pre_tool("allow", "normalized", updatedInput={"path": "/repo/a.py"})
        outcome = resolve(self.EVENT, make_result(stdout=stdout))
        assert outcome.tool_gate.should_proceed is True
        assert outcome.tool_gate.updated_input == {"path": "/repo/a.py"}

    def test_ask_drops_updated_input(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(stdout=_pre_tool("allow", "ok", updatedInput={"x": 1})),
            make_result(stdout=_pre_tool("ask", "confirm")),
        )
        assert outcome.tool_gate.decision == PermissionDecision.ASK
        assert outcome.tool_gate.updated_input is None

    def test_non_blocking_failure_still_runs_tool(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, stderr="linter crashed"))
        assert outcome.tool_gate.should_proceed is True
        assert outcome.error_messages == ["linter crashed"]

    def test_invalid_decision_is_surfaced_as_error(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_pre_tool("maybe", "r")))
        assert outcome.tool_gate.should_proceed is True
        assert outcome.error_messages == [
            "hookSpecificOutput.permissionDecision: permissionDecision must be one of: allow, deny, ask"
        ]


# ─────────────────────────────────────────────────────────────────────────────
# PostToolUse
# ─────────────────────────────────────────────────────────────────────────────


class TestPostToolUse:
    """Tests for flagging completed tool calls."""

    EVENT = HookEvent.POST_TOOL_USE

    def test_block_annotates_and_feeds_reason_forward(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_block(self.EVENT, "Type check failed")))
        assert outcome.should_continue is True
        assert [(m.kind, m.text) for m in outcome.transcript_mutations] == [
            (MutationKind.ANNOTATE_TOOL_RESULT, "Type check failed"),
            (MutationKind.APPEND_CONTEXT_MESSAGE, "Type check failed"),
        ]
        assert outcome.blocking_reason == "Type check failed"

    def test_block_with_additional_context(self, resolve, make_result):
        stdout = _block(self.EVENT, "lint failed", additionalContext="see line 3")
        outcome = resolve(self.EVENT, make_result(stdout=stdout))
        assert outcome.context_messages == ["lint failed", "see line 3"]

    def test_exit_code_2_flags_result(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=2, stderr="Formatting changed the file"))
        assert _kinds(outcome) == [
            MutationKind.ANNOTATE_TOOL_RESULT,
            MutationKind.APPEND_CONTEXT_MESSAGE,
        ]

    def test_additional_context_only(self, resolve, make_result):
        stdout = {
            "continue": True,
            "hookSpecificOutput": {"hookEventName": "PostToolUse", "additionalContext": "3 tests added"},
        }
        outcome = resolve(self.EVENT, make_result(stdout=stdout))
        assert _kinds(outcome) == [MutationKind.APPEND_CONTEXT_MESSAGE]

    def test_failure_only_appends_error(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, stderr="hook crashed"))
        assert _kinds(outcome) == [MutationKind.APPEND_ERROR_MESSAGE]

    def test_success_stdout_is_not_injected(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout="formatted 3 files"))
        assert outcome.transcript_mutations == []


# ─────────────────────────────────────────────────────────────────────────────
# Stop
# ─────────────────────────────────────────────────────────────────────────────


class TestStop:
    """Tests for forcing another turn."""

    EVENT = HookEvent.STOP

    def test_block_forces_another_turn_as_user_message(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout=_block(self.EVENT, "Tests are still failing")))
        assert outcome.block_stop is True
        assert outcome.should_continue is True
        mutation = outcome.transcript_mutations[0]
        assert mutation.kind == MutationKind.APPEND_CONTEXT_MESSAGE
        assert mutation.role == "user"
        assert mutation.text == "Tests are still failing"

    def test_exit_code_2_blocks_stop(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=2, stderr="Run the tests first"))
        assert outcome.block_stop is True
        assert outcome.context_messages == ["Run the tests first"]

    def test_success_never_injects_stdout(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(stdout="all done"))
        assert outcome.block_stop is False
        assert outcome.transcript_mutations == []

    def test_failure_appends_error(self, resolve, make_result):
        outcome = resolve(self.EVENT, make_result(exit_code=1, stderr="notify failed"))
        assert outcome.block_stop is False
        assert outcome.error_messages == ["notify failed"]

    def test_first_block_stops_scanning(self, resolve, make_result):
        outcome = resolve(
            self.EVENT,
            make_result(stdout=_block(self.EVENT, "first")),
            make_result(stdout=_block(self.EVENT, "second")),
        )
        assert outcome.context_messages == ["first"]
