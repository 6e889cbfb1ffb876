"""Turn interpreted hook outputs into one decision per lifecycle event.

The coordinator walks ``ParsedOutput`` values in registration order and
produces an ``EventOutcome``: whether the agent may continue, which
transcript edits to apply, and for PreToolUse whether the tool call may
run. It never raises and never re-validates; validation problems arrive
already folded into each ``ParsedOutput``.
"""

from enum import Enum
from typing import Callable, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from hookgate.core.config import EngineSettings
from hookgate.core.hooks.events import (
    HookEvent,
    ParsedOutput,
    PermissionDecision,
    PostToolUseHookOutput,
    PreToolUseHookOutput,
    StopHookOutput,
    UserPromptSubmitHookOutput,
)
from hookgate.core.hooks.parser import BLOCKING_EXIT_CODE, looks_like_json
from hookgate.utils.log import get_logger

logger = get_logger()

EXECUTION_FAILED_TEXT = "Hook execution failed"
TIMED_OUT_TEXT = "Hook timed out"
BLOCKED_FALLBACK_TEXT = "Blocked by hook"
DENIED_FALLBACK_TEXT = "Tool use denied by hook"


class MutationKind(str, Enum):
    REMOVE_LAST_USER_MESSAGE = "remove_last_user_message"
    APPEND_ERROR_MESSAGE = "append_error_message"
    APPEND_CONTEXT_MESSAGE = "append_context_message"
    ANNOTATE_TOOL_RESULT = "annotate_tool_result"


MessageRole = Literal["user", "assistant", "tool"]


class TranscriptMutation(BaseModel):
    """One edit the consumer applies to its conversation transcript."""

    kind: MutationKind
    text: Optional[str] = None
    role: MessageRole = "assistant"

    @classmethod
    def remove_last_user_message(cls) -> "TranscriptMutation":
        return cls(kind=MutationKind.REMOVE_LAST_USER_MESSAGE, role="user")

    @classmethod
    def error(cls, text: str) -> "TranscriptMutation":
        return cls(kind=MutationKind.APPEND_ERROR_MESSAGE, text=text, role="assistant")

    @classmethod
    def context(cls, text: str) -> "TranscriptMutation":
        # Hook context always reaches the model as user input.
        return cls(kind=MutationKind.APPEND_CONTEXT_MESSAGE, text=text, role="user")

    @classmethod
    def annotate_tool_result(cls, text: str) -> "TranscriptMutation":
        return cls(kind=MutationKind.ANNOTATE_TOOL_RESULT, text=text, role="tool")


class ToolGate(BaseModel):
    """PreToolUse verdict for a single tool call."""

    decision: PermissionDecision = PermissionDecision.ALLOW
    should_proceed: bool = True
    reason: Optional[str] = None
    updated_input: Optional[Dict[str, object]] = None


class EventOutcome(BaseModel):
    """Everything the consumer needs to act on one event."""

    should_continue: bool = True
    transcript_mutations: List[TranscriptMutation] = Field(default_factory=list)
    tool_gate: Optional[ToolGate] = None
    block_stop: bool = False
    blocking_reason: Optional[str] = None
    system_messages: List[str] = Field(default_factory=list)

    @property
    def error_messages(self) -> List[str]:
        return [
            m.text or ""
            for m in self.transcript_mutations
            if m.kind == MutationKind.APPEND_ERROR_MESSAGE
        ]

    @property
    def context_messages(self) -> List[str]:
        return [
            m.text or ""
            for m in self.transcript_mutations
            if m.kind == MutationKind.APPEND_CONTEXT_MESSAGE
        ]


class ExecutionCoordinator:
    """Applies the per-event blocking rules to ordered hook outputs."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self._resolvers: Dict[HookEvent, Callable[[Sequence[ParsedOutput]], EventOutcome]] = {
            HookEvent.USER_PROMPT_SUBMIT: self._resolve_user_prompt_submit,
            HookEvent.PRE_TOOL_USE: self._resolve_pre_tool_use,
            HookEvent.POST_TOOL_USE: self._resolve_post_tool_use,
            HookEvent.STOP: self._resolve_stop,
        }

    def resolve(self, event: HookEvent, results: Sequence[ParsedOutput]) -> EventOutcome:
        """Combine ``results`` (in registration order) into one outcome."""
        outcome = self._resolvers[event](results)
        if outcome.blocking_reason is not None:
            logger.info(
                f"[hooks.coordinator] {event.value} blocked by hook",
                extra={"event": event.value, "reason": outcome.blocking_reason},
            )
        logger.debug(
            "[hooks.coordinator] Resolved hook outputs",
            extra={
                "event": event.value,
                "result_count": len(results),
                "should_continue": outcome.should_continue,
                "mutation_count": len(outcome.transcript_mutations),
            },
        )
        return outcome

    # ─────────────────────────────────────────────────────────────────────
    # Classification
    # ─────────────────────────────────────────────────────────────────────

    def is_blocking(self, parsed: ParsedOutput) -> bool:
        if not parsed.continue_execution:
            return True
        return parsed.timed_out and self.settings.block_on_timeout

    def is_failure(self, parsed: ParsedOutput) -> bool:
        """Non-blocking failure: bad exit code, timeout or invalid JSON."""
        if parsed.timed_out:
            return True
        if parsed.source == "exitcode":
            return parsed.exit_code not in (0, BLOCKING_EXIT_CODE)
        return parsed.has_errors

    def failure_text(self, parsed: ParsedOutput) -> str:
        """User-visible text for a failed or blocking result."""
        if parsed.source == "exitcode":
            stderr = parsed.stderr.strip()
            if stderr:
                return stderr
            return TIMED_OUT_TEXT if parsed.timed_out else EXECUTION_FAILED_TEXT

        lines = [issue.render() for issue in parsed.error_issues]
        if parsed.timed_out:
            lines.insert(0, TIMED_OUT_TEXT)
        return "\n".join(lines) or EXECUTION_FAILED_TEXT

    def _blocking_text(self, parsed: ParsedOutput, payload_reason: Optional[str], fallback: str) -> str:
        if parsed.source == "exitcode":
            return self.failure_text(parsed)
        if not parsed.continue_execution and parsed.stop_reason:
            return parsed.stop_reason
        if payload_reason:
            return payload_reason
        if parsed.timed_out:
            return TIMED_OUT_TEXT
        return fallback

    @staticmethod
    def _success_stdout(parsed: ParsedOutput) -> Optional[str]:
        if parsed.source != "exitcode" or parsed.exit_code != 0 or parsed.timed_out:
            return None
        content = parsed.stdout.strip()
        if not content or looks_like_json(content):
            return None
        return content

    @staticmethod
    def _collect_system_message(outcome: EventOutcome, parsed: ParsedOutput) -> None:
        if parsed.source == "json" and parsed.system_message:
            outcome.system_messages.append(parsed.system_message)

    # ─────────────────────────────────────────────────────────────────────
    # Per-event rules
    # ─────────────────────────────────────────────────────────────────────

    def _resolve_user_prompt_submit(self, results: Sequence[ParsedOutput]) -> EventOutcome:
        for parsed in results:
            payload = parsed.hook_specific_data
            block_reason = None
            if isinstance(payload, UserPromptSubmitHookOutput):
                block_reason = payload.reason
                decided_block = payload.is_block
            else:
                decided_block = False
            if self.is_blocking(parsed) or decided_block:
                text = self._blocking_text(parsed, block_reason, BLOCKED_FALLBACK_TEXT)
                outcome = EventOutcome(
                    should_continue=False,
                    transcript_mutations=[
                        TranscriptMutation.remove_last_user_message(),
                        TranscriptMutation.error(text),
                    ],
                    blocking_reason=text,
                )
                self._collect_system_message(outcome, parsed)
                return outcome

        outcome = EventOutcome()
        for parsed in results:
            self._collect_system_message(outcome, parsed)
            if self.is_failure(parsed):
                outcome.transcript_mutations.append(TranscriptMutation.error(self.failure_text(parsed)))

            context = self._success_stdout(parsed)
            payload = parsed.hook_specific_data
            if context is None and isinstance(payload, UserPromptSubmitHookOutput):
                context = (payload.additional_context or "").strip() or None
            if context:
                outcome.transcript_mutations.append(TranscriptMutation.context(context))
        return outcome

    def _resolve_pre_tool_use(self, results: Sequence[ParsedOutput]) -> EventOutcome:
        outcome = EventOutcome(tool_gate=ToolGate())
        gate = outcome.tool_gate

        for parsed in results:
            self._collect_system_message(outcome, parsed)
            payload = parsed.hook_specific_data
            decision = reason = None
            updated_input = None
            if isinstance(payload, PreToolUseHookOutput):
                decision = payload.permission_decision
                reason = payload.permission_decision_reason
                updated_input = payload.updated_input

            if self.is_blocking(parsed) or decision == PermissionDecision.DENY:
                text = self._blocking_text(parsed, reason, DENIED_FALLBACK_TEXT)
                outcome.transcript_mutations.append(TranscriptMutation.annotate_tool_result(text))
                outcome.tool_gate = ToolGate(
                    decision=PermissionDecision.DENY,
                    should_proceed=False,
                    reason=text,
                )
                outcome.blocking_reason = text
                return outcome

            if self.is_failure(parsed):
                outcome.transcript_mutations.append(TranscriptMutation.error(self.failure_text(parsed)))

            if decision == PermissionDecision.ASK and gate.decision != PermissionDecision.ASK:
                gate.decision = PermissionDecision.ASK
                gate.should_proceed = False
                gate.reason = reason
            elif decision == PermissionDecision.ALLOW and gate.decision == PermissionDecision.ALLOW:
                if gate.reason is None:
                    gate.reason = reason
                if gate.updated_input is None and updated_input is not None:
                    gate.updated_input = updated_input

        if gate.decision == PermissionDecision.ASK:
            # The tool runs unmodified once the user approves.
            gate.updated_input = None
        return outcome

    def _resolve_post_tool_use(self, results: Sequence[ParsedOutput]) -> EventOutcome:
        outcome = EventOutcome()
        for parsed in results:
            self._collect_system_message(outcome, parsed)
            payload = parsed.hook_specific_data
            context = None
            block_reason = None
            decided_block = False
            if isinstance(payload, PostToolUseHookOutput):
                context = (payload.additional_context or "").strip() or None
                block_reason = payload.reason
                decided_block = payload.is_block

            if self.is_blocking(parsed) or decided_block:
                text = self._blocking_text(parsed, block_reason, BLOCKED_FALLBACK_TEXT)
                outcome.transcript_mutations.append(TranscriptMutation.annotate_tool_result(text))
                outcome.transcript_mutations.append(TranscriptMutation.context(text))
                if outcome.blocking_reason is None:
                    outcome.blocking_reason = text
            elif self.is_failure(parsed):
                outcome.transcript_mutations.append(TranscriptMutation.error(self.failure_text(parsed)))

            if context:
                outcome.transcript_mutations.append(TranscriptMutation.context(context))
        return outcome

    def _resolve_stop(self, results: Sequence[ParsedOutput]) -> EventOutcome:
        outcome = EventOutcome()
        for parsed in results:
            self._collect_system_message(outcome, parsed)
            payload = parsed.hook_specific_data
            block_reason = None
            decided_block = False
            if isinstance(payload, StopHookOutput):
                block_reason = payload.reason
                decided_block = payload.is_block

            if self.is_blocking(parsed) or decided_block:
                text = self._blocking_text(parsed, block_reason, BLOCKED_FALLBACK_TEXT)
                outcome.transcript_mutations.append(TranscriptMutation.context(text))
                outcome.block_stop = True
                outcome.blocking_reason = text
                return outcome

            if self.is_failure(parsed):
                outcome.transcript_mutations.append(TranscriptMutation.error(self.failure_text(parsed)))
        return outcome
