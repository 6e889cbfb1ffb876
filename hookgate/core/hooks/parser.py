"""Hook output interpretation.

A hook can answer in two ways:
- JSON on stdout, validated against the schema for the triggering event
- a bare exit code (0 success, 2 block, anything else non-blocking error)

Structurally valid JSON always wins over the exit code, even when its
content fails validation. Unparseable stdout silently falls back to the
exit code. Nothing here raises for malformed hook output.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from hookgate.core.config import EngineSettings
from hookgate.core.hooks.events import (
    BLOCK_DECISION,
    HookEvent,
    HookResult,
    HookSpecificOutput,
    ParsedOutput,
    PermissionDecision,
    PostToolUseHookOutput,
    PreToolUseHookOutput,
    StopHookOutput,
    UserPromptSubmitHookOutput,
    ValidationResult,
)
from hookgate.core.hooks.validation import (
    VALID_PERMISSION_DECISIONS,
    effective_continue,
    get_validation_summary,
    usable_text,
    validate_json_output,
)
from hookgate.utils.coerce import coerce_to_str
from hookgate.utils.json_utils import try_parse_json
from hookgate.utils.log import get_logger

logger = get_logger()

JSON_STOP_FALLBACK = "Hook requested to stop execution without providing a reason"
EXIT_CODE_BLOCK_REASON = "Hook requested to block execution (exit code 2)"

BLOCKING_EXIT_CODE = 2


def looks_like_json(content: str) -> bool:
    """Cheap check for text shaped like a JSON object or array."""
    trimmed = content.strip()
    return (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    )


def _scan_object_end(text: str, start: int) -> Optional[int]:
    """Return the index of the brace closing the object opened at ``start``.

    Braces inside string literals do not count. Returns None when the
    object never closes.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def extract_json_from_output(output: str) -> Optional[str]:
    """Pull the first JSON object out of mixed hook output.

    The object must begin on its own line. When no line starts with "{"
    the whole output is tried as JSON. An object that never closes is
    still attempted as-is.
    """
    offset = 0
    start: Optional[int] = None
    for line in output.split("\n"):
        stripped = line.lstrip()
        if stripped.startswith("{"):
            start = offset + (len(line) - len(stripped))
            break
        offset += len(line) + 1

    if start is None:
        ok, _ = try_parse_json(output, log_error=False)
        return output if ok else None

    end = _scan_object_end(output, start)
    candidate = output[start:] if end is None else output[start : end + 1]
    ok, _ = try_parse_json(candidate, log_error=False)
    return candidate if ok else None


def has_valid_json_output(stdout: Optional[str]) -> bool:
    """True when stdout contains JSON the interpreter would pick up."""
    if not stdout or not stdout.strip():
        return False
    return extract_json_from_output(stdout.strip()) is not None


# ─────────────────────────────────────────────────────────────────────────────
# Typed payload extraction
# ─────────────────────────────────────────────────────────────────────────────


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


def _event_name(output: Dict[str, Any]) -> Optional[str]:
    name = output.get("hookEventName")
    return name if isinstance(name, str) else None


def _pre_tool_use_payload(output: Dict[str, Any]) -> PreToolUseHookOutput:
    decision = output.get("permissionDecision")
    updated_input = output.get("updatedInput")
    return PreToolUseHookOutput(
        hook_event_name=_event_name(output),
        permission_decision=(
            PermissionDecision(decision) if decision in VALID_PERMISSION_DECISIONS else None
        ),
        permission_decision_reason=_text_or_none(output.get("permissionDecisionReason")),
        updated_input=updated_input if isinstance(updated_input, dict) else None,
    )


def _block_fields(output: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "hook_event_name": _event_name(output),
        "decision": BLOCK_DECISION if output.get("decision") == BLOCK_DECISION else None,
        "reason": _text_or_none(output.get("reason")),
    }


def _context(output: Dict[str, Any]) -> Optional[str]:
    context = output.get("additionalContext")
    return context if isinstance(context, str) else None


def _post_tool_use_payload(output: Dict[str, Any]) -> PostToolUseHookOutput:
    return PostToolUseHookOutput(**_block_fields(output), additional_context=_context(output))


def _user_prompt_submit_payload(output: Dict[str, Any]) -> UserPromptSubmitHookOutput:
    return UserPromptSubmitHookOutput(**_block_fields(output), additional_context=_context(output))


def _stop_payload(output: Dict[str, Any]) -> StopHookOutput:
    return StopHookOutput(**_block_fields(output))


PAYLOAD_BUILDERS: Dict[HookEvent, Callable[[Dict[str, Any]], HookSpecificOutput]] = {
    HookEvent.PRE_TOOL_USE: _pre_tool_use_payload,
    HookEvent.POST_TOOL_USE: _post_tool_use_payload,
    HookEvent.USER_PROMPT_SUBMIT: _user_prompt_submit_payload,
    HookEvent.STOP: _stop_payload,
}

assert set(PAYLOAD_BUILDERS) == set(HookEvent), "every hook event needs a payload builder"


class ParseDiagnostics(BaseModel):
    """What the interpreter could make of a hook's stdout."""

    has_stdout: bool = False
    has_stderr: bool = False
    stdout_looks_like_json: bool = False
    json_extractable: bool = False
    json_valid: bool = False
    validation_summary: Optional[str] = None


class OutputInterpreter:
    """Turns raw hook results into ``ParsedOutput``.

    Instances hold only immutable settings, so one interpreter can be
    shared by everything that dispatches hooks for an agent.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def parse(self, result: HookResult, event: HookEvent) -> ParsedOutput:
        """Interpret one hook result for ``event``, preferring JSON."""
        parsed = self._try_parse_json(result, event)
        if parsed is None:
            parsed = self._parse_exit_code(result)

        logger.debug(
            "[hooks.parser] Parsed hook output",
            extra={
                "event": event.value,
                "source": parsed.source,
                "continue": parsed.continue_execution,
                "exit_code": result.exit_code,
                "issue_count": len(parsed.issues),
            },
        )
        return parsed

    def validate(self, data: Any, event: HookEvent) -> ValidationResult:
        """Validate decoded JSON with this interpreter's settings."""
        return validate_json_output(
            data, event, max_system_message_length=self.settings.system_message_max_length
        )

    def get_diagnostics(self, result: HookResult, event: HookEvent) -> ParseDiagnostics:
        """Explain how stdout would be treated, for debugging hooks."""
        stdout = result.stdout.strip()
        diagnostics = ParseDiagnostics(
            has_stdout=bool(stdout),
            has_stderr=bool(result.stderr.strip()),
        )
        if not stdout:
            return diagnostics

        diagnostics.stdout_looks_like_json = looks_like_json(stdout)
        candidate = extract_json_from_output(stdout)
        diagnostics.json_extractable = candidate is not None
        if candidate is not None:
            ok, data = try_parse_json(candidate, log_error=False)
            diagnostics.json_valid = ok
            if ok:
                diagnostics.validation_summary = get_validation_summary(self.validate(data, event))
        return diagnostics

    def _try_parse_json(self, result: HookResult, event: HookEvent) -> Optional[ParsedOutput]:
        stdout = result.stdout.strip()
        if not stdout:
            return None

        candidate = extract_json_from_output(stdout)
        if candidate is None:
            return None

        ok, data = try_parse_json(candidate, log_error=False)
        if not ok:
            return None

        validation = self.validate(data, event)
        return self._from_json(data, event, validation, result)

    def _from_json(
        self,
        data: Any,
        event: HookEvent,
        validation: ValidationResult,
        result: HookResult,
    ) -> ParsedOutput:
        document: Dict[str, Any] = data if isinstance(data, dict) else {}

        continue_execution = effective_continue(document)
        stop_reason = None if continue_execution else usable_text(document.get("stopReason"))
        if not continue_execution and stop_reason is None:
            stop_reason = JSON_STOP_FALLBACK

        system_message = document.get("systemMessage")
        if system_message is not None:
            system_message = coerce_to_str(system_message)

        hook_output = document.get("hookSpecificOutput")
        hook_specific_data = (
            PAYLOAD_BUILDERS[event](hook_output) if isinstance(hook_output, dict) else None
        )

        error_messages: List[str] = [issue.render() for issue in validation.errors]
        error_messages.extend(issue.render() for issue in validation.warnings)

        return ParsedOutput(
            source="json",
            continue_execution=continue_execution,
            stop_reason=stop_reason,
            system_message=system_message,
            hook_specific_data=hook_specific_data,
            error_messages=error_messages,
            issues=validation.issues,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            timed_out=result.timed_out,
        )

    def _parse_exit_code(self, result: HookResult) -> ParsedOutput:
        messages: List[str] = []
        stderr = result.stderr.strip()
        if stderr:
            messages.append(stderr)

        stdout = result.stdout.strip()
        if stdout and not looks_like_json(stdout):
            messages.append(f"Hook output: {stdout}")

        raw = {
            "exit_code": result.exit_code,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "timed_out": result.timed_out,
        }

        if result.timed_out:
            note = f"Hook timed out after {result.duration}ms"
            return ParsedOutput(
                source="exitcode",
                continue_execution=True,
                system_message=note,
                error_messages=[note, *messages],
                **raw,
            )

        if result.exit_code == 0:
            return ParsedOutput(source="exitcode", continue_execution=True, error_messages=messages, **raw)

        if result.exit_code == BLOCKING_EXIT_CODE:
            return ParsedOutput(
                source="exitcode",
                continue_execution=False,
                stop_reason=EXIT_CODE_BLOCK_REASON,
                error_messages=messages,
                **raw,
            )

        return ParsedOutput(
            source="exitcode",
            continue_execution=True,
            system_message=f"Hook completed with non-zero exit code {result.exit_code}",
            error_messages=[f"Non-blocking error: exit code {result.exit_code}", *messages],
            **raw,
        )


def parse_hook_output(
    result: HookResult, event: HookEvent, settings: Optional[EngineSettings] = None
) -> ParsedOutput:
    """Convenience wrapper around ``OutputInterpreter.parse``."""
    return OutputInterpreter(settings).parse(result, event)
