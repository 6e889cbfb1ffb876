"""Schema validation for JSON emitted by hooks.

Validation never raises. Every problem becomes a ``ValidationIssue``:
errors mark the output as semantically invalid, warnings are advisory.
The JSON itself is still honoured by the interpreter either way.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from hookgate.core.config import DEFAULT_SYSTEM_MESSAGE_MAX_LENGTH
from hookgate.core.hooks.events import (
    BLOCK_DECISION,
    HookEvent,
    PermissionDecision,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from hookgate.utils.coerce import coerce_to_str, parse_strict_flag

COMMON_FIELDS = ("continue", "stopReason", "systemMessage", "hookSpecificOutput")

PRE_TOOL_USE_FIELDS = (
    "hookEventName",
    "permissionDecision",
    "permissionDecisionReason",
    "updatedInput",
)
POST_TOOL_USE_FIELDS = ("hookEventName", "decision", "reason", "additionalContext")
USER_PROMPT_SUBMIT_FIELDS = ("hookEventName", "decision", "reason", "additionalContext")
STOP_FIELDS = ("hookEventName", "decision", "reason")

VALID_PERMISSION_DECISIONS = tuple(decision.value for decision in PermissionDecision)

# Error codes
INVALID_TYPE = "INVALID_TYPE"
INVALID_VALUE = "INVALID_VALUE"
REQUIRED_FIELD = "REQUIRED_FIELD"
EMPTY_REQUIRED_FIELD = "EMPTY_REQUIRED_FIELD"
EVENT_MISMATCH = "EVENT_MISMATCH"

# Warning codes
MISSING_FIELD = "MISSING_FIELD"
IGNORED_FIELD = "IGNORED_FIELD"
UNKNOWN_FIELD = "UNKNOWN_FIELD"
EMPTY_FIELD = "EMPTY_FIELD"
FIELD_TOO_LONG = "FIELD_TOO_LONG"
EMPTY_OBJECT = "EMPTY_OBJECT"
MISSING_DECISION = "MISSING_DECISION"
UNCLEAR_REASON = "UNCLEAR_REASON"


def _error(field: str, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(
        field=field, message=message, code=code, severity=ValidationSeverity.ERROR
    )


def _warning(
    field: str, message: str, code: str, suggestion: Optional[str] = None
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        message=message,
        code=code,
        severity=ValidationSeverity.WARNING,
        suggestion=suggestion,
    )


def _is_falsy(value: Any) -> bool:
    """JSON-level falsiness: missing, null, false, 0 or the empty string."""
    if value is None or value is False or value == "":
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


# ─────────────────────────────────────────────────────────────────────────────
# Field helpers shared with the interpreter
# ─────────────────────────────────────────────────────────────────────────────


def effective_continue(data: Dict[str, Any]) -> bool:
    """Resolve the ``continue`` flag, defaulting to True when unrecognised."""
    if "continue" not in data:
        return True
    flag = parse_strict_flag(data["continue"])
    return True if flag is None else flag


def usable_text(value: Any) -> Optional[str]:
    """Return ``value`` as text when it carries something non-blank."""
    if _is_falsy(value):
        return None
    text = coerce_to_str(value)
    return text if text.strip() else None


# ─────────────────────────────────────────────────────────────────────────────
# Common fields
# ─────────────────────────────────────────────────────────────────────────────


def _validate_common_fields(
    data: Dict[str, Any],
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
    max_system_message_length: int,
) -> None:
    if "continue" in data:
        raw = data["continue"]
        if not isinstance(raw, bool):
            flag = parse_strict_flag(raw)
            outcome = (
                "defaulting to true" if flag is None else f"treated as {coerce_to_str(flag)}"
            )
            warnings.append(
                _warning(
                    "continue",
                    f"continue field should be a boolean (true or false), {outcome}",
                    INVALID_TYPE,
                    "Use a JSON boolean for continue",
                )
            )
    else:
        warnings.append(
            _warning(
                "continue",
                "continue field not specified, defaulting to true",
                MISSING_FIELD,
                "Consider explicitly setting continue: true or continue: false",
            )
        )

    if not effective_continue(data):
        stop_reason = data.get("stopReason")
        if _is_falsy(stop_reason):
            errors.append(
                _error("stopReason", "stopReason is required when continue is false", REQUIRED_FIELD)
            )
        elif not coerce_to_str(stop_reason).strip():
            errors.append(
                _error(
                    "stopReason",
                    "stopReason cannot be empty when continue is false",
                    EMPTY_REQUIRED_FIELD,
                )
            )
    elif "stopReason" in data:
        warnings.append(
            _warning(
                "stopReason",
                "stopReason provided when continue is true, it will be ignored",
                IGNORED_FIELD,
                "Remove stopReason when continue is true",
            )
        )

    if "systemMessage" in data:
        system_message = data["systemMessage"]
        if not isinstance(system_message, str):
            errors.append(_error("systemMessage", "systemMessage must be a string", INVALID_TYPE))
        elif not system_message:
            warnings.append(
                _warning(
                    "systemMessage",
                    "systemMessage is empty",
                    EMPTY_FIELD,
                    "Consider providing a meaningful message or removing the field",
                )
            )
        elif len(system_message) > max_system_message_length:
            warnings.append(
                _warning(
                    "systemMessage",
                    f"systemMessage is very long (>{max_system_message_length} characters)",
                    FIELD_TOO_LONG,
                    "Consider keeping system messages concise",
                )
            )

    if "hookSpecificOutput" in data:
        hook_output = data["hookSpecificOutput"]
        if hook_output is not None and not isinstance(hook_output, dict):
            errors.append(
                _error(
                    "hookSpecificOutput",
                    "hookSpecificOutput must be an object or null",
                    INVALID_TYPE,
                )
            )

    unknown = [key for key in data if key not in COMMON_FIELDS]
    if unknown:
        warnings.append(
            _warning(
                "root",
                f"Unknown fields detected: {', '.join(unknown)}",
                UNKNOWN_FIELD,
                f"Valid common fields are: {', '.join(COMMON_FIELDS)}",
            )
        )


# ─────────────────────────────────────────────────────────────────────────────
# Event-specific validators
# ─────────────────────────────────────────────────────────────────────────────


def _warn_unknown_fields(
    output: Dict[str, Any],
    valid_fields: Sequence[str],
    event: HookEvent,
    warnings: List[ValidationIssue],
) -> None:
    unknown = [key for key in output if key not in valid_fields]
    if unknown:
        warnings.append(
            _warning(
                "hookSpecificOutput",
                f"Unknown {event.value} fields detected: {', '.join(unknown)}",
                UNKNOWN_FIELD,
                f"Valid {event.value} fields are: {', '.join(valid_fields)}",
            )
        )


def _validate_required_text(
    output: Dict[str, Any], key: str, requirement: str, errors: List[ValidationIssue]
) -> None:
    field = f"hookSpecificOutput.{key}"
    value = output.get(key)
    if _is_falsy(value):
        errors.append(_error(field, f"{key} is required {requirement}", REQUIRED_FIELD))
    elif not isinstance(value, str):
        errors.append(_error(field, f"{key} must be a string {requirement}", INVALID_TYPE))
    elif not value.strip():
        errors.append(_error(field, f"{key} cannot be empty {requirement}", EMPTY_REQUIRED_FIELD))


def _validate_block_decision(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    if "decision" in output and output["decision"] != BLOCK_DECISION:
        errors.append(
            _error(
                "hookSpecificOutput.decision",
                'decision must be "block" if specified (or omit field to allow)',
                INVALID_VALUE,
            )
        )

    if output.get("decision") == BLOCK_DECISION:
        _validate_required_text(output, "reason", 'when decision is "block"', errors)
    elif "reason" in output:
        warnings.append(
            _warning(
                "hookSpecificOutput.reason",
                "reason provided without blocking decision, it will be ignored",
                IGNORED_FIELD,
                'Remove reason field or set decision to "block"',
            )
        )


def _validate_additional_context(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    if "additionalContext" not in output:
        return
    context = output["additionalContext"]
    if not isinstance(context, str):
        errors.append(
            _error(
                "hookSpecificOutput.additionalContext",
                "additionalContext must be a string",
                INVALID_TYPE,
            )
        )
    elif not context:
        warnings.append(
            _warning(
                "hookSpecificOutput.additionalContext",
                "additionalContext is empty",
                EMPTY_FIELD,
                "Consider providing meaningful context or removing the field",
            )
        )


def _validate_pre_tool_use_output(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    decision = output.get("permissionDecision")
    if _is_falsy(decision):
        errors.append(
            _error(
                "hookSpecificOutput.permissionDecision",
                "permissionDecision is required for PreToolUse hooks",
                REQUIRED_FIELD,
            )
        )
    elif decision not in VALID_PERMISSION_DECISIONS:
        errors.append(
            _error(
                "hookSpecificOutput.permissionDecision",
                f"permissionDecision must be one of: {', '.join(VALID_PERMISSION_DECISIONS)}",
                INVALID_VALUE,
            )
        )

    _validate_required_text(output, "permissionDecisionReason", "for PreToolUse hooks", errors)

    if "updatedInput" in output:
        updated_input = output["updatedInput"]
        if updated_input is not None and not isinstance(updated_input, dict):
            errors.append(
                _error(
                    "hookSpecificOutput.updatedInput",
                    "updatedInput must be an object or null",
                    INVALID_TYPE,
                )
            )
        elif decision == PermissionDecision.DENY.value:
            warnings.append(
                _warning(
                    "hookSpecificOutput.updatedInput",
                    "updatedInput provided when permission is denied, it will be ignored",
                    IGNORED_FIELD,
                    "Remove updatedInput when denying permission",
                )
            )

    if decision == PermissionDecision.ASK.value and _is_falsy(output.get("permissionDecisionReason")):
        warnings.append(
            _warning(
                "hookSpecificOutput.permissionDecisionReason",
                "Asking for permission without a clear reason may confuse users",
                UNCLEAR_REASON,
                "Provide a clear reason why permission is needed",
            )
        )

    _warn_unknown_fields(output, PRE_TOOL_USE_FIELDS, HookEvent.PRE_TOOL_USE, warnings)


def _validate_post_tool_use_output(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    _validate_block_decision(output, errors, warnings)
    _validate_additional_context(output, errors, warnings)
    _warn_unknown_fields(output, POST_TOOL_USE_FIELDS, HookEvent.POST_TOOL_USE, warnings)


def _validate_user_prompt_submit_output(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    _validate_block_decision(output, errors, warnings)
    _validate_additional_context(output, errors, warnings)
    _warn_unknown_fields(
        output, USER_PROMPT_SUBMIT_FIELDS, HookEvent.USER_PROMPT_SUBMIT, warnings
    )


def _validate_stop_output(
    output: Dict[str, Any], errors: List[ValidationIssue], warnings: List[ValidationIssue]
) -> None:
    _validate_block_decision(output, errors, warnings)
    _warn_unknown_fields(output, STOP_FIELDS, HookEvent.STOP, warnings)


EventValidator = Callable[[Dict[str, Any], List[ValidationIssue], List[ValidationIssue]], None]

EVENT_VALIDATORS: Dict[HookEvent, EventValidator] = {
    HookEvent.PRE_TOOL_USE: _validate_pre_tool_use_output,
    HookEvent.POST_TOOL_USE: _validate_post_tool_use_output,
    HookEvent.USER_PROMPT_SUBMIT: _validate_user_prompt_submit_output,
    HookEvent.STOP: _validate_stop_output,
}

assert set(EVENT_VALIDATORS) == set(HookEvent), "every hook event needs a validator"


def _validate_hook_specific_output(
    output: Dict[str, Any],
    event: HookEvent,
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
) -> None:
    event_name = output.get("hookEventName")
    if event_name != event.value:
        shown = "<missing>" if event_name is None else coerce_to_str(event_name)
        errors.append(
            _error(
                "hookSpecificOutput.hookEventName",
                f'hookEventName must be "{event.value}", got "{shown}"',
                EVENT_MISMATCH,
            )
        )

    EVENT_VALIDATORS[event](output, errors, warnings)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def validate_json_output(
    data: Any,
    event: HookEvent,
    max_system_message_length: int = DEFAULT_SYSTEM_MESSAGE_MAX_LENGTH,
) -> ValidationResult:
    """Validate a decoded JSON document against the schema for ``event``."""
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if not isinstance(data, dict):
        errors.append(
            _error(
                "root",
                "Hook output must be a JSON object (not null, array, or primitive)",
                INVALID_TYPE,
            )
        )
        return ValidationResult(errors=errors, warnings=warnings)

    if not data:
        warnings.append(
            _warning(
                "root",
                "Empty JSON object provided",
                EMPTY_OBJECT,
                "Consider providing explicit continue: true if no action is needed",
            )
        )

    _validate_common_fields(data, errors, warnings, max_system_message_length)

    hook_output = data.get("hookSpecificOutput")
    if isinstance(hook_output, dict):
        _validate_hook_specific_output(hook_output, event, errors, warnings)
    elif hook_output is None and event == HookEvent.PRE_TOOL_USE:
        warnings.append(
            _warning(
                "hookSpecificOutput",
                "PreToolUse hook missing permission decision",
                MISSING_DECISION,
                "Consider providing permissionDecision (allow/deny/ask) and permissionDecisionReason",
            )
        )

    return ValidationResult(errors=errors, warnings=warnings)


def get_validation_summary(validation: ValidationResult) -> str:
    """One-line summary, handy for logs."""
    parts = []
    if validation.valid:
        parts.append("Validation passed")
    else:
        parts.append(f"Validation failed with {len(validation.errors)} error(s)")
    if validation.warnings:
        parts.append(f"{len(validation.warnings)} warning(s)")
    return ", ".join(parts)


def format_validation_errors(validation: ValidationResult) -> List[str]:
    """Render every issue with its code or suggestion for display."""
    messages = [
        f"Error in {issue.field}: {issue.message} ({issue.code})" for issue in validation.errors
    ]
    for issue in validation.warnings:
        suggestion = f" - {issue.suggestion}" if issue.suggestion else ""
        messages.append(f"Warning in {issue.field}: {issue.message}{suggestion}")
    return messages
