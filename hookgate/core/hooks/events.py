"""Hook event types and data structures.

This module defines the lifecycle events that can trigger hooks, the raw
result a hook process produces, and the normalized output the interpreter
derives from it.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HookEvent(str, Enum):
    """Hook event types that can trigger user-defined hooks."""

    # Tool lifecycle events
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"

    # User interaction events
    USER_PROMPT_SUBMIT = "UserPromptSubmit"

    # Completion events
    STOP = "Stop"

    @property
    def uses_tool_matcher(self) -> bool:
        """Whether hooks for this event are selected by tool name."""
        return self in (HookEvent.PRE_TOOL_USE, HookEvent.POST_TOOL_USE)


class PermissionDecision(str, Enum):
    """Verdicts a PreToolUse hook can return for a single tool call.

    - allow: run the tool (optionally with updatedInput)
    - deny: do not run the tool, the reason becomes the tool result
    - ask: defer to the user before running the tool
    """

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


BLOCK_DECISION = "block"


class HookResult(BaseModel):
    """Raw outcome of one hook process, as reported by the process runner."""

    success: bool = True
    exit_code: int = Field(default=0, alias="exitCode")
    stdout: str = ""
    stderr: str = ""
    duration: int = 0  # milliseconds
    timed_out: bool = Field(default=False, alias="timedOut")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("stdout", "stderr", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("exit_code", "duration", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


# ─────────────────────────────────────────────────────────────────────────────
# Hook Input Types
# ─────────────────────────────────────────────────────────────────────────────


class HookInput(BaseModel):
    """Base class for the event context handed to a hook process."""

    session_id: Optional[str] = None
    cwd: Optional[str] = None
    hook_event_name: str = ""

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> str:
        """Serialize for delivery to the hook (stdin, env, ...)."""
        return self.model_dump_json(exclude_none=True)


class UserPromptSubmitInput(HookInput):
    """Runs when the user submits a prompt, before the model sees it."""

    hook_event_name: str = HookEvent.USER_PROMPT_SUBMIT.value
    user_prompt: str = ""


class PreToolUseInput(HookInput):
    """Runs after the model produced tool parameters, before the tool runs."""

    hook_event_name: str = HookEvent.PRE_TOOL_USE.value
    tool_name: str = ""
    tool_input: Dict[str, Any] = Field(default_factory=dict)


class PostToolUseInput(HookInput):
    """Runs immediately after a tool completes."""

    hook_event_name: str = HookEvent.POST_TOOL_USE.value
    tool_name: str = ""
    tool_input: Dict[str, Any] = Field(default_factory=dict)
    tool_output: Any = None


class StopInput(HookInput):
    """Runs when the agent is about to finish its turn."""

    hook_event_name: str = HookEvent.STOP.value


AnyHookInput = Union[
    UserPromptSubmitInput,
    PreToolUseInput,
    PostToolUseInput,
    StopInput,
]


# ─────────────────────────────────────────────────────────────────────────────
# Hook Output Types
# ─────────────────────────────────────────────────────────────────────────────


class PreToolUseHookOutput(BaseModel):
    """Hook-specific output for PreToolUse."""

    hook_event_name: Optional[str] = Field(default=None, alias="hookEventName")
    permission_decision: Optional[PermissionDecision] = Field(
        default=None, alias="permissionDecision"
    )
    permission_decision_reason: Optional[str] = Field(
        default=None, alias="permissionDecisionReason"
    )
    updated_input: Optional[Dict[str, Any]] = Field(default=None, alias="updatedInput")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class _BlockDecisionOutput(BaseModel):
    hook_event_name: Optional[str] = Field(default=None, alias="hookEventName")
    decision: Optional[Literal["block"]] = None
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_block(self) -> bool:
        return self.decision == BLOCK_DECISION


class PostToolUseHookOutput(_BlockDecisionOutput):
    """Hook-specific output for PostToolUse."""

    additional_context: Optional[str] = Field(default=None, alias="additionalContext")


class UserPromptSubmitHookOutput(_BlockDecisionOutput):
    """Hook-specific output for UserPromptSubmit."""

    additional_context: Optional[str] = Field(default=None, alias="additionalContext")


class StopHookOutput(_BlockDecisionOutput):
    """Hook-specific output for Stop."""


HookSpecificOutput = Union[
    PreToolUseHookOutput,
    PostToolUseHookOutput,
    UserPromptSubmitHookOutput,
    StopHookOutput,
]


# ─────────────────────────────────────────────────────────────────────────────
# Validation & Parsed Output
# ─────────────────────────────────────────────────────────────────────────────


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """A single problem found in a hook's JSON output."""

    field: str
    message: str
    severity: ValidationSeverity = ValidationSeverity.ERROR
    code: str
    suggestion: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_error(self) -> bool:
        return self.severity == ValidationSeverity.ERROR

    def render(self) -> str:
        """Format the issue the way it appears in ``ParsedOutput.error_messages``."""
        if self.is_error:
            return f"{self.field}: {self.message}"
        return f"Warning - {self.field}: {self.message}"


class ValidationResult(BaseModel):
    """Outcome of validating one JSON document against an event's schema."""

    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> List[ValidationIssue]:
        return [*self.errors, *self.warnings]


OutputSource = Literal["json", "exitcode"]


class ParsedOutput(BaseModel):
    """Normalized interpretation of one hook's result.

    ``source`` tells whether the hook spoke JSON or was judged by its exit
    code. The raw exit code and streams are kept so the coordinator can
    word user-visible messages without going back to the raw result.
    """

    source: OutputSource
    continue_execution: bool = Field(default=True, alias="continue")
    stop_reason: Optional[str] = Field(default=None, alias="stopReason")
    system_message: Optional[str] = Field(default=None, alias="systemMessage")
    hook_specific_data: Optional[HookSpecificOutput] = Field(
        default=None, alias="hookSpecificData"
    )
    error_messages: List[str] = Field(default_factory=list, alias="errorMessages")
    issues: List[ValidationIssue] = Field(default_factory=list)

    exit_code: int = Field(default=0, alias="exitCode")
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = Field(default=False, alias="timedOut")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def has_errors(self) -> bool:
        """True when JSON validation produced at least one error."""
        return any(issue.is_error for issue in self.issues)

    @property
    def error_issues(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_error]
