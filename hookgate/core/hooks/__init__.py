"""Hook output interpretation and policy enforcement.

Hook events:
- UserPromptSubmit: When user submits a prompt (can block)
- PreToolUse: Before a tool is called (can allow/deny/ask)
- PostToolUse: After a tool completes (can flag the result)
- Stop: When the agent stops responding (can block to continue)

Flow: a process runner produces one ``HookResult`` per hook, the
``OutputInterpreter`` turns each into a ``ParsedOutput``, and the
``ExecutionCoordinator`` folds them into one ``EventOutcome``.
"""

from hookgate.core.hooks.events import (
    HookEvent,
    HookResult,
    HookInput,
    UserPromptSubmitInput,
    PreToolUseInput,
    PostToolUseInput,
    StopInput,
    PermissionDecision,
    PreToolUseHookOutput,
    PostToolUseHookOutput,
    UserPromptSubmitHookOutput,
    StopHookOutput,
    ValidationIssue,
    ValidationResult,
    ParsedOutput,
)
from hookgate.core.hooks.matcher import PatternMatcher, PatternType
from hookgate.core.hooks.validation import validate_json_output, get_validation_summary
from hookgate.core.hooks.parser import (
    OutputInterpreter,
    ParseDiagnostics,
    extract_json_from_output,
    has_valid_json_output,
    parse_hook_output,
)
from hookgate.core.hooks.coordinator import (
    EventOutcome,
    ExecutionCoordinator,
    MutationKind,
    ToolGate,
    TranscriptMutation,
)
from hookgate.core.hooks.config import (
    HookCommand,
    HookMatcherGroup,
    HooksConfig,
    validate_hooks_config,
)
from hookgate.core.hooks.integration import (
    AgentSession,
    HookDispatcher,
    HookRunner,
    Transcript,
    TranscriptMessage,
)

__all__ = [
    # Events
    "HookEvent",
    "HookResult",
    "HookInput",
    "UserPromptSubmitInput",
    "PreToolUseInput",
    "PostToolUseInput",
    "StopInput",
    # Hook-specific outputs
    "PermissionDecision",
    "PreToolUseHookOutput",
    "PostToolUseHookOutput",
    "UserPromptSubmitHookOutput",
    "StopHookOutput",
    # Matching
    "PatternMatcher",
    "PatternType",
    # Interpretation
    "ValidationIssue",
    "ValidationResult",
    "ParsedOutput",
    "validate_json_output",
    "get_validation_summary",
    "OutputInterpreter",
    "ParseDiagnostics",
    "extract_json_from_output",
    "has_valid_json_output",
    "parse_hook_output",
    # Coordination
    "EventOutcome",
    "ExecutionCoordinator",
    "MutationKind",
    "ToolGate",
    "TranscriptMutation",
    # Config
    "HookCommand",
    "HookMatcherGroup",
    "HooksConfig",
    "validate_hooks_config",
    # Integration
    "AgentSession",
    "HookDispatcher",
    "HookRunner",
    "Transcript",
    "TranscriptMessage",
]
