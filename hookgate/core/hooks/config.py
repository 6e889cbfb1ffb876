"""In-memory hook registrations.

Registrations arrive already loaded (the host decides where they come
from). Accepted shape:
{
  "hooks": {
    "EventName": [
      {
        "matcher": "ToolPattern",  // Only for PreToolUse/PostToolUse
        "hooks": [
          {"type": "command", "command": "your-command-here", "timeout": 60}
        ]
      }
    ]
  }
}
The "hooks" wrapper is optional.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from hookgate.core.hooks.events import HookEvent
from hookgate.core.hooks.matcher import PatternMatcher, ToolPredicate
from hookgate.utils.log import get_logger

logger = get_logger()

# Default timeout for hook commands (in seconds)
DEFAULT_HOOK_TIMEOUT = 60

_pattern_matcher = PatternMatcher()


class HookCommand(BaseModel):
    """A single hook process to run."""

    type: Literal["command"] = "command"
    command: str
    timeout: float = DEFAULT_HOOK_TIMEOUT  # Timeout in seconds

    model_config = ConfigDict(frozen=True)


class HookMatcherGroup(BaseModel):
    """Hooks sharing one tool-name pattern.

    An empty matcher selects every tool. Events that carry no tool name
    ignore the matcher altogether.
    """

    matcher: Optional[str] = None
    hooks: List[HookCommand] = Field(default_factory=list)

    _predicate: ToolPredicate = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._predicate = _pattern_matcher.compile(self.matcher or "")

    def applies_to(self, event: HookEvent, tool_name: Optional[str] = None) -> bool:
        if not event.uses_tool_matcher or not self.matcher:
            return True
        return self._predicate(tool_name or "")


class HooksConfig(BaseModel):
    """Hook registrations keyed by event, in registration order."""

    hooks: Dict[HookEvent, List[HookMatcherGroup]] = Field(default_factory=dict)

    def get_hooks_for_event(
        self, event: HookEvent, tool_name: Optional[str] = None
    ) -> List[HookCommand]:
        """All commands that should run for ``event`` and ``tool_name``."""
        result: List[HookCommand] = []
        for group in self.hooks.get(event, []):
            if group.applies_to(event, tool_name):
                result.extend(group.hooks)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HooksConfig":
        """Build registrations, skipping anything malformed with a warning."""
        parsed: Dict[HookEvent, List[HookMatcherGroup]] = {}
        for event_name, groups in _event_mapping(data).items():
            try:
                event = HookEvent(event_name)
            except ValueError:
                logger.warning(f"[hooks.config] Unknown hook event: {event_name}")
                continue

            if not isinstance(groups, list):
                logger.warning(f"[hooks.config] Invalid hooks config for {event_name}: expected list")
                continue

            matcher_groups: List[HookMatcherGroup] = []
            for group_data in groups:
                group = _parse_group(event, group_data)
                if group is not None:
                    matcher_groups.append(group)

            if matcher_groups:
                parsed[event] = matcher_groups

        return cls(hooks=parsed)


def _event_mapping(data: Mapping[str, Any]) -> Mapping[str, Any]:
    wrapped = data.get("hooks") if isinstance(data, Mapping) else None
    if isinstance(wrapped, Mapping):
        return wrapped
    if isinstance(data, Mapping):
        return data
    return {}


def _parse_group(event: HookEvent, group_data: Any) -> Optional[HookMatcherGroup]:
    if not isinstance(group_data, dict):
        logger.warning(f"[hooks.config] Skipping non-object matcher entry for {event.value}")
        return None

    matcher = group_data.get("matcher")
    if matcher is not None and not isinstance(matcher, str):
        logger.warning(
            f"[hooks.config] Skipping matcher entry with non-string pattern for {event.value}",
            extra={"matcher": repr(matcher)},
        )
        return None
    if matcher and event.uses_tool_matcher and not _pattern_matcher.is_valid_pattern(matcher):
        logger.warning(
            f"[hooks.config] Invalid matcher pattern for {event.value} will never match",
            extra={"matcher": matcher},
        )

    hooks_list = group_data.get("hooks", [])
    if not isinstance(hooks_list, list):
        return None

    commands: List[HookCommand] = []
    for hook_data in hooks_list:
        command = _parse_command(hook_data)
        if command is not None:
            commands.append(command)

    if not commands:
        return None
    return HookMatcherGroup(matcher=matcher, hooks=commands)


def _parse_command(hook_data: Any) -> Optional[HookCommand]:
    if not isinstance(hook_data, dict):
        return None
    hook_type = hook_data.get("type", "command")
    if hook_type != "command":
        logger.warning(f"[hooks.config] Unknown hook type: {hook_type}")
        return None
    command = hook_data.get("command")
    if not isinstance(command, str) or not command.strip():
        return None
    timeout = hook_data.get("timeout", DEFAULT_HOOK_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        timeout = DEFAULT_HOOK_TIMEOUT
    return HookCommand(command=command, timeout=timeout)


def validate_hooks_config(data: Mapping[str, Any]) -> List[str]:
    """List problems in raw registrations without building them."""
    problems: List[str] = []
    if not isinstance(data, Mapping):
        return ["Hooks configuration must be an object"]

    for event_name, groups in _event_mapping(data).items():
        try:
            event = HookEvent(event_name)
        except ValueError:
            problems.append(f"Unknown hook event: {event_name}")
            continue

        if not isinstance(groups, list):
            problems.append(f"{event_name}: expected a list of matcher entries")
            continue

        for index, group in enumerate(groups):
            where = f"{event_name}[{index}]"
            if not isinstance(group, dict):
                problems.append(f"{where}: expected an object")
                continue

            matcher = group.get("matcher")
            if matcher is not None and not isinstance(matcher, str):
                problems.append(f"{where}: matcher must be a string")
            elif matcher and event.uses_tool_matcher and not _pattern_matcher.is_valid_pattern(matcher):
                problems.append(f"{where}: invalid matcher pattern '{matcher}'")

            hooks_list = group.get("hooks")
            if not isinstance(hooks_list, list) or not hooks_list:
                problems.append(f"{where}: hooks must be a non-empty list")
                continue
            for hook_index, hook in enumerate(hooks_list):
                if not isinstance(hook, dict):
                    problems.append(f"{where}.hooks[{hook_index}]: expected an object")
                elif hook.get("type", "command") != "command":
                    problems.append(f"{where}.hooks[{hook_index}]: unsupported hook type '{hook.get('type')}'")
                elif not isinstance(hook.get("command"), str) or not hook["command"].strip():
                    problems.append(f"{where}.hooks[{hook_index}]: missing command")

    return problems
