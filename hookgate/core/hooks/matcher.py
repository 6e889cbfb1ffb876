"""Tool-name pattern matching for hook selection.

A pattern is one of:
- an exact tool name ("Edit"), compared case-insensitively
- a glob ("Edit*", "mcp__*__write", "[BW]ash") evaluated with fnmatch
- pipe-separated alternatives ("Edit|Write|Delete"), each matched on its own

Patterns wrapped in slashes ("/Edit.*/") are classified as "regex" but are
matched like any other glob; no regular expression is ever compiled from
user input.
"""

import fnmatch
import re
from enum import Enum
from typing import Callable, Iterable, List

from hookgate.utils.log import get_logger

logger = get_logger()

# Shell metacharacters that have no place in a tool-name pattern.
# "[" and "]" stay allowed for glob character classes.
DANGEROUS_PATTERN_CHARS = frozenset(";&|`$(){}><")

_GLOB_CHARS = ("*", "?", "[")

ToolPredicate = Callable[[str], bool]


class PatternType(str, Enum):
    EXACT = "exact"
    GLOB = "glob"
    REGEX = "regex"
    ALTERNATIVES = "alternatives"


def _glob_match(tool_name: str, pattern: str) -> bool:
    """Case-insensitive glob match that fails closed on malformed patterns.

    A leading "!" is an ordinary character here, so it can never invert
    the result.
    """
    try:
        return fnmatch.fnmatchcase(tool_name.lower(), pattern.lower())
    except (re.error, ValueError) as exc:
        logger.debug(
            "[hooks.matcher] Malformed glob treated as no match",
            extra={"pattern": pattern, "error": str(exc)},
        )
        return False


def _split_alternatives(pattern: str) -> List[str]:
    return [alt.strip() for alt in pattern.split("|")]


class PatternMatcher:
    """Matches hook patterns against tool names."""

    def matches(self, pattern: str, tool_name: str) -> bool:
        """Test whether ``pattern`` selects ``tool_name``."""
        if not pattern or not tool_name:
            return False

        if "|" in pattern:
            return any(self._matches_single(alt, tool_name) for alt in _split_alternatives(pattern))

        return self._matches_single(pattern, tool_name)

    def _matches_single(self, pattern: str, tool_name: str) -> bool:
        if pattern.lower() == tool_name.lower():
            return True
        if not pattern:
            return False
        return _glob_match(tool_name, pattern)

    def is_valid_pattern(self, pattern: str) -> bool:
        """Check that a pattern is non-empty and free of shell metacharacters."""
        if not isinstance(pattern, str) or not pattern.strip():
            return False

        if "|" in pattern:
            alternatives = _split_alternatives(pattern)
            return bool(alternatives) and all(
                alt and self._is_valid_single(alt) for alt in alternatives
            )

        return self._is_valid_single(pattern)

    def _is_valid_single(self, pattern: str) -> bool:
        if not pattern.strip():
            return False
        if any(char in DANGEROUS_PATTERN_CHARS for char in pattern):
            return False
        try:
            re.compile(fnmatch.translate(pattern))
        except re.error:
            return False
        return True

    def get_pattern_type(self, pattern: str) -> PatternType:
        """Classify a pattern. Classification only; see the module docstring."""
        if not pattern:
            return PatternType.EXACT
        if "|" in pattern:
            return PatternType.ALTERNATIVES
        if pattern.startswith("/") and pattern.endswith("/") and len(pattern) > 2:
            return PatternType.REGEX
        if any(char in pattern for char in _GLOB_CHARS):
            return PatternType.GLOB
        return PatternType.EXACT

    def get_matches(self, pattern: str, tool_names: Iterable[str]) -> List[str]:
        """Return the tool names selected by ``pattern``, preserving order."""
        predicate = self.compile(pattern)
        return [name for name in tool_names if predicate(name)]

    def compile(self, pattern: str) -> ToolPredicate:
        """Build a reusable predicate for ``pattern``.

        Invalid patterns compile to a predicate that never matches.
        """
        if not self.is_valid_pattern(pattern):
            logger.debug("[hooks.matcher] Invalid pattern never matches", extra={"pattern": pattern})
            return lambda tool_name: False

        pattern_type = self.get_pattern_type(pattern)

        if pattern_type == PatternType.EXACT:
            lower_pattern = pattern.lower()

            def match_exact(tool_name: str) -> bool:
                return bool(tool_name) and tool_name.lower() == lower_pattern

            return match_exact

        if pattern_type == PatternType.ALTERNATIVES:
            alternatives = [alt.lower() for alt in _split_alternatives(pattern)]

            def match_any(tool_name: str) -> bool:
                if not tool_name:
                    return False
                lower_tool = tool_name.lower()
                return any(
                    lower_tool == alt or _glob_match(lower_tool, alt) for alt in alternatives
                )

            return match_any

        if pattern_type == PatternType.GLOB:

            def match_glob(tool_name: str) -> bool:
                if not tool_name:
                    return False
                return tool_name.lower() == pattern.lower() or _glob_match(tool_name, pattern)

            return match_glob

        return lambda tool_name: self.matches(pattern, tool_name)
