"""JSON helper utilities for hookgate."""

from __future__ import annotations

import json
from typing import Any, Optional

from hookgate.utils.log import get_logger


logger = get_logger()


def try_parse_json(json_text: Optional[str], log_error: bool = True) -> tuple[bool, Any]:
    """Parse JSON text, returning ``(parsed_ok, value)`` instead of raising.

    The flag keeps a document that is literally ``null`` apart from a
    parse failure.
    """
    if not json_text:
        return False, None
    try:
        return True, json.loads(json_text)
    except (json.JSONDecodeError, TypeError, ValueError, RecursionError) as exc:
        if log_error:
            logger.debug(
                "[json_utils] Failed to parse JSON: %s: %s",
                type(exc).__name__,
                exc,
                extra={"length": len(json_text)},
            )
        return False, None
