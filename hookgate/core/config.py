"""Engine settings for hookgate.

Settings are plain pydantic models. ``load_engine_settings`` reads overrides
from the environment:

- HOOKGATE_SYSTEM_MESSAGE_MAX_LENGTH: length above which a hook's
  systemMessage draws a warning (default 1000)
- HOOKGATE_BLOCK_ON_TIMEOUT: treat timed-out hooks as blocking (default off)
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from hookgate.utils.coerce import parse_boolish, parse_optional_int
from hookgate.utils.log import get_logger


logger = get_logger()

SYSTEM_MESSAGE_MAX_LENGTH_ENV = "HOOKGATE_SYSTEM_MESSAGE_MAX_LENGTH"
BLOCK_ON_TIMEOUT_ENV = "HOOKGATE_BLOCK_ON_TIMEOUT"

DEFAULT_SYSTEM_MESSAGE_MAX_LENGTH = 1000


class EngineSettings(BaseModel):
    """Tunables shared by the output interpreter and the coordinator."""

    system_message_max_length: int = Field(default=DEFAULT_SYSTEM_MESSAGE_MAX_LENGTH, ge=1)
    block_on_timeout: bool = False

    model_config = ConfigDict(frozen=True)


def load_engine_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Build settings from environment variables, ignoring unusable values."""
    env = os.environ if environ is None else environ
    overrides = {}

    raw_length = env.get(SYSTEM_MESSAGE_MAX_LENGTH_ENV)
    if raw_length is not None:
        length = parse_optional_int(raw_length)
        if length is None or length < 1:
            logger.warning(
                f"Ignoring invalid {SYSTEM_MESSAGE_MAX_LENGTH_ENV}",
                extra={"value": raw_length},
            )
        else:
            overrides["system_message_max_length"] = length

    raw_block = env.get(BLOCK_ON_TIMEOUT_ENV)
    if raw_block is not None:
        overrides["block_on_timeout"] = parse_boolish(raw_block, default=False)

    settings = EngineSettings(**overrides)
    logger.debug("[config] Engine settings loaded", extra=settings.model_dump())
    return settings
