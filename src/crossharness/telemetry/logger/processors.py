# src/crossharness/telemetry/logger/processors.py

"""
structlog processors shared by every crossharness renderer.
"""

import logging
from typing import Any

from structlog.typing import EventDict, WrappedLogger

# Keys bound for correlation only; noisy on the console.
EXTRA_KEYS = ("emoji_key",)


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji picked by `emoji_key` or the log level."""
    from crossharness.telemetry.logger.base import LOG_EMOJIS

    emoji_key: Any = event_dict.get("emoji_key")
    if emoji_key is None:
        level_name = str(event_dict.get("level", method_name)).upper()
        emoji_key = logging.getLevelName(level_name)
    emoji = LOG_EMOJIS.get(emoji_key, LOG_EMOJIS["general"])
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in EXTRA_KEYS:
        event_dict.pop(key, None)
    return event_dict

# 🔼⚙️
