"""Sanitisation helpers for values that end up in logs.

Client installations send free-form strings (build identifiers, serials,
module names). Anything derived from a request must pass through here before
it is written to a log line.
"""

import re
from typing import Any, Mapping, Union

_CONTROL_CHARS = re.compile(r"[\n\r\t\x00-\x1f\x7f-\x9f]")

# Longest value kept when a client string is logged
MAX_LOGGED_VALUE_LENGTH = 256


def sanitize_log_message(msg: Union[str, bytes, int, float, None]) -> str:
    """Remove newlines and control characters from a log message.

    Args:
        msg: Message to sanitize (will be converted to string)

    Returns:
        Sanitized message with control characters removed

    Examples:
        >>> sanitize_log_message("3.3.1\\ninjected")
        '3.3.1injected'
        >>> sanitize_log_message(None)
        ''
    """
    if msg is None:
        return ""

    return _CONTROL_CHARS.sub("", str(msg))


def sanitize_log_context(context: Mapping[str, Any] | None) -> dict[str, str]:
    """Sanitize an error context mapping for logging.

    Keys and values are stringified, stripped of control characters and
    truncated to MAX_LOGGED_VALUE_LENGTH.
    """
    if not context:
        return {}

    sanitized = {}
    for key, value in context.items():
        text = sanitize_log_message(value if isinstance(value, (str, bytes, int, float)) else repr(value))
        if len(text) > MAX_LOGGED_VALUE_LENGTH:
            text = text[:MAX_LOGGED_VALUE_LENGTH] + "..."
        sanitized[sanitize_log_message(key)] = text
    return sanitized


def mask_sensitive(value: Union[str, None], visible_chars: int = 4, mask_char: str = "*") -> str:
    """Mask a secret, leaving only the last few characters visible.

    Args:
        value: Secret to mask (API tokens)
        visible_chars: Number of characters to show at the end (default: 4)
        mask_char: Character used for the hidden part

    Returns:
        Masked value, or an empty string for empty input
    """
    if not value:
        return ""
    if len(value) <= visible_chars:
        return mask_char * len(value)
    return mask_char * (len(value) - visible_chars) + value[-visible_chars:]
