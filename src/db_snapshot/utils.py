"""Small helpers shared by the snapshot and backup modules.

Timestamps are kept as epoch milliseconds in memory and written to backup
documents as ISO-8601 UTC strings.  Row strings stored in backup documents
escape backslashes and non-printable characters so they survive an XML
round trip unchanged.
"""

import re
import time
from datetime import datetime, timezone

# Sentinel for "snapshot not taken yet" / "content not persisted yet"
NOT_TAKEN = -1

_ESCAPE_PATTERN = re.compile(r"\\(\\|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8})")


def current_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def timestamp_to_string(timestamp: int) -> str:
    """Format epoch milliseconds for a backup document.

    Example:
        >>> timestamp_to_string(0)
        '1970-01-01T00:00:00.000+00:00'
    """
    moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds")


def string_to_timestamp(value: str) -> int:
    """Parse a backup document timestamp back into epoch milliseconds.

    Raises:
        ValueError: If *value* is not an ISO-8601 timestamp.
    """
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return round(moment.timestamp() * 1000)


def escape_text(text: str) -> str:
    """Escape backslashes and non-printable characters as ``\\uXXXX``."""
    escaped: list[str] = []
    for char in text:
        if char == "\\":
            escaped.append("\\\\")
        elif char.isprintable():
            escaped.append(char)
        elif ord(char) > 0xFFFF:
            escaped.append(f"\\U{ord(char):08x}")
        else:
            escaped.append(f"\\u{ord(char):04x}")
    return "".join(escaped)


def unescape_text(text: str) -> str:
    """Reverse ``escape_text``."""

    def _replace(match: re.Match) -> str:
        token = match.group(1)
        if token == "\\":
            return "\\"
        return chr(int(token[1:], 16))

    return _ESCAPE_PATTERN.sub(_replace, text)
