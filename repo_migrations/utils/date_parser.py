"""Timestamp parsing for remote API records."""

import re
from datetime import datetime, timezone

# Fractional seconds beyond microseconds, e.g. Azure DevOps' 7-digit ticks
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def parse_api_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 timestamp returned by a REST API.

    Supports:
    - UTC designator: 2019-11-28T08:42:44Z
    - Offsets: 2019-11-28T08:42:44+01:00
    - Fractions of any precision: 2019-11-28T08:42:44.5753333Z

    Naive values are taken to be UTC. Datetimes pass through unchanged
    apart from that.

    Args:
        value: Timestamp string, datetime, or None

    Returns:
        Timezone-aware datetime, or None for empty input

    Raises:
        ValueError: If the string is not an ISO 8601 timestamp
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION_PATTERN.sub(r"\1", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Unable to parse timestamp '{value}'") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
