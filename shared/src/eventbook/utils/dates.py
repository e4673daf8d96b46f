"""Calendar-date normalization.

Event dates are plain calendar days. Inputs that carry a time or a UTC
offset are reduced to the calendar date as written, never shifted through
a time zone conversion, so "2025-06-15T23:30:00-05:00" and
"2025-06-15T00:00:00Z" both mean 2025-06-15.
"""

import re
from datetime import date, datetime

from eventbook.models.errors import ValidationError

_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:$|[T ])")


def normalize_event_date(value: str | date | datetime) -> date:
    """Normalize an event date to a time-zone-free calendar date.

    Args:
        value: "YYYY-MM-DD", an ISO-8601 datetime string with any offset
            suffix, or a date/datetime instance.

    Returns:
        The calendar date.

    Raises:
        ValidationError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(
            f"Invalid event date: {value!r}", details={"field": "event_date"}
        )

    text = value.strip()
    match = _DATE_PREFIX.match(text)
    if not match:
        raise ValidationError(
            f"Invalid event date: {value!r}", details={"field": "event_date"}
        )

    if len(text) > 10:
        # Reject garbage after the date part such as "2025-06-15Tnonsense"
        try:
            datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(
                f"Invalid event date: {value!r}", details={"field": "event_date"}
            ) from e

    try:
        return date.fromisoformat(match.group(1))
    except ValueError as e:
        raise ValidationError(
            f"Invalid event date: {value!r}", details={"field": "event_date"}
        ) from e

