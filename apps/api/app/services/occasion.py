"""Occasion evaluation: is a user due for content right now?

Pure functions over a preference record and an injected instant. The
scheduled pass calls these every few minutes; nothing here reads the
clock or touches storage.
"""

import logging
from datetime import UTC, date, datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Minutes either side of the delivery time that still count as "now"
DELIVERY_WINDOW_MINUTES = 5


class DeliverySchedule(Protocol):
    """The preference fields the evaluator reads."""

    auto_generate: bool
    delivery_time: str | None
    timezone: str | None


def parse_delivery_time(value: str) -> time:
    """Parse a local wall-clock time in ``HH:MM`` or ``HH:MM:SS`` form.

    Raises:
        ValueError: If the value is not a valid 24-hour time.
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"Invalid delivery time {value!r}; expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    # time() rejects out-of-range components
    return time(hour, minute, second)


def load_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name.

    Raises:
        ValueError: If the zone is unknown or the name is malformed.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone {name!r}") from exc


def _as_aware(now: datetime) -> datetime:
    return now if now.tzinfo is not None else now.replace(tzinfo=UTC)


def local_occasion_date(record: DeliverySchedule, now: datetime) -> date | None:
    """Return the user's local calendar date for ``now``.

    ``None`` when the record has no usable timezone.
    """
    if not record.timezone:
        return None
    try:
        zone = load_zone(record.timezone)
    except ValueError:
        return None
    return _as_aware(now).astimezone(zone).date()


def is_due(
    record: DeliverySchedule,
    now: datetime,
    window_minutes: int = DELIVERY_WINDOW_MINUTES,
) -> bool:
    """Decide whether ``now`` falls in the record's delivery window.

    Due when the local hour equals the target hour and the local minute is
    strictly less than ``window_minutes`` away from the target minute. The
    window does not cross an hour boundary. Missing or unparsable schedule
    fields, and ``auto_generate=False``, all yield ``False``.
    """
    if not record.auto_generate:
        return False
    if not record.delivery_time or not record.timezone:
        return False

    try:
        target = parse_delivery_time(record.delivery_time)
        zone = load_zone(record.timezone)
    except ValueError as exc:
        logger.warning("Unusable delivery schedule: %s", exc)
        return False

    local_now = _as_aware(now).astimezone(zone)
    return local_now.hour == target.hour and abs(local_now.minute - target.minute) < window_minutes
