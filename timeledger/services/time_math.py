from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

ACTIVITY_IDLE = "idle"
ACTIVITY_LOW = "low"
ACTIVITY_MEDIUM = "medium"
ACTIVITY_HIGH = "high"

# (upper bound on events per minute, level); anything above the last bound is high.
ACTIVITY_THRESHOLDS = (
    (Decimal(10), ACTIVITY_IDLE),
    (Decimal(50), ACTIVITY_LOW),
    (Decimal(150), ACTIVITY_MEDIUM),
)

SECONDS_PER_HOUR = Decimal(3600)
TWO_PLACES = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    delta = as_utc(end) - as_utc(start)
    # timedelta normalizes microseconds to be non-negative, so this floors
    return delta.days * 86400 + delta.seconds


def classify_activity(keyboard_count: int, mouse_count: int, duration: Optional[int]) -> Optional[str]:
    if not duration or duration <= 0:
        return None

    per_minute = Decimal(int(keyboard_count) + int(mouse_count)) / (Decimal(int(duration)) / Decimal(60))
    for bound, level in ACTIVITY_THRESHOLDS:
        if per_minute < bound:
            return level
    return ACTIVITY_HIGH


def billable_amount(duration: Optional[int], billable: bool, rate: Optional[Decimal]) -> Decimal:
    if not billable or rate is None or not duration:
        return Decimal("0")
    return Decimal(int(duration)) / SECONDS_PER_HOUR * Decimal(rate)


def hours(seconds: int) -> Decimal:
    return Decimal(int(seconds)) / SECONDS_PER_HOUR


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_duration(duration: Optional[int]) -> str:
    if not duration:
        return "00:00:00"

    h, rest = divmod(int(duration), 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
