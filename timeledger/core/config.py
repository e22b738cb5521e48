import os
from decimal import Decimal, InvalidOperation


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_decimal(name: str, default: str) -> Decimal:
    v = os.getenv(name)
    if v is None or v == "":
        return Decimal(default)
    try:
        return Decimal(v)
    except InvalidOperation:
        return Decimal(default)


def env_name() -> str:
    return os.getenv("ENV", "dev").lower()


def overtime_threshold_hours() -> int:
    return _env_int("OVERTIME_THRESHOLD_HOURS", 40)


def overtime_multiplier() -> Decimal:
    return _env_decimal("OVERTIME_MULTIPLIER", "1.5")


def default_currency() -> str:
    return os.getenv("DEFAULT_CURRENCY", "USD").upper()
