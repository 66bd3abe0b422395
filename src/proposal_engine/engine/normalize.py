"""
Normalization pass applied where raw proposal data enters the engine.

Every default the engine relies on lives here: missing numbers become 0,
percentages are clamped, mindfulness classes are snapped to a priced length.
Downstream code (calculator, aggregator) assumes fully-populated input.
"""
import math
from typing import Any, Optional

from ..config.settings import get_settings

UNLIMITED = 'unlimited'

MINDFULNESS_KINDS = frozenset({
    'mindfulness',
    'mindfulness-soles',
    'mindfulness-movement',
    'mindfulness-pro',
    'mindfulness-cle',
    'mindfulness-pro-reactivity',
})


def is_mindfulness(service_type: Optional[str]) -> bool:
    """True for every mindfulness sub-type."""
    return str(service_type or '').strip().lower() in MINDFULNESS_KINDS


def to_number(value: Any) -> int | float:
    """Coerce a raw field to a number; anything unusable becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return value
    if isinstance(value, str):
        text = value.strip().replace(',', '').lstrip('$').rstrip('%')
        if not text:
            return 0
        try:
            parsed = float(text)
        except ValueError:
            return 0
        if not math.isfinite(parsed):
            return 0
        return int(parsed) if parsed.is_integer() and '.' not in text else parsed
    return 0


def non_negative(value: Any) -> int | float:
    number = to_number(value)
    return number if number > 0 else 0


def clamp_percent(value: Any) -> int | float:
    """Clamp a percentage into [0, 100]."""
    number = to_number(value)
    if number < 0:
        return 0
    if number > 100:
        return 100
    return number


def to_appointments(value: Any) -> int | str:
    """Appointment counts are whole numbers or the 'unlimited' marker."""
    if isinstance(value, str) and value.strip().lower() == UNLIMITED:
        return UNLIMITED
    number = to_number(value)
    return int(number) if number > 0 else 0


def snap_class_length(value: Any) -> int:
    """Snap a class length to one of the priced lengths (default 45)."""
    settings = get_settings()
    length = to_number(value)
    if length in settings.mindfulness_prices:
        return int(length)
    return settings.default_class_length


def fixed_price_for(class_length: Any) -> float:
    """Mindfulness price is a pure function of the class length."""
    settings = get_settings()
    return settings.mindfulness_prices[snap_class_length(class_length)]


def to_participants(value: Any) -> int | str:
    if value is None or (isinstance(value, str) and value.strip().lower() in ('', UNLIMITED)):
        return UNLIMITED
    number = to_number(value)
    return int(number) if number > 0 else 0


def normalize_date_key(value: Any) -> str:
    """Date keys are strings; blanks become the unscheduled sentinel."""
    text = str(value).strip() if value is not None else ''
    return text or get_settings().unscheduled_key
