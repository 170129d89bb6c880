"""
Parsing helpers for Sleeper API responses and season snapshots.

Field resolution goes through small ordered rule tables: each rule is a
(name, getter) pair and the first getter producing a usable value wins. This
keeps precedence auditable and lets every table be tested on its own.
"""

import math
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple


Rule = Tuple[str, Callable[..., Any]]


def safe_get(d: Any, *keys, default: Any = None) -> Any:
    """
    Nested getter tolerant of missing keys, wrong types and short lists.

    Args:
        d: The data structure to traverse (dict, list, or nested combination)
        *keys: Sequence of dict keys / list indices to follow
        default: Value to return if the path cannot be followed

    Returns:
        The value at the specified path, or default if not found
    """
    for key in keys:
        if isinstance(d, dict):
            if key not in d:
                return default
            d = d[key]
        elif isinstance(d, list) and isinstance(key, int):
            if not -len(d) <= key < len(d):
                return default
            d = d[key]
        else:
            return default
    return default if d is None else d


def is_numeric(value: Any) -> bool:
    """True when value coerces to a finite number (None and "" do not)."""
    if value is None or value == "" or isinstance(value, (list, dict)):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def safe_num(value: Any) -> float:
    """Coerce value to a finite float; anything non-numeric becomes 0.0."""
    return float(value) if is_numeric(value) else 0.0


def sum_numeric(values: Iterable[Any]) -> float:
    """Sum a sequence, counting non-numeric items as zero."""
    return sum((safe_num(v) for v in values), 0.0)


def first_present(obj: Any, *keys: str) -> Any:
    """Return obj[key] for the first key holding something other than None/""."""
    if not isinstance(obj, dict):
        return None
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return None


def resolve(rules: Sequence[Rule], *args: Any) -> Tuple[Optional[str], Any]:
    """
    Evaluate rules in order and return (rule_name, value) for the first hit.

    A rule misses when its getter returns None or "". Returns (None, None)
    when every rule misses.
    """
    for name, getter in rules:
        value = getter(*args)
        if value is not None and value != "":
            return name, value
    return None, None


def as_id(value: Any) -> Optional[str]:
    """Normalize an identifier to str, keeping None for missing values."""
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)
