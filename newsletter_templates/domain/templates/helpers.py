"""Handlebars helpers available to every render.

Helpers are assembled into a fresh mapping for each render call and handed to
the compiled template, so renders never share mutable helper state.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Optional

Helper = Callable[..., Any]

POSITIVE_COLOR = "#28a745"
NEGATIVE_COLOR = "#dc3545"


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def format_number(this: Any, value: Any = None, digits: Any = 2) -> str:
    number = _to_float(value)
    if number is None:
        return "0"
    try:
        places = int(digits)
    except (TypeError, ValueError):
        places = 2
    return f"{number:.{places}f}"


def format_time_to_open(this: Any, seconds: Any = None) -> str:
    number = _to_float(seconds)
    if not number:
        return "0h 0m"
    total = int(number)
    hours, remainder = divmod(total, 3600)
    return f"{hours}h {remainder // 60}m"


def eq(this: Any, left: Any = None, right: Any = None) -> bool:
    return left == right


def gte(this: Any, left: Any = None, right: Any = None) -> bool:
    a, b = _to_float(left), _to_float(right)
    if a is None or b is None:
        return False
    return a >= b


def color_for_delta(this: Any, delta: Any = None) -> str:
    number = _to_float(delta)
    return POSITIVE_COLOR if number is None or number >= 0 else NEGATIVE_COLOR


DEFAULT_HELPERS: Mapping[str, Helper] = {
    "formatNumber": format_number,
    "formatTimeToOpen": format_time_to_open,
    "eq": eq,
    "gte": gte,
    "colorForDelta": color_for_delta,
}

HELPER_NAMES = frozenset(DEFAULT_HELPERS)


def build_helpers(extra: Optional[Mapping[str, Helper]] = None) -> dict[str, Helper]:
    helpers = dict(DEFAULT_HELPERS)
    if extra:
        helpers.update(extra)
    return helpers
