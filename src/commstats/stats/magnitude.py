"""Magnitude tier resolution from free-form role tags.

A member's canonical tier is the highest ``Magnitude <n>`` tag they hold,
never the number of such tags:

    ["Magnitude 3", "Magnitude 7.0", "Verified"]  ->  7.0
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

MAGNITUDE_PATTERN = re.compile(r"^Magnitude (\d+(?:\.\d)?)$")

# Tier -> theme color. Must match the dashboard palette.
MAGNITUDE_COLORS: dict[int, str] = {
    1: "#F9EC9E",
    2: "#64CCA9",
    3: "#30C82B",
    4: "#79E20A",
    5: "#8BA411",
    6: "#C89A03",
    7: "#955200",
    8: "#C9442E",
    9: "#00ADE0",
}

DEFAULT_THEME_COLOR = "#A6924D"


def parse_magnitude(role: str) -> float | None:
    """Return the numeric value of a single ``Magnitude <n>`` tag, or None."""
    if not isinstance(role, str):
        return None
    match = MAGNITUDE_PATTERN.match(role)
    if match is None:
        return None
    return float(match.group(1))


def resolve_magnitude(roles: Iterable[str] | None) -> float | None:
    """Highest magnitude value among the role tags, or None if none match."""
    if not roles:
        return None

    highest: float | None = None
    for role in roles:
        value = parse_magnitude(role)
        if value is not None and (highest is None or value > highest):
            highest = value
    return highest


def magnitude_tier(value: float) -> int:
    """Integer tier of a magnitude value (4.5 -> 4)."""
    return math.floor(value)


def magnitude_label(value: float) -> str:
    """Canonical role label for a magnitude value, e.g. 7 -> 'Magnitude 7.0'."""
    return f"Magnitude {value:.1f}"


def magnitude_color(value: float) -> str:
    """Theme color for a magnitude value (default color outside 1..9)."""
    return MAGNITUDE_COLORS.get(magnitude_tier(value), DEFAULT_THEME_COLOR)


def magnitude_icon_path(value: float | None) -> str | None:
    """Icon asset path for a magnitude value, None outside 1..9."""
    if value is None:
        return None
    tier = magnitude_tier(value)
    if tier in MAGNITUDE_COLORS:
        return f"/icon_role/mag{tier}.webp"
    return None
