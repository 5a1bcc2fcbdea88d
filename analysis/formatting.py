"""Number formatting for chart tooltips, ticks and exports.

Values use the Indian numbering system: the last three integer digits form one
group and every two digits before them form another (1234567 -> 12,34,567).
The compact form abbreviates to crores (Cr), lakhs (L) and thousands (K).
"""

from __future__ import annotations

from .dto import is_number

_COMPACT_STEPS: tuple[tuple[int, str], ...] = (
    (10_000_000, "Cr"),
    (100_000, "L"),
    (1_000, "K"),
)


def format_indian_number(value: object) -> str:
    """Format a number with Indian digit grouping.

    Args:
        value: Number to format. None and NaN format as an empty string.

    Returns:
        Grouped string with at most two decimals, e.g. `1234567` -> `"12,34,567"`
        and `-1500.456` -> `"-1,500.46"`.
    """

    if not is_number(value):
        return ""
    number = float(value)  # type: ignore[arg-type]
    negative = number < 0
    number = abs(number)
    integer, _, fraction = _plain(number).partition(".")
    text = integer
    if len(integer) > 3:
        last_three = integer[-3:]
        remaining = integer[:-3]
        groups: list[str] = []
        while len(remaining) > 2:
            groups.insert(0, remaining[-2:])
            remaining = remaining[:-2]
        if remaining:
            groups.insert(0, remaining)
        text = ",".join([*groups, last_three])
    if fraction:
        text = f"{text}.{fraction}"
    return f"-{text}" if negative and text != "0" else text


def format_indian_compact(value: object) -> str:
    """Format a number with an Indian magnitude suffix.

    Args:
        value: Number to format. None and NaN format as an empty string.

    Returns:
        One-decimal abbreviation with a trailing ".0" trimmed: `150000` -> `"1.5L"`,
        `20000000` -> `"2Cr"`, values below 1000 keep two decimals (`999.456` -> `"999.46"`).
    """

    if not is_number(value):
        return ""
    number = float(value)  # type: ignore[arg-type]
    negative = number < 0
    number = abs(number)
    text = _plain(number)
    for threshold, suffix in _COMPACT_STEPS:
        if number >= threshold:
            scaled = f"{number / threshold:.1f}"
            if scaled.endswith(".0"):
                scaled = scaled[:-2]
            text = f"{scaled}{suffix}"
            break
    return f"-{text}" if negative and text != "0" else text


def format_percentage(value: object) -> str:
    """Format a percentage with one decimal, e.g. `33.333` -> `"33.3%"`."""

    if not is_number(value):
        return ""
    return f"{float(value):.1f}%"  # type: ignore[arg-type]


def _plain(number: float) -> str:
    """Render a non-negative float with at most two decimals, trailing zeros trimmed."""

    return f"{number:.2f}".rstrip("0").rstrip(".")
