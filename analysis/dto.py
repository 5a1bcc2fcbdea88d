"""DTO types for chart datasets.

DTOs are plain data containers shared by the resolver, aggregator and
normalizer. They intentionally avoid any Django dependencies.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass

from .errors import InconsistentSchema

ChartValue = float | None


@dataclass(frozen=True, slots=True)
class ChartSeries:
    """A single named series aligned to dataset categories.

    Attributes:
        label: Legend label for the series.
        values: One value per category; None means "no data".
        color: Explicit series color, or None to use the default palette.
    """

    label: str
    values: tuple[ChartValue, ...]
    color: str | None = None


@dataclass(frozen=True, slots=True)
class ChartDataset:
    """Categories (x-axis labels) plus the series plotted against them.

    Raises:
        InconsistentSchema: When a series length differs from the category count.
    """

    categories: tuple[str, ...]
    series: tuple[ChartSeries, ...]

    def __post_init__(self) -> None:
        expected = len(self.categories)
        for series in self.series:
            if len(series.values) != expected:
                raise InconsistentSchema(
                    f"Series {series.label!r} has {len(series.values)} values for {expected} categories."
                )

    @property
    def labels(self) -> tuple[str, ...]:
        """Return the series labels in order."""

        return tuple(series.label for series in self.series)


def is_number(value: object) -> bool:
    """Return True for finite real numbers (bools excluded)."""

    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, numbers.Real):
        return False
    return math.isfinite(float(value))


def clean_value(value: object) -> ChartValue:
    """Coerce a raw cell into a chart value, mapping NaN, infinities and non-numerics to None."""

    if is_number(value):
        return float(value)  # type: ignore[arg-type]
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None
