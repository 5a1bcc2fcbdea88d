"""Percent-stacked normalization.

Each category's visible segments are rescaled to sum to 100. The absolute
dataset is kept alongside the percentages so that toggling series visibility
always re-normalizes from the source values, never from earlier percentages.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .dto import ChartDataset, is_number


@dataclass(frozen=True, slots=True)
class PercentStackedData:
    """Percentages for a stacked chart plus the values they came from.

    Attributes:
        absolute: The pre-normalization dataset.
        percentages: One tuple per series, aligned to categories, in [0, 100].
        visible: Indexes of the series included in the totals.
    """

    absolute: ChartDataset
    percentages: tuple[tuple[float, ...], ...]
    visible: frozenset[int]

    def category_total(self, category_index: int) -> float:
        """Return the sum of percentages for a category (100 or 0)."""

        return sum(series[category_index] for series in self.percentages)


def normalize_percentages(dataset: ChartDataset, visible: Iterable[int] | None = None) -> PercentStackedData:
    """Convert absolute values into percent-of-category-total.

    Args:
        dataset: Absolute values to normalize.
        visible: Indexes of series shown in the legend. None means all series.

    Returns:
        PercentStackedData with hidden series forced to 0 and excluded from totals.
    """

    if visible is None:
        shown = frozenset(range(len(dataset.series)))
    else:
        shown = frozenset(idx for idx in visible if 0 <= idx < len(dataset.series))

    totals: list[float] = []
    for category_idx in range(len(dataset.categories)):
        total = 0.0
        for series_idx in sorted(shown):
            value = dataset.series[series_idx].values[category_idx]
            if is_number(value):
                total += abs(float(value))  # type: ignore[arg-type]
        totals.append(total)

    percentages: list[tuple[float, ...]] = []
    for series_idx, series in enumerate(dataset.series):
        row: list[float] = []
        for category_idx, value in enumerate(series.values):
            total = totals[category_idx]
            if series_idx not in shown or total <= 0 or not is_number(value):
                row.append(0.0)
                continue
            row.append(abs(float(value)) / total * 100)  # type: ignore[arg-type]
        percentages.append(tuple(row))

    return PercentStackedData(absolute=dataset, percentages=tuple(percentages), visible=shown)


def with_visibility(data: PercentStackedData, visible: Iterable[int]) -> PercentStackedData:
    """Re-normalize for a new set of visible series."""

    return normalize_percentages(data.absolute, visible)


def toggle_series(data: PercentStackedData, index: int) -> PercentStackedData:
    """Flip one series' visibility and re-normalize from the absolute values.

    Args:
        data: Current percent-stacked data.
        index: Series index toggled in the legend.

    Returns:
        New PercentStackedData; toggling the same index twice restores the
        original percentages exactly.
    """

    visible = set(data.visible)
    if index in visible:
        visible.remove(index)
    else:
        visible.add(index)
    return with_visibility(data, visible)
