"""Immutable chart view models.

A `ChartViewModel` captures everything the renderer needs for one frame of a
chart. It is rebuilt from a dataset on every filter change or legend toggle
instead of mutating a live chart in place.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from analysis.dto import ChartDataset, ChartSeries, ChartValue
from analysis.errors import RenderFailure
from analysis.percentages import normalize_percentages
from analysis.resolver import FilterNotice

from .schema import KIND_OPTIONS, ChartKind, palette_color


@dataclass(frozen=True, slots=True)
class AxisRange:
    """Optional fixed bounds for the value axis.

    Raises:
        RenderFailure: When both bounds are set and `minimum >= maximum`.
    """

    minimum: float | None = None
    maximum: float | None = None

    def __post_init__(self) -> None:
        if self.minimum is not None and self.maximum is not None and self.minimum >= self.maximum:
            raise RenderFailure("Min value must be less than max value.")


@dataclass(frozen=True, slots=True)
class SeriesView:
    """One series as displayed.

    Attributes:
        label: Legend label.
        color: Resolved color (explicit or palette).
        values: Displayed values; percentages for percent-stacked charts.
        absolute: Source values before any normalization.
        hidden: Whether the custom legend has this series unchecked.
    """

    label: str
    color: str
    values: tuple[ChartValue, ...]
    absolute: tuple[ChartValue, ...]
    hidden: bool = False


@dataclass(frozen=True, slots=True)
class ChartViewModel:
    """Everything needed to draw one chart frame."""

    kind: ChartKind
    categories: tuple[str, ...]
    series: tuple[SeriesView, ...]
    title: str = ""
    x_label: str = ""
    y_label: str = ""
    y_range: AxisRange = AxisRange()
    notice: FilterNotice | None = None

    @property
    def visible(self) -> frozenset[int]:
        """Indexes of series currently shown."""

        return frozenset(idx for idx, series in enumerate(self.series) if not series.hidden)

    def dataset(self) -> ChartDataset:
        """Return the absolute dataset behind this view model."""

        return ChartDataset(
            categories=self.categories,
            series=tuple(
                ChartSeries(label=series.label, values=series.absolute, color=series.color) for series in self.series
            ),
        )


def build_view_model(
    dataset: ChartDataset,
    kind: ChartKind,
    *,
    visible: Iterable[int] | None = None,
    title: str = "",
    x_label: str = "",
    y_label: str = "",
    y_range: AxisRange | None = None,
    notice: FilterNotice | None = None,
) -> ChartViewModel:
    """Build a view model for a dataset.

    Args:
        dataset: Absolute values to display.
        kind: Chart kind.
        visible: Indexes of visible series; None shows every series.
        title: Chart title.
        x_label: X axis title.
        y_label: Y axis title.
        y_range: Optional fixed value-axis bounds (ignored for percent charts).
        notice: Optional filter notice to display with this frame.

    Returns:
        A new ChartViewModel. For percent-stacked charts, displayed values are
        re-normalized over the visible series only.
    """

    count = len(dataset.series)
    shown = frozenset(range(count)) if visible is None else frozenset(i for i in visible if 0 <= i < count)
    options = KIND_OPTIONS[kind]

    if options.percent:
        displayed: tuple[tuple[ChartValue, ...], ...] = normalize_percentages(dataset, shown).percentages
    else:
        displayed = tuple(series.values for series in dataset.series)

    series_views = tuple(
        SeriesView(
            label=series.label,
            color=series.color or palette_color(idx),
            values=displayed[idx],
            absolute=series.values,
            hidden=idx not in shown,
        )
        for idx, series in enumerate(dataset.series)
    )
    return ChartViewModel(
        kind=kind,
        categories=dataset.categories,
        series=series_views,
        title=title,
        x_label=x_label,
        y_label=y_label,
        y_range=y_range or AxisRange(),
        notice=notice,
    )
