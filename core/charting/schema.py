"""Schema types for chart kinds.

Bar, line, stacked bar and percent-stacked bar charts share one renderer; a
`ChartKind` selects the `KindOptions` that make them differ.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from analysis.errors import RenderFailure

ValueFormat = Literal["indian", "percent"]

DEFAULT_PALETTE: tuple[str, ...] = (
    "#1a4570",
    "#ee8939",
    "#f5b843",
    "#8b3834",
    "#e0ba3f",
    "#e6e770",
    "#4d83c5",
    "#d3a037",
    "#779c51",
    "#b2d571",
)

PERCENT_LABEL_THRESHOLD = 5.0


class ChartKind(str, Enum):
    """Chart types offered by the chart builder."""

    BAR = "bar"
    LINE = "line"
    STACKED_BAR = "stackedBar"
    PERCENT_STACKED_BAR = "percentStackedBar"

    @classmethod
    def parse(cls, raw: object) -> ChartKind:
        """Parse a chart type string sent by the browser.

        Raises:
            RenderFailure: When the value is not a supported chart type.
        """

        try:
            return cls(str(raw))
        except ValueError as exc:
            raise RenderFailure(f"Unsupported chart type: {raw!r}.") from exc


@dataclass(frozen=True, slots=True)
class KindOptions:
    """Per-kind rendering options.

    Args:
        chart_js_type: Chart.js `type` value.
        stacked: Whether both axes stack datasets.
        percent: Whether values are normalized to percent-of-category.
        value_format: Formatter the browser attaches to ticks and tooltips.
        dataset_style: Static Chart.js dataset properties applied to every series.
    """

    chart_js_type: str
    stacked: bool = False
    percent: bool = False
    value_format: ValueFormat = "indian"
    dataset_style: dict[str, Any] = field(default_factory=dict)


KIND_OPTIONS: dict[ChartKind, KindOptions] = {
    ChartKind.BAR: KindOptions(
        chart_js_type="bar",
        dataset_style={"borderWidth": 1, "barPercentage": 0.8, "categoryPercentage": 0.8},
    ),
    ChartKind.LINE: KindOptions(
        chart_js_type="line",
        dataset_style={
            "fill": False,
            "tension": 0,
            "borderWidth": 1,
            "pointRadius": 0,
            "pointHoverRadius": 3,
            "spanGaps": False,
        },
    ),
    ChartKind.STACKED_BAR: KindOptions(
        chart_js_type="bar",
        stacked=True,
        dataset_style={"borderWidth": 1, "barPercentage": 0.8, "categoryPercentage": 0.8},
    ),
    ChartKind.PERCENT_STACKED_BAR: KindOptions(
        chart_js_type="bar",
        stacked=True,
        percent=True,
        value_format="percent",
        dataset_style={"borderWidth": 1, "barPercentage": 0.9, "categoryPercentage": 0.8},
    ),
}


def palette_color(index: int) -> str:
    """Return the default palette color for a series index."""

    return DEFAULT_PALETTE[index % len(DEFAULT_PALETTE)]
