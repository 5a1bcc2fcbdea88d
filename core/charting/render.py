"""Generic rendering of ChartViewModels into Chart.js configurations.

The output is plain JSON. Behaviour that Chart.js expresses as callbacks
(tick/tooltip formatting, the percent data-label threshold) is described in a
`meta` block which the browser turns into callbacks.
"""

from __future__ import annotations

from typing import Any

from analysis.errors import RenderFailure

from .schema import KIND_OPTIONS, PERCENT_LABEL_THRESHOLD, KindOptions
from .view_model import ChartViewModel, SeriesView

MAX_CHART_CATEGORIES = 2000


def chart_js_config(view_model: ChartViewModel) -> dict[str, Any]:
    """Render a view model into a Chart.js configuration dictionary.

    Args:
        view_model: The frame to draw.

    Returns:
        A JSON-serializable Chart.js config with `type`, `data`, `options` and `meta`.

    Raises:
        RenderFailure: When the kind is unknown or the chart is too large to draw.
    """

    options = KIND_OPTIONS.get(view_model.kind)
    if options is None:
        raise RenderFailure(f"Unsupported chart type: {view_model.kind!r}.")
    if len(view_model.categories) > MAX_CHART_CATEGORIES:
        raise RenderFailure(
            f"Too many categories to render safely (>{MAX_CHART_CATEGORIES}). Narrow the row range or filters."
        )

    notice = view_model.notice
    return {
        "type": options.chart_js_type,
        "data": {
            "labels": list(view_model.categories),
            "datasets": [_dataset(series, options) for series in view_model.series],
        },
        "options": _chart_options(view_model, options),
        "meta": {
            "kind": view_model.kind.value,
            "valueFormat": options.value_format,
            "percentLabelThreshold": PERCENT_LABEL_THRESHOLD if options.percent else None,
            "notice": (
                None
                if notice is None
                else {
                    "value": notice.value,
                    "message": notice.message,
                    "level": notice.level,
                    "dismissAfterMs": notice.dismiss_after_ms,
                }
            ),
        },
    }


def _dataset(series: SeriesView, options: KindOptions) -> dict[str, Any]:
    """Build a Chart.js dataset dict for one series."""

    dataset: dict[str, Any] = {
        "label": series.label,
        "data": list(series.values),
        "backgroundColor": series.color,
        "borderColor": series.color,
        "hidden": series.hidden,
        **options.dataset_style,
    }
    if options.chart_js_type == "line":
        dataset["pointBackgroundColor"] = series.color
    if options.percent:
        dataset["absoluteData"] = list(series.absolute)
    return dataset


def _chart_options(view_model: ChartViewModel, options: KindOptions) -> dict[str, Any]:
    """Build the Chart.js `options` block."""

    y_scale: dict[str, Any] = {
        "stacked": options.stacked,
        "beginAtZero": True,
        "grid": {"color": "rgba(0,0,0,0.06)"},
        "title": {"display": bool(view_model.y_label), "text": view_model.y_label},
        "ticks": {"maxTicksLimit": 7, "color": "#333"},
    }
    if options.percent:
        y_scale["min"] = 0
        y_scale["max"] = 100
        y_scale["ticks"]["stepSize"] = 20
    else:
        if view_model.y_range.minimum is not None:
            y_scale["min"] = view_model.y_range.minimum
        if view_model.y_range.maximum is not None:
            y_scale["max"] = view_model.y_range.maximum

    chart_options: dict[str, Any] = {
        "responsive": True,
        "maintainAspectRatio": False,
        "animation": {"duration": 750, "easing": "easeInOutQuart"},
        "plugins": {
            "legend": {"display": False},
            "title": {"display": bool(view_model.title), "text": view_model.title},
            "tooltip": {"animation": {"duration": 50, "easing": "easeOutQuart"}},
            "datalabels": (
                {
                    "color": "white",
                    "font": {"weight": "bold", "size": 11},
                    "anchor": "center",
                    "align": "center",
                }
                if options.percent
                else {"display": False}
            ),
        },
        "scales": {
            "x": {
                "stacked": options.stacked,
                "grid": {"display": False},
                "title": {"display": bool(view_model.x_label), "text": view_model.x_label},
            },
            "y": y_scale,
        },
    }
    if options.chart_js_type == "line":
        chart_options["spanGaps"] = False
    return chart_options
