"""Unit tests for chart view models and Chart.js config rendering."""

from __future__ import annotations

import pytest

from analysis.dto import ChartDataset, ChartSeries
from analysis.errors import RenderFailure
from analysis.resolver import FilterNotice
from core.charting.render import MAX_CHART_CATEGORIES, chart_js_config
from core.charting.schema import DEFAULT_PALETTE, ChartKind, palette_color
from core.charting.view_model import AxisRange, build_view_model

pytestmark = pytest.mark.unit


def test_chart_kind_parse_accepts_builder_values() -> None:
    assert ChartKind.parse("percentStackedBar") is ChartKind.PERCENT_STACKED_BAR
    assert ChartKind.parse("line") is ChartKind.LINE


def test_chart_kind_parse_rejects_unknown_values() -> None:
    with pytest.raises(RenderFailure, match="Unsupported chart type"):
        ChartKind.parse("pie")


def test_axis_range_rejects_inverted_bounds() -> None:
    with pytest.raises(RenderFailure, match="Min value must be less than max value."):
        AxisRange(minimum=10, maximum=10)

    assert AxisRange(minimum=None, maximum=5).maximum == 5


def test_palette_wraps_around() -> None:
    assert palette_color(0) == DEFAULT_PALETTE[0]
    assert palette_color(len(DEFAULT_PALETTE)) == DEFAULT_PALETTE[0]


def test_view_model_uses_explicit_color_before_palette() -> None:
    dataset = ChartDataset(
        categories=("2020",),
        series=(ChartSeries("Area", (1.0,), color="#000000"), ChartSeries("Yield", (2.0,))),
    )

    view_model = build_view_model(dataset, ChartKind.BAR)

    assert [series.color for series in view_model.series] == ["#000000", DEFAULT_PALETTE[1]]


def test_bar_config_has_custom_legend_and_indian_format(make_dataset) -> None:
    view_model = build_view_model(
        make_dataset(["2020", "2021"], Area=[10, None]),
        ChartKind.BAR,
        title="Area by year",
        x_label="Year",
        y_range=AxisRange(minimum=0, maximum=50),
    )

    config = chart_js_config(view_model)

    assert config["type"] == "bar"
    assert config["data"]["labels"] == ["2020", "2021"]
    assert config["data"]["datasets"][0]["data"] == [10, None]
    assert config["options"]["plugins"]["legend"] == {"display": False}
    assert config["options"]["plugins"]["title"] == {"display": True, "text": "Area by year"}
    assert config["options"]["scales"]["x"]["title"]["text"] == "Year"
    assert config["options"]["scales"]["y"]["min"] == 0
    assert config["options"]["scales"]["y"]["max"] == 50
    assert config["meta"]["valueFormat"] == "indian"
    assert config["meta"]["notice"] is None


def test_line_config_keeps_gaps(make_dataset) -> None:
    config = chart_js_config(build_view_model(make_dataset(["a", "b"], S=[1, None]), ChartKind.LINE))

    assert config["type"] == "line"
    assert config["options"]["spanGaps"] is False
    assert config["data"]["datasets"][0]["fill"] is False
    assert config["data"]["datasets"][0]["pointBackgroundColor"] == DEFAULT_PALETTE[0]


def test_stacked_bar_stacks_both_axes(make_dataset) -> None:
    config = chart_js_config(build_view_model(make_dataset(["a"], A=[1], B=[2]), ChartKind.STACKED_BAR))

    assert config["options"]["scales"]["x"]["stacked"] is True
    assert config["options"]["scales"]["y"]["stacked"] is True
    assert "absoluteData" not in config["data"]["datasets"][0]


def test_percent_stacked_config(make_dataset) -> None:
    view_model = build_view_model(
        make_dataset(["2020", "2021"], A=[10, 20], B=[30, 40]),
        ChartKind.PERCENT_STACKED_BAR,
        y_range=AxisRange(minimum=5, maximum=10),
    )

    config = chart_js_config(view_model)
    y_scale = config["options"]["scales"]["y"]
    first, second = config["data"]["datasets"]

    assert y_scale["min"] == 0
    assert y_scale["max"] == 100
    assert y_scale["ticks"]["stepSize"] == 20
    assert first["data"] == pytest.approx([25.0, 33.333], abs=0.01)
    assert first["absoluteData"] == [10, 20]
    assert second["data"] == pytest.approx([75.0, 66.667], abs=0.01)
    assert config["meta"]["valueFormat"] == "percent"
    assert config["meta"]["percentLabelThreshold"] == 5.0


def test_legend_toggle_renormalizes_percent_chart(make_dataset) -> None:
    view_model = build_view_model(make_dataset(["2020"], A=[10], B=[30]), ChartKind.PERCENT_STACKED_BAR)

    hidden_b = build_view_model(view_model.dataset(), ChartKind.PERCENT_STACKED_BAR, visible={0})
    config = chart_js_config(hidden_b)

    assert hidden_b.series[0].values == (100.0,)
    assert hidden_b.series[0].absolute == (10,)
    assert config["data"]["datasets"][1]["hidden"] is True
    shown_again = build_view_model(hidden_b.dataset(), ChartKind.PERCENT_STACKED_BAR, visible={0, 1})
    assert shown_again.series[0].values == view_model.series[0].values


def test_view_model_carries_filter_notice(make_dataset) -> None:
    notice = FilterNotice(value="Z", message='No filter data available for "Z". Showing all values.')

    view_model = build_view_model(
        make_dataset(["2021"], A=[5], B=[6]),
        ChartKind.STACKED_BAR,
        visible={1},
        title="Crops",
        notice=notice,
    )
    config = chart_js_config(view_model)

    assert view_model.visible == frozenset({1})
    assert config["options"]["plugins"]["title"]["text"] == "Crops"
    assert config["meta"]["notice"]["value"] == "Z"
    assert config["meta"]["notice"]["dismissAfterMs"] == 4000


def test_too_many_categories_fail_to_render(make_dataset) -> None:
    count = MAX_CHART_CATEGORIES + 1
    view_model = build_view_model(
        make_dataset([str(i) for i in range(count)], S=[1] * count),
        ChartKind.BAR,
    )

    with pytest.raises(RenderFailure, match="Too many categories"):
        chart_js_config(view_model)
