"""Standalone HTML, CSV and share-text exports for charts."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from django.contrib.staticfiles import finders
from django.template.loader import render_to_string
from django.utils.text import slugify

from analysis.errors import RenderFailure
from analysis.filter_index import FilterIndex

from .codec import encode_filter_index
from .render import chart_js_config
from .view_model import ChartViewModel

CLIENT_SCRIPT = "core/chart_filters.js"
SHARE_FOOTER = "Generated with ChartFlask Analytics Tool"
UNTITLED_CHART = "Untitled Chart"


@dataclass(frozen=True, slots=True)
class ExportFilterState:
    """Filter state embedded in an exported page."""

    chart_title: str = ""
    main_filter_column: str = ""
    main_filter_value: str = ""
    filter_column: str = ""
    selected_filter_value: str = ""
    filter_column2: str = ""
    selected_filter_value2: str = ""
    chart_type: str = "bar"

    def as_json(self) -> dict[str, str]:
        """Return the `chart-filter-data` payload read by the exported page."""

        return {
            "chartTitle": self.chart_title,
            "mainFilterColumn": self.main_filter_column,
            "mainFilterValue": self.main_filter_value,
            "filterColumn": self.filter_column,
            "selectedFilterValue": self.selected_filter_value,
            "filterColumn2": self.filter_column2,
            "selectedFilterValue2": self.selected_filter_value2,
            "chartType": self.chart_type,
        }


def render_chart_html(
    view_model: ChartViewModel,
    index: FilterIndex,
    filter_state: ExportFilterState,
    *,
    filter_values: list[str] | None = None,
    filter_values2: list[str] | None = None,
    description: str = "",
    additional_info: str = "",
    share: str = "",
) -> str:
    """Render a self-contained HTML page for a chart.

    The page embeds the Chart.js config, the encoded filter index and the
    client-side resolver, so its filter dropdowns work offline.

    Args:
        view_model: Chart frame to show initially.
        index: Pre-computed filter index.
        filter_state: Columns and selections to restore on load.
        filter_values: Options for the first filter dropdown.
        filter_values2: Options for the second filter dropdown.
        description: Optional source text, rendered as "Source: ...".
        additional_info: Optional free text shown under the chart.
        share: Text copied by the page's share button.

    Returns:
        The HTML document.

    Raises:
        RenderFailure: When the chart cannot be rendered or the client script is missing.
    """

    context: dict[str, Any] = {
        "title": filter_state.chart_title or view_model.title or UNTITLED_CHART,
        "description": description.strip(),
        "additional_info": additional_info.strip(),
        "share_text": share,
        "chart_config": chart_js_config(view_model),
        "filter_index": encode_filter_index(index),
        "filter_data": filter_state.as_json(),
        "filter_values": list(filter_values or index.primary_values()),
        "filter_values2": list(filter_values2 or index.secondary.keys()),
        "client_script": _client_script(),
    }
    return render_to_string("core/chart_export.html", context)


def export_filename(title: str, extension: str) -> str:
    """Return a download filename derived from a chart title."""

    stem = slugify(title) or "chart"
    return f"{stem}.{extension}"


def chart_csv(view_model: ChartViewModel) -> str:
    """Render the displayed chart values as CSV.

    Args:
        view_model: Chart frame to export.

    Returns:
        CSV text with a `Label,<series...>` header and one row per category.
        Missing values are empty cells.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Label", *[series.label for series in view_model.series]])
    for idx, category in enumerate(view_model.categories):
        row: list[str] = [category]
        for series in view_model.series:
            value = series.values[idx]
            row.append("" if value is None else _csv_number(value))
        writer.writerow(row)
    return buffer.getvalue()


def share_text(title: str, description: str = "", additional_info: str = "") -> str:
    """Build the text used when sharing a chart.

    Blank parts are omitted and the title defaults to "Untitled Chart".
    """

    parts = [f"Chart: {title.strip() or UNTITLED_CHART}"]
    parts.extend(part.strip() for part in (description, additional_info) if part.strip())
    parts.append(SHARE_FOOTER)
    return "\n\n".join(parts)


def _csv_number(value: float) -> str:
    """Format a number for CSV output without a trailing `.0`."""

    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@lru_cache(maxsize=1)
def _client_script() -> str:
    """Return the client-side filter script inlined into exported pages."""

    path = finders.find(CLIENT_SCRIPT)
    if not path:
        raise RenderFailure(f"Client script {CLIENT_SCRIPT!r} is not available.")
    with open(path, encoding="utf-8") as handle:
        return handle.read()
