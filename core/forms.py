"""Forms validating the JSON payloads sent by the chart builder.

Field names match the camelCase keys the browser sends, so a decoded JSON
body can be bound directly: `ChartForm(data=payload)`.
"""

from __future__ import annotations

from typing import Any

from django import forms

from analysis.errors import RenderFailure
from analysis.resolver import FilterSelection
from core.charting.schema import ChartKind
from core.charting.view_model import AxisRange
from core.spreadsheets import ChartQuery, SheetQuery, YAxis


class SheetForm(forms.Form):
    """Identify a sheet of an uploaded spreadsheet."""

    filename = forms.CharField(max_length=255)
    sheet = forms.CharField(max_length=255, required=False)


class FilterDataForm(SheetForm):
    """Row window and sheet-level filter."""

    startRow = forms.IntegerField(required=False, min_value=1)
    endRow = forms.IntegerField(required=False, min_value=1)
    filterColumn = forms.CharField(required=False, strip=False)
    filterValue = forms.CharField(required=False, strip=False)

    def clean(self) -> dict[str, Any]:
        """Reject an inverted row window."""

        cleaned = super().clean()
        start, end = cleaned.get("startRow"), cleaned.get("endRow")
        if start is not None and end is not None and start > end:
            raise forms.ValidationError("Start row cannot be greater than end row.")
        return cleaned

    def sheet_query(self) -> SheetQuery:
        """Return the validated SheetQuery."""

        data = self.cleaned_data
        return SheetQuery(
            filename=data["filename"],
            sheet=data.get("sheet") or "",
            start_row=data.get("startRow"),
            end_row=data.get("endRow"),
            filter_column=data.get("filterColumn") or "",
            filter_value=data.get("filterValue") or "",
        )


class ChartForm(FilterDataForm):
    """Axes, chart type and presentation options for a chart."""

    xAxis = forms.CharField()
    yAxes = forms.JSONField(required=False)
    chartType = forms.CharField(required=False)
    chartFilterColumn = forms.CharField(required=False, strip=False)
    chartFilterColumn2 = forms.CharField(required=False, strip=False)
    parentColumn = forms.CharField(required=False, strip=False)
    title = forms.CharField(required=False, max_length=200)
    xAxisLabel = forms.CharField(required=False, max_length=200)
    yAxisLabel = forms.CharField(required=False, max_length=200)
    yMin = forms.FloatField(required=False)
    yMax = forms.FloatField(required=False)

    def clean_yAxes(self) -> tuple[YAxis, ...]:
        """Validate the list of `{column, color}` objects."""

        raw = self.cleaned_data.get("yAxes")
        if not isinstance(raw, list) or not raw:
            raise forms.ValidationError("Please select both X and Y axes.")
        axes: list[YAxis] = []
        for item in raw:
            if isinstance(item, str):
                item = {"column": item}
            if not isinstance(item, dict) or not str(item.get("column") or "").strip():
                raise forms.ValidationError("Each Y axis needs a column.")
            color = item.get("color")
            axes.append(YAxis(column=str(item["column"]), color=str(color) if color else None))
        return tuple(axes)

    def clean_chartType(self) -> ChartKind:
        """Parse the chart type, defaulting to a bar chart."""

        raw = self.cleaned_data.get("chartType") or ChartKind.BAR.value
        try:
            return ChartKind.parse(raw)
        except RenderFailure as exc:
            raise forms.ValidationError(str(exc)) from exc

    def clean(self) -> dict[str, Any]:
        """Validate the y-axis range."""

        cleaned = super().clean()
        try:
            cleaned["y_range"] = AxisRange(minimum=cleaned.get("yMin"), maximum=cleaned.get("yMax"))
        except RenderFailure as exc:
            raise forms.ValidationError(str(exc)) from exc
        return cleaned

    def chart_query(self) -> ChartQuery:
        """Return the validated ChartQuery."""

        data = self.cleaned_data
        return ChartQuery(
            sheet=self.sheet_query(),
            x_axis=data["xAxis"],
            y_axes=data["yAxes"],
            chart_filter_column=data.get("chartFilterColumn") or "",
            chart_filter_column2=data.get("chartFilterColumn2") or "",
            parent_column=data.get("parentColumn") or "",
        )

    def view_options(self) -> dict[str, Any]:
        """Return keyword arguments for `build_view_model`."""

        data = self.cleaned_data
        return {
            "title": data.get("title") or "",
            "x_label": data.get("xAxisLabel") or "",
            "y_label": data.get("yAxisLabel") or "",
            "y_range": data.get("y_range"),
        }


class ApplyFilterForm(ChartForm):
    """A chart plus the values chosen in its filter dropdowns."""

    chartFilterValue = forms.CharField(required=False, strip=False)
    chartFilterValue2 = forms.CharField(required=False, strip=False)
    visibleSeries = forms.JSONField(required=False)

    def clean_visibleSeries(self) -> list[int] | None:
        """Validate the indexes of series left checked in the legend."""

        raw = self.cleaned_data.get("visibleSeries")
        if raw is None:
            # JSONField reads an empty list as "not given"; every series may be hidden.
            return [] if self.data.get("visibleSeries") == [] else None
        if not isinstance(raw, list) or not all(isinstance(item, int) and not isinstance(item, bool) for item in raw):
            raise forms.ValidationError("visibleSeries must be a list of series indexes.")
        return raw

    def selection(self) -> FilterSelection:
        """Return the chart filter selection."""

        data = self.cleaned_data
        return FilterSelection(
            primary=data.get("chartFilterValue") or None,
            secondary=data.get("chartFilterValue2") or None,
        )


class ExportForm(ApplyFilterForm):
    """Chart export request with its annotation text."""

    chartTitle = forms.CharField(required=False, max_length=200)
    description = forms.CharField(required=False, max_length=2000)
    additionalInfo = forms.CharField(required=False, max_length=5000)

    def export_title(self) -> str:
        """Return the title used for the exported page and filename."""

        data = self.cleaned_data
        return data.get("chartTitle") or data.get("title") or ""
