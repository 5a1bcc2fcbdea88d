"""Views for the spreadsheet chart builder.

All endpoints except `index` and `upload` accept a JSON body and answer with
a JSON object carrying `success`; failures add an `error` message.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import render
from django.views.decorators.http import require_GET, require_POST

from analysis.errors import DataSourceFailure, RenderFailure
from analysis.resolver import ResolverContext, resolve_filter
from core.charting.codec import encode_dataset
from core.charting.export import ExportFilterState, chart_csv, export_filename, render_chart_html, share_text
from core.charting.render import chart_js_config
from core.charting.schema import ChartKind
from core.charting.view_model import build_view_model
from core.forms import ApplyFilterForm, ChartForm, ExportForm, FilterDataForm, SheetForm
from core.spreadsheets import (
    ChartSource,
    SpreadsheetNotFound,
    list_sheets,
    load_sheet,
    save_upload,
    select_rows,
    sheet_records,
    unique_values_by_column,
)

logger = logging.getLogger(__name__)


@require_GET
def index(request: HttpRequest) -> HttpResponse:
    """Render the upload and chart builder page."""

    context = {
        "chart_kinds": [
            (ChartKind.BAR.value, "Bar"),
            (ChartKind.LINE.value, "Line"),
            (ChartKind.STACKED_BAR.value, "Stacked Bar"),
            (ChartKind.PERCENT_STACKED_BAR.value, "100% Stacked Bar"),
        ],
        "max_upload_mb": settings.CHARTFLASK_MAX_UPLOAD_MB,
    }
    return render(request, "core/index.html", context)


@require_POST
def upload(request: HttpRequest) -> JsonResponse:
    """Store an uploaded spreadsheet and list its sheets."""

    upload_file = request.FILES.get("excelFile")
    if upload_file is None or not upload_file.name:
        return _error("No file selected.")
    max_bytes = int(settings.CHARTFLASK_MAX_UPLOAD_MB) * 1024 * 1024
    if upload_file.size is not None and upload_file.size > max_bytes:
        return _error(f"File is larger than {settings.CHARTFLASK_MAX_UPLOAD_MB} MB.", status=413)

    try:
        filename = save_upload(upload_file)
        sheets = list_sheets(filename)
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    return JsonResponse({"success": True, "filename": filename, "sheets": sheets})


@require_POST
def get_sheet_data(request: HttpRequest) -> JsonResponse:
    """Return the columns and rows of one sheet."""

    form = _bind(request, SheetForm)
    if isinstance(form, JsonResponse):
        return form
    try:
        frame = load_sheet(form.cleaned_data["filename"], form.cleaned_data.get("sheet") or "")
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    return JsonResponse(
        {
            "success": True,
            "columns": [str(column) for column in frame.columns],
            "data": sheet_records(frame),
            "rowCount": len(frame.index),
        }
    )


@require_POST
def filter_data(request: HttpRequest) -> JsonResponse:
    """Apply the row window and sheet-level filter; return rows and per-column values."""

    form = _bind(request, FilterDataForm)
    if isinstance(form, JsonResponse):
        return form
    try:
        frame = select_rows(form.sheet_query())
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    return JsonResponse({"success": True, "data": sheet_records(frame), "uniqueValues": unique_values_by_column(frame)})


@require_POST
def generate_chart(request: HttpRequest) -> JsonResponse:
    """Build the unfiltered chart and the options for its filter dropdowns."""

    form = _bind(request, ChartForm)
    if isinstance(form, JsonResponse):
        return form
    try:
        source = ChartSource(form.chart_query())
        dataset = source.original()
        view_model = build_view_model(dataset, form.cleaned_data["chartType"], **form.view_options())
        config = chart_js_config(view_model)
        filter_values, filter_values2 = source.filter_values(), source.filter_values2()
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    except RenderFailure as exc:
        return _render_error(exc)
    return JsonResponse(
        {
            "success": True,
            "chartData": encode_dataset(dataset),
            "chartConfig": config,
            "chartFilterValues": filter_values,
            "chartFilterValues2": filter_values2,
        }
    )


@require_POST
def apply_chart_filter(request: HttpRequest) -> JsonResponse:
    """Resolve the chart filter dropdowns and return the chart to display."""

    form = _bind(request, ApplyFilterForm)
    if isinstance(form, JsonResponse):
        return form
    selection = form.selection()
    try:
        source = ChartSource(form.chart_query())
        resolution = source.resolve(selection)
        view_model = build_view_model(
            resolution.dataset,
            form.cleaned_data["chartType"],
            visible=form.cleaned_data.get("visibleSeries"),
            notice=resolution.notice,
            **form.view_options(),
        )
        config = chart_js_config(view_model)
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    except RenderFailure as exc:
        return _render_error(exc)

    if resolution.notice is not None:
        logger.debug("Chart filter miss: %s", resolution.notice.message)
    payload: dict[str, Any] = {
        "success": True,
        "chartData": encode_dataset(resolution.dataset),
        "chartConfig": config,
        "source": resolution.source,
    }
    if source.hierarchy is not None and selection.primary is not None:
        payload["hierarchyInfo"] = source.hierarchy.as_json(selection.primary)
    return JsonResponse(payload)


@require_POST
def export_chart_html(request: HttpRequest) -> HttpResponse:
    """Download the chart as a standalone HTML page with working filters."""

    form = _bind(request, ExportForm)
    if isinstance(form, JsonResponse):
        return form
    data = form.cleaned_data
    query = form.chart_query()
    selection = form.selection()
    try:
        source = ChartSource(query)
        index = source.full_index(max_fetches=int(settings.CHARTFLASK_MAX_PREFETCH))
        main = query.sheet.filter_value if source.hierarchy is not None else None
        resolution = resolve_filter(index, selection, ResolverContext(main_filter_value=main))
        view_model = build_view_model(
            resolution.dataset,
            data["chartType"],
            visible=data.get("visibleSeries"),
            **form.view_options(),
        )
        filter_state = ExportFilterState(
            chart_title=form.export_title(),
            main_filter_column=query.sheet.filter_column,
            main_filter_value=query.sheet.filter_value,
            filter_column=query.chart_filter_column,
            selected_filter_value=selection.primary or "",
            filter_column2=query.chart_filter_column2,
            selected_filter_value2=selection.secondary or "",
            chart_type=data["chartType"].value,
        )
        html = render_chart_html(
            view_model,
            index,
            filter_state,
            filter_values=source.filter_values(),
            filter_values2=source.filter_values2(),
            description=data.get("description") or "",
            additional_info=data.get("additionalInfo") or "",
            share=share_text(form.export_title(), data.get("description") or "", data.get("additionalInfo") or ""),
        )
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    except RenderFailure as exc:
        return _render_error(exc)

    logger.info("Exported chart %r with %s filter entries.", form.export_title(), len(index.entries))
    response = HttpResponse(html, content_type="text/html; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{export_filename(form.export_title(), "html")}"'
    return response


@require_POST
def export_chart_csv(request: HttpRequest) -> HttpResponse:
    """Download the currently displayed chart values as CSV."""

    form = _bind(request, ExportForm)
    if isinstance(form, JsonResponse):
        return form
    try:
        source = ChartSource(form.chart_query())
        resolution = source.resolve(form.selection())
        view_model = build_view_model(
            resolution.dataset,
            form.cleaned_data["chartType"],
            visible=form.cleaned_data.get("visibleSeries"),
            **form.view_options(),
        )
    except DataSourceFailure as exc:
        return _data_source_error(exc)
    except RenderFailure as exc:
        return _render_error(exc)

    response = HttpResponse(chart_csv(view_model), content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{export_filename(form.export_title(), "csv")}"'
    return response


def _bind(request: HttpRequest, form_class: type[SheetForm]) -> Any:
    """Decode a JSON body and bind it to a form.

    Returns:
        The valid form, or a 400 JsonResponse describing the first problem.
    """

    try:
        payload = json.loads(request.body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _error("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object.")

    form = form_class(data=payload)
    if not form.is_valid():
        return _error(_first_error(form))
    return form


def _first_error(form: SheetForm) -> str:
    """Return the first validation message of a form."""

    for field, errors in form.errors.items():
        message = errors[0]
        return message if field == "__all__" else f"{field}: {message}"
    return "Invalid request."


def _error(message: str, *, status: int = 400) -> JsonResponse:
    """Return a failed JSON response."""

    return JsonResponse({"success": False, "error": message}, status=status)


def _data_source_error(exc: DataSourceFailure) -> JsonResponse:
    """Log and report a data source failure."""

    logger.warning("Data source failure: %s", exc)
    return _error(str(exc), status=404 if isinstance(exc, SpreadsheetNotFound) else 400)


def _render_error(exc: RenderFailure) -> JsonResponse:
    """Log and report a render failure."""

    logger.warning("Render failure: %s", exc)
    return _error(str(exc))
