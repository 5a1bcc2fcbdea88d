"""Spreadsheet data source backed by pandas.

Uploaded workbooks (or CSV files) live in `CHARTFLASK_UPLOAD_DIR`. Every
request re-reads the sheet it needs; nothing else is persisted.

Row numbers follow the spreadsheet convention used by the UI: row 1 is the
header, so the first data row is row 2.
"""

from __future__ import annotations

import json
import logging
import math
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import cached_property
from pathlib import Path
from typing import Any

import pandas as pd
from django.conf import settings
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import UploadedFile
from django.utils.text import get_valid_filename
from openpyxl.utils.exceptions import InvalidFileException

from analysis.dto import ChartDataset, ChartSeries, clean_value
from analysis.errors import DataSourceFailure, FilterNotFound
from analysis.filter_index import FilterIndex
from analysis.resolver import FilterSelection, Resolution, ResolverContext, resolve_filter
from core.charting.index_builder import build_filter_index

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".xlsx", ".xlsm", ".xls", ".csv"})
CSV_SHEET_NAME = "Sheet1"
FIRST_DATA_ROW = 2

_READ_ERRORS = (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException)


class SpreadsheetNotFound(DataSourceFailure):
    """Raised when a stored spreadsheet does not exist."""


@dataclass(frozen=True, slots=True)
class YAxis:
    """One plotted column and its optional explicit color."""

    column: str
    color: str | None = None


@dataclass(frozen=True, slots=True)
class SheetQuery:
    """Rows of a sheet narrowed by a row window and the sheet-level filter."""

    filename: str
    sheet: str
    start_row: int | None = None
    end_row: int | None = None
    filter_column: str = ""
    filter_value: str = ""


@dataclass(frozen=True, slots=True)
class ChartQuery:
    """Everything needed to compute chart datasets from a sheet.

    Attributes:
        sheet: Sheet rows to read.
        x_axis: Column whose values become categories.
        y_axes: Plotted columns.
        chart_filter_column: Column filtered by the first chart dropdown.
        chart_filter_column2: Column filtered by the second chart dropdown.
        parent_column: Column treated as the hierarchy parent of
            `chart_filter_column`; defaults to the sheet-level filter column.
    """

    sheet: SheetQuery
    x_axis: str
    y_axes: tuple[YAxis, ...]
    chart_filter_column: str = ""
    chart_filter_column2: str = ""
    parent_column: str = ""

    @property
    def hierarchy_parent_column(self) -> str:
        """Return the column used as hierarchy parent, if any."""

        return self.parent_column or self.sheet.filter_column


@dataclass(frozen=True, slots=True)
class HierarchyInfo:
    """Parent/child relation between two filter columns."""

    parent_column: str
    child_column: str
    parents: dict[str, list[str]] = field(default_factory=dict)

    def parent_values(self, child: str | None) -> list[str]:
        """Return the parents of a child value (empty when unknown)."""

        if child is None:
            return []
        return list(self.parents.get(child, []))

    def children_of(self, parent: str) -> list[str]:
        """Return the child values that belong to a parent, in first-appearance order."""

        return [child for child, found in self.parents.items() if found and found[0] == parent]

    def as_json(self, child: str | None) -> dict[str, Any]:
        """Return the `hierarchyInfo` payload for a selected child value."""

        return {
            "parentColumn": self.parent_column,
            "childColumn": self.child_column,
            "parentValues": self.parent_values(child),
            "childValue": child or "",
        }


def upload_storage() -> FileSystemStorage:
    """Return the storage holding uploaded spreadsheets."""

    return FileSystemStorage(location=str(settings.CHARTFLASK_UPLOAD_DIR))


def save_upload(upload: UploadedFile) -> str:
    """Store an uploaded spreadsheet and return its stored filename.

    Raises:
        DataSourceFailure: When the file type is not supported.
    """

    name = get_valid_filename(Path(upload.name or "").name)
    if Path(name).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise DataSourceFailure("Unsupported file type. Upload an .xlsx, .xlsm, .xls or .csv file.")
    stored = upload_storage().save(name, upload)
    logger.info("Stored upload %s (%s bytes).", stored, upload.size)
    return stored


def spreadsheet_path(filename: str) -> Path:
    """Resolve a stored filename to a path inside the upload directory.

    Raises:
        DataSourceFailure: When the name is unsafe.
        SpreadsheetNotFound: When the file does not exist.
    """

    if not filename or Path(filename).name != filename:
        raise DataSourceFailure("Invalid file name.")
    path = Path(upload_storage().path(filename))
    if not path.is_file():
        raise SpreadsheetNotFound(f"File not found: {filename}")
    return path


def list_sheets(filename: str) -> list[str]:
    """Return the sheet names of a stored spreadsheet.

    Raises:
        DataSourceFailure: When the file cannot be read.
    """

    path = spreadsheet_path(filename)
    if path.suffix.lower() == ".csv":
        return [CSV_SHEET_NAME]
    try:
        with pd.ExcelFile(path, engine=_excel_engine(path)) as book:
            return [str(name) for name in book.sheet_names]
    except _READ_ERRORS as exc:
        raise DataSourceFailure(f"Could not read {filename}: {exc}") from exc


def load_sheet(filename: str, sheet: str) -> pd.DataFrame:
    """Read one sheet into a DataFrame with stripped string column names.

    Raises:
        DataSourceFailure: When the file or sheet cannot be read.
    """

    path = spreadsheet_path(filename)
    try:
        if path.suffix.lower() == ".csv":
            frame = pd.read_csv(path)
        else:
            frame = pd.read_excel(path, sheet_name=sheet or 0, engine=_excel_engine(path))
    except _READ_ERRORS as exc:
        raise DataSourceFailure(f"Could not read sheet {sheet!r} of {filename}: {exc}") from exc
    frame.columns = pd.Index([str(column).strip() for column in frame.columns])
    return frame


def select_rows(query: SheetQuery) -> pd.DataFrame:
    """Load a sheet and apply the row window and the sheet-level filter."""

    frame = window_rows(load_sheet(query.filename, query.sheet), query.start_row, query.end_row)
    return filter_rows(frame, query.filter_column, query.filter_value)


def window_rows(frame: pd.DataFrame, start_row: int | None, end_row: int | None) -> pd.DataFrame:
    """Keep spreadsheet rows `start_row..end_row` (inclusive, 1-based, header is row 1)."""

    start = max(start_row or FIRST_DATA_ROW, FIRST_DATA_ROW)
    stop = None if end_row is None else end_row - FIRST_DATA_ROW + 1
    return frame.iloc[start - FIRST_DATA_ROW : stop]


def filter_rows(frame: pd.DataFrame, column: str, value: str | None) -> pd.DataFrame:
    """Keep rows whose `column` displays as `value`; blank column or value keeps all rows.

    Raises:
        DataSourceFailure: When the column does not exist.
    """

    if not column or value is None or not str(value).strip():
        return frame
    _require_columns(frame, [column])
    return frame[frame[column].map(cell_label) == str(value)]


def sheet_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    """Return rows as JSON-safe dicts (NaN becomes None, dates become ISO strings)."""

    return json.loads(frame.to_json(orient="records", date_format="iso"))


def unique_values(frame: pd.DataFrame, column: str) -> list[str]:
    """Return the distinct display values of a column in first-appearance order."""

    _require_columns(frame, [column])
    seen: dict[str, None] = {}
    for value in frame[column]:
        label = cell_label(value)
        if label is not None:
            seen.setdefault(label, None)
    return list(seen)


def unique_values_by_column(frame: pd.DataFrame) -> dict[str, list[str]]:
    """Return `unique_values` for every column."""

    return {str(column): unique_values(frame, str(column)) for column in frame.columns}


def build_dataset(
    frame: pd.DataFrame,
    x_axis: str,
    y_axes: Sequence[YAxis],
    *,
    categories: Sequence[str] | None = None,
) -> ChartDataset:
    """Group rows by the x-axis column and sum each y column per group.

    Groups keep first-appearance order. A group with no numeric cell for a
    column yields None for that series. When `categories` is given the result
    is aligned to it, with None for categories the rows do not cover.

    Raises:
        DataSourceFailure: When a column does not exist or no y column is given.
    """

    if not y_axes:
        raise DataSourceFailure("Select at least one Y axis column.")
    _require_columns(frame, [x_axis, *(axis.column for axis in y_axes)])

    values = pd.DataFrame(
        {f"y{idx}": frame[axis.column].map(clean_value).astype(float) for idx, axis in enumerate(y_axes)},
        index=frame.index,
    )
    values["x"] = frame[x_axis].map(cell_label)
    grouped = values.groupby("x", sort=False, dropna=True).sum(min_count=1)
    if categories is not None:
        grouped = grouped.reindex(pd.Index(list(categories), dtype=object))

    series = tuple(
        ChartSeries(
            label=axis.column,
            values=tuple(_optional_float(value) for value in grouped[f"y{idx}"]),
            color=axis.color or None,
        )
        for idx, axis in enumerate(y_axes)
    )
    return ChartDataset(categories=tuple(str(label) for label in grouped.index), series=series)


def detect_hierarchy(frame: pd.DataFrame, parent_column: str, child_column: str) -> HierarchyInfo | None:
    """Detect a parent/child relation between two columns.

    The relation holds when every child value appears under exactly one parent
    value (e.g. each taluka belongs to one district).

    Returns:
        HierarchyInfo when the relation holds, otherwise None.
    """

    if not parent_column or not child_column or parent_column == child_column:
        return None
    if parent_column not in frame.columns or child_column not in frame.columns:
        return None
    parents = parent_map(frame, parent_column, child_column)
    if not parents or any(len(found) != 1 for found in parents.values()):
        return None
    return HierarchyInfo(parent_column=parent_column, child_column=child_column, parents=parents)


def parent_map(frame: pd.DataFrame, parent_column: str, child_column: str) -> dict[str, list[str]]:
    """Map every child value to the parent values it appears under."""

    parents: dict[str, list[str]] = {}
    for child_raw, parent_raw in zip(frame[child_column], frame[parent_column]):
        child = cell_label(child_raw)
        parent = cell_label(parent_raw)
        if child is None or parent is None:
            continue
        found = parents.setdefault(child, [])
        if parent not in found:
            found.append(parent)
    return parents


class ChartSource:
    """Computes chart datasets for one ChartQuery.

    The sheet is read once per instance. `frame` holds the rows shown by the
    chart (row window plus sheet-level filter); `scope_frame` drops the
    sheet-level filter when it names a hierarchy parent, so an exported page
    can switch parents.
    """

    def __init__(self, query: ChartQuery) -> None:
        self.query = query
        sheet = query.sheet
        self.scope_frame = window_rows(load_sheet(sheet.filename, sheet.sheet), sheet.start_row, sheet.end_row)
        self.frame = filter_rows(self.scope_frame, sheet.filter_column, sheet.filter_value)
        self.hierarchy = detect_hierarchy(self.scope_frame, query.hierarchy_parent_column, query.chart_filter_column)
        if self.hierarchy is None:
            self.scope_frame = self.frame

    @cached_property
    def categories(self) -> list[str]:
        """Return the x-axis categories shared by every filtered dataset."""

        return unique_values(self.scope_frame, self.query.x_axis)

    def original(self) -> ChartDataset:
        """Return the dataset for the unfiltered chart."""

        return build_dataset(self.frame, self.query.x_axis, self.query.y_axes)

    def filter_values(self) -> list[str]:
        """Return options for the first chart filter dropdown."""

        if not self.query.chart_filter_column:
            return []
        return unique_values(self.frame, self.query.chart_filter_column)

    def filter_values2(self) -> list[str]:
        """Return options for the second chart filter dropdown."""

        if not self.query.chart_filter_column2:
            return []
        return unique_values(self.frame, self.query.chart_filter_column2)

    def fetch(self, selection: FilterSelection) -> ChartDataset:
        """Compute the dataset for one chart filter selection.

        Raises:
            FilterNotFound: When no row matches the selection.
            DataSourceFailure: When a filter column does not exist.
        """

        # A primary value may belong to another hierarchy parent.
        frame = self.frame if selection.primary is None else self.scope_frame
        frame = filter_rows(frame, self.query.chart_filter_column, selection.primary)
        frame = filter_rows(frame, self.query.chart_filter_column2, selection.secondary)
        if frame.empty:
            shown = " and ".join(part for part in (selection.primary, selection.secondary) if part)
            raise FilterNotFound(shown)
        return build_dataset(frame, self.query.x_axis, self.query.y_axes, categories=self.categories)

    def full_index(self, *, max_fetches: int | None = None) -> FilterIndex:
        """Pre-fetch every chart filter selection (used for exported pages)."""

        column = self.query.chart_filter_column
        primary = unique_values(self.scope_frame, column) if column else []
        secondary = self.filter_values2()
        return build_filter_index(
            self.fetch,
            original=self.original(),
            primary_values=primary,
            secondary_values=secondary,
            parents=self.hierarchy.parents if self.hierarchy is not None else None,
            max_fetches=max_fetches,
        )

    def selection_index(self, selection: FilterSelection) -> FilterIndex:
        """Fetch only what is needed to resolve one selection."""

        primary = [selection.primary] if selection.primary else []
        main = self.query.sheet.filter_value or None
        if not primary and not selection.secondary and self.hierarchy is not None and main is not None:
            primary = self.hierarchy.children_of(main)
        return build_filter_index(
            self.fetch,
            original=self.original(),
            primary_values=primary,
            secondary_values=[selection.secondary] if selection.secondary else [],
            parents=self.hierarchy.parents if self.hierarchy is not None else None,
        )

    def resolve(self, selection: FilterSelection) -> Resolution:
        """Resolve a chart filter selection against this source."""

        main = self.query.sheet.filter_value if self.hierarchy is not None else None
        return resolve_filter(self.selection_index(selection), selection, ResolverContext(main_filter_value=main))


def cell_label(value: object) -> str | None:
    """Return the display label of a cell, or None for blank cells.

    Whole floats drop their `.0` (2020.0 -> "2020") and dates render as ISO
    strings, so labels match what users see in the sheet.
    """

    if value is None or value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _optional_float(value: object) -> float | None:
    """Convert a pandas scalar to float, mapping NaN and infinities to None."""

    if value is None or pd.isna(value):
        return None
    return clean_value(value)


def _excel_engine(path: Path) -> str:
    """Pick the pandas Excel engine for a workbook path."""

    return "xlrd" if path.suffix.lower() == ".xls" else "openpyxl"


def _require_columns(frame: pd.DataFrame, columns: Iterable[str]) -> None:
    """Raise DataSourceFailure when any column is missing from the frame."""

    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise DataSourceFailure(f"Unknown column(s): {', '.join(missing)}")
