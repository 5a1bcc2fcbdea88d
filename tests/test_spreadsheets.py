"""Integration tests for the pandas-backed spreadsheet data source."""

from __future__ import annotations

import pandas as pd
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from analysis.errors import DataSourceFailure
from analysis.resolver import FilterSelection
from core.spreadsheets import (
    ChartQuery,
    ChartSource,
    SheetQuery,
    SpreadsheetNotFound,
    YAxis,
    build_dataset,
    cell_label,
    detect_hierarchy,
    filter_rows,
    list_sheets,
    load_sheet,
    save_upload,
    select_rows,
    sheet_records,
    spreadsheet_path,
    unique_values,
    window_rows,
)

pytestmark = pytest.mark.integration


def _chart_query(filename: str, **overrides: object) -> ChartQuery:
    sheet = SheetQuery(filename=filename, sheet="Crops", filter_column="District", filter_value="North")
    options: dict[str, object] = {
        "sheet": sheet,
        "x_axis": "Year",
        "y_axes": (YAxis("Area"),),
        "chart_filter_column": "Taluka",
        "chart_filter_column2": "Crop",
    }
    options.update(overrides)
    return ChartQuery(**options)  # type: ignore[arg-type]


def test_save_upload_stores_supported_files(upload_dir) -> None:
    stored = save_upload(SimpleUploadedFile("my crops.csv", b"A,B\n1,2\n"))

    assert stored == "my_crops.csv"
    assert (upload_dir / stored).read_bytes() == b"A,B\n1,2\n"


def test_save_upload_rejects_other_extensions(upload_dir) -> None:
    with pytest.raises(DataSourceFailure, match="Unsupported file type"):
        save_upload(SimpleUploadedFile("notes.txt", b"hello"))


def test_spreadsheet_path_rejects_traversal_and_missing_files(upload_dir) -> None:
    with pytest.raises(DataSourceFailure, match="Invalid file name"):
        spreadsheet_path("../settings.py")
    with pytest.raises(SpreadsheetNotFound):
        spreadsheet_path("missing.xlsx")


def test_list_sheets_for_workbook_and_csv(upload_dir, write_workbook, district_frame) -> None:
    name = write_workbook(Crops=district_frame, Notes=pd.DataFrame({"Text": ["x"]}))
    district_frame.to_csv(upload_dir / "crops.csv", index=False)

    assert list_sheets(name) == ["Crops", "Notes"]
    assert list_sheets("crops.csv") == ["Sheet1"]


def test_load_sheet_strips_column_names(write_workbook) -> None:
    name = write_workbook(Data=pd.DataFrame({" Area ": [1], "Year": [2020]}))

    frame = load_sheet(name, "Data")

    assert list(frame.columns) == ["Area", "Year"]


def test_load_sheet_reports_unknown_sheet(write_workbook, district_frame) -> None:
    name = write_workbook(Crops=district_frame)

    with pytest.raises(DataSourceFailure, match="Could not read sheet"):
        load_sheet(name, "Nope")


def test_window_rows_uses_spreadsheet_numbering(district_frame) -> None:
    window = window_rows(district_frame, 3, 4)

    assert list(window["Area"]) == [20, 30]
    assert window_rows(district_frame, None, None).equals(district_frame)
    assert window_rows(district_frame, 5, 3).empty


def test_select_rows_applies_window_and_filter(write_workbook, district_frame) -> None:
    name = write_workbook(Crops=district_frame)

    frame = select_rows(SheetQuery(name, "Crops", start_row=2, end_row=5, filter_column="District", filter_value="South"))

    assert list(frame["Taluka"]) == ["S1"]


def test_filter_rows_matches_display_labels(district_frame) -> None:
    assert len(filter_rows(district_frame, "Year", "2021")) == 3
    assert len(filter_rows(district_frame, "District", "")) == 6

    with pytest.raises(DataSourceFailure, match="Unknown column"):
        filter_rows(district_frame, "Nope", "x")


def test_sheet_records_are_json_safe(district_frame) -> None:
    records = sheet_records(district_frame)

    assert records[2]["Yield"] is None
    assert records[0]["District"] == "North"


def test_unique_values_keep_first_appearance_order(district_frame) -> None:
    assert unique_values(district_frame, "Taluka") == ["N1", "N2", "S1", "S2"]
    assert unique_values(district_frame, "Year") == ["2020", "2021"]


def test_cell_label_normalizes_cells() -> None:
    assert cell_label(2020.0) == "2020"
    assert cell_label(float("nan")) is None
    assert cell_label(pd.NaT) is None
    assert cell_label(pd.Timestamp("2024-03-01")) == "2024-03-01"
    assert cell_label("  Rice ") == "Rice"


def test_build_dataset_sums_per_category(district_frame) -> None:
    dataset = build_dataset(district_frame, "Year", [YAxis("Area"), YAxis("Yield", color="#ff0000")])

    assert dataset.categories == ("2020", "2021")
    assert dataset.series[0].values == (80.0, 130.0)
    assert dataset.series[1].values == (5.0, 13.0)
    assert dataset.series[1].color == "#ff0000"


def test_build_dataset_keeps_empty_groups_as_none() -> None:
    frame = pd.DataFrame({"Year": [2020, 2021], "Area": [None, 3]})

    dataset = build_dataset(frame, "Year", [YAxis("Area")], categories=["2019", "2020", "2021"])

    assert dataset.categories == ("2019", "2020", "2021")
    assert dataset.series[0].values == (None, None, 3.0)


def test_build_dataset_requires_columns(district_frame) -> None:
    with pytest.raises(DataSourceFailure, match="at least one Y axis"):
        build_dataset(district_frame, "Year", [])
    with pytest.raises(DataSourceFailure, match="Unknown column"):
        build_dataset(district_frame, "Month", [YAxis("Area")])


def test_detect_hierarchy(district_frame) -> None:
    info = detect_hierarchy(district_frame, "District", "Taluka")

    assert info is not None
    assert info.children_of("North") == ["N1", "N2"]
    assert info.as_json("S2") == {
        "parentColumn": "District",
        "childColumn": "Taluka",
        "parentValues": ["South"],
        "childValue": "S2",
    }
    assert detect_hierarchy(district_frame, "Crop", "Taluka") is None
    assert detect_hierarchy(district_frame, "District", "District") is None


def test_chart_source_rolls_up_main_parent(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    resolution = source.resolve(FilterSelection())

    assert source.hierarchy is not None
    assert source.filter_values() == ["N1", "N2"]
    assert source.filter_values2() == ["Rice", "Wheat"]
    assert source.original().series[0].values == (40.0, 20.0)
    assert resolution.source == "aggregate"
    assert resolution.dataset.series[0].values == (40.0, 20.0)


def test_chart_source_reaches_children_of_other_parents(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    resolution = source.resolve(FilterSelection(primary="S1"))

    assert resolution.source == "hierarchy"
    assert resolution.dataset.series[0].values == (40.0, 50.0)


def test_chart_source_aligns_filtered_categories(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    resolution = source.resolve(FilterSelection(primary="N2"))

    assert resolution.dataset.categories == ("2020", "2021")
    assert resolution.dataset.series[0].values == (30.0, None)


def test_chart_source_secondary_uses_main_filtered_rows(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    resolution = source.resolve(FilterSelection(secondary="Wheat"))

    assert resolution.source == "secondary"
    assert resolution.dataset.series[0].values == (None, 20.0)


def test_chart_source_missing_value_falls_back(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    resolution = source.resolve(FilterSelection(primary="Z9"))

    assert resolution.notice is not None
    assert resolution.notice.value == "Z9"
    assert resolution.dataset == source.original()


def test_chart_source_flat_filter(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame), chart_filter_column="Crop"))

    resolution = source.resolve(FilterSelection(primary="Rice"))

    assert source.hierarchy is None
    assert resolution.source == "flat"
    assert resolution.dataset.series[0].values == (40.0, None)


def test_full_index_groups_every_parent(write_workbook, district_frame) -> None:
    source = ChartSource(_chart_query(write_workbook(Crops=district_frame)))

    index = source.full_index()

    assert list(index.entries) == ["North", "South"]
    assert index.primary_values() == ["N1", "N2", "S1", "S2"]
    assert set(index.secondary) == {"Rice", "Wheat"}
