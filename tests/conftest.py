"""Pytest fixtures shared across ChartFlask tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pandas as pd
import pytest

from analysis.dto import ChartDataset, ChartSeries


@pytest.fixture
def upload_dir(tmp_path: Path, settings) -> Path:  # type: ignore[no-untyped-def]
    """Point CHARTFLASK_UPLOAD_DIR at a temporary directory."""

    settings.CHARTFLASK_UPLOAD_DIR = tmp_path
    return tmp_path


@pytest.fixture
def district_frame() -> pd.DataFrame:
    """Return a small district/taluka sheet with two numeric columns."""

    return pd.DataFrame(
        {
            "District": ["North", "North", "North", "South", "South", "South"],
            "Taluka": ["N1", "N1", "N2", "S1", "S1", "S2"],
            "Crop": ["Rice", "Wheat", "Rice", "Rice", "Wheat", "Wheat"],
            "Year": [2020, 2021, 2020, 2020, 2021, 2021],
            "Area": [10, 20, 30, 40, 50, 60],
            "Yield": [1.0, 2.0, None, 4.0, 5.0, 6.0],
        }
    )


@pytest.fixture
def write_workbook(upload_dir: Path) -> Callable[..., str]:
    """Return a factory writing DataFrames into an .xlsx file in the upload dir."""

    def _write(name: str = "crops.xlsx", **sheets: pd.DataFrame) -> str:
        path = upload_dir / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, frame in sheets.items():
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
        return name

    return _write


@pytest.fixture
def make_dataset() -> Callable[..., ChartDataset]:
    """Return a factory for ChartDatasets keyed by series label."""

    def _make(categories: Sequence[str], **series: Sequence[float | None]) -> ChartDataset:
        return ChartDataset(
            categories=tuple(categories),
            series=tuple(ChartSeries(label=label, values=tuple(values)) for label, values in series.items()),
        )

    return _make


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests with no Django request cycle or file IO.
    - `integration`: tests touching Django views, templates, or uploaded files.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
