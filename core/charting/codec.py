"""Encoding/decoding helpers for chart datasets and filter indexes.

Datasets travel as Chart.js `data` payloads (`{labels, datasets}`). Filter
indexes are encoded as tagged JSON so exported pages can resolve filters
without a server:

- a leaf is `{"leaf": <dataset>}`
- an internal node is `{"children": {...}, "combined": [{"primary", "secondary", "data"}]}`
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from analysis.dto import ChartDataset, ChartSeries, clean_value
from analysis.errors import InconsistentSchema
from analysis.filter_index import CompositeKey, FilterIndex, FilterIndexNode, Internal, Leaf

from .schema import palette_color


def encode_dataset(dataset: ChartDataset) -> dict[str, Any]:
    """Encode a ChartDataset as a Chart.js `data` payload.

    Args:
        dataset: Dataset to encode.

    Returns:
        Dict with `labels` and `datasets`; series without an explicit color get
        their palette color.
    """

    return {
        "labels": list(dataset.categories),
        "datasets": [
            {
                "label": series.label,
                "data": list(series.values),
                "backgroundColor": series.color or palette_color(idx),
                "borderColor": series.color or palette_color(idx),
            }
            for idx, series in enumerate(dataset.series)
        ],
    }


def decode_dataset(payload: Mapping[str, Any]) -> ChartDataset:
    """Decode a Chart.js `data` payload into a ChartDataset.

    Args:
        payload: Dict previously produced by `encode_dataset` (or sent by the browser).

    Returns:
        ChartDataset with non-numeric and NaN cells decoded as None.

    Raises:
        InconsistentSchema: When the payload is malformed or series lengths differ.
    """

    labels = payload.get("labels")
    datasets = payload.get("datasets")
    if not isinstance(labels, list) or not isinstance(datasets, list):
        raise InconsistentSchema("Chart data must contain `labels` and `datasets` lists.")

    series: list[ChartSeries] = []
    for idx, raw in enumerate(datasets):
        if not isinstance(raw, Mapping):
            raise InconsistentSchema(f"Dataset #{idx} is not an object.")
        data = raw.get("data") or []
        if not isinstance(data, list):
            raise InconsistentSchema(f"Dataset #{idx} has no `data` list.")
        color = raw.get("backgroundColor") or raw.get("borderColor")
        series.append(
            ChartSeries(
                label=str(raw.get("label") or f"Series {idx + 1}"),
                values=tuple(clean_value(value) for value in data),
                color=str(color) if isinstance(color, str) else None,
            )
        )
    return ChartDataset(categories=tuple(str(label) for label in labels), series=tuple(series))


def encode_filter_index(index: FilterIndex) -> dict[str, Any]:
    """Encode a FilterIndex as tagged JSON.

    Args:
        index: Index to encode.

    Returns:
        Dict with `original`, `entries`, `secondary` and `combined`. Mapping
        insertion order is preserved so lookups keep their tie-break order.
    """

    return {
        "original": encode_dataset(index.original),
        "entries": {key: _encode_node(node) for key, node in index.entries.items()},
        "secondary": {key: encode_dataset(dataset) for key, dataset in index.secondary.items()},
        "combined": _encode_combined(index.combined),
    }


def decode_filter_index(payload: Mapping[str, Any]) -> FilterIndex:
    """Decode a FilterIndex previously produced by `encode_filter_index`.

    Raises:
        InconsistentSchema: When the payload is malformed.
    """

    original = payload.get("original")
    if not isinstance(original, Mapping):
        raise InconsistentSchema("Filter index payload has no `original` dataset.")
    entries_raw = cast(Mapping[str, Any], payload.get("entries") or {})
    secondary_raw = cast(Mapping[str, Any], payload.get("secondary") or {})
    return FilterIndex(
        original=decode_dataset(original),
        entries={str(key): _decode_node(str(key), node) for key, node in entries_raw.items()},
        secondary={str(key): decode_dataset(dataset) for key, dataset in secondary_raw.items()},
        combined=_decode_combined(payload.get("combined")),
    )


def _encode_node(node: FilterIndexNode) -> dict[str, Any]:
    """Encode a single index node."""

    if isinstance(node, Leaf):
        return {"leaf": encode_dataset(node.dataset)}
    return {
        "children": {key: _encode_node(child) for key, child in node.children.items()},
        "combined": _encode_combined(node.combined),
    }


def _decode_node(key: str, raw: object) -> FilterIndexNode:
    """Decode a single index node."""

    if not isinstance(raw, Mapping):
        raise InconsistentSchema(f"Filter index entry {key!r} is not an object.")
    if "leaf" in raw:
        return Leaf(dataset=decode_dataset(raw["leaf"]))
    if "children" in raw:
        children_raw = cast(Mapping[str, Any], raw.get("children") or {})
        return Internal(
            children={str(k): _decode_node(str(k), v) for k, v in children_raw.items()},
            combined=_decode_combined(raw.get("combined")),
        )
    raise InconsistentSchema(f"Filter index entry {key!r} is neither a leaf nor a parent.")


def _encode_combined(combined: Mapping[CompositeKey, ChartDataset]) -> list[dict[str, Any]]:
    """Encode a composite-key map as a list (JSON objects need string keys)."""

    return [
        {"primary": key.primary, "secondary": key.secondary, "data": encode_dataset(dataset)}
        for key, dataset in combined.items()
    ]


def _decode_combined(raw: object) -> dict[CompositeKey, ChartDataset]:
    """Decode a composite-key list."""

    if raw is None:
        return {}
    if not isinstance(raw, list):
        raise InconsistentSchema("Combined filter data must be a list.")
    combined: dict[CompositeKey, ChartDataset] = {}
    for item in raw:
        if not isinstance(item, Mapping) or not isinstance(item.get("data"), Mapping):
            raise InconsistentSchema("Combined filter entries need `primary`, `secondary` and `data`.")
        key = CompositeKey(_optional_str(item.get("primary")), _optional_str(item.get("secondary")))
        combined[key] = decode_dataset(item["data"])
    return combined


def _optional_str(value: object) -> str | None:
    """Return a string, or None for null/blank values."""

    if value is None or value == "":
        return None
    return str(value)
