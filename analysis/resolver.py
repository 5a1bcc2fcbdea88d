"""Filter resolution over a pre-computed FilterIndex.

Given up to two selected filter values (plus the main sheet-level filter, which
may name a hierarchy parent), pick the dataset a chart should display. Lookups
run in a fixed order and the first match wins. A miss is never fatal: the
resolution falls back to the unfiltered dataset and carries a notice for the
user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .aggregations import rollup
from .dto import ChartDataset
from .errors import FilterNotFound, InconsistentSchema
from .filter_index import CompositeKey, FilterIndex, Internal, Leaf

NOTICE_DISMISS_MS = 4000

NoticeLevel = Literal["info", "error"]
ResolutionSource = Literal["original", "main", "aggregate", "hierarchy", "flat", "secondary", "combined"]


@dataclass(frozen=True, slots=True)
class FilterSelection:
    """Values chosen in the chart's two filter dropdowns.

    Empty strings are treated like "All" (no selection).
    """

    primary: str | None = None
    secondary: str | None = None


@dataclass(frozen=True, slots=True)
class ResolverContext:
    """Context for resolution.

    Args:
        main_filter_value: Value of the sheet-level filter; when it names a
            hierarchy parent, an empty selection shows that parent's roll-up.
    """

    main_filter_value: str | None = None


@dataclass(frozen=True, slots=True)
class FilterNotice:
    """A transient, dismissable message shown above the chart."""

    value: str
    message: str
    level: NoticeLevel = "info"
    dismiss_after_ms: int = NOTICE_DISMISS_MS


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving a filter selection.

    Attributes:
        dataset: Dataset to display.
        source: Which lookup produced the dataset.
        notice: Set when the selection missed and the original dataset is shown.
    """

    dataset: ChartDataset
    source: ResolutionSource
    notice: FilterNotice | None = None


def resolve_filter(
    index: FilterIndex,
    selection: FilterSelection,
    context: ResolverContext | None = None,
) -> Resolution:
    """Resolve a filter selection to the dataset to display.

    Args:
        index: Pre-computed filter index.
        selection: Primary/secondary dropdown values.
        context: Optional main-filter context.

    Returns:
        Resolution for the selection. On a miss, the original dataset with an
        info notice; on inconsistent child data, the original dataset with an
        error notice.
    """

    primary = _clean(selection.primary)
    secondary = _clean(selection.secondary)
    main = _clean(context.main_filter_value) if context is not None else None

    try:
        if primary is None and secondary is None:
            return _resolve_unfiltered(index, main)
        if secondary is None:
            return _resolve_primary(index, primary, main)  # type: ignore[arg-type]
        if primary is None:
            return _resolve_secondary(index, secondary)
        return _resolve_pair(index, CompositeKey(primary, secondary), main)
    except FilterNotFound as exc:
        notice = FilterNotice(
            value=exc.value,
            message=f'No filter data available for "{exc.value}". Showing all values.',
        )
        return Resolution(dataset=index.original, source="original", notice=notice)
    except InconsistentSchema as exc:
        shown = CompositeKey(primary, secondary).describe() or (main or "")
        notice = FilterNotice(
            value=shown,
            message=f'Could not filter data for "{shown}" ({exc}). Showing all values.',
            level="error",
        )
        return Resolution(dataset=index.original, source="original", notice=notice)


def _resolve_unfiltered(index: FilterIndex, main: str | None) -> Resolution:
    """Resolve the "All" selection, rolling up a hierarchy parent when one is active."""

    node = index.entries.get(main) if main is not None else None
    if isinstance(node, Leaf):
        return Resolution(dataset=node.dataset, source="main")
    if isinstance(node, Internal) and node.leaves():
        return Resolution(dataset=rollup(node, series_labels=index.original.labels), source="aggregate")
    return Resolution(dataset=index.original, source="original")


def _resolve_primary(index: FilterIndex, primary: str, main: str | None) -> Resolution:
    """Resolve a primary-only selection."""

    if main is not None:
        parent = index.entries.get(main)
        if isinstance(parent, Internal):
            child = parent.children.get(primary)
            if isinstance(child, Leaf):
                return Resolution(dataset=child.dataset, source="hierarchy")

    for _key, parent_node in index.parents():
        child = parent_node.children.get(primary)
        if isinstance(child, Leaf):
            return Resolution(dataset=child.dataset, source="hierarchy")

    node = index.entries.get(primary)
    if isinstance(node, Leaf):
        return Resolution(dataset=node.dataset, source="flat")
    if isinstance(node, Internal) and node.leaves():
        return Resolution(dataset=rollup(node, series_labels=index.original.labels), source="aggregate")
    raise FilterNotFound(primary)


def _resolve_secondary(index: FilterIndex, secondary: str) -> Resolution:
    """Resolve a secondary-only selection."""

    dataset = index.secondary.get(secondary)
    if dataset is not None:
        return Resolution(dataset=dataset, source="secondary")

    for _key, parent_node in index.parents():
        child = parent_node.children.get(secondary)
        if isinstance(child, Leaf):
            return Resolution(dataset=child.dataset, source="hierarchy")
    raise FilterNotFound(secondary)


def _resolve_pair(index: FilterIndex, key: CompositeKey, main: str | None) -> Resolution:
    """Resolve a selection with both dropdowns set."""

    dataset = index.combined.get(key)
    if dataset is not None:
        return Resolution(dataset=dataset, source="combined")

    if main is not None:
        scoped = index.entries.get(main)
        if isinstance(scoped, Internal) and key in scoped.combined:
            return Resolution(dataset=scoped.combined[key], source="combined")

    parent = index.entries.get(key.primary) if key.primary is not None else None
    if isinstance(parent, Internal):
        child = parent.children.get(key.secondary) if key.secondary is not None else None
        if isinstance(child, Leaf):
            return Resolution(dataset=child.dataset, source="hierarchy")

    for parent_key, parent_node in index.parents():
        if key in parent_node.combined:
            return Resolution(dataset=parent_node.combined[key], source="combined")
        for child_key, child_node in parent_node.children.items():
            if not isinstance(child_node, Leaf):
                continue
            forward = parent_key == key.primary and child_key == key.secondary
            reverse = child_key == key.primary and parent_key == key.secondary
            if forward or reverse:
                return Resolution(dataset=child_node.dataset, source="hierarchy")

    raise FilterNotFound(key.describe())


def _clean(value: str | None) -> str | None:
    """Map blank selections to None."""

    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None
