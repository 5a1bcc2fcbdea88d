"""Build a FilterIndex by pre-fetching every filter selection from a data source."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from analysis.dto import ChartDataset
from analysis.errors import ChartDataError
from analysis.filter_index import CompositeKey, FilterIndex, FilterIndexNode, Internal, Leaf
from analysis.resolver import FilterSelection

logger = logging.getLogger(__name__)

FetchDataset = Callable[[FilterSelection], ChartDataset]


@dataclass(slots=True)
class _FetchBudget:
    """Counts fetches against an optional cap."""

    limit: int | None
    used: int = 0
    exhausted: bool = False

    def take(self) -> bool:
        """Consume one fetch, returning False once the cap is reached."""

        if self.limit is not None and self.used >= self.limit:
            if not self.exhausted:
                logger.warning(
                    "Filter pre-fetch stopped after %s fetches; remaining selections are not indexed.",
                    self.used,
                )
            self.exhausted = True
            return False
        self.used += 1
        return True


@dataclass(slots=True)
class _ParentSlot:
    """Mutable collector for an Internal node under construction."""

    children: dict[str, FilterIndexNode] = field(default_factory=dict)
    combined: dict[CompositeKey, ChartDataset] = field(default_factory=dict)


def build_filter_index(
    fetch: FetchDataset,
    *,
    original: ChartDataset,
    primary_values: Sequence[str],
    secondary_values: Sequence[str] = (),
    parents: Mapping[str, Sequence[str]] | None = None,
    max_fetches: int | None = None,
) -> FilterIndex:
    """Pre-fetch datasets for every filter selection and assemble a FilterIndex.

    Fetches run sequentially. A selection whose fetch raises a ChartDataError is
    logged and skipped; the rest of the batch continues.

    Args:
        fetch: Callable returning the dataset for one selection.
        original: The unfiltered dataset.
        primary_values: Values of the first chart filter column.
        secondary_values: Values of the second chart filter column.
        parents: Optional mapping of primary value -> parent values. When a
            primary value has parents it is indexed under its first parent.
        max_fetches: Optional cap on the number of fetches.

    Returns:
        A FilterIndex over everything that was fetched successfully.
    """

    budget = _FetchBudget(limit=max_fetches)
    parent_of = {value: found[0] for value, found in (parents or {}).items() if found}

    entries: dict[str, FilterIndexNode | _ParentSlot] = {}
    for value in primary_values:
        dataset = _fetch_one(fetch, FilterSelection(primary=value), budget)
        if dataset is None:
            continue
        parent = parent_of.get(value)
        if parent is None:
            entries[value] = Leaf(dataset)
            continue
        slot = entries.get(parent)
        if not isinstance(slot, _ParentSlot):
            slot = _ParentSlot()
            entries[parent] = slot
        slot.children[value] = Leaf(dataset)

    secondary: dict[str, ChartDataset] = {}
    for value in secondary_values:
        dataset = _fetch_one(fetch, FilterSelection(secondary=value), budget)
        if dataset is not None:
            secondary[value] = dataset

    combined: dict[CompositeKey, ChartDataset] = {}
    for primary in primary_values:
        for second in secondary_values:
            key = CompositeKey(primary, second)
            dataset = _fetch_one(fetch, FilterSelection(primary=primary, secondary=second), budget)
            if dataset is None:
                continue
            combined[key] = dataset
            parent = parent_of.get(primary)
            slot = entries.get(parent) if parent is not None else None
            if isinstance(slot, _ParentSlot):
                slot.combined[key] = dataset

    logger.info(
        "Built filter index: %s entries, %s secondary, %s combined (%s fetches).",
        len(entries),
        len(secondary),
        len(combined),
        budget.used,
    )
    return FilterIndex(
        original=original,
        entries={
            key: Internal(children=node.children, combined=node.combined) if isinstance(node, _ParentSlot) else node
            for key, node in entries.items()
        },
        secondary=secondary,
        combined=combined,
    )


def _fetch_one(fetch: FetchDataset, selection: FilterSelection, budget: _FetchBudget) -> ChartDataset | None:
    """Fetch one selection, returning None when skipped or failed."""

    if not budget.take():
        return None
    try:
        return fetch(selection)
    except ChartDataError as exc:
        logger.warning("Skipping filter selection %s: %s", selection, exc)
        return None
