"""Pre-computed filter index for exported and live charts.

The index maps filter values to datasets so a chart can be narrowed without
another round trip to the data source. Nodes are a tagged variant:

- `Leaf` wraps the dataset for one filter value.
- `Internal` groups leaves under a parent value (e.g. district -> taluka) and
  may carry datasets for two-dimension selections made within that parent.

Two-dimension selections are keyed by `CompositeKey` tuples rather than
concatenated strings, so values containing "+" can never collide.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NamedTuple, TypeAlias

from .dto import ChartDataset
from .errors import InconsistentSchema

MAX_INDEX_DEPTH = 2


class CompositeKey(NamedTuple):
    """Lookup key for a (primary, secondary) filter selection."""

    primary: str | None
    secondary: str | None

    def describe(self) -> str:
        """Return a human-readable form used in notices."""

        parts = [part for part in (self.primary, self.secondary) if part]
        return " and ".join(parts)


@dataclass(frozen=True, slots=True)
class Leaf:
    """Index node holding the dataset for one filter value."""

    dataset: ChartDataset


@dataclass(frozen=True, slots=True)
class Internal:
    """Index node grouping child nodes under a parent filter value.

    Attributes:
        children: Child nodes keyed by filter value, in insertion order.
        combined: Datasets for two-dimension selections scoped to this parent.
    """

    children: Mapping[str, FilterIndexNode] = field(default_factory=dict)
    combined: Mapping[CompositeKey, ChartDataset] = field(default_factory=dict)

    def leaves(self) -> dict[str, ChartDataset]:
        """Return the datasets of all direct leaf children."""

        return {key: node.dataset for key, node in self.children.items() if isinstance(node, Leaf)}


FilterIndexNode: TypeAlias = Leaf | Internal


@dataclass(frozen=True, slots=True)
class FilterIndex:
    """All pre-filtered views of a chart.

    Attributes:
        original: The unfiltered dataset shown when nothing matches.
        entries: Primary-dimension nodes; an entry is a leaf (flat value) or an
            internal node (hierarchy parent).
        secondary: Datasets for the second filter dimension on its own.
        combined: Datasets for (primary, secondary) pairs.

    Raises:
        InconsistentSchema: When the index is nested deeper than two levels.
    """

    original: ChartDataset
    entries: Mapping[str, FilterIndexNode] = field(default_factory=dict)
    secondary: Mapping[str, ChartDataset] = field(default_factory=dict)
    combined: Mapping[CompositeKey, ChartDataset] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key, node in self.entries.items():
            if _depth(node) > MAX_INDEX_DEPTH:
                raise InconsistentSchema(f"Filter index entry {key!r} is nested deeper than {MAX_INDEX_DEPTH} levels.")

    @property
    def hierarchical(self) -> bool:
        """Return True when any primary entry is a hierarchy parent."""

        return any(isinstance(node, Internal) for node in self.entries.values())

    def parents(self) -> Iterator[tuple[str, Internal]]:
        """Yield (key, node) for every internal entry in insertion order."""

        for key, node in self.entries.items():
            if isinstance(node, Internal):
                yield key, node

    def primary_values(self) -> list[str]:
        """Return every selectable primary value (flat keys and hierarchy children)."""

        values: list[str] = []
        for key, node in self.entries.items():
            if isinstance(node, Leaf):
                values.append(key)
                continue
            values.extend(child for child in node.children if child not in values)
        return values


def _depth(node: FilterIndexNode) -> int:
    """Return the nesting depth of a node (a leaf has depth 1)."""

    if isinstance(node, Leaf):
        return 1
    if not node.children:
        return 1
    return 1 + max(_depth(child) for child in node.children.values())
