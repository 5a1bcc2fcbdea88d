"""Aggregation helpers for hierarchical chart filters.

When a hierarchy parent is selected without a specific child (a district with
no taluka chosen), the chart shows the per-category sum of every child.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .dto import ChartDataset, ChartSeries, is_number
from .errors import InconsistentSchema
from .filter_index import Internal


def aggregate_children(
    children: Mapping[str, ChartDataset],
    *,
    series_labels: Sequence[str] | None = None,
) -> ChartDataset:
    """Sum child datasets per series and category.

    Args:
        children: Child datasets keyed by filter value. The first child is the
            template for categories, labels and colors.
        series_labels: Optional labels that override the template's labels
            (typically the unfiltered dataset's labels).

    Returns:
        A dataset with the template's categories and one summed series per
        template series. Missing values count as 0, so no output value is None.

    Raises:
        InconsistentSchema: When there are no children, or children disagree
            on categories or series count.
    """

    if not children:
        raise InconsistentSchema("Nothing to aggregate: the selection has no child datasets.")

    items = list(children.items())
    template_key, template = items[0]
    for key, child in items[1:]:
        if child.categories != template.categories:
            raise InconsistentSchema(
                f"Categories of {key!r} do not match {template_key!r}; refusing to sum misaligned data."
            )
        if len(child.series) != len(template.series):
            raise InconsistentSchema(
                f"{key!r} has {len(child.series)} series but {template_key!r} has {len(template.series)}."
            )

    totals = [[0.0] * len(template.categories) for _ in template.series]
    for _key, child in items:
        for series_idx, series in enumerate(child.series):
            for value_idx, value in enumerate(series.values):
                if is_number(value):
                    totals[series_idx][value_idx] += float(value)  # type: ignore[arg-type]

    labels = list(series_labels) if series_labels is not None else []
    aggregated: list[ChartSeries] = []
    for series_idx, series in enumerate(template.series):
        label = labels[series_idx] if series_idx < len(labels) else series.label
        aggregated.append(ChartSeries(label=label, values=tuple(totals[series_idx]), color=series.color))
    return ChartDataset(categories=template.categories, series=tuple(aggregated))


def rollup(node: Internal, *, series_labels: Sequence[str] | None = None) -> ChartDataset:
    """Aggregate the leaf children of a hierarchy parent.

    Args:
        node: Internal index node whose leaves are summed.
        series_labels: Optional label overrides passed to `aggregate_children`.

    Returns:
        The aggregated dataset.
    """

    return aggregate_children(node.leaves(), series_labels=series_labels)
