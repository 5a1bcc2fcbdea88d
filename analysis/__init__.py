"""Pure analysis package for ChartFlask.

This package contains deterministic, testable computations over chart
datasets (filter resolution, aggregation, percentage normalization and number
formatting). It must not import Django or perform any I/O.
"""

from .resolver import resolve_filter

__all__ = ["resolve_filter"]
