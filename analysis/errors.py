"""Error taxonomy for chart data handling.

Every error here is recoverable: callers degrade to the full (or previous)
dataset and surface a message instead of failing the request.
"""

from __future__ import annotations


class ChartDataError(ValueError):
    """Base class for chart data errors."""


class FilterNotFound(ChartDataError):
    """Raised when a filter selection has no entry in the pre-computed index."""

    def __init__(self, value: str) -> None:
        """Initialize the error.

        Args:
            value: Display form of the filter value (or value pair) that missed.
        """

        super().__init__(f'No filter data available for "{value}".')
        self.value = value


class InconsistentSchema(ChartDataError):
    """Raised when datasets disagree on categories or series shape."""


class RenderFailure(ChartDataError):
    """Raised when a chart configuration cannot be produced."""


class DataSourceFailure(ChartDataError):
    """Raised when the spreadsheet data source cannot serve a request."""
