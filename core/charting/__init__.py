"""Chart view models, rendering and export helpers.

Every chart kind is rendered by one parameterized renderer: a `ChartKind`
selects stacking, percentage normalization and dataset styling, and a freshly
built `ChartViewModel` is handed to the renderer on every filter change.
"""
