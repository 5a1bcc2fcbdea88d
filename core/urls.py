"""URL configuration for core views.

Endpoint paths match the ones the chart builder script posts to.
"""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("", views.index, name="index"),
    path("upload", views.upload, name="upload"),
    path("get_sheet_data", views.get_sheet_data, name="get_sheet_data"),
    path("filter_data", views.filter_data, name="filter_data"),
    path("generate_chart", views.generate_chart, name="generate_chart"),
    path("apply_chart_filter", views.apply_chart_filter, name="apply_chart_filter"),
    path("export_chart_html", views.export_chart_html, name="export_chart_html"),
    path("export_chart_csv", views.export_chart_csv, name="export_chart_csv"),
]
