"""Django project package for ChartFlask."""
