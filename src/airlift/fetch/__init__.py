"""airlift.fetch — Image and chart acquisition."""

from airlift.fetch.outcome import FetchOutcome, raise_for_failures
from airlift.fetch.images import fetch_images, DEFAULT_PARALLELISM
from airlift.fetch.charts import (
    fetch_charts, fetch_chart, find_chart_url, resolve_chart_url,
)

__all__ = [
    "FetchOutcome", "raise_for_failures",
    "fetch_images", "DEFAULT_PARALLELISM",
    "fetch_charts", "fetch_chart", "find_chart_url", "resolve_chart_url",
]
