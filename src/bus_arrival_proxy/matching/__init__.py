"""Fuzzy matching of free-text queries against the stop directory."""

from bus_arrival_proxy.matching.stop_search import (
    normalize_stop_text,
    score_stop,
    search_stops,
)

__all__ = [
    "normalize_stop_text",
    "score_stop",
    "search_stops",
]
