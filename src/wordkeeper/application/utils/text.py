import re
from enum import Enum

# ---------- Marker helpers ----------


class MarkerUsage(str, Enum):
    MARKED = "marked"
    UNMARKED = "unmarked"
    ABSENT = "absent"


def _marker_pattern(term: str) -> re.Pattern:
    return re.compile(r"\{\{\s*" + re.escape(term) + r"\s*\}\}", re.IGNORECASE)


def find_marker_usage(terms: list[str], texts: list[str]) -> MarkerUsage:
    """Classify how any of `terms` shows up across `texts`, case-insensitively.

    A `{{ term }}` marker anywhere wins over plain occurrences.
    """
    terms = [t.strip() for t in terms if t and t.strip()]
    found_plain = False
    for term in terms:
        marker = _marker_pattern(term)
        lowered = term.lower()
        for text in texts:
            if marker.search(text):
                return MarkerUsage.MARKED
            if lowered in text.lower():
                found_plain = True
    return MarkerUsage.UNMARKED if found_plain else MarkerUsage.ABSENT


# ---------- Episode grouping ----------

_SERIES_KEYWORDS = ("season", "episode")


def extract_series_name(event: str) -> str:
    """Series name preceding a "season"/"episode" keyword, lowercased.

    Returns "" when no keyword follows some leading text.
    """
    lowered = event.lower()
    for keyword in _SERIES_KEYWORDS:
        idx = lowered.find(keyword)
        if idx > 0:
            return lowered[:idx].strip()
    return ""


def events_related(event1: str, event2: str) -> bool:
    """Two episodes belong to one history file only when both name the same series."""
    series1 = extract_series_name(event1)
    series2 = extract_series_name(event2)
    return bool(series1) and series1 == series2


def derive_notebook_id(series: str) -> str:
    return "-".join(series.strip().lower().split())
