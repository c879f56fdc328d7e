"""Centralized constants for the wordkeeper application.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 Scheduling ----------
DEFAULT_EASINESS_FACTOR = 2.5
MIN_EASINESS_FACTOR = 1.3

# Penalty applied to EF for a blank/forgotten answer (quality <= 1)
FORGOTTEN_EF_PENALTY = -0.54

# Interval used for the third correct answer when no interval was stored
MIGRATION_FALLBACK_INTERVAL = 6

# Legacy review thresholds in days, keyed by the number of correct reviews
LEGACY_THRESHOLD_DAYS = {
    1: 3,
    2: 7,
    3: 14,
    4: 30,
    5: 60,
    6: 90,
    7: 180,
    8: 270,
    9: 365,
    10: 540,
    11: 730,
    12: 1095,
}

# ---------- History ----------
FLASHCARD_POOL_TITLE = "flashcards"
HISTORY_KIND_STORY = "story"
HISTORY_KIND_FLASHCARD = "flashcard"

# ---------- Files ----------
YAML_SUFFIX = ".yml"
INDEX_FILE_NAME = "index.yml"
DICTIONARY_CACHE_SUFFIX = ".json"

# ---------- Dictionary / HTTP ----------
REQUEST_TIMEOUT = 30.0
DEFAULT_WORDSAPI_HOST = "wordsapiv1.p.rapidapi.com"

# ---------- CLI Output ----------
MAX_DISPLAYED_WARNINGS = 10

# ---------- Review priority ----------
# Per-record weights of the flashcard learn score; lower scores are reviewed first
LEARN_SCORE_WEIGHTS = {
    "misunderstood": -5,
    "understood": 10,
    "usable": 1_000,
    "intuitive": 100_000,
}
