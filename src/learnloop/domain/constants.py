"""Centralized constants for learnloop.

All scheduling magic numbers and configuration defaults live here so every
layer imports from a single source of truth.
"""

# ---------- Time ----------
SECONDS_PER_MINUTE = 60
SECONDS_PER_DAY = 86400
MINUTES_PER_DAY = 1440

# ---------- Adaptive (SM-2) ----------
INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
INITIAL_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
PASSING_QUALITY = 2

# ---------- Fixed ladder ----------
# 10 min, 20 min, 1 d, 3 d, 7 d, 14 d, 30 d, 60 d, 120 d, 240 d
LADDER_INTERVALS_MINUTES = (10, 20, 1440, 4320, 10080, 20160, 43200, 86400, 172800, 345600)

# ---------- Strength buckets (by repetitions) ----------
WEAK_BELOW = 3
MIDDLE_BELOW = 5

# ---------- Session limits ----------
DEFAULT_MAX_CARDS_PER_SESSION = 20
DEFAULT_MAX_NEW_CARDS_PER_SESSION = 10

# ---------- Triggers ----------
DEFAULT_GLOBAL_COOLDOWN_SECONDS = 10
DEFAULT_TIMER_INTERVAL_MINUTES = 15
DEFAULT_CHAT_PATTERN = "edit"

# ---------- Storage ----------
PROGRESS_DIR_NAME = "progress"
DECKS_DIR_NAME = "decks"
CATEGORIES_FILE_NAME = "categories.yaml"
TOMBSTONES_FILE_NAME = "tombstones.yaml"
DECK_FILE_SUFFIXES = (".yaml", ".yml", ".json")
