"""Pipeline constants — paths, API config, family clans, scoring tables, thresholds."""

import os
from pathlib import Path

# ─── Paths ──────────────────────────────────────────────────────

SCRIPT_DIR = Path(__file__).resolve().parent.parent  # scripts/
PROJECT_DIR = SCRIPT_DIR.parent
CACHE_DIR = PROJECT_DIR / "tmp" / "cwl-cache"
DATA_DIR = PROJECT_DIR / "public" / "data"

# Layout below DATA_DIR (relative so a custom --data-dir keeps the shape)
SEASONS_SUBDIR = Path("history") / "seasons"
CSV_SUBDIR = Path("mix csv")
PLAYERS_SUBDIR = Path("players")

CSV_SUFFIX = "-clan-war-leagues.csv"
ENV_FILE = PROJECT_DIR / ".env.local"

# ─── Clash of Clans API ─────────────────────────────────────────

COC_API_BASE = os.environ.get("COC_API_BASE", "https://api.clashofclans.com/v1")
COC_API_TOKEN_ENV = "COC_API_TOKEN"
API_TIMEOUT = 10

# ─── Family Clans ───────────────────────────────────────────────

# name → tag; tags are stored with the leading "#"
FAMILY_CLANS = {
    "coc masters PL": "#P0J2J8GJ",
    "Akademia CoC PL": "#JPRPRVUY",
    "Psychole!": "#29RYVJ8C8",
}

# Filesystem and CSV keys use the bare tag
FAMILY_CLAN_TAGS = [tag.lstrip("#") for tag in FAMILY_CLANS.values()]

# ─── Scoring Tables ─────────────────────────────────────────────

LEAGUE_TIER_SCORES = {
    "Champion League I": 100,
    "Champion League II": 90,
    "Champion League III": 80,
    "Master League I": 70,
    "Master League II": 60,
    "Master League III": 50,
    "Crystal League I": 40,
    "Crystal League II": 35,
    "Crystal League III": 30,
    "Gold League I": 25,
    "Gold League II": 20,
    "Gold League III": 15,
}
DEFAULT_LEAGUE_SCORE = 50

RELIABILITY_WEIGHTS = {
    "performance": 0.45,
    "attendance": 0.35,
    "leagueAdj": 0.20,
}

# Easiest first; index difference is the tier distance
LEAGUE_TIERS = [
    "Gold League III",
    "Gold League II",
    "Gold League I",
    "Crystal League III",
    "Crystal League II",
    "Crystal League I",
    "Master League III",
    "Master League II",
    "Master League I",
    "Champion League III",
    "Champion League II",
    "Champion League I",
]

# ─── Thresholds & Configuration ─────────────────────────────────

# Stars-per-attack delta between first and last of the recent window
TREND_THRESHOLD = 0.3
TREND_WINDOW = 3

# One attack per round, seven rounds
ATTACKS_PER_SEASON = 7

# League projection: percent per tier and caps
HARDER_LEAGUE_PENALTY = 5
HARDER_LEAGUE_CAP = 15
EASIER_LEAGUE_BONUS = 4
EASIER_LEAGUE_CAP = 10

SEASON_FILE_PATTERN = r"^#?([A-Z0-9]+)-(\d{4}-\d{2})\.json$"
