"""I/O operations — JSON reading/writing, cache listing, league CSVs, CoC API lookups."""

import csv
import json
import re

import requests

from pipeline.constants import (
    API_TIMEOUT, COC_API_BASE, CSV_SUFFIX, SEASON_FILE_PATTERN,
)

SEASON_DIR_RE = re.compile(r"^\d{4}-\d{2}$")
SEASON_FILE_RE = re.compile(SEASON_FILE_PATTERN)


def bare_tag(tag):
    """'#p0j2j8gj' → 'P0J2J8GJ'. Safe to use as a filename."""
    return re.sub(r"[^0-9A-Z]", "", (tag or "").upper())


# ─── JSON Readers ────────────────────────────────────────────────

def read_json(path):
    """Load a JSON file. Raises on missing or malformed files."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_json_or_warn(path):
    """Load a JSON file, or print a warning and return None if it can't be parsed."""
    try:
        return read_json(path)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        print(f"  Warning: failed to parse {path.name}: {e}")
        return None


def read_existing(path):
    """Previous version of an output file, or None. Missing is not a warning."""
    if not path.exists():
        return None
    return read_json_or_warn(path)


# ─── JSON Writers ────────────────────────────────────────────────

def write_json(path, data, quiet=False):
    """Write data to path as two-space indented UTF-8 JSON, replacing any previous file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    if not quiet:
        size_kb = path.stat().st_size / 1024
        print(f"  Wrote {path.name} ({size_kb:.0f} KB)")


# ─── Cache & History Listing ─────────────────────────────────────

def parse_season_filename(filename):
    """'P0J2J8GJ-2024-05.json' → ('P0J2J8GJ', '2024-05'); None for anything else."""
    match = SEASON_FILE_RE.match(filename)
    if not match:
        return None
    return match.group(1), match.group(2)


def list_cache_files(cache_dir):
    """Sorted snapshot files in the CWL cache. Empty if the cache is missing."""
    if not cache_dir.exists():
        print(f"  No CWL cache directory at {cache_dir}")
        return []
    return sorted(p for p in cache_dir.iterdir() if p.suffix == ".json")


def list_season_dirs(seasons_dir):
    """Sorted YYYY-MM season directory names under the history tree."""
    if not seasons_dir.exists():
        return []
    return sorted(
        p.name for p in seasons_dir.iterdir()
        if p.is_dir() and SEASON_DIR_RE.match(p.name)
    )


# ─── League CSVs ─────────────────────────────────────────────────

# Logical field → accepted header names, first match wins
LEAGUE_CSV_COLUMNS = [
    ("tag", ("Tag", "Clan Tag")),
    ("name", ("Name", "Clan Name")),
    ("season", ("Season",)),
    ("leagueId", ("League ID", "League Id")),
    ("leagueName", ("League Name", "League")),
    ("position", ("Position", "Rank")),
    ("size", ("Size",)),
    ("stars", ("Stars",)),
    ("destruction", ("Destruction",)),
    ("threeStars", ("3 Stars",)),
    ("twoStars", ("2 Stars",)),
    ("oneStar", ("1 Star", "1 Stars")),
    ("zeroStars", ("0 Star", "0 Stars")),
    ("victories", ("Victories", "Wins")),
    ("defeats", ("Defeats", "Losses")),
    ("draws", ("Draws", "Ties")),
]
REQUIRED_CSV_FIELDS = ("tag", "season", "leagueName")
TEXT_CSV_FIELDS = ("tag", "name", "season", "leagueId", "leagueName")


def resolve_csv_columns(header):
    """Map logical field → column index for one header row. Missing fields are absent."""
    positions = {}
    for i, cell in enumerate(header):
        positions.setdefault(cell.strip().strip('"').lower(), i)

    columns = {}
    for field, aliases in LEAGUE_CSV_COLUMNS:
        for alias in aliases:
            if alias.lower() in positions:
                columns[field] = positions[alias.lower()]
                break
    return columns


def _to_number(value):
    value = (value or "").strip()
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return int(number) if number.is_integer() else number


def parse_league_rows(lines, source="csv"):
    """Parse league CSV lines into records. Quoted fields may contain commas.

    Returns a list of dicts keyed by the logical field names of
    LEAGUE_CSV_COLUMNS, with the tag normalized to its bare form.
    """
    reader = csv.reader(lines)
    header = next(reader, None)
    if header is None:
        return []

    columns = resolve_csv_columns(header)
    missing = [f for f in REQUIRED_CSV_FIELDS if f not in columns]
    if missing:
        print(f"  Warning: {source} has no {', '.join(missing)} column, skipping")
        return []
    min_width = max(columns[f] for f in REQUIRED_CSV_FIELDS) + 1

    records = []
    for line_no, fields in enumerate(reader, start=2):
        if not any(cell.strip() for cell in fields):
            continue
        if len(fields) < min_width:
            print(f"  Warning: {source} line {line_no} has {len(fields)} fields, skipping")
            continue

        record = {}
        for field, idx in columns.items():
            raw = fields[idx].strip() if idx < len(fields) else ""
            record[field] = raw if field in TEXT_CSV_FIELDS else _to_number(raw)
        record["tag"] = bare_tag(record["tag"])
        if record["tag"] and record["season"] and record["leagueName"]:
            records.append(record)
    return records


def load_league_map(csv_dir):
    """Read every <TAG>-clan-war-leagues.csv into {(bareTag, season): record}."""
    league_map = {}
    if not csv_dir.exists():
        print(f"  No league CSV directory at {csv_dir}, league data will not be populated")
        return league_map

    csv_files = sorted(p for p in csv_dir.iterdir() if p.name.endswith(CSV_SUFFIX))
    for path in csv_files:
        try:
            with open(path, "r", encoding="utf-8-sig", newline="") as f:
                records = parse_league_rows(f, source=path.name)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            print(f"  Warning: failed to read {path.name}: {e}")
            continue
        for record in records:
            league_map[(record["tag"], record["season"])] = record

    print(f"  Loaded {len(league_map)} league entries from {len(csv_files)} CSV files")
    return league_map


# ─── Clash of Clans API ──────────────────────────────────────────

def create_api_session(token):
    """HTTP session carrying the API bearer token. One per pipeline run."""
    session = requests.Session()
    session.headers.update({
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
    })
    return session


def fetch_clan_war_league(session, clan_tag):
    """Current CWL league name for a clan, or None if the lookup fails for any reason."""
    url = f"{COC_API_BASE}/clans/{requests.utils.quote('#' + bare_tag(clan_tag), safe='')}"
    try:
        r = session.get(url, timeout=API_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        print(f"  Warning: league lookup failed for #{bare_tag(clan_tag)}: {e}")
        return None
    return (data.get("warLeague") or {}).get("name")
