"""League enrichment — join league-history CSV data onto career and season-clan records.

The league map comes from io_helpers.load_league_map and is keyed by
(bare clan tag, season). Enrichment only ever adds league fields: records
without a matching row keep every field they had.
"""

from pipeline.careers import refresh_league_rollups
from pipeline.io_helpers import (
    bare_tag, fetch_clan_war_league, list_season_dirs, read_existing, write_json,
)


def merge_league(record, existing):
    """League block and group position for a season-clan file.

    Tier and group each fall back independently: CSV row, then the previous
    file, then None. Group position falls back to the previous file, then 0.

    Returns ({"tier", "group"}, groupPosition).
    """
    existing = existing or {}
    old_league = existing.get("league") or {}

    tier = record.get("leagueName") if record else None
    if tier is None:
        tier = old_league.get("tier")

    group = record.get("position") if record else None
    if group is None:
        group = old_league.get("group")

    if record and record.get("position") is not None:
        position = record["position"]
    elif existing.get("groupPosition") is not None:
        position = existing["groupPosition"]
    else:
        position = 0

    return {"tier": tier, "group": group}, position


def enrich_season_record(season, league_map):
    """Attach league id/name/tier to one PlayerSeasonStats dict. True on a match."""
    entry = league_map.get((bare_tag(season.get("clanTag")), season.get("season")))
    if entry is None:
        return False
    season["leagueId"] = entry.get("leagueId")
    season["leagueName"] = entry["leagueName"]
    season["leagueTier"] = entry["leagueName"]
    return True


def enrich_players(players, league_map):
    """Enrich every season of every player in place. Returns the matched season count."""
    matched = 0
    for player in players:
        hits = sum(enrich_season_record(s, league_map) for s in player["allSeasons"])
        if hits:
            refresh_league_rollups(player)
        matched += hits
    return matched


def enrich_season_clan_files(seasons_dir, league_map, family_tags):
    """Rewrite season-clan files whose (clan, season) has a CSV row. Returns files updated."""
    updated = 0
    for season in list_season_dirs(seasons_dir):
        for tag in family_tags:
            record = league_map.get((tag, season))
            if record is None:
                continue
            path = seasons_dir / season / "clans" / f"{tag}.json"
            detail = read_existing(path)
            if detail is None:
                continue

            league, position = merge_league(record, detail)
            if detail.get("league") == league and detail.get("groupPosition") == position:
                continue
            detail["league"] = league
            detail["groupPosition"] = position
            write_json(path, detail, quiet=True)
            updated += 1
    return updated


# ─── Live League Tier ────────────────────────────────────────────

def fetch_live_leagues(session, family_tags):
    """{bareTag: current league name} for clans the API answered for."""
    leagues = {}
    for tag in family_tags:
        name = fetch_clan_war_league(session, tag)
        if name:
            leagues[tag] = name
            print(f"  #{tag}: {name}")
    return leagues


def apply_live_leagues(seasons_dir, leagues):
    """Fill the latest season's missing league tiers from a live lookup.

    Tiers already present (from CSV or an earlier run) are never replaced.
    """
    seasons = list_season_dirs(seasons_dir)
    if not seasons or not leagues:
        return 0

    updated = 0
    latest = seasons[-1]
    for tag, name in sorted(leagues.items()):
        path = seasons_dir / latest / "clans" / f"{tag}.json"
        detail = read_existing(path)
        if detail is None:
            continue
        league = detail.get("league") or {"tier": None, "group": None}
        if league.get("tier"):
            continue
        league["tier"] = name
        detail["league"] = league
        write_json(path, detail, quiet=True)
        updated += 1
    return updated
