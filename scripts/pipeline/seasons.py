"""Season summaries — per-season family roll-up, the seasons index, and player → seasons lookup.

All three are built from the season-clan files written earlier in the run.
"""

from collections import defaultdict

from pipeline.io_helpers import list_season_dirs, read_existing, write_json


def load_season_details(seasons_dir, family_tags):
    """{season: [(bareTag, detail), ...]} for every family season-clan file present."""
    details = {}
    for season in list_season_dirs(seasons_dir):
        found = []
        for tag in family_tags:
            detail = read_existing(seasons_dir / season / "clans" / f"{tag}.json")
            if isinstance(detail, dict) and "stats" in detail:
                found.append((tag, detail))
        if found:
            details[season] = found
    return details


def build_season_family(season, clan_details, league_map):
    """Family summary for one season: one row per clan, most stars first."""
    clans = []
    for tag, detail in clan_details:
        stats = detail["stats"]
        record = league_map.get((tag, season))
        clans.append({
            "name": detail["clan"].get("name"),
            "tag": detail["clan"].get("tag"),
            "stars": stats["stars"],
            "destruction": round(stats["destruction"], 2),
            "rounds": {
                "won": stats["warsWon"],
                "tied": stats["warsTied"],
                "lost": stats["warsLost"],
            },
            "groupPosition": detail.get("groupPosition"),
            "roster": len(detail.get("roster") or []),
            "state": detail.get("state") or "ended",
            "league": record["leagueName"] if record else (detail.get("league") or {}).get("tier"),
        })
    if not clans:
        return None

    clans.sort(key=lambda c: (-c["stars"], c["tag"] or ""))
    states = sorted({c["state"] for c in clans} - {"ended"})
    return {
        "generatedAt": max(d.get("generatedAt") or "" for _, d in clan_details),
        "season": season,
        "state": states[0] if states else "ended",
        "clans": clans,
    }


def _index_clan(tag, family_clan, record):
    if record:
        return {
            "clanTag": tag,
            "clanName": record.get("name") or family_clan["name"] or "Unknown",
            "leagueId": record.get("leagueId") or "",
            "leagueName": record["leagueName"],
            "position": record.get("position"),
            "stars": record.get("stars") or 0,
            "destruction": record.get("destruction") or 0,
            "wins": record.get("victories") or 0,
            "losses": record.get("defeats") or 0,
            "draws": record.get("draws") or 0,
        }
    return {
        "clanTag": tag,
        "clanName": family_clan["name"] or "Unknown",
        "leagueId": "",
        "leagueName": family_clan["league"] or "Unknown",
        "position": family_clan["groupPosition"],
        "stars": family_clan["stars"],
        "destruction": family_clan["destruction"],
        "wins": family_clan["rounds"]["won"],
        "losses": family_clan["rounds"]["lost"],
        "draws": family_clan["rounds"]["tied"],
    }


def build_seasons_index(families, league_map):
    """Every season with its clans' league results, newest season first.

    CSV rows are authoritative; the family summary fills in clans the CSV
    doesn't cover.
    """
    seasons = []
    for season in sorted(families, reverse=True):
        family = families[season]
        clans = []
        for clan in family["clans"]:
            tag = (clan["tag"] or "").lstrip("#")
            clans.append(_index_clan(tag, clan, league_map.get((tag, season))))
        seasons.append({"season": season, "state": family["state"], "clans": clans})
    return {
        "generatedAt": max((f["generatedAt"] for f in families.values()), default=""),
        "seasons": seasons,
    }


def build_player_seasons_index(season_details):
    """playerTag → [{season, clanTag}] from season-clan rosters, newest first."""
    index = defaultdict(list)
    for season in sorted(season_details):
        for tag, detail in season_details[season]:
            for entry in detail.get("roster") or []:
                if not entry.get("tag"):
                    continue
                item = {"season": season, "clanTag": tag}
                if item not in index[entry["tag"]]:
                    index[entry["tag"]].append(item)

    return {
        player: sorted(entries, key=lambda e: (e["season"], e["clanTag"]), reverse=True)
        for player, entries in sorted(index.items())
    }


def write_season_outputs(data_dir, seasons_dir, family_tags, league_map):
    """Write family.json per season, history/seasons.json and player-seasons-index.json."""
    season_details = load_season_details(seasons_dir, family_tags)
    if not season_details:
        print("  No season-clan files found, skipping season summaries")
        return 0

    families = {}
    for season, clan_details in season_details.items():
        family = build_season_family(season, clan_details, league_map)
        if family is None:
            continue
        write_json(seasons_dir / season / "family.json", family, quiet=True)
        families[season] = family
    print(f"  Wrote family.json for {len(families)} seasons")

    write_json(seasons_dir.parent / "seasons.json", build_seasons_index(families, league_map))
    write_json(data_dir / "player-seasons-index.json", build_player_seasons_index(season_details))
    return len(families)
