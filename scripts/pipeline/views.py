"""Global views — family-only leaderboard, per-player detail files and the player index.

Only season records played for a family clan count here. A player who also
played for outside clans has every total recomputed from the family
seasons alone.
"""

from pipeline.careers import compute_rollups
from pipeline.io_helpers import bare_tag, write_json
from pipeline.projections import (
    calculate_form, calculate_player_score, get_league_adjusted_projection,
)


def family_seasons(player, family_tags):
    return [s for s in player.get("allSeasons") or [] if bare_tag(s.get("clanTag")) in family_tags]


def _latest(seasons):
    return max(seasons, key=lambda s: (s["season"], s["clanTag"]))


def _family_rollups(seasons):
    """Career roll-ups over family seasons; avgStars is None without attacks."""
    rollups = compute_rollups(seasons)
    if rollups["totalAttacks"] == 0:
        rollups["avgStars"] = None
    return rollups


def build_global_player(player, seasons):
    """One leaderboard row. Display fields come from the latest family season."""
    rollups = _family_rollups(seasons)
    latest = _latest(seasons)
    return {
        "name": latest.get("playerName") or player.get("playerName"),
        "tag": player["playerTag"],
        "clan": latest.get("clanName") or player.get("clanName"),
        "clanTag": bare_tag(latest.get("clanTag") or player.get("clanTag")),
        "th": latest.get("th") or player.get("th") or 0,
        "stars": rollups["totalStars"],
        "attacks": rollups["totalAttacks"],
        "avgStars": rollups["avgStars"],
        "wars": rollups["totalWars"],
        "triples": rollups["triples"],
        "threeStarRate": rollups["threeStarRate"],
        "missedAttacks": rollups["missedAttacks"],
        "reliabilityScore": rollups["reliabilityScore"],
        "defenseQuality": rollups["careerDefenseQuality"],
        "primaryLeague": rollups["primaryLeague"],
    }


def build_player_detail(player, seasons):
    """Career file for one player: family seasons newest first plus derived stats."""
    rollups = _family_rollups(seasons)
    chronological = sorted(seasons, key=lambda s: (s["season"], s["clanTag"]))
    latest = chronological[-1]

    target_league = latest.get("leagueTier") or rollups["primaryLeague"]
    projection = None
    if target_league:
        projection = get_league_adjusted_projection(rollups["avgStars"], target_league, chronological)

    return {
        "playerTag": player["playerTag"],
        "playerName": latest.get("playerName") or player.get("playerName"),
        "th": latest.get("th") or player.get("th"),
        "seasons": chronological[::-1],
        "totalStars": rollups["totalStars"],
        "totalAttacks": rollups["totalAttacks"],
        "totalWars": rollups["totalWars"],
        "avgStars": rollups["avgStars"],
        "avgDestruction": rollups["avgDestruction"],
        "seasons_count": rollups["seasons"],
        "starBuckets": rollups["starBuckets"],
        "threeStarRate": rollups["threeStarRate"],
        "missedAttacks": rollups["missedAttacks"],
        "reliabilityScore": rollups["reliabilityScore"],
        "reliabilityBreakdown": rollups["reliabilityBreakdown"],
        "careerDefenseQuality": rollups["careerDefenseQuality"],
        "bestSeason": rollups["bestSeason"],
        "performanceTrend": rollups["performanceTrend"],
        "primaryLeague": rollups["primaryLeague"],
        "leagueHistory": rollups["leagueHistory"],
        "rosterScore": round(calculate_player_score(rollups), 4),
        "form": round(calculate_form(rollups), 4),
        "projection": projection,
    }


def build_global_views(players, family_tags):
    """Project enriched careers onto the family.

    Returns (leaderboard, {bareTag: detail}, index). The leaderboard is
    sorted by stars descending, ties by tag.
    """
    leaderboard = []
    details = {}
    index = []

    for player in players:
        seasons = family_seasons(player, family_tags)
        if not seasons:
            continue
        row = build_global_player(player, seasons)
        detail = build_player_detail(player, seasons)
        leaderboard.append(row)
        details[bare_tag(player["playerTag"])] = detail
        index.append({
            "tag": row["tag"],
            "name": row["name"],
            "th": row["th"],
            "totalStars": row["stars"],
            "totalAttacks": row["attacks"],
            "seasons": detail["seasons_count"],
        })

    leaderboard.sort(key=lambda p: (-p["stars"], p["tag"]))
    index.sort(key=lambda p: (-p["totalStars"], p["tag"]))
    return leaderboard, details, index


def write_global_views(data_dir, players, family_tags, players_subdir):
    """Write players.json, players-index.json and one players/<TAG>.json per family player."""
    leaderboard, details, index = build_global_views(players, family_tags)

    players_dir = data_dir / players_subdir
    for tag, detail in sorted(details.items()):
        write_json(players_dir / f"{tag}.json", detail, quiet=True)
    print(f"  Wrote {len(details)} player detail files")

    write_json(data_dir / "players.json", leaderboard)
    write_json(data_dir / "players-index.json", index)

    if leaderboard:
        total_stars = sum(p["stars"] for p in leaderboard)
        total_attacks = sum(p["attacks"] for p in leaderboard)
        avg = total_stars / total_attacks if total_attacks else 0
        print(f"  {len(leaderboard)} family players, {total_stars} stars, {avg:.2f} stars/attack")
    return len(leaderboard)
