"""Career aggregation — fold every cached CWL snapshot into per-player careers.

Accumulation and finalization are separate: fold_war() only adds raw
counts into season records keyed by (player, season, clan), and
finalize_players() derives every average, rate and roll-up once all
snapshots are consumed. Roll-ups are always reductions over allSeasons.
"""

from collections import defaultdict

from pipeline.io_helpers import bare_tag, list_cache_files, parse_season_filename, read_json_or_warn
from pipeline.metrics import (
    calculate_performance_trend, calculate_reliability_breakdown, defense_summary,
)
from pipeline.snapshots import extract_wars, member_th, side_attacks, war_sides

STAR_BUCKETS = ("zeroStars", "oneStars", "twoStars", "threeStars")


def _new_season_record(member, season, side):
    return {
        "playerTag": member["tag"],
        "playerName": member.get("name") or "",
        "clanTag": side.get("tag") or "",
        "clanName": side.get("name") or "",
        "season": season,
        "stars": 0,
        "destruction": 0,
        "attacks": 0,
        "warsParticipated": 0,
        "th": member_th(member),
        "triples": 0,
        "starBuckets": dict.fromkeys(STAR_BUCKETS, 0),
        "timesAttacked": 0,
        "starsAllowed": 0,
        "avgStarsAllowed": 0,
        "triplesAllowed": 0,
        "defenseQuality": 100,
    }


def build_defender_index(own, opponent):
    """defenderTag → [{"starsAllowed", "isTriple"}] for every attack on both sides."""
    index = defaultdict(list)
    for side in (own, opponent):
        for attack in side_attacks(side):
            if attack.get("defenderTag") and attack.get("stars") is not None:
                index[attack["defenderTag"]].append({
                    "starsAllowed": attack["stars"],
                    "isTriple": attack["stars"] >= 3,
                })
    return index


def fold_war(season_index, own, opponent, season):
    """Add one war's roster, attacks and defenses into the season records.

    season_index maps (playerTag, season, clanTag) → PlayerSeasonStats.
    """
    defenders = build_defender_index(own, opponent)
    clan_tag = own.get("tag") or ""

    for member in own.get("members") or []:
        if not member.get("tag"):
            continue
        key = (member["tag"], season, clan_tag)
        if key not in season_index:
            season_index[key] = _new_season_record(member, season, own)
        record = season_index[key]

        record["warsParticipated"] += 1
        record["playerName"] = member.get("name") or record["playerName"]
        record["th"] = member_th(member) or record["th"]

        for attack in member.get("attacks") or []:
            stars = attack.get("stars") or 0
            record["attacks"] += 1
            record["stars"] += stars
            record["destruction"] += attack.get("destructionPercentage") or 0
            record["starBuckets"][STAR_BUCKETS[min(max(int(stars), 0), 3)]] += 1
            if stars >= 3:
                record["triples"] += 1

        for defense in defenders.get(member["tag"], []):
            record["timesAttacked"] += 1
            record["starsAllowed"] += defense["starsAllowed"]
            if defense["isTriple"]:
                record["triplesAllowed"] += 1


def _war_key(own, opponent, war):
    when = war.get("startTime") or war.get("endTime")
    if not when:
        return None
    return bare_tag(own.get("tag")), bare_tag(opponent.get("tag")), when


def fold_snapshot(season_index, seen_wars, snapshot, clan_tag, season):
    """Fold every war of one snapshot. Returns the number of wars folded."""
    folded = 0
    for war in extract_wars(snapshot):
        sides = war_sides(war, clan_tag)
        if sides is None:
            sides = (war.get("clan") or {}, war.get("opponent") or {})
        own, opponent = sides
        if not own.get("members"):
            continue

        key = _war_key(own, opponent, war)
        if key is not None:
            if key in seen_wars:
                continue
            seen_wars.add(key)

        fold_war(season_index, own, opponent, season)
        folded += 1
    return folded


# ─── Finalization ────────────────────────────────────────────────

def finalize_season(record):
    avg_allowed, quality = defense_summary(record["starsAllowed"], record["timesAttacked"])
    record["avgStarsAllowed"] = avg_allowed
    record["defenseQuality"] = quality


def build_league_history(seasons):
    """Per-tier season and attack counts, most attacks first."""
    history = {}
    for s in seasons:
        tier = s.get("leagueTier")
        if not tier:
            continue
        entry = history.setdefault(tier, {"leagueTier": tier, "seasonsPlayed": 0, "attacksInLeague": 0})
        entry["seasonsPlayed"] += 1
        entry["attacksInLeague"] += s["attacks"]
    return sorted(history.values(), key=lambda l: (-l["attacksInLeague"], l["leagueTier"]))


def pick_best_season(seasons):
    """Most stars among seasons with attacks; ties go to the most recent season."""
    candidates = [s for s in seasons if s["attacks"] > 0]
    if not candidates:
        return None
    best = max(candidates, key=lambda s: (s["stars"], s["season"], s["clanTag"]))
    return {
        "season": best["season"],
        "clanTag": best["clanTag"],
        "stars": best["stars"],
        "avgStars": round(best["stars"] / best["attacks"], 2),
    }


def compute_rollups(seasons):
    """Every career-level field derived from a list of season records."""
    total_attacks = sum(s["attacks"] for s in seasons)
    total_stars = sum(s["stars"] for s in seasons)
    total_destruction = sum(s["destruction"] for s in seasons)
    total_wars = sum(s["warsParticipated"] for s in seasons)
    triples = sum(s["triples"] for s in seasons)
    times_attacked = sum(s["timesAttacked"] for s in seasons)
    stars_allowed = sum(s["starsAllowed"] for s in seasons)

    avg_stars = round(total_stars / total_attacks, 2) if total_attacks else 0
    three_star_rate = round(triples / total_attacks * 100, 2) if total_attacks else 0
    career_avg_allowed, career_quality = defense_summary(stars_allowed, times_attacked)
    league_history = build_league_history(seasons)
    breakdown = calculate_reliability_breakdown(
        avg_stars, three_star_rate, total_attacks, total_wars, league_history,
    )

    return {
        "totalStars": total_stars,
        "totalDestructions": round(total_destruction, 2),
        "totalAttacks": total_attacks,
        "totalWars": total_wars,
        "avgStars": avg_stars,
        "avgDestruction": round(total_destruction / total_attacks, 2) if total_attacks else 0,
        "seasons": len({s["season"] for s in seasons}),
        "triples": triples,
        "starBuckets": {b: sum(s["starBuckets"][b] for s in seasons) for b in STAR_BUCKETS},
        "threeStarRate": three_star_rate,
        "reliabilityScore": breakdown["weighted"],
        "reliabilityBreakdown": breakdown,
        "missedAttacks": max(0, total_wars - total_attacks),
        "bestSeason": pick_best_season(seasons),
        "performanceTrend": calculate_performance_trend(seasons),
        "totalTimesAttacked": times_attacked,
        "totalStarsAllowed": stars_allowed,
        "totalTriplesAllowed": sum(s["triplesAllowed"] for s in seasons),
        "careerAvgStarsAllowed": career_avg_allowed,
        "careerDefenseQuality": career_quality,
        "primaryLeague": league_history[0]["leagueTier"] if league_history else None,
        "leagueHistory": league_history,
    }


def refresh_league_rollups(player):
    """Re-derive roll-ups after season records gained league data."""
    player.update(compute_rollups(player["allSeasons"]))


def finalize_players(season_index):
    """Group season records by player and derive every roll-up exactly once.

    Identity fields (name, clan, town hall) come from the most recent
    season record. Returns players sorted by total stars, then tag.
    """
    by_player = defaultdict(list)
    for record in season_index.values():
        finalize_season(record)
        by_player[record["playerTag"]].append(record)

    players = []
    for tag, seasons in by_player.items():
        seasons.sort(key=lambda s: (s["season"], s["clanTag"]))
        latest = seasons[-1]
        known_th = [s["th"] for s in seasons if s["th"]]
        player = {
            "playerTag": tag,
            "playerName": latest["playerName"],
            "clanTag": latest["clanTag"],
            "clanName": latest["clanName"],
            "th": known_th[-1] if known_th else None,
            "allSeasons": seasons,
        }
        player.update(compute_rollups(seasons))
        players.append(player)

    players.sort(key=lambda p: (-p["totalStars"], p["playerTag"]))
    return players


def aggregate_cwl_cache(cache_dir):
    """Scan every <TAG>-<YYYY-MM>.json snapshot and return finalized careers."""
    season_index = {}
    seen_wars = set()
    files = 0
    wars = 0

    for path in list_cache_files(cache_dir):
        parsed = parse_season_filename(path.name)
        if parsed is None:
            print(f"  Skipping {path.name}: not a <TAG>-<YYYY-MM>.json snapshot")
            continue
        clan_tag, season = parsed
        snapshot = read_json_or_warn(path)
        if not isinstance(snapshot, dict):
            continue
        wars += fold_snapshot(season_index, seen_wars, snapshot, clan_tag, season)
        files += 1

    players = finalize_players(season_index)
    print(f"  Folded {wars} wars from {files} snapshots into {len(players)} players")
    return players
