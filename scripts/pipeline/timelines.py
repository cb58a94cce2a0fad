"""War timelines — one file per CWL war, always seen from the family clan's side.

Reads cached snapshots and writes
history/seasons/<season>/clans/<TAG>/wars/<endTime>.json for every fetched
war a family clan played. These files feed the season-clan aggregation.
"""

from pipeline.io_helpers import (
    bare_tag, list_cache_files, parse_season_filename, read_json_or_warn, write_json,
)
from pipeline.snapshots import extract_wars, member_th, war_sides


def determine_war_result(clan_stars, opponent_stars, clan_destruction, opponent_destruction):
    """Stars decide; destruction breaks a star tie."""
    if clan_stars > opponent_stars:
        return "win"
    if clan_stars < opponent_stars:
        return "loss"
    if clan_destruction > opponent_destruction:
        return "win"
    if clan_destruction < opponent_destruction:
        return "loss"
    return "tie"


def safe_end_time(end_time):
    """'20240510T080000.000Z' → '20240510T080000000Z' for use as a filename."""
    return end_time.replace(":", "").replace(".", "")


def _member_index(side):
    return {
        m.get("tag"): {
            "name": m.get("name") or "Unknown",
            "th": member_th(m) or 0,
            "pos": m.get("mapPosition") or 0,
        }
        for m in side.get("members") or []
    }


def _timeline_attacks(side, attackers, defenders, side_name):
    unknown = {"name": "Unknown", "th": 0, "pos": 0}
    attacks = []
    for member in side.get("members") or []:
        for attack in member.get("attacks") or []:
            attacker = attackers.get(attack.get("attackerTag"), unknown)
            defender = defenders.get(attack.get("defenderTag"), unknown)
            attacks.append({
                "attackerTag": attack.get("attackerTag"),
                "attackerName": attacker["name"],
                "attackerTH": attacker["th"],
                "attackerMapPosition": attacker["pos"],
                "defenderTag": attack.get("defenderTag"),
                "defenderName": defender["name"],
                "defenderTH": defender["th"],
                "defenderMapPosition": defender["pos"],
                "stars": attack.get("stars") or 0,
                "destructionPercentage": attack.get("destructionPercentage") or 0,
                "duration": attack.get("duration"),
                "order": attack.get("order") or 0,
                "side": side_name,
            })
    return attacks


def _member_summaries(side, timeline, side_name, opponents):
    summaries = []
    for m in side.get("members") or []:
        own = [a for a in timeline if a["side"] == side_name and a["attackerTag"] == m.get("tag")]
        summary = {
            "tag": m.get("tag"),
            "name": m.get("name"),
            "townhallLevel": member_th(m),
            "mapPosition": m.get("mapPosition") or 0,
            "attacks": own,
            "stars": sum(a["stars"] for a in own),
            "destruction": sum(a["destructionPercentage"] for a in own),
            "opponentAttacks": m.get("opponentAttacks") or 0,
        }
        best = m.get("bestOpponentAttack")
        if best:
            attacker = opponents.get(best.get("attackerTag"))
            summary["bestOpponentAttack"] = {
                "stars": best.get("stars") or 0,
                "destructionPercentage": best.get("destructionPercentage") or 0,
                "attackerName": attacker["name"] if attacker else "Unknown",
            }
        summaries.append(summary)
    summaries.sort(key=lambda s: s["mapPosition"])
    return summaries


def _side_header(side):
    return {
        "tag": side.get("tag"),
        "name": side.get("name"),
        "clanLevel": side.get("clanLevel") or 0,
        "stars": side.get("stars") or 0,
        "destructionPercentage": side.get("destructionPercentage") or 0,
        "attacks": side.get("attacks") or 0,
    }


def build_war_timeline(war, season, clan_tag):
    """Timeline for one raw war from clan_tag's perspective, or None if it isn't theirs."""
    sides = war_sides(war, clan_tag)
    if sides is None or not war.get("endTime"):
        return None
    own, opponent = sides

    own_index = _member_index(own)
    opp_index = _member_index(opponent)
    timeline = (
        _timeline_attacks(own, own_index, opp_index, "clan")
        + _timeline_attacks(opponent, opp_index, own_index, "opponent")
    )
    timeline.sort(key=lambda a: a["order"])

    clan = _side_header(own)
    opp = _side_header(opponent)
    clan["members"] = _member_summaries(own, timeline, "clan", opp_index)
    opp["members"] = _member_summaries(opponent, timeline, "opponent", own_index)

    end_time = war["endTime"]
    return {
        "generatedAt": end_time,
        "season": season,
        "warTag": f"{bare_tag(own.get('tag'))}-{safe_end_time(end_time)}",
        "startTime": war.get("startTime") or "",
        "endTime": end_time,
        "teamSize": war.get("teamSize") or len(own.get("members") or []),
        "result": determine_war_result(
            clan["stars"], opp["stars"],
            clan["destructionPercentage"], opp["destructionPercentage"],
        ),
        "clan": clan,
        "opponent": opp,
        "attackTimeline": timeline,
    }


def build_snapshot_timelines(snapshot, season, clan_tag):
    """Timelines for every war clan_tag played in one snapshot."""
    timelines = []
    for war in extract_wars(snapshot):
        timeline = build_war_timeline(war, season, clan_tag)
        if timeline is not None:
            timelines.append(timeline)
    return timelines


def write_war_timelines(cache_dir, seasons_dir, family_tags):
    """Explode every family snapshot into per-war timeline files. Returns the war count."""
    total = 0
    for path in list_cache_files(cache_dir):
        parsed = parse_season_filename(path.name)
        if parsed is None:
            print(f"  Skipping {path.name}: not a <TAG>-<YYYY-MM>.json snapshot")
            continue
        clan_tag, season = parsed
        if clan_tag not in family_tags:
            continue

        snapshot = read_json_or_warn(path)
        if not isinstance(snapshot, dict):
            continue

        timelines = build_snapshot_timelines(snapshot, season, clan_tag)
        wars_dir = seasons_dir / season / "clans" / clan_tag / "wars"
        for timeline in timelines:
            write_json(wars_dir / f"{safe_end_time(timeline['endTime'])}.json", timeline, quiet=True)
        print(f"  {clan_tag} {season}: {len(timelines)} wars")
        total += len(timelines)
    return total
