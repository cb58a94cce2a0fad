"""Season-clan aggregation — fold one clan's war timelines into a season summary.

Every roster member is counted for every war they were listed in, whether
or not they attacked. Defense uses the single bestOpponentAttack recorded
per defender per war, so a base hit several times in one war counts once.
"""

from pipeline.io_helpers import list_season_dirs, read_existing, read_json_or_warn, write_json
from pipeline.league import merge_league
from pipeline.metrics import defense_summary
from pipeline.snapshots import member_th


def _new_player(member):
    return {
        "tag": member.get("tag"),
        "name": member.get("name"),
        "townHallLevel": member_th(member),
        "warsParticipated": 0,
        "attacks": 0,
        "stars": 0,
        "destruction": 0,
        "triples": 0,
        "zeroStars": 0,
        "oneStars": 0,
        "twoStars": 0,
        "bestDestruction": 0,
        "durationTotal": 0,
        "durationSamples": 0,
        "bestAttack": {"stars": 0, "destruction": 0},
        "timesAttacked": 0,
        "starsAllowed": 0,
        "triplesAllowed": 0,
    }


def is_better_attack(stars, destruction, duration, best):
    """More stars, then more destruction, then a faster attack.

    An attack without a duration never wins a tie against one that has it.
    """
    if stars != best["stars"]:
        return stars > best["stars"]
    if destruction != best["destruction"]:
        return destruction > best["destruction"]
    if duration is None:
        return False
    return best.get("duration") is None or duration < best["duration"]


def fold_attack(player, attack):
    """Add one attack to a player's running season totals."""
    stars = attack.get("stars") or 0
    destruction = attack.get("destructionPercentage") or 0
    duration = attack.get("duration")

    player["attacks"] += 1
    player["stars"] += stars
    player["destruction"] += destruction
    if stars >= 3:
        player["triples"] += 1
    elif stars == 2:
        player["twoStars"] += 1
    elif stars == 1:
        player["oneStars"] += 1
    else:
        player["zeroStars"] += 1

    player["bestDestruction"] = max(player["bestDestruction"], destruction)
    if duration:
        player["durationTotal"] += duration
        player["durationSamples"] += 1
    if is_better_attack(stars, destruction, duration, player["bestAttack"]):
        player["bestAttack"] = {"stars": stars, "destruction": destruction, "duration": duration}


def fold_member(player, member):
    """Count one war appearance: roster slot, attacks, and the best defense against them."""
    player["warsParticipated"] += 1
    th = member_th(member)
    if th:
        player["townHallLevel"] = th

    for attack in member.get("attacks") or []:
        fold_attack(player, attack)

    best = member.get("bestOpponentAttack")
    if best:
        player["timesAttacked"] += 1
        player["starsAllowed"] += best.get("stars") or 0
        if (best.get("stars") or 0) >= 3:
            player["triplesAllowed"] += 1


def finalize_roster_entry(player):
    attacks = player["attacks"]
    wars = player["warsParticipated"]
    avg_allowed, quality = defense_summary(player["starsAllowed"], player["timesAttacked"])

    entry = dict(player)
    samples = entry.pop("durationSamples")
    duration_total = entry.pop("durationTotal")
    entry.update({
        "avgStars": round(player["stars"] / attacks, 2) if attacks else 0,
        "avgDestruction": round(player["destruction"] / attacks, 2) if attacks else 0,
        "missedAttacks": max(0, wars - attacks),
        "threeStarRate": round(player["triples"] / attacks * 100, 2) if attacks else 0,
        "reliabilityScore": round(attacks / wars * 100, 2) if wars else 0,
        "avgStarsAllowed": avg_allowed,
        "defenseQuality": quality,
    })
    if samples:
        entry["durationTotal"] = duration_total
        entry["durationSamples"] = samples
        entry["avgDuration"] = round(duration_total / samples, 2)
    return entry


def _season_war(timeline):
    clan = timeline["clan"]
    opponent = timeline["opponent"]
    return {
        "warTag": timeline.get("warTag"),
        "startTime": timeline.get("startTime"),
        "endTime": timeline.get("endTime"),
        "teamSize": timeline.get("teamSize"),
        "result": timeline.get("result"),
        "starsFor": clan.get("stars") or 0,
        "starsAgainst": opponent.get("stars") or 0,
        "destructionFor": clan.get("destructionPercentage") or 0,
        "destructionAgainst": opponent.get("destructionPercentage") or 0,
        "opponent": {
            "tag": opponent.get("tag"),
            "name": opponent.get("name"),
            "clanLevel": opponent.get("clanLevel"),
        },
    }


def aggregate_season_clan(season, timelines, league_record=None, existing=None):
    """Build a SeasonClanDetail from one clan's war timelines for one season.

    Args:
        season: "YYYY-MM"
        timelines: parsed war-timeline dicts, any order
        league_record: matching league CSV record, if any
        existing: the previously written detail file, if any

    Returns None when there are no wars.
    """
    if not timelines:
        return None
    timelines = sorted(timelines, key=lambda t: t.get("startTime") or "")

    players = {}
    wars = []
    results = {"win": 0, "loss": 0, "tie": 0}
    totals = {"stars": 0, "destruction": 0, "attacks": 0}

    for timeline in timelines:
        clan = timeline["clan"]
        result = timeline.get("result")
        results[result if result in results else "tie"] += 1
        wars.append(_season_war(timeline))
        totals["stars"] += clan.get("stars") or 0
        totals["destruction"] += clan.get("destructionPercentage") or 0
        totals["attacks"] += clan.get("attacks") or 0

        for member in clan.get("members") or []:
            if not member.get("tag"):
                continue
            if member["tag"] not in players:
                players[member["tag"]] = _new_player(member)
            fold_member(players[member["tag"]], member)

    roster = [finalize_roster_entry(p) for p in players.values()]
    roster.sort(key=lambda p: (-p["stars"], p["tag"]))

    league, position = merge_league(league_record, existing)
    war_count = len(timelines)
    first_clan = timelines[0]["clan"]

    return {
        "generatedAt": max(t.get("endTime") or "" for t in timelines),
        "season": season,
        "clan": {
            "tag": first_clan.get("tag"),
            "name": first_clan.get("name"),
            "clanLevel": first_clan.get("clanLevel") or 0,
        },
        "league": league,
        "groupPosition": position,
        "state": (existing or {}).get("state") or "ended",
        "stats": {
            "warsPlayed": war_count,
            "warsWon": results["win"],
            "warsLost": results["loss"],
            "warsTied": results["tie"],
            "stars": totals["stars"],
            "destruction": round(totals["destruction"], 2),
            "attacks": totals["attacks"],
            "winRate": round(results["win"] / war_count * 100, 2),
            "avgDefenseQuality": round(
                sum(p["defenseQuality"] for p in roster) / len(roster), 2
            ) if roster else 0,
            "hardestToThreeCount": sum(1 for p in roster if p["triplesAllowed"] == 0),
        },
        "wars": wars,
        "roster": roster,
    }


def load_timelines(wars_dir):
    """Parse every war file in a clan's wars/ directory, skipping unreadable ones."""
    timelines = []
    for path in sorted(wars_dir.glob("*.json")):
        timeline = read_json_or_warn(path)
        if isinstance(timeline, dict) and isinstance(timeline.get("clan"), dict) \
                and isinstance(timeline.get("opponent"), dict):
            timelines.append(timeline)
        elif timeline is not None:
            print(f"  Warning: {path.name} is not a war timeline, skipping")
    return timelines


def build_season_clan_details(seasons_dir, family_tags, league_map):
    """Write history/seasons/<season>/clans/<TAG>.json for every clan with war files.

    Returns the number of season-clan files written.
    """
    if not seasons_dir.exists():
        print(f"  No history directory at {seasons_dir}")
        return 0

    written = 0
    for season in list_season_dirs(seasons_dir):
        clans_dir = seasons_dir / season / "clans"
        for tag in family_tags:
            wars_dir = clans_dir / tag / "wars"
            if not wars_dir.exists():
                continue
            timelines = load_timelines(wars_dir)
            path = clans_dir / f"{tag}.json"
            detail = aggregate_season_clan(
                season, timelines,
                league_record=league_map.get((tag, season)),
                existing=read_existing(path),
            )
            if detail is None:
                continue
            write_json(path, detail, quiet=True)
            tier = detail["league"]["tier"] or "No league"
            print(f"  {season} {tag}: {len(timelines)} wars, {len(detail['roster'])} players, {tier}")
            written += 1
    return written
