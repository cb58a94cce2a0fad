"""Shared test factories for pipeline tests.

Provides factory functions for raw CWL snapshot wars, war timelines and
season records with sensible defaults and easy overrides.
"""

import json
import sys
from pathlib import Path

# Add scripts/ to path so we can import the pipeline package
SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

DATA_DIR = SCRIPTS_DIR.parent / "public" / "data"

FAMILY_TAG = "#P0J2J8GJ"
FAMILY_BARE = "P0J2J8GJ"
OTHER_FAMILY_TAG = "#JPRPRVUY"
OUTSIDE_TAG = "#2QQQQQQQ"


# ─── Raw Snapshot Factories ──────────────────────────────────────

def make_attack(attacker="#A1", defender="#D1", stars=2, destruction=75.0, order=1, duration=120):
    return {
        "attackerTag": attacker,
        "defenderTag": defender,
        "stars": stars,
        "destructionPercentage": destruction,
        "order": order,
        "duration": duration,
    }


def make_member(tag, name=None, th=15, pos=1, attacks=None, best_opponent_attack=None, **overrides):
    """Raw war member as returned by the CoC API."""
    member = {
        "tag": tag,
        "name": name or f"Player {tag.lstrip('#')}",
        "townhallLevel": th,
        "mapPosition": pos,
        "opponentAttacks": 1 if best_opponent_attack else 0,
    }
    if attacks is not None:
        member["attacks"] = attacks
    if best_opponent_attack is not None:
        member["bestOpponentAttack"] = best_opponent_attack
    member.update(overrides)
    return member


def make_side(tag, members, name=None, stars=None, destruction=None, clan_level=10):
    """One side of a war. Stars and attack count default to the sum over members."""
    attacks = [a for m in members for a in m.get("attacks", [])]
    return {
        "tag": tag,
        "name": name or f"Clan {tag.lstrip('#')}",
        "clanLevel": clan_level,
        "attacks": len(attacks),
        "stars": sum(a["stars"] for a in attacks) if stars is None else stars,
        "destructionPercentage": 50.0 if destruction is None else destruction,
        "members": members,
    }


def make_war(clan_members, opponent_members, clan_tag=FAMILY_TAG, opponent_tag="#OPP1",
             start="20240502T080000.000Z", end="20240503T080000.000Z", state="warEnded",
             clan_stars=None, opponent_stars=None, clan_destruction=None, opponent_destruction=None):
    """Raw CWL war dict as cached inside a snapshot's rounds[].warTags[]."""
    return {
        "state": state,
        "teamSize": len(clan_members),
        "preparationStartTime": start,
        "startTime": start,
        "endTime": end,
        "clan": make_side(clan_tag, clan_members, stars=clan_stars, destruction=clan_destruction),
        "opponent": make_side(opponent_tag, opponent_members, stars=opponent_stars,
                              destruction=opponent_destruction),
    }


def make_snapshot(wars, season="2024-05", flat=False):
    """CWL group snapshot. One war per round unless flat=True (legacy warTags list)."""
    if flat:
        return {"state": "ended", "season": season, "warTags": wars}
    return {
        "state": "ended",
        "season": season,
        "clans": [],
        "rounds": [{"warTags": [w]} for w in wars],
    }


def write_snapshot(cache_dir, tag, season, snapshot):
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = cache_dir / f"{tag.lstrip('#')}-{season}.json"
    path.write_text(json.dumps(snapshot), encoding="utf-8")
    return path


# ─── War Timeline Factory ────────────────────────────────────────

def make_timeline_member(tag, attacks=(), best_opponent_attack=None, th=15, pos=1, name=None):
    """Member summary inside a war timeline. attacks: (stars, destruction, duration) tuples."""
    member = {
        "tag": tag,
        "name": name or f"Player {tag.lstrip('#')}",
        "townhallLevel": th,
        "mapPosition": pos,
        "attacks": [
            {"stars": s, "destructionPercentage": d, "duration": t}
            for s, d, t in attacks
        ],
        "stars": sum(a[0] for a in attacks),
        "destruction": sum(a[1] for a in attacks),
        "opponentAttacks": 1 if best_opponent_attack else 0,
    }
    if best_opponent_attack is not None:
        member["bestOpponentAttack"] = {
            "stars": best_opponent_attack,
            "destructionPercentage": 100 if best_opponent_attack == 3 else 60,
            "attackerName": "Enemy",
        }
    return member


def make_timeline(members, result="win", start="20240502T080000.000Z", end="20240503T080000.000Z",
                  clan_stars=20, opponent_stars=15, season="2024-05", clan_tag=FAMILY_TAG):
    """War timeline as written by the timeline builder."""
    return {
        "generatedAt": end,
        "season": season,
        "warTag": f"{clan_tag.lstrip('#')}-{end}",
        "startTime": start,
        "endTime": end,
        "teamSize": len(members),
        "result": result,
        "clan": {
            "tag": clan_tag,
            "name": "coc masters PL",
            "clanLevel": 20,
            "stars": clan_stars,
            "destructionPercentage": 80.5,
            "attacks": sum(len(m.get("attacks") or []) for m in members),
            "members": members,
        },
        "opponent": {
            "tag": "#OPP1",
            "name": "Opponent",
            "clanLevel": 18,
            "stars": opponent_stars,
            "destructionPercentage": 70.25,
            "attacks": len(members),
            "members": [],
        },
        "attackTimeline": [],
    }


# ─── Season Record Factories ─────────────────────────────────────

def make_season(season="2024-05", clan_tag=FAMILY_TAG, stars=0, attacks=0, wars=None,
                triples=0, player_tag="#PLAYER1", **overrides):
    """PlayerSeasonStats as written to players-aggregated.json."""
    wars = attacks if wars is None else wars
    other = attacks - triples
    record = {
        "playerTag": player_tag,
        "playerName": "Player One",
        "clanTag": clan_tag,
        "clanName": f"Clan {clan_tag.lstrip('#')}",
        "season": season,
        "stars": stars,
        "destruction": attacks * 80.0,
        "attacks": attacks,
        "warsParticipated": wars,
        "th": 15,
        "triples": triples,
        "starBuckets": {"zeroStars": 0, "oneStars": 0, "twoStars": other, "threeStars": triples},
        "timesAttacked": 0,
        "starsAllowed": 0,
        "avgStarsAllowed": 0,
        "triplesAllowed": 0,
        "defenseQuality": 100,
    }
    record.update(overrides)
    return record


def make_player(seasons, tag="#PLAYER1", name="Player One"):
    """AggregatedPlayer with roll-ups derived from seasons."""
    from pipeline.careers import compute_rollups

    latest = max(seasons, key=lambda s: s["season"])
    player = {
        "playerTag": tag,
        "playerName": name,
        "clanTag": latest["clanTag"],
        "clanName": latest["clanName"],
        "th": 15,
        "allSeasons": seasons,
    }
    player.update(compute_rollups(seasons))
    return player


# ─── Real JSON Loader ────────────────────────────────────────────

def load_real_json(filename):
    """Load a real JSON file from public/data/. Returns None if not found."""
    path = DATA_DIR / filename
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
