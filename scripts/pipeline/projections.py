"""Roster projections — expected CWL output of a player in a given league.

Pure functions over career roll-ups and season records. No I/O.
"""

from pipeline.constants import (
    ATTACKS_PER_SEASON, EASIER_LEAGUE_BONUS, EASIER_LEAGUE_CAP,
    HARDER_LEAGUE_CAP, HARDER_LEAGUE_PENALTY, LEAGUE_TIERS,
)

MIN_WARS_FOR_FORM = 7

SCORING_WEIGHTS = {"reliability": 0.45, "avgStars": 0.35, "threeStarRate": 0.20}
FORM_WEIGHTS = {"avgStars": 0.70, "threeStarRate": 0.20, "reliability": 0.10}


def calculate_player_score(player):
    """0-1 roster ranking score from reliability, stars per attack and triple rate."""
    return (
        (player["reliabilityScore"] / 100) * SCORING_WEIGHTS["reliability"]
        + ((player["avgStars"] or 0) / 3) * SCORING_WEIGHTS["avgStars"]
        + (player["threeStarRate"] / 100) * SCORING_WEIGHTS["threeStarRate"]
    )


def calculate_form(player):
    """0-1 form score, damped for players with fewer than a season of wars."""
    wars = player["totalWars"]
    wars_factor = 1.0 if wars >= MIN_WARS_FOR_FORM else (wars / MIN_WARS_FOR_FORM) * 0.8
    base = (
        ((player["avgStars"] or 0) / 3) * FORM_WEIGHTS["avgStars"]
        + (player["threeStarRate"] / 100) * FORM_WEIGHTS["threeStarRate"]
        + (player["reliabilityScore"] / 100) * FORM_WEIGHTS["reliability"]
    )
    return base * wars_factor


def get_league_tier_distance(from_league, to_league):
    """Positive when to_league is harder. 0 if either league is unknown."""
    if from_league not in LEAGUE_TIERS or to_league not in LEAGUE_TIERS:
        return 0
    return LEAGUE_TIERS.index(to_league) - LEAGUE_TIERS.index(from_league)


def get_most_common_league(seasons):
    """League played most, weighting later seasons more (1, 2, 3, ...).

    seasons must be in chronological order. Ties go to the league seen last.
    """
    weights = {}
    last_seen = {}
    tiers = [s["leagueTier"] for s in seasons if s.get("leagueTier")]
    for i, tier in enumerate(tiers):
        weights[tier] = weights.get(tier, 0) + i + 1
        last_seen[tier] = i
    if not weights:
        return None
    return max(weights, key=lambda t: (weights[t], last_seen[t]))


def get_league_adjusted_projection(avg_stars, target_league, seasons=None):
    """Projected season stars for a player moving into target_league.

    Harder leagues cost 5% per tier (max 15%), easier ones add 4% per tier
    (max 10%). Without league history the unadjusted projection is returned
    with low confidence.
    """
    avg_stars = avg_stars or 0
    historical = get_most_common_league(seasons or [])
    if historical is None:
        return {
            "projectedStars": round(avg_stars * ATTACKS_PER_SEASON, 2),
            "adjustment": 0,
            "confidence": "low",
            "historicalLeague": None,
        }

    distance = get_league_tier_distance(historical, target_league)
    if distance == 0:
        adjustment, confidence = 0, "high"
    elif distance > 0:
        adjustment = max(-HARDER_LEAGUE_CAP, -HARDER_LEAGUE_PENALTY * distance)
        confidence = "medium" if distance == 1 else "low"
    else:
        adjustment = min(EASIER_LEAGUE_CAP, EASIER_LEAGUE_BONUS * -distance)
        confidence = "medium"

    adjusted = avg_stars * (1 + adjustment / 100)
    return {
        "projectedStars": round(adjusted * ATTACKS_PER_SEASON, 2),
        "adjustment": adjustment,
        "confidence": confidence,
        "historicalLeague": historical,
    }
