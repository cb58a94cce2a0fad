"""Derived metrics shared by the aggregation stages.

Pure functions of their arguments. No I/O, no side effects.
"""

from pipeline.constants import (
    DEFAULT_LEAGUE_SCORE, LEAGUE_TIER_SCORES, RELIABILITY_WEIGHTS,
    TREND_THRESHOLD, TREND_WINDOW,
)


def defense_summary(stars_allowed, times_attacked):
    """(avgStarsAllowed, defenseQuality) rounded to 2 decimals.

    A defender nobody attacked scores a perfect 100.
    """
    if times_attacked <= 0:
        return 0, 100
    avg = stars_allowed / times_attacked
    return round(avg, 2), round(max(0, 100 - avg / 3 * 100), 2)


def stars_per_attack(record):
    attacks = record.get("attacks") or 0
    return record.get("stars", 0) / attacks if attacks > 0 else 0


def league_adjustment_score(league_history):
    """Attack-weighted mean tier score; unknown tiers and no history score 50."""
    total_attacks = sum(l["attacksInLeague"] for l in league_history or [])
    if total_attacks <= 0:
        return DEFAULT_LEAGUE_SCORE
    weighted = sum(
        LEAGUE_TIER_SCORES.get(l["leagueTier"], DEFAULT_LEAGUE_SCORE) * l["attacksInLeague"]
        for l in league_history
    )
    return weighted / total_attacks


def calculate_reliability_breakdown(avg_stars, three_star_rate, attacks, wars, league_history=None):
    """Composite 0-100 reliability from performance, attendance and league difficulty.

    Args:
        avg_stars: stars per attack (0-3)
        three_star_rate: percentage of attacks that tripled (0-100)
        attacks: attacks made
        wars: wars rostered
        league_history: [{"leagueTier": str, "attacksInLeague": int}, ...]
    """
    performance = (avg_stars / 3) * 50 + (three_star_rate / 100) * 50
    attendance = min(100, attacks / wars * 100) if wars > 0 else 0
    league_adj = league_adjustment_score(league_history)

    weighted = (
        performance * RELIABILITY_WEIGHTS["performance"]
        + attendance * RELIABILITY_WEIGHTS["attendance"]
        + league_adj * RELIABILITY_WEIGHTS["leagueAdj"]
    )
    return {
        "performance": round(performance, 2),
        "attendance": round(attendance, 2),
        "leagueAdj": round(league_adj, 2),
        "weighted": round(weighted, 2),
    }


def calculate_performance_trend(seasons):
    """'improving', 'declining' or 'stable' over the most recent season records.

    Compares stars per attack of the first and last record in the last
    TREND_WINDOW chronologically sorted records. None with fewer than two.
    """
    if len(seasons) < 2:
        return None
    recent = sorted(seasons, key=lambda s: (s["season"], s["clanTag"]))[-TREND_WINDOW:]
    diff = stars_per_attack(recent[-1]) - stars_per_attack(recent[0])
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "stable"
