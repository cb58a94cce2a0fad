"""Category B: Season-Clan Aggregation Tests

Tests for folding war timelines into one clan's season summary.
Core question: does every roster slot, attack and defense land exactly once?
"""

import json

import pytest
from helpers import FAMILY_BARE, make_timeline, make_timeline_member

from pipeline.season_clans import (
    aggregate_season_clan,
    build_season_clan_details,
    is_better_attack,
)


def roster_by_tag(detail):
    return {p["tag"]: p for p in detail["roster"]}


# ─── B1: Every roster member counts, attacked or not ─────────────

class TestB1_RosterCounting:
    """warsParticipated counts roster appearances, not attacks."""

    def test_fifteen_listed_twelve_attacked(self):
        members = [
            make_timeline_member(f"#P{i:02d}", attacks=[(2, 70.0, 100)] if i < 12 else [], pos=i + 1)
            for i in range(15)
        ]
        detail = aggregate_season_clan("2024-05", [make_timeline(members)])
        roster = roster_by_tag(detail)

        assert len(roster) == 15
        assert all(p["warsParticipated"] == 1 for p in roster.values())
        skipped = [roster[f"#P{i:02d}"] for i in range(12, 15)]
        assert all(p["attacks"] == 0 for p in skipped)
        assert all(p["missedAttacks"] == 1 for p in skipped)
        assert all(p["reliabilityScore"] == 0 for p in skipped)

    def test_appearances_accumulate_across_wars(self):
        wars = [
            make_timeline([make_timeline_member("#P1", attacks=[(3, 100.0, 90)])],
                          start=f"2024050{d}T080000.000Z", end=f"2024050{d + 1}T080000.000Z")
            for d in range(1, 4)
        ] + [make_timeline([make_timeline_member("#P1")],
                           start="20240505T080000.000Z", end="20240506T080000.000Z")]
        player = roster_by_tag(aggregate_season_clan("2024-05", wars))["#P1"]
        assert player["warsParticipated"] == 4
        assert player["attacks"] == 3
        assert player["missedAttacks"] == 1
        assert player["reliabilityScore"] == 75.0


# ─── B2: Star buckets sum to attacks ─────────────────────────────

class TestB2_StarBuckets:
    """Each attack lands in exactly one star bucket."""

    def test_buckets_sum_to_attacks(self):
        attacks = [(0, 20.0, 180), (1, 45.0, 180), (2, 70.0, 150), (3, 100.0, 120), (3, 100.0, 100)]
        detail = aggregate_season_clan(
            "2024-05", [make_timeline([make_timeline_member("#P1", attacks=attacks)])])
        p = detail["roster"][0]
        assert p["zeroStars"] + p["oneStars"] + p["twoStars"] + p["triples"] == p["attacks"] == 5
        assert p["triples"] == 2
        assert p["threeStarRate"] == 40.0
        assert p["avgStars"] == 1.8

    def test_duration_average(self):
        detail = aggregate_season_clan(
            "2024-05", [make_timeline([make_timeline_member("#P1", attacks=[(2, 70.0, 100), (2, 70.0, 200)])])])
        p = detail["roster"][0]
        assert p["durationSamples"] == 2
        assert p["avgDuration"] == 150.0

    def test_no_duration_fields_without_samples(self):
        detail = aggregate_season_clan(
            "2024-05", [make_timeline([make_timeline_member("#P1", attacks=[(2, 70.0, None)])])])
        assert "avgDuration" not in detail["roster"][0]


# ─── B3: Best attack tie-break ───────────────────────────────────

class TestB3_BestAttack:
    """Stars, then destruction, then the faster attack."""

    def test_more_stars_wins(self):
        assert is_better_attack(3, 50.0, 200, {"stars": 2, "destruction": 99.0, "duration": 10})

    def test_more_destruction_wins_star_tie(self):
        assert is_better_attack(2, 90.0, 200, {"stars": 2, "destruction": 80.0, "duration": 10})

    def test_faster_wins_full_tie(self):
        assert is_better_attack(3, 100.0, 90, {"stars": 3, "destruction": 100.0, "duration": 120})
        assert not is_better_attack(3, 100.0, 150, {"stars": 3, "destruction": 100.0, "duration": 120})

    def test_missing_duration_never_wins_tie(self):
        assert not is_better_attack(3, 100.0, None, {"stars": 3, "destruction": 100.0, "duration": 120})

    def test_present_duration_beats_missing(self):
        assert is_better_attack(3, 100.0, 300, {"stars": 3, "destruction": 100.0, "duration": None})

    def test_best_attack_in_roster(self):
        attacks = [(3, 100.0, 150), (3, 100.0, 95), (2, 99.0, 30)]
        detail = aggregate_season_clan(
            "2024-05", [make_timeline([make_timeline_member("#P1", attacks=attacks)])])
        assert detail["roster"][0]["bestAttack"] == {"stars": 3, "destruction": 100.0, "duration": 95}


# ─── B4: Defense quality ─────────────────────────────────────────

class TestB4_DefenseQuality:
    """defenseQuality = max(0, 100 - avgStarsAllowed/3*100), 100 if never attacked."""

    def test_never_attacked_is_perfect(self):
        detail = aggregate_season_clan("2024-05", [make_timeline([make_timeline_member("#P1")])])
        p = detail["roster"][0]
        assert p["timesAttacked"] == 0
        assert p["defenseQuality"] == 100

    def test_one_star_allowed_per_war(self):
        wars = [
            make_timeline([make_timeline_member("#P1", best_opponent_attack=1)],
                          start="20240502T080000.000Z", end="20240503T080000.000Z"),
            make_timeline([make_timeline_member("#P1", best_opponent_attack=2)],
                          start="20240503T080000.000Z", end="20240504T080000.000Z"),
        ]
        p = aggregate_season_clan("2024-05", wars)["roster"][0]
        assert p["timesAttacked"] == 2
        assert p["avgStarsAllowed"] == 1.5
        assert p["defenseQuality"] == 50.0
        assert p["triplesAllowed"] == 0

    def test_tripled_every_time_is_zero(self):
        p = aggregate_season_clan(
            "2024-05", [make_timeline([make_timeline_member("#P1", best_opponent_attack=3)])])["roster"][0]
        assert p["defenseQuality"] == 0
        assert p["triplesAllowed"] == 1

    def test_clan_average_is_simple_mean(self):
        members = [
            make_timeline_member("#P1", best_opponent_attack=3),
            make_timeline_member("#P2"),
        ]
        stats = aggregate_season_clan("2024-05", [make_timeline(members)])["stats"]
        assert stats["avgDefenseQuality"] == 50.0
        assert stats["hardestToThreeCount"] == 1


# ─── B5: Clan record ─────────────────────────────────────────────

class TestB5_ClanRecord:
    """Win/loss/tie counts, win rate and ordering."""

    def _season(self):
        results = ["win", "loss", "tie", "win"]
        wars = [
            make_timeline([make_timeline_member("#P1", attacks=[(2, 60.0, 100)])], result=r,
                          start=f"2024050{6 - i}T080000.000Z", end=f"2024050{7 - i}T080000.000Z")
            for i, r in enumerate(results)
        ]
        return aggregate_season_clan("2024-05", wars)

    def test_result_counts(self):
        stats = self._season()["stats"]
        assert (stats["warsWon"], stats["warsLost"], stats["warsTied"]) == (2, 1, 1)
        assert stats["warsPlayed"] == 4
        assert stats["winRate"] == 50.0

    def test_wars_sorted_by_start_time(self):
        starts = [w["startTime"] for w in self._season()["wars"]]
        assert starts == sorted(starts)

    def test_generated_at_is_last_war_end(self):
        assert self._season()["generatedAt"] == "20240507T080000.000Z"

    def test_roster_sorted_by_stars_then_tag(self):
        members = [
            make_timeline_member("#B", attacks=[(2, 60.0, 100)]),
            make_timeline_member("#A", attacks=[(2, 60.0, 100)]),
            make_timeline_member("#C", attacks=[(3, 100.0, 100)]),
        ]
        roster = aggregate_season_clan("2024-05", [make_timeline(members)])["roster"]
        assert [p["tag"] for p in roster] == ["#C", "#A", "#B"]

    def test_no_wars_no_output(self):
        assert aggregate_season_clan("2024-05", []) is None


# ─── B6: Merge with the previous file ────────────────────────────

class TestB6_MergeWithFallback:
    """groupPosition, state and league survive when the CSV has no row."""

    WARS = [make_timeline([make_timeline_member("#P1")])]

    def test_defaults_without_any_source(self):
        detail = aggregate_season_clan("2024-05", self.WARS)
        assert detail["league"] == {"tier": None, "group": None}
        assert detail["groupPosition"] == 0
        assert detail["state"] == "ended"

    def test_existing_values_kept(self):
        existing = {"league": {"tier": "Master League II", "group": 3},
                    "groupPosition": 3, "state": "inWar"}
        detail = aggregate_season_clan("2024-05", self.WARS, existing=existing)
        assert detail["league"] == {"tier": "Master League II", "group": 3}
        assert detail["groupPosition"] == 3
        assert detail["state"] == "inWar"

    def test_csv_overrides_existing(self):
        existing = {"league": {"tier": "Master League II", "group": 3}, "groupPosition": 3}
        record = {"leagueName": "Master League I", "position": 1}
        detail = aggregate_season_clan("2024-05", self.WARS, league_record=record, existing=existing)
        assert detail["league"] == {"tier": "Master League I", "group": 1}
        assert detail["groupPosition"] == 1

    def test_tier_and_group_fall_back_independently(self):
        existing = {"league": {"tier": "Master League II", "group": 5}, "groupPosition": 5}
        record = {"leagueName": "Master League I", "position": None}
        detail = aggregate_season_clan("2024-05", self.WARS, league_record=record, existing=existing)
        assert detail["league"] == {"tier": "Master League I", "group": 5}
        assert detail["groupPosition"] == 5


# ─── B7: Files on disk ───────────────────────────────────────────

class TestB7_SeasonClanFiles:
    """Bad war files are skipped; clans without wars produce nothing."""

    @pytest.fixture
    def seasons_dir(self, tmp_path):
        wars_dir = tmp_path / "2024-05" / "clans" / FAMILY_BARE / "wars"
        wars_dir.mkdir(parents=True)
        good = make_timeline([make_timeline_member("#P1", attacks=[(3, 100.0, 90)])])
        (wars_dir / "20240503T080000000Z.json").write_text(json.dumps(good), encoding="utf-8")
        (wars_dir / "20240504T080000000Z.json").write_text("{not json", encoding="utf-8")
        return tmp_path

    def test_bad_file_skipped_good_file_used(self, seasons_dir, capsys):
        written = build_season_clan_details(seasons_dir, [FAMILY_BARE], {})
        detail = json.loads((seasons_dir / "2024-05" / "clans" / f"{FAMILY_BARE}.json").read_text("utf-8"))
        assert written == 1
        assert detail["stats"]["warsPlayed"] == 1
        assert "Warning" in capsys.readouterr().out

    def test_only_bad_files_no_output(self, tmp_path):
        wars_dir = tmp_path / "2024-05" / "clans" / FAMILY_BARE / "wars"
        wars_dir.mkdir(parents=True)
        (wars_dir / "broken.json").write_text("", encoding="utf-8")
        assert build_season_clan_details(tmp_path, [FAMILY_BARE], {}) == 0
        assert not (tmp_path / "2024-05" / "clans" / f"{FAMILY_BARE}.json").exists()

    def test_rerun_keeps_group_position(self, seasons_dir):
        build_season_clan_details(seasons_dir, [FAMILY_BARE], {(FAMILY_BARE, "2024-05"): {
            "leagueName": "Crystal League I", "position": 2}})
        build_season_clan_details(seasons_dir, [FAMILY_BARE], {})
        detail = json.loads((seasons_dir / "2024-05" / "clans" / f"{FAMILY_BARE}.json").read_text("utf-8"))
        assert detail["groupPosition"] == 2
        assert detail["league"] == {"tier": "Crystal League I", "group": 2}
