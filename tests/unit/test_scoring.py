"""Ranking score and ordering tests."""

import pytest

from greenquest.ranking.scoring import (
    RANKING_CATEGORIES,
    UserCounters,
    classify_rank_change,
    compute_score,
    entered_top,
    rank_entries,
)


class TestComputeScore:

    def test_overall_formula(self):
        counters = UserCounters(user_id=1, goals_completed=5, actions_completed=10, challenges_completed=2)
        assert compute_score("overall", counters) == 5 * 10 + 10 * 2 + 2 * 5

    def test_single_metric_categories(self):
        counters = UserCounters(
            user_id=1,
            goals_completed=3,
            actions_completed=7,
            challenges_completed=4,
            streak_days=6,
            co2_saved=12.5,
        )
        assert compute_score("goals", counters) == 3
        assert compute_score("actions", counters) == 7
        assert compute_score("challenges", counters) == 4
        assert compute_score("streaks", counters) == 6
        assert compute_score("sustainability", counters) == 12.5

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            compute_score("karma", UserCounters(user_id=1))

    def test_every_category_scores(self):
        for category in RANKING_CATEGORIES:
            assert compute_score(category, UserCounters(user_id=1)) == 0


class TestRankEntries:

    def test_higher_score_ranks_first(self):
        ranked = rank_entries("actions", [
            UserCounters(user_id=1, actions_completed=5),
            UserCounters(user_id=2, actions_completed=10),
            UserCounters(user_id=3, actions_completed=1),
        ])
        assert [e.counters.user_id for e in ranked] == [2, 1, 3]
        assert [e.rank for e in ranked] == [1, 2, 3]

    def test_tie_broken_by_goals(self):
        """Both score 80 overall; 5 goals beats 3 goals."""
        a = UserCounters(user_id=1, goals_completed=3, actions_completed=25)  # 30 + 50
        b = UserCounters(user_id=2, goals_completed=5, actions_completed=15)  # 50 + 30
        ranked = rank_entries("overall", [a, b])
        assert ranked[0].score == ranked[1].score == 80
        assert ranked[0].counters.user_id == 2
        assert ranked[1].counters.user_id == 1

    def test_full_tie_broken_by_user_id(self):
        ranked = rank_entries("actions", [
            UserCounters(user_id=9, actions_completed=4),
            UserCounters(user_id=3, actions_completed=4),
        ])
        assert [e.counters.user_id for e in ranked] == [3, 9]

    def test_ranks_are_positions_without_duplicates(self):
        snapshot = [UserCounters(user_id=i, actions_completed=1) for i in range(1, 6)]
        ranks = [e.rank for e in rank_entries("actions", snapshot)]
        assert ranks == [1, 2, 3, 4, 5]

    def test_deterministic_regardless_of_input_order(self):
        snapshot = [
            UserCounters(user_id=i, goals_completed=i % 3, actions_completed=(i * 7) % 5)
            for i in range(1, 20)
        ]
        first = [e.counters.user_id for e in rank_entries("overall", snapshot)]
        second = [e.counters.user_id for e in rank_entries("overall", list(reversed(snapshot)))]
        assert first == second

    def test_empty(self):
        assert rank_entries("overall", []) == []


class TestRankChange:

    def test_new_when_previously_unranked(self):
        assert classify_rank_change(0, 4) == "new"

    def test_up(self):
        assert classify_rank_change(5, 2) == "up"

    def test_down(self):
        assert classify_rank_change(2, 5) == "down"

    def test_same(self):
        assert classify_rank_change(3, 3) == "same"


class TestEnteredTop:

    def test_entering_from_outside(self):
        assert entered_top(5, 3, top_n=3)

    def test_first_ranking_inside_top(self):
        assert entered_top(0, 1, top_n=3)

    def test_already_inside(self):
        assert not entered_top(2, 1, top_n=3)

    def test_still_outside(self):
        assert not entered_top(8, 4, top_n=3)
