"""Tests for gamification.py — points, levels, badges, rewards, leaderboard."""

from __future__ import annotations

from datetime import date

import pytest

from gamification import (
    DEMO_LEADERBOARD,
    GamificationEngine,
    level_for,
    points_to_next_level,
    streak_length,
)


@pytest.fixture
def engine(store, clock):
    return GamificationEngine(store, "student-1", user_name="Test Student", clock=clock)


class TestLevels:
    @pytest.mark.parametrize("points,level,remaining", [
        (0, 1, 100), (60, 1, 40), (99, 1, 1), (100, 2, 100), (110, 2, 90), (250, 3, 50),
    ])
    def test_level_math(self, points, level, remaining):
        assert level_for(points) == level
        assert points_to_next_level(points) == remaining

    def test_award_updates_profile(self, engine):
        engine.award_points(60, "test")
        profile = engine.profile()
        assert profile.level == 1
        assert profile.points_to_next_level == 40

    def test_three_awards_of_twenty(self, engine):
        for _ in range(3):
            engine.award_points(20, "Homework completed")
        profile = engine.profile()
        assert profile.total_points == 60
        assert profile.level == 1
        assert profile.points_to_next_level == 40

    def test_crossing_a_level(self, engine):
        engine.award_points(90)
        events = []
        engine.subscribe(lambda event, payload: events.append((event, payload)))
        profile = engine.award_points(20, "Homework completed")
        assert profile.total_points == 110
        assert profile.level == 2
        assert events[0][0] == "points"
        assert events[0][1]["leveled_up"] is True

    def test_negative_award_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.award_points(-5)


class TestBadges:
    def test_first_completion_unlocks_once(self, engine):
        engine.record_homework_completion()
        first = next(b for b in engine.earned_badges() if b.id == "first-completion")
        earned_at = first.earned_at

        engine.record_homework_completion()
        again = next(b for b in engine.earned_badges() if b.id == "first-completion")
        assert again.earned_at == earned_at
        assert len(engine.user_data.get_achievements()) == 1

    def test_badge_unlock_notifies_and_stores_notification(self, engine):
        events = []
        engine.subscribe(lambda event, payload: events.append(event))
        engine.record_homework_completion()
        assert "badge" in events
        assert engine.user_data.get_notifications()[0]["type"] == "badge"

    def test_badge_points_are_not_added(self, engine):
        profile = engine.record_homework_completion()
        assert profile.total_points == 20

    def test_points_collector_threshold(self, engine):
        engine.award_points(499)
        assert "points-collector" not in engine.earned_ids()
        engine.award_points(1)
        assert "points-collector" in engine.earned_ids()

    def test_perfect_quiz(self, engine):
        assert engine.record_quiz_result(4, 5) == []
        assert engine.record_quiz_result(5, 5) == ["quiz-master"]

    def test_unknown_counter(self, engine):
        with pytest.raises(KeyError):
            engine.record("nonsense")

    def test_state_persists_across_instances(self, engine, store, clock):
        engine.record_homework_completion()
        reloaded = GamificationEngine(store, "student-1", clock=clock)
        assert reloaded.total_points == 20
        assert "first-completion" in reloaded.earned_ids()

    def test_listener_failure_does_not_break_award(self, engine):
        def broken(event, payload):
            raise RuntimeError("listener bug")

        engine.subscribe(broken)
        assert engine.award_points(10).total_points == 10

    def test_unsubscribe(self, engine):
        events = []
        unsubscribe = engine.subscribe(lambda event, payload: events.append(event))
        unsubscribe()
        engine.award_points(10)
        assert events == []


class TestMalformedState:
    def test_state_of_wrong_type_starts_fresh(self, store, clock):
        store.set("gamification_student-1", [1, 2])
        engine = GamificationEngine(store, "student-1", clock=clock)
        assert engine.total_points == 0
        assert engine.earned_ids() == set()
        engine.award_points(20)
        assert store.get("gamification_student-1")["total_points"] == 20

    def test_fields_of_wrong_type_fall_back(self, store, clock):
        store.set("gamification_student-1", {
            "total_points": "lots",
            "counters": ["homework_completed"],
            "active_days": ["2026-03-09", "yesterday", 7],
            "earned": "first-completion",
            "redeemed": {"r1": True},
        })
        engine = GamificationEngine(store, "student-1", clock=clock)
        assert engine.total_points == 0
        assert engine.counter_value("homework_completed") == 0
        assert engine.active_days == ["2026-03-09"]
        assert engine.streak == 1
        assert engine.earned_ids() == set()
        assert all(r.available for r in engine.rewards())

    def test_valid_fields_survive_beside_bad_ones(self, store, clock):
        store.set("gamification_student-1", {"total_points": 140, "counters": "oops"})
        engine = GamificationEngine(store, "student-1", clock=clock)
        assert engine.profile().level == 2


class TestStreak:
    def test_consecutive_days(self):
        days = ["2026-03-08", "2026-03-09", "2026-03-10"]
        assert streak_length(days, date(2026, 3, 10)) == 3

    def test_streak_survives_until_end_of_next_day(self):
        assert streak_length(["2026-03-09"], date(2026, 3, 10)) == 1
        assert streak_length(["2026-03-09"], date(2026, 3, 11)) == 0

    def test_engine_streak_uses_clock(self, engine, clock):
        engine.award_points(1)
        clock.advance(days=1)
        engine.award_points(1)
        assert engine.streak == 2


class TestRewards:
    def test_redeem_deducts_points_once(self, engine):
        engine.award_points(250)
        result = engine.redeem_reward("r1")
        assert result.success
        assert result.points_remaining == 150
        again = engine.redeem_reward("r1")
        assert not again.success
        assert again.error == "Reward already redeemed"
        assert engine.total_points == 150

    def test_insufficient_points_rejected(self, engine):
        engine.award_points(50)
        result = engine.redeem_reward("r6")
        assert not result.success
        assert result.error == "Insufficient points"
        assert engine.total_points == 50

    def test_unknown_reward(self, engine):
        result = engine.redeem_reward("nope")
        assert not result.success
        assert result.error == "Reward not found"

    def test_redeemed_reward_stays_unavailable_after_reload(self, engine, store, clock):
        engine.award_points(100)
        engine.redeem_reward("r1")
        reloaded = GamificationEngine(store, "student-1", clock=clock)
        assert not next(r for r in reloaded.rewards() if r.id == "r1").available


class TestLeaderboard:
    def test_new_learner_ranks_last(self, engine):
        board = engine.leaderboard()
        assert len(board) == len(DEMO_LEADERBOARD) + 1
        assert board[-1].user_id == "student-1"
        assert engine.profile().rank == len(DEMO_LEADERBOARD) + 1

    def test_rank_matches_leaderboard_position(self, engine):
        engine.award_points(300)
        own = next(e for e in engine.leaderboard() if e.user_id == "student-1")
        assert own.rank == engine.profile().rank == 4

    def test_ties_go_to_other_learners(self, engine):
        engine.award_points(450)
        board = engine.leaderboard()
        assert board[0].user_id == "user-001"
        assert board[1].user_id == "student-1"

    def test_limit(self, engine):
        assert len(engine.leaderboard(3)) == 3
