"""
Tests for achievement criteria evaluation.
"""

from shotspot.services.achievement_service import (
    ShotRecord,
    criteria_met,
    is_game_scoped,
    player_stats,
)


def goals(game_id, count, distance=None):
    return [ShotRecord(game_id, True, distance) for _ in range(count)]


def misses(game_id, count, distance=None):
    return [ShotRecord(game_id, False, distance) for _ in range(count)]


def test_player_stats_career_and_game():
    shots = goals(1, 3, 5.0) + misses(1, 1, 7.0) + goals(2, 1) + misses(2, 3)
    stats = player_stats(shots, game_id=1)

    assert stats["total_shots"] == 8
    assert stats["total_goals"] == 4
    assert stats["games_played"] == 2
    assert stats["career_fg_percentage"] == 50.0
    assert stats["hat_tricks"] == 1
    assert stats["game_shots"] == 4
    assert stats["game_goals"] == 3
    assert stats["game_fg_percentage"] == 75.0
    assert stats["game_avg_distance"] == 5.5


def test_player_stats_without_shots():
    stats = player_stats([])
    assert stats["total_shots"] == 0
    assert stats["career_fg_percentage"] == 0.0
    assert "game_shots" not in stats


def test_game_scoped_detection():
    assert is_game_scoped({"min_goals_per_game": 5})
    assert is_game_scoped({"min_shots": 10, "min_fg_percentage": 80})
    assert is_game_scoped({"consecutive_goals": 3})
    assert not is_game_scoped({"total_goals": 100})
    assert not is_game_scoped({"min_total_shots": 50, "min_fg_percentage": 60})


def test_goals_per_game_needs_a_game():
    shots = goals(1, 5)
    assert criteria_met({"min_goals_per_game": 5}, shots, game_id=1) is True
    assert criteria_met({"min_goals_per_game": 5}, shots) is False
    assert criteria_met({"min_goals_per_game": 6}, shots, game_id=1) is False


def test_game_accuracy():
    shots = goals(3, 8) + misses(3, 2)
    assert criteria_met({"min_shots": 10, "min_fg_percentage": 80}, shots, game_id=3) is True
    assert criteria_met({"min_shots": 10, "min_accuracy": 90}, shots, game_id=3) is False


def test_consecutive_goals():
    shots = goals(1, 2) + misses(1, 1) + goals(1, 4)
    assert criteria_met({"consecutive_goals": 4}, shots, game_id=1) is True
    assert criteria_met({"consecutive_goals": 5}, shots, game_id=1) is False


def test_comeback_after_quiet_game():
    shots = goals(1, 1) + misses(1, 4) + goals(2, 6)
    criteria = {"min_goals": 5, "previous_max_goals": 2}
    assert criteria_met(criteria, shots, game_id=2) is True
    # The first game has no previous game
    assert criteria_met(criteria, shots, game_id=1) is False


def test_career_milestones():
    shots = goals(1, 3) + goals(2, 3) + misses(3, 4)
    assert criteria_met({"total_goals": 6}, shots) is True
    assert criteria_met({"min_total_goals": 7}, shots) is False
    assert criteria_met({"games_played": 3}, shots) is True
    assert criteria_met({"hat_tricks": 2}, shots) is True
    assert criteria_met({"min_total_shots": 10, "min_fg_percentage": 60}, shots) is True
    assert criteria_met({"min_total_shots": 10, "min_fg_percentage": 61}, shots) is False


def test_long_distance_goals():
    shots = goals(1, 2, 9.5) + goals(1, 1, 4.0) + misses(1, 2, 10.0)
    assert criteria_met({"min_goals": 2, "min_distance": 9}, shots) is True
    assert criteria_met({"min_goals": 3, "min_distance": 9}, shots) is False


def test_unsupported_and_empty_criteria_never_award():
    shots = goals(1, 20)
    assert criteria_met({}, shots, game_id=1) is False
    assert criteria_met({"consecutive_games": 3}, shots, game_id=1) is False
    assert criteria_met({"unknown_key": 1}, shots, game_id=1) is False
