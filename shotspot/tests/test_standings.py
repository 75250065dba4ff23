"""
Tests for league standings arithmetic.
"""

from shotspot.database.models import CompetitionStanding
from shotspot.services.competition_service import (
    apply_result,
    assign_ranks,
    match_outcome,
    push_form,
)


def _standing(team_id, **values):
    standing = CompetitionStanding(competition_id=1, team_id=team_id)
    for column in (
        "games_played", "wins", "draws", "losses", "goals_for", "goals_against", "points",
        "home_wins", "home_draws", "home_losses", "away_wins", "away_draws", "away_losses",
    ):
        setattr(standing, column, values.get(column, 0))
    standing.form = values.get("form")
    return standing


def test_match_outcome():
    assert match_outcome(12, 9) == ("W", "L")
    assert match_outcome(9, 12) == ("L", "W")
    assert match_outcome(10, 10) == ("D", "D")


def test_push_form_keeps_last_five_newest_first():
    assert push_form(None, "W") == "W"
    assert push_form("WDLLW", "D") == "DWDLL"


def test_apply_home_win():
    standing = _standing(1)
    apply_result(standing, "W", 15, 11, home=True)

    assert standing.games_played == 1
    assert standing.wins == 1
    assert standing.home_wins == 1
    assert standing.away_wins == 0
    assert standing.points == 3
    assert standing.goals_for == 15
    assert standing.goals_against == 11
    assert standing.form == "W"


def test_apply_away_draw_then_loss():
    standing = _standing(2)
    apply_result(standing, "D", 10, 10, home=False)
    apply_result(standing, "L", 8, 14, home=False)

    assert standing.games_played == 2
    assert standing.points == 1
    assert standing.away_draws == 1
    assert standing.away_losses == 1
    assert standing.goals_for == 18
    assert standing.goals_against == 24
    assert standing.form == "LD"


def test_ranking_by_points_then_goal_difference_then_goals_for():
    a = _standing(1, points=6, goals_for=20, goals_against=18)
    b = _standing(2, points=6, goals_for=25, goals_against=20)
    c = _standing(3, points=6, goals_for=30, goals_against=25)
    d = _standing(4, points=9, goals_for=10, goals_against=12)

    ordered = assign_ranks([a, b, c, d])

    assert [s.team_id for s in ordered] == [4, 3, 2, 1]
    assert [s.rank for s in ordered] == [1, 2, 3, 4]


def test_full_tie_broken_by_team_id():
    first = _standing(8, points=3, goals_for=10, goals_against=10)
    second = _standing(5, points=3, goals_for=10, goals_against=10)

    ordered = assign_ranks([first, second])
    assert [s.team_id for s in ordered] == [5, 8]
