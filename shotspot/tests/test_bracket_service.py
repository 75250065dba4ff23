"""
Tests for tournament bracket planning.
"""

import pytest

from shotspot.services.bracket_service import plan_bracket, round_name, seed_order


def test_seed_order_pairs_top_seeds_apart():
    assert seed_order(2) == [1, 2]
    assert seed_order(4) == [1, 4, 2, 3]
    assert seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]


def test_round_names():
    assert round_name(2) == "Final"
    assert round_name(4) == "Semi Finals"
    assert round_name(8) == "Quarter Finals"
    assert round_name(16) == "Round of 16"


def test_plan_requires_two_teams():
    with pytest.raises(ValueError, match="at least 2 teams"):
        plan_bracket([1])


def test_plan_four_teams():
    rounds = plan_bracket([10, 20, 30, 40])

    assert len(rounds) == 2
    semis, final = rounds
    assert [m["round_name"] for m in semis] == ["Semi Finals", "Semi Finals"]
    assert (semis[0]["home_team_id"], semis[0]["away_team_id"]) == (10, 40)
    assert (semis[1]["home_team_id"], semis[1]["away_team_id"]) == (20, 30)
    assert all(m["next_match_number"] == 1 for m in semis)
    assert final[0]["round_name"] == "Final"
    assert final[0]["next_match_number"] is None
    assert final[0]["home_team_id"] is None


def test_plan_with_byes_advances_lone_team():
    rounds = plan_bracket([1, 2, 3, 4, 5, 6])

    assert len(rounds) == 3
    first = rounds[0]
    assert len(first) == 4
    byes = [m for m in first if m["is_bye"]]
    assert len(byes) == 2
    # Seeds 1 and 2 face the missing seeds 8 and 7
    assert {m["winner_team_id"] for m in byes} == {1, 2}

    semis = rounds[1]
    assert semis[0]["home_team_id"] == 1
    assert semis[1]["home_team_id"] == 2
    assert semis[0]["away_team_id"] is None


def test_plan_round_sizes_halve():
    rounds = plan_bracket(list(range(1, 17)))
    assert [len(r) for r in rounds] == [8, 4, 2, 1]
    assert rounds[0][0]["round_name"] == "Round of 16"
