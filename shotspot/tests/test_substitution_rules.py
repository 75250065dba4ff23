"""
Tests for substitution legality and on-court tracking.
"""

import pytest

from shotspot.services.substitution_service import check_substitution, is_on_court, substitution_counts

# Players 1-2 start, 3-4 on the bench
STARTING = {1: True, 2: True, 3: False, 4: False}


def test_on_court_rules():
    assert is_on_court(True, 0, 0) is True
    assert is_on_court(True, 0, 1) is False
    assert is_on_court(True, 1, 1) is True
    assert is_on_court(False, 0, 0) is False
    assert is_on_court(False, 1, 0) is True
    assert is_on_court(False, 1, 1) is False


def test_substitution_counts():
    ins, outs = substitution_counts([(3, 1), (1, 3), (3, 2)])
    assert ins[3] == 2
    assert ins[1] == 1
    assert outs[1] == 1
    assert outs[2] == 1
    assert outs[4] == 0


def test_bench_player_replaces_starter():
    check_substitution(STARTING, [], player_in_id=3, player_out_id=1)


def test_player_coming_in_already_on_court():
    with pytest.raises(ValueError, match="already on the court"):
        check_substitution(STARTING, [], player_in_id=2, player_out_id=1)


def test_player_going_out_on_bench():
    with pytest.raises(ValueError, match="not currently on the court"):
        check_substitution(STARTING, [], player_in_id=3, player_out_id=4)


def test_history_is_respected():
    history = [(3, 1)]
    # 1 is now on the bench and 3 on court
    check_substitution(STARTING, history, player_in_id=1, player_out_id=3)
    with pytest.raises(ValueError, match="already on the court"):
        check_substitution(STARTING, history, player_in_id=3, player_out_id=2)


def test_players_must_be_rostered():
    with pytest.raises(ValueError, match="game roster"):
        check_substitution(STARTING, [], player_in_id=99, player_out_id=1)
