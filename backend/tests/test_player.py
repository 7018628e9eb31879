"""
Tests for per-player race state.
"""

import pytest

WORDS = ['alpha', 'beta', 'gamma']


@pytest.fixture()
def race(machine, runtime):
    machine.initialize_settings({'words': WORDS, 'timeLimit': 60})
    runtime.join('a')
    runtime.join('b')
    return machine


def type_words(runtime, view_id, *results):
    for correct in results:
        runtime.publish(view_id, 'typed-word', correct)


def test_player_creation(race):
    player = race.get_player('a')
    assert player.view_id == 'a'
    assert player.initials == ''
    assert player.score == 0
    assert player.index == 0
    assert player.progress == 0
    assert player.wpm == 0
    assert player.is_completed() is False


def test_typed_word_ignored_before_start(race, runtime, view_events):
    type_words(runtime, 'a', True)
    assert race.get_player('a').score == 0
    assert view_events.updates == 0


def test_correct_word_advances(race, runtime):
    runtime.publish('game', 'start')
    type_words(runtime, 'a', True)
    player = race.get_player('a')
    assert player.score == 1
    assert player.index == 1
    assert player.progress == pytest.approx(100 / 3)
    assert player.current_word() == race.words[1]


def test_last_word_completes(race, runtime):
    runtime.publish('game', 'start')
    type_words(runtime, 'a', True, True, True)
    player = race.get_player('a')
    assert player.index == len(race.words)
    assert player.progress == 100
    assert player.is_completed() is True
    assert player.current_word() is None
    assert player.completion_percentage() == 100

    # nothing left to type
    type_words(runtime, 'a', True)
    assert player.score == 3
    assert player.index == 3


def test_incorrect_word_changes_nothing_but_notifies(race, runtime, view_events):
    runtime.publish('game', 'start')
    view_events.clear()
    type_words(runtime, 'a', False)
    player = race.get_player('a')
    assert (player.score, player.index, player.progress) == (0, 0, 0)
    assert view_events.updates == 1


def test_wpm_uses_elapsed_round_time(race, runtime):
    runtime.publish('game', 'start')
    type_words(runtime, 'a', True, True)
    player = race.get_player('a')
    assert player.wpm == 0

    runtime.advance(30000)
    assert race.time_left == 30
    type_words(runtime, 'a', True)
    assert player.wpm == 6

    runtime.advance(15000)
    type_words(runtime, 'a', False)
    assert player.wpm == 4


def test_duplicate_initials_are_dropped(race, runtime):
    runtime.publish('a', 'set-initials', 'max')
    runtime.publish('b', 'set-initials', 'max')
    assert race.get_player('a').initials == 'max'
    assert race.get_player('b').initials == ''


def test_initials_released_when_holder_leaves(race, runtime):
    runtime.publish('a', 'set-initials', 'max')
    runtime.leave('a')
    runtime.publish('b', 'set-initials', 'max')
    assert race.get_player('b').initials == 'max'


def test_empty_or_unchanged_initials_are_noops(race, runtime, view_events):
    runtime.publish('a', 'set-initials', '')
    assert view_events.updates == 0
    runtime.publish('a', 'set-initials', 'zed')
    assert view_events.updates == 1
    runtime.publish('a', 'set-initials', 'zed')
    assert view_events.updates == 1


def test_initials_carry_current_score_into_highscores(race, runtime, view_events):
    runtime.publish('game', 'start')
    type_words(runtime, 'a', True, True)
    runtime.publish('a', 'set-initials', 'ace')
    assert race.highscores['ace'] == 2
    assert view_events.highscores == [{'initials': 'ace', 'score': 2}]


def test_initials_without_score_leave_highscores_alone(race, runtime):
    runtime.publish('a', 'set-initials', 'ace')
    assert 'ace' not in race.highscores


def test_set_avatar_only_notifies_on_change(race, runtime, view_events):
    runtime.publish('a', 'set-avatar', '/avatars/avatar2.png')
    runtime.publish('a', 'set-avatar', '/avatars/avatar2.png')
    assert race.get_player('a').avatar_url == '/avatars/avatar2.png'
    assert view_events.updates == 1


def test_reset_zeroes_progress(race, runtime):
    runtime.publish('game', 'start')
    runtime.advance(10000)
    type_words(runtime, 'a', True, True)
    player = race.get_player('a')
    assert player.wpm > 0
    player.reset()
    assert (player.score, player.index, player.progress, player.wpm) == (0, 0, 0, 0)


def test_rank_orders_by_score_then_join_order(race, runtime):
    assert race.get_player('a').rank() == 1
    assert race.get_player('b').rank() == 2

    runtime.publish('game', 'start')
    type_words(runtime, 'b', True, True)
    type_words(runtime, 'a', True)
    assert race.get_player('b').rank() == 1
    assert race.get_player('a').rank() == 2


def test_left_player_stops_listening(race, runtime):
    player = race.get_player('a')
    runtime.publish('game', 'start')
    runtime.leave('a')
    type_words(runtime, 'a', True)
    assert player.score == 0
    assert race.get_player('a') is None

    runtime.join('a')
    assert race.get_player('a') is not player
    assert race.get_player('a').score == 0


def test_player_to_dict(race):
    data = race.get_player('b').to_dict()
    assert data['id'] == 'b'
    assert data['initials'] == ''
    assert data['score'] == 0
    assert data['completed'] is False
    assert data['rank'] == 2
    assert data['current_word'] == race.words[0]
