import pytest

from playroom.services.games import session as sm
from playroom.services.games.errors import (
    IllegalMove, InvalidGameType, NotAParticipant, NotInProgress, NotYourTurn, RoomClosed, RoomFull,
)
from playroom.services.games.session import SCRIPTED

A, B, C = 1, 2, 3


def started_room():
    s = sm.create('tic-tac-toe', A, room_code='ROOM01').session
    s = sm.join(s, B).session
    s = sm.set_ready(s, A).session
    return sm.set_ready(s, B).session


def play(s, *moves):
    """Alternate A/B moves starting with whoever holds the turn."""
    for position in moves:
        s = sm.apply_move(s, s.turn_holder, position).session
    return s


def test_fresh_multiplayer_room():
    s = sm.create('tic-tac-toe', A, room_code='ROOM01').session
    assert s.status == sm.WAITING
    assert [(slot.actor, slot.symbol) for slot in s.roster] == [(A, 'X')]
    assert s.turn_holder is None
    assert s.board is None

    s = sm.join(s, B).session
    assert [(slot.actor, slot.symbol) for slot in s.roster] == [(A, 'X'), (B, 'O')]
    assert s.is_full()
    assert s.status == sm.WAITING

    s = sm.set_ready(s, A).session
    assert s.status == sm.WAITING
    t = sm.set_ready(s, B)
    assert t.session.status == sm.IN_PROGRESS
    assert t.session.turn_holder == A
    assert t.session.board.cells == (None,) * 9
    assert not t.completed


def test_rejoin_is_idempotent():
    s = sm.create('tic-tac-toe', A).session
    s = sm.join(s, B).session
    again = sm.join(s, B)
    assert again.session is s
    assert len(again.session.roster) == 2


def test_join_full_room():
    s = sm.create('chess', A).session
    s = sm.join(s, B).session
    assert [slot.symbol for slot in s.roster] == ['white', 'black']
    with pytest.raises(RoomFull):
        sm.join(s, C)


def test_join_started_room():
    with pytest.raises(RoomClosed):
        sm.join(started_room(), C)


def test_ready_requires_participant():
    s = sm.create('tic-tac-toe', A).session
    with pytest.raises(NotAParticipant):
        sm.set_ready(s, B)


def test_ready_alone_does_not_start():
    s = sm.set_ready(sm.create('tic-tac-toe', A).session, A).session
    assert s.status == sm.WAITING
    assert s.roster[0].ready


def test_unknown_type_and_mode():
    with pytest.raises(InvalidGameType):
        sm.create('checkers', A)
    with pytest.raises(InvalidGameType):
        sm.create('tic-tac-toe', A, mode='team')
    with pytest.raises(InvalidGameType):
        sm.create('connect4', A, mode=sm.SINGLE)


def test_move_errors():
    waiting = sm.create('tic-tac-toe', A).session
    with pytest.raises(NotInProgress):
        sm.apply_move(waiting, A, 0)

    s = started_room()
    with pytest.raises(NotYourTurn):
        sm.apply_move(s, B, 0)
    with pytest.raises(NotYourTurn):
        sm.apply_move(s, C, 0)
    with pytest.raises(IllegalMove):
        sm.apply_move(s, A, 9)


def test_illegal_move_leaves_state_unchanged():
    s = play(started_room(), 4)
    assert s.turn_holder == B
    with pytest.raises(IllegalMove):
        sm.apply_move(s, B, 4)
    assert s.board.cells[4] == 'X'
    assert s.turn_holder == B
    assert len(s.move_log) == 1


def test_turns_alternate_and_log_grows():
    s = started_room()
    for expected_mover, position in [(A, 0), (B, 3), (A, 1), (B, 4)]:
        assert s.turn_holder == expected_mover
        s = sm.apply_move(s, expected_mover, position, at=100.0).session
        assert s.turn_holder != expected_mover
    assert [(m.actor, m.position) for m in s.move_log] == [(A, 0), (B, 3), (A, 1), (B, 4)]
    assert all(m.timestamp == 100.0 for m in s.move_log)


def test_row_col_move():
    s = sm.apply_move(started_room(), A, {'row': 2, 'col': 1}).session
    assert s.board.cells[7] == 'X'


def test_win_completes_session():
    s = play(started_room(), 0, 3, 1, 4)
    t = sm.apply_move(s, A, 2)
    assert t.completed
    assert t.session.status == sm.COMPLETED
    assert t.session.result == sm.WIN
    assert t.session.winner == A
    assert t.session.turn_holder is None
    assert sm.outcomes(t.session) == {A: 'win', B: 'loss'}


def test_no_moves_after_completion():
    s = play(started_room(), 0, 3, 1, 4, 2)
    for actor in (A, B):
        with pytest.raises(NotInProgress):
            sm.apply_move(s, actor, 8)


def test_draw():
    s = play(started_room(), 0, 1, 2, 4, 3, 5, 7, 6)
    t = sm.apply_move(s, A, 8)
    assert t.completed
    assert t.session.result == sm.DRAW
    assert t.session.winner is None
    assert sm.outcomes(t.session) == {A: 'tie', B: 'tie'}


def test_chess_moves_are_rejected():
    s = sm.create('chess', A).session
    s = sm.join(s, B).session
    s = sm.set_ready(sm.set_ready(s, A).session, B).session
    assert s.status == sm.IN_PROGRESS
    assert s.board.rows == 8
    with pytest.raises(IllegalMove):
        sm.apply_move(s, A, 0)


# ---- Single player ----

def test_single_player_starts_in_progress():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE, room_code='SP-ABC123').session
    assert s.status == sm.IN_PROGRESS
    assert s.turn_holder == A
    assert s.board.cells == (None,) * 9
    assert [(slot.actor, slot.symbol, slot.ready) for slot in s.roster] == [(A, 'X', True), (SCRIPTED, 'O', True)]


def test_single_player_reply():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE).session
    s = sm.apply_move(s, A, 0).session
    assert s.board.cells[0] == 'X'
    assert s.board.cells[4] == 'O'
    assert s.turn_holder == A
    assert [(m.actor, m.position) for m in s.move_log] == [(A, 0), (SCRIPTED, 4)]


def test_single_player_opponent_wins():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE).session
    s = sm.apply_move(s, A, 0).session   # O takes 4
    s = sm.apply_move(s, A, 1).session   # O blocks 2
    t = sm.apply_move(s, A, 3)           # O completes 2-4-6
    assert t.completed
    assert t.session.board.cells[6] == 'O'
    assert t.session.result == sm.WIN
    assert t.session.winner is None
    assert len(t.session.move_log) == 6
    assert sm.outcomes(t.session) == {A: 'loss'}


def test_single_player_draw():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE).session
    for position in (4, 8, 1, 3):
        s = sm.apply_move(s, A, position).session
        assert s.status == sm.IN_PROGRESS
    t = sm.apply_move(s, A, 6)
    assert t.session.result == sm.DRAW
    assert len(t.session.move_log) == 9
    assert sm.outcomes(t.session) == {A: 'tie'}


# ---- Leaving ----

def test_leave_waiting_room_keeps_waiting():
    s = sm.join(sm.create('tic-tac-toe', A).session, B).session
    t = sm.leave(s, A)
    assert t.session.status == sm.WAITING
    assert [slot.actor for slot in t.session.roster] == [B]
    # Newcomer gets the symbol that is free again
    s = sm.join(t.session, C).session
    assert [(slot.actor, slot.symbol) for slot in s.roster] == [(B, 'O'), (C, 'X')]


def test_last_player_leaving_discards():
    t = sm.leave(sm.create('tic-tac-toe', A).session, A)
    assert t.discarded
    assert not t.completed
    assert t.session.roster == ()


def test_leave_requires_participant():
    with pytest.raises(NotAParticipant):
        sm.leave(sm.create('tic-tac-toe', A).session, B)


def test_leave_in_progress_abandons():
    s = play(started_room(), 0)
    t = sm.leave(s, B)
    assert t.completed
    assert t.session.result == sm.ABANDONED
    assert t.session.winner == A
    assert t.session.forfeited_by == B
    assert t.session.turn_holder is None
    assert sm.outcomes(t.session) == {A: 'win', B: 'loss'}


def test_leave_single_player_is_a_loss():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE).session
    t = sm.leave(s, A)
    assert t.completed
    assert t.session.winner is None
    assert sm.outcomes(t.session) == {A: 'loss'}


def test_leave_after_completion_keeps_session():
    s = play(started_room(), 0, 3, 1, 4, 2)
    t = sm.leave(s, B)
    assert not t.completed
    assert not t.discarded
    assert t.session is s
    t = sm.leave(t.session, A)
    assert not t.discarded
    assert [slot.actor for slot in t.session.roster] == [A, B]
    assert sm.outcomes(t.session) == {A: 'win', B: 'loss'}


def test_leave_after_abandonment_keeps_result():
    s = sm.leave(play(started_room(), 0), B).session
    t = sm.leave(s, A)
    assert not t.discarded
    assert t.session.winner == A
    assert sm.outcomes(t.session) == {A: 'win', B: 'loss'}


# ---- Serialisation ----

def test_snapshot_restore():
    s = sm.create('tic-tac-toe', A, mode=sm.SINGLE, room_code='SP-XYZ', name='practice').session
    s = sm.apply_move(s, A, 0, at=5.0).session
    data = sm.snapshot(s)
    assert data['players'][1] == {'user': 'ai', 'ai': True, 'symbol': 'O', 'ready': True}
    assert data['moves'][1]['player'] == 'ai'
    assert data['board'][:5] == ['X', None, None, None, 'O']
    assert sm.restore(data) == s


def test_outcomes_empty_until_completed():
    assert sm.outcomes(started_room()) == {}
