from playroom.services.games import session as sm
from playroom.services.games.errors import PersistenceFailure
from playroom.services.games.registry import SessionRegistry
from playroom.services.games.settlement import settle
from playroom.services.games.stores import MemorySessionStore, MemoryStatsStore

A, B = 1, 2


class FlakyStatsStore(MemoryStatsStore):
    """Fails the first update for one account."""

    def __init__(self, failing_account):
        super().__init__()
        self.failing_account = failing_account

    def increment_stats(self, session_id, account_id, outcome):
        if account_id == self.failing_account:
            self.failing_account = None
            raise PersistenceFailure('database unavailable')
        return super().increment_stats(session_id, account_id, outcome)


def finished(draw=False):
    s = sm.create('tic-tac-toe', A).session
    s = sm.join(s, B).session
    s = sm.set_ready(sm.set_ready(s, A).session, B).session
    moves = [0, 1, 2, 4, 3, 5, 7, 6, 8] if draw else [0, 3, 1, 4, 2]
    for position in moves:
        s = sm.apply_move(s, s.turn_holder, position).session
    return s


def test_win_and_loss():
    stats = MemoryStatsStore()
    report = settle(finished(), stats)
    assert report.ok
    assert stats.get(A) == {'matches_played': 1, 'wins': 1, 'losses': 0, 'ties': 0, 'win_rate': 100.0}
    assert stats.get(B) == {'matches_played': 1, 'wins': 0, 'losses': 1, 'ties': 0, 'win_rate': 0.0}
    assert report.win_rates == {A: 100.0, B: 0.0}


def test_tie_counts_played_not_rate():
    stats = MemoryStatsStore()
    settle(finished(draw=True), stats)
    assert stats.get(A) == {'matches_played': 1, 'wins': 0, 'losses': 0, 'ties': 1, 'win_rate': 0.0}


def test_totals_and_win_rate_over_many_matches():
    stats = MemoryStatsStore()
    games = [finished() for _ in range(3)] + [finished(draw=True) for _ in range(2)]
    for s in games:
        settle(s, stats)
    record = stats.get(B)
    assert record['matches_played'] == 5
    assert record['wins'] + record['losses'] + record['ties'] == 5
    assert record['win_rate'] == 0.0
    record = stats.get(A)
    assert record['win_rate'] == 100 * record['wins'] / (record['wins'] + record['losses'])


def test_settling_twice_counts_once():
    stats = MemoryStatsStore()
    s = finished()
    settle(s, stats)
    again = settle(s, stats)
    assert sorted(again.already_settled) == [A, B]
    assert again.win_rates == {}
    assert stats.get(A)['matches_played'] == 1


def test_unfinished_session_is_ignored():
    stats = MemoryStatsStore()
    report = settle(sm.create('tic-tac-toe', A).session, stats)
    assert report.win_rates == {} and report.ok
    assert stats.get(A)['matches_played'] == 0


def test_one_failure_does_not_block_others():
    stats = FlakyStatsStore(failing_account=A)
    s = finished()
    report = settle(s, stats)
    assert not report.ok
    assert A in report.failed
    assert stats.get(B)['losses'] == 1
    assert stats.get(A)['matches_played'] == 0


def test_registry_retry_completes_settlement():
    stats = FlakyStatsStore(failing_account=B)
    registry = SessionRegistry(MemorySessionStore(), stats)
    s = registry.create_room('tic-tac-toe', A)
    registry.join_room(s.room_code, B)
    registry.set_ready(s.id, A)
    registry.set_ready(s.id, B)
    for actor, position in [(A, 0), (B, 3), (A, 1), (B, 4), (A, 2)]:
        s = registry.apply_move(s.id, actor, position)
    # The terminal transition stands even though B's record lagged
    assert s.status == sm.COMPLETED
    assert stats.get(B)['matches_played'] == 0

    report = registry.settle(s.id)
    assert report.win_rates == {B: 0.0}
    assert report.already_settled == [A]
    assert stats.get(A)['wins'] == 1
    assert stats.get(B)['losses'] == 1


def test_retry_after_loser_leaves_finished_game():
    stats = FlakyStatsStore(failing_account=B)
    registry = SessionRegistry(MemorySessionStore(), stats)
    s = registry.create_room('tic-tac-toe', A)
    registry.join_room(s.room_code, B)
    registry.set_ready(s.id, A)
    registry.set_ready(s.id, B)
    for actor, position in [(A, 0), (B, 3), (A, 1), (B, 4), (A, 2)]:
        s = registry.apply_move(s.id, actor, position)
    registry.leave(s.id, B)
    assert [slot.actor for slot in registry.get(s.id).roster] == [A, B]

    report = registry.settle(s.id)
    assert report.win_rates == {B: 0.0}
    assert stats.get(B)['losses'] == 1
