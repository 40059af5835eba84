"""Session state machine.

A session is an immutable snapshot; each transition function takes one and
returns a Transition wrapping the next snapshot. Nothing here touches the
database, sockets or the clock beyond an optional timestamp, so the whole
lifecycle can be driven directly from tests:

    waiting --(both ready)--> in-progress --(win/draw/leave)--> completed

Single-player sessions skip `waiting` and are created in progress with the
scripted opponent already seated.
"""
from dataclasses import dataclass, replace, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import time
import uuid

from .errors import InvalidGameType, NotAParticipant, NotInProgress, NotYourTurn, RoomClosed, RoomFull, IllegalMove
from .rules import NO_MOVE, rules_for


class Scripted(Enum):
    OPPONENT = 'ai'


SCRIPTED = Scripted.OPPONENT

WAITING = 'waiting'
IN_PROGRESS = 'in-progress'
COMPLETED = 'completed'

MULTI = 'multi'
SINGLE = 'single'

WIN = 'win'
DRAW = 'draw'
ABANDONED = 'abandoned'


@dataclass(frozen=True)
class Slot:
    actor: Any  # account id or SCRIPTED
    symbol: str
    ready: bool = False

    @property
    def is_scripted(self):
        return self.actor is SCRIPTED


@dataclass(frozen=True)
class MoveRecord:
    actor: Any
    position: int
    timestamp: float


@dataclass(frozen=True)
class Session:
    id: str
    room_code: str
    game_type: str
    mode: str = MULTI
    name: Optional[str] = None
    status: str = WAITING
    roster: Tuple[Slot, ...] = ()
    turn_holder: Any = None
    board: Any = None
    move_log: Tuple[MoveRecord, ...] = ()
    result: Optional[str] = None
    winner: Any = None
    forfeited_by: Any = None
    created_at: float = field(default_factory=time.time)

    @property
    def rules(self):
        return rules_for(self.game_type)

    def is_full(self) -> bool:
        return len(self.roster) == 2

    def slot_index(self, actor) -> Optional[int]:
        for idx, slot in enumerate(self.roster):
            if slot.actor == actor:
                return idx
        return None

    def accounts(self):
        return [slot.actor for slot in self.roster if not slot.is_scripted]


@dataclass(frozen=True)
class Transition:
    session: Session
    previous_status: Optional[str]
    discarded: bool = False

    @property
    def completed(self) -> bool:
        """True only on the in-progress -> completed edge."""
        return self.previous_status == IN_PROGRESS and self.session.status == COMPLETED


def is_open(session: Session) -> bool:
    return session.status in (WAITING, IN_PROGRESS)


def create(game_type: str, creator, mode: str = MULTI, session_id: Optional[str] = None,
           room_code: Optional[str] = None, name: Optional[str] = None,
           at: Optional[float] = None) -> Transition:
    if mode not in (MULTI, SINGLE):
        raise InvalidGameType(f"Unknown game mode: {mode!r}")
    rules = rules_for(game_type)
    if mode == SINGLE and not rules.supports_single_player:
        raise InvalidGameType(f"{game_type} has no single-player mode")
    first, second = rules.symbols
    base = Session(
        id=session_id or uuid.uuid4().hex,
        room_code=room_code,
        game_type=game_type,
        mode=mode,
        name=name,
        created_at=time.time() if at is None else at,
    )
    if mode == SINGLE:
        session = replace(
            base,
            status=IN_PROGRESS,
            roster=(Slot(creator, first, True), Slot(SCRIPTED, second, True)),
            turn_holder=creator,
            board=rules.initial_board(),
        )
    else:
        session = replace(base, roster=(Slot(creator, first),))
    return Transition(session, None)


def join(session: Session, account) -> Transition:
    if session.slot_index(account) is not None:
        return Transition(session, session.status)
    if session.status != WAITING:
        raise RoomClosed()
    if session.is_full():
        raise RoomFull()
    taken = {slot.symbol for slot in session.roster}
    symbol = next(s for s in session.rules.symbols if s not in taken)
    roster = session.roster + (Slot(account, symbol),)
    return Transition(replace(session, roster=roster), session.status)


def set_ready(session: Session, account) -> Transition:
    idx = session.slot_index(account)
    if idx is None:
        raise NotAParticipant()
    roster = list(session.roster)
    roster[idx] = replace(roster[idx], ready=True)
    updated = replace(session, roster=tuple(roster))
    if updated.status == WAITING and updated.is_full() and all(s.ready for s in updated.roster):
        updated = replace(
            updated,
            status=IN_PROGRESS,
            board=updated.board if updated.board is not None else updated.rules.initial_board(),
            turn_holder=updated.roster[0].actor,
        )
    return Transition(updated, session.status)


def _finish(session: Session, terminal, winner) -> Session:
    return replace(
        session,
        status=COMPLETED,
        turn_holder=None,
        result=WIN if terminal.kind == 'win' else DRAW,
        winner=winner if terminal.kind == 'win' else None,
    )


def apply_move(session: Session, account, move, rng=None, at: Optional[float] = None) -> Transition:
    if session.status != IN_PROGRESS:
        raise NotInProgress()
    if account != session.turn_holder:
        raise NotYourTurn()
    rules = session.rules
    position = rules.normalize(move)
    if not rules.is_legal(session.board, position):
        raise IllegalMove(f"Position {position} is not available")

    now = time.time() if at is None else at
    idx = session.slot_index(account)
    mover = session.roster[idx]
    board = rules.apply(session.board, position, mover.symbol)
    log = session.move_log + (MoveRecord(account, position, now),)
    updated = replace(session, board=board, move_log=log)

    terminal = rules.check_terminal(board)
    if terminal.is_over:
        return Transition(_finish(updated, terminal, account), session.status)

    other = session.roster[1 - idx] if session.is_full() else None
    if session.mode == SINGLE and other is not None and other.is_scripted:
        reply = rules.choose_opponent_move(board, other.symbol, mover.symbol, rng)
        if reply != NO_MOVE:
            board = rules.apply(board, reply, other.symbol)
            log = log + (MoveRecord(SCRIPTED, reply, now),)
            updated = replace(updated, board=board, move_log=log)
            terminal = rules.check_terminal(board)
            if terminal.is_over:
                return Transition(_finish(updated, terminal, None), session.status)
        return Transition(replace(updated, turn_holder=account), session.status)

    next_holder = other.actor if other is not None else account
    return Transition(replace(updated, turn_holder=next_holder), session.status)


def leave(session: Session, account) -> Transition:
    idx = session.slot_index(account)
    if idx is None:
        raise NotAParticipant()
    # A finished match keeps its roster for settlement retries and history
    if session.status == COMPLETED:
        return Transition(session, session.status)
    roster = session.roster[:idx] + session.roster[idx + 1:]
    if not roster:
        return Transition(replace(session, roster=()), session.status, discarded=True)
    if session.status == IN_PROGRESS:
        remaining = [slot.actor for slot in roster if not slot.is_scripted]
        updated = replace(
            session,
            roster=roster,
            status=COMPLETED,
            turn_holder=None,
            result=ABANDONED,
            winner=remaining[0] if remaining else None,
            forfeited_by=account,
        )
        return Transition(updated, session.status)
    return Transition(replace(session, roster=roster), session.status)


def outcomes(session: Session) -> Dict[Any, str]:
    """Record delta per real account for a completed session.

    Abandoned matches charge the leaver a loss and credit everyone who
    stayed with a win.
    """
    if session.status != COMPLETED:
        return {}
    accounts = session.accounts()
    if session.result == DRAW:
        return {a: 'tie' for a in accounts}
    if session.result == WIN:
        return {a: 'win' if a == session.winner else 'loss' for a in accounts}
    result = {a: 'win' for a in accounts}
    if session.forfeited_by is not None:
        result[session.forfeited_by] = 'loss'
    return result


# ---- Serialisation ----

def _actor_out(actor):
    return SCRIPTED.value if actor is SCRIPTED else actor


def _actor_in(value):
    return SCRIPTED if value == SCRIPTED.value else value


def snapshot(session: Session) -> Dict[str, Any]:
    return {
        'id': session.id,
        'room_code': session.room_code,
        'type': session.game_type,
        'name': session.name,
        'mode': session.mode,
        'status': session.status,
        'players': [
            {
                'user': _actor_out(slot.actor),
                'ai': slot.is_scripted,
                'symbol': slot.symbol,
                'ready': slot.ready,
            }
            for slot in session.roster
        ],
        'is_full': session.is_full(),
        'current_turn': _actor_out(session.turn_holder),
        'board': session.board.to_json() if session.board is not None else None,
        'moves': [
            {'player': _actor_out(m.actor), 'position': m.position, 'timestamp': m.timestamp}
            for m in session.move_log
        ],
        'result': session.result,
        'winner': session.winner,
        'forfeited_by': session.forfeited_by,
        'created_at': session.created_at,
    }


def restore(data: Dict[str, Any]) -> Session:
    rules = rules_for(data['type'])
    return Session(
        id=data['id'],
        room_code=data.get('room_code'),
        game_type=data['type'],
        mode=data.get('mode', MULTI),
        name=data.get('name'),
        status=data.get('status', WAITING),
        roster=tuple(
            Slot(_actor_in(p['user']), p['symbol'], bool(p.get('ready')))
            for p in data.get('players') or []
        ),
        turn_holder=_actor_in(data.get('current_turn')),
        board=rules.load_board(data['board']) if data.get('board') is not None else None,
        move_log=tuple(
            MoveRecord(_actor_in(m['player']), m['position'], m['timestamp'])
            for m in data.get('moves') or []
        ),
        result=data.get('result'),
        winner=data.get('winner'),
        forfeited_by=data.get('forfeited_by'),
        created_at=data.get('created_at') or time.time(),
    )
