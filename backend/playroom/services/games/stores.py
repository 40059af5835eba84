"""Persistence collaborators for the session engine.

The registry and settlement only talk to these two small contracts:

    session store: find_session, find_session_by_room_code, save_session,
                   delete_session, list_open_sessions
    stats store:   increment_stats(session_id, account_id, outcome)

The SQLAlchemy-backed stores are what the app runs on; the in-memory ones
back the engine when no app context is around (tests, scripts).
"""
from collections import namedtuple
from typing import Dict, List, Optional
import threading

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from playroom import db
from playroom.models import GameSession, SettlementEntry, User
from .errors import PersistenceFailure
from .session import MULTI, WAITING, IN_PROGRESS, Session, is_open, restore, snapshot

OPEN_STATUSES = (WAITING, IN_PROGRESS)

# applied is False when the (session, account) pair was already settled
StatsUpdate = namedtuple('StatsUpdate', ['win_rate', 'applied'])


class SqlSessionStore:
    """Session snapshots stored as JSON rows in `game_session`."""

    def find_session(self, session_id) -> Optional[Session]:
        row = db.session.get(GameSession, session_id)
        return restore(row.load_state()) if row else None

    def find_session_by_room_code(self, room_code) -> Optional[Session]:
        row = GameSession.query.filter(
            GameSession.room_code == room_code,
            GameSession.status.in_(OPEN_STATUSES),
        ).order_by(GameSession.created_at.desc()).first()
        return restore(row.load_state()) if row else None

    def save_session(self, session: Session) -> None:
        try:
            row = db.session.get(GameSession, session.id)
            if row is None:
                row = GameSession(id=session.id)
                db.session.add(row)
            row.store_state(snapshot(session))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(f"Could not save game {session.id}: {exc}") from exc

    def delete_session(self, session_id) -> None:
        try:
            GameSession.query.filter_by(id=session_id).delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(f"Could not delete game {session_id}: {exc}") from exc

    def list_open_sessions(self, mode=MULTI) -> List[Session]:
        rows = GameSession.query.filter(
            GameSession.status.in_(OPEN_STATUSES),
            GameSession.mode == mode,
        ).order_by(GameSession.created_at).all()
        return [restore(row.load_state()) for row in rows]


class SqlStatsStore:
    """Account records on the `user` table, idempotent per (session, account)."""

    def increment_stats(self, session_id, account_id, outcome) -> StatsUpdate:
        try:
            if SettlementEntry.query.filter_by(session_id=session_id, account_id=account_id).first():
                user = db.session.get(User, account_id)
                return StatsUpdate(user.win_rate if user else 0.0, False)
            user = db.session.get(User, account_id)
            if user is None:
                raise PersistenceFailure(f"Account {account_id} not found")
            win_rate = user.record_outcome(outcome)
            db.session.add(SettlementEntry(session_id=session_id, account_id=account_id, outcome=outcome))
            db.session.commit()
            return StatsUpdate(win_rate, True)
        except IntegrityError:
            # Lost a race with another settlement pass for the same pair
            db.session.rollback()
            user = db.session.get(User, account_id)
            return StatsUpdate(user.win_rate if user else 0.0, False)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(f"Could not update stats for account {account_id}: {exc}") from exc


class MemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def find_session(self, session_id) -> Optional[Session]:
        return self._sessions.get(session_id)

    def find_session_by_room_code(self, room_code) -> Optional[Session]:
        with self._lock:
            for session in self._sessions.values():
                if session.room_code == room_code and is_open(session):
                    return session
        return None

    def save_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def delete_session(self, session_id) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def list_open_sessions(self, mode=MULTI) -> List[Session]:
        with self._lock:
            found = [s for s in self._sessions.values() if is_open(s) and s.mode == mode]
        return sorted(found, key=lambda s: s.created_at)


class MemoryStatsStore:
    def __init__(self):
        self.stats: Dict[object, Dict[str, float]] = {}
        self._settled = set()
        self._lock = threading.Lock()

    def get(self, account_id):
        return dict(self.stats.get(account_id) or self._blank())

    @staticmethod
    def _blank():
        return {'matches_played': 0, 'wins': 0, 'losses': 0, 'ties': 0, 'win_rate': 0.0}

    def increment_stats(self, session_id, account_id, outcome) -> StatsUpdate:
        key = {'win': 'wins', 'loss': 'losses', 'tie': 'ties'}.get(outcome)
        if key is None:
            raise PersistenceFailure(f"Unknown outcome {outcome!r}")
        with self._lock:
            record = self.stats.setdefault(account_id, self._blank())
            if (session_id, account_id) in self._settled:
                return StatsUpdate(record['win_rate'], False)
            record['matches_played'] += 1
            record[key] += 1
            decided = record['wins'] + record['losses']
            record['win_rate'] = (record['wins'] / decided) * 100 if decided > 0 else 0.0
            self._settled.add((session_id, account_id))
            return StatsUpdate(record['win_rate'], True)
