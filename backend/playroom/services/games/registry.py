"""Session registry and per-session guard.

Both delivery paths (HTTP routes and Socket.IO handlers) go through one
SessionRegistry. For a given session id every mutating call runs
load -> transition -> save while holding that session's lock, so two
requests racing on the same match are applied one after the other and the
second always sees the first one's result. Sessions never share a lock.

Room-code allocation has its own lock around check-then-insert so two rooms
created at the same moment cannot end up with the same open code.

Settlement and event publishing happen after the session lock is released.
"""
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional
import logging
import random
import string
import threading
import time

from . import session as machine
from .errors import CodeAllocationExhausted, SessionNotFound
from .session import MULTI, SINGLE, Session, Transition
from .settlement import SettlementReport, settle

logger = logging.getLogger(__name__)

SINGLE_PLAYER_PREFIX = 'SP-'


def generate_room_code(length=6):
    """Generate a short, shareable room code."""
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


class SessionRegistry:
    def __init__(self, store, stats_store, publisher: Optional[Callable] = None,
                 code_factory: Optional[Callable] = None, code_length: int = 6,
                 max_code_attempts: int = 10, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.stats_store = stats_store
        self.publisher = publisher
        self.code_factory = code_factory or generate_room_code
        self.code_length = code_length
        self.max_code_attempts = max_code_attempts
        self.rng = rng
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._code_lock = threading.Lock()

    # ---- Guards ----

    def _lock_for(self, session_id) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def _forget_lock(self, session_id) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    @contextmanager
    def guard(self, session_id):
        """Hold the session's lock for the duration of the block."""
        with self._lock_for(session_id):
            yield

    # ---- Lookup ----

    def get(self, session_id) -> Session:
        session = self.store.find_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_by_code(self, room_code) -> Session:
        session = self.store.find_session_by_room_code((room_code or '').upper())
        if session is None:
            raise SessionNotFound(room_code)
        return session

    def list_open(self) -> List[Session]:
        """Open multiplayer rooms, oldest first."""
        return self.store.list_open_sessions(MULTI)

    # ---- Creation ----

    def _allocate_code(self, prefix: str) -> str:
        # Caller holds the code lock
        for attempt in range(1, self.max_code_attempts + 1):
            code = prefix + self.code_factory(self.code_length)
            if self.store.find_session_by_room_code(code) is None:
                return code
            logger.warning(f"Room code collision on attempt {attempt}: {code}")
        raise CodeAllocationExhausted(
            f"No free room code after {self.max_code_attempts} attempts"
        )

    def _create(self, game_type, creator, mode, name) -> Session:
        with self._code_lock:
            code = self._allocate_code(SINGLE_PLAYER_PREFIX if mode == SINGLE else '')
            transition = machine.create(game_type, creator, mode, room_code=code, name=name, at=self.clock())
            self.store.save_session(transition.session)
        logger.info(f"Created {mode} {game_type} game {transition.session.id} with code {code}")
        self._after(transition)
        return transition.session

    def create_room(self, game_type, creator, name=None) -> Session:
        return self._create(game_type, creator, MULTI, name)

    def create_single_player(self, game_type, creator, name=None) -> Session:
        return self._create(game_type, creator, SINGLE, name)

    # ---- Transitions ----

    def _mutate(self, session_id, operation, *args, **kwargs) -> Session:
        with self.guard(session_id):
            current = self.store.find_session(session_id)
            if current is None:
                raise SessionNotFound(session_id)
            transition = operation(current, *args, **kwargs)
            if transition.discarded:
                self.store.delete_session(session_id)
            elif transition.session is not current:
                self.store.save_session(transition.session)
        # Completed sessions take no further moves, so their lock can go too
        if transition.discarded or transition.completed:
            self._forget_lock(session_id)
        if transition.discarded:
            logger.info(f"Discarded empty game {session_id}")
        self._after(transition)
        return transition.session

    def join_room(self, room_code, account) -> Session:
        found = self.get_by_code(room_code)
        return self._mutate(found.id, machine.join, account)

    def set_ready(self, session_id, account) -> Session:
        return self._mutate(session_id, machine.set_ready, account)

    def apply_move(self, session_id, account, move) -> Session:
        return self._mutate(session_id, machine.apply_move, account, move, rng=self.rng, at=self.clock())

    def leave(self, session_id, account) -> Session:
        return self._mutate(session_id, machine.leave, account)

    # ---- After the guard ----

    def settle(self, session_id) -> SettlementReport:
        """Settle a completed session again; accounts already counted are skipped."""
        return settle(self.get(session_id), self.stats_store)

    def _after(self, transition: Transition) -> None:
        current = transition.session
        if transition.previous_status != current.status:
            logger.info(f"Game {current.id}: {transition.previous_status} -> {current.status}")
        if transition.completed:
            settle(current, self.stats_store)
        if self.publisher is None:
            return
        if transition.discarded:
            self.publisher('game-closed', {'id': current.id}, current.id)
            return
        self.publisher('game-update', machine.snapshot(current), current.id)
        if transition.completed:
            self.publisher('game-over', {'winner': current.winner, 'game': machine.snapshot(current)}, current.id)
