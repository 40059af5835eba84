from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from flask_login import current_user
from functools import wraps
from typing import Dict, Set
import time
from playroom import db, socketio, get_registry, broadcast
from playroom.services.games.errors import GameError
from playroom.services.games.session import is_open, snapshot


# Socket id -> game ids this socket subscribed to
_sid_to_games: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room(game_id: str) -> str:
    return f"game:{game_id}"


def _subscribe(game_id: str) -> None:
    join_room(_room(game_id))
    _sid_to_games.setdefault(_get_sid(), set()).add(game_id)


def _unsubscribe(game_id: str) -> None:
    leave_room(_room(game_id))
    _sid_to_games.get(_get_sid(), set()).discard(game_id)


def game_action(handler):
    """Report rejected actions to the sender instead of dropping them."""
    @wraps(handler)
    def wrapper(data=None):
        if not current_user.is_authenticated:
            emit('error', {'error': 'Authentication required', 'code': 'Unauthorized'})
            return
        try:
            return handler(data or {})
        except GameError as exc:
            current_app.logger.info(f"[ws-rejected] {handler.__name__} user={current_user.id} {exc.code}: {exc}")
            emit('error', exc.to_dict())
    return wrapper


def _set_presence(online: bool) -> None:
    current_user.is_online = online
    current_user.last_active = time.time()
    db.session.commit()


def handle_connect(auth=None):
    if not current_user.is_authenticated:
        return False
    _set_presence(True)
    emit('connected', {'message': 'Connected to /ws', 'user': current_user.id})


def handle_disconnect(reason=None):
    game_ids = _sid_to_games.pop(_get_sid(), set())
    if not current_user.is_authenticated:
        return
    _set_presence(False)
    if not current_app.config.get('LEAVE_ON_DISCONNECT', True):
        return
    registry = get_registry()
    for game_id in game_ids:
        try:
            session = registry.get(game_id)
            if not is_open(session) or session.slot_index(current_user.id) is None:
                continue
            broadcast('player-disconnected', {'player_id': current_user.id, 'game': snapshot(session)}, game_id)
            registry.leave(game_id, current_user.id)
            current_app.logger.info(f"[disconnect-leave] game={game_id} user={current_user.id}")
        except GameError as exc:
            current_app.logger.warning(f"[disconnect-leave] game={game_id} user={current_user.id} {exc.code}: {exc}")


@game_action
def handle_join_game(data):
    game_id = data.get('game_id')
    if not game_id:
        emit('error', {'error': 'game_id is required', 'code': 'BadRequest'})
        return
    session = get_registry().get(game_id)
    _subscribe(session.id)
    emit('joined', {'room': _room(session.id), 'game': snapshot(session)})


@game_action
def handle_create_room(data):
    session = get_registry().create_room(data.get('type') or 'tic-tac-toe', current_user.id, name=data.get('name'))
    _subscribe(session.id)
    emit('room-created', snapshot(session))


@game_action
def handle_create_single(data):
    session = get_registry().create_single_player(data.get('type') or 'tic-tac-toe', current_user.id, name=data.get('name'))
    _subscribe(session.id)
    emit('room-created', snapshot(session))


@game_action
def handle_join_room(data):
    room_code = data.get('room_code')
    if not room_code:
        emit('error', {'error': 'room_code is required', 'code': 'BadRequest'})
        return
    registry = get_registry()
    found = registry.get_by_code(room_code)
    watching = found.id in _sid_to_games.get(_get_sid(), set())
    # Subscribe first so the broadcast of our own join reaches us
    _subscribe(found.id)
    try:
        registry.join_room(room_code, current_user.id)
    except GameError:
        if not watching:
            _unsubscribe(found.id)
        raise


@game_action
def handle_player_ready(data):
    get_registry().set_ready(data.get('game_id'), current_user.id)


@game_action
def handle_make_move(data):
    if 'position' not in data:
        emit('error', {'error': 'position is required', 'code': 'IllegalMove'})
        return
    get_registry().apply_move(data.get('game_id'), current_user.id, data['position'])


@game_action
def handle_leave_game(data):
    game_id = data.get('game_id')
    registry = get_registry()
    # Spectators only unsubscribe
    if registry.get(game_id).slot_index(current_user.id) is not None:
        registry.leave(game_id, current_user.id)
    _unsubscribe(game_id)
    emit('left', {'room': _room(game_id)})


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join-game': handle_join_game,
        'create-room': handle_create_room,
        'create-single': handle_create_single,
        'join-room': handle_join_room,
        'player-ready': handle_player_ready,
        'make-move': handle_make_move,
        'leave-game': handle_leave_game,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
