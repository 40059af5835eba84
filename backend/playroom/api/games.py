from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from playroom import get_registry
from playroom.services.games.errors import GameError
from playroom.services.games.session import snapshot


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc):
    current_app.logger.info(f"[rejected] {exc.code}: {exc}")
    return jsonify(exc.to_dict()), exc.status_code


@games.route('/rooms', methods=['POST'])
@login_required
def create_room():
    data = request.get_json(silent=True) or {}
    game_type = data.get('type') or 'tic-tac-toe'
    session = get_registry().create_room(game_type, current_user.id, name=data.get('name'))
    current_app.logger.info(f"[create] game={session.id} code={session.room_code} by={current_user.id}")
    return jsonify({
        'message': 'Game room created successfully',
        'game': snapshot(session),
    }), 201


@games.route('/single', methods=['POST'])
@login_required
def create_single_player():
    data = request.get_json(silent=True) or {}
    game_type = data.get('type') or 'tic-tac-toe'
    session = get_registry().create_single_player(game_type, current_user.id, name=data.get('name'))
    current_app.logger.info(f"[create-single] game={session.id} by={current_user.id}")
    return jsonify({
        'message': 'Single-player game created successfully',
        'game': snapshot(session),
    }), 201


@games.route('/rooms', methods=['GET'])
@login_required
def list_rooms():
    return jsonify([snapshot(s) for s in get_registry().list_open()])


@games.route('/rooms/<string:room_code>/join', methods=['POST'])
@login_required
def join_room(room_code):
    session = get_registry().join_room(room_code, current_user.id)
    current_app.logger.info(f"[join] game={session.id} code={room_code.upper()} user={current_user.id}")
    return jsonify({
        'message': 'Joined game room successfully',
        'game': snapshot(session),
    })


@games.route('/<string:game_id>', methods=['GET'])
@login_required
def get_game_state(game_id):
    return jsonify(snapshot(get_registry().get(game_id)))


@games.route('/<string:game_id>/ready', methods=['PUT', 'POST'])
@login_required
def set_ready(game_id):
    session = get_registry().set_ready(game_id, current_user.id)
    return jsonify({
        'message': 'Player ready status updated',
        'game': snapshot(session),
    })


@games.route('/<string:game_id>/move', methods=['POST'])
@login_required
def make_move(game_id):
    data = request.get_json(silent=True) or {}
    if 'position' not in data:
        return jsonify({'error': 'position is required', 'code': 'IllegalMove'}), 400
    session = get_registry().apply_move(game_id, current_user.id, data['position'])
    current_app.logger.info(f"[move] game={game_id} user={current_user.id} position={data['position']} status={session.status}")
    return jsonify({
        'message': 'Move made successfully',
        'game': snapshot(session),
    })


@games.route('/<string:game_id>/leave', methods=['POST'])
@login_required
def leave_game(game_id):
    session = get_registry().leave(game_id, current_user.id)
    current_app.logger.info(f"[leave] game={game_id} user={current_user.id} status={session.status}")
    return jsonify({
        'message': 'You have left the game.',
        'game': snapshot(session),
    })
