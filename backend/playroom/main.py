from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from playroom import db
from playroom.models import User
import time

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Playroom game server!'})


@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    if not all([username, email, password]):
        return jsonify({'error': 'Username, email and password are required'}), 400

    if User.query.filter((User.username == username) | (User.email == email)).first():
        return jsonify({'error': 'Username or email already exists'}), 400

    user = User(username=username, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    identifier = (data.get('username') or data.get('email') or '').strip()
    user = User.query.filter((User.username == identifier) | (User.email == identifier.lower())).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'success': False, 'error': 'Invalid username or password'}), 401


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@main.route('/profile', methods=['GET'])
@login_required
def profile():
    return jsonify(current_user.to_dict())


@main.route('/status', methods=['PUT'])
@login_required
def update_status():
    data = request.get_json(silent=True) or {}
    is_online = data.get('is_online')
    if not isinstance(is_online, bool):
        return jsonify({'error': 'is_online must be true or false'}), 400
    current_user.is_online = is_online
    current_user.last_active = time.time()
    db.session.commit()
    return jsonify({'message': 'Online status updated', 'is_online': is_online})


@main.route('/users/<int:user_id>/stats', methods=['GET'])
@login_required
def user_stats(user_id):
    user = db.get_or_404(User, user_id)
    return jsonify({'id': user.id, 'username': user.username, 'stats': user.stats_dict()})
