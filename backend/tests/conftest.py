import os
import sys
from collections import namedtuple
import pytest

# Ensure the backend root (containing the `playroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from playroom import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    LEAVE_ON_DISCONNECT = True


# A registered, logged-in account and its HTTP client
Account = namedtuple('Account', ['id', 'username', 'client'])


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import playroom.models  # noqa: F401
        db.create_all()
    # No app context held across the test: each request pushes its own, so
    # Flask-Login's per-context user never leaks between test clients
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register(flask_app, username):
    http = flask_app.test_client()
    res = http.post('/register', json={
        'username': username,
        'email': f'{username}@example.com',
        'password': 'password',
    })
    assert res.status_code == 201
    return Account(res.get_json()['user']['id'], username, http)


@pytest.fixture()
def alice(flask_app):
    return register(flask_app, 'alice')


@pytest.fixture()
def bob(flask_app):
    return register(flask_app, 'bob')


@pytest.fixture()
def carol(flask_app):
    return register(flask_app, 'carol')


def connect(flask_app, account):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=account.client,
        namespace='/ws'
    )
    test_client.get_received('/ws')  # flush 'connected'
    return test_client


@pytest.fixture()
def alice_sio(flask_app, alice):
    test_client = connect(flask_app, alice)
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def bob_sio(flask_app, bob):
    test_client = connect(flask_app, bob)
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def carol_sio(flask_app, carol):
    test_client = connect(flask_app, carol)
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
