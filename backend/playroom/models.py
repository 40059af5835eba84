from playroom import db, bcrypt
from flask_login import UserMixin
import json
import time


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    # Record
    matches_played = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    ties = db.Column(db.Integer, default=0, nullable=False)
    win_rate = db.Column(db.Float, default=0.0, nullable=False)
    # Presence
    is_online = db.Column(db.Boolean, default=False, nullable=False)
    last_active = db.Column(db.Float)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def record_outcome(self, outcome):
        """Count one finished match: outcome is 'win', 'loss' or 'tie'."""
        self.matches_played = (self.matches_played or 0) + 1
        if outcome == 'win':
            self.wins = (self.wins or 0) + 1
        elif outcome == 'loss':
            self.losses = (self.losses or 0) + 1
        elif outcome == 'tie':
            self.ties = (self.ties or 0) + 1
        else:
            raise ValueError(f"Unknown outcome {outcome!r}")
        return self.calculate_win_rate()

    def calculate_win_rate(self):
        # Ties count as played but not as decided
        decided = (self.wins or 0) + (self.losses or 0)
        self.win_rate = (self.wins / decided) * 100 if decided > 0 else 0.0
        return self.win_rate

    def stats_dict(self):
        return {
            'matches_played': self.matches_played or 0,
            'wins': self.wins or 0,
            'losses': self.losses or 0,
            'ties': self.ties or 0,
            'win_rate': self.win_rate or 0.0,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'is_online': bool(self.is_online),
            'last_active': self.last_active,
            'stats': self.stats_dict(),
        }


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(32), primary_key=True)
    # Not unique: codes are only unique among open sessions
    room_code = db.Column(db.String(16), index=True)
    game_type = db.Column(db.String(32), nullable=False)
    mode = db.Column(db.String(16), nullable=False, default='multi')
    status = db.Column(db.String(32), nullable=False, default='waiting', index=True)
    state = db.Column(db.Text, nullable=False)  # JSON-encoded session snapshot
    created_at = db.Column(db.Float, default=time.time)
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)

    def load_state(self):
        return json.loads(self.state)

    def store_state(self, data):
        self.room_code = data.get('room_code')
        self.game_type = data['type']
        self.mode = data.get('mode', 'multi')
        self.status = data['status']
        self.created_at = data.get('created_at')
        self.state = json.dumps(data)


class SettlementEntry(db.Model):
    __tablename__ = 'settlement_entry'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'account_id', name='uq_settlement_session_account'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(32), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    outcome = db.Column(db.String(8), nullable=False)
    created_at = db.Column(db.Float, default=time.time)
