from color_namer import db
import json


class GameRecord(db.Model):
    """One row per session; the whole game document lives in ``document``."""
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    document = db.Column(db.Text, nullable=False)
    last_activity = db.Column(db.Float, nullable=True, index=True)
    updates = db.relationship('GameUpdate', backref='game', lazy='dynamic')

    def load(self):
        return json.loads(self.document)

    def store(self, doc):
        self.document = json.dumps(doc)
        self.last_activity = doc.get('last_activity')

    def to_dict(self):
        return {
            'id': self.id,
            'game_code': self.game_code,
            'last_activity': self.last_activity,
        }


class GameUpdate(db.Model):
    """Diagnostic ring buffer entry; trimmed to the newest N per game."""
    __tablename__ = 'game_update'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    timestamp = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(32), nullable=False)
    player_id = db.Column(db.String(64), nullable=True)

    def to_dict(self):
        return {
            'timestamp': self.timestamp,
            'type': self.type,
            'player_id': self.player_id,
        }
