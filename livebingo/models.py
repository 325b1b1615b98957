from datetime import datetime, timezone
import json
import random
import string
import uuid

from livebingo import db


ROOM_STATUSES = ('waiting', 'playing', 'ended')


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def name_key(name):
    """Case-insensitive form of a display name, unique per room."""
    return (name or '').strip().casefold()


def _new_player_id():
    return uuid.uuid4().hex


def generate_room_code(length=6):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Room.query.filter_by(code=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(12), unique=True, nullable=False, index=True)
    host_connection_id = db.Column(db.String(64), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default='waiting')  # waiting, playing, ended
    winning_pattern = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of cell indices
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)

    players = db.relationship('Player', back_populates='room', order_by='Player.joined_at',
                              cascade='all, delete-orphan')
    draws = db.relationship('Draw', order_by='Draw.seq', cascade='all, delete-orphan')
    winners = db.relationship('Winner', order_by='Winner.rank', cascade='all, delete-orphan')

    @property
    def pattern(self):
        try:
            return sorted(set(json.loads(self.winning_pattern or '[]')))
        except ValueError:
            return []

    @property
    def numbers_drawn(self):
        return [d.number for d in self.draws]

    @property
    def current_number(self):
        return self.draws[-1].number if self.draws else None

    @property
    def winner_names(self):
        return [w.player_name for w in self.winners]

    @property
    def host(self):
        for p in self.players:
            if p.is_host:
                return p
        return None

    def find_player(self, player_id=None, name=None):
        """Resolve a player by durable id, falling back to display name."""
        if player_id:
            for p in self.players:
                if p.id == player_id:
                    return p
        if name:
            for p in self.players:
                if p.name == name:
                    return p
        return None

    def player_for_connection(self, connection_id):
        for p in self.players:
            if connection_id and p.connection_id == connection_id:
                return p
        return None


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'name_key', name='uq_player_room_name'),
    )
    id = db.Column(db.String(32), primary_key=True, default=_new_player_id)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    connection_id = db.Column(db.String(64), nullable=True, index=True)
    name = db.Column(db.String(64), nullable=False)
    name_key = db.Column(db.String(64), nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    is_spectator = db.Column(db.Boolean, default=False, nullable=False)
    connected = db.Column(db.Boolean, default=True, nullable=False)
    card_matrix = db.Column(db.Text, nullable=True)  # JSON-encoded 5x5 grid
    joined_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    room = db.relationship('Room', back_populates='players')
    marks = db.relationship('MarkedCell', cascade='all, delete-orphan')

    @property
    def card(self):
        if not self.card_matrix:
            return None
        return json.loads(self.card_matrix)

    @property
    def marked_indices(self):
        return sorted(m.cell_index for m in self.marks)

    @property
    def holds_card(self):
        return not self.is_host and not self.is_spectator and bool(self.card_matrix)

    def to_dict(self, include_card=False):
        data = {
            'id': self.id,
            'name': self.name,
            'isHost': self.is_host,
            'isSpectator': self.is_spectator,
            'connected': self.connected,
        }
        if include_card:
            data['cardMatrix'] = self.card
            data['markedIndices'] = self.marked_indices
        return data


class Draw(db.Model):
    __tablename__ = 'draw'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'number', name='uq_draw_room_number'),
        db.UniqueConstraint('room_id', 'seq', name='uq_draw_room_seq'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    seq = db.Column(db.Integer, nullable=False)
    number = db.Column(db.Integer, nullable=False)


class MarkedCell(db.Model):
    __tablename__ = 'marked_cell'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'cell_index', name='uq_mark_player_cell'),
    )
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(32), db.ForeignKey('player.id'), nullable=False, index=True)
    cell_index = db.Column(db.Integer, nullable=False)


class Winner(db.Model):
    __tablename__ = 'winner'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'player_name', name='uq_winner_room_name'),
        db.UniqueConstraint('room_id', 'rank', name='uq_winner_room_rank'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.String(32), nullable=True)
    player_name = db.Column(db.String(64), nullable=False)
    rank = db.Column(db.Integer, nullable=False)
