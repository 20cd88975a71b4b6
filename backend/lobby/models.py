from lobby import db
import time

MIN_GAME_CODE = 0  # inclusive
MAX_GAME_CODE = 1000000  # exclusive


class GameSession(db.Model):
    """Registry entry for one live session. Owns its status and roster."""
    __tablename__ = 'game_session'
    code = db.Column(db.Integer, primary_key=True, autoincrement=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    status = db.relationship(
        'SessionStatus', back_populates='session', uselist=False,
        cascade='all, delete-orphan',
    )
    players = db.relationship(
        'Player', back_populates='session', order_by='Player.order',
        cascade='all, delete-orphan',
    )


class SessionStatus(db.Model):
    __tablename__ = 'session_status'
    id = db.Column(db.Integer, primary_key=True)
    session_code = db.Column(
        db.Integer, db.ForeignKey('game_session.code', ondelete='CASCADE'),
        unique=True, nullable=False,
    )
    playing = db.Column(db.Boolean, default=False, nullable=False)
    # Epoch seconds of the last creation / round start / round end
    last_significant_change = db.Column(db.Float, nullable=False, default=time.time)
    session = db.relationship('GameSession', back_populates='status')


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('session_code', 'name', name='uq_player_session_name'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_code = db.Column(
        db.Integer, db.ForeignKey('game_session.code', ondelete='CASCADE'),
        nullable=False, index=True,
    )
    name = db.Column(db.String(64), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    hashed_key = db.Column(db.String(128), nullable=False)
    connection_id = db.Column(db.String(64), nullable=True)
    session = db.relationship('GameSession', back_populates='players')

    def to_dict(self):
        # Never expose hashed_key or connection_id to clients
        return {
            'name': self.name,
            'order': self.order,
        }
