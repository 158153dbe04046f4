from datetime import datetime, timezone

from flask_login import UserMixin

from geoduel import db


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    last_active_at = db.Column(db.DateTime(timezone=True), nullable=True)


class Country(db.Model):
    __tablename__ = 'countries'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), unique=True, nullable=False)
    capital = db.Column(db.String(128), nullable=True)
    flag_url = db.Column(db.String(512), nullable=True)


class Match(db.Model):
    """A head-to-head match between a challenger and an opponent.

    Rows are created by the challenge flow; the match server only reads
    active rows and writes progress, forfeits and final results.
    """
    __tablename__ = 'multiplayer_matches'
    id = db.Column(db.Integer, primary_key=True)
    challenger_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    opponent_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    game_type = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), default='pending', nullable=False)  # pending, active, completed, cancelled
    challenger_score = db.Column(db.Integer, default=0)
    opponent_score = db.Column(db.Integer, default=0)
    winner_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    answers = db.relationship('MatchAnswer', backref='match', lazy='dynamic', cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'cancelled')",
            name='ck_multiplayer_matches_status',
        ),
    )

    def involves(self, user_id):
        return user_id in (self.challenger_id, self.opponent_id)

    def to_dict(self):
        return {
            'id': self.id,
            'challenger_id': self.challenger_id,
            'opponent_id': self.opponent_id,
            'game_type': self.game_type,
            'status': self.status,
            'challenger_score': self.challenger_score,
            'opponent_score': self.opponent_score,
            'winner_id': self.winner_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class MatchAnswer(db.Model):
    __tablename__ = 'multiplayer_answers'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('multiplayer_matches.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    question_index = db.Column(db.Integer, nullable=False)
    question_data_json = db.Column(db.Text, nullable=False)
    user_answer = db.Column(db.Text, nullable=True)
    correct_answer = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    time_ms = db.Column(db.Integer, default=0)
    points = db.Column(db.Integer, default=0)
    answered_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'user_id': self.user_id,
            'question_index': self.question_index,
            'user_answer': self.user_answer,
            'correct_answer': self.correct_answer,
            'is_correct': self.is_correct,
            'time_ms': self.time_ms,
            'points': self.points,
            'answered_at': self.answered_at.isoformat() if self.answered_at else None,
        }
