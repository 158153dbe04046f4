"""Durable match storage used by the coordinator.

Each call runs in its own app context and commits before returning, and
returns plain ``MatchRecord`` snapshots so no ORM instance outlives the
session it was loaded in.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from geoduel import db
from geoduel.models import Match, MatchAnswer, User
from .errors import PersistenceError


@dataclass(frozen=True)
class MatchRecord:
    id: int
    challenger_id: int
    opponent_id: int
    game_type: str
    status: str
    challenger_score: int = 0
    opponent_score: int = 0
    winner_id: Optional[int] = None

    @classmethod
    def from_model(cls, match: Match) -> 'MatchRecord':
        return cls(
            id=match.id,
            challenger_id=match.challenger_id,
            opponent_id=match.opponent_id,
            game_type=match.game_type,
            status=match.status,
            challenger_score=match.challenger_score or 0,
            opponent_score=match.opponent_score or 0,
            winner_id=match.winner_id,
        )


def _now():
    return datetime.now(timezone.utc)


class SqlMatchGateway:
    def __init__(self, app):
        self._app = app

    def _write(self, fn, *args):
        with self._app.app_context():
            try:
                result = fn(*args)
                db.session.commit()
                return result
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise PersistenceError(str(exc)) from exc

    def find_active_match(self, match_id, user_id) -> Optional[MatchRecord]:
        with self._app.app_context():
            match = Match.query.filter(
                Match.id == match_id,
                Match.status == 'active',
                or_(Match.challenger_id == user_id, Match.opponent_id == user_id),
            ).first()
            return MatchRecord.from_model(match) if match else None

    def mark_started(self, match_id) -> None:
        def _apply():
            match = db.session.get(Match, match_id)
            if match and match.started_at is None:
                match.started_at = _now()
        self._write(_apply)

    def record_answer(self, match_id, user_id, question_index, question, answer, is_correct, time_ms, points) -> None:
        def _apply():
            db.session.add(MatchAnswer(
                match_id=match_id,
                user_id=user_id,
                question_index=question_index,
                question_data_json=json.dumps(question.to_dict()),
                user_answer=None if answer is None else str(answer),
                correct_answer=question.correct_answer,
                is_correct=bool(is_correct),
                time_ms=int(time_ms),
                points=int(points),
            ))
        self._write(_apply)

    def forfeit(self, match_id, leaver_id) -> Optional[int]:
        """Complete a still-active match in favour of the other participant.

        Returns the winner id, or None if the match was no longer active.
        """
        def _apply():
            match = db.session.get(Match, match_id)
            if not match or match.status != 'active':
                return None
            winner_id = match.opponent_id if match.challenger_id == leaver_id else match.challenger_id
            match.status = 'completed'
            match.winner_id = winner_id
            match.completed_at = _now()
            return winner_id
        return self._write(_apply)

    def complete(self, match_id, scores: Dict[int, int], winner_id: Optional[int]) -> None:
        def _apply():
            match = db.session.get(Match, match_id)
            if not match:
                raise PersistenceError(f"match {match_id} vanished before completion")
            match.status = 'completed'
            match.winner_id = winner_id
            match.challenger_score = int(scores.get(match.challenger_id, 0))
            match.opponent_score = int(scores.get(match.opponent_id, 0))
            match.completed_at = _now()
        self._write(_apply)

    def touch_user(self, user_id) -> None:
        def _apply():
            user = db.session.get(User, user_id)
            if user:
                user.last_active_at = _now()
        self._write(_apply)
