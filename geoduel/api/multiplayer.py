import json

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from geoduel import db
from geoduel.models import Match, MatchAnswer
from geoduel.services.match import get_coordinator

multiplayer = Blueprint('multiplayer', __name__)


@multiplayer.route('/matches/<int:match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    """Match details for one of its participants.

    Answers are only revealed once the match is completed.
    """
    match = db.session.get(Match, match_id)
    if not match or not match.involves(current_user.id):
        return jsonify({'error': {'message': 'Match not found'}}), 404

    answers = []
    if match.status == 'completed':
        rows = (
            MatchAnswer.query.filter_by(match_id=match.id)
            .order_by(MatchAnswer.question_index, MatchAnswer.user_id)
            .all()
        )
        for row in rows:
            payload = row.to_dict()
            payload['question'] = json.loads(row.question_data_json)
            answers.append(payload)

    coordinator = get_coordinator(current_app)
    payload = match.to_dict()
    payload['phase'] = coordinator.phase_of(match.id).value
    return jsonify({'match': payload, 'answers': answers})


@multiplayer.route('/presence', methods=['GET'])
@login_required
def presence():
    """Online status for a comma separated list of user ids."""
    raw = request.args.get('ids', '')
    try:
        ids = [int(part) for part in raw.split(',') if part.strip()]
    except ValueError:
        return jsonify({'error': {'message': 'ids must be integers'}}), 400

    registry = get_coordinator(current_app).registry
    online = registry.reachable_subset(ids)
    return jsonify({'online': {str(i): i in online for i in ids}})
