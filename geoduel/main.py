from flask import Blueprint, current_app, jsonify

from geoduel.services.match import get_coordinator

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Geo Elevate match server!'})

@main.route('/health')
def health():
    coordinator = get_coordinator(current_app)
    return jsonify({
        'status': 'ok',
        'live_matches': len(coordinator.store),
        'connected_users': len(coordinator.registry),
    })
