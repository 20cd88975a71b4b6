from flask import Blueprint, jsonify, request, current_app
from werkzeug.exceptions import HTTPException

from lobby.errors import GameError, error_payload, is_development
from lobby.services.broadcast import broadcaster
from lobby.services.players import players, validate_name
from lobby.services.registry import parse_game_code, registry


sessions = Blueprint('sessions', __name__)


@sessions.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify({'error': exc.to_dict()}), exc.status_code


@sessions.errorhandler(Exception)
def handle_unexpected_error(exc):
    if isinstance(exc, HTTPException):
        return exc
    payload = error_payload(exc, debug=is_development(), logger=current_app.logger)
    return jsonify({'error': payload}), 500


@sessions.route('/join', methods=['POST'])
def join_game():
    """Create-or-join. Without ``gameCode`` a fresh session is created first."""
    data = request.get_json(silent=True) or {}
    player_name = validate_name(data.get('playerName'))
    game_code = parse_game_code(data.get('gameCode'))
    if game_code is None:
        game_code = registry.create_session()
    result = players.join(player_name, game_code)
    return jsonify(result.to_dict())


@sessions.route('/<int:game_code>/status', methods=['GET'])
def get_game_status(game_code):
    snapshot = broadcaster.snapshot(game_code)
    if snapshot is None:
        # Round in progress; the rule engine owns that view
        return jsonify({'playing': True})
    return jsonify(snapshot)
