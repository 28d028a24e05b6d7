from flask import Blueprint, jsonify

from matchup import get_room_service

rooms = Blueprint('rooms', __name__)


@rooms.route('/<string:code>/state', methods=['GET'])
def get_room_state(code):
    """
    Returns the public state of a room: phase, round, items and progress.
    Individual choices are never exposed.
    """
    state = get_room_service().snapshot(code)
    if state is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(state), 200
