from flask import Blueprint, jsonify

from livebingo.services.bingo import rooms as room_service
from livebingo.services.bingo.store import load_room

rooms = Blueprint('rooms', __name__)


@rooms.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'healthy'})


@rooms.route('/rooms/<string:room_code>/state', methods=['GET'])
def get_room_state(room_code):
    """
    Returns the public snapshot of a room: status, draws, pattern, winners
    and the roster with remaining counts. Cards are never included.
    """
    room = load_room(room_code)
    if not room:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(room_service.room_snapshot(room))
