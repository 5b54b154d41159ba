from flask import Blueprint, jsonify, current_app

from whisperduel import get_dispatcher
from whisperduel.errors import RoomNotFound

rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(RoomNotFound)
def room_not_found(exc):
    return jsonify({'error': exc.message, 'reason': exc.reason}), 404


@rooms.route('', methods=['GET'])
@rooms.route('/', methods=['GET'])
def list_rooms():
    """
    Lists every live room for pre-join discovery. Read-only.
    """
    return jsonify(get_dispatcher(current_app).list_rooms())


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    dispatcher = get_dispatcher(current_app)
    room = dispatcher.registry.get(room_id)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_id>/history', methods=['GET'])
def get_history(room_id):
    """
    Returns the finished rounds of a room. Questions that stayed secret are
    redacted.
    """
    room = get_dispatcher(current_app).registry.get(room_id)
    return jsonify({
        'room_id': room.id,
        'rounds': [record.to_dict(redact=True) for record in room.history],
    })
