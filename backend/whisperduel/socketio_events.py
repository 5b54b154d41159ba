from functools import wraps
from typing import Dict, Iterable, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from whisperduel import socketio, get_dispatcher
from whisperduel.errors import GameError, NotAuthorized
from whisperduel.services.games.dispatcher import Outbound

CONNECTIONS_KEY = 'whisperduel.connections'


class ConnectionMap:
    """Two-way mapping between Socket.IO sids and player ids.

    A sid lives as long as one connection; a player id as long as one seat.
    """

    def __init__(self):
        self._sid_to_player: Dict[str, str] = {}
        self._player_to_sid: Dict[str, str] = {}

    def bind(self, sid: str, player_id: str) -> None:
        self._sid_to_player[sid] = player_id
        self._player_to_sid[player_id] = sid

    def unbind(self, sid: str) -> Optional[str]:
        player_id = self._sid_to_player.pop(sid, None)
        if player_id is not None:
            self._player_to_sid.pop(player_id, None)
        return player_id

    def player_for(self, sid: str) -> Optional[str]:
        return self._sid_to_player.get(sid)

    def sid_for(self, player_id: str) -> Optional[str]:
        return self._player_to_sid.get(player_id)


def _connections() -> ConnectionMap:
    return current_app.extensions[CONNECTIONS_KEY]


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _channel(room_id: str) -> str:
    return f"room:{room_id}"


def _deliver(events: Iterable[Outbound]) -> None:
    connections = _connections()
    for out in events:
        if out.room_id is not None:
            emit(out.event, out.payload, to=_channel(out.room_id))
            continue
        sid = connections.sid_for(out.player_id)
        if sid:
            emit(out.event, out.payload, to=sid)


def _seated_actor(room_id) -> str:
    """Player id of the caller, who must be seated in ``room_id``."""
    dispatcher = get_dispatcher(current_app)
    dispatcher.registry.get(room_id)
    player_id = _connections().player_for(_get_sid())
    player = dispatcher.registry.player(player_id) if player_id else None
    if player is None or player.room_id != room_id:
        raise NotAuthorized('You are not in this room')
    return player_id


def game_action(handler):
    """Run a handler and fan out its events, or reject to the caller only."""
    @wraps(handler)
    def wrapper(data=None):
        try:
            events = handler(data if isinstance(data, dict) else {})
        except GameError as exc:
            current_app.logger.info(
                f"[rejected] event={handler.__name__} sid={_get_sid()} reason={exc.reason} message={exc.message}"
            )
            emit('rejected', exc.to_dict())
            return
        _deliver(events or [])
    return wrapper


def handle_connect():
    emit('connected', {'message': 'Connected to Whisper Duel'})


def _leave_current_room(explicit: bool) -> None:
    player, events = get_dispatcher(current_app).leave_connection(_get_sid(), _connections())
    if explicit and player is not None:
        leave_room(_channel(player.room_id))
    _deliver(events)


def handle_disconnect(reason=None):
    # A dropped connection is an implicit leave; an in-flight round is not cancelled
    _leave_current_room(explicit=False)


@game_action
def handle_leave_room(data):
    _leave_current_room(explicit=True)
    emit('left', {})


@game_action
def handle_join_room(data):
    player, events = get_dispatcher(current_app).join(
        data.get('room_id'),
        data.get('room_name'),
        data.get('display_name'),
        connection_id=_get_sid(),
        connections=_connections(),
    )
    join_room(_channel(player.room_id))
    return events


@game_action
def handle_start_game(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).start_game(room_id, _seated_actor(room_id))


@game_action
def handle_ask_question(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).ask_question(
        room_id, _seated_actor(room_id), data.get('question'), data.get('receiver_id'),
    )


@game_action
def handle_select_answer(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).select_answer(
        room_id, _seated_actor(room_id), data.get('answerer_id'),
    )


@game_action
def handle_rps_choice(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).submit_rps_choice(
        room_id, _seated_actor(room_id), data.get('choice'),
    )


@game_action
def handle_skip_question(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).skip_question(room_id, _seated_actor(room_id))


@game_action
def handle_send_chat_message(data):
    room_id = data.get('room_id')
    return get_dispatcher(current_app).chat(room_id, _seated_actor(room_id), data.get('message'))


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_room': handle_join_room,
    'leave_room': handle_leave_room,
    'start_game': handle_start_game,
    'ask_question': handle_ask_question,
    'select_answer': handle_select_answer,
    'rps_choice': handle_rps_choice,
    'skip_question': handle_skip_question,
    'send_chat_message': handle_send_chat_message,
}


def register_socketio_handlers(namespace: str = '/ws', testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on ``namespace``. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)

    if testing and namespace != '/':
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
