"""Who may trigger which transition.

The ``can_*`` predicates are pure and side-effect free. :func:`authorize`
runs the predicate for an action and raises the most specific rejection when
it fails, before the room is touched.
"""
from whisperduel.errors import (
    InvalidPhase,
    InvalidRPSParticipant,
    NotAuthorized,
    NotEnoughPlayers,
)
from whisperduel.models import GameRoom, Phase

START = 'start_game'
ASK = 'ask_question'
SELECT_ANSWER = 'select_answer'
SUBMIT_RPS = 'submit_rps_choice'
SKIP = 'skip_question'


def _is_current_asker(actor_id, room: GameRoom) -> bool:
    asker = room.current_asker
    return asker is not None and asker.id == actor_id


def can_start(actor_id, room: GameRoom) -> bool:
    return actor_id == room.creator_id and len(room.players) >= room.min_players


def can_ask(actor_id, room: GameRoom) -> bool:
    return room.phase == Phase.PLAYING and _is_current_asker(actor_id, room)


def can_select_answer(actor_id, room: GameRoom) -> bool:
    return room.phase == Phase.QUESTION_ASKED and actor_id == room.current_receiver_id


def can_submit_rps(actor_id, room: GameRoom) -> bool:
    return room.phase == Phase.RPS_PENDING and actor_id in room.rps_participants


def can_skip(actor_id, room: GameRoom) -> bool:
    return can_ask(actor_id, room)


def _deny_start(actor_id, room):
    if actor_id != room.creator_id:
        raise NotAuthorized('Only the room creator can start the game')
    if room.phase != Phase.WAITING:
        raise InvalidPhase('The game has already started')
    raise NotEnoughPlayers(f"At least {room.min_players} players are required to start")


def _deny_turn(actor_id, room):
    # the turn pointer is meaningless in the lobby
    if room.phase == Phase.WAITING:
        if room.find_player(actor_id) is None:
            raise NotAuthorized('You are not in this room')
        raise InvalidPhase('The game has not started')
    if not _is_current_asker(actor_id, room):
        raise NotAuthorized('It is not your turn')
    raise InvalidPhase(f"Room is {room.phase.value}, not waiting for a question")


def _deny_select(actor_id, room):
    if actor_id != room.current_receiver_id:
        raise NotAuthorized('Only the receiver can pick who answers')
    raise InvalidPhase('An answerer has already been picked')


def _deny_rps(actor_id, room):
    if actor_id not in room.rps_participants:
        raise InvalidRPSParticipant('You are not part of this duel')
    raise InvalidPhase('No duel is in progress')


_RULES = {
    START: (can_start, _deny_start),
    ASK: (can_ask, _deny_turn),
    SELECT_ANSWER: (can_select_answer, _deny_select),
    SUBMIT_RPS: (can_submit_rps, _deny_rps),
    SKIP: (can_skip, _deny_turn),
}


def authorize(action: str, actor_id, room: GameRoom) -> None:
    predicate, deny = _RULES[action]
    if not predicate(actor_id, room):
        deny(actor_id, room)
