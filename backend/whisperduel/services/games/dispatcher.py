import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from whisperduel.errors import AlreadyInRoom, InvalidPayload, NotAuthorized
from whisperduel.models import GameRoom, Player, RPSResolution
from whisperduel.services.games import gate
from whisperduel.services.games.registry import RoomRegistry
from whisperduel.services.games.rps import RPSChoice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outbound:
    """One event for the transport to deliver.

    Exactly one of ``room_id`` (whole room) or ``player_id`` (single player)
    is set.
    """
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)
    room_id: Optional[str] = None
    player_id: Optional[str] = None


def _required_text(value, name) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{name} is required")
    return value.strip()


def _player_ref(player: Optional[Player]):
    return player.to_dict() if player else None


def _chat_event(room: GameRoom, sender: Optional[Player], text: str) -> Outbound:
    """A chat line for the room; ``sender`` None means the game itself speaks."""
    return Outbound('chat_message', {
        'sender_id': sender.id if sender else None,
        'sender_name': sender.display_name if sender else 'Game',
        'text': text,
        'timestamp': datetime.now().strftime('%H:%M:%S'),
    }, room_id=room.id)


class GameDispatcher:
    """Applies inbound actions to rooms, one at a time.

    Every public method either raises a ``GameError`` without having mutated
    anything, or returns the outbound events describing what changed.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        self._lock = threading.RLock()

    def _roster_event(self, room: GameRoom) -> Outbound:
        return Outbound('roster_updated', room.to_roster_dict(), room_id=room.id)

    def _announce_resolution(self, room: GameRoom, resolution: RPSResolution) -> Outbound:
        if resolution.tie:
            return _chat_event(room, None, 'Tie! Rock-paper-scissors will be played again.')
        winner = room.find_player(resolution.winner_id)
        name = winner.display_name if winner else 'Someone'
        if resolution.revealed_question is None:
            return _chat_event(room, winner, f"{name} won! The question stays secret.")
        return _chat_event(room, winner, f'{name} won! The question was: "{resolution.revealed_question}"')

    def join(self, room_id, room_name, display_name,
             connection_id: Optional[str] = None, connections=None) -> Tuple[Player, List[Outbound]]:
        """Seat a new player.

        When ``connections`` is given, the caller's existing seat is checked
        and the new seat is bound to ``connection_id`` in the same locked step,
        so one connection can never hold two seats.
        """
        room_id = _required_text(room_id, 'room_id')
        display_name = _required_text(display_name, 'display_name')
        room_name = room_name.strip() if isinstance(room_name, str) and room_name.strip() else room_id
        with self._lock:
            if connections is not None:
                seated_id = connections.player_for(connection_id)
                if seated_id and self.registry.player(seated_id) is not None:
                    raise AlreadyInRoom('Leave your current room before joining another')
            # only an existing room can be full, so a rejected join never creates one
            player = Player(uuid.uuid4().hex, display_name, room_id)
            room = self.registry.get_or_create(room_id, room_name, player.id)
            room.add_player(player)
            self.registry.seat(player)
            if connections is not None:
                connections.bind(connection_id, player.id)
            logger.info(f"[join] room={room.id} player={player.id} size={len(room.players)}")
            return player, [
                self._roster_event(room),
                Outbound('room_joined', {
                    'room_id': room.id,
                    'room_name': room.name,
                    'player_id': player.id,
                }, player_id=player.id),
            ]

    def start_game(self, room_id, actor_id) -> List[Outbound]:
        with self._lock:
            room = self.registry.get(room_id)
            gate.authorize(gate.START, actor_id, room)
            asker = room.start_game()
            logger.info(f"[game-started] room={room.id} turn_index={room.turn_index} asker={asker.id}")
            return [
                Outbound('game_started', {
                    'turn_index': room.turn_index,
                    'current_asker': _player_ref(asker),
                }, room_id=room.id),
                self._roster_event(room),
            ]

    def ask_question(self, room_id, actor_id, question, receiver_id) -> List[Outbound]:
        if not isinstance(question, str):
            raise InvalidPayload('question is required')
        with self._lock:
            room = self.registry.get(room_id)
            gate.authorize(gate.ASK, actor_id, room)
            room.ask_question(question, receiver_id)
            asker_name = room.name_of(actor_id)
            receiver_name = room.name_of(receiver_id)
            logger.info(f"[question-asked] room={room.id} asker={actor_id} receiver={receiver_id}")
            return [
                Outbound('question_delivered', {
                    'question': question,
                    'asker_name': asker_name,
                }, player_id=receiver_id),
                Outbound('question_announced', {
                    'asker_name': asker_name,
                    'receiver_name': receiver_name,
                }, room_id=room.id),
                self._roster_event(room),
            ]

    def select_answer(self, room_id, actor_id, answerer_id) -> List[Outbound]:
        with self._lock:
            room = self.registry.get(room_id)
            gate.authorize(gate.SELECT_ANSWER, actor_id, room)
            room.select_answerer(answerer_id)
            receiver_name = room.name_of(room.current_receiver_id)
            answerer_name = room.name_of(answerer_id)
            logger.info(f"[answer-selected] room={room.id} receiver={actor_id} answerer={answerer_id}")
            return [
                Outbound('answer_announced', {
                    'receiver_name': receiver_name,
                    'answerer_name': answerer_name,
                }, room_id=room.id),
                Outbound('rps_challenge', {'challenger_name': receiver_name}, player_id=answerer_id),
                Outbound('rps_started', {
                    'player1_name': receiver_name,
                    'player2_name': answerer_name,
                    'participants': list(room.rps_participants),
                }, room_id=room.id),
                self._roster_event(room),
            ]

    def submit_rps_choice(self, room_id, actor_id, choice) -> List[Outbound]:
        parsed = RPSChoice.parse(choice)
        with self._lock:
            room = self.registry.get(room_id)
            gate.authorize(gate.SUBMIT_RPS, actor_id, room)
            resolution = room.submit_rps_choice(actor_id, parsed)
            if resolution is None:
                return []
            if resolution.tie:
                logger.info(f"[rps-tie] room={room.id} choice={parsed.value}")
            else:
                logger.info(
                    f"[rps-resolved] room={room.id} outcome={resolution.outcome.value} "
                    f"winner={resolution.winner_id} rounds={len(room.history)}"
                )
            events = [
                Outbound('rps_resolved', {
                    'outcome': resolution.outcome.value,
                    'winner_id': resolution.winner_id,
                    'revealed': bool(resolution.record and resolution.record.revealed),
                    'question': resolution.revealed_question,
                    'next_asker': _player_ref(room.current_asker),
                    'receiver_name': room.name_of(resolution.receiver_id),
                    'answerer_name': room.name_of(resolution.answerer_id),
                    'receiver_choice': resolution.receiver_choice.value,
                    'answerer_choice': resolution.answerer_choice.value,
                }, room_id=room.id),
            ]
            events.append(self._announce_resolution(room, resolution))
            if not resolution.tie:
                events.append(self._roster_event(room))
            return events

    def skip_question(self, room_id, actor_id) -> List[Outbound]:
        with self._lock:
            room = self.registry.get(room_id)
            gate.authorize(gate.SKIP, actor_id, room)
            next_asker = room.skip_question()
            logger.info(f"[turn-skipped] room={room.id} by={actor_id} next={next_asker.id}")
            return [
                Outbound('turn_skipped', {'next_asker': _player_ref(next_asker)}, room_id=room.id),
                self._roster_event(room),
            ]

    def leave(self, player_id) -> List[Outbound]:
        with self._lock:
            room, destroyed = self.registry.remove_player(player_id)
            if room is None:
                return []
            logger.info(f"[leave] room={room.id} player={player_id} destroyed={destroyed} phase={room.phase.value}")
            if destroyed:
                return []
            return [self._roster_event(room)]

    def leave_connection(self, connection_id, connections) -> Tuple[Optional[Player], List[Outbound]]:
        """Unbind a connection and unseat its player as one step."""
        with self._lock:
            player_id = connections.unbind(connection_id)
            if player_id is None:
                return None, []
            player = self.registry.player(player_id)
            return player, self.leave(player_id)

    def chat(self, room_id, actor_id, message) -> List[Outbound]:
        text = _required_text(message, 'message')
        with self._lock:
            room = self.registry.get(room_id)
            sender = room.find_player(actor_id)
            if sender is None:
                raise NotAuthorized('You are not in this room')
            return [_chat_event(room, sender, text)]

    def list_rooms(self) -> List[dict]:
        with self._lock:
            return list(self.registry.list_summaries())
