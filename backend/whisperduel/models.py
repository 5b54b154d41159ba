import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from whisperduel.errors import InvalidPhase, InvalidTarget, RoomFull, NotEnoughPlayers
from whisperduel.services.games.rps import RPSChoice, RPSOutcome, resolve_rps

MIN_PLAYERS = 4
MAX_PLAYERS = 8


class Phase(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    QUESTION_ASKED = 'question_asked'
    RPS_PENDING = 'rps_pending'


@dataclass
class Player:
    id: str
    display_name: str
    room_id: str

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.display_name,
            'room_id': self.room_id,
        }


@dataclass
class RoundRecord:
    question: str
    asker_id: str
    receiver_id: str
    answerer_id: str
    outcome: RPSOutcome
    winner_id: str
    revealed: bool

    def to_dict(self, redact=False):
        return {
            # a question the receiver kept secret is never replayed
            'question': None if (redact and not self.revealed) else self.question,
            'asker_id': self.asker_id,
            'receiver_id': self.receiver_id,
            'answerer_id': self.answerer_id,
            'outcome': self.outcome.value,
            'winner_id': self.winner_id,
            'revealed': self.revealed,
        }


@dataclass
class RPSResolution:
    """Result of a completed duel, tie or not."""
    outcome: RPSOutcome
    receiver_id: str
    answerer_id: str
    receiver_choice: RPSChoice
    answerer_choice: RPSChoice
    winner_id: Optional[str] = None
    record: Optional[RoundRecord] = None

    @property
    def tie(self) -> bool:
        return self.outcome == RPSOutcome.TIE

    @property
    def revealed_question(self) -> Optional[str]:
        if self.record is not None and self.record.revealed:
            return self.record.question
        return None


class GameRoom:
    """Roster, turn pointer and phase of one room.

    Transition methods check the phase they require and raise ``InvalidPhase``
    otherwise. Whether the *actor* may trigger a transition is decided by
    :mod:`whisperduel.services.games.gate` before any of these are called.
    """

    def __init__(self, room_id: str, name: str, creator_id: str,
                 min_players: int = MIN_PLAYERS, max_players: int = MAX_PLAYERS,
                 rng: Optional[random.Random] = None):
        self.id = room_id
        self.name = name
        self.creator_id = creator_id
        self.min_players = min_players
        self.max_players = max_players
        self.players: List[Player] = []
        self.phase = Phase.WAITING
        self.turn_index = 0
        self.history: List[RoundRecord] = []
        self._rng = rng or random.Random()
        self._clear_round()

    def _clear_round(self) -> None:
        self.current_question: Optional[str] = None
        self.current_asker_id: Optional[str] = None
        self.current_receiver_id: Optional[str] = None
        self.current_answerer_id: Optional[str] = None
        self.rps_participants: List[str] = []
        self.rps_choices: Dict[str, RPSChoice] = {}

    def _require_phase(self, phase: Phase) -> None:
        if self.phase != phase:
            raise InvalidPhase(f"Room {self.id} is {self.phase.value}, expected {phase.value}")

    # ---- roster ----

    def find_player(self, player_id) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def index_of(self, player_id) -> int:
        for idx, p in enumerate(self.players):
            if p.id == player_id:
                return idx
        return -1

    def name_of(self, player_id) -> Optional[str]:
        player = self.find_player(player_id)
        return player.display_name if player else None

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def add_player(self, player: Player) -> None:
        if self.is_full:
            raise RoomFull(f"Room {self.id} already has {self.max_players} players")
        self.players.append(player)

    def remove_player(self, player_id) -> Optional[Player]:
        idx = self.index_of(player_id)
        if idx < 0:
            return None
        player = self.players.pop(idx)
        # a departed duelist's choice must never decide a round
        self.rps_choices.pop(player_id, None)

        if self.phase != Phase.WAITING and len(self.players) < self.min_players:
            self.phase = Phase.WAITING
            self.turn_index = 0
            self._clear_round()
        elif self.phase != Phase.WAITING:
            # keep the pointer on the same asker, or hand the turn to whoever
            # followed the departed one
            if idx < self.turn_index:
                self.turn_index -= 1
            elif idx == self.turn_index:
                self.turn_index %= len(self.players)
        elif not self.players:
            self.turn_index = 0
        return player

    @property
    def current_asker(self) -> Optional[Player]:
        if not self.players or not 0 <= self.turn_index < len(self.players):
            return None
        return self.players[self.turn_index]

    # ---- transitions ----

    def start_game(self) -> Player:
        self._require_phase(Phase.WAITING)
        if len(self.players) < self.min_players:
            raise NotEnoughPlayers(
                f"At least {self.min_players} players are required to start, got {len(self.players)}"
            )
        self._clear_round()
        self.turn_index = self._rng.randrange(len(self.players))
        self.phase = Phase.PLAYING
        return self.current_asker

    def ask_question(self, question: str, receiver_id) -> None:
        self._require_phase(Phase.PLAYING)
        asker = self.current_asker
        if self.find_player(receiver_id) is None:
            raise InvalidTarget(f"Player {receiver_id} is not in room {self.id}")
        if receiver_id == asker.id:
            raise InvalidTarget('You cannot ask yourself')
        self.current_question = question
        self.current_asker_id = asker.id
        self.current_receiver_id = receiver_id
        self.phase = Phase.QUESTION_ASKED

    def select_answerer(self, answerer_id) -> None:
        self._require_phase(Phase.QUESTION_ASKED)
        if self.find_player(answerer_id) is None:
            raise InvalidTarget(f"Player {answerer_id} is not in room {self.id}")
        if answerer_id == self.current_receiver_id:
            raise InvalidTarget('The receiver cannot answer for themselves')
        self.current_answerer_id = answerer_id
        self.rps_participants = [self.current_receiver_id, answerer_id]
        self.rps_choices = {}
        self.phase = Phase.RPS_PENDING

    def submit_rps_choice(self, player_id, choice: RPSChoice) -> Optional[RPSResolution]:
        """Record a choice; returns the resolution once both sides have played."""
        self._require_phase(Phase.RPS_PENDING)
        self.rps_choices[player_id] = RPSChoice(choice)
        if len(self.rps_choices) < 2:
            return None
        return self._resolve_rps()

    def _resolve_rps(self) -> RPSResolution:
        receiver_id, answerer_id = self.rps_participants
        receiver_choice = self.rps_choices[receiver_id]
        answerer_choice = self.rps_choices[answerer_id]
        outcome = resolve_rps(receiver_choice, answerer_choice)
        resolution = RPSResolution(
            outcome=outcome,
            receiver_id=receiver_id,
            answerer_id=answerer_id,
            receiver_choice=receiver_choice,
            answerer_choice=answerer_choice,
        )

        if outcome == RPSOutcome.TIE:
            self.rps_choices = {}
            return resolution

        revealed = outcome == RPSOutcome.ANSWERER_WINS
        winner_id = answerer_id if revealed else receiver_id
        record = RoundRecord(
            question=self.current_question,
            asker_id=self.current_asker_id,
            receiver_id=receiver_id,
            answerer_id=answerer_id,
            outcome=outcome,
            winner_id=winner_id,
            revealed=revealed,
        )
        self.history.append(record)
        resolution.winner_id = winner_id
        resolution.record = record

        self.turn_index = self.index_of(winner_id)
        self._clear_round()
        self.phase = Phase.PLAYING
        return resolution

    def skip_question(self) -> Player:
        self._require_phase(Phase.PLAYING)
        self.turn_index = (self.turn_index + 1) % len(self.players)
        return self.current_asker

    # ---- serialization ----

    def to_roster_dict(self):
        return {
            'players': [p.to_dict() for p in self.players],
            'phase': self.phase.value,
            'turn_index': self.turn_index,
            'rps_participants': list(self.rps_participants),
        }

    def summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'player_count': len(self.players),
            'phase': self.phase.value,
        }

    def to_dict(self):
        payload = self.summary()
        payload.update(self.to_roster_dict())
        payload['creator_id'] = self.creator_id
        payload['rounds_played'] = len(self.history)
        return payload
