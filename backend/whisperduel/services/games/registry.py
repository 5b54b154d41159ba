import logging
import random
from typing import Dict, Iterator, Optional, Tuple

from whisperduel.errors import RoomNotFound
from whisperduel.models import GameRoom, Player, MIN_PLAYERS, MAX_PLAYERS

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every live room and seated player of the process.

    The registry is the only place rooms are created or dropped. Removing the
    last player and deleting the room happen in the same call.
    """

    def __init__(self, min_players: int = MIN_PLAYERS, max_players: int = MAX_PLAYERS,
                 rng: Optional[random.Random] = None):
        if not MIN_PLAYERS <= min_players <= max_players <= MAX_PLAYERS:
            raise ValueError(
                f"Roster bounds must satisfy {MIN_PLAYERS} <= MIN_PLAYERS <= MAX_PLAYERS <= {MAX_PLAYERS}, "
                f"got MIN_PLAYERS={min_players} MAX_PLAYERS={max_players}"
            )
        self.min_players = min_players
        self.max_players = max_players
        self._rng = rng
        self._rooms: Dict[str, GameRoom] = {}
        self._players: Dict[str, Player] = {}

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_id):
        return room_id in self._rooms

    def get(self, room_id) -> GameRoom:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def get_or_create(self, room_id: str, room_name: str, creator_id: str) -> GameRoom:
        room = self._rooms.get(room_id)
        if room is not None:
            return room
        room = GameRoom(
            room_id,
            room_name or room_id,
            creator_id,
            min_players=self.min_players,
            max_players=self.max_players,
            rng=self._rng,
        )
        self._rooms[room_id] = room
        logger.info(f"[room-created] room={room_id} creator={creator_id}")
        return room

    def seat(self, player: Player) -> None:
        self._players[player.id] = player

    def player(self, player_id) -> Optional[Player]:
        return self._players.get(player_id)

    def remove_player(self, player_id) -> Tuple[Optional[GameRoom], bool]:
        """Unseat a player; returns their room and whether it was destroyed."""
        player = self._players.pop(player_id, None)
        if player is None:
            return None, False
        room = self._rooms.get(player.room_id)
        if room is None:
            return None, False
        room.remove_player(player_id)
        destroyed = self.remove_if_empty(room.id)
        return room, destroyed

    def remove_if_empty(self, room_id) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.players:
            return False
        del self._rooms[room_id]
        logger.info(f"[room-destroyed] room={room_id} rounds={len(room.history)}")
        return True

    def list_summaries(self) -> Iterator[dict]:
        for room in list(self._rooms.values()):
            yield room.summary()

    def shutdown(self) -> None:
        if self._rooms:
            logger.info(f"[shutdown] dropping {len(self._rooms)} room(s)")
        self._rooms.clear()
        self._players.clear()
