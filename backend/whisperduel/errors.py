"""Rejection taxonomy for game actions.

Every error is local to one action: the action is dropped, room state is left
as it was, and the requester gets a ``rejected`` event built from
:meth:`GameError.to_dict`.
"""


class GameError(Exception):
    reason = 'game_error'

    def __init__(self, message=None):
        super().__init__(message or self.reason.replace('_', ' '))
        self.message = message or self.reason.replace('_', ' ')

    def to_dict(self):
        return {'reason': self.reason, 'message': self.message}


class RoomFull(GameError):
    reason = 'room_full'


class RoomNotFound(GameError):
    reason = 'room_not_found'

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class NotAuthorized(GameError):
    """Actor is not the player allowed to trigger this transition."""
    reason = 'not_authorized'


class InvalidPhase(GameError):
    """Actor is eligible but the room is in the wrong phase."""
    reason = 'invalid_phase'


class InvalidRPSParticipant(GameError):
    reason = 'invalid_rps_participant'


class NotEnoughPlayers(GameError):
    reason = 'not_enough_players'


class InvalidTarget(GameError):
    """Receiver or answerer is not a valid pick (not seated, or oneself)."""
    reason = 'invalid_target'


class InvalidChoice(GameError):
    reason = 'invalid_choice'


class AlreadyInRoom(GameError):
    reason = 'already_in_room'


class InvalidPayload(GameError):
    reason = 'invalid_payload'
