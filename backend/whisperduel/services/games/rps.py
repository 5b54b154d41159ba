from enum import Enum

from whisperduel.errors import InvalidChoice


class RPSChoice(str, Enum):
    ROCK = 'rock'
    PAPER = 'paper'
    SCISSORS = 'scissors'

    @classmethod
    def parse(cls, value) -> 'RPSChoice':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidChoice(f"Unknown choice {value!r}; expected rock, paper or scissors")


class RPSOutcome(str, Enum):
    TIE = 'tie'
    RECEIVER_WINS = 'receiver'
    ANSWERER_WINS = 'answerer'


# key beats value
BEATS = {
    RPSChoice.ROCK: RPSChoice.SCISSORS,
    RPSChoice.PAPER: RPSChoice.ROCK,
    RPSChoice.SCISSORS: RPSChoice.PAPER,
}


def resolve_rps(receiver_choice: RPSChoice, answerer_choice: RPSChoice) -> RPSOutcome:
    """Decide a duel between the receiver and the answerer.

    Argument order matters: the receiver winning keeps the question secret,
    the answerer winning reveals it.
    """
    if receiver_choice == answerer_choice:
        return RPSOutcome.TIE
    if BEATS[answerer_choice] == receiver_choice:
        return RPSOutcome.ANSWERER_WINS
    return RPSOutcome.RECEIVER_WINS
