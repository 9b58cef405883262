from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..engine.apply import apply_move, move_label
from ..engine.board import (
    BISHOP,
    BLACK,
    EMPTY,
    HEDGE,
    KING,
    KNIGHT,
    LETTER_TO_PIECE,
    NUM_PIECE_VALUES,
    OFF,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    Board,
    extract_colour,
    extract_piece,
    opposite_colour,
)
from ..engine.fen import new_game_board
from ..engine.game import Game


logger = logging.getLogger(__name__)

MINOR_PIECE = "L"
DEFAULT_MOVE_DEPTH = 2

# Piece counts indexed [colour][piece]; the OFF and EMPTY slots stay zero.
PieceCounts = List[List[int]]


class Occurs(Enum):
    EXACTLY = "exactly"
    NUM_OR_MORE = "num_or_more"
    NUM_OR_LESS = "num_or_less"
    SAME_AS_OPPONENT = "same_as_opponent"
    NOT_SAME_AS_OPPONENT = "not_same_as_opponent"
    LESS_THAN_OPPONENT = "less_than_opponent"
    MORE_THAN_OPPONENT = "more_than_opponent"
    LESS_EQ_THAN_OPPONENT = "less_eq_than_opponent"
    MORE_EQ_THAN_OPPONENT = "more_eq_than_opponent"


class MaterialSpecError(ValueError):
    """Raised when an ending line cannot be parsed."""


def _default_counts() -> List[List[int]]:
    counts = [[0] * NUM_PIECE_VALUES for _ in range(2)]
    for colour in (BLACK, WHITE):
        counts[colour][KING] = 1
    return counts


def _default_occurs() -> List[List[Occurs]]:
    return [[Occurs.EXACTLY] * NUM_PIECE_VALUES for _ in range(2)]


@dataclass
class EndingDetails:
    """Required material for one ending.

    The first piece set of a line is stored under WHITE and the second under
    BLACK; which game colour each is tested against is decided at match time.
    Both assignments are tried unless ``both_colours`` is False, in which case
    only White is tested against the first set.
    ``match_depth`` counts consecutive matching positions per game colour.
    """

    both_colours: bool = True
    num_pieces: List[List[int]] = field(default_factory=_default_counts)
    occurs: List[List[Occurs]] = field(default_factory=_default_occurs)
    num_minor_pieces: List[int] = field(default_factory=lambda: [0, 0])
    minor_occurs: List[Occurs] = field(default_factory=lambda: [Occurs.EXACTLY, Occurs.EXACTLY])
    move_depth: int = DEFAULT_MOVE_DEPTH
    match_depth: List[int] = field(default_factory=lambda: [0, 0])
    text: str = ""

    def reset_match_depths(self) -> None:
        self.match_depth = [0, 0]

    def has_minor_requirement(self, set_colour: int) -> bool:
        return self.num_minor_pieces[set_colour] > 0 or self.minor_occurs[set_colour] != Occurs.EXACTLY


# --- Parsing ----------------------------------------------------------------------

_SIMPLE_SUFFIXES = {
    "*": (0, Occurs.NUM_OR_MORE),
    "+": (None, Occurs.NUM_OR_MORE),
    "-": (None, Occurs.NUM_OR_LESS),
    "?": (1, Occurs.NUM_OR_LESS),
    "=": (None, Occurs.SAME_AS_OPPONENT),
    "#": (None, Occurs.NOT_SAME_AS_OPPONENT),
}


def extract_combination(text: str, i: int, line: str) -> Tuple[int, Occurs, int]:
    """Read an optional single-digit count and operator starting at ``text[i]``.

    Returns:
        tuple[int, Occurs, int]: The count, the operator and the index after them.
    """
    number = 1
    occurs = Occurs.EXACTLY
    if i < len(text) and text[i].isdigit():
        number = int(text[i])
        i += 1
        if i < len(text) and text[i].isdigit():
            raise MaterialSpecError(f"number > 9 is too big in {line!r}")
    if i >= len(text):
        return number, occurs, i
    ch = text[i]
    if ch in _SIMPLE_SUFFIXES:
        forced, occurs = _SIMPLE_SUFFIXES[ch]
        if forced is not None:
            number = forced
        i += 1
    elif ch in "<>":
        inclusive = text[i + 1:i + 2] == "="
        if ch == "<":
            occurs = Occurs.LESS_EQ_THAN_OPPONENT if inclusive else Occurs.LESS_THAN_OPPONENT
        else:
            occurs = Occurs.MORE_EQ_THAN_OPPONENT if inclusive else Occurs.MORE_THAN_OPPONENT
        i += 2 if inclusive else 1
    return number, occurs, i


def extract_piece_information(text: str, i: int, details: EndingDetails, set_colour: int, line: str) -> int:
    """Read one whitespace-delimited piece set into ``details``; return the index after it."""
    while i < len(text) and not text[i].isspace():
        letter = text[i].upper()
        if letter in LETTER_TO_PIECE:
            piece = LETTER_TO_PIECE[letter]
            number, occurs, i = extract_combination(text, i + 1, line)
            if piece == KING and number != 1:
                logger.warning("a king must occur exactly once in %r", line)
                number = 1
            elif piece == PAWN and number > 8:
                logger.warning("no more than 8 pawns are allowed in %r", line)
                number = 8
            details.num_pieces[set_colour][piece] = number
            details.occurs[set_colour][piece] = occurs
        elif letter == MINOR_PIECE:
            number, occurs, i = extract_combination(text, i + 1, line)
            details.num_minor_pieces[set_colour] = number
            details.minor_occurs[set_colour] = occurs
        else:
            raise MaterialSpecError(f"unknown symbol at {text[i:]!r} in {line!r}")

    if details.has_minor_requirement(set_colour):
        explicit = any(
            details.num_pieces[set_colour][piece] > 0
            or details.occurs[set_colour][piece] != Occurs.EXACTLY
            for piece in (BISHOP, KNIGHT)
        )
        if explicit:
            logger.info(
                "the mixture of minor pieces in %r is not guaranteed to work; "
                "in a single set stick to either L or B and/or N",
                line,
            )
    return i


def parse_ending_line(line: str, both_colours: bool = True) -> EndingDetails:
    """Parse one ending line such as ``4 KQ KR`` or ``KR+P* KR``.

    An optional leading number is the stability depth in plies. The first
    piece set follows; an optional second set, separated by whitespace,
    constrains the other side, which is otherwise unconstrained beyond its
    king. Anything after the second set is a comment.

    Raises:
        MaterialSpecError: If the line cannot be parsed.
    """
    details = EndingDetails(both_colours=both_colours, text=line.strip())
    text = line
    i = 0
    while i < len(text) and text[i].isspace():
        i += 1
    if i < len(text) and text[i].isdigit():
        start = i
        while i < len(text) and text[i].isdigit():
            i += 1
        details.move_depth = int(text[start:i])
        while i < len(text) and text[i].isspace():
            i += 1
    if i >= len(text):
        raise MaterialSpecError(f"no piece set in {line!r}")

    i = extract_piece_information(text, i, details, WHITE, line)
    while i < len(text) and text[i].isspace():
        i += 1
    if i < len(text):
        extract_piece_information(text, i, details, BLACK, line)
    else:
        for piece in range(PAWN, KING + 1):
            details.num_pieces[BLACK][piece] = 0
            details.occurs[BLACK][piece] = Occurs.NUM_OR_MORE
        details.num_pieces[BLACK][KING] = 1
        details.occurs[BLACK][KING] = Occurs.EXACTLY
    return details


# --- Matching ---------------------------------------------------------------------

_PIECE_TESTS: dict[Occurs, Callable[[int, int, int], bool]] = {
    Occurs.EXACTLY: lambda available, wanted, opponent: available == wanted,
    Occurs.NUM_OR_MORE: lambda available, wanted, opponent: available >= wanted,
    Occurs.NUM_OR_LESS: lambda available, wanted, opponent: available <= wanted,
    Occurs.SAME_AS_OPPONENT: lambda available, wanted, opponent: available == opponent,
    Occurs.NOT_SAME_AS_OPPONENT: lambda available, wanted, opponent: available != opponent,
    Occurs.LESS_THAN_OPPONENT: lambda available, wanted, opponent: available + wanted <= opponent,
    Occurs.MORE_THAN_OPPONENT: lambda available, wanted, opponent: available - wanted >= opponent,
    # The inclusive forms mean exactly ``wanted`` fewer or more than the opponent.
    Occurs.LESS_EQ_THAN_OPPONENT: lambda available, wanted, opponent: available + wanted == opponent,
    Occurs.MORE_EQ_THAN_OPPONENT: lambda available, wanted, opponent: available - wanted == opponent,
}


def piece_match(num_available: int, num_to_find: int, num_opponents: int, occurs: Occurs) -> bool:
    return _PIECE_TESTS[occurs](num_available, num_to_find, num_opponents)


def piece_set_match(details: EndingDetails, counts: PieceCounts, game_colour: int, set_colour: int) -> bool:
    """Test one piece set of ``details`` against ``game_colour``'s material.

    A bishop or knight mismatch is forgiven when the set has a minor-piece
    requirement, which is then tested against bishops plus knights instead.
    """
    opponent = opposite_colour(game_colour)
    minor_failure = False
    for piece in (PAWN, KNIGHT, BISHOP, ROOK, QUEEN):
        if not piece_match(
            counts[game_colour][piece],
            details.num_pieces[set_colour][piece],
            counts[opponent][piece],
            details.occurs[set_colour][piece],
        ):
            if piece in (KNIGHT, BISHOP):
                minor_failure = True
            else:
                return False

    if details.has_minor_requirement(set_colour):
        return piece_match(
            counts[game_colour][BISHOP] + counts[game_colour][KNIGHT],
            details.num_minor_pieces[set_colour],
            counts[opponent][BISHOP] + counts[opponent][KNIGHT],
            details.minor_occurs[set_colour],
        )
    return not minor_failure


def ending_match(details: EndingDetails, counts: PieceCounts, game_colour: int) -> bool:
    """Test the first set against ``game_colour`` and the second against the other side.

    A match is only reported once it has held for ``move_depth`` earlier
    consecutive tests; any mismatch resets the count.
    """
    matched = piece_set_match(details, counts, game_colour, WHITE) and piece_set_match(
        details, counts, opposite_colour(game_colour), BLACK
    )
    if not matched:
        details.match_depth[game_colour] = 0
        return False
    if details.match_depth[game_colour] < details.move_depth:
        details.match_depth[game_colour] += 1
        return False
    return True


def count_pieces(board: Board) -> PieceCounts:
    counts = [[0] * NUM_PIECE_VALUES for _ in range(2)]
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant not in (OFF, EMPTY):
                counts[extract_colour(occupant)][extract_piece(occupant)] += 1
    return counts


@dataclass
class EndingMatch:
    """Where an ending was found: the colour playing the first piece set and the board."""

    colour: int
    board: Board
    ply: int


def look_for_ending(game: Game, details: EndingDetails) -> Optional[EndingMatch]:
    """Replay ``game`` until the material in ``details`` has held long enough.

    Every position is tested, including the one after the last move. Counts
    are kept incrementally from captures and promotions rather than by
    rescanning the board.

    Returns:
        Optional[EndingMatch]: The first stable match, or None when there is
        none or the moves cannot be played.
    """
    board = new_game_board(game.fen)
    counts = count_pieces(board)
    details.reset_match_depths()

    ply = 0
    while True:
        if ending_match(details, counts, WHITE):
            return EndingMatch(colour=WHITE, board=board, ply=ply)
        if details.both_colours and ending_match(details, counts, BLACK):
            return EndingMatch(colour=BLACK, board=board, ply=ply)
        if ply >= len(game.moves):
            return None

        move = game.moves[ply]
        mover = board.to_move
        if not move.text:
            logger.error("internal error: empty move in ending search", extra=game.identity())
            return None
        label = move_label(board, move)
        if not apply_move(move, board):
            logger.debug("ending search stopped at unplayable move %s", label, extra=game.identity())
            return None
        if move.captured_piece != EMPTY:
            counts[opposite_colour(mover)][move.captured_piece] -= 1
        if move.promoted_piece != EMPTY:
            counts[mover][move.promoted_piece] += 1
            counts[mover][PAWN] -= 1
        ply += 1


def material_matches(game: Game, endings: List[EndingDetails]) -> Optional[Tuple[EndingDetails, EndingMatch]]:
    """First ending in ``endings`` that ``game`` reaches."""
    for details in endings:
        found = look_for_ending(game, details)
        if found is not None:
            return details, found
    return None
