from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from .board import EMPTY, KING, LETTER_TO_PIECE


class MoveClass(IntEnum):
    PAWN_MOVE = 0
    PAWN_MOVE_WITH_PROMOTION = 1
    ENPASSANT_PAWN_MOVE = 2
    PIECE_MOVE = 3
    KINGSIDE_CASTLE = 4
    QUEENSIDE_CASTLE = 5
    NULL_MOVE = 6
    UNKNOWN_MOVE = 7


class CheckStatus(IntEnum):
    NOCHECK = 0
    CHECK = 1
    CHECKMATE = 2


PAWN_CLASSES = (
    MoveClass.PAWN_MOVE,
    MoveClass.PAWN_MOVE_WITH_PROMOTION,
    MoveClass.ENPASSANT_PAWN_MOVE,
)
CASTLE_CLASSES = (MoveClass.KINGSIDE_CASTLE, MoveClass.QUEENSIDE_CASTLE)


@dataclass
class Move:
    """One ply of move text and everything learned about it by replay.

    Attributes:
        text (str): Move text as read, rewritten to SAN by ``rewrite_game``.
        move_class (MoveClass): Syntactic class, refined during resolution.
        from_col, from_rank, to_col, to_rank (str): Algebraic coordinates;
            ``""`` when not (yet) known.
        piece_to_move (int): Piece type moved, ``EMPTY`` until resolved.
        captured_piece (int): Piece type taken, ``EMPTY`` if none.
        promoted_piece (int): Piece type promoted to, ``EMPTY`` if none.
        check_status (CheckStatus): Status of the opponent after the move.
        epd, fen_suffix (Optional[str]): Position after the move, when stored.
        zobrist (Optional[str]): Polyglot key after the move as hex.
        evaluation (Optional[float]): Shannon evaluation after the move.
        terminating_result (Optional[str]): Result text following the move.
    """

    text: str
    move_class: MoveClass = MoveClass.UNKNOWN_MOVE
    from_col: str = ""
    from_rank: str = ""
    to_col: str = ""
    to_rank: str = ""
    piece_to_move: int = EMPTY
    captured_piece: int = EMPTY
    promoted_piece: int = EMPTY
    check_status: CheckStatus = CheckStatus.NOCHECK
    epd: Optional[str] = None
    fen_suffix: Optional[str] = None
    zobrist: Optional[str] = None
    evaluation: Optional[float] = None
    nags: List[str] = field(default_factory=list)
    comments: List[str] = field(default_factory=list)
    variations: List["Variation"] = field(default_factory=list)
    terminating_result: Optional[str] = None

    @property
    def is_castle(self) -> bool:
        return self.move_class in CASTLE_CLASSES


@dataclass
class Variation:
    moves: List[Move] = field(default_factory=list)
    prefix_comment: List[str] = field(default_factory=list)
    suffix_comment: List[str] = field(default_factory=list)


_PIECE_RE = re.compile(r"^([KQRNB])([a-h])?([1-8])?([a-h])([1-8])$")
_PAWN_TO_RE = re.compile(r"^([a-h])([1-8])(?:=?([QRNBqrnb]))?$")
_PAWN_LONG_RE = re.compile(r"^([a-h])([1-8])([a-h])([1-8])(?:=?([QRNBqrnb]))?$")
_PAWN_CAPTURE_RE = re.compile(r"^([a-h])([a-h])([1-8])?(?:=?([QRNBqrnb]))?$")
_CASTLE_CHARS = set("O0o")


def _promotion_piece(letter: Optional[str]) -> int:
    if not letter:
        return EMPTY
    return LETTER_TO_PIECE[letter.upper()]


def decode_move(text: str) -> Move:
    """Classify SAN-style move text and pull out its coordinates.

    Accepted forms include ``e4``, ``e2e4``, ``exd5``, ``ed``, ``e8=Q``,
    ``e8Q``, ``e8b`` (bishop), ``Nf3``, ``Nbd2``, ``N1f3``, ``Ng1f3``,
    ``O-O``/``0-0-0``, and ``--`` for a null move. Trailing ``+``/``#`` and an
    ``ep``/``e.p.`` suffix are accepted. Anything else is classed
    ``UNKNOWN_MOVE``.

    Args:
        text (str): Move text.

    Returns:
        Move: Move with ``move_class`` and any known coordinates filled in.
    """
    move = Move(text=text)
    core = text.rstrip("+#")
    if core == "--":
        move.move_class = MoveClass.NULL_MOVE
        return move

    enpassant = False
    for suffix in ("e.p.", "ep"):
        if core.endswith(suffix) and len(core) > len(suffix):
            core = core[: -len(suffix)]
            enpassant = True
            break

    stripped = core.replace("-", "")
    if stripped and set(stripped) <= _CASTLE_CHARS and len(set(stripped)) == 1:
        if len(stripped) == 2:
            move.move_class = MoveClass.KINGSIDE_CASTLE
        elif len(stripped) == 3:
            move.move_class = MoveClass.QUEENSIDE_CASTLE
        move.piece_to_move = KING if move.is_castle else EMPTY
        return move

    body = re.sub(r"[x:\-]", "", core)
    m = _PIECE_RE.match(body)
    if m:
        move.move_class = MoveClass.PIECE_MOVE
        move.piece_to_move = LETTER_TO_PIECE[m.group(1)]
        move.from_col = m.group(2) or ""
        move.from_rank = m.group(3) or ""
        move.to_col, move.to_rank = m.group(4), m.group(5)
        return move

    promotion: Optional[str] = None
    m = _PAWN_TO_RE.match(body)
    if m:
        move.to_col, move.to_rank, promotion = m.group(1), m.group(2), m.group(3)
        move.from_col = move.to_col
    else:
        m = _PAWN_LONG_RE.match(body)
        if m:
            move.from_col, move.from_rank = m.group(1), m.group(2)
            move.to_col, move.to_rank = m.group(3), m.group(4)
            promotion = m.group(5)
        else:
            m = _PAWN_CAPTURE_RE.match(body)
            if not m or m.group(1) == m.group(2):
                return move
            move.from_col, move.to_col = m.group(1), m.group(2)
            move.to_rank = m.group(3) or ""
            promotion = m.group(4)
            if promotion and not move.to_rank:
                return move
    if promotion:
        move.move_class = MoveClass.PAWN_MOVE_WITH_PROMOTION
        move.promoted_piece = _promotion_piece(promotion)
    elif enpassant:
        move.move_class = MoveClass.ENPASSANT_PAWN_MOVE
    else:
        move.move_class = MoveClass.PAWN_MOVE
    return move
