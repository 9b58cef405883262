from __future__ import annotations

from typing import List, TYPE_CHECKING

from chess.polyglot import POLYGLOT_RANDOM_ARRAY

from .board import (
    BLACK,
    EMPTY,
    HEDGE,
    KING,
    NUM_PIECE_VALUES,
    OFF,
    PAWN,
    WHITE,
    BOARDSIZE,
    col_convert,
    extract_colour,
    extract_piece,
    make_coloured_piece,
    rank_convert,
)

if TYPE_CHECKING:  # pragma: no cover
    from .board import Board


MASK64 = 0xFFFFFFFFFFFFFFFF

# Offsets into the polyglot random array.
POLYGLOT_CASTLE_OFFSET = 768
POLYGLOT_EP_OFFSET = 772
POLYGLOT_TURN_OFFSET = 780


class _LinearCongruential:
    def __init__(self, seed: int = 0) -> None:
        self.state = seed & MASK64

    def next(self) -> int:
        # Deterministic 64-bit LCG; the low bits are discarded
        self.state = (self.state * 1103515245 + 123456789) & MASK64
        return self.state >> 7


class WeakHashTable:
    """Per square, piece and colour codes for the internal weak hash.

    Table layout:
    - code[col][rank][piece][colour], indexed with array coordinates so that
      the hedge cells simply hold zero.
    - Codes are drawn files a..h, then ranks 1..8, then PAWN..KING, then
      BLACK..WHITE, so values are stable across runs.
    """

    code: List[List[List[List[int]]]]

    def __init__(self, seed: int = 0) -> None:
        prng = _LinearCongruential(seed)
        self.code = [
            [[[0, 0] for _ in range(NUM_PIECE_VALUES)] for _ in range(BOARDSIZE)]
            for _ in range(BOARDSIZE)
        ]
        for c in range(HEDGE, HEDGE + 8):
            for r in range(HEDGE, HEDGE + 8):
                for piece in range(PAWN, KING + 1):
                    for colour in (BLACK, WHITE):
                        self.code[c][r][piece][colour] = prng.next()

    def lookup(self, col: str, rank: str, piece: int, colour: int) -> int:
        return self.code[col_convert(col)][rank_convert(rank)][piece][colour]


# Global deterministic table
WEAK_HASH = WeakHashTable()


def weak_hash_code(c: int, r: int, coloured_piece: int) -> int:
    """Code to XOR in or out when ``coloured_piece`` enters or leaves array square (c, r)."""
    return WEAK_HASH.code[c][r][extract_piece(coloured_piece)][extract_colour(coloured_piece)]


def compute_weak_hash(board: "Board") -> int:
    """Weak hash derived from occupancy alone.

    Equal to the value maintained incrementally by move application.
    """
    h = 0
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant not in (OFF, EMPTY):
                h ^= WEAK_HASH.code[c][r][extract_piece(occupant)][extract_colour(occupant)]
    return h


def _ep_capture_possible(board: "Board") -> bool:
    if not board.en_passant:
        return False
    c = col_convert(board.ep_col)
    # The capturing pawn stands on the rank the double-pushed pawn reached.
    r = rank_convert(board.ep_rank) + (-1 if board.to_move == WHITE else 1)
    own_pawn = make_coloured_piece(board.to_move, PAWN)
    return board.squares[r][c - 1] == own_pawn or board.squares[r][c + 1] == own_pawn


def polyglot_hash(board: "Board") -> int:
    """Compute the 64-bit polyglot opening-book key of ``board``.

    Castling contributes when a right is present for that side, and the
    en-passant file only when a pawn of the side to move stands ready to
    capture, whether or not the capture is legal.
    """
    h = 0
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant in (OFF, EMPTY):
                continue
            # PAWN..KING are 2..7 here; polyglot counts pawn=0 with black first.
            kind = 2 * (extract_piece(occupant) - PAWN) + (1 if extract_colour(occupant) == WHITE else 0)
            h ^= POLYGLOT_RANDOM_ARRAY[64 * kind + 8 * (r - HEDGE) + (c - HEDGE)]
    if board.white_king_castle:
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_CASTLE_OFFSET]
    if board.white_queen_castle:
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_CASTLE_OFFSET + 1]
    if board.black_king_castle:
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_CASTLE_OFFSET + 2]
    if board.black_queen_castle:
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_CASTLE_OFFSET + 3]
    if _ep_capture_possible(board):
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_EP_OFFSET + col_convert(board.ep_col) - HEDGE]
    if board.to_move == WHITE:
        h ^= POLYGLOT_RANDOM_ARRAY[POLYGLOT_TURN_OFFSET]
    return h & MASK64


def polyglot_hex(board: "Board") -> str:
    return f"{polyglot_hash(board):016x}"
