from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# Width of the sentinel border around the playing area. Two cells is the
# longest reach of a single knight step, so no step leaves the array.
HEDGE = 2
BOARDSIZE = 8 + 2 * HEDGE

FIRSTRANK, LASTRANK = "1", "8"
FIRSTCOL, LASTCOL = "a", "h"
RANKS = "12345678"
COLS = "abcdefgh"

# Square contents. Coloured pieces are (piece << PIECE_SHIFT) | colour, so
# they never collide with the raw OFF/EMPTY markers.
OFF, EMPTY, PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = range(8)
NUM_PIECE_VALUES = 8
BLACK, WHITE = 0, 1
PIECE_SHIFT = 3

PIECE_LETTERS = {PAWN: "P", KNIGHT: "N", BISHOP: "B", ROOK: "R", QUEEN: "Q", KING: "K"}
LETTER_TO_PIECE = {v: k for k, v in PIECE_LETTERS.items()}


def make_coloured_piece(colour: int, piece: int) -> int:
    return (piece << PIECE_SHIFT) | colour


def extract_piece(coloured_piece: int) -> int:
    if coloured_piece in (OFF, EMPTY):
        return coloured_piece
    return coloured_piece >> PIECE_SHIFT


def extract_colour(coloured_piece: int) -> int:
    return coloured_piece & 1


def opposite_colour(colour: int) -> int:
    return WHITE if colour == BLACK else BLACK


def rank_convert(rank: str) -> int:
    """Map a rank character to its array index, or 0 when out of range."""
    if len(rank) == 1 and FIRSTRANK <= rank <= LASTRANK:
        return ord(rank) - ord(FIRSTRANK) + HEDGE
    return 0


def col_convert(col: str) -> int:
    """Map a file character to its array index, or 0 when out of range."""
    if len(col) == 1 and FIRSTCOL <= col <= LASTCOL:
        return ord(col) - ord(FIRSTCOL) + HEDGE
    return 0


def rank_char(r: int) -> str:
    return chr(r - HEDGE + ord(FIRSTRANK))


def col_char(c: int) -> str:
    return chr(c - HEDGE + ord(FIRSTCOL))


def piece_char(coloured_piece: int) -> str:
    """EPD letter for a square: upper case for White, ``_`` when empty."""
    if coloured_piece in (OFF, EMPTY):
        return "_"
    letter = PIECE_LETTERS[extract_piece(coloured_piece)]
    return letter if extract_colour(coloured_piece) == WHITE else letter.lower()


def _empty_squares() -> List[List[int]]:
    squares = [[OFF] * BOARDSIZE for _ in range(BOARDSIZE)]
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            squares[r][c] = EMPTY
    return squares


@dataclass
class Board:
    """Position on a 12x12 array with a two-cell ``OFF`` border.

    Squares are addressed ``squares[rank_index][col_index]``. Castling rights
    hold the file letter of the rook allowed to castle, ``""`` for none, which
    is what lets Chess960 starting rooks be represented.
    """

    squares: List[List[int]] = field(default_factory=_empty_squares)
    to_move: int = WHITE
    move_number: int = 1
    white_king_castle: str = ""
    white_queen_castle: str = ""
    black_king_castle: str = ""
    black_queen_castle: str = ""
    white_king_col: str = ""
    white_king_rank: str = ""
    black_king_col: str = ""
    black_king_rank: str = ""
    en_passant: bool = False
    ep_col: str = ""
    ep_rank: str = ""
    halfmove_clock: int = 0
    weak_hash: int = 0

    @classmethod
    def empty(cls) -> "Board":
        """Create a cleared board with no pieces and no rights."""
        return cls()

    @classmethod
    def startpos(cls) -> "Board":
        """Create a board in the standard starting layout with its weak hash set.

        Returns:
            Board: Board instance representing the standard starting position.
        """
        from .zobrist import compute_weak_hash

        board = cls()
        back = (ROOK, KNIGHT, BISHOP, QUEEN, KING, BISHOP, KNIGHT, ROOK)
        for i, piece in enumerate(back):
            col = COLS[i]
            board.set_piece(col, "1", make_coloured_piece(WHITE, piece))
            board.set_piece(col, "2", make_coloured_piece(WHITE, PAWN))
            board.set_piece(col, "7", make_coloured_piece(BLACK, PAWN))
            board.set_piece(col, "8", make_coloured_piece(BLACK, piece))
        board.white_king_castle = board.black_king_castle = "h"
        board.white_queen_castle = board.black_queen_castle = "a"
        board.white_king_col, board.white_king_rank = "e", "1"
        board.black_king_col, board.black_king_rank = "e", "8"
        board.weak_hash = compute_weak_hash(board)
        return board

    @classmethod
    def from_fen(cls, fen: str) -> "Board":
        """Create a board from a FEN string, rejecting any malformed field.

        Args:
            fen (str): FEN string describing the position to load.

        Returns:
            Board: Board initialized with the state encoded in ``fen``.

        Raises:
            FENError: If any of the six fields is malformed.
        """
        from .fen import parse_fen

        return parse_fen(fen)

    def to_fen(self) -> str:
        from .fen import fen_string

        return fen_string(self)

    def copy(self) -> "Board":
        return replace(self, squares=[list(row) for row in self.squares])

    def piece_at(self, col: str, rank: str) -> int:
        return self.squares[rank_convert(rank)][col_convert(col)]

    def set_piece(self, col: str, rank: str, coloured_piece: int) -> None:
        self.squares[rank_convert(rank)][col_convert(col)] = coloured_piece

    def king_square(self, colour: int) -> tuple[str, str]:
        if colour == WHITE:
            return self.white_king_col, self.white_king_rank
        return self.black_king_col, self.black_king_rank

    def set_king_square(self, colour: int, col: str, rank: str) -> None:
        if colour == WHITE:
            self.white_king_col, self.white_king_rank = col, rank
        else:
            self.black_king_col, self.black_king_rank = col, rank

    def castle_rights(self, colour: int) -> tuple[str, str]:
        """Return the (kingside, queenside) rook files for ``colour``."""
        if colour == WHITE:
            return self.white_king_castle, self.white_queen_castle
        return self.black_king_castle, self.black_queen_castle

    def set_castle_rights(
        self, colour: int, kingside: Optional[str] = None, queenside: Optional[str] = None
    ) -> None:
        if colour == WHITE:
            if kingside is not None:
                self.white_king_castle = kingside
            if queenside is not None:
                self.white_queen_castle = queenside
        else:
            if kingside is not None:
                self.black_king_castle = kingside
            if queenside is not None:
                self.black_queen_castle = queenside

    def clear_ep(self) -> None:
        self.en_passant = False
        self.ep_col = self.ep_rank = ""

    def rank_text(self, rank: str) -> str:
        """One character per square for ``rank``, files a..h, ``_`` for empty."""
        r = rank_convert(rank)
        return "".join(piece_char(self.squares[r][c]) for c in range(HEDGE, HEDGE + 8))


def back_rank(colour: int) -> str:
    return FIRSTRANK if colour == WHITE else LASTRANK


def pawn_direction(colour: int) -> int:
    return 1 if colour == WHITE else -1
