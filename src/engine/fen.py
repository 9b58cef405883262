from __future__ import annotations

import logging
from typing import Optional

from .board import (
    BLACK,
    COLS,
    EMPTY,
    FIRSTCOL,
    HEDGE,
    KING,
    LASTCOL,
    LETTER_TO_PIECE,
    OFF,
    PAWN,
    RANKS,
    ROOK,
    WHITE,
    Board,
    back_rank,
    col_convert,
    make_coloured_piece,
    piece_char,
    rank_convert,
)
from .zobrist import compute_weak_hash


logger = logging.getLogger(__name__)


class FENError(ValueError):
    """Malformed FEN text.

    ``board`` carries a playable board when placement, side to move and
    castling were read cleanly before the error.
    """

    def __init__(self, message: str, board: Optional[Board] = None) -> None:
        super().__init__(message)
        self.board = board


def find_rook_starting_position(board: Board, colour: int, kingside: bool) -> str:
    """File of the outermost rook of ``colour`` on its back rank, or ``""``."""
    rank = back_rank(colour)
    rook = make_coloured_piece(colour, ROOK)
    files = reversed(COLS) if kingside else COLS
    for col in files:
        if board.piece_at(col, rank) == rook:
            return col
    return ""


def _read_placement(fen: str, board: Board) -> int:
    """Fill ``board`` from the placement field and return the index after it."""
    i = 0
    for rank in reversed(RANKS):
        col = 0
        while col < 8:
            if i >= len(fen):
                raise FENError("FEN placement ends early")
            ch = fen[i]
            if ch.isdigit() and "1" <= ch <= "8":
                col += int(ch)
                if col > 8:
                    raise FENError(f"too many squares on rank {rank}")
            elif ch.upper() in LETTER_TO_PIECE:
                colour = WHITE if ch.isupper() else BLACK
                piece = LETTER_TO_PIECE[ch.upper()]
                file = COLS[col]
                board.set_piece(file, rank, make_coloured_piece(colour, piece))
                if piece == KING:
                    king_col, _ = board.king_square(colour)
                    if king_col:
                        raise FENError(f"more than one {'white' if colour == WHITE else 'black'} king")
                    board.set_king_square(colour, file, rank)
                col += 1
            else:
                raise FENError(f"illegal character {ch!r} in placement")
            i += 1
        if rank != "1":
            if i >= len(fen) or fen[i] != "/":
                raise FENError(f"rank {rank} does not hold 8 squares")
            i += 1
    for colour in (WHITE, BLACK):
        if not board.king_square(colour)[0]:
            raise FENError(f"missing {'white' if colour == WHITE else 'black'} king")
    return i


def _expect_space(fen: str, i: int, field: str) -> int:
    if i >= len(fen) or fen[i] != " ":
        raise FENError(f"missing space before {field}")
    return i + 1


def _read_castling(fen: str, i: int, board: Board) -> int:
    if i < len(fen) and fen[i] == "-":
        board.white_king_castle = board.white_queen_castle = ""
        board.black_king_castle = board.black_queen_castle = ""
        return i + 1
    start = i
    while i < len(fen) and fen[i] != " ":
        ch = fen[i]
        if ch == "K":
            board.white_king_castle = find_rook_starting_position(board, WHITE, True)
        elif ch == "Q":
            board.white_queen_castle = find_rook_starting_position(board, WHITE, False)
        elif ch == "k":
            board.black_king_castle = find_rook_starting_position(board, BLACK, True)
        elif ch == "q":
            board.black_queen_castle = find_rook_starting_position(board, BLACK, False)
        elif ch.lower() in COLS:
            # Shredder/X-FEN rook file; its side follows from the king's file.
            colour = WHITE if ch.isupper() else BLACK
            file = ch.lower()
            king_col, _ = board.king_square(colour)
            if file > king_col:
                board.set_castle_rights(colour, kingside=file)
            else:
                board.set_castle_rights(colour, queenside=file)
        else:
            raise FENError(f"illegal castling character {ch!r}")
        i += 1
    if i == start:
        raise FENError("missing castling rights")
    return i


def _read_ep(fen: str, i: int, board: Board) -> int:
    if i < len(fen) and fen[i] == "-":
        board.clear_ep()
        return i + 1
    square = fen[i : i + 2]
    if len(square) != 2 or not col_convert(square[0]) or not rank_convert(square[1]):
        raise FENError(f"illegal en-passant square {square!r}")
    col, rank = square
    if rank not in ("3", "6"):
        raise FENError(f"illegal en-passant rank in {square}")
    if (rank == "6") != (board.to_move == WHITE):
        raise FENError(f"en-passant square {square} inconsistent with the side to move")
    board.en_passant = True
    board.ep_col, board.ep_rank = col, rank
    return i + 2


def _read_number(fen: str, i: int, field: str) -> tuple[int, int]:
    start = i
    while i < len(fen) and fen[i].isdigit():
        i += 1
    if i == start:
        raise FENError(f"missing {field}")
    return int(fen[start:i]), i


def parse_fen(fen: str) -> Board:
    """Parse all six FEN fields in order.

    Args:
        fen (str): FEN text.

    Returns:
        Board: The position, with its weak hash computed.

    Raises:
        FENError: On the first malformed field. When placement, side to move
            and castling were already read, ``exc.board`` holds a board that
            can still be played from.
    """
    if not fen or not isinstance(fen, str):
        raise FENError("FEN must be a non-empty string")
    fen = fen.strip()
    board = Board.empty()
    i = _read_placement(fen, board)
    i = _expect_space(fen, i, "side to move")
    if i < len(fen) and fen[i] in "wb":
        board.to_move = WHITE if fen[i] == "w" else BLACK
        i += 1
    else:
        raise FENError("side to move must be 'w' or 'b'")
    i = _expect_space(fen, i, "castling rights")
    i = _read_castling(fen, i, board)
    board.weak_hash = compute_weak_hash(board)

    # The board is playable from here on even if later fields are broken.
    try:
        i = _expect_space(fen, i, "en-passant square")
        i = _read_ep(fen, i, board)
        i = _expect_space(fen, i, "half-move clock")
        board.halfmove_clock, i = _read_number(fen, i, "half-move clock")
        i = _expect_space(fen, i, "move number")
        board.move_number, i = _read_number(fen, i, "move number")
        if board.move_number < 1:
            board.move_number = 1
        if i != len(fen):
            raise FENError(f"unexpected trailing text {fen[i:]!r}")
    except FENError as e:
        raise FENError(str(e), board=board) from None
    return board


def new_fen_board(fen: str) -> Optional[Board]:
    """Best-effort FEN parse.

    Returns ``None`` when the position cannot be played at all. A board whose
    trailer fields are broken is still returned, with a warning logged.
    """
    try:
        return parse_fen(fen)
    except FENError as e:
        logger.warning(
            "malformed FEN",
            extra={"fen": fen, "error": str(e), "playable": e.board is not None},
        )
        return e.board


def new_game_board(fen: Optional[str] = None) -> Board:
    """Board for the start of a game: the FEN position if usable, else the initial one."""
    board = new_fen_board(fen) if fen else None
    if board is None:
        board = Board.startpos()
    board.weak_hash = compute_weak_hash(board)
    return board


def _castling_text(board: Board, colour: int) -> str:
    kingside, queenside = board.castle_rights(colour)
    if kingside and queenside:
        if kingside > queenside:
            text = "KQ"
        else:
            text = kingside.upper() + queenside.upper()
    elif kingside:
        text = "K" if kingside == LASTCOL else kingside.upper()
    elif queenside:
        text = "Q" if queenside == FIRSTCOL else queenside.upper()
    else:
        return ""
    return text if colour == WHITE else text.lower()


def _ep_capture_is_legal(board: Board) -> bool:
    # Local import: movegen depends on this module for FEN helpers.
    from .movegen import king_is_in_check, make_move
    from .move import MoveClass

    colour = board.to_move
    pawn = make_coloured_piece(colour, PAWN)
    from_rank = "5" if colour == WHITE else "4"
    r = rank_convert(from_rank)
    c = col_convert(board.ep_col)
    for from_c in (c - 1, c + 1):
        if board.squares[r][from_c] != pawn:
            continue
        trial = board.copy()
        make_move(
            MoveClass.UNKNOWN_MOVE,
            COLS[from_c - HEDGE],
            from_rank,
            board.ep_col,
            board.ep_rank,
            PAWN,
            colour,
            trial,
        )
        if not king_is_in_check(trial, colour):
            return True
    return False


def build_basic_epd(board: Board, suppress_redundant_ep: bool = False) -> str:
    """Placement, side to move, castling and en-passant fields of ``board``.

    With ``suppress_redundant_ep`` the en-passant square is only written when
    a pawn of the side to move can capture onto it without exposing its king.
    """
    rows = []
    for rank in reversed(RANKS):
        r = rank_convert(rank)
        text = ""
        empties = 0
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant in (EMPTY, OFF):
                empties += 1
                continue
            if empties:
                text += str(empties)
                empties = 0
            text += piece_char(occupant)
        if empties:
            text += str(empties)
        rows.append(text)
    castling = _castling_text(board, WHITE) + _castling_text(board, BLACK)
    if board.en_passant and (not suppress_redundant_ep or _ep_capture_is_legal(board)):
        ep = board.ep_col + board.ep_rank
    else:
        ep = "-"
    return " ".join(
        ["/".join(rows), "w" if board.to_move == WHITE else "b", castling or "-", ep]
    )


def fen_suffix(board: Board) -> str:
    return f"{board.halfmove_clock} {board.move_number}"


def fen_string(board: Board, suppress_redundant_ep: bool = False) -> str:
    return build_basic_epd(board, suppress_redundant_ep) + " " + fen_suffix(board)

