from __future__ import annotations

import logging
from typing import List, Optional

from .board import (
    BISHOP,
    BLACK,
    EMPTY,
    HEDGE,
    KING,
    KNIGHT,
    OFF,
    PAWN,
    PIECE_LETTERS,
    QUEEN,
    ROOK,
    WHITE,
    Board,
    extract_colour,
    extract_piece,
    opposite_colour,
)
from .fen import build_basic_epd, fen_suffix, new_game_board
from .game import Game
from .move import CheckStatus, Move, MoveClass
from .movegen import (
    PIECE_FINDERS,
    determine_move_details,
    exclude_checks,
    find_all_moves,
    find_castling_rook_col,
    find_pawn_moves,
    king_is_in_check,
    king_is_in_checkmate,
    make_move,
)
from .zobrist import polyglot_hex


logger = logging.getLogger(__name__)

PIECE_VALUES = {PAWN: 1, KNIGHT: 3, BISHOP: 3, ROOK: 5, QUEEN: 9, KING: 0}


def half_moves_played(board: Board) -> int:
    return 2 * (board.move_number - 1) + (1 if board.to_move == BLACK else 0)


def move_label(board: Board, move: Move) -> str:
    """``12.`` or ``12...`` followed by the move text, for diagnostics."""
    dots = "." if board.to_move == WHITE else "..."
    return f"{board.move_number}{dots} {move.text}"


def play_resolved_move(
    move: Move,
    board: Board,
    *,
    store_fen: bool = False,
    suppress_redundant_ep: bool = False,
) -> bool:
    """Play a move already resolved by ``determine_move_details``.

    Updates the board, sets ``move.check_status`` and hands the move to the
    other side. Returns False for a promotion with no promoted piece.
    """
    colour = board.to_move
    if move.move_class == MoveClass.NULL_MOVE:
        board.clear_ep()
    else:
        promoting = move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION
        if promoting and move.promoted_piece == EMPTY:
            return False
        make_move(
            move.move_class,
            move.from_col,
            move.from_rank,
            move.to_col,
            move.to_rank,
            move.piece_to_move,
            colour,
            board,
        )
        if promoting:
            make_move(
                move.move_class,
                move.to_col,
                move.to_rank,
                move.to_col,
                move.to_rank,
                move.promoted_piece,
                colour,
                board,
            )

    opponent = opposite_colour(colour)
    if king_is_in_check(board, opponent):
        move.check_status = (
            CheckStatus.CHECKMATE if king_is_in_checkmate(board, opponent) else CheckStatus.CHECK
        )
    else:
        move.check_status = CheckStatus.NOCHECK

    board.to_move = opponent
    if opponent == WHITE:
        board.move_number += 1

    if store_fen:
        move.epd = build_basic_epd(board, suppress_redundant_ep)
        move.fen_suffix = fen_suffix(board)
    return True


def apply_move(
    move: Move,
    board: Board,
    *,
    store_fen: bool = False,
    suppress_redundant_ep: bool = False,
) -> bool:
    """Resolve and play ``move`` for the side to move on ``board``.

    Args:
        move (Move): Move as decoded from text; resolved in place.
        board (Board): Position to play on; mutated.
        store_fen (bool): Record the resulting EPD and FEN counters on the move.
        suppress_redundant_ep (bool): Omit an en-passant square no pawn can use.

    Returns:
        bool: False when the move cannot be resolved to a unique legal move.
    """
    if not move.text:
        logger.error("internal error: empty move reached the engine")
        return False
    if not determine_move_details(board.to_move, move, board):
        return False
    return play_resolved_move(
        move, board, store_fen=store_fen, suppress_redundant_ep=suppress_redundant_ep
    )


# --- SAN rendering -----------------------------------------------------------


def _check_suffix(status: CheckStatus) -> str:
    if status == CheckStatus.CHECKMATE:
        return "#"
    if status == CheckStatus.CHECK:
        return "+"
    return ""


def render_san(colour: int, move: Move, board: Board) -> str:
    """Minimal SAN for a resolved move, from the position before it is played.

    Pieces are qualified only when another piece of the same kind could reach
    the square: by file if that is unique, else by rank, else both. Pawn
    captures always carry the origin file. No check suffix is added.
    """
    if move.move_class == MoveClass.NULL_MOVE:
        return "--"
    if move.move_class == MoveClass.KINGSIDE_CASTLE:
        return "O-O"
    if move.move_class == MoveClass.QUEENSIDE_CASTLE:
        return "O-O-O"

    piece = move.piece_to_move
    if piece == PAWN:
        candidates = exclude_checks(
            PAWN,
            colour,
            find_pawn_moves(move.from_col, "", move.to_col, move.to_rank, colour, board),
            move.to_col,
            move.to_rank,
            board,
        )
        if move.captured_piece != EMPTY:
            text = move.from_col + "x"
        elif len(candidates) > 1:
            text = move.from_col
        else:
            text = ""
        text += move.to_col + move.to_rank
        if move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION:
            text += "=" + PIECE_LETTERS[move.promoted_piece]
        return text

    candidates = exclude_checks(
        piece,
        colour,
        PIECE_FINDERS[piece](move.to_col, move.to_rank, colour, board),
        move.to_col,
        move.to_rank,
        board,
    )
    text = PIECE_LETTERS[piece]
    if len(candidates) > 1:
        same_col = sum(1 for cand in candidates if cand.from_col == move.from_col)
        same_rank = sum(1 for cand in candidates if cand.from_rank == move.from_rank)
        if same_col == 1:
            text += move.from_col
        elif same_rank == 1:
            text += move.from_rank
        else:
            text += move.from_col + move.from_rank
    if move.captured_piece != EMPTY:
        text += "x"
    return text + move.to_col + move.to_rank


def shannon_evaluation(board: Board) -> float:
    """Material balance plus a tenth of the mobility difference, from White's view."""
    white_moves = len(find_all_moves(board, WHITE))
    black_moves = len(find_all_moves(board, BLACK))
    white_material = black_material = 0
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant in (OFF, EMPTY):
                continue
            value = PIECE_VALUES[extract_piece(occupant)]
            if extract_colour(occupant) == WHITE:
                white_material += value
            else:
                black_material += value
    return (white_material - black_material) + (white_moves - black_moves) * 0.1


def rewrite_move(
    move: Move,
    board: Board,
    *,
    chess960: bool = False,
    store_fen: bool = False,
    suppress_redundant_ep: bool = False,
    add_hashcode: bool = False,
    add_evaluation: bool = False,
) -> bool:
    """Play ``move`` and replace its text with minimal SAN.

    In Chess960 games a castling move's ``to_col`` is rewritten to the
    castling rook's original file.
    """
    colour = board.to_move
    if not move.text or not determine_move_details(colour, move, board):
        return False
    text = render_san(colour, move, board)
    rook_col = find_castling_rook_col(colour, board, move.move_class) if move.is_castle else ""
    if not play_resolved_move(
        move, board, store_fen=store_fen, suppress_redundant_ep=suppress_redundant_ep
    ):
        return False
    move.text = text + _check_suffix(move.check_status)
    if chess960 and rook_col:
        move.to_col = rook_col
    if add_evaluation:
        move.evaluation = shannon_evaluation(board)
    if add_hashcode:
        move.zobrist = polyglot_hex(board)
    return True


def _salvage_broken_moves(game: Optional[Game], moves: List[Move], index: int) -> None:
    """Turn the unplayable tail ``moves[index:]`` into a comment."""
    tail = moves[index:]
    comment = " ".join(m.text for m in tail)
    result = tail[-1].terminating_result
    if index > 0:
        del moves[index:]
        previous = moves[index - 1]
        previous.terminating_result = result
        previous.comments.append(comment)
    elif game is not None:
        del moves[index:]
        game.prefix_comment = [comment + (" " + result if result else "")]


def rewrite_moves(
    game: Optional[Game],
    board: Board,
    moves: List[Move],
    *,
    keep_variations: bool = True,
    keep_broken_games: bool = False,
    chess960: Optional[bool] = None,
    **flags: bool,
) -> bool:
    """Rewrite a main line or variation in place on ``board``.

    Variations are rewritten on copies of the board as it stands before the
    move they replace. ``game`` is None for variations.
    """
    ok = True
    index = 0
    if chess960 is None:
        chess960 = game.is_chess960 if game is not None else False
    while ok and index < len(moves):
        move = moves[index]
        if keep_variations:
            for variation in move.variations:
                if not rewrite_moves(
                    None,
                    board.copy(),
                    variation.moves,
                    keep_variations=keep_variations,
                    keep_broken_games=keep_broken_games,
                    chess960=chess960,
                    **flags,
                ):
                    ok = False
        label = move_label(board, move)
        if rewrite_move(move, board, chess960=chess960, **flags):
            index += 1
        else:
            if not keep_broken_games:
                extra = game.identity() if game is not None else {}
                logger.warning("failed to rewrite move %s", label, extra=extra)
            ok = False
    if not ok and keep_broken_games and index < len(moves):
        _salvage_broken_moves(game, moves, index)
    return ok


def rewrite_game(
    game: Game,
    *,
    board: Optional[Board] = None,
    keep_variations: bool = True,
    keep_broken_games: bool = False,
    store_fen: bool = False,
    suppress_redundant_ep: bool = False,
    add_hashcode: bool = False,
    add_evaluation: bool = False,
) -> bool:
    """Replay ``game`` from its FEN tag (or the initial position), rewriting every move to SAN.

    A ``board`` given by the caller must hold the starting position; it is
    left in the final position reached.
    """
    if board is None:
        board = new_game_board(game.fen)
    ok = rewrite_moves(
        game,
        board,
        game.moves,
        keep_variations=keep_variations,
        keep_broken_games=keep_broken_games,
        store_fen=store_fen,
        suppress_redundant_ep=suppress_redundant_ep,
        add_hashcode=add_hashcode,
        add_evaluation=add_evaluation,
    )
    game.final_hash = board.weak_hash
    game.moves_ok = ok
    if not ok:
        game.error_ply = half_moves_played(board) + 1
    return ok
