from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from .board import (
    BISHOP,
    EMPTY,
    FIRSTRANK,
    HEDGE,
    KING,
    KNIGHT,
    LASTRANK,
    OFF,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    Board,
    back_rank,
    col_char,
    col_convert,
    extract_colour,
    extract_piece,
    make_coloured_piece,
    opposite_colour,
    pawn_direction,
    rank_char,
    rank_convert,
)
from .move import CASTLE_CLASSES, PAWN_CLASSES, CheckStatus, Move, MoveClass, decode_move
from .zobrist import weak_hash_code


logger = logging.getLogger(__name__)


class MovePair(NamedTuple):
    """Origin square of a candidate move."""

    from_col: str
    from_rank: str


# (col, rank) steps
KNIGHT_STEPS = ((1, 2), (2, 1), (2, -1), (1, -2), (-1, -2), (-2, -1), (-2, 1), (-1, 2))
KING_STEPS = ((0, 1), (1, 1), (1, 0), (1, -1), (0, -1), (-1, -1), (-1, 0), (-1, 1))
ROOK_DIRECTIONS = ((0, 1), (1, 0), (0, -1), (-1, 0))
BISHOP_DIRECTIONS = ((1, 1), (1, -1), (-1, -1), (-1, 1))
QUEEN_DIRECTIONS = ROOK_DIRECTIONS + BISHOP_DIRECTIONS


def _is_enemy(occupant: int, colour: int) -> bool:
    return occupant not in (OFF, EMPTY) and extract_colour(occupant) != colour


def last_rank(colour: int) -> str:
    return LASTRANK if colour == WHITE else FIRSTRANK


# --- Candidate origins -----------------------------------------------------


def _find_steppers(
    to_col: str,
    to_rank: str,
    colour: int,
    piece: int,
    steps: Sequence[Tuple[int, int]],
    board: Board,
    first_only: bool = False,
) -> List[MovePair]:
    c, r = col_convert(to_col), rank_convert(to_rank)
    wanted = make_coloured_piece(colour, piece)
    found: List[MovePair] = []
    for dc, dr in steps:
        if board.squares[r + dr][c + dc] == wanted:
            found.append(MovePair(col_char(c + dc), rank_char(r + dr)))
            if first_only:
                break
    return found


def _find_sliders(
    to_col: str,
    to_rank: str,
    colour: int,
    piece: int,
    directions: Sequence[Tuple[int, int]],
    board: Board,
) -> List[MovePair]:
    c, r = col_convert(to_col), rank_convert(to_rank)
    wanted = make_coloured_piece(colour, piece)
    found: List[MovePair] = []
    for dc, dr in directions:
        cc, rr = c + dc, r + dr
        while board.squares[rr][cc] == EMPTY:
            cc += dc
            rr += dr
        if board.squares[rr][cc] == wanted:
            found.append(MovePair(col_char(cc), rank_char(rr)))
    return found


def find_knight_moves(to_col: str, to_rank: str, colour: int, board: Board) -> List[MovePair]:
    return _find_steppers(to_col, to_rank, colour, KNIGHT, KNIGHT_STEPS, board)


def find_king_moves(to_col: str, to_rank: str, colour: int, board: Board) -> List[MovePair]:
    # Only one king per side, so stop at the first.
    return _find_steppers(to_col, to_rank, colour, KING, KING_STEPS, board, first_only=True)


def find_bishop_moves(to_col: str, to_rank: str, colour: int, board: Board) -> List[MovePair]:
    return _find_sliders(to_col, to_rank, colour, BISHOP, BISHOP_DIRECTIONS, board)


def find_rook_moves(to_col: str, to_rank: str, colour: int, board: Board) -> List[MovePair]:
    return _find_sliders(to_col, to_rank, colour, ROOK, ROOK_DIRECTIONS, board)


def find_queen_moves(to_col: str, to_rank: str, colour: int, board: Board) -> List[MovePair]:
    return _find_sliders(to_col, to_rank, colour, QUEEN, QUEEN_DIRECTIONS, board)


PIECE_FINDERS: Dict[int, Callable[[str, str, int, Board], List[MovePair]]] = {
    KNIGHT: find_knight_moves,
    BISHOP: find_bishop_moves,
    ROOK: find_rook_moves,
    QUEEN: find_queen_moves,
    KING: find_king_moves,
}


def _is_ep_square(board: Board, col: str, rank: str) -> bool:
    return board.en_passant and board.ep_col == col and board.ep_rank == rank


def find_pawn_moves(
    from_col: str, from_rank: str, to_col: str, to_rank: str, colour: int, board: Board
) -> List[MovePair]:
    """Pawns of ``colour`` that could move as described.

    With a full destination the square decides between a push (single or
    double) and a capture; captures need ``from_col``. Without ``to_rank``
    this is the column-only capture form (``ed``), and every rank holding a
    ``from_col`` pawn that can capture onto ``to_col`` is a candidate.
    """
    direction = pawn_direction(colour)
    pawn = make_coloured_piece(colour, PAWN)
    found: List[MovePair] = []
    tc = col_convert(to_col)
    if to_rank:
        tr = rank_convert(to_rank)
        occupant = board.squares[tr][tc]
        if occupant == EMPTY:
            if from_col and from_col != to_col:
                fc = col_convert(from_col)
                if (
                    _is_ep_square(board, to_col, to_rank)
                    and abs(fc - tc) == 1
                    and board.squares[tr - direction][fc] == pawn
                ):
                    found.append(MovePair(from_col, rank_char(tr - direction)))
            elif board.squares[tr - direction][tc] == pawn:
                found.append(MovePair(to_col, rank_char(tr - direction)))
            elif (
                to_rank == ("4" if colour == WHITE else "5")
                and board.squares[tr - direction][tc] == EMPTY
                and board.squares[tr - 2 * direction][tc] == pawn
            ):
                found.append(MovePair(to_col, rank_char(tr - 2 * direction)))
        elif _is_enemy(occupant, colour) and from_col:
            fc = col_convert(from_col)
            if abs(fc - tc) == 1 and board.squares[tr - direction][fc] == pawn:
                found.append(MovePair(from_col, rank_char(tr - direction)))
    elif from_col and to_col:
        fc = col_convert(from_col)
        if abs(fc - tc) != 1:
            return found
        if from_rank:
            ranks: Sequence[int] = [rank_convert(from_rank)]
        else:
            start = rank_convert("2" if colour == WHITE else "7")
            ranks = range(start, start + 6 * direction, direction)
        for fr in ranks:
            if board.squares[fr][fc] != pawn:
                continue
            tr = fr + direction
            if _is_enemy(board.squares[tr][tc], colour) or _is_ep_square(board, to_col, rank_char(tr)):
                found.append(MovePair(from_col, rank_char(fr)))
    return found


# --- Self-check exclusion --------------------------------------------------


def king_is_in_check(board: Board, colour: int) -> bool:
    """Whether the king of ``colour`` is attacked on ``board``."""
    king_col, king_rank = board.king_square(colour)
    if not king_col:
        return False
    opponent = opposite_colour(colour)
    for finder in (find_queen_moves, find_rook_moves, find_bishop_moves, find_knight_moves):
        if finder(king_col, king_rank, opponent, board):
            return True
    c, r = col_convert(king_col), rank_convert(king_rank)
    enemy_pawn = make_coloured_piece(opponent, PAWN)
    pawn_r = r - pawn_direction(opponent)
    if board.squares[pawn_r][c + 1] == enemy_pawn or board.squares[pawn_r][c - 1] == enemy_pawn:
        return True
    return bool(find_king_moves(king_col, king_rank, opponent, board))


def exclude_checks(
    piece: int,
    colour: int,
    candidates: Sequence[MovePair],
    to_col: str,
    to_rank: str,
    board: Board,
) -> List[MovePair]:
    """Keep the candidates that do not leave the mover's own king in check."""
    legal: List[MovePair] = []
    for cand in candidates:
        trial = board.copy()
        make_move(
            MoveClass.UNKNOWN_MOVE, cand.from_col, cand.from_rank, to_col, to_rank, piece, colour, trial
        )
        if not king_is_in_check(trial, colour):
            legal.append(cand)
    return legal


def exclude_moves(
    piece: int, colour: int, candidates: Sequence[MovePair], move: Move, board: Board
) -> List[MovePair]:
    """Filter candidates by any origin qualifier in ``move``, then by self-check."""
    filtered = [
        cand
        for cand in candidates
        if (not move.from_col or cand.from_col == move.from_col)
        and (not move.from_rank or cand.from_rank == move.from_rank)
    ]
    return exclude_checks(piece, colour, filtered, move.to_col, move.to_rank, board)


# --- Castling --------------------------------------------------------------


def find_castling_king_col(colour: int, board: Board) -> str:
    rank = back_rank(colour)
    king = make_coloured_piece(colour, KING)
    if board.piece_at("e", rank) == king:
        return "e"
    for c in range(HEDGE, HEDGE + 8):
        if board.squares[rank_convert(rank)][c] == king:
            return col_char(c)
    return ""


def find_castling_rook_col(colour: int, board: Board, move_class: MoveClass) -> str:
    """File of the rook ``colour`` may castle with, or ``""`` if none is there."""
    kingside, queenside = board.castle_rights(colour)
    col = kingside if move_class == MoveClass.KINGSIDE_CASTLE else queenside
    if col and board.piece_at(col, back_rank(colour)) == make_coloured_piece(colour, ROOK):
        return col
    return ""


def _cols_after(start: str, end: str) -> List[str]:
    """Files from ``start`` (exclusive) to ``end`` (inclusive)."""
    step = 1 if end >= start else -1
    return [chr(c) for c in range(ord(start) + step, ord(end) + step, step)] if start != end else []


def castling_targets(move_class: MoveClass) -> Tuple[str, str]:
    """(king file, rook file) after castling."""
    if move_class == MoveClass.KINGSIDE_CASTLE:
        return "g", "f"
    return "c", "d"


def exclude_castling_across_checks(colour: int, board: Board, king_col: str, king_target: str) -> bool:
    """True when the king is not in check on any square it starts on or crosses."""
    if king_is_in_check(board, colour):
        return False
    rank = back_rank(colour)
    for col in _cols_after(king_col, king_target):
        if not exclude_checks(KING, colour, [MovePair(king_col, rank)], col, rank, board):
            return False
    return True


def can_castle(colour: int, board: Board, move_class: MoveClass) -> bool:
    king_col = find_castling_king_col(colour, board)
    rook_col = find_castling_rook_col(colour, board, move_class)
    if not king_col or not rook_col:
        return False
    rank = back_rank(colour)
    king_target, rook_target = castling_targets(move_class)
    for col in _cols_after(king_col, king_target):
        if board.piece_at(col, rank) != EMPTY and col != rook_col:
            return False
    for col in _cols_after(rook_col, rook_target):
        if board.piece_at(col, rank) != EMPTY and col != king_col:
            return False
    return exclude_castling_across_checks(colour, board, king_col, king_target)


# --- Applying ----------------------------------------------------------------


def _remove_rook_right(board: Board, colour: int, col: str) -> None:
    kingside, queenside = board.castle_rights(colour)
    if col == queenside:
        board.set_castle_rights(colour, queenside="")
    elif col == kingside:
        board.set_castle_rights(colour, kingside="")


def make_move(
    move_class: MoveClass,
    from_col: str,
    from_rank: str,
    to_col: str,
    to_rank: str,
    piece: int,
    colour: int,
    board: Board,
) -> None:
    """Move ``piece`` on ``board`` and update every derived field.

    Castling rights, en passant, the half-move clock, the king cache and the
    weak hash all follow the move. For castles ``to_col`` is the king's
    destination and the rook is relocated beside it. A promotion is played
    as a second call with ``from`` equal to ``to`` and the promoted piece.
    """
    fc, fr = col_convert(from_col), rank_convert(from_rank)
    tc, tr = col_convert(to_col), rank_convert(to_rank)
    castling = move_class in CASTLE_CLASSES
    rook_col = find_castling_rook_col(colour, board, move_class) if castling else ""
    opponent = opposite_colour(colour)

    if piece == KING:
        board.set_king_square(colour, to_col, to_rank)
        board.set_castle_rights(colour, "", "")
    elif piece == ROOK and from_rank == back_rank(colour):
        _remove_rook_right(board, colour, from_col)

    capture = False
    if piece == PAWN and from_col != to_col and _is_ep_square(board, to_col, to_rank):
        # The captured pawn stands beside the capturer.
        taken = board.squares[fr][tc]
        board.weak_hash ^= weak_hash_code(tc, fr, taken)
        board.squares[fr][tc] = EMPTY
        capture = True
    if piece == PAWN and abs(tr - fr) == 2:
        board.en_passant = True
        board.ep_col, board.ep_rank = to_col, rank_char((fr + tr) // 2)
    else:
        board.clear_ep()

    moving = board.squares[fr][fc]
    if moving not in (OFF, EMPTY):
        board.weak_hash ^= weak_hash_code(fc, fr, moving)
    board.squares[fr][fc] = EMPTY

    occupant = board.squares[tr][tc]
    if occupant != EMPTY:
        board.weak_hash ^= weak_hash_code(tc, tr, occupant)
        if not castling:
            capture = True
            if extract_piece(occupant) == ROOK and to_rank == back_rank(opponent):
                _remove_rook_right(board, opponent, to_col)

    if piece == PAWN or move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION or capture:
        board.halfmove_clock = 0
    else:
        board.halfmove_clock += 1

    placed = make_coloured_piece(colour, piece)
    board.squares[tr][tc] = placed
    board.weak_hash ^= weak_hash_code(tc, tr, placed)

    if castling:
        rook = make_coloured_piece(colour, ROOK)
        if rook_col and rook_col != to_col:
            rc = col_convert(rook_col)
            if board.squares[tr][rc] == rook:
                board.weak_hash ^= weak_hash_code(rc, tr, rook)
                board.squares[tr][rc] = EMPTY
        rook_c = tc - 1 if move_class == MoveClass.KINGSIDE_CASTLE else tc + 1
        board.squares[tr][rook_c] = rook
        board.weak_hash ^= weak_hash_code(rook_c, tr, rook)


# --- Resolving ---------------------------------------------------------------


def piece_move(colour: int, move: Move, board: Board) -> bool:
    """Resolve the unique origin of a knight, bishop, rook, queen or king move."""
    finder = PIECE_FINDERS.get(move.piece_to_move)
    if finder is None or not move.to_col or not move.to_rank:
        return False
    target = board.piece_at(move.to_col, move.to_rank)
    if target != EMPTY and not _is_enemy(target, colour):
        logger.debug("destination occupied by own piece", extra={"move": move.text})
        return False
    candidates = exclude_moves(
        move.piece_to_move, colour, finder(move.to_col, move.to_rank, colour, board), move, board
    )
    if len(candidates) != 1:
        logger.debug(
            "ambiguous piece move" if candidates else "no piece can make move",
            extra={"move": move.text, "candidates": len(candidates)},
        )
        return False
    move.from_col, move.from_rank = candidates[0]
    return True


def pawn_move(colour: int, move: Move, board: Board) -> bool:
    """Resolve a non-promoting pawn move, filling in any missing coordinates."""
    if move.from_col and move.to_col and move.from_col != move.to_col:
        if abs(ord(move.from_col) - ord(move.to_col)) != 1:
            return False
    candidates = find_pawn_moves(
        move.from_col, move.from_rank, move.to_col, move.to_rank, colour, board
    )
    legal: List[Tuple[MovePair, str]] = []
    for cand in candidates:
        if move.from_rank and cand.from_rank != move.from_rank:
            continue
        dest_rank = move.to_rank or rank_char(rank_convert(cand.from_rank) + pawn_direction(colour))
        if exclude_checks(PAWN, colour, [cand], move.to_col, dest_rank, board):
            legal.append((cand, dest_rank))
    if len(legal) != 1:
        return False
    (move.from_col, move.from_rank), move.to_rank = legal[0]
    return True


def promote(colour: int, move: Move, board: Board) -> bool:
    """Resolve a promotion, defaulting the destination rank to the last rank."""
    last = last_rank(colour)
    if not move.to_rank:
        move.to_rank = last
    elif move.to_rank != last:
        return False
    if not move.from_col:
        move.from_col = move.to_col
    candidates = [
        cand
        for cand in find_pawn_moves(move.from_col, move.from_rank, move.to_col, move.to_rank, colour, board)
        if not move.from_rank or cand.from_rank == move.from_rank
    ]
    candidates = exclude_checks(PAWN, colour, candidates, move.to_col, move.to_rank, board)
    if len(candidates) != 1:
        return False
    move.from_col, move.from_rank = candidates[0]
    return True


def decode_algebraic(move: Move, board: Board) -> None:
    """Reclassify fully specified ``e2e4``-style text from the board's occupant."""
    occupant = board.piece_at(move.from_col, move.from_rank)
    piece = extract_piece(occupant)
    if (
        piece == KING
        and move.from_col == "e"
        and move.to_col in ("g", "c")
        and move.from_rank == move.to_rank
    ):
        move.move_class = (
            MoveClass.KINGSIDE_CASTLE if move.to_col == "g" else MoveClass.QUEENSIDE_CASTLE
        )
    elif piece not in (OFF, EMPTY, PAWN):
        move.move_class = MoveClass.PIECE_MOVE
        move.piece_to_move = piece


def _pawn_details(colour: int, move: Move, board: Board) -> bool:
    move.piece_to_move = PAWN
    last = last_rank(colour)
    if move.move_class != MoveClass.PAWN_MOVE_WITH_PROMOTION and move.to_rank == last:
        move.move_class = MoveClass.PAWN_MOVE_WITH_PROMOTION
    if move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION:
        if move.promoted_piece == EMPTY:
            move.promoted_piece = QUEEN
        return promote(colour, move, board)
    if not pawn_move(colour, move, board):
        return False
    if move.to_rank == last:
        # Column-only capture that turned out to reach the last rank.
        move.move_class = MoveClass.PAWN_MOVE_WITH_PROMOTION
        move.promoted_piece = QUEEN
    elif move.from_col != move.to_col and _is_ep_square(board, move.to_col, move.to_rank):
        move.move_class = MoveClass.ENPASSANT_PAWN_MOVE
    else:
        move.move_class = MoveClass.PAWN_MOVE
    return True


def _retry_as_bishop(colour: int, move: Move, board: Board) -> bool:
    retry = decode_move("B" + move.text[1:])
    if retry.move_class != MoveClass.PIECE_MOVE or not piece_move(colour, retry, board):
        return False
    move.move_class = MoveClass.PIECE_MOVE
    move.piece_to_move = BISHOP
    move.promoted_piece = EMPTY
    move.from_col, move.from_rank = retry.from_col, retry.from_rank
    move.to_col, move.to_rank = retry.to_col, retry.to_rank
    return True


def determine_move_details(colour: int, move: Move, board: Board) -> bool:
    """Resolve ``move`` against ``board`` without playing it.

    Fills in the origin square, the piece moved and the piece captured, and
    refines the move class. Returns False when no unique legal origin exists.
    """
    if move.move_class == MoveClass.NULL_MOVE:
        return True
    if (
        move.move_class == MoveClass.PAWN_MOVE
        and move.from_col
        and move.from_rank
        and move.to_col
        and move.to_rank
    ):
        decode_algebraic(move, board)

    ok = False
    if move.move_class in PAWN_CLASSES:
        ok = _pawn_details(colour, move, board)
        if not ok and move.text.startswith("b"):
            ok = _retry_as_bishop(colour, move, board)
    elif move.move_class == MoveClass.PIECE_MOVE:
        ok = piece_move(colour, move, board)
    elif move.move_class in CASTLE_CLASSES:
        move.piece_to_move = KING
        ok = can_castle(colour, board, move.move_class)
        if ok:
            move.from_col = find_castling_king_col(colour, board)
            move.from_rank = move.to_rank = back_rank(colour)
            move.to_col = castling_targets(move.move_class)[0]

    if ok:
        if move.move_class in CASTLE_CLASSES:
            move.captured_piece = EMPTY
        elif move.move_class == MoveClass.ENPASSANT_PAWN_MOVE:
            move.captured_piece = PAWN
        else:
            occupant = board.piece_at(move.to_col, move.to_rank)
            move.captured_piece = extract_piece(occupant) if occupant != EMPTY else EMPTY
    return ok


# --- Generation --------------------------------------------------------------


def _pawn_destinations(c: int, r: int, colour: int, board: Board) -> Iterator[Tuple[int, int, MoveClass]]:
    direction = pawn_direction(colour)
    if board.squares[r + direction][c] == EMPTY:
        yield c, r + direction, MoveClass.PAWN_MOVE
        start = rank_convert("2" if colour == WHITE else "7")
        if r == start and board.squares[r + 2 * direction][c] == EMPTY:
            yield c, r + 2 * direction, MoveClass.PAWN_MOVE
    for dc in (-1, 1):
        target = board.squares[r + direction][c + dc]
        if _is_enemy(target, colour):
            yield c + dc, r + direction, MoveClass.PAWN_MOVE
        elif (
            target == EMPTY
            and colour == board.to_move
            and _is_ep_square(board, col_char(c + dc), rank_char(r + direction))
        ):
            yield c + dc, r + direction, MoveClass.ENPASSANT_PAWN_MOVE


def _piece_destinations(c: int, r: int, colour: int, piece: int, board: Board) -> Iterator[Tuple[int, int]]:
    if piece in (KNIGHT, KING):
        for dc, dr in KNIGHT_STEPS if piece == KNIGHT else KING_STEPS:
            target = board.squares[r + dr][c + dc]
            if target == EMPTY or _is_enemy(target, colour):
                yield c + dc, r + dr
        return
    directions = {BISHOP: BISHOP_DIRECTIONS, ROOK: ROOK_DIRECTIONS, QUEEN: QUEEN_DIRECTIONS}[piece]
    for dc, dr in directions:
        cc, rr = c + dc, r + dr
        while board.squares[rr][cc] == EMPTY:
            yield cc, rr
            cc += dc
            rr += dr
        if _is_enemy(board.squares[rr][cc], colour):
            yield cc, rr


def generate_moves(board: Board, colour: int, include_castling: bool = True) -> Iterator[Move]:
    """Yield every legal move for ``colour``, lazily.

    A promotion is yielded once, as a queen promotion.
    """
    last = rank_convert(last_rank(colour))
    for r in range(HEDGE, HEDGE + 8):
        for c in range(HEDGE, HEDGE + 8):
            occupant = board.squares[r][c]
            if occupant in (OFF, EMPTY) or extract_colour(occupant) != colour:
                continue
            piece = extract_piece(occupant)
            if piece == PAWN:
                destinations = [(tc, tr, cls) for tc, tr, cls in _pawn_destinations(c, r, colour, board)]
            else:
                destinations = [
                    (tc, tr, MoveClass.PIECE_MOVE) for tc, tr in _piece_destinations(c, r, colour, piece, board)
                ]
            origin = MovePair(col_char(c), rank_char(r))
            for tc, tr, cls in destinations:
                if not exclude_checks(piece, colour, [origin], col_char(tc), rank_char(tr), board):
                    continue
                move = Move(
                    text=origin.from_col + origin.from_rank + col_char(tc) + rank_char(tr),
                    move_class=cls,
                    from_col=origin.from_col,
                    from_rank=origin.from_rank,
                    to_col=col_char(tc),
                    to_rank=rank_char(tr),
                    piece_to_move=piece,
                )
                if piece == PAWN and tr == last:
                    move.move_class = MoveClass.PAWN_MOVE_WITH_PROMOTION
                    move.promoted_piece = QUEEN
                yield move
    if include_castling:
        for cls in CASTLE_CLASSES:
            if can_castle(colour, board, cls):
                king_target = castling_targets(cls)[0]
                yield Move(
                    text="O-O" if cls == MoveClass.KINGSIDE_CASTLE else "O-O-O",
                    move_class=cls,
                    from_col=find_castling_king_col(colour, board),
                    from_rank=back_rank(colour),
                    to_col=king_target,
                    to_rank=back_rank(colour),
                    piece_to_move=KING,
                )


def find_all_moves(board: Board, colour: int) -> List[Move]:
    return list(generate_moves(board, colour))


def at_least_one_move(board: Board, colour: int) -> bool:
    return any(True for _ in generate_moves(board, colour))


def king_is_in_checkmate(board: Board, colour: int) -> bool:
    """In check with no legal reply. Castling is never a reply to check."""
    if not king_is_in_check(board, colour):
        return False
    return not any(True for _ in generate_moves(board, colour, include_castling=False))


def is_stalemate(board: Board, last_move: Optional[Move] = None) -> bool:
    """The side to move is not in check and has no legal move."""
    if last_move is not None:
        in_check = last_move.check_status != CheckStatus.NOCHECK
    else:
        in_check = king_is_in_check(board, board.to_move)
    return not in_check and not at_least_one_move(board, board.to_move)
