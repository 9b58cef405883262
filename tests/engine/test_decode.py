import pytest

from src.engine.board import BISHOP, EMPTY, KING, KNIGHT, QUEEN, ROOK
from src.engine.move import MoveClass, decode_move


@pytest.mark.parametrize(
    "text,move_class,coords",
    [
        ("e4", MoveClass.PAWN_MOVE, ("e", "", "e", "4")),
        ("e2e4", MoveClass.PAWN_MOVE, ("e", "2", "e", "4")),
        ("exd5", MoveClass.PAWN_MOVE, ("e", "", "d", "5")),
        ("ed", MoveClass.PAWN_MOVE, ("e", "", "d", "")),
        ("exd6ep", MoveClass.ENPASSANT_PAWN_MOVE, ("e", "", "d", "6")),
        ("exd6e.p.", MoveClass.ENPASSANT_PAWN_MOVE, ("e", "", "d", "6")),
        ("Nf3", MoveClass.PIECE_MOVE, ("", "", "f", "3")),
        ("Nbd2", MoveClass.PIECE_MOVE, ("b", "", "d", "2")),
        ("R1a2", MoveClass.PIECE_MOVE, ("", "1", "a", "2")),
        ("Ng1-f3", MoveClass.PIECE_MOVE, ("g", "1", "f", "3")),
        ("Qxh7+", MoveClass.PIECE_MOVE, ("", "", "h", "7")),
    ],
)
def test_decode_coordinates(text, move_class, coords) -> None:
    move = decode_move(text)
    assert move.move_class == move_class
    assert (move.from_col, move.from_rank, move.to_col, move.to_rank) == coords


@pytest.mark.parametrize(
    "text,promoted",
    [("e8=Q", QUEEN), ("e8Q", QUEEN), ("e8=N", KNIGHT), ("dxe8=R#", ROOK), ("e8b", BISHOP)],
)
def test_decode_promotions(text, promoted) -> None:
    move = decode_move(text)
    assert move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION
    assert move.promoted_piece == promoted
    assert move.to_rank == "8"


@pytest.mark.parametrize(
    "text,move_class",
    [
        ("O-O", MoveClass.KINGSIDE_CASTLE),
        ("0-0", MoveClass.KINGSIDE_CASTLE),
        ("O-O-O+", MoveClass.QUEENSIDE_CASTLE),
        ("0-0-0", MoveClass.QUEENSIDE_CASTLE),
    ],
)
def test_decode_castling(text, move_class) -> None:
    move = decode_move(text)
    assert move.move_class == move_class
    assert move.piece_to_move == KING


def test_decode_null_move() -> None:
    assert decode_move("--").move_class == MoveClass.NULL_MOVE


@pytest.mark.parametrize("text", ["", "Zf3", "e9", "O-0", "xx", "ee4"])
def test_decode_unknown(text: str) -> None:
    move = decode_move(text)
    assert move.move_class == MoveClass.UNKNOWN_MOVE
    assert move.piece_to_move == EMPTY
