import pytest

from src.engine.apply import apply_move
from src.engine.board import EMPTY, KNIGHT, PAWN, QUEEN, ROOK, WHITE, make_coloured_piece
from src.engine.fen import parse_fen
from src.engine.move import CheckStatus, MoveClass, decode_move
from src.engine.zobrist import compute_weak_hash


CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


def play_one(fen: str, text: str):
    board = parse_fen(fen)
    move = decode_move(text)
    ok = apply_move(move, board)
    return ok, board, move


@pytest.mark.parametrize(
    "text,expected",
    [
        ("O-O", "r3k2r/8/8/8/8/8/8/R4RK1 b kq - 1 1"),
        ("O-O-O", "r3k2r/8/8/8/8/8/8/2KR3R b kq - 1 1"),
        ("e1g1", "r3k2r/8/8/8/8/8/8/R4RK1 b kq - 1 1"),
        ("Rh2", "r3k2r/8/8/8/8/8/7R/R3K3 b Qkq - 1 1"),
        ("Rxa8+", "R3k2r/8/8/8/8/8/8/4K2R b Kk - 0 1"),
        ("Kf1", "r3k2r/8/8/8/8/8/8/R4K1R b kq - 1 1"),
    ],
)
def test_castling_moves_and_rights(text: str, expected: str) -> None:
    ok, board, _ = play_one(CASTLING_FEN, text)
    assert ok
    assert board.to_fen() == expected
    assert board.weak_hash == compute_weak_hash(board)


def test_black_castles_queenside() -> None:
    ok, board, move = play_one("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1", "O-O-O")
    assert ok
    assert move.move_class == MoveClass.QUEENSIDE_CASTLE
    assert board.to_fen() == "2kr3r/8/8/8/8/8/8/R3K2R w KQ - 1 2"


def test_cannot_castle_through_check() -> None:
    fen = "r3k2r/8/8/8/8/8/5r2/R3K2R w KQkq - 0 1"
    assert not play_one(fen, "O-O")[0]
    assert play_one(fen, "O-O-O")[0]


def test_cannot_castle_out_of_check_or_through_pieces() -> None:
    assert not play_one("r3k2r/8/8/8/8/8/4r3/R3K2R w KQkq - 0 1", "O-O")[0]
    assert not play_one("r3k2r/8/8/8/8/8/8/RN2K2R w KQkq - 0 1", "O-O-O")[0]
    assert not play_one("r3k2r/8/8/8/8/8/8/R3K2R w Qkq - 0 1", "O-O")[0]


def test_chess960_castling_with_rook_beside_king() -> None:
    ok, board, _ = play_one("4k3/8/8/8/8/8/8/RK6 w A - 0 1", "O-O-O")
    assert ok
    assert board.to_fen() == "4k3/8/8/8/8/8/8/2KR4 b - - 1 1"


def test_chess960_castling_onto_rook_square() -> None:
    ok, board, _ = play_one("4k3/8/8/8/8/8/8/5KR1 w G - 0 1", "O-O")
    assert ok
    assert board.to_fen() == "4k3/8/8/8/8/8/8/5RK1 b - - 1 1"
    assert board.weak_hash == compute_weak_hash(board)


def test_en_passant_capture() -> None:
    ok, board, move = play_one("4k3/8/8/3Pp3/8/8/8/4K3 w - e6 0 1", "dxe6")
    assert ok
    assert move.move_class == MoveClass.ENPASSANT_PAWN_MOVE
    assert move.captured_piece == PAWN
    assert board.to_fen() == "4k3/8/4P3/8/8/8/8/4K3 b - - 0 1"
    assert board.weak_hash == compute_weak_hash(board)


def test_en_passant_only_immediately() -> None:
    board = parse_fen("4k3/3p4/8/4P3/8/8/8/4K3 b - - 0 1")
    for text in ("d5", "Ke2", "Kf8"):
        assert apply_move(decode_move(text), board)
    assert not apply_move(decode_move("exd6"), board)


def test_double_push_sets_ep_square() -> None:
    ok, board, _ = play_one("4k3/3p4/8/4P3/8/8/8/4K3 b - - 0 1", "d5")
    assert ok
    assert board.en_passant
    assert (board.ep_col, board.ep_rank) == ("d", "6")


def test_promotion_to_queen_gives_check() -> None:
    ok, board, move = play_one("7k/4P3/8/8/8/8/8/4K3 w - - 0 1", "e8=Q")
    assert ok
    assert move.promoted_piece == QUEEN
    assert move.check_status == CheckStatus.CHECK
    assert board.to_fen() == "4Q2k/8/8/8/8/8/8/4K3 b - - 0 1"
    assert board.weak_hash == compute_weak_hash(board)


@pytest.mark.parametrize("text,piece", [("e8=R", ROOK), ("e8N", KNIGHT), ("e8", QUEEN)])
def test_promotion_piece_choices(text: str, piece: int) -> None:
    ok, board, move = play_one("7k/4P3/8/8/8/8/8/4K3 w - - 0 1", text)
    assert ok
    assert move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION
    assert board.piece_at("e", "8") == make_coloured_piece(WHITE, piece)
    assert board.piece_at("e", "7") == EMPTY


def test_capture_promotion_removes_castling_right() -> None:
    ok, board, move = play_one("r3k3/1P6/8/8/8/8/8/4K3 w q - 0 1", "bxa8=N")
    assert ok
    assert move.captured_piece == ROOK
    assert board.to_fen() == "N3k3/8/8/8/8/8/8/4K3 b - - 0 1"


def test_promotion_on_wrong_rank_fails() -> None:
    assert not play_one("7k/8/4P3/8/8/8/8/4K3 w - - 0 1", "e7=Q")[0]
