import logging

import pytest

from src.engine.apply import apply_move
from src.engine.board import Board
from src.engine.game import Game
from src.engine.move import decode_move
from src.engine.zobrist import MASK64
from src.match.eco import ECO_HALF_MOVE_LIMIT, EcoTable


def replay(moves):
    """Yield (weak hash, cumulative hash, plies) after each move."""
    board = Board.startpos()
    cumulative = 0
    for ply, text in enumerate(moves, start=1):
        assert apply_move(decode_move(text), board)
        cumulative = (cumulative + board.weak_hash) & MASK64
        yield board.weak_hash, cumulative, ply


@pytest.fixture
def table() -> EcoTable:
    eco = EcoTable()
    assert eco.add_line(Game.from_san(["e4", "e5", "Nf3"], {"ECO": "C40", "Opening": "King's knight opening"}))
    assert eco.add_line(Game.from_san(["e4", "c5"], {"ECO": "B20", "Opening": "Sicilian defence"}))
    return eco


def test_exact_match_at_line_end(table: EcoTable) -> None:
    *_, last = replay(["e4", "e5", "Nf3"])
    entry = table.eco_matches(*last)
    assert entry is not None
    assert entry.tags == {"ECO": "C40", "Opening": "King's knight opening"}
    assert entry.half_moves == 3


def test_no_match_before_line_end(table: EcoTable) -> None:
    for position in replay(["e4", "e5"]):
        assert table.eco_matches(*position) is None


def test_transposition_matches_within_limit(table: EcoTable) -> None:
    *_, last = replay(["Nf3", "e5", "e4"])
    entry = table.eco_matches(*last)
    assert entry is not None and entry.tags["ECO"] == "C40"


def test_game_too_far_past_line_is_not_classified(table: EcoTable) -> None:
    weak, cumulative, _ = list(replay(["e4", "e5", "Nf3"]))[-1]
    assert table.eco_matches(weak, cumulative + 1, 3 + ECO_HALF_MOVE_LIMIT) is not None
    assert table.eco_matches(weak, cumulative + 1, 4 + ECO_HALF_MOVE_LIMIT) is None
    assert table.eco_matches(weak, cumulative + 1, 2) is None


def test_maximum_half_moves_tracks_longest_line(table: EcoTable) -> None:
    assert table.maximum_half_moves == 3 + ECO_HALF_MOVE_LIMIT
    assert len(table) == 2


def test_duplicate_line_is_a_collision(table: EcoTable, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    assert not table.add_line(Game.from_san(["e4", "c5"], {"ECO": "B20"}))
    assert "ECO hash collision" in caplog.text
    assert len(table) == 2


def test_unplayable_line_is_rejected(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    eco = EcoTable()
    line = Game.from_san(["e4", "e4"], {"ECO": "A00"})
    assert not eco.add_line(line)
    assert line.error_ply == 2
    assert len(eco) == 0
    assert "failed to make move" in caplog.text


def test_line_from_fen_tag() -> None:
    eco = EcoTable()
    fen = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
    assert eco.add_line(Game.from_san(["c5"], {"FEN": fen, "ECO": "B20"}))
    assert eco.maximum_half_moves == 2 + ECO_HALF_MOVE_LIMIT


def test_cumulative_hash_wraps_to_64_bits() -> None:
    moves = ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6", "Ba4", "Nf6", "O-O", "Be7"]
    line = Game.from_san(moves, {"ECO": "C84"})
    eco = EcoTable()
    assert eco.add_line(line)
    weak, cumulative, plies = list(replay(moves))[-1]
    assert line.cumulative_hash == cumulative
    assert 0 <= line.cumulative_hash <= MASK64
    entry = eco.eco_matches(weak, cumulative, plies)
    assert entry is not None and entry.tags == {"ECO": "C84"}
