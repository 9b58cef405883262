import logging

import pytest

from src.engine.apply import apply_move
from src.engine.board import Board
from src.engine.fen import parse_fen
from src.engine.move import decode_move
from src.match.positions import PositionsOfInterest


def after(moves):
    board = Board.startpos()
    for text in moves:
        assert apply_move(decode_move(text), board)
    return board


def test_no_positions_never_match() -> None:
    assert PositionsOfInterest().matches(Board.startpos()) is None


def test_position_reached_by_moves() -> None:
    positions = PositionsOfInterest()
    assert positions.store_hash_value(["e4", "e5"])
    assert positions.matches(after(["e4", "e5"])) == ""
    assert positions.matches(after(["e4", "c5"])) is None
    assert len(positions) == 1


def test_position_label_and_transposition() -> None:
    positions = PositionsOfInterest()
    assert positions.store_hash_value(["e4", "e5", "Nf3"], label="open game")
    assert positions.matches(after(["Nf3", "e5", "e4"])) == "open game"


def test_position_from_fen() -> None:
    positions = PositionsOfInterest()
    fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
    assert positions.store_hash_value(["e4"], fen=fen)
    assert positions.matches(parse_fen("4k3/8/8/8/4P3/8/8/4K3 b - - 0 1")) == ""


def test_unusable_position_is_rejected(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    positions = PositionsOfInterest()
    assert not positions.store_hash_value(["e4", "Ke7"])
    assert "failed to make move" in caplog.text
    assert not positions.store_hash_value(fen="no kings here")
    assert len(positions) == 0


def test_polyglot_hashcode_matches() -> None:
    positions = PositionsOfInterest()
    assert positions.save_polyglot_hashcode("823c9b50fd114196")
    assert positions.matches(after(["e4"])) == ""
    assert positions.matches(Board.startpos()) is None


@pytest.mark.parametrize("value", ["", "xyz", "823c9b50fd1141961", "0x823c"])
def test_bad_polyglot_hashcode_is_rejected(value: str) -> None:
    assert not PositionsOfInterest().save_polyglot_hashcode(value)


def test_short_polyglot_hashcode_is_accepted() -> None:
    positions = PositionsOfInterest()
    assert positions.save_polyglot_hashcode("  ff  ")
    assert len(positions) == 1
