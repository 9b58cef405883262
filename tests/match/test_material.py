import logging

import pytest

from src.engine.board import BISHOP, BLACK, KING, KNIGHT, PAWN, QUEEN, ROOK, WHITE
from src.engine.fen import parse_fen
from src.engine.game import Game
from src.match.material import (
    DEFAULT_MOVE_DEPTH,
    MaterialSpecError,
    Occurs,
    count_pieces,
    look_for_ending,
    material_matches,
    parse_ending_line,
    piece_match,
    piece_set_match,
)


def test_parse_simple_ending() -> None:
    details = parse_ending_line("KQ KR")
    assert details.move_depth == DEFAULT_MOVE_DEPTH
    assert details.num_pieces[WHITE][QUEEN] == 1
    assert details.num_pieces[WHITE][ROOK] == 0
    assert details.num_pieces[BLACK][ROOK] == 1
    assert details.occurs[BLACK][PAWN] == Occurs.EXACTLY


def test_parse_depth_counts_and_operators() -> None:
    details = parse_ending_line("4 KR2+P* KRL?  the rest is a comment")
    assert details.move_depth == 4
    assert (details.num_pieces[WHITE][ROOK], details.occurs[WHITE][ROOK]) == (2, Occurs.NUM_OR_MORE)
    assert (details.num_pieces[WHITE][PAWN], details.occurs[WHITE][PAWN]) == (0, Occurs.NUM_OR_MORE)
    assert (details.num_minor_pieces[BLACK], details.minor_occurs[BLACK]) == (1, Occurs.NUM_OR_LESS)


@pytest.mark.parametrize(
    "text,occurs",
    [
        ("KQ= K", Occurs.SAME_AS_OPPONENT),
        ("KQ# K", Occurs.NOT_SAME_AS_OPPONENT),
        ("KQ< K", Occurs.LESS_THAN_OPPONENT),
        ("KQ<= K", Occurs.LESS_EQ_THAN_OPPONENT),
        ("KQ> K", Occurs.MORE_THAN_OPPONENT),
        ("KQ>= K", Occurs.MORE_EQ_THAN_OPPONENT),
        ("KQ3- K", Occurs.NUM_OR_LESS),
    ],
)
def test_parse_operators(text: str, occurs: Occurs) -> None:
    assert parse_ending_line(text).occurs[WHITE][QUEEN] == occurs


def test_single_set_leaves_opponent_unconstrained() -> None:
    details = parse_ending_line("KRP")
    assert details.occurs[BLACK][QUEEN] == Occurs.NUM_OR_MORE
    assert details.occurs[BLACK][KING] == Occurs.EXACTLY


@pytest.mark.parametrize("text", ["", "   ", "5", "KX K", "KQ10 K"])
def test_parse_errors(text: str) -> None:
    with pytest.raises(MaterialSpecError):
        parse_ending_line(text)


def test_parse_clamps_kings_and_pawns(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    details = parse_ending_line("K2P9 K")
    assert details.num_pieces[WHITE][KING] == 1
    assert details.num_pieces[WHITE][PAWN] == 8
    assert "a king must occur exactly once" in caplog.text
    assert "no more than 8 pawns" in caplog.text


@pytest.mark.parametrize(
    "available,wanted,opponent,occurs,expected",
    [
        (2, 2, 0, Occurs.EXACTLY, True),
        (3, 2, 0, Occurs.NUM_OR_MORE, True),
        (1, 2, 0, Occurs.NUM_OR_MORE, False),
        (1, 1, 0, Occurs.NUM_OR_LESS, True),
        (1, 0, 1, Occurs.SAME_AS_OPPONENT, True),
        (1, 0, 2, Occurs.NOT_SAME_AS_OPPONENT, True),
        (0, 1, 1, Occurs.LESS_THAN_OPPONENT, True),
        (0, 1, 0, Occurs.LESS_THAN_OPPONENT, False),
        (0, 1, 2, Occurs.LESS_THAN_OPPONENT, True),
        (0, 1, 2, Occurs.LESS_EQ_THAN_OPPONENT, False),
        (0, 2, 2, Occurs.LESS_EQ_THAN_OPPONENT, True),
        (3, 1, 1, Occurs.MORE_THAN_OPPONENT, True),
        (3, 1, 1, Occurs.MORE_EQ_THAN_OPPONENT, False),
        (3, 2, 1, Occurs.MORE_EQ_THAN_OPPONENT, True),
    ],
)
def test_piece_match_operators(available, wanted, opponent, occurs, expected) -> None:
    assert piece_match(available, wanted, opponent, occurs) is expected


def test_fewer_queens_than_opponent() -> None:
    counts = count_pieces(parse_fen("4k3/q7/8/8/8/8/8/4K3 w - - 0 1"))
    assert counts[BLACK][QUEEN] == 1
    fewer = parse_ending_line("KQ< KQ")
    same = parse_ending_line("KQ= KQ")
    assert piece_set_match(fewer, counts, WHITE, WHITE)
    assert not piece_set_match(same, counts, WHITE, WHITE)


def test_minor_piece_requirement_counts_bishops_and_knights() -> None:
    counts = count_pieces(parse_fen("4k3/8/8/8/8/8/8/2B1KN2 w - - 0 1"))
    assert counts[WHITE][BISHOP] == 1 and counts[WHITE][KNIGHT] == 1
    assert piece_set_match(parse_ending_line("KL2 K"), counts, WHITE, WHITE)
    assert not piece_set_match(parse_ending_line("KL K"), counts, WHITE, WHITE)
    assert not piece_set_match(parse_ending_line("KB K"), counts, WHITE, WHITE)
    assert piece_set_match(parse_ending_line("KBN K"), counts, WHITE, WHITE)


def test_match_requires_stable_material() -> None:
    fen = "4k3/8/8/8/8/8/3q4/3QK3 w - - 0 1"
    details = parse_ending_line("1 KQ K")
    assert look_for_ending(Game.from_san(["Qxd2"], {"FEN": fen}), details) is None
    found = look_for_ending(Game.from_san(["Qxd2", "Kf7"], {"FEN": fen}), details)
    assert found is not None
    assert found.colour == WHITE
    assert found.ply == 2


def test_default_depth_needs_three_positions() -> None:
    fen = "4k3/8/8/8/8/8/8/4KQ2 w - - 0 1"
    details = parse_ending_line("KQ K")
    assert look_for_ending(Game.from_san(["Qf2"], {"FEN": fen}), details) is None
    found = look_for_ending(Game.from_san(["Qf2", "Kd7"], {"FEN": fen}), details)
    assert found is not None and found.ply == 2


def test_promotion_is_credited_to_the_mover() -> None:
    game = Game.from_san(["e8=Q"], {"FEN": "7k/4P3/8/8/8/8/8/4K3 w - - 0 1"})
    found = look_for_ending(game, parse_ending_line("0 KQ K"))
    assert found is not None
    assert found.ply == 1
    assert count_pieces(found.board)[WHITE][QUEEN] == 1


def test_black_side_is_found_by_default() -> None:
    game = Game.from_san(["Kd2", "Qb7", "Ke3", "Qb6"], {"FEN": "4k3/q7/8/8/8/8/8/4K3 w - - 0 1"})
    found = look_for_ending(game, parse_ending_line("KQ K"))
    assert found is not None
    assert found.colour == BLACK
    assert found.ply == 2


def test_white_only_ending_ignores_the_black_side() -> None:
    game = Game.from_san([], {"FEN": "4k3/q7/8/8/8/8/8/4K3 w - - 0 1"})
    assert look_for_ending(game, parse_ending_line("0 KQ K", both_colours=False)) is None
    found = look_for_ending(game, parse_ending_line("0 KQ K"))
    assert found is not None and found.colour == BLACK


def test_unplayable_move_stops_the_search() -> None:
    game = Game.from_san(["Ke3", "Kd7"], {"FEN": "4k3/8/8/8/8/8/8/4KQ2 w - - 0 1"})
    assert look_for_ending(game, parse_ending_line("KQ K")) is None


def test_material_matches_returns_first_matching_ending() -> None:
    endings = [parse_ending_line("0 KR K"), parse_ending_line("0 KQ K")]
    game = Game.from_san([], {"FEN": "4k3/8/8/8/8/8/8/4KQ2 w - - 0 1"})
    found = material_matches(game, endings)
    assert found is not None
    assert found[0] is endings[1]
    assert material_matches(game, endings[:1]) is None
