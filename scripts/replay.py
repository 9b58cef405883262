#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import os
import sys

# Allow running this script directly via `python scripts/replay.py`
# by adding the repo root (which contains `src/`) to sys.path.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from src.engine.board import STARTPOS_FEN
from src.engine.fen import new_game_board
from src.engine.game import Game
from src.engine.zobrist import polyglot_hex
from src.match.config import MatchOptions
from src.match.engine import MatchEngine


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay SAN moves from a FEN and print the result")
    parser.add_argument(
        "--fen", type=str, default=STARTPOS_FEN, help="FEN string (default: startpos)"
    )
    parser.add_argument("--evaluate", action="store_true", help="Print a Shannon evaluation per move")
    parser.add_argument("moves", nargs="*", help="Moves, e.g. e4 e5 Nf3")
    args = parser.parse_args()

    tags = {} if args.fen == STARTPOS_FEN else {"FEN": args.fen}
    game = Game.from_san(args.moves, tags)
    engine = MatchEngine(MatchOptions(store_fen=True, output_evaluation=args.evaluate))
    board = new_game_board(game.fen)
    ok = engine.rewrite_game(game, board)
    for move in game.moves:
        line = f"{move.text:8} {move.epd} {move.fen_suffix}"
        if move.evaluation is not None:
            line += f" eval={move.evaluation:.1f}"
        print(line)
    if not ok:
        print(f"replay failed at ply {game.error_ply}", file=sys.stderr)
    print(f"fen={board.to_fen()} weak_hash={board.weak_hash:016x} polyglot={polyglot_hex(board)}")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
