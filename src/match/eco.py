from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..engine.apply import apply_move, half_moves_played, move_label
from ..engine.fen import new_game_board
from ..engine.game import Game
from ..engine.zobrist import MASK64
from .hashlog import HashLogTable


logger = logging.getLogger(__name__)

ECO_TABLE_SIZE = 4096
# How far past the end of a line a game may be and still be classified by it.
ECO_HALF_MOVE_LIMIT = 6
ECO_TAGS = ("ECO", "Opening", "Variation", "SubVariation")


@dataclass
class EcoLog:
    required_hash: int
    cumulative_hash: int
    half_moves: int
    tags: Dict[str, str] = field(default_factory=dict)


class EcoTable:
    """Opening classification lines keyed by the weak hash of their final position."""

    def __init__(self) -> None:
        self._table: HashLogTable[EcoLog] = HashLogTable(ECO_TABLE_SIZE)
        self.maximum_half_moves = 0

    def __len__(self) -> int:
        return len(self._table)

    def save_eco_details(
        self, final_hash: int, cumulative_hash: int, half_moves: int, tags: Dict[str, str]
    ) -> bool:
        """Store one line's end point. An identical end point is a collision and is not stored."""
        for entry in self._table.chain(final_hash):
            if (
                entry.required_hash == final_hash
                and entry.half_moves == half_moves
                and entry.cumulative_hash == cumulative_hash
            ):
                logger.warning(
                    "ECO hash collision of %s against %s; possible duplicate move sequences",
                    _describe(entry.tags),
                    _describe(tags),
                )
                return False
        self._table.insert(
            final_hash,
            EcoLog(
                required_hash=final_hash,
                cumulative_hash=cumulative_hash,
                half_moves=half_moves,
                tags={k: tags[k] for k in ECO_TAGS if k in tags},
            ),
        )
        self.maximum_half_moves = max(self.maximum_half_moves, half_moves + ECO_HALF_MOVE_LIMIT)
        return True

    def add_line(self, game: Game) -> bool:
        """Replay an ECO line (tags plus moves) and store where it ends."""
        board = new_game_board(game.fen)
        game.cumulative_hash = 0
        for move in game.moves:
            if not apply_move(move, board):
                game.moves_ok = False
                game.error_ply = half_moves_played(board) + 1
                logger.warning(
                    "failed to make move %s in ECO line %s",
                    move_label(board, move),
                    _describe(game.tags),
                )
                return False
            game.cumulative_hash = (game.cumulative_hash + board.weak_hash) & MASK64
        game.final_hash = board.weak_hash
        game.moves_checked = True
        return self.save_eco_details(
            board.weak_hash, game.cumulative_hash, half_moves_played(board), game.tags
        )

    def eco_matches(
        self, current_hash: int, cumulative_hash: int, half_moves: int
    ) -> Optional[EcoLog]:
        """Find the line classifying a position reached after ``half_moves`` plies.

        A line with the same length and cumulative hash is an exact match and
        wins at once. Otherwise the last line in the chain that the game has
        passed by at most ``ECO_HALF_MOVE_LIMIT`` plies is returned.
        """
        if half_moves > self.maximum_half_moves:
            return None
        possible: Optional[EcoLog] = None
        for entry in self._table.chain(current_hash):
            if entry.required_hash != current_hash:
                continue
            if half_moves == entry.half_moves and entry.cumulative_hash == cumulative_hash:
                return entry
            if 0 <= half_moves - entry.half_moves <= ECO_HALF_MOVE_LIMIT:
                possible = entry
        return possible


def _describe(tags: Dict[str, str]) -> str:
    return " ".join(tags.get(k, "") for k in ("ECO", "Opening", "Variation")).strip()
