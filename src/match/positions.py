from __future__ import annotations

import logging
import string
from typing import Optional, Sequence

from ..engine.apply import apply_move, move_label
from ..engine.board import Board
from ..engine.fen import new_fen_board, new_game_board
from ..engine.move import decode_move
from ..engine.zobrist import polyglot_hash
from .hashlog import POSITION_TABLE_SIZE, HashLog, HashLogTable


logger = logging.getLogger(__name__)


class PositionsOfInterest:
    """Positions a game must reach to match.

    Positions are held by weak hash (reached by playing moves, optionally
    from a FEN) or by externally supplied polyglot keys. The two hash schemes
    live in separate tables and are never compared with each other.
    """

    def __init__(self) -> None:
        self._weak: HashLogTable[HashLog] = HashLogTable(POSITION_TABLE_SIZE)
        self._polyglot: HashLogTable[HashLog] = HashLogTable(POSITION_TABLE_SIZE)

    def __len__(self) -> int:
        return len(self._weak) + len(self._polyglot)

    def store_hash_value(
        self, moves: Sequence[str] = (), fen: Optional[str] = None, label: Optional[str] = None
    ) -> bool:
        """Play ``moves`` from ``fen`` (or the initial position) and record the result.

        Returns False, logging why, when the FEN or a move cannot be played.
        """
        if fen is not None and new_fen_board(fen) is None:
            logger.warning("position of interest rejected: unusable FEN", extra={"fen": fen})
            return False
        board = new_game_board(fen)
        for text in moves:
            move = decode_move(text)
            if not apply_move(move, board):
                logger.warning("position of interest rejected: failed to make move %s", move_label(board, move))
                return False
        self._weak.insert(board.weak_hash, HashLog(final_hash=board.weak_hash, label=label))
        return True

    def save_polyglot_hashcode(self, value: str) -> bool:
        """Record a polyglot key given as up to 16 hexadecimal digits."""
        value = value.strip()
        if not value or len(value) > 16 or any(ch not in string.hexdigits for ch in value):
            logger.warning("unrecognised hash value %r", value)
            return False
        code = int(value, 16)
        self._polyglot.insert(code, HashLog(final_hash=code))
        return True

    def matches(self, board: Board) -> Optional[str]:
        """Label of a matching position, ``""`` when it has none, None for no match."""
        if len(self._weak):
            for entry in self._weak.chain(board.weak_hash):
                if entry.final_hash == board.weak_hash:
                    return entry.label or ""
        if len(self._polyglot):
            code = polyglot_hash(board)
            for entry in self._polyglot.chain(code):
                if entry.final_hash == code:
                    return ""
        return None
