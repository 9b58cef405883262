from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .move import Move, Variation, decode_move


@dataclass
class Game:
    """One game as handed over by the score parser, plus replay bookkeeping.

    Responsibility: carry tags and moves in, and the outcome of replay out
    (hashes, whether the moves were playable, and where they broke).
    """

    tags: Dict[str, str] = field(default_factory=dict)
    moves: List[Move] = field(default_factory=list)
    prefix_comment: List[str] = field(default_factory=list)
    final_hash: int = 0
    cumulative_hash: int = 0
    fuzzy_duplicate_hash: int = 0
    moves_ok: bool = True
    moves_checked: bool = False
    error_ply: int = 0

    @classmethod
    def from_san(
        cls,
        moves: List[str],
        tags: Optional[Dict[str, str]] = None,
        result: Optional[str] = None,
    ) -> "Game":
        """Build a game from plain move text, e.g. ``["e4", "e5", "Nf3"]``.

        ``result`` becomes the terminating result of the last move.
        """
        game = cls(tags=dict(tags or {}), moves=[decode_move(m) for m in moves])
        if result is not None and game.moves:
            game.moves[-1].terminating_result = result
        return game

    @property
    def fen(self) -> Optional[str]:
        return self.tags.get("FEN")

    @property
    def is_chess960(self) -> bool:
        return "960" in self.tags.get("Variant", "")

    def san_moves(self) -> List[str]:
        return [m.text for m in self.moves]

    def identity(self) -> Dict[str, str]:
        """Identifying tags, keyed for use as logging context."""
        return {k.lower(): self.tags[k] for k in ("Event", "White", "Black") if k in self.tags}


def variation_from_san(moves: List[str]) -> Variation:
    return Variation(moves=[decode_move(m) for m in moves])
