from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..engine.board import RANKS, Board


logger = logging.getLogger(__name__)

EMPTY_SQUARE = "_"
NON_EMPTY_SQUARE = "!"
ANY_SQUARE_STATE = "?"
ZERO_OR_MORE_OF_ANYTHING = "*"
ANY_WHITE_PIECE = "A"
ANY_BLACK_PIECE = "a"
NON_PAWN_PIECE = "m"
CCL_START, CCL_END, NCCL = "[", "]", "^"

WHITE_PIECES = frozenset("KQRNBP")
BLACK_PIECES = frozenset("kqrnbp")

# Label suffix of the colour-reversed copy of a pattern.
REVERSED_LABEL_SUFFIX = "I"


class PatternError(ValueError):
    """Raised when a FEN pattern is malformed."""


# --- Single-rank matching ------------------------------------------------------
#
# A small recursive matcher in the style of Pike's regular expression matcher,
# working on one rank at a time. Text uses one character per square with
# ``_`` for an empty square.


def matchhere(regexp: str, text: str) -> bool:
    """Match ``regexp`` against the whole of ``text``."""
    if not regexp:
        return not text
    if regexp[0] == ZERO_OR_MORE_OF_ANYTHING:
        return matchstar(regexp[1:], text)
    if not text:
        return False
    head = regexp[0]
    if head == ANY_SQUARE_STATE:
        return matchhere(regexp[1:], text[1:])
    if head in (NON_EMPTY_SQUARE, ANY_WHITE_PIECE, ANY_BLACK_PIECE, NON_PAWN_PIECE):
        return matchone(head, text[0]) and matchhere(regexp[1:], text[1:])
    if head == CCL_START:
        if regexp[1:2] == NCCL:
            return matchnccl(regexp[2:], text)
        return matchccl(regexp[1:], text)
    if head in "12345678":
        empty = int(head)
        if text[:empty] == EMPTY_SQUARE * empty:
            return matchhere(regexp[1:], text[empty:])
        return False
    return head == text[0] and matchhere(regexp[1:], text[1:])


def matchstar(regexp: str, text: str) -> bool:
    """``*`` takes the longest remainder first, giving back one square per retry."""
    for end in range(len(text), -1, -1):
        if matchhere(regexp, text[end:]):
            return True
    return False


def matchone(regchar: str, textchar: str) -> bool:
    if regchar == textchar:
        return True
    if regchar == NON_EMPTY_SQUARE:
        return textchar != EMPTY_SQUARE
    if regchar == ANY_WHITE_PIECE:
        return textchar in WHITE_PIECES
    if regchar == ANY_BLACK_PIECE:
        return textchar in BLACK_PIECES
    if regchar == NON_PAWN_PIECE:
        return textchar not in (EMPTY_SQUARE, "p", "P")
    return regchar == ANY_SQUARE_STATE


def matchccl(regexp: str, text: str) -> bool:
    """Match one square against any member of ``[...]``; ``regexp`` starts after ``[``."""
    close = regexp.find(CCL_END)
    members = regexp[:close] if close >= 0 else regexp
    if any(matchone(ch, text[0]) for ch in members):
        return matchhere(regexp[close + 1:] if close >= 0 else "", text[1:])
    return False


def matchnccl(regexp: str, text: str) -> bool:
    """Match one square against none of ``[^...]``; ``regexp`` starts after ``^``."""
    close = regexp.find(CCL_END)
    if close < 0:
        return False
    if any(matchone(ch, text[0]) for ch in regexp[:close]):
        return False
    return matchhere(regexp[close + 1:], text[1:])


# --- Pattern validation and reversal -------------------------------------------


def validate_pattern(pattern: str) -> List[str]:
    """Split ``pattern`` into its eight rank globs, rank 8 first.

    Raises:
        PatternError: If the pattern does not have exactly eight non-empty
            ranks, or a closure is nested, unmatched or unterminated.
    """
    ranks = pattern.split("/")
    if len(ranks) != 8:
        raise PatternError(f"FEN pattern {pattern!r} needs 8 ranks, found {len(ranks)}")
    for rank in ranks:
        in_closure = False
        symbols = 0
        for ch in rank:
            if ch == CCL_START:
                if in_closure:
                    raise PatternError(f"nested closures not allowed: {pattern}")
                in_closure = True
            elif ch == CCL_END:
                if not in_closure:
                    raise PatternError(f"missing {CCL_START} to match {CCL_END}: {pattern}")
                in_closure = False
            elif ch == NCCL:
                if not in_closure:
                    raise PatternError(
                        f"{NCCL} not allowed outside {CCL_START}...{CCL_END}: {pattern}"
                    )
            else:
                symbols += 1
        if in_closure:
            raise PatternError(f"unterminated {CCL_START} in rank {rank!r}: {pattern}")
        if symbols == 0:
            raise PatternError(f"empty rank in FEN pattern {pattern}")
    return ranks


def _swap_rank_case(rank: str) -> str:
    return "".join(
        ch if ch in (NON_PAWN_PIECE, EMPTY_SQUARE) else ch.swapcase() for ch in rank
    )


def reverse_pattern(ranks: List[str]) -> List[str]:
    """The same pattern seen from the other side: ranks flipped, colours swapped."""
    return [_swap_rank_case(rank) for rank in reversed(ranks)]


def split_pattern_line(line: str) -> Tuple[str, Optional[str]]:
    """Separate a pattern line into the pattern and its optional label."""
    parts = line.strip().split(None, 1)
    if not parts:
        raise PatternError("empty FEN pattern line")
    label = parts[1].strip() if len(parts) > 1 else None
    return parts[0], label or None


# --- Pattern tree ----------------------------------------------------------------


@dataclass
class PatternNode:
    """One rank glob, shared by every pattern with the same ranks above it.

    ``children`` are the alternatives for the next rank down. A node at
    rank 1 is a complete pattern and carries its label.
    """

    rank: str
    children: List["PatternNode"] = field(default_factory=list)
    label: Optional[str] = None

    def child(self, rank: str) -> Optional["PatternNode"]:
        for node in self.children:
            if node.rank == rank:
                return node
        return None


class FENPatternMatcher:
    """Board patterns merged into a tree keyed rank by rank, from rank 8 down."""

    def __init__(self) -> None:
        self.root = PatternNode(rank="")
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def add_fen_pattern(
        self, pattern: str, label: Optional[str] = None, add_reverse: bool = False
    ) -> None:
        """Register ``pattern`` and, with ``add_reverse``, its colour-reversed copy.

        Raises:
            PatternError: If the pattern is malformed; nothing is registered.
        """
        ranks = validate_pattern(pattern)
        self._insert(ranks, label)
        if add_reverse:
            reversed_label = label + REVERSED_LABEL_SUFFIX if label else None
            self._insert(reverse_pattern(ranks), reversed_label)

    def _insert(self, ranks: List[str], label: Optional[str]) -> None:
        node = self.root
        for rank in ranks:
            next_node = node.child(rank)
            if next_node is None:
                next_node = PatternNode(rank=rank)
                node.children.append(next_node)
            node = next_node
        # The first registration of an identical pattern keeps its label.
        if node.label is None:
            node.label = label
        self._count += 1

    def pattern_match_board(self, board: Board) -> Optional[str]:
        """Label of the first pattern matching ``board``.

        Returns ``""`` for a match on an unlabelled pattern and None when
        nothing matches. Rank text is built only for ranks the walk reaches.
        """
        if not self.root.children:
            return None
        texts: List[Optional[str]] = [None] * 8

        def rank_text(depth: int) -> str:
            text = texts[depth]
            if text is None:
                text = texts[depth] = board.rank_text(RANKS[7 - depth])
            return text

        def walk(node: PatternNode, depth: int) -> Optional[str]:
            for child in node.children:
                if matchhere(child.rank, rank_text(depth)):
                    if depth == 7:
                        return child.label or ""
                    found = walk(child, depth + 1)
                    if found is not None:
                        return found
            return None

        return walk(self.root, 0)
