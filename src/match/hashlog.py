from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Generic, Iterator, List, Optional, TypeVar


# Prime bucket counts.
POSITION_TABLE_SIZE = 541
LOG_TABLE_SIZE = 100003


@dataclass
class HashLog:
    """Hash values recorded for a position or a whole game.

    ``cumulative_hash`` separates different move orders that reach the same
    final position; it is carried but never used as a lookup key.
    """

    final_hash: int
    cumulative_hash: int = 0
    label: Optional[str] = None
    game_number: int = 0


EntryT = TypeVar("EntryT")


class HashLogTable(Generic[EntryT]):
    """Fixed prime-sized array of bucket chains keyed by a 64-bit hash.

    Insertion prepends to the chain; lookups walk one chain.
    """

    def __init__(self, size: int) -> None:
        self.size = size
        self._buckets: List[List[EntryT]] = [[] for _ in range(size)]
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def insert(self, key: int, entry: EntryT) -> None:
        self._buckets[key % self.size].insert(0, entry)
        self._count += 1

    def chain(self, key: int) -> Iterator[EntryT]:
        return iter(self._buckets[key % self.size])


class PositionCounts:
    """How often each weak hash has occurred in one game's main line."""

    def __init__(self, initial_hash: int) -> None:
        self._counts: Counter[int] = Counter({initial_hash: 1})

    def update(self, weak_hash: int) -> bool:
        """Count another occurrence; True once the position has occurred three times."""
        self._counts[weak_hash] += 1
        return self._counts[weak_hash] >= 3

    def has_repetition(self) -> bool:
        return any(count >= 3 for count in self._counts.values())

    def count(self, weak_hash: int) -> int:
        return self._counts[weak_hash]


class DuplicateTable:
    """Log of games already seen, for duplicate detection.

    An exact duplicate has the same final and cumulative hashes. A fuzzy
    duplicate reaches the same position at ``fuzzy_depth`` plies, or at the
    end of the game when the depth is 0.
    """

    def __init__(self, fuzzy: bool = False, fuzzy_depth: int = 0) -> None:
        self.fuzzy = fuzzy
        self.fuzzy_depth = fuzzy_depth
        self._table: HashLogTable[HashLog] = HashLogTable(LOG_TABLE_SIZE)
        self._games = 0

    def __len__(self) -> int:
        return len(self._table)

    def previous_occurrence(
        self, final_hash: int, cumulative_hash: int, fuzzy_hash: int, plycount: int
    ) -> Optional[int]:
        """Return the number of an earlier matching game, or log this one and return None.

        Game numbers count from 1 in order of first occurrence.
        """
        self._games += 1
        for entry in self._table.chain(final_hash):
            if entry.final_hash == final_hash and entry.cumulative_hash == cumulative_hash:
                return entry.game_number
        if self.fuzzy:
            for entry in self._table.chain(fuzzy_hash):
                if self.fuzzy_depth == 0 and entry.final_hash == final_hash:
                    return entry.game_number
                if entry.final_hash == fuzzy_hash:
                    return entry.game_number

        if self.fuzzy and self.fuzzy_depth > 0 and plycount >= self.fuzzy_depth:
            entry = HashLog(final_hash=fuzzy_hash, game_number=self._games)
        else:
            entry = HashLog(
                final_hash=final_hash, cumulative_hash=cumulative_hash, game_number=self._games
            )
        self._table.insert(entry.final_hash, entry)
        return None
