from src.match.hashlog import DuplicateTable, HashLog, HashLogTable, PositionCounts


def test_table_prepends_to_chain() -> None:
    table: HashLogTable[HashLog] = HashLogTable(7)
    table.insert(3, HashLog(final_hash=3, label="old"))
    table.insert(10, HashLog(final_hash=10, label="new"))
    assert [entry.label for entry in table.chain(3)] == ["new", "old"]
    assert list(table.chain(4)) == []
    assert len(table) == 2


def test_position_counts_flag_threefold_repetition() -> None:
    counts = PositionCounts(initial_hash=1)
    assert not counts.update(2)
    assert not counts.update(1)
    assert not counts.has_repetition()
    assert counts.update(1)
    assert counts.has_repetition()
    assert counts.count(1) == 3


def test_exact_duplicates_need_both_hashes() -> None:
    log = DuplicateTable()
    assert log.previous_occurrence(100, 500, 0, 40) is None
    assert log.previous_occurrence(100, 501, 0, 40) is None
    assert log.previous_occurrence(100, 500, 0, 40) == 1
    assert log.previous_occurrence(100, 501, 0, 40) == 2
    assert len(log) == 2


def test_fuzzy_duplicates_at_end_ignore_move_order() -> None:
    log = DuplicateTable(fuzzy=True)
    assert log.previous_occurrence(100, 500, 100, 40) is None
    assert log.previous_occurrence(100, 999, 100, 40) == 1


def test_fuzzy_duplicates_at_depth_compare_that_position() -> None:
    log = DuplicateTable(fuzzy=True, fuzzy_depth=10)
    assert log.previous_occurrence(100, 500, 77, 40) is None
    assert log.previous_occurrence(200, 600, 77, 30) == 1
    # Too short to reach the depth: logged by its final position instead.
    assert log.previous_occurrence(300, 700, 0, 5) is None
    assert log.previous_occurrence(300, 700, 0, 5) == 3
