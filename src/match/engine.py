from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..engine.apply import apply_move, half_moves_played, move_label, rewrite_game
from ..engine.board import BLACK, QUEEN, WHITE, Board
from ..engine.fen import new_game_board
from ..engine.game import Game
from ..engine.move import CheckStatus, Move, MoveClass, Variation
from ..engine.movegen import is_stalemate
from ..engine.zobrist import MASK64
from .config import DEFAULT_POSITIONAL_DEPTH, MatchOptions
from .eco import ECO_TAGS, EcoLog, EcoTable
from .fen_pattern import FENPatternMatcher, PatternError, split_pattern_line
from .hashlog import DuplicateTable, PositionCounts
from .material import EndingDetails, MaterialSpecError, material_matches, parse_ending_line
from .positions import PositionsOfInterest


logger = logging.getLogger(__name__)

FIFTY_MOVE_HALFMOVES = 100
WHITE_WINS, BLACK_WINS, DRAW = "1-0", "0-1", "1/2-1/2"
UNFINISHED = "*"


@dataclass
class ReplayResult:
    """Outcome of replaying one game's main line for position matching."""

    matches: bool
    plycount: int
    label: Optional[str] = None
    position_counts: Optional[PositionCounts] = None
    board: Optional[Board] = None


@dataclass
class MatchResult:
    """Every verdict reached for one game by ``MatchEngine.match_game``."""

    matched: bool
    moves_ok: bool
    error_ply: int
    plycount: int
    label: Optional[str] = None
    material_colour: Optional[str] = None
    duplicate_of: Optional[int] = None
    tags: Dict[str, str] = field(default_factory=dict)


def _error_ply(board: Board) -> int:
    return 2 * board.move_number - 1 + (1 if board.to_move == BLACK else 0)


class MatchEngine:
    """Everything a run matches games against, plus the per-game replay driver.

    One engine owns the positions of interest, FEN patterns, endings, ECO
    lines and the duplicate log for a run. Games are independent of each
    other except through the duplicate log.
    """

    def __init__(self, options: Optional[MatchOptions] = None) -> None:
        self.options = options or MatchOptions()
        self.positions = PositionsOfInterest()
        self.patterns = FENPatternMatcher()
        self.eco = EcoTable()
        self.endings: List[EndingDetails] = []
        self.duplicates = DuplicateTable(
            fuzzy=self.options.fuzzy_match_duplicates,
            fuzzy_depth=self.options.fuzzy_match_depth,
        )

    # --- Loading ------------------------------------------------------------------

    def load_fen_patterns(self, lines: Iterable[str], add_reverse: bool = False) -> int:
        """Register one pattern (and optional label) per line; bad lines are logged and skipped."""
        added = 0
        for line in lines:
            if not line.strip():
                continue
            try:
                pattern, label = split_pattern_line(line)
                self.patterns.add_fen_pattern(pattern, label, add_reverse=add_reverse)
            except PatternError as e:
                logger.warning("FEN pattern rejected: %s", e)
                continue
            added += 1
        return added

    def load_endings(self, lines: Iterable[str], both_colours: bool = True) -> int:
        added = 0
        for line in lines:
            if not line.strip():
                continue
            try:
                details = parse_ending_line(line, both_colours)
            except MaterialSpecError as e:
                logger.warning("ending rejected: %s", e)
                continue
            # Most recently added endings are tried first.
            self.endings.insert(0, details)
            added += 1
        return added

    def add_position(
        self, moves: Sequence[str] = (), fen: Optional[str] = None, label: Optional[str] = None
    ) -> bool:
        return self.positions.store_hash_value(moves, fen=fen, label=label)

    def add_polyglot_hashcodes(self, values: Iterable[str]) -> int:
        return sum(1 for value in values if self.positions.save_polyglot_hashcode(value))

    def add_eco_line(self, moves: Sequence[str], tags: Dict[str, str]) -> bool:
        return self.eco.add_line(Game.from_san(list(moves), tags))

    @property
    def positional_variations(self) -> bool:
        return len(self.positions) > 0 or len(self.patterns) > 0

    # --- Position matching --------------------------------------------------------

    def position_matches(self, board: Board) -> Optional[str]:
        """Label of a matching position or pattern, ``""`` if unlabelled, None for no match."""
        label = self.positions.matches(board)
        if label is not None:
            return label
        return self.patterns.pattern_match_board(board)

    def create_match_comment(self, board: Board) -> str:
        if self.options.position_match_comment == "FEN":
            return board.to_fen()
        return self.options.position_match_comment

    def _comment_move(self, move: Move, board: Board) -> None:
        if self.options.add_position_match_comments:
            move.comments.append(self.create_match_comment(board))

    def apply_variations(self, game: Game, board: Board, variations: List[Variation]) -> bool:
        """Play each variation on copies of ``game`` and ``board``; True if any matches."""
        matches = not self.positional_variations
        for variation in variations:
            copy_game = replace(game, tags=dict(game.tags), prefix_comment=list(game.prefix_comment))
            matched, _ = self.play_moves(
                copy_game,
                board.copy(),
                variation.moves,
                DEFAULT_POSITIONAL_DEPTH,
                mainline=False,
            )
            matches |= matched
        return matches

    def _check_result(self, game: Game, move: Move, board: Board) -> bool:
        """Compare the Result tag with the final position and the move's result.

        Returns False when conflicting results should invalidate the game.
        """
        opts = self.options
        result = game.tags.get("Result")
        if result is not None:
            corrected: Optional[str] = None
            if move.check_status == CheckStatus.CHECKMATE:
                expected, winner = (WHITE_WINS, "white") if board.to_move == BLACK else (BLACK_WINS, "black")
                if not result.startswith(expected):
                    if opts.fix_result_tags:
                        corrected = expected
                    else:
                        logger.warning(
                            "result of %s is inconsistent with checkmate by %s",
                            result,
                            winner,
                            extra=game.identity(),
                        )
            elif is_stalemate(board):
                if not result.startswith("1/2"):
                    if opts.fix_result_tags:
                        corrected = DRAW
                    else:
                        logger.warning(
                            "result of %s is inconsistent with stalemate", result, extra=game.identity()
                        )
            if corrected is not None:
                game.tags["Result"] = corrected
                move.terminating_result = corrected

        result_tag = game.tags.get("Result")
        move_result = move.terminating_result
        if result_tag is None or move_result is None or result_tag == move_result:
            return True
        if opts.fix_result_tags:
            if UNFINISHED in (move_result, result_tag):
                game.tags["Result"] = move_result
                return True
        elif move_result == UNFINISHED:
            return True
        logger.warning(
            "inconsistent result strings %s vs %s", result_tag, move_result, extra=game.identity()
        )
        return not opts.reject_inconsistent_results

    def play_moves(
        self,
        game: Game,
        board: Board,
        moves: List[Move],
        max_depth: int,
        *,
        mainline: bool = True,
        position_counts: Optional[PositionCounts] = None,
    ) -> Tuple[bool, Optional[str]]:
        """Replay ``moves`` on ``board``, testing every position reached.

        The walk stops early once ``max_depth`` plies have passed without a
        positional match. Variations are explored on copies and any matching
        variation counts as a match for the game.

        Returns:
            tuple[bool, Optional[str]]: Whether the game matches and the label
            of the matching position, if any.
        """
        opts = self.options
        game_ok = True
        error_ply = 0
        game_matches = not self.positional_variations
        null_move_found = False
        fifty_move_rule_applies = False
        underpromotion = False
        eco_match: Optional[EcoLog] = None
        plies = board.move_number * 2 - (1 if board.to_move == WHITE else 0)

        match_label: Optional[str] = None
        if not game_matches:
            match_label = self.position_matches(board)
            if match_label is not None:
                game_matches = True
                if opts.add_position_match_comments:
                    game.prefix_comment.insert(0, self.create_match_comment(board))

        index = 0
        while game_ok and index < len(moves) and (game_matches or plies <= max_depth):
            move = moves[index]
            if not move.text:
                logger.error("internal error: empty move in game", extra=game.identity())
                game_ok = False
                error_ply = _error_ply(board)
                break

            if move.variations and opts.keep_variations:
                game_matches |= self.apply_variations(game, board, move.variations)
            if move.move_class == MoveClass.NULL_MOVE:
                null_move_found = True

            label = move_label(board, move)
            if not apply_move(
                move,
                board,
                store_fen=opts.store_fen,
                suppress_redundant_ep=opts.suppress_redundant_ep_info,
            ):
                logger.warning("failed to make move %s", label, extra=game.identity())
                game_ok = False
                error_ply = _error_ply(board)
                break

            if not game_matches:
                match_label = self.position_matches(board)
                if match_label is not None:
                    game_matches = True
                    self._comment_move(move, board)

            game.cumulative_hash = (game.cumulative_hash + board.weak_hash) & MASK64
            if opts.fuzzy_match_duplicates and opts.fuzzy_match_depth == plies:
                game.fuzzy_duplicate_hash = board.weak_hash

            if position_counts is not None and position_counts.update(board.weak_hash):
                self._comment_move(move, board)

            if opts.check_for_fifty_move_rule and mainline and board.halfmove_clock >= FIFTY_MOVE_HALFMOVES:
                fifty_move_rule_applies = True
                self._comment_move(move, board)

            if move.move_class == MoveClass.PAWN_MOVE_WITH_PROMOTION and move.promoted_piece != QUEEN:
                underpromotion = True

            if mainline and index == len(moves) - 1:
                if opts.fuzzy_match_duplicates and opts.fuzzy_match_depth == 0:
                    game.fuzzy_duplicate_hash = board.weak_hash
                if not self._check_result(game, move, board):
                    game_ok = False

            if opts.add_ECO and mainline:
                entry = self.eco.eco_matches(board.weak_hash, game.cumulative_hash, half_moves_played(board))
                if entry is not None:
                    # A later classification always replaces an earlier one.
                    eco_match = entry

            index += 1
            plies += 1

        game.moves_checked = index == len(moves)
        if null_move_found and not opts.allow_null_moves:
            game_ok = False

        if game_ok:
            if eco_match is not None:
                for tag in ECO_TAGS:
                    game.tags.pop(tag, None)
                game.tags.update(eco_match.tags)
            if opts.check_for_fifty_move_rule and mainline:
                game_matches = fifty_move_rule_applies
            if opts.match_underpromotion and not underpromotion:
                game_matches = False
            if opts.add_matchlabel_tag and match_label:
                game.tags["MatchLabel"] = match_label

        game.final_hash = board.weak_hash
        game.moves_ok = game_ok
        game.error_ply = error_ply
        if not game_ok and not opts.keep_broken_games:
            game_matches = False
        return game_matches, match_label

    def apply_move_list(self, game: Game) -> ReplayResult:
        """Replay ``game`` from its FEN tag or the initial position.

        Fills in the game's hashes and replay outcome and reports whether it
        reaches a position of interest within the positional depth.
        """
        board = new_game_board(game.fen)
        game.cumulative_hash = 0
        counts = PositionCounts(board.weak_hash) if self.options.check_for_repetition else None
        matches, label = self.play_moves(
            game,
            board,
            game.moves,
            self.options.max_positional_depth,
            mainline=True,
            position_counts=counts,
        )
        plycount = half_moves_played(board)
        if matches:
            matches = self.check_for_only_stalemate(board, game.moves)
        return ReplayResult(
            matches=matches, plycount=plycount, label=label, position_counts=counts, board=board
        )

    # --- Further criteria ---------------------------------------------------------

    def check_for_ending(self, game: Game) -> Optional[str]:
        """Colour ("White"/"Black") playing the first piece set of a matched ending.

        Returns ``""`` when no endings are registered and None when none matches.
        """
        if not self.endings:
            return ""
        found = material_matches(game, self.endings)
        if found is None:
            return None
        _, ending = found
        colour = "Black" if ending.colour == BLACK else "White"
        if self.options.add_position_match_comments:
            comment = self.create_match_comment(ending.board)
            if ending.ply > 0:
                game.moves[ending.ply - 1].comments.append(comment)
            else:
                game.prefix_comment.append(comment)
        if self.options.add_match_tag:
            game.tags["MaterialMatch"] = colour
        return colour

    def check_for_only_checkmate(self, game: Game) -> bool:
        if not self.options.match_only_checkmate:
            return True
        return any(m.check_status == CheckStatus.CHECKMATE for m in game.moves)

    def check_for_only_stalemate(self, board: Board, moves: List[Move]) -> bool:
        if not self.options.match_only_stalemate:
            return True
        return is_stalemate(board, moves[-1] if moves else None)

    def check_for_only_repetition(self, counts: Optional[PositionCounts]) -> bool:
        if not self.options.check_for_repetition:
            return True
        return counts is not None and counts.has_repetition()

    def previous_occurrence(self, game: Game, plycount: int) -> Optional[int]:
        return self.duplicates.previous_occurrence(
            game.final_hash, game.cumulative_hash, game.fuzzy_duplicate_hash, plycount
        )

    # --- Whole games --------------------------------------------------------------

    def match_game(self, game: Game) -> MatchResult:
        """Run every criterion against ``game`` in turn, stopping at the first failure.

        Duplicate detection only sees games that pass every other criterion.
        """
        replay = self.apply_move_list(game)
        result = MatchResult(
            matched=False,
            moves_ok=game.moves_ok,
            error_ply=game.error_ply,
            plycount=replay.plycount,
            label=replay.label,
        )
        if not replay.matches:
            result.tags = dict(game.tags)
            return result
        material = self.check_for_ending(game)
        if material is None:
            result.tags = dict(game.tags)
            return result
        result.material_colour = material or None
        if self.check_for_only_checkmate(game) and self.check_for_only_repetition(replay.position_counts):
            result.matched = True
            if self.options.check_for_duplicates:
                result.duplicate_of = self.previous_occurrence(game, replay.plycount)
        result.tags = dict(game.tags)
        return result

    def rewrite_game(self, game: Game, board: Optional[Board] = None) -> bool:
        """Rewrite every move of ``game`` to SAN using this engine's options."""
        opts = self.options
        return rewrite_game(
            game,
            board=board,
            keep_variations=opts.keep_variations,
            keep_broken_games=opts.keep_broken_games,
            store_fen=opts.store_fen,
            suppress_redundant_ep=opts.suppress_redundant_ep_info,
            add_hashcode=opts.add_hashcode_comments,
            add_evaluation=opts.output_evaluation,
        )
