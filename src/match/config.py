from __future__ import annotations

from pydantic import BaseModel, Field


DEFAULT_POSITIONAL_DEPTH = 300


class MatchOptions(BaseModel):
    """Run-time switches for replaying and matching games.

    The same model validates the ``options`` field of HTTP requests.
    """

    keep_variations: bool = Field(default=True, description="Play variations on board copies")
    keep_broken_games: bool = Field(
        default=False, description="Keep games whose moves cannot all be played"
    )
    allow_null_moves: bool = Field(default=False, description="Allow '--' in the main line")
    positional_depth: int = Field(
        default=DEFAULT_POSITIONAL_DEPTH,
        ge=0,
        description="Ply limit for position searches; 0 means the default",
    )
    check_for_repetition: bool = Field(default=False, description="Require a threefold repetition")
    check_for_fifty_move_rule: bool = Field(
        default=False, description="Require the fifty-move rule to apply in the main line"
    )
    match_underpromotion: bool = Field(default=False, description="Require an underpromotion")
    match_only_checkmate: bool = Field(default=False, description="Only games ending in mate")
    match_only_stalemate: bool = Field(default=False, description="Only games ending in stalemate")
    fix_result_tags: bool = Field(
        default=False, description="Correct Result tags that contradict the final position"
    )
    reject_inconsistent_results: bool = Field(
        default=False, description="Treat conflicting result strings as a broken game"
    )
    add_ECO: bool = Field(default=False, description="Classify openings against the ECO table")
    add_match_tag: bool = Field(default=False, description="Add a MaterialMatch tag")
    add_matchlabel_tag: bool = Field(default=False, description="Add a MatchLabel tag")
    add_position_match_comments: bool = Field(
        default=False, description="Comment the move reaching a matching position"
    )
    position_match_comment: str = Field(
        default="Pattern match", description="Match comment text; 'FEN' writes the position"
    )
    suppress_redundant_ep_info: bool = Field(
        default=False, description="Only write an en-passant square a pawn can use"
    )
    store_fen: bool = Field(default=False, description="Record EPD and FEN counters on each move")
    add_hashcode_comments: bool = Field(
        default=False, description="Record the polyglot key after each rewritten move"
    )
    output_evaluation: bool = Field(
        default=False, description="Record a Shannon evaluation after each rewritten move"
    )
    check_for_duplicates: bool = Field(
        default=False, description="Look up matched games in the duplicate log"
    )
    fuzzy_match_duplicates: bool = Field(default=False, description="Fuzzy duplicate detection")
    fuzzy_match_depth: int = Field(
        default=0, ge=0, description="Ply at which fuzzy duplicates are compared; 0 means the end"
    )

    @property
    def max_positional_depth(self) -> int:
        return self.positional_depth or DEFAULT_POSITIONAL_DEPTH
