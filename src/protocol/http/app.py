from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel, Field

from .error import (
    DOMAIN_ERRORS,
    domain_error_handler,
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from ...engine.board import BLACK, PIECE_LETTERS, WHITE, Board
from ...engine.fen import build_basic_epd, new_game_board
from ...engine.game import Game
from ...engine.move import CheckStatus, Move
from ...engine.zobrist import polyglot_hex
from ...match.config import MatchOptions
from ...match.engine import MatchEngine
from ...match.fen_pattern import FENPatternMatcher
from ...match.material import EndingDetails, Occurs, look_for_ending, parse_ending_line
from .session import InMemorySessionStore


logger = logging.getLogger(__name__)


class ParsePositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string")
    suppress_redundant_ep: bool = Field(default=False)


class PositionResponse(BaseModel):
    fen: str
    epd: str
    weak_hash: str
    polyglot_hash: str


class GameRequest(BaseModel):
    moves: List[str] = Field(default_factory=list, description="SAN move text, e.g. ['e4', 'e5']")
    tags: Dict[str, str] = Field(default_factory=dict)
    result: Optional[str] = Field(default=None, description="Result text after the last move")


class ReplayRequest(GameRequest):
    options: MatchOptions = Field(default_factory=MatchOptions)


class ReplayedMove(BaseModel):
    san: str
    check: Optional[str]
    epd: Optional[str] = None
    fen_suffix: Optional[str] = None
    zobrist: Optional[str] = None
    evaluation: Optional[float] = None
    comments: List[str] = Field(default_factory=list)


class ReplayResponse(BaseModel):
    moves_ok: bool
    error_ply: int
    moves: List[ReplayedMove]
    prefix_comment: List[str]
    final_fen: str
    final_hash: str
    polyglot_hash: str


class CreateEngineRequest(BaseModel):
    options: MatchOptions = Field(default_factory=MatchOptions)


class CreateEngineResponse(BaseModel):
    engine_id: str


class PatternsRequest(BaseModel):
    lines: List[str]
    add_reverse: bool = False


class EndingsRequest(BaseModel):
    lines: List[str]
    both_colours: bool = Field(default=True, description="False tests the first piece set against White only")


class PositionsRequest(BaseModel):
    fens: List[str] = Field(default_factory=list)
    hashcodes: List[str] = Field(default_factory=list, description="Polyglot keys in hex")


class EcoLine(BaseModel):
    tags: Dict[str, str]
    moves: List[str]


class EcoRequest(BaseModel):
    lines: List[EcoLine]


class LoadResponse(BaseModel):
    added: int
    rejected: int


class MatchResponse(BaseModel):
    matched: bool
    moves_ok: bool
    error_ply: int
    plycount: int
    label: Optional[str]
    material_match: Optional[str]
    duplicate_of: Optional[int]
    tags: Dict[str, str]
    moves: List[str]


class PatternMatchRequest(BaseModel):
    pattern: str = Field(..., description="FEN pattern, rank 8 first, e.g. '*/*/*/*/4P3/*/*/*'")
    fen: str
    label: Optional[str] = None
    add_reverse: bool = False


class PatternMatchResponse(BaseModel):
    matched: bool
    label: Optional[str]


class EndingCheckRequest(GameRequest):
    line: str = Field(..., description="Material line, e.g. '4 KQ KR'")
    both_colours: bool = Field(default=True, description="False tests the first piece set against White only")


class EndingCheckResponse(BaseModel):
    move_depth: int
    first_set: Dict[str, str]
    second_set: Dict[str, str]
    matched: bool
    colour: Optional[str] = None
    ply: Optional[int] = None


_CHECK_NAMES = {CheckStatus.CHECK: "check", CheckStatus.CHECKMATE: "checkmate"}


def _replayed(move: Move) -> ReplayedMove:
    return ReplayedMove(
        san=move.text,
        check=_CHECK_NAMES.get(move.check_status),
        epd=move.epd,
        fen_suffix=move.fen_suffix,
        zobrist=move.zobrist,
        evaluation=move.evaluation,
        comments=move.comments,
    )


def _position_response(board: Board, suppress_redundant_ep: bool = False) -> PositionResponse:
    epd = build_basic_epd(board, suppress_redundant_ep)
    return PositionResponse(
        fen=f"{epd} {board.halfmove_clock} {board.move_number}",
        epd=epd,
        weak_hash=f"{board.weak_hash:016x}",
        polyglot_hash=polyglot_hex(board),
    )


def _describe_piece_set(details: EndingDetails, set_colour: int) -> Dict[str, str]:
    """Requirements of one piece set, e.g. ``{"Q": "exactly 1", "P": "num_or_more 0"}``."""
    described: Dict[str, str] = {}
    for piece, letter in PIECE_LETTERS.items():
        number = details.num_pieces[set_colour][piece]
        occurs = details.occurs[set_colour][piece]
        if number or occurs != Occurs.EXACTLY:
            described[letter] = f"{occurs.value} {number}"
    if details.has_minor_requirement(set_colour):
        described["L"] = f"{details.minor_occurs[set_colour].value} {details.num_minor_pieces[set_colour]}"
    return described


def create_app() -> FastAPI:
    app = FastAPI(title="Chess Match Engine API", version="0.1.0")

    # Basic logging setup
    logging.basicConfig(level=logging.INFO)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    # Preserve FastAPI 422 validation behavior and structured HTTP errors
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    for error_class in DOMAIN_ERRORS:
        app.add_exception_handler(error_class, domain_error_handler)
    app.add_exception_handler(Exception, exception_handler)

    # In-memory session store for match engines
    store = InMemorySessionStore()

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/positions/parse", response_model=PositionResponse)
    async def parse_position(req: ParsePositionRequest) -> PositionResponse:
        board = Board.from_fen(req.fen)
        return _position_response(board, req.suppress_redundant_ep)

    @app.post("/api/games/replay", response_model=ReplayResponse)
    async def replay_game(req: ReplayRequest) -> ReplayResponse:
        game = Game.from_san(req.moves, req.tags, req.result)
        engine = MatchEngine(req.options)
        board = new_game_board(game.fen)
        ok = engine.rewrite_game(game, board)
        position = _position_response(board, req.options.suppress_redundant_ep_info)
        return ReplayResponse(
            moves_ok=ok,
            error_ply=game.error_ply if not ok else 0,
            moves=[_replayed(m) for m in game.moves],
            prefix_comment=game.prefix_comment,
            final_fen=position.fen,
            final_hash=position.weak_hash,
            polyglot_hash=position.polyglot_hash,
        )

    @app.post("/api/patterns/match", response_model=PatternMatchResponse)
    async def match_pattern(req: PatternMatchRequest) -> PatternMatchResponse:
        matcher = FENPatternMatcher()
        matcher.add_fen_pattern(req.pattern, req.label, add_reverse=req.add_reverse)
        label = matcher.pattern_match_board(Board.from_fen(req.fen))
        return PatternMatchResponse(matched=label is not None, label=label or None)

    @app.post("/api/endings/check", response_model=EndingCheckResponse)
    async def check_ending(req: EndingCheckRequest) -> EndingCheckResponse:
        details = parse_ending_line(req.line, req.both_colours)
        found = look_for_ending(Game.from_san(req.moves, req.tags, req.result), details)
        response = EndingCheckResponse(
            move_depth=details.move_depth,
            first_set=_describe_piece_set(details, WHITE),
            second_set=_describe_piece_set(details, BLACK),
            matched=found is not None,
        )
        if found is not None:
            response.colour = "White" if found.colour == WHITE else "Black"
            response.ply = found.ply
        return response

    @app.post("/api/engines", response_model=CreateEngineResponse)
    async def create_engine(req: Optional[CreateEngineRequest] = None) -> CreateEngineResponse:
        options = req.options if req is not None else MatchOptions()
        return CreateEngineResponse(engine_id=store.create(MatchEngine(options)))

    @app.post("/api/engines/{engine_id}/patterns", response_model=LoadResponse)
    async def add_patterns(engine_id: str, req: PatternsRequest) -> LoadResponse:
        engine = _require_engine(store, engine_id)
        added = engine.load_fen_patterns(req.lines, add_reverse=req.add_reverse)
        return LoadResponse(added=added, rejected=_non_blank(req.lines) - added)

    @app.post("/api/engines/{engine_id}/endings", response_model=LoadResponse)
    async def add_endings(engine_id: str, req: EndingsRequest) -> LoadResponse:
        engine = _require_engine(store, engine_id)
        added = engine.load_endings(req.lines, both_colours=req.both_colours)
        return LoadResponse(added=added, rejected=_non_blank(req.lines) - added)

    @app.post("/api/engines/{engine_id}/positions", response_model=LoadResponse)
    async def add_positions(engine_id: str, req: PositionsRequest) -> LoadResponse:
        engine = _require_engine(store, engine_id)
        added = sum(1 for fen in req.fens if engine.add_position(fen=fen))
        added += engine.add_polyglot_hashcodes(req.hashcodes)
        return LoadResponse(added=added, rejected=len(req.fens) + len(req.hashcodes) - added)

    @app.post("/api/engines/{engine_id}/eco", response_model=LoadResponse)
    async def add_eco(engine_id: str, req: EcoRequest) -> LoadResponse:
        engine = _require_engine(store, engine_id)
        added = sum(1 for line in req.lines if engine.add_eco_line(line.moves, line.tags))
        return LoadResponse(added=added, rejected=len(req.lines) - added)

    @app.post("/api/engines/{engine_id}/match", response_model=MatchResponse)
    async def match_game(engine_id: str, req: GameRequest) -> MatchResponse:
        engine = _require_engine(store, engine_id)
        game = Game.from_san(req.moves, req.tags, req.result)
        result = engine.match_game(game)
        return MatchResponse(
            matched=result.matched,
            moves_ok=result.moves_ok,
            error_ply=result.error_ply,
            plycount=result.plycount,
            label=result.label,
            material_match=result.material_colour,
            duplicate_of=result.duplicate_of,
            tags=result.tags,
            moves=game.san_moves(),
        )

    @app.delete("/api/engines/{engine_id}")
    async def delete_engine(engine_id: str) -> Dict[str, str]:
        if not store.delete(engine_id):
            raise HTTPException(status_code=404, detail="engine not found")
        return {"status": "deleted"}

    return app


def _require_engine(store: InMemorySessionStore, engine_id: str) -> MatchEngine:
    engine = store.get(engine_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="engine not found")
    return engine


def _non_blank(lines: List[str]) -> int:
    return sum(1 for line in lines if line.strip())


# Default app for non-factory servers
app = create_app()
