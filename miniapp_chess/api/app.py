"""
HTTP surface of the mini-app backend.

Every game route needs the raw init data of the mini-app in the header `Authorization: tma <initData>`.
The user behind the verified init data is the player; requests never name the player themselves.
"""

import logging
from typing import Any, Callable, Generator, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Form, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from miniapp_chess.api.models import (
    CreateGameRequest,
    DeleteGameRequest,
    ErrorResponse,
    GameResponse,
    GetGameRequest,
    JoinGameRequest,
    LegalMovesRequest,
    LegalMovesResponse,
    MoveRequest,
    MoveResponse,
    ResignRequest,
    VerifyResponse,
)
from miniapp_chess.auth.session import Session, SessionCache, SessionVerifier
from miniapp_chess.config import Settings, get_settings
from miniapp_chess.core.exceptions import (
    GameError,
    GameStateError,
    MalformedPayloadError,
    NotAPlayerError,
    NotYourTurnError,
    RepositoryError,
    VerificationError,
)
from miniapp_chess.db.database import create_db_engine, create_session_factory
from miniapp_chess.db.repository import GameRepository
from miniapp_chess.db.sql_repository import SQLGameRepository
from miniapp_chess.services.chess_service import ChessService

logger = logging.getLogger(__name__)

AUTH_SCHEME = "tma"

GAME_ERROR_STATUS: dict[type[GameError], int] = {
    RepositoryError: status.HTTP_404_NOT_FOUND,
    NotYourTurnError: status.HTTP_403_FORBIDDEN,
    NotAPlayerError: status.HTTP_403_FORBIDDEN,
    GameStateError: status.HTTP_409_CONFLICT,
}


def log_relayed_move(message: dict[str, Any]) -> None:
    """Outbound channel used when nothing else is plugged in."""
    logger.info("Relaying move %s", message)


# --- DEPENDENCIES ---
def get_verifier(request: Request) -> SessionVerifier:
    return request.app.state.verifier


def get_repository(request: Request) -> Generator[GameRepository, None, None]:
    factory: sessionmaker = request.app.state.session_factory
    db = factory()
    try:
        yield SQLGameRepository(db)
    finally:
        db.close()


def get_service(request: Request, repository: GameRepository = Depends(get_repository)) -> ChessService:
    settings: Settings = request.app.state.settings
    return ChessService(
        repository,
        send=request.app.state.send,
        strict_promotion=settings.strict_promotion,
    )


def current_session(
    authorization: Optional[str] = Header(None),
    verifier: SessionVerifier = Depends(get_verifier),
) -> Session:
    """Open a session from `Authorization: tma <initData>`"""
    if not authorization:
        raise MalformedPayloadError("Authorization header is missing.", field="authorization")

    scheme, _, raw_payload = authorization.partition(" ")
    if scheme.lower() != AUTH_SCHEME or not raw_payload.strip():
        raise MalformedPayloadError(
            f"Expected 'Authorization: {AUTH_SCHEME} <initData>'.", field="authorization"
        )
    return verifier.open_session(raw_payload.strip())


# --- ERROR HANDLERS ---
def game_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GameError)
    status_code = next(
        (code for error_class, code in GAME_ERROR_STATUS.items() if isinstance(exc, error_class)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(
        ErrorResponse(**exc.to_dict()).model_dump(exclude_none=True), status_code=status_code
    )


def verification_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, VerificationError)
    logger.warning("Rejected init data: %s (%s)", exc.message, exc.kind)
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if exc.retryable else status.HTTP_401_UNAUTHORIZED
    )
    return JSONResponse(
        ErrorResponse(**exc.to_dict()).model_dump(exclude_none=True), status_code=status_code
    )


# --- APP ---
def create_app(
    settings: Optional[Settings] = None,
    send: Optional[Callable[[dict[str, Any]], None]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Mini-app Chess API")
    app.state.settings = settings
    app.state.send = send or log_relayed_move
    app.state.verifier = SessionVerifier(
        settings.bot_token,
        max_age=settings.init_data_max_age,
        cache=SessionCache(settings.session_cache_ttl, max_size=settings.session_cache_size),
    )
    app.state.session_factory = create_session_factory(create_db_engine(settings.database_url))

    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(VerificationError, verification_error_handler)

    # -- Session verification --
    @app.post("/api/checkInitData", response_model=VerifyResponse)
    def check_init_data(
        init_data: str = Form(..., alias="initData"),
        verifier: SessionVerifier = Depends(get_verifier),
    ) -> VerifyResponse:
        user = verifier.verify(init_data)
        return VerifyResponse(user_id=user.id, username=user.username)

    # -- Games --
    @app.post("/api/games", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
    def create_game(
        request: CreateGameRequest,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> GameResponse:
        return service.create_new_game(request, session)

    @app.get("/api/games", response_model=list[GameResponse])
    def list_games(
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> list[GameResponse]:
        return service.list_games(session)

    @app.post("/api/games/join", response_model=GameResponse)
    def join_game(
        request: JoinGameRequest,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> GameResponse:
        return service.join_game(request, session)

    @app.get("/api/games/{game_id}", response_model=GameResponse)
    def get_game(
        game_id: UUID,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> GameResponse:
        return service.get_game_state(GetGameRequest(game_id=game_id), session)

    @app.get("/api/games/{game_id}/legal-moves", response_model=LegalMovesResponse)
    def legal_moves(
        game_id: UUID,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> LegalMovesResponse:
        return service.legal_moves(LegalMovesRequest(game_id=game_id), session)

    @app.post("/api/games/move", response_model=MoveResponse)
    def make_move(
        request: MoveRequest,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> MoveResponse:
        return service.make_move(request, session)

    @app.post("/api/games/resign", response_model=GameResponse)
    def resign(
        request: ResignRequest,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> GameResponse:
        return service.resign(request, session)

    @app.delete("/api/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_game(
        game_id: UUID,
        session: Session = Depends(current_session),
        service: ChessService = Depends(get_service),
    ) -> None:
        service.delete_game(DeleteGameRequest(game_id=game_id), session)

    return app
