"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

import logging
from typing import Any, Callable, Optional
from uuid import UUID

from miniapp_chess.api.models import (
    CreateGameRequest,
    DeleteGameRequest,
    GameResponse,
    GetGameRequest,
    JoinGameRequest,
    LegalMovesRequest,
    LegalMovesResponse,
    MoveRequest,
    MoveResponse,
    ResignRequest,
)
from miniapp_chess.auth.session import Session
from miniapp_chess.chess.game import Game, build_uci
from miniapp_chess.chess.pieces import PIECE_TO_FEN
from miniapp_chess.core.exceptions import GameStateError, NotAPlayerError, RepositoryError
from miniapp_chess.core.models import GameModel
from miniapp_chess.db.repository import GameRepository
from miniapp_chess.relay.move_relay import encode_move

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], None]


class ChessService:
    """Orchestration of layers for chess game."""

    def __init__(
        self,
        repository: GameRepository,
        send: Optional[SendFn] = None,
        strict_promotion: bool = False,
    ) -> None:
        self.repo = repository
        self.send = send
        self.strict_promotion = strict_promotion

    # -- API routes logic ---
    def create_new_game(self, request: CreateGameRequest, session: Session) -> GameResponse:
        """First player requested to create a new game."""
        self._assert_verified(session)

        new_game = Game.new_game(
            player=session.player_id,
            color=request.color.value,
            starting_fen=request.starting_fen,
            strict_promotion=self.strict_promotion,
        )
        stored_game, game_id = self.repo.create_game(new_game.to_model())
        logger.info("Game %s created by user %s", game_id, session.user_id)
        return self._create_game_response(game_id, stored_game)

    def join_game(self, request: JoinGameRequest, session: Session) -> GameResponse:
        """Second player requested to join a game."""
        self._assert_verified(session)

        game = self._load_game(request.game_id)
        game.register_player(session.player_id)
        with_player_registered = game.to_model()
        self.repo.update_game(request.game_id, with_player_registered)
        return self._create_game_response(request.game_id, with_player_registered)

    def list_games(self, session: Session) -> list[GameResponse]:
        """The games of a user coming back to the mini-app."""
        self._assert_verified(session)

        return [
            self._create_game_response(game_id, game_model)
            for game_id, game_model in self.repo.list_games(session.player_id)
        ]

    def get_game_state(self, request: GetGameRequest, session: Session) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used in "polling" loop by frontend to check when it is the player's turn for instance.
        Only the players of the game get to see it.
        """
        self._assert_verified(session)

        game_model = self._fetch_game(request.game_id)
        self._assert_player(game_model, session)
        return self._create_game_response(request.game_id, game_model)

    def legal_moves(self, request: LegalMovesRequest, session: Session) -> LegalMovesResponse:
        """retrieve set of legal moves."""
        self._assert_verified(session)

        game = self._load_game(request.game_id)
        legal_moves = game.legal_moves(session.player_id)
        return LegalMovesResponse(
            game_id=request.game_id,
            player_id=session.player_id,
            color=game.position.color_to_move,
            legal_moves=legal_moves,
        )

    def make_move(self, request: MoveRequest, session: Session) -> MoveResponse:
        """Make a move attempt. An accepted move is relayed to the integration channel."""
        self._assert_verified(session)

        move_uci = build_uci(
            from_square_alg=request.from_square,
            to_square_alg=request.to_square,
            promotion=PIECE_TO_FEN[request.promote_to] if request.promote_to else None,
        )
        game = self._load_game(request.game_id)
        accepted = game.make_move(move_uci, session.player_id)

        after_move = game.to_model()
        self.repo.update_game(request.game_id, after_move)

        message = encode_move(accepted, game_id=str(request.game_id))
        if self.send is not None:
            self.send(message)

        response = self._create_game_response(request.game_id, after_move)
        return MoveResponse(**response.model_dump(), relayed=message)

    def resign(self, request: ResignRequest, session: Session) -> GameResponse:
        self._assert_verified(session)

        game = self._load_game(request.game_id)
        game.resign(session.player_id)
        after_resign = game.to_model()
        self.repo.update_game(request.game_id, after_resign)
        return self._create_game_response(request.game_id, after_resign)

    def delete_game(self, request: DeleteGameRequest, session: Session) -> None:
        """Handle a request to delete a Game record. Only players of the game may do so."""
        self._assert_verified(session)

        game_model = self._fetch_game(request.game_id)
        self._assert_player(game_model, session)
        self.repo.delete_game(request.game_id)

    # -- Internal helpers --
    def _create_game_response(self, game_id: UUID, model: GameModel) -> GameResponse:
        """Convert info in GameModel to a GameResponse (for game with given ID.)"""
        game = Game.from_model(model)

        # Before the first turn gets played, the starting FEN equals the current FEN. Otherwise get it as first recorded FEN in history.
        starting_fen = (
            model.history_fen[0] if len(model.history_fen) > 0 else model.current_fen
        )
        return GameResponse(
            game_id=game_id,
            players=model.registered_players,
            fen_state=model.current_fen,
            starting_state=starting_fen,
            move_history=model.moves_uci,
            status=model.status,
            in_check=game.position.board.is_check(game.position.color_to_move),
            winner=game.winner,
            material={
                color.value: points
                for color, points in game.position.board.count_material().items()
            },
        )

    def _load_game(self, game_id: UUID) -> Game:
        return Game.from_model(self._fetch_game(game_id), strict_promotion=self.strict_promotion)

    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise RepositoryError(f"Game with {game_id=} not found.", field="game_id")
        return game_model

    @staticmethod
    def _assert_player(game_model: GameModel, session: Session) -> None:
        if not game_model.plays_in(session.player_id):
            raise NotAPlayerError(f"User {session.user_id} does not play in this game.", field="game_id")

    @staticmethod
    def _assert_verified(session: Session) -> None:
        if not session.verified:
            raise GameStateError("Session is not verified.", field="session")
