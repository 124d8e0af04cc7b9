"""
The Game class will be the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating all the business logic required to play a turn of the board game -->
who plays which color, whose turn it is, which positions came before. The chess rules themselves are in `engine`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from miniapp_chess.chess import engine
from miniapp_chess.chess.engine import DrawReason, GameStatus, StatusKind
from miniapp_chess.chess.moves import Move
from miniapp_chess.chess.position import Position
from miniapp_chess.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
)
from miniapp_chess.core.models import GameModel
from miniapp_chess.core.shared_types import Color, Status

logger = logging.getLogger(__name__)

DRAW_STATUS: dict[DrawReason, Status] = {
    DrawReason.THREEFOLD_REPETITION: Status.DRAW_REPETITION,
    DrawReason.FIFTY_MOVE_RULE: Status.DRAW_FIFTY_MOVE_RULE,
    DrawReason.INSUFFICIENT_MATERIAL: Status.DRAW_INSUFFICIENT_MATERIAL,
}


@dataclass
class Game:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    position: Position
    moves: list[Move]
    history: list[str]  # list of FEN strings, one for every position before a move was made
    players: dict[Color, str]
    status: Status
    resigned: Optional[Color] = None
    strict_promotion: bool = False

    @classmethod
    def from_model(cls, model: GameModel, strict_promotion: bool = False) -> Game:
        """Define how to construct a Game from the information the Service layer actually has"""

        # Validation
        try:
            status = Status(model.status)
        except ValueError:
            raise GameStateError(
                f"Invalid status code: {model.status!r}. \nPick one from {', '.join(status.value for status in Status)}",
                field="status",
            ) from None

        position = Position.from_fen(model.current_fen)
        players = {
            color: model.registered_players[color.value]
            for color in Color
            if color.value in model.registered_players
        }

        resigned = Color(model.resigned_by) if model.resigned_by else None
        return cls(
            position=position,
            moves=[Move.from_uci(uci) for uci in model.moves_uci],
            history=list(model.history_fen),
            players=players,
            status=status,
            resigned=resigned,
            strict_promotion=strict_promotion,
        )

    def to_model(self) -> GameModel:
        """Encode back into a format the Service layer uses"""

        return GameModel(
            current_fen=self.position.to_fen(),
            history_fen=list(self.history),
            moves_uci=[move.to_uci() for move in self.moves],
            registered_players={color.value: player for color, player in self.players.items()},
            status=self.status.value,
            resigned_by=self.resigned.value if self.resigned else None,
        )

    @classmethod
    def new_game(
        cls,
        player: str,
        color: str,
        starting_fen: Optional[str] = None,
        strict_promotion: bool = False,
    ) -> Game:
        """To start a new game with the player using the pieces with the indicated color."""

        try:
            player_color = Color(color.lower())
        except ValueError:
            raise GameStateError(
                f"Cannot create new game. Color {color} not in {', '.join(c.value for c in Color)}.",
                field="color",
            ) from None

        position = Position.from_fen(starting_fen) if starting_fen else engine.new_game()
        return cls(
            position=position,
            moves=[],
            history=[],
            players={player_color: player},
            status=Status.WAITING_FOR_PLAYERS,
            strict_promotion=strict_promotion,
        )

    @property
    def winner(self) -> Optional[str]:
        """
        Given we know it is checkmate, the player who is requesting to move just got mated and the opponent must be the winner.
        After a resignation, the opponent of whoever resigned.
        """
        if self.status == Status.CHECKMATE:
            return self.players.get(self.position.color_to_move.opponent)
        if self.status == Status.RESIGNED and self.resigned is not None:
            return self.players.get(self.resigned.opponent)
        return None

    @property
    def is_finished(self) -> bool:
        return self.status not in (Status.WAITING_FOR_PLAYERS, Status.IN_PROGRESS)

    def game_status(self) -> GameStatus:
        """The rules engine's view on the current position (includes check, which the lifecycle status does not track)"""
        return engine.detect_status(self.position, self.history)

    def register_player(self, player: str) -> None:
        """Registering the 2nd player to an open game"""
        if self.status != Status.WAITING_FOR_PLAYERS:
            raise GameStateError(
                f"Cannot join this game. Game is not accepting new players. status: {self.status}"
            )
        if player in self.players.values():
            raise GameStateError(f"Player {player} already plays in this game.")

        opponent_color = next(iter(self.players))
        self.players[opponent_color.opponent] = player
        self._change_status(Status.IN_PROGRESS)

    def legal_moves(self, player: str) -> list[str]:
        """
        Service will request the set of legal moves.
        ----

        These can be used to display to the user.

        1. Check if it is your turn
        2. Yes? Generate legal moves and return a (sorted) list of moves in UCI notation.
        """
        self._assert_in_progress()
        self._assert_your_turn(player)
        return sorted(move.to_uci() for move in engine.legal_moves(self.position))

    def make_move(self, move_uci: str, player: str) -> Move:
        """
        Attempt to make a move
        -----

        1. make sure the game is running and it is your turn
        2. let the engine validate and apply the move
        3. update the FEN history / the list of moves
        4. update game status (if needed)

        Returns the move as it was accepted (flags and promotion piece filled in).
        """
        self._assert_in_progress()
        self._assert_your_turn(player)

        requested = Move.from_uci(move_uci)
        accepted = engine.resolve_move(self.position, requested, strict=self.strict_promotion)
        next_position = engine.apply_move(self.position, accepted)

        self.history.append(self.position.to_fen())
        self.position = next_position
        self.moves.append(accepted)
        self._update_game_status()
        logger.info("Player %s played %s (status: %s)", player, accepted.to_uci(), self.status)
        return accepted

    def resign(self, player: str) -> None:
        """Either player may give up at any time while the game is running"""
        self._assert_in_progress()
        color = self._get_player_color(player)
        self.resigned = color
        self._change_status(Status.RESIGNED)

    # -- PRIVATE HELPERS ---
    def _get_turn_player(self) -> Optional[str]:
        return self.players.get(self.position.color_to_move)

    def _get_player_color(self, player: str) -> Color:
        color = next((color for color, name in self.players.items() if name == player), None)
        if color is None:
            raise NotYourTurnError(f"Player {player} does not play in this game.")
        return color

    def _assert_in_progress(self) -> None:
        if self.status != Status.IN_PROGRESS:
            raise GameStateError(f"Game is not in progress. status: {self.status}")

    def _assert_your_turn(self, player: str) -> None:
        """You must wait for your turn before calculating legal moves / making a move."""
        player_to_move = self._get_turn_player()
        if player != player_to_move:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for player {player_to_move} to make a move first."
            )

    def _update_game_status(self) -> None:
        """Performs checks to see if game has ended and changes status accordingly."""
        status = self.game_status()
        if status.kind == StatusKind.CHECKMATE:
            self._change_status(Status.CHECKMATE)
        elif status.kind == StatusKind.STALEMATE:
            self._change_status(Status.STALEMATE)
        elif status.kind == StatusKind.DRAW_OTHER:
            # for the type checker: a draw always carries its reason
            assert status.draw_reason is not None
            self._change_status(DRAW_STATUS[status.draw_reason])

    def _change_status(self, new_status: Status) -> None:
        self.status = new_status


def build_uci(from_square_alg: str, to_square_alg: str, promotion: Optional[str] = None) -> str:
    """Glue squares (and the piece letter to promote into) together into UCI notation"""
    uci = f"{from_square_alg}{to_square_alg}{promotion or ''}"
    if len(uci) not in (4, 5):
        raise IllegalMoveError(f"Cannot build a move from {from_square_alg!r} to {to_square_alg!r}.")
    return uci
