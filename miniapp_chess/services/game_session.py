"""
One game, played from inside one authenticated mini-app context.

The session owns the current Position and its history. Moves made locally go through the engine and,
when accepted, out through the injected `send`. Moves made by the other side come back in through
`handle_message`, the one inbound handler of the session. Nothing here raises for a refused move:
the caller gets a `MoveOutcome` describing what went wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from miniapp_chess.auth.session import Session
from miniapp_chess.chess import engine
from miniapp_chess.chess.engine import GameStatus
from miniapp_chess.chess.moves import Move
from miniapp_chess.chess.position import Position
from miniapp_chess.core.exceptions import GameError, GameStateError, NotYourTurnError
from miniapp_chess.core.shared_types import Color
from miniapp_chess.relay.move_relay import decode_move, encode_move

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], None]
InboundHandler = Callable[[Union[str, bytes, dict[str, Any]]], "MoveOutcome"]


@dataclass(frozen=True)
class ErrorInfo:
    kind: str
    message: str
    square: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def from_error(cls, error: GameError) -> ErrorInfo:
        return cls(kind=error.kind, message=error.message, square=error.square, field=error.field)


@dataclass(frozen=True)
class MoveOutcome:
    """Result of a move attempt. On failure `position` is the unchanged position from before the attempt."""

    position: Position
    status: GameStatus
    move: Optional[Move] = None
    message: Optional[dict[str, Any]] = None
    error: Optional[ErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GameSession:
    def __init__(
        self,
        session: Session,
        send: SendFn,
        position: Optional[Position] = None,
        strict_promotion: bool = False,
        color: Optional[Color] = None,
        subscribe: Optional[Callable[[InboundHandler], None]] = None,
        game_id: Optional[str] = None,
    ) -> None:
        """
        `color` is the side played from this context. Without it, every move is taken as a local move.
        `subscribe`, when given, is called once with `handle_message` so the host can deliver inbound messages.
        """
        self.session = session
        self.send = send
        self.position = position or engine.new_game()
        self.history: list[str] = []
        self.strict_promotion = strict_promotion
        self.color = color
        self.game_id = game_id
        if subscribe is not None:
            subscribe(self.handle_message)

    @property
    def status(self) -> GameStatus:
        return engine.detect_status(self.position, self.history)

    def legal_moves(self) -> list[str]:
        return sorted(move.to_uci() for move in engine.legal_moves(self.position))

    def play(self, from_square: str, to_square: str, promotion: Optional[str] = None) -> MoveOutcome:
        """Make a move for the local player and relay it when it got accepted."""
        try:
            self._assert_can_move(local=True)
            accepted = self._apply(Move.from_uci(f"{from_square}{to_square}{promotion or ''}"))
        except GameError as error:
            return self._refused(error)

        message = encode_move(accepted, game_id=self.game_id)
        self.send(message)
        return MoveOutcome(position=self.position, status=self.status, move=accepted, message=message)

    def handle_message(self, raw: Union[str, bytes, dict[str, Any]]) -> MoveOutcome:
        """Apply a move the other side made. It is not relayed back."""
        try:
            self._assert_can_move(local=False)
            incoming = decode_move(raw)
            accepted = self._apply(Move.from_uci(incoming.to_uci()))
        except GameError as error:
            return self._refused(error)

        return MoveOutcome(position=self.position, status=self.status, move=accepted)

    # -- PRIVATE HELPERS ---
    def _apply(self, move: Move) -> Move:
        accepted = engine.resolve_move(self.position, move, strict=self.strict_promotion)
        next_position = engine.apply_move(self.position, accepted)
        self.history.append(self.position.to_fen())
        self.position = next_position
        return accepted

    def _assert_can_move(self, local: bool) -> None:
        if not self.session.verified:
            raise GameStateError("Session is not verified.", field="session")
        if self.status.is_over:
            raise GameStateError(f"Game is over: {self.status.kind}")
        if self.color is None:
            return
        our_turn = self.position.color_to_move == self.color
        if local and not our_turn:
            raise NotYourTurnError(f"It is {self.position.color_to_move}'s turn.")
        if not local and our_turn:
            raise NotYourTurnError(f"Waiting for a move by {self.color}, not by the opponent.")

    def _refused(self, error: GameError) -> MoveOutcome:
        logger.info("Move refused for user %s: %s", self.session.user_id, error.message)
        return MoveOutcome(
            position=self.position,
            status=self.status,
            error=ErrorInfo.from_error(error),
        )
