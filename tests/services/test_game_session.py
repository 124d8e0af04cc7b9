"""Unit tests for miniapp_chess/services/game_session.py"""

from typing import Any, Callable

import pytest
from conftest import make_session

from miniapp_chess.auth.session import Session
from miniapp_chess.chess import engine
from miniapp_chess.chess.engine import StatusKind
from miniapp_chess.chess.fen import STARTING_FEN
from miniapp_chess.chess.position import Position
from miniapp_chess.core.shared_types import Color
from miniapp_chess.services.game_session import GameSession, InboundHandler

PROMOTION_FEN = "8/4P3/8/8/8/8/8/k6K w - - 0 1"


@pytest.fixture
def outbox() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def new_session(white_session: Session, outbox: list[dict[str, Any]]) -> Callable[..., GameSession]:
    def _new_session(**kwargs: Any) -> GameSession:
        kwargs.setdefault("session", white_session)
        return GameSession(send=outbox.append, **kwargs)

    return _new_session


def test_starts_from_the_initial_position(new_session: Callable[..., GameSession]) -> None:
    game = new_session()
    assert game.position.to_fen() == STARTING_FEN
    assert game.status == engine.ONGOING
    assert len(game.legal_moves()) == 20


def test_play_relays_accepted_move(
    new_session: Callable[..., GameSession], outbox: list[dict[str, Any]]
) -> None:
    game = new_session(game_id="g-1")
    outcome = game.play("e2", "e4")

    assert outcome.ok
    assert outcome.move is not None and outcome.move.to_uci() == "e2e4"
    assert outcome.message == {"type": "move", "from": "e2", "to": "e4", "game_id": "g-1"}
    assert outbox == [outcome.message]
    assert game.position == outcome.position
    assert game.history == [STARTING_FEN]


def test_illegal_move_comes_back_as_value(
    new_session: Callable[..., GameSession], outbox: list[dict[str, Any]]
) -> None:
    game = new_session()
    before = game.position
    outcome = game.play("e2", "e5")

    assert not outcome.ok
    assert outcome.error is not None
    assert outcome.error.kind == "illegal_move"
    assert outcome.error.square == "e2"
    assert outcome.position is before
    assert game.position is before
    assert outbox == []


def test_unreadable_square(new_session: Callable[..., GameSession]) -> None:
    outcome = new_session().play("e2", "x9")
    assert outcome.error is not None
    assert outcome.error.kind == "illegal_move"


def test_promotion_defaults_to_queen(
    new_session: Callable[..., GameSession], outbox: list[dict[str, Any]]
) -> None:
    game = new_session(position=Position.from_fen(PROMOTION_FEN))
    outcome = game.play("e7", "e8")
    assert outcome.ok
    assert outbox[0]["promotion"] == "q"


def test_strict_promotion(new_session: Callable[..., GameSession]) -> None:
    game = new_session(position=Position.from_fen(PROMOTION_FEN), strict_promotion=True)
    outcome = game.play("e7", "e8")
    assert outcome.error is not None
    assert outcome.error.kind == "promotion_required"
    assert outcome.error.square == "e8"

    assert game.play("e7", "e8", "r").ok


def test_unverified_session_cannot_move(new_session: Callable[..., GameSession]) -> None:
    game = new_session(session=make_session(5, verified=False))
    outcome = game.play("e2", "e4")
    assert outcome.error is not None
    assert outcome.error.kind == "invalid_game_state"
    assert outcome.error.field == "session"


def test_no_moves_after_checkmate(
    new_session: Callable[..., GameSession], outbox: list[dict[str, Any]]
) -> None:
    game = new_session()
    for from_square, to_square in [("f2", "f3"), ("e7", "e5"), ("g2", "g4"), ("d8", "h4")]:
        last = game.play(from_square, to_square)

    assert last.status.kind == StatusKind.CHECKMATE
    assert last.status.winner == Color.BLACK

    outcome = game.play("e2", "e4")
    assert outcome.error is not None
    assert outcome.error.kind == "invalid_game_state"
    assert len(outbox) == 4


# --- INBOUND MESSAGES ---
def test_handle_message_applies_opponent_move(
    new_session: Callable[..., GameSession], outbox: list[dict[str, Any]]
) -> None:
    game = new_session(color=Color.WHITE)
    assert game.play("e2", "e4").ok

    outcome = game.handle_message('{"type": "move", "from": "e7", "to": "e5"}')
    assert outcome.ok
    assert game.position.color_to_move == Color.WHITE
    # inbound moves are not echoed back
    assert len(outbox) == 1


def test_turn_order_with_a_color(new_session: Callable[..., GameSession]) -> None:
    game = new_session(color=Color.BLACK)

    outcome = game.play("e7", "e5")
    assert outcome.error is not None
    assert outcome.error.kind == "not_your_turn"

    assert game.handle_message({"type": "move", "from": "e2", "to": "e4"}).ok

    # black to move now: the opponent cannot move twice in a row
    outcome = game.handle_message({"type": "move", "from": "d2", "to": "d4"})
    assert outcome.error is not None
    assert outcome.error.kind == "not_your_turn"

    assert game.play("e7", "e5").ok


def test_garbage_message(new_session: Callable[..., GameSession]) -> None:
    outcome = new_session().handle_message("not a move")
    assert outcome.error is not None
    assert outcome.error.kind == "invalid_request"
    assert outcome.error.field == "message"


def test_handler_registered_once_at_construction(new_session: Callable[..., GameSession]) -> None:
    registered: list[InboundHandler] = []
    game = new_session(subscribe=registered.append)

    assert registered == [game.handle_message]
    assert registered[0]({"type": "move", "from": "e2", "to": "e4"}).ok
