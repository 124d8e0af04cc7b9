"""Unit tests for miniapp_chess/db/sql_repository.py"""

from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from miniapp_chess.chess.fen import STARTING_FEN
from miniapp_chess.chess.game import Game
from miniapp_chess.core.models import GameModel
from miniapp_chess.core.shared_types import Status
from miniapp_chess.db.sql_repository import SQLGameRepository

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"


@pytest.fixture
def model() -> GameModel:
    return GameModel(
        current_fen=AFTER_E4,
        history_fen=[STARTING_FEN],
        moves_uci=["e2e4"],
        registered_players={"white": "1001", "black": "2002"},
        status=Status.IN_PROGRESS,
    )


@pytest.fixture
def repo(db_session_repo: Session) -> SQLGameRepository:
    return SQLGameRepository(db_session_repo)


def test_create_and_get_game(repo: SQLGameRepository, model: GameModel) -> None:
    """Conversion from a GameModel to a database record and back."""
    record_in_db, game_id = repo.create_game(model)
    assert record_in_db == model
    assert repo.get_game(game_id) == model


def test_get_unknown_game(repo: SQLGameRepository, model: GameModel) -> None:
    """Should return None if ID does not match anything in database, empty or not."""
    assert repo.get_game(uuid4()) is None
    repo.create_game(model)
    assert repo.get_game(uuid4()) is None


def test_consecutive_game_updates(repo: SQLGameRepository) -> None:
    """Play a real game through the repository: load, move, store, repeat."""
    game = Game.new_game(player="1001", color="white")
    _, game_id = repo.create_game(game.to_model())

    for uci, player in [(None, "2002"), ("e2e4", "1001"), ("e7e5", "2002")]:
        stored = repo.get_game(game_id)
        assert stored is not None
        game = Game.from_model(stored)
        if uci is None:
            game.register_player(player)
        else:
            game.make_move(uci, player)
        repo.update_game(game_id, game.to_model())

    after_all_updates = repo.get_game(game_id)
    assert after_all_updates is not None
    assert after_all_updates.moves_uci == ["e2e4", "e7e5"]
    assert after_all_updates.history_fen == [STARTING_FEN, AFTER_E4]
    assert after_all_updates.registered_players == {"white": "1001", "black": "2002"}


def test_resignation_is_stored(repo: SQLGameRepository, model: GameModel) -> None:
    _, game_id = repo.create_game(model)
    model.status = Status.RESIGNED
    model.resigned_by = "white"

    updated = repo.update_game(game_id, model)
    assert updated is not None
    assert updated.resigned_by == "white"
    assert Game.from_model(updated).winner == "2002"


def test_stored_lists_are_not_shared(repo: SQLGameRepository, model: GameModel) -> None:
    """Changing a returned model must not change what is stored"""
    fetched, game_id = repo.create_game(model)
    fetched.moves_uci.append("e7e5")
    stored = repo.get_game(game_id)
    assert stored is not None
    assert stored.moves_uci == ["e2e4"]


def test_attempt_updating_unknown_game(repo: SQLGameRepository, model: GameModel) -> None:
    assert repo.update_game(uuid4(), model) is None


def test_delete_game(repo: SQLGameRepository, model: GameModel) -> None:
    """Record of the game should no longer exist after deletion"""
    created_game, game_id = repo.create_game(model)
    assert repo.delete_game(game_id) == created_game
    assert repo.get_game(game_id) is None
    assert repo.delete_game(game_id) is None


def test_list_games_of_a_player(repo: SQLGameRepository, model: GameModel) -> None:
    _, first_id = repo.create_game(model)
    waiting = Game.new_game(player="1001", color="black").to_model()
    _, second_id = repo.create_game(waiting)

    assert {game_id for game_id, _ in repo.list_games("1001")} == {first_id, second_id}
    assert repo.list_games("2002") == [(first_id, model)]
    assert repo.list_games("3003") == []


def test_empty_seat_is_not_stored_as_player(repo: SQLGameRepository) -> None:
    waiting = Game.new_game(player="1001", color="white").to_model()
    stored, _ = repo.create_game(waiting)
    assert stored.registered_players == {"white": "1001"}
