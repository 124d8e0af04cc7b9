"""The Service talks to storage through this protocol. SQLGameRepository implements it, tests swap in a dict."""

from typing import Protocol
from uuid import UUID

from miniapp_chess.core.models import GameModel, PlayerId


class GameRepository(Protocol):
    def get_game(self, game_id: UUID) -> GameModel | None:
        """None if no game has this ID."""
        ...

    def list_games(self, player: PlayerId) -> list[tuple[UUID, GameModel]]:
        """Every game the player sits at, most recently changed first."""
        ...

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Returns what got stored and the new ID."""
        ...

    def update_game(self, game_id: UUID, game: GameModel) -> GameModel | None:
        ...

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Returns the removed game, None if there was nothing to remove."""
        ...
