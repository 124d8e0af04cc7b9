"""
What the Service hands across layer boundaries.

The API layer never sees a Game, the DB layer never sees a Position: both only get a GameModel, a flat
snapshot of one stored game (FEN strings, UCI moves and the user ids of whoever plays which color).
"""

from dataclasses import dataclass
from typing import Optional

# Type aliases to make GameModel easier to read
PieceColor = str
PlayerId = str  # the verified user id of the host platform, as a string


@dataclass
class GameModel:
    current_fen: str
    history_fen: list[str]
    moves_uci: list[str]
    registered_players: dict[PieceColor, PlayerId]
    status: str
    resigned_by: Optional[PieceColor] = None

    def plays_in(self, player: PlayerId) -> bool:
        return player in self.registered_players.values()
