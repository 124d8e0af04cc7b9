"""Requests and Response models"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from miniapp_chess.chess.square import is_valid_square
from miniapp_chess.core.exceptions import InvalidRequestError
from miniapp_chess.core.shared_types import Color, PieceType

PieceColor = str
PlayerId = str


# --- REQUEST MODELS ---
# NOTE: who is asking is never part of a request. The player is the user behind the verified init data.
class CreateGameRequest(BaseModel):
    color: Color
    starting_fen: Optional[str] = None

    @field_validator("starting_fen")
    @classmethod
    def validate_starting_fen(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value

        parts = value.strip().split(" ")
        if len(parts) != 6:
            raise InvalidRequestError(
                "FEN string must contain 6 space-separated parts.", field="starting_fen"
            )
        return value.strip()


class JoinGameRequest(BaseModel):
    game_id: UUID


class LegalMovesRequest(BaseModel):
    game_id: UUID


class MoveRequest(BaseModel):
    game_id: UUID
    from_square: str
    to_square: str
    promote_to: Optional[PieceType] = None

    @field_validator("from_square", "to_square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        if len(value) != 2 or not is_valid_square(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name.", square=value
            )
        return value


class ResignRequest(BaseModel):
    game_id: UUID


class GetGameRequest(BaseModel):
    game_id: UUID


class DeleteGameRequest(BaseModel):
    game_id: UUID


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    game_id: UUID
    players: dict[PieceColor, PlayerId]
    fen_state: str
    starting_state: str
    move_history: list[str]
    status: str
    in_check: bool = False
    winner: Optional[PlayerId] = None
    material: dict[PieceColor, int] = {}


class MoveResponse(GameResponse):
    relayed: dict[str, Any]


class LegalMovesResponse(BaseModel):
    game_id: UUID
    player_id: PlayerId
    color: Color
    legal_moves: list[str]


class VerifyResponse(BaseModel):
    ok: bool = True
    user_id: int
    username: Optional[str] = None


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    detail: str
    square: Optional[str] = None
    field: Optional[str] = None
