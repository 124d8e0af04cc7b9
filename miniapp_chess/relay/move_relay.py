"""
Wire format of a move sent to (and received from) the bot / backend integration.

    {"type": "move", "from": "e7", "to": "e8", "promotion": "q", "game_id": "..."}

`promotion` and `game_id` are left out when there is nothing to say. No chess validation happens here:
only moves accepted by the engine get encoded.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from miniapp_chess.chess.moves import Move
from miniapp_chess.chess.pieces import PIECE_TO_FEN
from miniapp_chess.chess.square import is_valid_square
from miniapp_chess.core.exceptions import InvalidRequestError

PROMOTION_LETTERS = {"n", "b", "r", "q"}


class MoveMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: Literal["move"] = "move"
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None
    game_id: Optional[str] = None

    @field_validator("from_square", "to_square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        if not is_valid_square(value):
            raise ValueError(f"{value!r} is not a square on the board")
        return value

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PROMOTION_LETTERS:
            raise ValueError(f"cannot promote into {value!r}")
        return value

    def to_uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def encode_move(move: Move, game_id: Optional[str] = None) -> dict[str, Any]:
    """Package an accepted move for the outbound channel"""
    message = MoveMessage(
        from_square=move.from_square.to_algebraic(),
        to_square=move.to_square.to_algebraic(),
        promotion=PIECE_TO_FEN[move.promote_to] if move.promote_to else None,
        game_id=game_id,
    )
    return message.to_wire()


def encode_move_json(move: Move, game_id: Optional[str] = None) -> str:
    return json.dumps(encode_move(move, game_id))


def decode_move(raw: Union[str, bytes, dict[str, Any]]) -> MoveMessage:
    """Read an inbound move message (a JSON string or an already parsed object)"""
    try:
        if isinstance(raw, (str, bytes)):
            return MoveMessage.model_validate_json(raw)
        return MoveMessage.model_validate(raw)
    except ValidationError as exc:
        raise InvalidRequestError(
            f"Not a move message: {exc.error_count()} error(s)", field="message"
        ) from exc
