"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    """Lifecycle of a stored game (what the Service layer persists)."""

    WAITING_FOR_PLAYERS = "waiting for players"
    IN_PROGRESS = "in progress"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW_REPETITION = "draw by repetition"
    DRAW_FIFTY_MOVE_RULE = "draw by fifty-move rule"
    DRAW_INSUFFICIENT_MATERIAL = "draw by insufficient material"
    RESIGNED = "resigned"


# Color and PieceType are closed: an empty square is modelled as the absence of a Piece, not as a special member.
class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"
