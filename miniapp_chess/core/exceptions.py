"""
Error taxonomy shared by all layers.

Every error carries a machine readable `kind` and, where it applies, the offending square or field.
The API layer turns these into response bodies, the GameSession into typed failure values.
"""

from typing import Any, Optional


class GameError(Exception):
    """Base class for everything the chess domain / service layer can refuse."""

    kind = "game_error"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        square: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.square = square
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        info: dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.square is not None:
            info["square"] = self.square
        if self.field is not None:
            info["field"] = self.field
        return info


class InvalidFENError(GameError):
    kind = "invalid_fen"


class InvalidSquareError(GameError):
    kind = "invalid_square"


class IllegalMoveError(GameError):
    kind = "illegal_move"


class PromotionRequiredError(IllegalMoveError):
    """Only raised in strict mode, where a pawn reaching the last rank must name its promotion piece."""

    kind = "promotion_required"


class GameStateError(GameError):
    kind = "invalid_game_state"


class NotYourTurnError(GameError):
    kind = "not_your_turn"


class NotAPlayerError(GameError):
    """The verified user is not seated at the game they ask about."""

    kind = "not_a_player"


class RepositoryError(GameError):
    kind = "not_found"


class InvalidRequestError(GameError):
    kind = "invalid_request"


# --- SESSION VERIFICATION ---
class VerificationError(Exception):
    """
    Base class for failures while establishing who the user is.

    Only transport problems are retryable. A payload that is malformed, carries a wrong signature or has
    expired will fail the same way every time, so it is terminal.
    """

    kind = "verification_failed"
    retryable = False

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        info: dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.field is not None:
            info["field"] = self.field
        return info


class MalformedPayloadError(VerificationError):
    kind = "malformed_payload"


class SignatureMismatchError(VerificationError):
    kind = "signature_mismatch"


class ExpiredSessionError(VerificationError):
    kind = "expired_session"


class TransientVerificationError(VerificationError):
    kind = "verification_unavailable"
    retryable = True


class ConfigurationError(Exception):
    """Settings missing or invalid at startup."""
