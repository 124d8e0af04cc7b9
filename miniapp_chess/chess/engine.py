"""
The rules engine: pure functions of (Position, Move) -> Position.

* `new_game()` gives the standard starting position
* `legal_moves()` lists every move that does not leave the mover's own king attacked
* `apply_move()` validates a move against that list and produces the next position
* `detect_status()` tells whether the game goes on, and if not, why it ended

Nothing in here keeps state between calls, so callers can hold on to any Position they like.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Iterable, Optional

from miniapp_chess.chess.board import Board
from miniapp_chess.chess.castling import CASTLING_RULES, CastlingDirection, revoked_rights
from miniapp_chess.chess.moves import (
    DEFAULT_PROMOTION,
    Move,
    candidate_castling_move,
    en_passant_capture_square,
    en_passant_moves,
    is_pawn_push_to_promotion_square,
    pawn_pushes_w_promotion,
)
from miniapp_chess.chess.pieces import Piece
from miniapp_chess.chess.position import Position
from miniapp_chess.chess.square import Square
from miniapp_chess.core.exceptions import IllegalMoveError, PromotionRequiredError
from miniapp_chess.core.shared_types import Color, PieceType

logger = logging.getLogger(__name__)

# 50 moves by each player without a pawn move or capture
FIFTY_MOVE_RULE_PLIES = 100
REPETITIONS_FOR_DRAW = 3


class StatusKind(StrEnum):
    ONGOING = "ongoing"
    CHECK = "check"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW_OTHER = "draw"


class DrawReason(StrEnum):
    INSUFFICIENT_MATERIAL = "insufficient material"
    FIFTY_MOVE_RULE = "fifty-move rule"
    THREEFOLD_REPETITION = "threefold repetition"


@dataclass(frozen=True)
class GameStatus:
    """Derived from a Position (and optionally its history). Never stored on its own."""

    kind: StatusKind
    winner: Optional[Color] = None
    draw_reason: Optional[DrawReason] = None

    @property
    def is_over(self) -> bool:
        return self.kind in (StatusKind.CHECKMATE, StatusKind.STALEMATE, StatusKind.DRAW_OTHER)

    @classmethod
    def checkmate(cls, winner: Color) -> GameStatus:
        return cls(StatusKind.CHECKMATE, winner=winner)

    @classmethod
    def draw(cls, reason: DrawReason) -> GameStatus:
        return cls(StatusKind.DRAW_OTHER, draw_reason=reason)


ONGOING = GameStatus(StatusKind.ONGOING)
CHECK = GameStatus(StatusKind.CHECK)
STALEMATE = GameStatus(StatusKind.STALEMATE)


# --- ENGINE API ---
def new_game() -> Position:
    return Position.starting_position()


def legal_moves(position: Position) -> frozenset[Move]:
    """
    Set of legal moves for the side to move
    ----

    **Combines the following**

    1. generate candidate moves, using the basic movement rules for all pieces (the board does this calculation)
    2. add candidate castling moves
    3. add candidate en passant moves
    4. remove illegal options --> a move that would put you in check or you are in check and the move does not get you out of it.
    5. Pawn move to promotion square? --> expand the set of moves to include one for every choice of piece type to promote into.
    """
    color = position.color_to_move
    candidate_moves = position.board.generate_candidate_moves(color)
    candidate_moves.extend(_castling_moves(position))
    if position.en_passant_square is not None:
        candidate_moves.extend(
            en_passant_moves(position.en_passant_square, color, position.board)
        )

    moves: set[Move] = set()
    for move in candidate_moves:
        if _leaves_king_in_check(position, move):
            continue
        if is_pawn_push_to_promotion_square(move, position.board):
            moves.update(pawn_pushes_w_promotion(move))
        else:
            moves.add(move)
    return frozenset(moves)


def resolve_move(position: Position, move: Move, strict: bool = False) -> Move:
    """
    Find the legal move that the (possibly flag-less) requested move stands for.

    A pawn reaching the last rank without a promotion piece becomes a Queen, unless strict mode asks for an explicit choice.
    """
    same_squares = [
        candidate
        for candidate in legal_moves(position)
        if candidate.from_square == move.from_square and candidate.to_square == move.to_square
    ]
    if not same_squares:
        raise IllegalMoveError(
            f"Move not allowed: {move.to_uci()}", square=move.from_square.to_algebraic()
        )

    requested = move
    is_promotion = any(candidate.promote_to is not None for candidate in same_squares)
    if is_promotion and move.promote_to is None:
        if strict:
            raise PromotionRequiredError(
                f"Move {move.to_uci()} reaches the last rank: choose a piece to promote into.",
                square=move.to_square.to_algebraic(),
            )
        requested = replace(move, promote_to=DEFAULT_PROMOTION)

    for candidate in same_squares:
        if candidate.matches(requested):
            return candidate

    raise IllegalMoveError(
        f"Move not allowed: {move.to_uci()}", square=move.to_square.to_algebraic()
    )


def apply_move(position: Position, move: Move, strict: bool = False) -> Position:
    """
    Validate the move and produce the next position
    -----

    1. update the board (NOTE: if castling, move the king and the rook. If en passant, remove the pawn that got taken)
    2. revoke castling rights that no longer hold
    3. set the en passant square (only a double pawn step does that)
    4. update the move counters and pass the turn

    The given position is never touched. If the move is illegal, it is simply refused.
    """
    accepted = resolve_move(position, move, strict=strict)
    board = position.board
    color = position.color_to_move
    moving_piece = board.piece(accepted.from_square)
    # for the type checker: move generation only starts from occupied squares
    assert moving_piece is not None

    castling_rights = position.castling_rights - revoked_rights(
        position.castling_rights,
        accepted.from_square,
        accepted.to_square,
        king_moved=moving_piece.type == PieceType.KING,
        mover=color,
    )

    is_pawn_move = moving_piece.type == PieceType.PAWN
    half_move_clock = 0 if (is_pawn_move or accepted.is_capture) else position.half_move_clock + 1
    num_turns = position.num_turns + 1 if color == Color.BLACK else position.num_turns

    next_position = Position(
        board=move_pieces(board, accepted),
        color_to_move=color.opponent,
        castling_rights=castling_rights,
        en_passant_square=_en_passant_target(accepted, is_pawn_move),
        half_move_clock=half_move_clock,
        num_turns=num_turns,
    )
    logger.debug("Applied %s: %s", accepted.to_uci(), next_position.to_fen())
    return next_position


def detect_status(position: Position, history: Iterable[str] = ()) -> GameStatus:
    """
    Is the game over?
    ----

    * Checkmate: no legal moves and the king of the side to move is attacked
    * Stalemate: no legal moves and the king is safe
    * Draw: insufficient mating material, fifty-move rule, or the same position occurred three times.
        `history` holds the FEN strings of earlier positions of the same game (needed for repetitions only).
    """
    color = position.color_to_move
    in_check = position.board.is_check(color)

    if not legal_moves(position):
        return GameStatus.checkmate(winner=color.opponent) if in_check else STALEMATE

    if is_insufficient_material(position.board):
        return GameStatus.draw(DrawReason.INSUFFICIENT_MATERIAL)

    if position.half_move_clock >= FIFTY_MOVE_RULE_PLIES:
        return GameStatus.draw(DrawReason.FIFTY_MOVE_RULE)

    if _is_threefold_repetition(position, history):
        return GameStatus.draw(DrawReason.THREEFOLD_REPETITION)

    return CHECK if in_check else ONGOING


def is_check(position: Position) -> bool:
    return position.board.is_check(position.color_to_move)


def is_insufficient_material(board: Board) -> bool:
    """
    Neither side can possibly mate:
    * king vs king
    * king + single knight or bishop vs king
    * only bishops besides the kings, all standing on squares of the same color
    """
    others = {
        square: piece
        for square, piece in board.pieces.items()
        if piece.type != PieceType.KING
    }
    if any(
        piece.type in (PieceType.PAWN, PieceType.ROOK, PieceType.QUEEN)
        for piece in others.values()
    ):
        return False

    if len(others) <= 1:
        return True

    if all(piece.type == PieceType.BISHOP for piece in others.values()):
        square_colors = {square.is_light() for square in others}
        return len(square_colors) == 1
    return False


# -- BOARD UPDATES ---
def move_pieces(board: Board, move: Move) -> Board:
    """
    Displace whatever the move displaces
    ---

    * castling moves both the king and the rook
    * en passant removes the pawn standing next to the capturing pawn
    * promotion swaps the pawn for the chosen piece
    """
    if move.castling_direction is not None:
        squares = CASTLING_RULES[move.castling_direction]
        board = board.move_piece(Move(squares.king_from, squares.king_to))
        return board.move_piece(Move(squares.rook_from, squares.rook_to))

    if move.is_en_passant:
        board = board.remove_piece(en_passant_capture_square(move))

    board = board.move_piece(move)
    if move.promote_to is not None:
        pawn = board.piece(move.to_square)
        assert pawn is not None
        board = board.place_piece(pawn.promoted_to(move.promote_to), move.to_square)
    return board


# -- LEGAL MOVES HELPERS ---
def _leaves_king_in_check(position: Position, move: Move) -> bool:
    """Simulate the move on a copy of the board and check if the mover's king is attacked afterwards"""
    return move_pieces(position.board, move).is_check(position.color_to_move)


def _castling_moves(position: Position) -> list[Move]:
    """
    Find the castling moves for the player to move
    ---

    **you are allowed to castle if**

    * Castling rights are not yet revoked (king and that rook never moved, rook never got taken).
    * There is no piece in between the king and the rook.
    * The king is not in check and does not cross or land on an attacked square.
    """
    color = position.color_to_move
    board = position.board
    moves: list[Move] = []
    for direction in position.castling_rights_of(color):
        if _can_castle(board, direction, color):
            moves.append(candidate_castling_move(direction))
    return moves


def _can_castle(board: Board, direction: CastlingDirection, color: Color) -> bool:
    squares = CASTLING_RULES[direction]
    # rights read from a FEN are not guaranteed to match the pieces
    if board.piece(squares.king_from) != Piece(PieceType.KING, color):
        return False
    if board.piece(squares.rook_from) != Piece(PieceType.ROOK, color):
        return False

    if board.is_any_occupied(squares.squares_between()):
        return False

    return not board.is_any_under_attack(squares.king_path(), color.opponent)


def _en_passant_target(move: Move, is_pawn_move: bool) -> Optional[Square]:
    """Only a double pawn step creates an en passant square, and only for the very next move."""
    if not is_pawn_move or abs(move.to_square.rank - move.from_square.rank) != 2:
        return None
    return Square(
        file=move.from_square.file,
        rank=(move.from_square.rank + move.to_square.rank) // 2,
    )


def position_key(position: Position) -> str:
    """
    What makes two positions the same for repetitions: placement, side to move, castling rights and en passant.
    An en passant square only counts while some pawn can legally capture there.
    """
    if position.en_passant_square is not None and not _can_capture_en_passant(position):
        position = replace(position, en_passant_square=None)
    return position.repetition_key()


def _can_capture_en_passant(position: Position) -> bool:
    assert position.en_passant_square is not None
    captures = en_passant_moves(position.en_passant_square, position.color_to_move, position.board)
    return any(not _leaves_king_in_check(position, move) for move in captures)


def _is_threefold_repetition(position: Position, history: Iterable[str]) -> bool:
    current = position_key(position)
    count = 1 + sum(1 for fen in history if position_key(Position.from_fen(fen)) == current)
    return count >= REPETITIONS_FOR_DRAW
