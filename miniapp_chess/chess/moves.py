"""
Geometry/Base movement and capturing/attacking rules

Key idea: Use strategy pattern to define pseudo-legal move sets for each piece type.


Legality (not leaving your own king attacked) is checked later by the engine
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol

from miniapp_chess.chess.castling import CASTLING_RULES, CastlingDirection
from miniapp_chess.chess.pieces import FEN_TO_PIECE, PIECE_TO_FEN, Piece
from miniapp_chess.chess.square import BOARD_DIMENSIONS, Square, is_valid_square
from miniapp_chess.core.exceptions import IllegalMoveError
from miniapp_chess.core.shared_types import Color, PieceType


class Board(Protocol):
    """Just the parts the movement strategies need"""

    def piece(self, square: Square) -> Optional[Piece]: ...


Vector = tuple[int, int]

KNIGHT_DELTAS: list[Vector] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]
KING_DELTAS: list[Vector] = [
    (0, 1),
    (0, -1),
    (1, 0),
    (-1, 0),
    (1, 1),
    (1, -1),
    (-1, 1),
    (-1, -1),
]
DIAGONALS: list[Vector] = [(1, 1), (-1, 1), (1, -1), (-1, -1)]
STRAIGHTS: list[Vector] = [(1, 0), (-1, 0), (0, 1), (0, -1)]


@dataclass(frozen=True)
class Move:
    """
    A move to be made
    ---

    The flags are filled in by move generation. A move parsed from user input only knows its squares (and maybe
    the piece to promote into); the engine resolves it against the set of legal moves.
    """

    from_square: Square
    to_square: Square
    promote_to: Optional[PieceType] = None
    is_capture: bool = False
    is_en_passant: bool = False
    castling_direction: Optional[CastlingDirection] = None

    @property
    def is_castle_king_side(self) -> bool:
        return self.castling_direction is not None and self.castling_direction.is_king_side

    @property
    def is_castle_queen_side(self) -> bool:
        return self.castling_direction is not None and not self.castling_direction.is_king_side

    @classmethod
    def from_uci(cls, uci: str) -> Move:
        """
        Universal Chess Interface:
        ---
        One of the standard chess notations for moves

        examples:
        * "e2e4": move the piece that was on e2 to e4
        * "e7e8q" : (pawn) moves from e7 to e8 and promotes to a queen (the q)
        * "e1g1": the king castles king side

        NOTE: Capture / Castling / En Passant flags will be set later by the engine
        """
        if len(uci) not in (4, 5) or not (
            is_valid_square(uci[:2]) and is_valid_square(uci[2:4])
        ):
            raise IllegalMoveError(f"Cannot interpret {uci!r} as a UCI move.")

        from_sq = Square.from_algebraic(uci[:2])
        to_sq = Square.from_algebraic(uci[2:4])
        promote_to = None
        if len(uci) == 5:
            promote_to = FEN_TO_PIECE.get(uci[4])
            if promote_to not in PROMOTION_OPTIONS:
                raise IllegalMoveError(
                    f"Cannot promote into {uci[4]!r}.", square=to_sq.to_algebraic()
                )
        return cls(from_sq, to_sq, promote_to)

    def to_uci(self) -> str:
        """Convert into UCI notation"""
        piece_char = PIECE_TO_FEN[self.promote_to] if self.promote_to else ""
        return f"{self.from_square.to_algebraic()}{self.to_square.to_algebraic()}{piece_char}"

    def matches(self, other: Move) -> bool:
        """Same squares and same promotion piece, whatever the flags say."""
        return (
            self.from_square == other.from_square
            and self.to_square == other.to_square
            and self.promote_to == other.promote_to
        )


# --- MOVEMENT RULES ---
def raycasting_move(
    square: Square, board: Board, directions: list[Vector]
) -> list[Move]:
    """
    Raycasting algorithm
    -----

    The main trick we use to check the 'line of sight of a piece'.
    We define move directions and move along them until we hit another piece or
    the edge of the board.
    """
    player_color = board.piece(square).color

    moves: list[Move] = []
    for df, dr in directions:
        target_square = square
        while True:
            target_square = target_square.offset(df, dr)
            if not target_square.is_within_bounds():
                break

            piece_found = board.piece(target_square)
            if piece_found is not None:
                # only the first occupied square counts, and only if it is the opponent's: then it can be captured.
                if piece_found.color != player_color:
                    moves.append(Move(square, target_square, is_capture=True))
                break

            moves.append(Move(square, target_square))
    return moves


def single_step_move(square: Square, board: Board, deltas: list[Vector]) -> list[Move]:
    """Raycasting is for sliding pieces. This is the equivalent for kings and knights that just can move a single step along a direction"""
    player_color = board.piece(square).color
    moves: list[Move] = []
    for df, dr in deltas:
        target_square = square.offset(df, dr)
        if not target_square.is_within_bounds():
            continue

        piece_found = board.piece(target_square)
        if piece_found is None:
            moves.append(Move(square, target_square))
        elif piece_found.color != player_color:
            moves.append(Move(square, target_square, is_capture=True))
    return moves


def pawn_direction(color: Color) -> int:
    """White moves UP the board, black moves DOWN"""
    return 1 if color == Color.WHITE else -1


def pawn_starting_rank(color: Color) -> int:
    return 2 if color == Color.WHITE else BOARD_DIMENSIONS[1] - 1


def candidate_pawn_moves(square: Square, board: Board) -> list[Move]:
    """
    A pawn:
    - moves by a single square forward, onto an empty square.
    - It can move by two in their first move (so when on their starting rank), if both squares are empty
    - takes diagonally

    NOTE: En passant and promotion are taken care of separately
    """
    color = board.piece(square).color
    forward = pawn_direction(color)
    moves: list[Move] = []

    one_step = square.offset(0, forward)
    if one_step.is_within_bounds() and board.piece(one_step) is None:
        moves.append(Move(square, one_step))

        two_steps = square.offset(0, 2 * forward)
        if square.rank == pawn_starting_rank(color) and board.piece(two_steps) is None:
            moves.append(Move(square, two_steps))

    for df in (-1, 1):
        target_square = square.offset(df, forward)
        if not target_square.is_within_bounds():
            continue
        piece_found = board.piece(target_square)
        if piece_found is not None and piece_found.color != color:
            moves.append(Move(square, target_square, is_capture=True))
    return moves


def candidate_knight_moves(square: Square, board: Board) -> list[Move]:
    """Knights always move such that |delta_rank| + |delta_file| = 3"""
    return single_step_move(square, board, KNIGHT_DELTAS)


def candidate_bishop_moves(square: Square, board: Board) -> list[Move]:
    """Bishops move diagonally: |delta_rank| = |delta_file|"""
    return raycasting_move(square, board, DIAGONALS)


def candidate_rook_moves(square: Square, board: Board) -> list[Move]:
    """Rooks move either horizontally or vertically"""
    return raycasting_move(square, board, STRAIGHTS)


def candidate_queen_moves(square: Square, board: Board) -> list[Move]:
    """
    The Queen combines the rook moves (horizontal + vertical movements) and bishop moves (diagonal movement)
    """
    return raycasting_move(square, board, DIAGONALS + STRAIGHTS)


def candidate_king_moves(square: Square, board: Board) -> list[Move]:
    """
    The king can move by a single square at the time.

    Castling is modelled as a special king move (handled separately).
    """
    return single_step_move(square, board, KING_DELTAS)


# -- STRATEGY PATTERN: MOVEMENT RULES ---
CandidateMovesFn = Callable[[Square, Board], list[Move]]
MOVEMENT_RULES: dict[PieceType, CandidateMovesFn] = {
    PieceType.PAWN: candidate_pawn_moves,
    PieceType.KNIGHT: candidate_knight_moves,
    PieceType.BISHOP: candidate_bishop_moves,
    PieceType.ROOK: candidate_rook_moves,
    PieceType.QUEEN: candidate_queen_moves,
    PieceType.KING: candidate_king_moves,
}


# --- CAPTURING RULES / ATTACKING RULES ---
def raycasting_attack(
    square: Square,
    by_color: Color,
    by_piece_types: tuple[PieceType, ...],
    board: Board,
    directions: list[Vector],
) -> bool:
    """
    Raycasting algorithm for attacks.
    ---

    Where `raycasting_move()` determines
    _"What is the line-of-sight of the piece standing on the specified square?"_

    This function determines:
    _"Is the specified square in the line-of-sight of a piece of the specified color and that
    is allowed to move along the given direction?"_

    ---
    Returns TRUE if the first piece encountered along a direction is one of the attackers.
    """
    for df, dr in directions:
        target_square = square
        while True:
            target_square = target_square.offset(df, dr)
            if not target_square.is_within_bounds():
                break

            piece_found = board.piece(target_square)
            if piece_found is not None:
                if piece_found.color == by_color and piece_found.type in by_piece_types:
                    return True
                break
    return False


def single_step_attack(
    square: Square,
    by_color: Color,
    by_piece_type: PieceType,
    board: Board,
    deltas: list[Vector],
) -> bool:
    """
    The equivalent of `raycasting_attack()` for pawns, kings, and knights that just can move a single step along a direction.
    """
    attacker = Piece(by_piece_type, by_color)
    for df, dr in deltas:
        target_square = square.offset(df, dr)
        if target_square.is_within_bounds() and board.piece(target_square) == attacker:
            return True
    return False


def is_attacked_by_pawn(square: Square, by_color: Color, board: Board) -> bool:
    """
    Pawns take diagonally
    ----

    NOTE: Pawn moves are not symmetric, so to check IF a white pawn could take on your square -->
    Must look one rank DOWN the board. Hence, vectors are exactly opposite to the ones used in `candidate_pawn_moves()`
    """
    backward = -pawn_direction(by_color)
    return single_step_attack(
        square, by_color, PieceType.PAWN, board, [(1, backward), (-1, backward)]
    )


def is_attacked_by_knight(square: Square, by_color: Color, board: Board) -> bool:
    return single_step_attack(square, by_color, PieceType.KNIGHT, board, KNIGHT_DELTAS)


def is_attacked_by_king(square: Square, by_color: Color, board: Board) -> bool:
    return single_step_attack(square, by_color, PieceType.KING, board, KING_DELTAS)


def is_attacked_on_diagonal(square: Square, by_color: Color, board: Board) -> bool:
    """Bishops and the queen share the diagonals"""
    return raycasting_attack(
        square, by_color, (PieceType.BISHOP, PieceType.QUEEN), board, DIAGONALS
    )


def is_attacked_on_straight(square: Square, by_color: Color, board: Board) -> bool:
    """Rooks and the queen share the ranks and files"""
    return raycasting_attack(
        square, by_color, (PieceType.ROOK, PieceType.QUEEN), board, STRAIGHTS
    )


# --- STRATEGY PATTERN: ATTACKING RULES ---
IsAttackedFn = Callable[[Square, Color, Board], bool]
ATTACK_RULES: tuple[IsAttackedFn, ...] = (
    is_attacked_by_pawn,
    is_attacked_by_knight,
    is_attacked_by_king,
    is_attacked_on_diagonal,
    is_attacked_on_straight,
)


def is_attacked(square: Square, by_color: Color, board: Board) -> bool:
    return any(rule(square, by_color, board) for rule in ATTACK_RULES)


# -- CASTLING MOVES ---
def candidate_castling_move(direction: CastlingDirection) -> Move:
    rule = CASTLING_RULES[direction]
    return Move(rule.king_from, rule.king_to, castling_direction=direction)


# -- EN PASSANT MOVES ---
def en_passant_moves(
    en_passant_square: Square, color: Color, board: Board
) -> list[Move]:
    """Given a target en passant square, check the adjacent files (in the rank one up/down from the en passant square) for pawns of the correct color."""

    # NOTE: En passant square is the square the opponent's pawn skipped over, so our pawns stand one rank further away
    behind = -pawn_direction(color)
    own_pawn = Piece(PieceType.PAWN, color)

    moves: list[Move] = []
    for df in (-1, 1):
        maybe_pawn_square = en_passant_square.offset(df, behind)
        if not maybe_pawn_square.is_within_bounds():
            continue
        if board.piece(maybe_pawn_square) == own_pawn:
            moves.append(
                Move(
                    from_square=maybe_pawn_square,
                    to_square=en_passant_square,
                    is_capture=True,
                    is_en_passant=True,
                )
            )
    return moves


def en_passant_capture_square(move: Move) -> Square:
    """The pawn taken en passant stands on the file it skipped along, on the rank the capturing pawn came from."""
    return Square(file=move.to_square.file, rank=move.from_square.rank)


# -- PAWN PROMOTION MOVES --
PROMOTION_OPTIONS: list[PieceType] = [
    PieceType.KNIGHT,
    PieceType.BISHOP,
    PieceType.ROOK,
    PieceType.QUEEN,
]
DEFAULT_PROMOTION = PieceType.QUEEN


def is_pawn_push_to_promotion_square(move: Move, board: Board) -> bool:
    """check if the move is a pawn move and if it reaches either the first or the final rank"""
    moving_piece = board.piece(move.from_square)
    is_pawn_move = moving_piece is not None and moving_piece.type == PieceType.PAWN
    return is_pawn_move and move.to_square.rank in (1, BOARD_DIMENSIONS[1])


def pawn_pushes_w_promotion(pawn_push: Move) -> list[Move]:
    """Return multiple copies of the pawn move with the piece type to promote into filled in."""
    return [replace(pawn_push, promote_to=piece_type) for piece_type in PROMOTION_OPTIONS]
