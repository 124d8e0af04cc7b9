"""The Game board implements all rules that affect the placement of the pieces (in chess: which piece stands where)"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from miniapp_chess.chess.moves import (
    MOVEMENT_RULES,
    CandidateMovesFn,
    Move,
    is_attacked,
)
from miniapp_chess.chess.pieces import Piece
from miniapp_chess.chess.square import BOARD_DIMENSIONS, Square
from miniapp_chess.core.shared_types import Color, PieceType


@dataclass(frozen=True)
class Board:
    """
    Immutable placement of the pieces.

    Only occupied squares are stored. Every update returns a new Board, so a Board can be shared freely.
    """

    pieces: Mapping[Square, Piece]

    def __post_init__(self) -> None:
        object.__setattr__(self, "pieces", MappingProxyType(dict(self.pieces)))

    def __hash__(self) -> int:
        return hash(frozenset(self.pieces.items()))

    @classmethod
    def empty(cls) -> Board:
        return cls({})

    @classmethod
    def from_fen(cls, fen_str: str) -> Board:
        """Construct a board using the first part of a FEN string, the one that denotes the board position.

        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * black pieces are on the 8th rank, starting with rook on a8, knight on b8, etc.
        * pawns cover 7th rank entirely
        * ranks 6 through 3 have 8 consecutive empty squares
        * rank 2 are the white pawns (capital letters)
        * 1st rank are the white pieces. Again, left-to-right reads a1-h1.
        """
        pieces: dict[Square, Piece] = {}
        for rank_idx, fen_one_rank in enumerate(fen_str.split("/")):
            # FEN string is read from top rank (8th) to bottom rank (1st)
            rank = BOARD_DIMENSIONS[1] - rank_idx
            # ... but the first character is the a-file, so reads in normal direction
            file = 1
            for character in fen_one_rank:
                if character.isalpha():
                    pieces[Square(file, rank)] = Piece.from_fen(character)
                    file += 1
                else:
                    # A number denotes the amount of empty squares after each other
                    file += int(character)
        return cls(pieces)

    def to_fen(self) -> str:
        """Ranks are separated by slashes in FEN string."""
        return "/".join(
            self._rank_to_fen(rank) for rank in range(BOARD_DIMENSIONS[1], 0, -1)
        )

    def _rank_to_fen(self, rank: int) -> str:
        """FEN string of a single rank"""
        fen_characters: list[str] = []
        empty_count = 0
        for file in range(1, BOARD_DIMENSIONS[0] + 1):
            piece = self.piece(Square(file, rank))
            if piece is None:
                empty_count += 1
                continue

            if empty_count > 0:
                fen_characters.append(str(empty_count))
                empty_count = 0
            fen_characters.append(piece.to_fen())

        # if the entire rank is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    # --- QUERIES ---
    def piece(self, square: Square) -> Optional[Piece]:
        return self.pieces.get(square)

    def is_occupied(self, square: Square) -> bool:
        return square in self.pieces

    def is_any_occupied(self, squares: list[Square]) -> bool:
        return any(self.is_occupied(square) for square in squares)

    def locate_pieces(self, piece_type: PieceType) -> list[Square]:
        return [square for square, piece in self.pieces.items() if piece.type == piece_type]

    def locate_color(self, color: Color) -> list[Square]:
        return [square for square, piece in self.pieces.items() if piece.color == color]

    def king_square(self, color: Color) -> Optional[Square]:
        king = Piece(PieceType.KING, color)
        return next(
            (square for square, piece in self.pieces.items() if piece == king), None
        )

    def is_under_attack(self, square: Square, by_color: Color) -> bool:
        return is_attacked(square, by_color, self)

    def is_any_under_attack(self, squares: list[Square], by_color: Color) -> bool:
        return any(self.is_under_attack(square, by_color) for square in squares)

    def is_check(self, color: Color) -> bool:
        """Is the king of the given color attacked? A board without that king is never in check."""
        king_square = self.king_square(color)
        if king_square is None:
            return False
        return self.is_under_attack(king_square, color.opponent)

    def generate_candidate_moves(self, color: Color) -> list[Move]:
        """
        Before knowing the set of legal moves, we use raycasting to find candidate moves, which will later be tested for legality
        (making sure it does not put yourself in check.)

        ---
        NOTE: En passant, castling and promotion are added by the engine.
        """
        candidate_moves: list[Move] = []
        for starting_square in self.locate_color(color):
            movement_rule: CandidateMovesFn = MOVEMENT_RULES[self.pieces[starting_square].type]
            candidate_moves.extend(movement_rule(starting_square, self))
        return candidate_moves

    # --- UPDATES (each returns a new Board) ---
    def place_piece(self, piece: Piece, square: Square) -> Board:
        pieces = dict(self.pieces)
        pieces[square] = piece
        return Board(pieces)

    def remove_piece(self, square: Square) -> Board:
        pieces = dict(self.pieces)
        pieces.pop(square, None)
        return Board(pieces)

    def move_piece(self, move: Move) -> Board:
        """Pick up whatever stands on the from-square and put it on the to-square (capturing whatever stood there)"""
        pieces = dict(self.pieces)
        piece_that_moved = pieces.pop(move.from_square)
        pieces[move.to_square] = piece_that_moved
        return Board(pieces)

    def move_pieces(self, moves: list[Move]) -> Board:
        """convenience method to apply multiple moves (if you quickly want to start a board in a given position reached after some moves)"""
        board = self
        for move in moves:
            board = board.move_piece(move)
        return board

    # --- MATERIAL ---
    def count_material(self) -> dict[Color, int]:
        """Tally the points of material each player has on the board"""
        return {color: self._count_material_player(color) for color in Color}

    def _count_material_player(self, color: Color) -> int:
        return sum(piece.points for piece in self.pieces.values() if piece.color == color)

    def count_kings(self, color: Color) -> int:
        return sum(1 for piece in self.pieces.values() if piece == Piece(PieceType.KING, color))
