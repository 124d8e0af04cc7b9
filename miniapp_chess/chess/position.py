"""
Representation of a single position: everything needed to continue a game from here.
The part that can be encoded in a FEN string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from miniapp_chess.chess.board import Board
from miniapp_chess.chess.castling import (
    CastlingDirection,
    castling_from_fen,
    castling_options,
    castling_to_fen,
)
from miniapp_chess.chess.fen import STARTING_FEN, is_valid_fen
from miniapp_chess.chess.pieces import Piece
from miniapp_chess.chess.square import Square
from miniapp_chess.core.exceptions import InvalidFENError
from miniapp_chess.core.shared_types import Color, PieceType


@dataclass(frozen=True)
class Position:
    """
    Data that can be constructed from a FEN string.
    ----

    FEN, or Forsyth-Edwards Notation, is a standard notation for describing a particular board position of a chess game.
    The purpose of FEN is to provide all the necessary information to restart a game from a particular position.

    <board position string><active color><castling rights><en passant square><# half move clock><number turns played>

    * The string to describe the board position is described in the Board class
    * The active color is either "w" or "b"
    * Castling rights are denoted as "k" for king-side or "q" for queen-side. Capital letters for the white pieces, small letters for the black pieces.
        In the starting position: KQkq (all rights available), and once every right is revoked a "-" is written instead.
    * The en passant square is the square a pawn just skipped over with its double step. If not available a "-" is used.
    * The half move clock counts the number of moves made since the last pawn move or capture (fifty-move rule).
    * The number of turns starts at 1 and increments after every move black makes.

    ex) The standard starting position has a FEN
    rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1
    i.e. it is white to move, all castling options available, no en passant square, no half moves and we are in the first turn.

    A Position never changes. The engine produces a new one for every move.
    """

    board: Board
    color_to_move: Color
    castling_rights: frozenset[CastlingDirection]
    en_passant_square: Optional[Square]
    half_move_clock: int
    num_turns: int

    @classmethod
    def from_fen(cls, fen: str) -> Position:
        """Parse the FEN into data"""

        # raise an exception if invalid FEN:
        if not is_valid_fen(fen):
            raise InvalidFENError(f"Cannot interpret supplied string as FEN: {fen}", field="fen")

        # extract the different components. FEN is space separated
        (
            placement,
            active_color,
            castling_str,
            en_passant_algebraic,
            half_move_clock,
            num_turns,
        ) = fen.split(" ")

        board = Board.from_fen(placement)
        for color in Color:
            if board.count_kings(color) != 1:
                raise InvalidFENError(
                    f"A position needs exactly one {color} king: {fen}", field="fen"
                )

        color_to_move = Color.WHITE if active_color == "w" else Color.BLACK
        en_passant_square = (
            Square.from_algebraic(en_passant_algebraic)
            if en_passant_algebraic != "-"
            else None
        )
        # the pawn that just made the double step has to stand right in front of the skipped square
        if en_passant_square is not None:
            step = -1 if color_to_move == Color.WHITE else 1
            double_stepped = board.piece(en_passant_square.offset(0, step))
            if double_stepped != Piece(PieceType.PAWN, color_to_move.opponent):
                raise InvalidFENError(
                    f"No pawn can have skipped {en_passant_algebraic}: {fen}", field="fen"
                )

        return cls(
            board=board,
            color_to_move=color_to_move,
            castling_rights=castling_from_fen(castling_str),
            en_passant_square=en_passant_square,
            half_move_clock=int(half_move_clock),
            num_turns=int(num_turns),
        )

    def to_fen(self) -> str:
        """reverse operation: write a FEN from the given data"""
        active_color = "w" if self.color_to_move == Color.WHITE else "b"
        castling_str = castling_to_fen(self.castling_rights)
        en_passant_algebraic = (
            self.en_passant_square.to_algebraic()
            if self.en_passant_square is not None
            else "-"
        )
        return f"{self.board.to_fen()} {active_color} {castling_str} {en_passant_algebraic} {self.half_move_clock} {self.num_turns}"

    @classmethod
    def starting_position(cls) -> Position:
        return cls.from_fen(STARTING_FEN)

    def repetition_key(self) -> str:
        """The FEN without the move counters. See `engine.position_key()` for the key repetitions are counted by"""
        return repetition_key(self.to_fen())

    def castling_rights_of(self, color: Color) -> list[CastlingDirection]:
        return [
            direction
            for direction in castling_options(color)
            if direction in self.castling_rights
        ]


def repetition_key(fen: str) -> str:
    return " ".join(fen.split(" ")[:4])
