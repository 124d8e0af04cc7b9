"""
Validation of FEN strings (Forsyth-Edwards Notation).

Parsing itself lives with the objects that get constructed: `Board.from_fen()` for the placement and
`Position.from_fen()` for the full state.
"""

from typing import Optional

from miniapp_chess.chess.castling import CASTLING_ORDER
from miniapp_chess.chess.pieces import FEN_TO_PIECE
from miniapp_chess.chess.square import BOARD_DIMENSIONS, is_valid_square

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# rank of the en passant square, by the side that may capture there
EN_PASSANT_RANK = {"w": "6", "b": "3"}


def _castling_encodings() -> list[str]:
    """Every subset of KQkq, written in FEN order, plus '-' for no rights at all"""
    encodings = ["-"]
    for mask in range(1, 2 ** len(CASTLING_ORDER)):
        encodings.append(
            "".join(
                direction.value
                for bit, direction in enumerate(CASTLING_ORDER)
                if mask & (1 << bit)
            )
        )
    return encodings


VALID_CASTLING_ENCODINGS: list[str] = _castling_encodings()


def is_valid_fen(fen: str) -> bool:
    """
    Check if given string follows proper FEN notation.
    """

    # there should be 6 parts to the string
    parts = fen.split(" ")
    if len(parts) != 6:
        return False

    position, color, castling, en_passant, half_move_counter, full_move_counter = parts
    return (
        is_valid_position(position)
        and is_valid_color_code(color)
        and is_valid_castling_rights(castling)
        and is_valid_en_passant(en_passant, color)
        and is_valid_move_counter(half_move_counter)
        and is_valid_move_counter(full_move_counter)
    )


def is_valid_position(position: str) -> bool:
    """Only check the part of the FEN encoding for the board position."""
    num_files, num_ranks = BOARD_DIMENSIONS
    rank_fens = position.split("/")
    if len(rank_fens) != num_ranks:
        return False

    for rank_fen in rank_fens:
        file_count = 0
        for character in rank_fen:
            # make sure every character is valid
            if character.isdigit():
                file_count += int(character)
            elif character.lower() in FEN_TO_PIECE:
                file_count += 1
            else:
                # immediately invalidate if the character is anything else
                return False

        # make sure you are creating a correctly sized board
        if file_count != num_files:
            return False
    return True


def is_valid_color_code(color: str) -> bool:
    return color in {"w", "b"}


def is_valid_castling_rights(castling: str) -> bool:
    """A valid castling encoding has either KQkq, KQk, etc. or a '-' if all rights have been revoked."""
    return castling in VALID_CASTLING_ENCODINGS


def is_valid_en_passant(en_passant: str, color: Optional[str] = None) -> bool:
    """
    Valid en passant square encoding should be a square on the 3rd or 6th rank, or a '-'.
    Given the side to move, only one of those ranks fits: white captures on the 6th, black on the 3rd.
    """
    if en_passant == "-":
        return True
    if not is_valid_square(en_passant):
        return False
    if color is None:
        return en_passant[1:] in {"3", "6"}
    return en_passant[1:] == EN_PASSANT_RANK.get(color)


def is_valid_move_counter(counter: str) -> bool:
    return counter.isdigit()
