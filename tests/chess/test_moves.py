"""Unit tests for miniapp_chess/chess/moves.py"""

import pytest

from miniapp_chess.chess.board import Board
from miniapp_chess.chess.castling import CastlingDirection
from miniapp_chess.chess.moves import (
    PROMOTION_OPTIONS,
    Move,
    candidate_bishop_moves,
    candidate_castling_move,
    candidate_king_moves,
    candidate_knight_moves,
    candidate_pawn_moves,
    candidate_queen_moves,
    candidate_rook_moves,
    en_passant_capture_square,
    en_passant_moves,
    is_attacked,
    is_attacked_by_king,
    is_attacked_by_knight,
    is_attacked_by_pawn,
    is_attacked_on_diagonal,
    is_attacked_on_straight,
    is_pawn_push_to_promotion_square,
    pawn_pushes_w_promotion,
)
from miniapp_chess.chess.square import Square
from miniapp_chess.core.exceptions import IllegalMoveError
from miniapp_chess.core.shared_types import Color, PieceType

EMPTY_FEN = "/".join(["8"] * 8)


def sq(notation: str) -> Square:
    return Square.from_algebraic(notation)


def targets(moves: list[Move]) -> set[str]:
    return {move.to_square.to_algebraic() for move in moves}


# -- MOVE CREATION, ENCODING/DECODING UCI NOTATION ---
@pytest.mark.parametrize(
    "uci_move, from_uci, to_uci",
    [
        ("e2e4", "e2", "e4"),
        ("a1a5", "a1", "a5"),
        ("d2e4", "d2", "e4"),
        ("g3a7", "g3", "a7"),
    ],
)
def test_uci_both_ways(uci_move: str, from_uci: str, to_uci: str) -> None:
    """Creating logic / parsing of UCI notation for the move should be <from_square><to_square>"""
    move = Move.from_uci(uci_move)
    assert move.from_square == sq(from_uci)
    assert move.to_square == sq(to_uci)
    assert move.promote_to is None
    assert Move(sq(from_uci), sq(to_uci)).to_uci() == uci_move


def test_creating_move_incl_promotion() -> None:
    move = Move.from_uci("e7e8n")
    assert move.from_square == sq("e7")
    assert move.to_square == sq("e8")
    assert move.promote_to == PieceType.KNIGHT
    assert move.to_uci() == "e7e8n"


@pytest.mark.parametrize("uci", ["e2", "e2e", "e2e4e5", "z2e4", "e2e9", "e7e8k", "e7e8p", "e7e8x"])
def test_invalid_uci(uci: str) -> None:
    with pytest.raises(IllegalMoveError):
        Move.from_uci(uci)


def test_matches_ignores_flags() -> None:
    flagged = Move(sq("e5"), sq("d6"), is_capture=True, is_en_passant=True)
    assert flagged.matches(Move.from_uci("e5d6"))
    assert not flagged.matches(Move.from_uci("e5e6"))


def test_castling_flags() -> None:
    move = candidate_castling_move(CastlingDirection.BLACK_QUEEN_SIDE)
    assert move.to_uci() == "e8c8"
    assert move.is_castle_queen_side
    assert not move.is_castle_king_side


# -- MOVEMENT RULES ---
def test_knight_in_the_corner() -> None:
    board = Board.from_fen("N7/8/8/8/8/8/8/8")
    assert targets(candidate_knight_moves(sq("a8"), board)) == {"b6", "c7"}


def test_knight_in_the_center() -> None:
    board = Board.from_fen("8/8/8/8/3N4/8/8/8")
    assert targets(candidate_knight_moves(sq("d4"), board)) == {
        "b3", "b5", "c2", "c6", "e2", "e6", "f3", "f5",
    }


def test_rook_blocked_by_own_piece_captures_opponent() -> None:
    board = Board.from_fen("8/8/8/3p4/8/8/3P4/R2R4")
    moves = candidate_rook_moves(sq("d1"), board)
    assert targets(moves) == {"b1", "c1", "e1", "f1", "g1", "h1"}

    board = Board.from_fen("8/8/8/3p4/8/8/8/3R4")
    moves = candidate_rook_moves(sq("d1"), board)
    captures = [move for move in moves if move.is_capture]
    assert targets(captures) == {"d5"}
    assert "d6" not in targets(moves)


def test_bishop_moves() -> None:
    board = Board.from_fen("8/8/8/8/8/8/1p6/B7")
    moves = candidate_bishop_moves(sq("a1"), board)
    assert targets(moves) == {"b2"}
    assert moves[0].is_capture


def test_queen_combines_rook_and_bishop() -> None:
    board = Board.from_fen("8/8/8/8/3Q4/8/8/8")
    queen = targets(candidate_queen_moves(sq("d4"), board))
    rook = targets(candidate_rook_moves(sq("d4"), board))
    bishop = targets(candidate_bishop_moves(sq("d4"), board))
    assert queen == rook | bishop
    assert len(queen) == 27


def test_king_moves() -> None:
    board = Board.from_fen("8/8/8/8/8/8/8/K7")
    assert targets(candidate_king_moves(sq("a1"), board)) == {"a2", "b1", "b2"}


def test_pawn_single_and_double_step() -> None:
    board = Board.from_fen("8/8/8/8/8/8/4P3/8")
    assert targets(candidate_pawn_moves(sq("e2"), board)) == {"e3", "e4"}

    board = Board.from_fen("8/4p3/8/8/8/8/8/8")
    assert targets(candidate_pawn_moves(sq("e7"), board)) == {"e6", "e5"}


def test_pawn_blocked() -> None:
    """A piece right in front blocks both steps, a piece two squares ahead only the double step"""
    board = Board.from_fen("8/8/8/8/8/4n3/4P3/8")
    assert candidate_pawn_moves(sq("e2"), board) == []

    board = Board.from_fen("8/8/8/8/4n3/8/4P3/8")
    assert targets(candidate_pawn_moves(sq("e2"), board)) == {"e3"}


def test_pawn_captures_diagonally() -> None:
    board = Board.from_fen("8/8/8/8/8/3p1P2/4P3/8")
    moves = candidate_pawn_moves(sq("e2"), board)
    assert targets(moves) == {"d3", "e3", "e4"}
    assert [move.to_uci() for move in moves if move.is_capture] == ["e2d3"]


# -- ATTACKING RULES ---
def test_attacked_by_pawn_depends_on_color() -> None:
    board = Board.from_fen("8/8/8/8/8/8/4P3/8")
    assert is_attacked_by_pawn(sq("d3"), Color.WHITE, board)
    assert is_attacked_by_pawn(sq("f3"), Color.WHITE, board)
    assert not is_attacked_by_pawn(sq("e3"), Color.WHITE, board)
    assert not is_attacked_by_pawn(sq("d1"), Color.WHITE, board)
    assert not is_attacked_by_pawn(sq("d3"), Color.BLACK, board)


def test_attacked_by_knight_and_king() -> None:
    board = Board.from_fen("8/8/8/8/8/8/8/N6k")
    assert is_attacked_by_knight(sq("b3"), Color.WHITE, board)
    assert not is_attacked_by_knight(sq("b2"), Color.WHITE, board)
    assert is_attacked_by_king(sq("g2"), Color.BLACK, board)
    assert not is_attacked_by_king(sq("f2"), Color.BLACK, board)


def test_line_attacks_stop_at_first_piece() -> None:
    board = Board.from_fen("8/8/8/8/8/2P5/8/Q3r3")
    assert is_attacked_on_diagonal(sq("b2"), Color.WHITE, board)
    # c3 pawn blocks the diagonal
    assert not is_attacked_on_diagonal(sq("d4"), Color.WHITE, board)
    assert is_attacked_on_straight(sq("a8"), Color.WHITE, board)
    assert is_attacked_on_straight(sq("c1"), Color.BLACK, board)
    # the black rook on e1 stands between the queen and f1
    assert not is_attacked_on_straight(sq("f1"), Color.WHITE, board)


def test_is_attacked_combines_all_rules() -> None:
    board = Board.from_fen("8/8/8/8/8/8/8/R7")
    assert is_attacked(sq("a8"), Color.WHITE, board)
    assert is_attacked(sq("h1"), Color.WHITE, board)
    assert not is_attacked(sq("b2"), Color.WHITE, board)
    assert not is_attacked(sq("a8"), Color.BLACK, board)


# -- SPECIAL MOVES ---
def test_en_passant_moves() -> None:
    """White pawns on d5 and f5, black just played e7e5"""
    board = Board.from_fen("8/8/8/3PpP2/8/8/8/8")
    moves = en_passant_moves(sq("e6"), Color.WHITE, board)
    assert {move.to_uci() for move in moves} == {"d5e6", "f5e6"}
    assert all(move.is_en_passant and move.is_capture for move in moves)
    assert en_passant_capture_square(moves[0]) == sq("e5")


def test_no_en_passant_for_pieces_other_than_pawns() -> None:
    board = Board.from_fen("8/8/8/3NpB2/8/8/8/8")
    assert en_passant_moves(sq("e6"), Color.WHITE, board) == []


def test_promotion_expansion() -> None:
    board = Board.from_fen("8/4P3/8/8/8/8/8/8")
    push = Move.from_uci("e7e8")
    assert is_pawn_push_to_promotion_square(push, board)
    expanded = pawn_pushes_w_promotion(push)
    assert [move.promote_to for move in expanded] == PROMOTION_OPTIONS
    assert {move.to_uci() for move in expanded} == {"e7e8n", "e7e8b", "e7e8r", "e7e8q"}


def test_rook_to_last_rank_is_no_promotion() -> None:
    board = Board.from_fen("8/4R3/8/8/8/8/8/8")
    assert not is_pawn_push_to_promotion_square(Move.from_uci("e7e8"), board)
