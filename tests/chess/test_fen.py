"""Unit tests for miniapp_chess/chess/fen.py"""

import pytest

from miniapp_chess.chess.fen import (
    STARTING_FEN,
    VALID_CASTLING_ENCODINGS,
    is_valid_castling_rights,
    is_valid_color_code,
    is_valid_en_passant,
    is_valid_fen,
    is_valid_move_counter,
    is_valid_position,
)


@pytest.mark.parametrize(
    "fen",
    [
        STARTING_FEN,
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1",
        "r3k2r/pppq1ppp/2npbn2/4p3/2B1P3/2NP1N2/PPP2PPP/R1BQ1RK1 b kq - 3 9",
        "8/8/8/8/8/8/8/8 w - - 0 1",
    ],
)
def test_valid_fen(fen: str) -> None:
    assert is_valid_fen(fen)


@pytest.mark.parametrize(
    "fen",
    [
        "",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0",  # only 5 parts
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1 extra",  # 7 parts
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1",  # 7 ranks
        "rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",  # rank too long
        "rnbqkbnr/ppppxppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",  # unknown piece
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq - 0 1",  # color
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w QKkq - 0 1",  # castling order
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq e4 0 1",  # en passant rank
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - -1 1",  # counter
    ],
)
def test_invalid_fen(fen: str) -> None:
    assert not is_valid_fen(fen)


def test_valid_position_part() -> None:
    assert is_valid_position("8/8/8/8/8/8/8/8")
    assert is_valid_position("4k3/8/8/8/8/8/8/4K3")
    assert not is_valid_position("4k4/8/8/8/8/8/8/4K3")
    assert not is_valid_position("4k2/8/8/8/8/8/8/4K3")


def test_color_codes() -> None:
    assert is_valid_color_code("w")
    assert is_valid_color_code("b")
    assert not is_valid_color_code("W")
    assert not is_valid_color_code("white")


def test_castling_encodings() -> None:
    """Every subset of KQkq written in order, plus '-' """
    assert len(VALID_CASTLING_ENCODINGS) == 16
    for encoding in ["KQkq", "Kk", "q", "-", "KQ", "Qkq"]:
        assert is_valid_castling_rights(encoding)
    for encoding in ["", "kK", "KK", "KQkqK", "x"]:
        assert not is_valid_castling_rights(encoding)


@pytest.mark.parametrize("en_passant, valid", [("-", True), ("e3", True), ("a6", True), ("e4", False), ("i3", False)])
def test_en_passant_encoding(en_passant: str, valid: bool) -> None:
    assert is_valid_en_passant(en_passant) == valid


@pytest.mark.parametrize(
    "en_passant, color, valid",
    [("e6", "w", True), ("e3", "b", True), ("e3", "w", False), ("e6", "b", False), ("-", "w", True)],
)
def test_en_passant_rank_depends_on_side_to_move(en_passant: str, color: str, valid: bool) -> None:
    assert is_valid_en_passant(en_passant, color) == valid
    assert is_valid_fen(f"4k3/8/8/8/8/8/8/4K3 {color} - {en_passant} 0 1") == valid


def test_move_counters() -> None:
    assert is_valid_move_counter("0")
    assert is_valid_move_counter("120")
    assert not is_valid_move_counter("-1")
    assert not is_valid_move_counter("one")
