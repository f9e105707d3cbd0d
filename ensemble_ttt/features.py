"""Feature encoding utilities for the learned Q-value approximator."""
from __future__ import annotations

from typing import Sequence

import numpy as np

from .game import BOARD_CELLS, CENTER, CORNERS, EDGES, WIN_LINES, InvalidStateError

FEATURE_DIVISOR = 10.0
STRATEGIC_FEATURES = 9
RAW_FEATURES = BOARD_CELLS + STRATEGIC_FEATURES
INPUT_SIZE = 27


def _check_numeric(board: Sequence[int]) -> None:
    if len(board) != BOARD_CELLS:
        raise InvalidStateError(f"numeric board must have 9 values, got {len(board)}")
    if any(value not in (-1, 0, 1) for value in board):
        raise InvalidStateError("numeric board values must be -1, 0 or 1")


def center_control(board: Sequence[int]) -> int:
    return 5 * board[CENTER]


def corner_control(board: Sequence[int]) -> int:
    return sum(board[i] for i in CORNERS)


def edge_control(board: Sequence[int]) -> int:
    return sum(board[i] for i in EDGES)


def threat_count(board: Sequence[int], side: int) -> int:
    """Number of lines holding two ``side`` marks and one empty cell."""

    threats = 0
    for line in WIN_LINES:
        values = [board[i] for i in line]
        if values.count(side) == 2 and values.count(0) == 1:
            threats += 1
    return threats


def fork_count(board: Sequence[int], side: int) -> int:
    """Number of empty cells where a ``side`` mark would create two threats."""

    forks = 0
    scratch = list(board)
    for index, value in enumerate(board):
        if value != 0:
            continue
        scratch[index] = side
        if threat_count(scratch, side) >= 2:
            forks += 1
        scratch[index] = 0
    return forks


def encode_features(board: Sequence[int], input_size: int = INPUT_SIZE) -> np.ndarray:
    """Encode a numeric board (mover = +1) into the approximator input.

    The nine cells are followed by nine strategic scalars, everything divided
    by ``FEATURE_DIVISOR``; the tail is zero-padded up to ``input_size``.
    """

    _check_numeric(board)
    if input_size < RAW_FEATURES:
        raise InvalidStateError(f"input_size must be at least {RAW_FEATURES}")

    strategic = (
        center_control(board),
        corner_control(board),
        edge_control(board),
        threat_count(board, 1),
        threat_count(board, -1),
        fork_count(board, 1),
        fork_count(board, -1),
        threat_count(board, -1),  # blocking moves needed
        threat_count(board, 1),  # immediate winning moves
    )
    features = np.zeros(input_size, dtype=np.float32)
    features[:BOARD_CELLS] = board
    features[BOARD_CELLS:RAW_FEATURES] = strategic
    features[:RAW_FEATURES] /= FEATURE_DIVISOR
    return features


__all__ = [
    "FEATURE_DIVISOR",
    "INPUT_SIZE",
    "RAW_FEATURES",
    "center_control",
    "corner_control",
    "edge_control",
    "encode_features",
    "fork_count",
    "threat_count",
]
