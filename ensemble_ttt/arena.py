"""Evaluation arena pitting an engine against fixed opponents."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .game import BoardState, Mark
from .minimax import Evaluator
from .selfplay import random_move

logger = logging.getLogger(__name__)

__all__ = ["Arena", "ArenaResult", "MinimaxPlayer", "RandomPlayer"]


@dataclass
class ArenaResult:
    wins: int
    losses: int
    draws: int

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def win_rate(self) -> float:
        return self.wins / self.total if self.total else 0.0


class RandomPlayer:
    name = "random"

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self.rng = rng or np.random.default_rng()

    def choose_move(self, board: BoardState) -> int:
        return random_move(board, self.rng)


class MinimaxPlayer:
    name = "minimax"

    def __init__(self) -> None:
        self.evaluator = Evaluator()

    def choose_move(self, board: BoardState) -> int:
        return self.evaluator.best_move(board)


@dataclass
class Arena:
    """Plays ``engine`` against ``opponent``; the engine moves first in even games.

    Only ``choose_move`` is called on either side, so matches never feed the
    engine's learning state or its game counters.
    """

    engine: object
    opponent: object

    def play_matches(self, num_games: int = 20) -> ArenaResult:
        results = ArenaResult(wins=0, losses=0, draws=0)

        for game_index in range(num_games):
            engine_first = game_index % 2 == 0
            board = BoardState.empty()
            engine_mark = Mark.X if engine_first else Mark.O
            while not board.is_terminal():
                player = self.engine if board.to_move is engine_mark else self.opponent
                board = board.apply_move(player.choose_move(board))

            winner = board.winner()
            if winner is None:
                results.draws += 1
            elif winner is engine_mark:
                results.wins += 1
            else:
                results.losses += 1

        logger.info(
            "Arena vs %s: %d games, W/L/D %d/%d/%d",
            getattr(self.opponent, "name", type(self.opponent).__name__),
            results.total,
            results.wins,
            results.losses,
            results.draws,
        )
        return results
