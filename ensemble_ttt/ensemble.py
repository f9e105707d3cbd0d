"""Weighted blending of the search and learned strategies into one move."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import LEARNED_STRATEGIES, EnsembleConfig
from .game import CENTER, CORNERS, WIN_LINES, BoardState, EmptyCandidateError, Mark
from .learning import LearnedEstimator
from .mcts import TreeSearch
from .minimax import Evaluator

logger = logging.getLogger(__name__)


@dataclass
class StrategyWeights:
    exhaustive: float = 0.2
    sampling: float = 0.4
    learned: float = 0.4

    @classmethod
    def from_config(cls, config: EnsembleConfig) -> "StrategyWeights":
        weights = cls(config.exhaustive_weight, config.sampling_weight, config.learned_weight)
        weights.normalise()
        return weights

    def normalise(self) -> None:
        self.exhaustive = max(0.0, self.exhaustive)
        self.sampling = max(0.0, self.sampling)
        self.learned = max(0.0, self.learned)
        total = self.exhaustive + self.sampling + self.learned
        if total <= 0.0:
            self.exhaustive = self.sampling = self.learned = 1.0 / 3.0
            return
        self.exhaustive /= total
        self.sampling /= total
        self.learned /= total

    def as_dict(self) -> Dict[str, float]:
        return {"exhaustive": self.exhaustive, "sampling": self.sampling, "learned": self.learned}


@dataclass(frozen=True)
class Decision:
    """Record of one ensemble decision, kept for diagnostics."""

    move: int
    candidates: Dict[str, Optional[int]]
    scores: Dict[int, float]
    forced: Optional[str] = None


def immediate_wins(state: BoardState, side: Mark) -> List[int]:
    """Empty cells where ``side`` would complete a line."""

    wins: List[int] = []
    cells = state.cells
    for move in state.legal_moves():
        for a, b, c in WIN_LINES:
            if move not in (a, b, c):
                continue
            if all(cells[i] is side or i == move for i in (a, b, c)):
                wins.append(move)
                break
    return wins


@dataclass
class DecisionEnsemble:
    evaluator: Evaluator
    tree_search: TreeSearch
    estimator: LearnedEstimator
    config: EnsembleConfig = field(default_factory=EnsembleConfig)
    weights: StrategyWeights = field(init=False)
    last_decision: Optional[Decision] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.config.learned_strategy not in LEARNED_STRATEGIES:
            raise ValueError(f"learned_strategy must be one of {LEARNED_STRATEGIES}")
        self.weights = StrategyWeights.from_config(self.config)
        self._lock = threading.Lock()

    def latest_decision(self) -> Optional[Decision]:
        with self._lock:
            return self.last_decision

    def weight_snapshot(self) -> Dict[str, float]:
        with self._lock:
            return self.weights.as_dict()

    def candidates(self, state: BoardState) -> Dict[str, Optional[int]]:
        return {
            "exhaustive": self.evaluator.best_move(state),
            "sampling": self.tree_search.best_move(state),
            "learned": self._learned_move(state),
        }

    def _learned_move(self, state: BoardState) -> Optional[int]:
        if self.config.learned_strategy == "table":
            return self.estimator.table_best_move(state)
        return self.estimator.network_best_move(state)

    def choose_move(self, state: BoardState) -> int:
        return self.decide(state).move

    def decide(self, state: BoardState) -> Decision:
        if state.is_terminal():
            raise EmptyCandidateError("No legal move: the game has already finished")
        moves = state.legal_moves()
        side = state.to_move

        candidates = self.candidates(state)
        weight_of = self.weight_snapshot()
        scores: Dict[int, float] = {}
        for name, move in candidates.items():
            if move is not None and move >= 0:
                scores[move] = scores.get(move, 0.0) + weight_of[name]

        wins = immediate_wins(state, side)
        blocks = immediate_wins(state, side.opponent())
        cfg = self.config
        for move in moves:
            bonus = 0.0
            if move in wins:
                bonus += cfg.win_bonus
            if move in blocks:
                bonus += cfg.block_bonus
            if move == CENTER:
                bonus += cfg.center_bonus
            if move in CORNERS:
                bonus += cfg.corner_bonus
            if bonus:
                scores[move] = scores.get(move, 0.0) + bonus

        # Immediate wins, then forced blocks, are the only eligible picks.
        forced: Optional[str] = None
        eligible = moves
        if wins:
            eligible, forced = wins, "win"
        elif blocks:
            eligible, forced = blocks, "block"

        best_move = None
        best_score = float("-inf")
        for move in eligible:
            if move in scores and scores[move] > best_score:
                best_score = scores[move]
                best_move = move
        if best_move is None:
            best_move = eligible[0]

        decision = Decision(best_move, candidates, dict(scores), forced)
        with self._lock:
            self.last_decision = decision
        return decision

    def adapt(self, win_rate: float) -> Dict[str, float]:
        """Shift weight between strategies after a finished game."""

        cfg = self.config
        with self._lock:
            weights = self.weights
            if win_rate > cfg.high_win_rate:
                weights.exhaustive = min(cfg.exhaustive_cap, weights.exhaustive + cfg.exhaustive_step)
            elif win_rate < cfg.low_win_rate:
                weights.sampling = min(cfg.sampling_cap, weights.sampling + cfg.sampling_step)
            weights.normalise()
            snapshot = weights.as_dict()
        logger.debug("Strategy weights after win rate %.3f: %s", win_rate, snapshot)
        return snapshot

    def reset_weights(self) -> None:
        with self._lock:
            self.weights = StrategyWeights.from_config(self.config)
            self.last_decision = None


__all__ = ["Decision", "DecisionEnsemble", "StrategyWeights", "immediate_wins"]
