"""Trainable move estimators: a tabular Q-learner and a Q-value network.

Both sub-strategies share one re-entrant lock.  Every read and every update
takes it, so a reader observes the table and the network either fully
before or fully after any training step, including reads made from the
self-play thread.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import LearningConfig
from .features import encode_features
from .game import BOARD_CELLS, BoardState, Mark, check_index
from .model import QValueNet
from .replay import Experience

logger = logging.getLogger(__name__)


def exploration_stage(epsilon: float) -> str:
    if epsilon > 0.2:
        return "Exploring"
    if epsilon > 0.1:
        return "Learning"
    return "Expert"


def _argmax_legal(values: Sequence[float], moves: Sequence[int]) -> Optional[int]:
    best_move: Optional[int] = None
    best_value = -np.inf
    for move in moves:
        if values[move] > best_value:
            best_value = values[move]
            best_move = move
    return best_move


class LearnedEstimator:
    def __init__(
        self,
        config: Optional[LearningConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or LearningConfig()
        self.rng = rng or np.random.default_rng(self.config.seed)
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.q_table: Dict[str, List[float]] = {}
            self.epsilon = self.config.epsilon_start
            self.network = QValueNet(self.config.layers, seed=self.config.seed)
            self.train_steps = 0

    # ------------------------------------------------------------------
    # Tabular Q-learning
    def q_values(self, state: BoardState) -> List[float]:
        """Values of ``state``; unseen boards start at zero."""

        with self._lock:
            return self.q_table.setdefault(state.to_key(), [0.0] * BOARD_CELLS)

    def table_best_move(self, state: BoardState, explore: bool = True) -> Optional[int]:
        moves = state.legal_moves()
        if not moves:
            return None
        with self._lock:
            if explore and self.rng.random() < self.epsilon:
                return moves[int(self.rng.integers(len(moves)))]
            return _argmax_legal(self.q_values(state), moves)

    def update_q(
        self, prev_state: BoardState, action: int, next_state: BoardState, reward: float
    ) -> float:
        check_index(action)
        with self._lock:
            prev_values = self.q_values(prev_state)
            next_values = self.q_values(next_state)
            current = prev_values[action]
            target = reward + self.config.gamma * max(next_values)
            prev_values[action] = current + self.config.alpha * (target - current)
            return prev_values[action]

    def decay_exploration(self) -> float:
        with self._lock:
            self.epsilon = max(self.config.epsilon_min, self.epsilon * self.config.epsilon_decay)
            return self.epsilon

    # ------------------------------------------------------------------
    # Q-value network
    def features(self, state: BoardState, perspective: Optional[Mark] = None) -> np.ndarray:
        return encode_features(state.to_numeric(perspective), self.network.layers[0])

    def network_q_values(self, state: BoardState, perspective: Optional[Mark] = None) -> np.ndarray:
        features = self.features(state, perspective)
        with self._lock:
            return self.network.q_values(features)

    def network_best_move(self, state: BoardState) -> Optional[int]:
        moves = state.legal_moves()
        if not moves:
            return None
        return _argmax_legal(self.network_q_values(state), moves)

    def train(self, batch: Sequence[Experience]) -> float:
        """Run one pass of output-layer corrections over ``batch``.

        Returns the mean absolute TD error before each correction.
        """

        if not batch:
            return 0.0
        errors = []
        with self._lock:
            for experience in batch:
                learner = experience.learner
                if experience.done:
                    target = experience.reward
                else:
                    next_q = self.network_q_values(experience.next_state, learner)
                    target = experience.reward + self.config.discount * float(np.max(next_q))
                error = self.network.output_layer_update(
                    self.features(experience.state, learner),
                    experience.action,
                    target,
                    self.config.learning_rate,
                )
                errors.append(abs(error))
            self.train_steps += 1
        mean_error = float(np.mean(errors))
        logger.debug(
            "Network step %d on %d samples, mean |TD error| %.4f",
            self.train_steps,
            len(batch),
            mean_error,
        )
        return mean_error

    # ------------------------------------------------------------------
    def observe(self, experience: Experience) -> None:
        self.update_q(experience.state, experience.action, experience.next_state, experience.reward)

    def table_size(self) -> int:
        with self._lock:
            return len(self.q_table)

    def network_info(self) -> Dict[str, object]:
        with self._lock:
            return {"layers": list(self.network.layers), "total_weights": self.network.total_weights()}


__all__ = ["LearnedEstimator", "exploration_stage"]
