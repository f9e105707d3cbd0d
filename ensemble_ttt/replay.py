"""Bounded experience store feeding the learned estimator."""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List

from .game import BoardState, Mark

WIN_REWARD = 10.0
LOSS_REWARD = -10.0


@dataclass(frozen=True)
class Experience:
    """One learner transition; the learner is the side to move in ``state``."""

    state: BoardState
    action: int
    reward: float
    next_state: BoardState
    done: bool

    @property
    def learner(self) -> Mark:
        return self.state.to_move


def transition_reward(learner: Mark, next_state: BoardState) -> float:
    winner = next_state.winner()
    if winner is None:
        return 0.0
    return WIN_REWARD if winner is learner else LOSS_REWARD


def make_experience(state: BoardState, action: int, next_state: BoardState) -> Experience:
    return Experience(
        state=state,
        action=action,
        reward=transition_reward(state.to_move, next_state),
        next_state=next_state,
        done=next_state.is_terminal(),
    )


class ExperienceStore:
    """A FIFO ring buffer; the oldest entries are evicted past ``capacity``."""

    def __init__(self, capacity: int = 10_000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._buffer: Deque[Experience] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[Experience]:
        with self._lock:
            return iter(list(self._buffer))

    def append(self, experience: Experience) -> int:
        """Store ``experience`` and return the new size."""

        with self._lock:
            self._buffer.append(experience)
            return len(self._buffer)

    def sample_recent(self, n: int) -> List[Experience]:
        """Return the last ``n`` experiences in insertion order."""

        if n <= 0:
            return []
        with self._lock:
            start = max(0, len(self._buffer) - n)
            return [self._buffer[i] for i in range(start, len(self._buffer))]

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def is_full(self) -> bool:
        return len(self._buffer) == self.capacity


__all__ = [
    "Experience",
    "ExperienceStore",
    "LOSS_REWARD",
    "WIN_REWARD",
    "make_experience",
    "transition_reward",
]
