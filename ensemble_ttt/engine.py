"""The engine object consumed by presentation layers.

An :class:`Engine` owns every piece of mutable learning state: the learned
estimator, the experience store, the ensemble's strategy weights, the game
counters and the background self-play loop.  Several engines can coexist,
which is what the tests rely on.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Union

import numpy as np

from .config import EngineConfig
from .ensemble import DecisionEnsemble
from .game import (
    BoardState,
    IllegalMoveError,
    InvalidStateError,
    Mark,
    as_board,
    check_index,
    parse_mark,
)
from .learning import LearnedEstimator, exploration_stage
from .mcts import TreeSearch
from .minimax import Evaluator
from .replay import Experience, ExperienceStore, make_experience
from .selfplay import SelfPlayLoop, SelfPlayResult

logger = logging.getLogger(__name__)

BoardLike = Union[BoardState, str, List[Optional[str]]]


@dataclass(frozen=True)
class Diagnostics:
    total_games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    exploration_rate: float
    strategy_weights: Dict[str, float] = field(hash=False)
    experience_buffer_size: int
    is_self_play_training: bool
    self_play_games: int
    q_table_size: int
    network_layers: List[int] = field(hash=False)
    network_weights: int
    learning_progress: int
    current_strategy: str

    def as_dict(self) -> Dict[str, object]:
        return {
            "totalGames": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "winRate": self.win_rate,
            "explorationRate": self.exploration_rate,
            "strategyWeights": dict(self.strategy_weights),
            "experienceBufferSize": self.experience_buffer_size,
            "isSelfPlayTraining": self.is_self_play_training,
            "selfPlayGames": self.self_play_games,
            "qTableSize": self.q_table_size,
            "networkInfo": {"layers": list(self.network_layers), "totalWeights": self.network_weights},
            "learningProgress": self.learning_progress,
            "currentStrategy": self.current_strategy,
        }


def _as_winner(winner: Optional[object]) -> Optional[Mark]:
    if winner is None:
        return None
    mark = parse_mark(winner)
    return None if mark is Mark.EMPTY else mark


class Engine:
    """Ensemble tic-tac-toe engine playing as ``side`` in recorded games."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        side: Mark = Mark.O,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        config = config or EngineConfig()
        if config.seed is not None and config.learning.seed is None:
            config = replace(config, learning=replace(config.learning, seed=config.seed))
        self.config = config
        self.side = parse_mark(side)
        if self.side is Mark.EMPTY:
            raise InvalidStateError("engine side must be X or O")
        self.rng = rng or np.random.default_rng(self.config.seed)

        self.evaluator = Evaluator()
        self.tree_search = TreeSearch(self.config.search, rng=self.rng)
        self.estimator = LearnedEstimator(self.config.learning, rng=self.rng)
        self.store = ExperienceStore(self.config.replay.capacity)
        self.ensemble = DecisionEnsemble(
            self.evaluator, self.tree_search, self.estimator, self.config.ensemble
        )
        selfplay_seed = None if self.config.seed is None else self.config.seed + 1
        self.self_play = SelfPlayLoop(
            self, self.config.selfplay, rng=np.random.default_rng(selfplay_seed)
        )

        self._lock = threading.Lock()
        self._reset_counters()

    def _reset_counters(self) -> None:
        with self._lock:
            self.total_games = 0
            self.wins = 0
            self.losses = 0
            self.draws = 0

    # ------------------------------------------------------------------
    def choose_move(self, board: BoardLike) -> int:
        state = as_board(board)
        move = self.ensemble.choose_move(state)
        logger.debug("Chose %d on %s", move, state.to_key())
        return move

    def observe_move(self, before: BoardLike, action: int, after: BoardLike) -> Experience:
        """Record a learner transition from ``before`` to ``after`` via ``action``.

        ``after`` is the position when the learner is next to move, or the
        final position when the game ends first.
        """

        check_index(action)
        prev_state = as_board(before)
        next_state = as_board(after)
        learner = prev_state.to_move
        if prev_state.is_terminal() or prev_state.cells[action] is not Mark.EMPTY:
            raise IllegalMoveError(f"Cell {action} is not playable on {prev_state.to_key()}")
        if next_state.cells[action] is not learner:
            raise IllegalMoveError(f"{next_state.to_key()} does not follow {action} by {learner.value}")

        experience = make_experience(prev_state, action, next_state)
        size = self.store.append(experience)
        self.estimator.observe(experience)

        learning = self.config.learning
        if size >= learning.batch_size and size % learning.train_every == 0:
            self.estimator.train(self.store.sample_recent(learning.batch_size))
        return experience

    def record_outcome(self, final_board: BoardLike, winner: Optional[object] = None) -> Diagnostics:
        """Book a finished game; ``winner`` defaults to the board's winner."""

        state = as_board(final_board)
        resolved = _as_winner(winner) if winner is not None else state.winner()
        board_winner = state.winner()
        if board_winner is not None and resolved is not board_winner:
            raise InvalidStateError(
                f"Reported winner {resolved} contradicts board {state.to_key()}"
            )

        with self._lock:
            self.total_games += 1
            if resolved is None:
                self.draws += 1
            elif resolved is self.side:
                self.wins += 1
            else:
                self.losses += 1
            win_rate = self.wins / self.total_games

        epsilon = self.estimator.decay_exploration()
        weights = self.ensemble.adapt(win_rate)
        logger.info(
            "Game over (%s): win rate %.3f, epsilon %.3f, weights %s",
            "draw" if resolved is None else f"{resolved.value} wins",
            win_rate,
            epsilon,
            {name: round(value, 3) for name, value in weights.items()},
        )
        return self.get_diagnostics()

    def get_diagnostics(self) -> Diagnostics:
        with self._lock:
            total, wins, losses, draws = self.total_games, self.wins, self.losses, self.draws
        info = self.estimator.network_info()
        epsilon = self.estimator.epsilon
        return Diagnostics(
            total_games=total,
            wins=wins,
            losses=losses,
            draws=draws,
            win_rate=wins / total if total else 0.0,
            exploration_rate=epsilon,
            strategy_weights=self.ensemble.weight_snapshot(),
            experience_buffer_size=len(self.store),
            is_self_play_training=self.self_play.is_training,
            self_play_games=self.self_play.games_played,
            q_table_size=self.estimator.table_size(),
            network_layers=list(info["layers"]),
            network_weights=int(info["total_weights"]),
            learning_progress=min(100, total),
            current_strategy=exploration_stage(epsilon),
        )

    def reset_learning(self) -> None:
        self.estimator.reset()
        self.store.clear()
        self.ensemble.reset_weights()
        self.self_play.reset_counters()
        self._reset_counters()
        logger.info("Learning state reset")

    # ------------------------------------------------------------------
    def run_self_play_batch(self, games: Optional[int] = None) -> Optional[SelfPlayResult]:
        return self.self_play.run_batch(games)

    def start_self_play(self) -> None:
        self.self_play.start()

    def stop_self_play(self, timeout: Optional[float] = None) -> None:
        self.self_play.stop(timeout)

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_self_play()


__all__ = ["Diagnostics", "Engine"]
