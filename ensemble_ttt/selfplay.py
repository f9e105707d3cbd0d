"""Background self-play against a random mover to keep the engine learning."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

from .config import SelfPlayConfig
from .game import BoardState, EmptyCandidateError, Mark

if TYPE_CHECKING:  # pragma: no cover
    from .engine import Engine

logger = logging.getLogger(__name__)

__all__ = ["SelfPlayLoop", "SelfPlayResult", "random_move"]


def random_move(state: BoardState, rng: np.random.Generator) -> int:
    moves = state.legal_moves()
    if not moves:
        raise EmptyCandidateError("No legal moves available for selection")
    return moves[int(rng.integers(len(moves)))]


@dataclass
class SelfPlayResult:
    wins: int = 0
    losses: int = 0
    draws: int = 0
    experiences: int = 0

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.draws


class SelfPlayLoop:
    """Plays batches of games without human input.

    ``run_batch`` is synchronous and is what tests drive directly.  ``start``
    runs batches on a daemon thread, sleeping ``interval`` seconds between
    them until :meth:`stop` is called.  At most one batch is in flight.
    """

    def __init__(
        self,
        engine: "Engine",
        config: Optional[SelfPlayConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.engine = engine
        self.config = config or SelfPlayConfig()
        self.rng = rng or np.random.default_rng()
        self.games_played = 0
        self._busy = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_training(self) -> bool:
        return self._busy.locked()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def reset_counters(self) -> None:
        self.games_played = 0

    # ------------------------------------------------------------------
    def play_game(self) -> Tuple[Optional[Mark], int]:
        """Play one game; return the winner and the number of experiences recorded."""

        engine = self.engine
        side = engine.side
        board = BoardState.empty()
        pending: Optional[Tuple[BoardState, int]] = None
        recorded = 0

        while not board.is_terminal():
            if board.to_move is side:
                if pending is not None:
                    engine.observe_move(pending[0], pending[1], board)
                    recorded += 1
                move = engine.choose_move(board)
                pending = (board, move)
            else:
                move = random_move(board, self.rng)
            board = board.apply_move(move)

        if pending is not None:
            engine.observe_move(pending[0], pending[1], board)
            recorded += 1

        winner = board.winner()
        engine.record_outcome(board, winner)
        self.games_played += 1
        return winner, recorded

    def run_batch(self, games: Optional[int] = None) -> Optional[SelfPlayResult]:
        """Play one batch; returns ``None`` when another batch is in flight."""

        if not self._busy.acquire(blocking=False):
            logger.debug("Self-play batch already running; skipping")
            return None
        try:
            count = self.config.games_per_batch if games is None else games
            result = SelfPlayResult()
            for _ in range(count):
                if self._stop.is_set():
                    break
                winner, recorded = self.play_game()
                result.experiences += recorded
                if winner is None:
                    result.draws += 1
                elif winner is self.engine.side:
                    result.wins += 1
                else:
                    result.losses += 1
            logger.info(
                "Self-play batch: %d games (W/L/D %d/%d/%d), %d experiences, %d total games",
                result.games,
                result.wins,
                result.losses,
                result.draws,
                result.experiences,
                self.games_played,
            )
            return result
        finally:
            self._busy.release()

    # ------------------------------------------------------------------
    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="self-play", daemon=True)
        self._thread.start()
        logger.info("Self-play loop started (interval %.1fs)", self.config.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Self-play thread did not stop within %.1fs", timeout or 0.0)
            return
        self._thread = None
        self._stop.clear()
        logger.info("Self-play loop stopped")

    def _run(self) -> None:
        if self._stop.wait(self.config.initial_delay):
            return
        while not self._stop.is_set():
            try:
                self.run_batch()
            except Exception:
                logger.exception("Self-play batch failed; stopping the loop")
                raise
            if self._stop.wait(self.config.interval):
                break
