"""Command-line self-play trainer for the ensemble engine."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

import numpy as np

from .arena import Arena, ArenaResult, MinimaxPlayer, RandomPlayer
from .config import DEFAULT_CONFIG_PATH, load_config
from .engine import Engine
from .utils import configure_logging, set_random_seed

logger = logging.getLogger(__name__)


def train_engine(
    config_path: Path = DEFAULT_CONFIG_PATH,
    batches: int = 5,
    games_per_batch: Optional[int] = None,
    eval_games: int = 20,
    seed: Optional[int] = None,
) -> Dict[str, ArenaResult]:
    """Run self-play batches, then evaluate the trained engine."""

    config = load_config(config_path)
    if seed is not None:
        config.seed = seed
    if config.seed is not None:
        set_random_seed(config.seed)

    engine = Engine(config)
    for batch in range(1, batches + 1):
        result = engine.run_self_play_batch(games_per_batch)
        diagnostics = engine.get_diagnostics()
        logger.info(
            "Batch %d/%d - W/L/D %d/%d/%d, win rate %.3f, epsilon %.3f, buffer %d, q-table %d",
            batch,
            batches,
            result.wins if result else 0,
            result.losses if result else 0,
            result.draws if result else 0,
            diagnostics.win_rate,
            diagnostics.exploration_rate,
            diagnostics.experience_buffer_size,
            diagnostics.q_table_size,
        )

    results: Dict[str, ArenaResult] = {}
    if eval_games > 0:
        eval_seed = None if config.seed is None else config.seed + 2
        for opponent in (RandomPlayer(np.random.default_rng(eval_seed)), MinimaxPlayer()):
            results[opponent.name] = Arena(engine, opponent).play_matches(eval_games)

    logger.info("Training completed. Diagnostics: %s", engine.get_diagnostics().as_dict())
    return results


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Train the ensemble tic-tac-toe engine by self-play")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML configuration file")
    parser.add_argument("--batches", type=int, default=5, help="Number of self-play batches")
    parser.add_argument(
        "--games-per-batch",
        type=int,
        default=None,
        help="Games per batch (defaults to the configured value)",
    )
    parser.add_argument(
        "--eval-games",
        type=int,
        default=20,
        help="Arena games against each opponent after training",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    train_engine(
        config_path=args.config,
        batches=args.batches,
        games_per_batch=args.games_per_batch,
        eval_games=args.eval_games,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
