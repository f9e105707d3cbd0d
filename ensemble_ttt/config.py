"""Typed configuration for the engine, loadable from YAML."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .mcts import MCTSConfig
from .model import DEFAULT_LAYERS

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"
LEARNED_STRATEGIES = ("network", "table")


@dataclass
class LearningConfig:
    alpha: float = 0.1
    gamma: float = 0.9
    epsilon_start: float = 0.3
    epsilon_decay: float = 0.995
    epsilon_min: float = 0.05
    layers: Tuple[int, ...] = DEFAULT_LAYERS
    learning_rate: float = 0.001
    discount: float = 0.95
    batch_size: int = 32
    train_every: int = 10
    seed: Optional[int] = None


@dataclass
class EnsembleConfig:
    exhaustive_weight: float = 0.2
    sampling_weight: float = 0.4
    learned_weight: float = 0.4
    win_bonus: float = 10.0
    block_bonus: float = 8.0
    center_bonus: float = 2.0
    corner_bonus: float = 1.0
    high_win_rate: float = 0.7
    low_win_rate: float = 0.3
    exhaustive_step: float = 0.01
    exhaustive_cap: float = 0.5
    sampling_step: float = 0.02
    sampling_cap: float = 0.6
    learned_strategy: str = "network"


@dataclass
class ReplayConfig:
    capacity: int = 10_000


@dataclass
class SelfPlayConfig:
    games_per_batch: int = 10
    interval: float = 30.0
    initial_delay: float = 1.0


@dataclass
class EngineConfig:
    search: MCTSConfig = field(default_factory=MCTSConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    selfplay: SelfPlayConfig = field(default_factory=SelfPlayConfig)
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_SECTIONS = ("search", "learning", "ensemble", "replay", "selfplay")


def _overlay(section: Any, values: Dict[str, Any], name: str) -> Any:
    known = {f.name for f in fields(section)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {sorted(unknown)}")
    updates = dict(values)
    if "layers" in updates:
        updates["layers"] = tuple(int(size) for size in updates["layers"])
    if updates.get("learned_strategy", LEARNED_STRATEGIES[0]) not in LEARNED_STRATEGIES:
        raise ValueError(f"learned_strategy must be one of {LEARNED_STRATEGIES}")
    return replace(section, **updates)


def config_from_dict(data: Optional[Dict[str, Any]]) -> EngineConfig:
    config = EngineConfig()
    if not data:
        return config
    unknown = set(data) - set(_SECTIONS) - {"seed"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    for name in _SECTIONS:
        values = data.get(name) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Section '{name}' must be a mapping")
        setattr(config, name, _overlay(getattr(config, name), values, name))
    if data.get("seed") is not None:
        config.seed = int(data["seed"])
    return config


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Read a YAML file and overlay it onto the defaults."""

    target = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    with target.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{target} must contain a mapping at the top level")
    return config_from_dict(data)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "EnsembleConfig",
    "LEARNED_STRATEGIES",
    "LearningConfig",
    "MCTSConfig",
    "ReplayConfig",
    "SelfPlayConfig",
    "config_from_dict",
    "load_config",
]
