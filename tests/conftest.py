import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ensemble_ttt.config import EngineConfig, MCTSConfig, SelfPlayConfig
from ensemble_ttt.engine import Engine


@pytest.fixture
def fast_config() -> EngineConfig:
    return EngineConfig(
        search=MCTSConfig(iterations=40),
        selfplay=SelfPlayConfig(games_per_batch=2, interval=0.05, initial_delay=0.0),
        seed=7,
    )


@pytest.fixture
def engine(fast_config: EngineConfig) -> Engine:
    eng = Engine(fast_config)
    yield eng
    eng.stop_self_play(timeout=5.0)
