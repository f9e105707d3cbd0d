"""Tic-tac-toe engine blending exhaustive search, tree sampling and learned values."""
from .arena import Arena, ArenaResult
from .config import EngineConfig, load_config
from .engine import Diagnostics, Engine
from .ensemble import DecisionEnsemble
from .game import BoardState, EmptyCandidateError, IllegalMoveError, InvalidStateError, Mark
from .learning import LearnedEstimator
from .mcts import TreeSearch
from .minimax import Evaluator
from .model import QValueNet
from .replay import Experience, ExperienceStore
from .selfplay import SelfPlayLoop
from .train import main

__version__ = "0.1.0"

__all__ = [
    "Arena",
    "ArenaResult",
    "BoardState",
    "DecisionEnsemble",
    "Diagnostics",
    "EmptyCandidateError",
    "Engine",
    "EngineConfig",
    "Evaluator",
    "Experience",
    "ExperienceStore",
    "IllegalMoveError",
    "InvalidStateError",
    "LearnedEstimator",
    "Mark",
    "QValueNet",
    "SelfPlayLoop",
    "TreeSearch",
    "load_config",
    "main",
]
