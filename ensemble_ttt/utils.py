"""Utility helpers shared by the engine and the training entry point."""
from __future__ import annotations

import logging
import random
from typing import Union

import numpy as np
import torch

LOG_FORMAT = "%(asctime)s - %(threadName)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    logging.basicConfig(level=level, format=LOG_FORMAT)


def set_random_seed(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed % (2**32))
    torch.manual_seed(seed)


__all__ = ["LOG_FORMAT", "configure_logging", "set_random_seed"]
