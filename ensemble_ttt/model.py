"""Feed-forward Q-value approximator used by the learned strategy."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch
from torch import nn

from .features import INPUT_SIZE
from .game import BOARD_CELLS, InvalidStateError

__all__ = ["DEFAULT_LAYERS", "QValueNet"]

DEFAULT_LAYERS: Tuple[int, ...] = (INPUT_SIZE, 64, 32, 16, BOARD_CELLS)


class QValueNet(nn.Module):
    """Fully connected network: ReLU hidden layers and a linear output layer.

    Only :meth:`output_layer_update` changes the weights; it corrects the
    output layer and leaves the hidden layers as initialised.  The correction
    pairs output-layer input ``j`` with feature ``j`` rather than with the
    hidden activation, so only the first ``fan_in`` features take part.
    """

    def __init__(self, layers: Sequence[int] = DEFAULT_LAYERS, seed: Optional[int] = None) -> None:
        super().__init__()
        if len(layers) < 2 or layers[-1] != BOARD_CELLS:
            raise InvalidStateError("layers must end with one output per cell")
        self.layers = tuple(int(size) for size in layers)

        hidden: List[nn.Module] = []
        for fan_in, fan_out in zip(self.layers[:-2], self.layers[1:-1]):
            hidden.append(nn.Linear(fan_in, fan_out))
            hidden.append(nn.ReLU())
        self.trunk = nn.Sequential(*hidden)
        self.head = nn.Linear(self.layers[-2], self.layers[-1])
        self.requires_grad_(False)
        self._init_parameters(seed)

    def _init_parameters(self, seed: Optional[int]) -> None:
        with torch.random.fork_rng(devices=[]):
            if seed is not None:
                torch.manual_seed(seed)
            for module in self.modules():
                if isinstance(module, nn.Linear):
                    nn.init.xavier_uniform_(module.weight)
                    nn.init.zeros_(module.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:  # type: ignore[override]
        return self.head(self.trunk(x))

    def _as_tensor(self, features: np.ndarray) -> torch.Tensor:
        arr = np.asarray(features, dtype=np.float32)
        if arr.shape != (self.layers[0],):
            raise InvalidStateError(
                f"feature vector must have shape ({self.layers[0]},), got {arr.shape}"
            )
        return torch.from_numpy(arr)

    @torch.no_grad()
    def q_values(self, features: np.ndarray) -> np.ndarray:
        return self.forward(self._as_tensor(features)).numpy().astype(np.float64)

    @torch.no_grad()
    def output_layer_update(
        self, features: np.ndarray, action: int, target: float, learning_rate: float
    ) -> float:
        """Move ``Q(features)[action]`` towards ``target``; return the error."""

        if not 0 <= action < BOARD_CELLS:
            raise InvalidStateError(f"action must be in range 0..8, got {action!r}")
        x = self._as_tensor(features)
        current = float(self.forward(x)[action])
        error = target - current
        fan_in = self.head.in_features
        paired = torch.zeros(fan_in)
        width = min(fan_in, x.numel())
        paired[:width] = x[:width]
        self.head.weight[action] += learning_rate * error * paired
        self.head.bias[action] += learning_rate * error
        return error

    def total_weights(self) -> int:
        return sum(module.weight.numel() for module in self.modules() if isinstance(module, nn.Linear))
