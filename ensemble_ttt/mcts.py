"""Monte Carlo Tree Search with UCT exploration and random rollouts."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .game import (
    BoardState,
    InvalidStateError,
    NumericBoard,
    numeric_is_terminal,
    numeric_legal_moves,
    numeric_winner,
)

ROOT = 0


@dataclass
class MCTSConfig:
    iterations: int = 500
    exploration: float = math.sqrt(2)


@dataclass
class Node:
    """A search node; links to other nodes are indices into the search arena."""

    board: NumericBoard
    to_play: int
    parent: Optional[int] = None
    move: Optional[int] = None
    visits: int = 0
    score: float = 0.0
    untried: List[int] = field(default_factory=list)
    children: Dict[int, int] = field(default_factory=dict)

    @property
    def fully_expanded(self) -> bool:
        return not self.untried

    def win_ratio(self) -> float:
        return 0.0 if self.visits == 0 else self.score / self.visits


class TreeSearch:
    """UCT search rooted at the side to move, which is ``+1`` in the tree.

    Each call builds its own node arena, so one instance can serve the
    foreground and the self-play thread at the same time.
    """

    def __init__(
        self,
        config: Optional[MCTSConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or MCTSConfig()
        self.rng = rng or np.random.default_rng()

    def best_move(self, state: BoardState, iterations: Optional[int] = None) -> Optional[int]:
        if state.is_terminal() or not state.legal_moves():
            return None
        nodes = self._search(state, iterations)
        return self._read_out(nodes)

    def root_statistics(self, state: BoardState, iterations: Optional[int] = None) -> Dict[int, int]:
        """Visit counts per root move after a fresh search."""

        if state.is_terminal():
            return {}
        nodes = self._search(state, iterations)
        return {move: nodes[i].visits for move, i in nodes[ROOT].children.items()}

    # ------------------------------------------------------------------
    def _search(self, state: BoardState, iterations: Optional[int]) -> List[Node]:
        budget = self.config.iterations if iterations is None else iterations
        if budget < 1:
            raise InvalidStateError(f"iteration budget must be at least 1, got {budget}")
        nodes: List[Node] = []
        self._new_node(nodes, state.to_numeric(), to_play=1)
        for _ in range(budget):
            leaf = self._select(nodes)
            child = self._expand(nodes, leaf)
            target = leaf if child is None else child
            self._backpropagate(nodes, target, self._simulate(nodes[target]))
        return nodes

    @staticmethod
    def _new_node(
        nodes: List[Node],
        board: NumericBoard,
        to_play: int,
        parent: Optional[int] = None,
        move: Optional[int] = None,
    ) -> int:
        untried = [] if numeric_is_terminal(board) else numeric_legal_moves(board)
        nodes.append(Node(board, to_play, parent, move, untried=untried))
        return len(nodes) - 1

    @staticmethod
    def _uct(parent: Node, child: Node, exploration: float) -> float:
        # Scores are stored from the root's point of view; the side choosing
        # at ``parent`` maximises its own outcome.
        ratio = child.win_ratio() * parent.to_play
        if exploration == 0.0:
            return ratio
        return ratio + exploration * math.sqrt(math.log(parent.visits) / child.visits)

    def _select(self, nodes: List[Node]) -> int:
        index = ROOT
        node = nodes[index]
        while node.fully_expanded and node.children:
            best_value = -math.inf
            best_index = index
            for child_index in node.children.values():
                value = self._uct(node, nodes[child_index], self.config.exploration)
                if value > best_value:
                    best_value = value
                    best_index = child_index
            index = best_index
            node = nodes[index]
        return index

    def _expand(self, nodes: List[Node], index: int) -> Optional[int]:
        node = nodes[index]
        if not node.untried:
            return None
        move = node.untried.pop()
        board = list(node.board)
        board[move] = node.to_play
        child = self._new_node(nodes, tuple(board), -node.to_play, parent=index, move=move)
        node.children[move] = child
        return child

    def _simulate(self, node: Node) -> int:
        board = list(node.board)
        player = node.to_play
        while not numeric_is_terminal(board):
            moves = numeric_legal_moves(board)
            board[moves[int(self.rng.integers(len(moves)))]] = player
            player = -player
        return numeric_winner(board)

    @staticmethod
    def _backpropagate(nodes: List[Node], index: Optional[int], result: int) -> None:
        while index is not None:
            node = nodes[index]
            node.visits += 1
            node.score += result
            index = node.parent

    def _read_out(self, nodes: List[Node]) -> Optional[int]:
        root = nodes[ROOT]
        best_move: Optional[int] = None
        best_key = None
        for move in sorted(root.children):
            child = nodes[root.children[move]]
            key = (child.visits, self._uct(root, child, 0.0))
            if best_key is None or key > best_key:
                best_key = key
                best_move = move
        return best_move


__all__ = ["MCTSConfig", "Node", "TreeSearch"]
