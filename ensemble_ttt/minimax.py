"""Exact minimax solver with alpha-beta pruning.

Scores are depth-aware so faster wins and slower losses are preferred:
a win for the maximizing side is worth ``10 - depth``, a loss ``depth - 10``
and a draw ``0``.  The children of the root are at depth 0.
"""
from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from .game import (
    BoardState,
    IllegalMoveError,
    Mark,
    numeric_legal_moves,
    numeric_winner,
)

WIN_SCORE = 10


class _Search:
    """One search over a scratch board; owns the node count of that call."""

    def __init__(self, board: List[int]) -> None:
        self.board = board
        self.nodes = 0

    def terminal_score(self, depth: int) -> Optional[int]:
        winner = numeric_winner(self.board)
        if winner == 1:
            return WIN_SCORE - depth
        if winner == -1:
            return depth - WIN_SCORE
        if 0 not in self.board:
            return 0
        return None

    def alphabeta(self, depth: int, maximizing: bool, alpha: float, beta: float) -> float:
        self.nodes += 1
        score = self.terminal_score(depth)
        if score is not None:
            return score

        board = self.board
        if maximizing:
            best = -math.inf
            for move in numeric_legal_moves(board):
                board[move] = 1
                value = self.alphabeta(depth + 1, False, alpha, beta)
                board[move] = 0
                best = max(best, value)
                alpha = max(alpha, value)
                if beta <= alpha:
                    break
            return best

        best = math.inf
        for move in numeric_legal_moves(board):
            board[move] = -1
            value = self.alphabeta(depth + 1, True, alpha, beta)
            board[move] = 0
            best = min(best, value)
            beta = min(beta, value)
            if beta <= alpha:
                break
        return best

    def full_width(self, depth: int, maximizing: bool) -> int:
        self.nodes += 1
        score = self.terminal_score(depth)
        if score is not None:
            return score

        board = self.board
        values = []
        for move in numeric_legal_moves(board):
            board[move] = 1 if maximizing else -1
            values.append(self.full_width(depth + 1, not maximizing))
            board[move] = 0
        return max(values) if maximizing else min(values)


class Evaluator:
    """Exhaustive adversarial search over the full game tree.

    The evaluator keeps no per-search state, so one instance can serve the
    foreground and the self-play thread at the same time.
    """

    def best_move(self, state: BoardState, maximizing_side: Optional[Mark] = None) -> int:
        scores = self.score_moves(state, maximizing_side)
        best_move = -1
        best_score = -math.inf
        for move in sorted(scores):
            if scores[move] > best_score:
                best_score = scores[move]
                best_move = move
        return best_move

    def score_moves(
        self,
        state: BoardState,
        maximizing_side: Optional[Mark] = None,
        prune: bool = True,
    ) -> Dict[int, int]:
        return self.evaluate(state, maximizing_side, prune)[0]

    def evaluate(
        self,
        state: BoardState,
        maximizing_side: Optional[Mark] = None,
        prune: bool = True,
    ) -> Tuple[Dict[int, int], int]:
        """Return the exact minimax score of every legal move and the nodes visited.

        The maximizing side plays the move; scores are from its point of view.
        ``prune=False`` runs the full-width reference search.
        """

        if state.is_terminal():
            raise IllegalMoveError("Cannot search a finished game")
        side = maximizing_side or state.to_move
        search = _Search(list(state.to_numeric(side)))
        mover = 1 if state.to_move is side else -1

        scores: Dict[int, int] = {}
        for move in numeric_legal_moves(search.board):
            search.board[move] = mover
            if prune:
                score = search.alphabeta(0, mover != 1, -math.inf, math.inf)
            else:
                score = search.full_width(0, mover != 1)
            search.board[move] = 0
            scores[move] = int(score)
        return scores, search.nodes


__all__ = ["Evaluator", "WIN_SCORE"]
