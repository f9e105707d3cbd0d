import threading
from typing import Iterator, List, Set

import pytest

from ensemble_ttt.config import EngineConfig, EnsembleConfig, LearningConfig, MCTSConfig
from ensemble_ttt.engine import Engine
from ensemble_ttt.ensemble import immediate_wins
from ensemble_ttt.game import (
    CORNERS,
    BoardState,
    EmptyCandidateError,
    IllegalMoveError,
    InvalidStateError,
    Mark,
    WIN_LINES,
)

O_WINS = "XXOXO_O__"
X_WINS = "XXXOO____"
DRAW = "XOXXOOOXX"


def test_centre_opening_is_answered_in_a_corner(engine):
    board = BoardState.empty().apply_move(4)
    assert engine.choose_move(board) in CORNERS


def test_takes_the_win_from_a_plain_list(engine):
    assert engine.choose_move(["X", "X", None, "O", "O", None, None, None, None]) == 2
    assert engine.ensemble.latest_decision().forced == "win"


def test_blocks_the_opponent(engine):
    assert engine.choose_move("XX__O____") == 2
    assert engine.ensemble.latest_decision().forced == "block"


def test_immediate_wins_lists_every_completion():
    board = BoardState.from_key("X_X_OOX__")
    assert immediate_wins(board, Mark.X) == [1, 3]
    assert immediate_wins(board, Mark.O) == [3]


def test_finished_board_has_no_move(engine):
    with pytest.raises(EmptyCandidateError):
        engine.choose_move(DRAW)
    with pytest.raises(EmptyCandidateError):
        engine.choose_move(X_WINS)


def test_drawn_board_counts_as_draw(engine):
    diagnostics = engine.record_outcome(DRAW)
    assert diagnostics.total_games == 1
    assert diagnostics.draws == 1
    assert diagnostics.win_rate == 0.0


def test_outcomes_are_counted_from_engine_side(engine):
    engine.record_outcome(O_WINS)
    engine.record_outcome(X_WINS, "X")
    diagnostics = engine.record_outcome(DRAW, None)
    assert (diagnostics.wins, diagnostics.losses, diagnostics.draws) == (1, 1, 1)
    assert diagnostics.win_rate == pytest.approx(1 / 3)


def test_contradicting_winner_is_rejected(engine):
    with pytest.raises(InvalidStateError):
        engine.record_outcome(X_WINS, "O")
    with pytest.raises(InvalidStateError):
        engine.record_outcome(X_WINS, "draw")


def test_weights_stay_normalised_and_shift(engine):
    for _ in range(30):
        engine.record_outcome(O_WINS)
    weights = engine.get_diagnostics().strategy_weights
    assert sum(weights.values()) == pytest.approx(1.0)
    assert weights["exhaustive"] > 0.2

    engine.reset_learning()
    for _ in range(30):
        engine.record_outcome(X_WINS)
    weights = engine.get_diagnostics().strategy_weights
    assert sum(weights.values()) == pytest.approx(1.0)
    assert weights["sampling"] > 0.4


def test_exploration_decays_per_game(engine):
    engine.record_outcome(DRAW)
    assert engine.get_diagnostics().exploration_rate == pytest.approx(0.3 * 0.995)


def test_diagnostics_are_a_pure_read(engine):
    engine.record_outcome(O_WINS)
    assert engine.get_diagnostics() == engine.get_diagnostics()


def test_diagnostics_mapping_uses_camel_case(engine):
    data = engine.get_diagnostics().as_dict()
    assert data["totalGames"] == 0
    assert data["strategyWeights"] == pytest.approx(
        {"exhaustive": 0.2, "sampling": 0.4, "learned": 0.4}
    )
    assert data["networkInfo"]["layers"] == [27, 64, 32, 16, 9]
    assert data["isSelfPlayTraining"] is False


def test_observe_move_updates_store_and_table(engine):
    before = BoardState.empty()
    after = before.apply_move(0).apply_move(4)
    experience = engine.observe_move(before, 0, after)
    assert experience.reward == 0.0
    diagnostics = engine.get_diagnostics()
    assert diagnostics.experience_buffer_size == 1
    assert diagnostics.q_table_size == 2


@pytest.mark.parametrize(
    "before, action, after",
    [
        ("X________", 0, "XO_______"),
        ("_________", 1, "X___O____"),
        (X_WINS, 5, X_WINS),
    ],
)
def test_observe_move_rejects_inconsistent_transitions(engine, before, action, after):
    with pytest.raises(IllegalMoveError):
        engine.observe_move(before, action, after)


def test_training_runs_on_schedule():
    config = EngineConfig(
        search=MCTSConfig(iterations=10),
        learning=LearningConfig(batch_size=4, train_every=2),
        seed=1,
    )
    engine = Engine(config)
    before = BoardState.empty()
    after = before.apply_move(0).apply_move(1)
    steps = []
    for _ in range(8):
        engine.observe_move(before, 0, after)
        steps.append(engine.estimator.train_steps)
    assert steps == [0, 0, 0, 1, 1, 2, 2, 3]


def test_reset_learning_restores_initial_state(engine):
    before = BoardState.empty()
    engine.observe_move(before, 0, before.apply_move(0).apply_move(4))
    engine.record_outcome(O_WINS)
    engine.reset_learning()

    diagnostics = engine.get_diagnostics()
    assert diagnostics.total_games == 0
    assert diagnostics.experience_buffer_size == 0
    assert diagnostics.q_table_size == 0
    assert diagnostics.exploration_rate == pytest.approx(0.3)
    assert diagnostics.strategy_weights == pytest.approx(
        {"exhaustive": 0.2, "sampling": 0.4, "learned": 0.4}
    )


def test_engines_do_not_share_state(fast_config):
    first = Engine(fast_config)
    second = Engine(fast_config)
    first.record_outcome(O_WINS)
    assert second.get_diagnostics().total_games == 0
    assert fast_config.learning.seed is None


def test_engine_side_must_be_a_player():
    with pytest.raises(InvalidStateError):
        Engine(side=Mark.EMPTY)


def reachable_positions() -> Iterator[BoardState]:
    seen: Set[str] = set()
    stack = [BoardState.empty()]
    while stack:
        board = stack.pop()
        yield board
        for move in board.legal_moves():
            child = board.apply_move(move)
            if child.to_key() not in seen and not child.is_terminal():
                seen.add(child.to_key())
                stack.append(child)


def completing_cells(board: BoardState, mark: Mark) -> List[int]:
    cells = board.cells
    found = []
    for index in board.legal_moves():
        for line in WIN_LINES:
            if index in line and all(cells[i] is mark for i in line if i != index):
                found.append(index)
                break
    return found


def test_forced_moves_on_every_reachable_board():
    engine = Engine(EngineConfig(search=MCTSConfig(iterations=5), seed=2))
    checked = 0
    for board in reachable_positions():
        wins = completing_cells(board, board.to_move)
        blocks = completing_cells(board, board.to_move.opponent())
        if not wins and not blocks:
            continue
        move = engine.choose_move(board)
        if wins:
            assert move in wins, board.to_key()
        else:
            assert move in blocks, board.to_key()
        checked += 1
    assert checked > 1000


def test_table_strategy_drives_the_move():
    config = EngineConfig(
        search=MCTSConfig(iterations=5),
        ensemble=EnsembleConfig(
            exhaustive_weight=0.0,
            sampling_weight=0.0,
            learned_weight=1.0,
            center_bonus=0.0,
            corner_bonus=0.0,
            learned_strategy="table",
        ),
        seed=3,
    )
    engine = Engine(config)
    board = BoardState.empty().apply_move(4)
    engine.estimator.epsilon = 0.0
    engine.estimator.q_values(board)[1] = 1e6

    assert engine.choose_move(board) == 1
    assert engine.ensemble.latest_decision().candidates["learned"] == 1


def test_network_strategy_ignores_the_table(engine):
    board = BoardState.empty().apply_move(4)
    engine.estimator.epsilon = 0.0
    engine.estimator.q_values(board)[1] = 1e6
    decision = engine.ensemble.decide(board)
    assert decision.candidates["learned"] == engine.estimator.network_best_move(board)


def test_unknown_learned_strategy_is_rejected():
    with pytest.raises(ValueError):
        Engine(EngineConfig(ensemble=EnsembleConfig(learned_strategy="oracle")))


def test_learning_progress_and_stage(engine):
    diagnostics = engine.get_diagnostics()
    assert diagnostics.learning_progress == 0
    assert diagnostics.current_strategy == "Exploring"

    for _ in range(150):
        engine.record_outcome(DRAW)
    data = engine.get_diagnostics().as_dict()
    assert data["learningProgress"] == 100
    # 0.3 * 0.995 ** 150 is about 0.141
    assert data["currentStrategy"] == "Learning"

    for _ in range(300):
        engine.record_outcome(DRAW)
    assert engine.get_diagnostics().current_strategy == "Expert"


@pytest.mark.parametrize("winner", ["x", "X", Mark.X])
def test_winner_accepts_board_symbols(engine, winner):
    diagnostics = engine.record_outcome(X_WINS, winner)
    assert diagnostics.losses == 1


def test_blank_winner_symbol_means_draw(engine):
    assert engine.record_outcome(DRAW, "_").draws == 1


def test_side_accepts_lowercase_symbol():
    assert Engine(side="x").side is Mark.X


def test_concurrent_decisions_keep_their_own_records(fast_config):
    engine = Engine(fast_config)
    boards = {"win": BoardState.from_key("XX_OO____"), "block": BoardState.from_key("XX__O____")}
    failures: List[str] = []

    def worker(expected: str) -> None:
        for _ in range(10):
            decision = engine.ensemble.decide(boards[expected])
            if decision.forced != expected or decision.move != 2:
                failures.append(expected)

    threads = [threading.Thread(target=worker, args=(name,)) for name in boards]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert failures == []
    assert engine.ensemble.latest_decision().forced in boards
