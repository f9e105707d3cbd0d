import numpy as np
import pytest
import torch

from ensemble_ttt.config import LearningConfig
from ensemble_ttt.features import INPUT_SIZE, encode_features
from ensemble_ttt.game import BoardState, InvalidStateError
from ensemble_ttt.learning import LearnedEstimator
from ensemble_ttt.model import QValueNet
from ensemble_ttt.replay import make_experience


def make_estimator(**overrides) -> LearnedEstimator:
    config = LearningConfig(seed=5, **overrides)
    return LearnedEstimator(config, rng=np.random.default_rng(5))


def test_q_update_arithmetic():
    estimator = make_estimator()
    before = BoardState.empty()
    after = before.apply_move(0).apply_move(4)
    assert estimator.update_q(before, 0, after, 10.0) == pytest.approx(1.0)
    assert estimator.update_q(before, 0, after, 10.0) == pytest.approx(1.9)
    assert estimator.table_size() == 2


def test_q_update_bootstraps_from_next_state():
    estimator = make_estimator()
    before = BoardState.empty()
    after = before.apply_move(0).apply_move(4)
    estimator.q_values(after)[2] = 5.0
    # 0 + 0.1 * (0 + 0.9 * 5 - 0)
    assert estimator.update_q(before, 0, after, 0.0) == pytest.approx(0.45)


def test_greedy_table_move_follows_values():
    estimator = make_estimator()
    board = BoardState.empty()
    estimator.q_values(board)[7] = 1.0
    assert estimator.table_best_move(board, explore=False) == 7
    assert estimator.table_best_move(BoardState.from_key("XXXOO____")) is None


def test_exploration_decays_to_floor():
    estimator = make_estimator()
    assert estimator.epsilon == pytest.approx(0.3)
    assert estimator.decay_exploration() == pytest.approx(0.3 * 0.995)
    for _ in range(2000):
        estimator.decay_exploration()
    assert estimator.epsilon == pytest.approx(0.05)


def test_network_move_is_legal():
    estimator = make_estimator()
    board = BoardState.from_key("XO_XO____")
    assert estimator.network_best_move(board) in board.legal_moves()
    assert estimator.network_best_move(BoardState.from_key("XOXXOOOXX")) is None


def test_training_only_touches_output_layer():
    estimator = make_estimator(learning_rate=0.01)
    trunk_before = [p.clone() for p in estimator.network.trunk.parameters()]
    head_before = [p.clone() for p in estimator.network.head.parameters()]

    board = BoardState.from_key("XX_OO____")
    batch = [make_experience(board, 2, board.apply_move(2))] * 4
    error = estimator.train(batch)

    assert error > 0.0
    assert estimator.train_steps == 1
    for before, after in zip(trunk_before, estimator.network.trunk.parameters()):
        assert torch.equal(before, after)
    assert any(
        not torch.equal(before, after)
        for before, after in zip(head_before, estimator.network.head.parameters())
    )


def test_repeated_training_reduces_error():
    estimator = make_estimator(learning_rate=0.01)
    board = BoardState.from_key("XX_OO____")
    batch = [make_experience(board, 2, board.apply_move(2))]
    first = estimator.train(batch)
    for _ in range(20):
        last = estimator.train(batch)
    assert last < first


def test_reset_restores_initial_state():
    estimator = make_estimator()
    q_before = estimator.network_q_values(BoardState.empty())
    board = BoardState.from_key("XX_OO____")
    estimator.train([make_experience(board, 2, board.apply_move(2))])
    estimator.update_q(board, 2, board.apply_move(2), 10.0)
    estimator.decay_exploration()

    estimator.reset()
    assert estimator.table_size() == 0
    assert estimator.epsilon == pytest.approx(0.3)
    assert estimator.train_steps == 0
    assert np.allclose(estimator.network_q_values(BoardState.empty()), q_before)


def test_network_shape_and_size():
    net = QValueNet(seed=1)
    assert net.layers == (27, 64, 32, 16, 9)
    assert net.total_weights() == 27 * 64 + 64 * 32 + 32 * 16 + 16 * 9
    assert net.q_values(np.zeros(INPUT_SIZE, dtype=np.float32)).shape == (9,)


def test_same_seed_gives_same_network():
    features = np.linspace(-0.5, 0.5, INPUT_SIZE, dtype=np.float32)
    assert np.allclose(QValueNet(seed=3).q_values(features), QValueNet(seed=3).q_values(features))


@pytest.mark.parametrize("layers", [(27,), (27, 16, 8)])
def test_bad_layer_sizes_are_rejected(layers):
    with pytest.raises(InvalidStateError):
        QValueNet(layers)


def test_wrong_feature_length_is_rejected():
    with pytest.raises(InvalidStateError):
        QValueNet(seed=1).q_values(np.zeros(18, dtype=np.float32))


def test_output_correction_scales_the_action_row_by_features():
    net = QValueNet(seed=2)
    board = BoardState.from_key("XX_OO____")
    features = encode_features(board.to_numeric())
    weight_before = net.head.weight.clone()
    bias_before = net.head.bias.clone()

    error = net.output_layer_update(features, 2, 10.0, 0.01)

    fan_in = net.head.in_features
    delta = net.head.weight - weight_before
    expected = 0.01 * error * torch.from_numpy(features[:fan_in])
    assert torch.allclose(delta[2], expected, atol=1e-6)
    # cell 1 holds a mark, cell 8 is empty
    assert delta[2, 1].item() != 0.0
    assert delta[2, 8].item() == 0.0
    assert torch.count_nonzero(torch.cat([delta[:2], delta[3:]])) == 0
    assert (net.head.bias - bias_before)[2].item() == pytest.approx(0.01 * error, rel=1e-5)
