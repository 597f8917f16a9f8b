import pickle

import numpy as np
import pytest

from symbolic_search import ConfigurationError, HallOfFame, Options, PopMember
from symbolic_search.expression_tree import Expression, VariableNode, ConstantNode, BinaryOpNode, UnaryOpNode
from symbolic_search.hall_of_fame import (
    choose_best, format_hall_of_fame, pareto_scores, string_dominating_pareto_curve
)


def member_of_size(size: int, loss: float) -> PopMember:
    node = VariableNode(0)
    for _ in range(size - 1):
        node = UnaryOpNode('cos', node)
    return PopMember(Expression(node), score=loss, loss=loss)


@pytest.fixture
def options():
    return Options(unary_operators=('cos',), maxsize=10)


def test_update_keeps_lowest_loss(options):
    hof = HallOfFame(options)
    assert hof.update(member_of_size(3, 1.0))
    assert not hof.update(member_of_size(3, 2.0))
    assert not hof.update(member_of_size(3, 1.0))
    assert hof.update(member_of_size(3, 0.5))
    assert hof.members[2].loss == 0.5


def test_slot_loss_never_increases(options):
    hof = HallOfFame(options)
    rng = np.random.default_rng(0)
    history = {}
    for _ in range(300):
        size = int(rng.integers(1, 13))
        hof.update(member_of_size(size, float(rng.exponential())))
        for i, exists in enumerate(hof.exists):
            if exists:
                assert hof.members[i].loss <= history.get(i, np.inf)
                history[i] = hof.members[i].loss


def test_entries_are_deep_copies(options):
    hof = HallOfFame(options)
    candidate = member_of_size(2, 1.0)
    hof.update(candidate)
    candidate.tree.root = ConstantNode(5.0)
    assert hof.members[1].tree.to_string() == "cos(x0)"


def test_rejected_candidates(options):
    hof = HallOfFame(options)
    assert not hof.update(member_of_size(13, 0.1))  # beyond maxsize + MAX_DEGREE
    assert not hof.update(member_of_size(2, np.inf))
    assert not hof.update(member_of_size(2, np.nan))
    assert hof.is_empty()
    with pytest.raises(ConfigurationError):
        hof.update(member_of_size(2, -1.0))


def test_pareto_frontier_is_strictly_decreasing(options):
    hof = HallOfFame(options)
    for size, loss in [(1, 4.0), (2, 5.0), (3, 2.0), (4, 2.0), (6, 0.5), (9, 0.7)]:
        hof.update(member_of_size(size, loss))
    frontier = hof.pareto_frontier()
    assert [m.tree.size() for m in frontier] == [1, 3, 6]
    losses = [m.loss for m in frontier]
    assert all(later < earlier for earlier, later in zip(losses, losses[1:]))


def test_pareto_scores():
    scores = pareto_scores([1.0, 0.1], [1, 3])
    assert scores[0] == pytest.approx(0.0, abs=1e-8)
    assert scores[1] == pytest.approx(-np.log(0.1 + 1e-10) / 2)
    with_baseline = pareto_scores([1.0], [2], baseline_loss=np.e ** 2)
    assert with_baseline[0] == pytest.approx(1.0, rel=1e-6)
    assert pareto_scores([0.0, 0.0], [1, 2])[1] == 0.0


def test_format_and_choose_best(options):
    hof = HallOfFame(options)
    for size, loss in [(1, 1.0), (3, 0.1), (5, 0.09)]:
        hof.update(member_of_size(size, loss))
    table = format_hall_of_fame(hof, options, ['a'])
    assert table['complexities'] == [1, 3, 5]
    assert table['strings'][0] == "a"
    assert choose_best(table, "accuracy") == 2
    assert choose_best(table, "score") == 1
    assert choose_best(table, "best") == 1
    assert choose_best(table, lambda t: 0) == 0
    with pytest.raises(ConfigurationError):
        choose_best(table, "fastest")

    empty = format_hall_of_fame(HallOfFame(options), options)
    assert choose_best(empty) is None


def test_string_table(options):
    hof = HallOfFame(options)
    hof.update(PopMember(Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0))), 0.0, 0.0))
    text = string_dominating_pareto_curve(hof, options, ['a'])
    assert text.startswith("Hall of Fame:")
    assert "(a * a)" in text


def test_hall_of_fame_survives_pickling(options):
    hof = HallOfFame(options)
    hof.update(member_of_size(2, 0.3))
    restored = pickle.loads(pickle.dumps(hof))
    assert restored.members[1].loss == 0.3
    assert restored.update(member_of_size(2, 0.1))
