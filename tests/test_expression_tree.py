import numpy as np
import pytest
import sympy as sp

from symbolic_search import Options
from symbolic_search.expression_tree import (
    Expression, VariableNode, ConstantNode, BinaryOpNode, UnaryOpNode, ExpressionSimplifier,
    canonical_operator
)
from symbolic_search.expression_tree.utils.tree_utils import (
    count_operator_nestedness, get_node_locations, replace_at
)
from symbolic_search.generator import ExpressionGenerator

X = np.linspace(0.5, 2.0, 7).reshape(-1, 1)


def test_evaluate_matches_numpy():
    tree = Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0)))
    values, completed = tree.evaluate(X)
    assert completed
    np.testing.assert_allclose(values, X[:, 0] ** 2)


def test_evaluate_reports_failure_instead_of_raising():
    tree = Expression(UnaryOpNode('log', UnaryOpNode('neg', VariableNode(0))))
    _, completed = tree.evaluate(X)
    assert not completed

    division = Expression(BinaryOpNode('/', VariableNode(0), ConstantNode(0.0)))
    _, completed = division.evaluate(X)
    assert not completed


def test_gradient_with_respect_to_constants():
    # 1.5 * x0 + 0.5
    tree = Expression(BinaryOpNode('+', BinaryOpNode('*', ConstantNode(1.5), VariableNode(0)),
                                   ConstantNode(0.5)))
    values, grad, completed = tree.evaluate_with_gradient(X)
    assert completed
    np.testing.assert_allclose(values, 1.5 * X[:, 0] + 0.5)
    assert grad.shape == (2, X.shape[0])
    np.testing.assert_allclose(grad[0], X[:, 0])
    np.testing.assert_allclose(grad[1], np.ones(X.shape[0]))


def test_gradient_with_respect_to_variables():
    tree = Expression(UnaryOpNode('sin', BinaryOpNode('*', VariableNode(0), VariableNode(0))))
    _, grad, completed = tree.evaluate_with_gradient(X, variable=True)
    assert completed
    np.testing.assert_allclose(grad[0], np.cos(X[:, 0] ** 2) * 2 * X[:, 0])


def test_constants_round_trip_in_depth_first_order():
    tree = Expression(BinaryOpNode('-', ConstantNode(1.0), BinaryOpNode('*', ConstantNode(2.0),
                                                                         ConstantNode(3.0))))
    assert tree.get_constants() == (1.0, 2.0, 3.0)
    tree.set_constants([4.0, 5.0, 6.0])
    assert tree.get_constants() == (4.0, 5.0, 6.0)
    with pytest.raises(ValueError):
        tree.set_constants([1.0])


def test_size_depth_and_copy_are_independent():
    tree = Expression(BinaryOpNode('+', VariableNode(0), UnaryOpNode('cos', ConstantNode(1.0))))
    assert tree.size() == 4
    assert tree.depth() == 3
    clone = tree.copy()
    assert clone == tree
    clone.root.left = ConstantNode(2.0)
    assert clone != tree


def test_to_string_and_sympy():
    tree = Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0)))
    assert tree.to_string(['a']) == "(a * a)"
    a = sp.Symbol('a')
    assert sp.simplify(tree.to_sympy(['a']) - a ** 2) == 0


def test_simplify_folds_constants_and_never_grows():
    tree = Expression(BinaryOpNode('*', BinaryOpNode('+', ConstantNode(2.0), ConstantNode(3.0)),
                                   UnaryOpNode('neg', UnaryOpNode('neg', VariableNode(0)))))
    simplified = ExpressionSimplifier.simplify_expression(tree)
    assert simplified.size() <= tree.size()
    assert simplified.size() == 3
    np.testing.assert_allclose(simplified.evaluate(X)[0], tree.evaluate(X)[0])
    # the input tree is left untouched
    assert tree.size() == 7


def test_simplify_merges_nested_commutative_constants():
    tree = Expression(BinaryOpNode('+', ConstantNode(1.0),
                                   BinaryOpNode('+', ConstantNode(2.0), VariableNode(0))))
    simplified = ExpressionSimplifier.simplify_expression(tree)
    assert simplified.size() == 3
    np.testing.assert_allclose(simplified.evaluate(X)[0], X[:, 0] + 3.0)


def test_simplify_keeps_non_finite_folds():
    tree = Expression(BinaryOpNode('/', ConstantNode(1.0), ConstantNode(0.0)))
    assert ExpressionSimplifier.simplify_expression(tree).size() == 3


def test_count_operator_nestedness():
    inner = UnaryOpNode('sin', VariableNode(0))
    node = UnaryOpNode('sin', BinaryOpNode('+', inner, UnaryOpNode('cos', VariableNode(0))))
    assert count_operator_nestedness(node, 'sin') == 2
    assert count_operator_nestedness(node, 'cos') == 1
    assert count_operator_nestedness(node, 'exp') == 0


def test_replace_at_root_and_child():
    tree = Expression(BinaryOpNode('+', VariableNode(0), ConstantNode(1.0)))
    locations = get_node_locations(tree.root)
    assert locations[0].parent is None
    right = [loc for loc in locations if loc.slot == 'right'][0]
    replace_at(tree, right, VariableNode(1))
    assert tree.to_string() == "(x0 + x1)"
    replace_at(tree, locations[0], ConstantNode(3.0))
    assert tree.size() == 1


def test_operator_aliases():
    assert canonical_operator('mult') == '*'
    assert canonical_operator('sin') == 'sin'


def test_repeated_simplification_preserves_outputs_on_random_trees():
    options = Options(binary_operators=('+', '-', '*'), unary_operators=('cos', 'neg'), maxsize=20)
    rng = np.random.default_rng(11)
    generator = ExpressionGenerator(options, 2, rng)
    inputs = rng.uniform(-2, 2, size=(32, 2))
    for _ in range(300):
        tree = generator.random_tree_fixed_size(int(rng.integers(1, 16)))
        once = ExpressionSimplifier.simplify_expression(tree)
        twice = ExpressionSimplifier.simplify_expression(once)
        assert twice.size() <= once.size() <= tree.size()

        expected, completed = tree.evaluate(inputs)
        if not completed:
            continue
        for simplified in (once, twice):
            values, ok = simplified.evaluate(inputs)
            assert ok
            np.testing.assert_allclose(values, expected, rtol=1e-9, atol=1e-9)
