import numpy as np
import pytest

from symbolic_search import MutationFailure, MutationType, MutationWeights, Options, PopMember
from symbolic_search.check_constraints import check_constraints
from symbolic_search.constant_optimization import optimize_constants
from symbolic_search.dataset import Dataset
from symbolic_search.expression_tree import Expression, VariableNode, ConstantNode, BinaryOpNode, UnaryOpNode
from symbolic_search.generator import ExpressionGenerator
from symbolic_search.genetic_ops import (
    mutate_constant, mutate_operator, delete_random_op, insert_random_op, crossover_trees
)
from symbolic_search.adaptive_parsimony import RunningSearchStatistics
from symbolic_search.mutate import (
    acceptance_probability, condition_mutation_weights, next_generation, crossover_generation
)


def only(name: str, **overrides) -> MutationWeights:
    weights = {m.value: 0.0 for m in MutationType}
    weights[name] = 1.0
    weights.update(overrides)
    return MutationWeights(**weights)


def make_options(weights: MutationWeights, **kwargs) -> Options:
    settings = dict(binary_operators=('+', '*'), unary_operators=('cos',), maxsize=10,
                    population_size=20, tournament_selection_n=5, mutation_weights=weights,
                    use_frequency=False, parallelism="serial", seed=0, verbosity=0)
    settings.update(kwargs)
    return Options(**settings)


def parent_member(dataset, options):
    tree = Expression(BinaryOpNode('+', BinaryOpNode('*', ConstantNode(0.7), VariableNode(0)),
                                   VariableNode(1)))
    return PopMember.from_tree(tree, dataset, options)


def test_do_nothing_copies_parent_exactly(quadratic_dataset, rng):
    options = make_options(only('do_nothing'))
    parent = parent_member(quadratic_dataset, options)
    child, accepted, _ = next_generation(quadratic_dataset, parent, 1.0, options.maxsize, options, rng)
    assert accepted
    assert child.tree == parent.tree
    assert child.tree is not parent.tree
    assert np.float64(child.loss).tobytes() == np.float64(parent.loss).tobytes()


@pytest.mark.parametrize("name", ['mutate_constant', 'mutate_operator', 'add_node', 'insert_node',
                                  'delete_node', 'simplify', 'randomize'])
def test_children_respect_constraints(quadratic_dataset, rng, name):
    options = make_options(only(name))
    parent = parent_member(quadratic_dataset, options)
    original = parent.tree.copy()
    for _ in range(30):
        child, accepted, num_evals = next_generation(quadratic_dataset, parent, 1.0,
                                                     options.maxsize, options, rng)
        assert parent.tree == original
        assert child.loss >= 0
        if accepted:
            assert check_constraints(child.tree, options)
            assert np.isfinite(child.loss)
            assert num_evals > 0


def test_failed_mutation_returns_parent_or_raises(quadratic_dataset, rng):
    options = make_options(only('delete_node'))
    leaf = PopMember.from_tree(Expression(VariableNode(0)), quadratic_dataset, options)
    child, accepted, _ = next_generation(quadratic_dataset, leaf, 1.0, options.maxsize, options, rng)
    assert not accepted
    assert child.tree == leaf.tree

    strict = make_options(only('delete_node'), strict_mutations=True)
    with pytest.raises(MutationFailure):
        next_generation(quadratic_dataset, leaf, 1.0, strict.maxsize, strict, rng)


def test_weights_are_conditioned_on_the_parent(quadratic_dataset):
    options = make_options(MutationWeights(optimize=1.0), should_optimize_constants=False)
    leaf = PopMember.from_tree(Expression(VariableNode(0)), quadratic_dataset, options)
    weights = condition_mutation_weights(options.mutation_weights.as_array(), leaf, options, curmaxsize=1)
    index = {m: i for i, m in enumerate(MutationType)}
    for zeroed in (MutationType.MUTATE_CONSTANT, MutationType.MUTATE_OPERATOR, MutationType.ADD_NODE,
                   MutationType.INSERT_NODE, MutationType.OPTIMIZE):
        assert weights[index[zeroed]] == 0.0
    assert weights[index[MutationType.DELETE_NODE]] > 0


def test_mutation_primitives(small_options, rng):
    tree = Expression(BinaryOpNode('+', ConstantNode(2.0), UnaryOpNode('cos', VariableNode(0))))
    mutated = mutate_constant(tree.copy(), 1.0, small_options, rng)
    assert mutated.get_constants()[0] != 2.0

    swapped = mutate_operator(tree.copy(), small_options, rng)
    assert isinstance(swapped.root, BinaryOpNode) and isinstance(swapped.root.right, UnaryOpNode)

    generator = ExpressionGenerator(small_options, 1, rng)
    assert insert_random_op(tree.copy(), generator).size() > tree.size()
    assert delete_random_op(Expression(VariableNode(0)), generator) is None
    assert mutate_constant(Expression(VariableNode(0)), 1.0, small_options, rng) is None


def test_crossover_leaves_parents_untouched(quadratic_dataset, rng):
    options = make_options(MutationWeights())
    a = Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0)))
    b = Expression(UnaryOpNode('cos', BinaryOpNode('+', VariableNode(1), ConstantNode(1.0))))
    a_before, b_before = a.copy(), b.copy()
    child1, child2 = crossover_trees(a, b, rng)
    assert a == a_before and b == b_before
    assert child1.size() + child2.size() == a.size() + b.size()

    m1 = PopMember.from_tree(a, quadratic_dataset, options)
    m2 = PopMember.from_tree(b, quadratic_dataset, options)
    c1, c2, accepted, num_evals = crossover_generation(m1, m2, quadratic_dataset, options.maxsize, options, rng)
    assert accepted and num_evals == 2
    assert check_constraints(c1.tree, options) and check_constraints(c2.tree, options)


def test_constant_optimization_recovers_coefficient(rng):
    X = np.linspace(-1, 1, 50).reshape(-1, 1)
    dataset = Dataset(X, 2.5 * X[:, 0])
    options = make_options(MutationWeights(), optimizer_iterations=50)
    member = PopMember.from_tree(Expression(BinaryOpNode('*', ConstantNode(1.0), VariableNode(0))),
                                 dataset, options)
    improved, num_evals = optimize_constants(dataset, member, options, rng)
    assert num_evals > 0
    assert improved.tree.get_constants()[0] == pytest.approx(2.5, abs=1e-3)
    assert improved.loss < member.loss
    assert member.tree.get_constants() == (1.0,)

    gradient_free = make_options(MutationWeights(), optimizer_algorithm="Nelder-Mead", optimizer_iterations=200)
    improved, _ = optimize_constants(dataset, member, gradient_free, rng)
    assert improved.tree.get_constants()[0] == pytest.approx(2.5, abs=1e-2)


def test_optimize_mutation_is_accepted(quadratic_dataset, rng):
    options = make_options(only('optimize'))
    parent = parent_member(quadratic_dataset, options)
    child, accepted, _ = next_generation(quadratic_dataset, parent, 1.0, options.maxsize, options, rng)
    assert accepted
    assert child.loss <= parent.loss
    assert child is not parent


def test_annealing_acceptance():
    options = make_options(MutationWeights(), annealing=True, alpha=0.1)
    parent = PopMember(Expression(VariableNode(0)), score=1.0, loss=1.0)

    assert acceptance_probability(parent, 1.5, 1, 0.5, options, None) == pytest.approx(np.exp(-0.5 / 0.05))
    assert acceptance_probability(parent, 0.5, 1, 0.5, options, None) > 1.0
    assert acceptance_probability(parent, 1.5, 1, 0.0, options, None) == 0.0
    assert acceptance_probability(parent, 0.5, 1, 0.0, options, None) == 1.0
    assert acceptance_probability(parent, 1.5, 1, 0.5, make_options(MutationWeights()), None) == 1.0


def test_frequency_acceptance_favours_rare_complexities():
    options = make_options(MutationWeights(), use_frequency=True)
    stats = RunningSearchStatistics(options)
    for _ in range(1000):
        stats.update_frequencies(1)
    stats.normalize()
    leaf = PopMember(Expression(VariableNode(0)), score=1.0, loss=1.0)
    product = PopMember(Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0))), score=1.0, loss=1.0)

    to_rare = acceptance_probability(leaf, 1.0, 3, 1.0, options, stats)
    to_common = acceptance_probability(product, 1.0, 1, 1.0, options, stats)
    assert to_rare == pytest.approx(stats.frequency_of(1) / stats.frequency_of(3))
    assert to_rare > 1.0 > to_common


def test_operator_mutation_always_changes_the_operator(small_options, rng):
    for _ in range(50):
        tree = Expression(BinaryOpNode('+', VariableNode(0), ConstantNode(1.0)))
        assert mutate_operator(tree, small_options, rng).root.operator != '+'

    single = Options(binary_operators=('*',), maxsize=10)
    tree = Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0)))
    assert mutate_operator(tree, single, rng).root.operator == '*'
