import numpy as np
import pytest

from symbolic_search import ConfigurationError, Options, PopMember, Population
from symbolic_search.adaptive_parsimony import RunningSearchStatistics, get_cur_maxsize
from symbolic_search.evolution import s_r_cycle, optimize_and_simplify_population
from symbolic_search.expression_tree import Expression, VariableNode, ConstantNode
from symbolic_search.generator import ExpressionGenerator
from symbolic_search.regularized_evolution import reg_evol_cycle
from symbolic_search.expression_tree import BinaryOpNode
from symbolic_search.selection import adjusted_scores, select_parent, select_replacement


def test_random_population_is_scored(quadratic_dataset, small_options, rng):
    population = Population.random(quadratic_dataset, small_options, rng)
    assert population.n == small_options.population_size
    for member in population:
        assert member.loss >= 0
        assert np.isfinite(member.score) or member.loss == np.inf


def test_population_smaller_than_tournament_is_rejected(quadratic_dataset, small_options, rng):
    with pytest.raises(ConfigurationError):
        Population.random(quadratic_dataset, small_options, rng, population_size=3)


def test_generator_fixed_size(small_options, rng):
    generator = ExpressionGenerator(small_options, 2, rng)
    for size in range(1, 9):
        assert generator.random_tree_fixed_size(size).size() == size
    assert generator.random_tree(3).size() >= 4


def _two_member_population():
    good = PopMember(Expression(VariableNode(0)), score=1.0, loss=1.0)
    bad = PopMember(Expression(ConstantNode(0.0)), score=2.0, loss=2.0)
    return Population([bad, good])


def test_tournament_picks_best_and_replaces_weakest():
    options = Options(population_size=40, tournament_selection_n=40, tournament_selection_p=1.0,
                      use_frequency_in_tournament=False)
    population = _two_member_population()
    rng = np.random.default_rng(3)
    assert select_parent(population, options, rng) == 1
    assert select_replacement(population, options, rng) == 0


def test_prob_pick_first_fast_path():
    options = Options(population_size=40, tournament_selection_n=40, tournament_selection_p=0.01,
                      prob_pick_first=1.0, use_frequency_in_tournament=False)
    rng = np.random.default_rng(4)
    population = _two_member_population()
    assert all(select_parent(population, options, rng) == 1 for _ in range(20))


def test_best_sub_pop_is_a_deep_copy(quadratic_dataset, small_options, rng):
    population = Population.random(quadratic_dataset, small_options, rng)
    best = population.best_sub_pop(5)
    assert best.n == 5
    assert best[0].score == min(member.score for member in population)
    best[0].tree.root = ConstantNode(123.0)
    assert all(member.tree.to_string() != "123" for member in population)


def test_size_is_invariant_across_cycles(quadratic_dataset, small_options, rng):
    population = Population.random(quadratic_dataset, small_options, rng)
    stats = RunningSearchStatistics(small_options)
    for _ in range(5):
        population, num_evals = reg_evol_cycle(quadratic_dataset, population, 1.0,
                                               small_options.maxsize, small_options, rng, stats)
        assert population.n == small_options.population_size
        assert num_evals > 0
    population, best_seen, _ = s_r_cycle(quadratic_dataset, population, 5, small_options.maxsize,
                                         small_options, rng, stats)
    assert population.n == small_options.population_size
    assert not best_seen.is_empty()
    population, _ = optimize_and_simplify_population(quadratic_dataset, population, small_options, rng)
    assert population.n == small_options.population_size
    assert all(member.loss >= 0 for member in population)
    assert all(member.tree.size() <= small_options.maxsize for member in population)


def test_running_statistics_window():
    options = Options(maxsize=10)
    stats = RunningSearchStatistics(options, window_size=100)
    for _ in range(500):
        stats.update_frequencies(5)
    stats.update_frequencies(50)  # out of range, ignored
    stats.move_window()
    stats.normalize()
    assert stats.frequencies.sum() == pytest.approx(100)
    assert stats.frequencies.min() >= 1.0
    assert stats.normalized_frequencies.sum() == pytest.approx(1.0)
    assert stats.frequency_of(5) == stats.normalized_frequencies.max()
    assert stats.frequency_of(0) == 0.0


def test_warmup_maxsize_ramp():
    options = Options(maxsize=20, warmup_maxsize_by=0.5)
    sizes = [get_cur_maxsize(options, 100, remaining) for remaining in range(100, -1, -10)]
    assert sizes[0] == 3
    assert sizes[-1] == 20
    assert sizes == sorted(sizes)
    assert get_cur_maxsize(Options(maxsize=20), 100, 100) == 20


def test_frequency_penalty_in_tournament():
    options = Options(maxsize=10, population_size=40, tournament_selection_n=40, tournament_selection_p=1.0,
                      use_frequency_in_tournament=True, adaptive_parsimony_scaling=20.0)
    stats = RunningSearchStatistics(options)
    for _ in range(1000):
        stats.update_frequencies(1)
    stats.normalize()

    common = PopMember(Expression(VariableNode(0)), score=1.0, loss=1.0)
    rare = PopMember(Expression(BinaryOpNode('*', VariableNode(0), VariableNode(0))), score=2.0, loss=2.0)
    population = Population([common, rare])

    scores = adjusted_scores(population, np.array([0, 1]), options, stats)
    assert scores[0] == pytest.approx(np.exp(20.0 * stats.frequency_of(1)))
    assert scores[0] > scores[1]
    rng = np.random.default_rng(6)
    assert select_parent(population, options, rng, stats) == 1
    assert select_parent(population, options, rng) == 0


def test_replacement_skips_excluded_slot():
    members = [PopMember(Expression(ConstantNode(float(i))), score=float(i), loss=float(i)) for i in range(6)]
    population = Population(members)
    options = Options(population_size=200, tournament_selection_n=200, use_frequency_in_tournament=False)
    rng = np.random.default_rng(7)
    assert select_replacement(population, options, rng) == 5
    for _ in range(50):
        assert select_replacement(population, options, rng, exclude=5) == 4
        assert select_replacement(population, options, rng, exclude=0) != 0


def test_crossover_children_take_distinct_slots(quadratic_dataset, rng):
    options = Options(binary_operators=('+', '*'), maxsize=10, population_size=20, tournament_selection_n=20,
                      crossover_probability=1.0, use_frequency_in_tournament=False,
                      skip_mutation_failures=False, seed=0)
    population = Population.random(quadratic_dataset, options, rng)
    before = list(population.members)
    population, _ = reg_evol_cycle(quadratic_dataset, population, 1.0, options.maxsize, options, rng)
    assert sum(all(m is not old for old in before) for m in population.members) == 2
