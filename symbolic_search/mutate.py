"""
Mutation Engine

Produces one child per call: a mutation operator is drawn from the weighted
``MutationType`` table (after zeroing operators that cannot apply to the
parent), applied to a copy of the parent, checked against the constraints and
re-evaluated. Failed attempts are retried with a freshly drawn operator.
"""

from typing import Optional, Tuple

import numpy as np

from .adaptive_parsimony import RunningSearchStatistics
from .check_constraints import check_constraints, compute_complexity
from .constant_optimization import optimize_constants
from .dataset import Dataset
from .errors import MutationFailure
from .expression_tree import ConstantNode
from .generator import ExpressionGenerator
from .genetic_ops import (
    mutate_constant, mutate_operator, add_node, insert_random_op,
    delete_random_op, randomize_tree, simplify_tree, crossover_trees
)
from .logging_system import log_debug
from .loss_functions import eval_fraction, score_func
from .options import MutationType, Options, sample_mutation
from .pop_member import PopMember

MAX_ATTEMPTS = 10

_INDEX = {mutation: i for i, mutation in enumerate(MutationType)}


def condition_mutation_weights(weights: np.ndarray, member: PopMember, options: Options,
                               curmaxsize: int) -> np.ndarray:
    """
    Zero the weights of operators that cannot apply to ``member``.

    Args:
        weights: Weight array in ``MutationType`` order (modified in place)
        member: Parent
        options: Search settings
        curmaxsize: Size limit currently in force

    Returns:
        The adjusted weights
    """
    tree = member.tree
    nodes = tree.nodes()
    if compute_complexity(tree, options) >= curmaxsize:
        weights[_INDEX[MutationType.ADD_NODE]] = 0.0
        weights[_INDEX[MutationType.INSERT_NODE]] = 0.0
    if not any(isinstance(node, ConstantNode) for node in nodes):
        weights[_INDEX[MutationType.MUTATE_CONSTANT]] = 0.0
    if not any(node.degree > 0 for node in nodes):
        weights[_INDEX[MutationType.MUTATE_OPERATOR]] = 0.0
    if not options.should_simplify:
        weights[_INDEX[MutationType.SIMPLIFY]] = 0.0
    if not options.should_optimize_constants:
        weights[_INDEX[MutationType.OPTIMIZE]] = 0.0
    return weights


def _apply_mutation(mutation: MutationType, member: PopMember, temperature: float, curmaxsize: int,
                    options: Options, generator: ExpressionGenerator):
    """Rewritten copy of the parent's tree, or None when the operator does not apply"""
    tree = member.tree.copy()
    if mutation is MutationType.MUTATE_CONSTANT:
        return mutate_constant(tree, temperature, options, generator.rng)
    elif mutation is MutationType.MUTATE_OPERATOR:
        return mutate_operator(tree, options, generator.rng)
    elif mutation is MutationType.ADD_NODE:
        return add_node(tree, generator)
    elif mutation is MutationType.INSERT_NODE:
        return insert_random_op(tree, generator)
    elif mutation is MutationType.DELETE_NODE:
        return delete_random_op(tree, generator)
    elif mutation is MutationType.SIMPLIFY:
        return simplify_tree(tree)
    elif mutation is MutationType.RANDOMIZE:
        return randomize_tree(curmaxsize, generator)
    raise ValueError(f"Mutation {mutation} has no tree rewrite")


def acceptance_probability(before: PopMember, after_score: float, after_complexity: int,
                            temperature: float, options: Options,
                            stats: Optional[RunningSearchStatistics]) -> float:
    """
    Probability of keeping a child over its parent.

    Under annealing a worse child survives with ``exp(-delta / (T * alpha))``
    (never at ``T = 0``); with ``use_frequency`` the ratio of the parent's to
    the child's complexity frequency is applied on top. Values above 1 mean
    certain acceptance.
    """
    prob_change = 1.0
    if options.annealing:
        delta = after_score - before.score
        if temperature > 0:
            with np.errstate(over='ignore', invalid='ignore'):
                prob_change *= float(np.exp(-delta / (temperature * options.alpha)))
        elif delta > 0:
            prob_change = 0.0
    if options.use_frequency and stats is not None:
        old_frequency = stats.frequency_of(before.complexity(options))
        new_frequency = stats.frequency_of(after_complexity)
        if new_frequency > 0:
            prob_change *= old_frequency / new_frequency
    return prob_change


def next_generation(dataset: Dataset, member: PopMember, temperature: float, curmaxsize: int,
                    options: Options, rng: np.random.Generator,
                    stats: Optional[RunningSearchStatistics] = None,
                    idx: Optional[np.ndarray] = None) -> Tuple[PopMember, bool, float]:
    """
    Mutate ``member`` once.

    Args:
        dataset: Training data
        member: Parent (never modified)
        temperature: Annealing temperature in [0, 1]
        curmaxsize: Size limit currently in force
        options: Search settings
        rng: Random generator of the population
        stats: Complexity frequencies for the acceptance test
        idx: Batch row indices, or None for the full dataset

    Returns:
        (child, accepted, num_evals). A rejected or failed mutation returns a
        copy of the parent with ``accepted=False``.

    Raises:
        MutationFailure: with ``strict_mutations`` when all attempts fail
    """
    num_evals = 0.0
    before = member
    if idx is not None:
        # Compare parent and child on the same batch
        before_score, before_loss = score_func(dataset, member.tree, options, member.complexity(options), idx)
        before = PopMember(member.tree, before_score, before_loss, member.birth)
        num_evals += eval_fraction(dataset, options)

    weights = condition_mutation_weights(options.mutation_weights.as_array(), member, options, curmaxsize)
    generator = ExpressionGenerator(options, dataset.nfeatures, rng)

    tree = None
    after_score = after_loss = np.inf
    for _ in range(MAX_ATTEMPTS):
        mutation = sample_mutation(weights, rng)

        if mutation is MutationType.DO_NOTHING:
            return PopMember(member.tree.copy(), member.score, member.loss), True, num_evals
        if mutation is MutationType.OPTIMIZE:
            child, evals = optimize_constants(dataset, member, options, rng, idx)
            if child is member:
                child = member.copy()
            return child, True, num_evals + evals

        candidate = _apply_mutation(mutation, member, temperature, curmaxsize, options, generator)
        if candidate is None or not check_constraints(candidate, options, curmaxsize):
            continue
        after_score, after_loss = score_func(dataset, candidate, options,
                                             compute_complexity(candidate, options), idx)
        num_evals += eval_fraction(dataset, options)
        if not np.isfinite(after_loss):
            continue
        tree = candidate
        break

    if tree is None:
        if options.strict_mutations:
            raise MutationFailure(
                f"No legal child of {member.tree.to_string()} after {MAX_ATTEMPTS} attempts")
        log_debug(f"Mutation failed {MAX_ATTEMPTS} times for {member.tree.to_string()}")
        return member.copy(), False, num_evals

    after_complexity = compute_complexity(tree, options)
    prob_change = acceptance_probability(before, after_score, after_complexity, temperature, options, stats)
    if prob_change < rng.random():
        return member.copy(), False, num_evals

    return PopMember(tree, after_score, after_loss), True, num_evals


def crossover_generation(member1: PopMember, member2: PopMember, dataset: Dataset, curmaxsize: int,
                         options: Options, rng: np.random.Generator,
                         idx: Optional[np.ndarray] = None) -> Tuple[PopMember, PopMember, bool, float]:
    """
    Subtree crossover of two parents.

    Returns:
        (child1, child2, accepted, num_evals); copies of the parents with
        ``accepted=False`` if no legal pair was found
    """
    num_evals = 0.0
    for _ in range(MAX_ATTEMPTS):
        tree1, tree2 = crossover_trees(member1.tree, member2.tree, rng)
        if not (check_constraints(tree1, options, curmaxsize) and check_constraints(tree2, options, curmaxsize)):
            continue
        score1, loss1 = score_func(dataset, tree1, options, compute_complexity(tree1, options), idx)
        score2, loss2 = score_func(dataset, tree2, options, compute_complexity(tree2, options), idx)
        num_evals += 2 * eval_fraction(dataset, options)
        return PopMember(tree1, score1, loss1), PopMember(tree2, score2, loss2), True, num_evals

    if options.strict_mutations:
        raise MutationFailure(f"No legal crossover children after {MAX_ATTEMPTS} attempts")
    return member1.copy(), member2.copy(), False, num_evals
