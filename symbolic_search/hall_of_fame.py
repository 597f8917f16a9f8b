"""
Hall of Fame and Pareto frontier.

The Hall of Fame keeps, for every complexity in ``[1, maxsize + MAX_DEGREE]``,
a deep copy of the lowest-loss member ever seen at that complexity. The
Pareto frontier is the subset whose loss beats every simpler entry.
"""

import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .check_constraints import compute_complexity
from .errors import ConfigurationError
from .expression_tree import MAX_DEGREE
from .options import Options
from .pop_member import PopMember
from .population import Population

ZERO_POINT = 1e-10


class HallOfFame:
    """Best member per complexity; updates are serialised by a lock"""

    def __init__(self, options: Options):
        self.options = options
        self.actual_maxsize = options.maxsize + MAX_DEGREE
        self.members: List[Optional[PopMember]] = [None] * self.actual_maxsize
        self.exists: List[bool] = [False] * self.actual_maxsize
        self._lock = threading.Lock()

    def __getstate__(self):
        state = self.__dict__.copy()
        del state['_lock']
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.Lock()

    def update(self, candidate: PopMember) -> bool:
        """
        Offer a candidate to the slot of its complexity.

        Args:
            candidate: Evaluated member (copied on acceptance)

        Returns:
            True if the candidate took the slot

        Raises:
            ConfigurationError: if the candidate has a negative loss
        """
        if candidate.loss < 0:
            raise ConfigurationError(
                f"Loss function returned a negative value ({candidate.loss}); losses must be non-negative")
        if not np.isfinite(candidate.loss):
            return False
        size = compute_complexity(candidate.tree, self.options)
        if not 0 < size <= self.actual_maxsize:
            return False
        with self._lock:
            current = self.members[size - 1]
            if self.exists[size - 1] and not candidate.loss < current.loss:
                return False
            self.members[size - 1] = candidate.copy()
            self.exists[size - 1] = True
            return True

    def update_from_population(self, population: Population) -> int:
        """Offer every member of ``population``; returns the number accepted"""
        return sum(1 for member in population.members if self.update(member))

    def merge(self, other: 'HallOfFame') -> int:
        """Offer every entry of another Hall of Fame"""
        return sum(1 for member in other.entries() if self.update(member))

    def entries(self) -> List[PopMember]:
        """Existing entries, ascending complexity"""
        with self._lock:
            return [m for m, e in zip(self.members, self.exists) if e]

    def is_empty(self) -> bool:
        return not any(self.exists)

    def copy(self) -> 'HallOfFame':
        clone = HallOfFame(self.options)
        with self._lock:
            clone.members = [m.copy() if m is not None else None for m in self.members]
            clone.exists = list(self.exists)
        return clone

    def pareto_frontier(self) -> List[PopMember]:
        """
        Dominating Pareto curve, ascending complexity.

        An entry belongs to the frontier iff its loss is strictly lower than
        the loss of every simpler existing entry.
        """
        dominating = []
        best_loss = np.inf
        with self._lock:
            for member, exists in zip(self.members, self.exists):
                if not exists:
                    continue
                if member.loss < best_loss:
                    dominating.append(member.copy())
                    best_loss = member.loss
        return dominating

    def __repr__(self) -> str:
        return f"HallOfFame(entries={sum(self.exists)}, maxsize={self.actual_maxsize})"


def pareto_scores(losses: Sequence[float], complexities: Sequence[int],
                  baseline_loss: Optional[float] = None) -> List[float]:
    """
    Score of each frontier point: negative log-loss improvement per unit of
    added complexity over the previous point.

    Args:
        losses: Frontier losses, ascending complexity
        complexities: Matching complexities
        baseline_loss: Loss of the constant predictor, treated as a point of
            complexity 0 before the first entry

    Returns:
        One score per point
    """
    scores = []
    last_loss = baseline_loss
    last_complexity = 0
    for loss, complexity in zip(losses, complexities):
        if last_loss is None:
            last_loss = loss
        if last_loss <= 0 or complexity == last_complexity:
            score = 0.0
        else:
            score = -np.log(abs(loss / last_loss) + ZERO_POINT) / (complexity - last_complexity)
        scores.append(float(score))
        last_loss = loss
        last_complexity = complexity
    return scores


def format_hall_of_fame(hall_of_fame: HallOfFame, options: Options,
                        variable_names: Optional[Sequence[str]] = None,
                        baseline_loss: Optional[float] = None) -> Dict[str, list]:
    """
    Frontier as parallel lists.

    Returns:
        dict with ``trees``, ``losses``, ``complexities``, ``scores`` and
        ``strings``, ascending complexity
    """
    frontier = hall_of_fame.pareto_frontier()
    for member in frontier:
        if member.loss < 0:
            raise ConfigurationError(
                f"Loss function returned a negative value ({member.loss}); losses must be non-negative")
    trees = [member.tree for member in frontier]
    losses = [member.loss for member in frontier]
    complexities = [compute_complexity(member.tree, options) for member in frontier]
    return {
        'trees': trees,
        'losses': losses,
        'complexities': complexities,
        'scores': pareto_scores(losses, complexities, baseline_loss),
        'strings': [tree.to_string(variable_names) for tree in trees],
    }


def choose_best(table: Dict[str, list],
                criterion: Union[str, Callable[[Dict[str, list]], int], None] = "best") -> Optional[int]:
    """
    Index of the preferred frontier entry.

    Args:
        table: Output of ``format_hall_of_fame``
        criterion: ``"accuracy"`` (lowest loss), ``"score"`` (highest score),
            ``"best"`` (highest score among losses within 1.5x of the lowest)
            or a callable receiving the table and returning an index

    Returns:
        Index into the table, None when the frontier is empty
    """
    losses = np.asarray(table['losses'], dtype=np.float64)
    if losses.size == 0:
        return None
    scores = np.asarray(table['scores'], dtype=np.float64)
    if criterion is None:
        criterion = "best"
    if callable(criterion):
        return int(criterion(table))
    if criterion == "accuracy":
        return int(np.argmin(losses))
    if criterion == "score":
        return int(np.argmax(scores))
    if criterion == "best":
        candidates = np.flatnonzero(losses <= 1.5 * losses.min())
        return int(candidates[np.argmax(scores[candidates])])
    raise ConfigurationError(f"Unknown selection criterion: {criterion!r}")


def string_dominating_pareto_curve(hall_of_fame: HallOfFame, options: Options,
                                   variable_names: Optional[Sequence[str]] = None,
                                   baseline_loss: Optional[float] = None) -> str:
    """Text table of the frontier: complexity, loss, score, equation"""
    table = format_hall_of_fame(hall_of_fame, options, variable_names, baseline_loss)
    lines = ["Hall of Fame:",
             "-----------------------------------------",
             f"{'Complexity':<10}  {'Loss':<8}   {'Score':<8}  {'Equation':<8}"]
    for complexity, loss, score, string in zip(table['complexities'], table['losses'],
                                               table['scores'], table['strings']):
        lines.append(f"{complexity:<10d}  {loss:<8.3e}  {score:<8.3e}  {string}")
    return "\n".join(lines) + "\n"


def frontier_rows(table: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Table as one dict per frontier entry"""
    keys = ('complexities', 'losses', 'scores', 'strings', 'trees')
    names = ('complexity', 'loss', 'score', 'equation', 'tree')
    return [dict(zip(names, values)) for values in zip(*(table[k] for k in keys))]
