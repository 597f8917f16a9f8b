"""
Adaptive parsimony for symbolic search.

Tracks how often each complexity is seen during the search so that
over-represented complexities can be penalised (in tournaments and in the
annealing acceptance test), and computes the warm-up size limit.
"""

import numpy as np

from .expression_tree import MAX_DEGREE
from .options import Options


class RunningSearchStatistics:
    """
    Moving-window histogram of member complexities.

    Frequencies start at 1 for every complexity in ``[1, maxsize + MAX_DEGREE]``.
    Once the total count exceeds ``window_size`` the counts are scaled down
    evenly (never below 1) so that recent complexities dominate.
    """

    def __init__(self, options: Options, window_size: int = 100000):
        self.window_size = window_size
        self.actual_maxsize = options.maxsize + MAX_DEGREE
        self.frequencies = np.ones(self.actual_maxsize, dtype=np.float64)
        self.normalized_frequencies = self.frequencies / self.frequencies.sum()

    def update_frequencies(self, size: int):
        """Record one occurrence of complexity ``size``"""
        if 0 < size <= self.actual_maxsize:
            self.frequencies[size - 1] += 1

    def move_window(self, smallest_frequency_allowed: float = 1.0, max_loops: int = 1000):
        """
        Scale the counts down so their total is at most ``window_size``.

        Args:
            smallest_frequency_allowed: Floor for every count
            max_loops: Bound on the number of subtraction rounds
        """
        frequencies = self.frequencies
        difference = frequencies.sum() - self.window_size
        num_loops = 0
        while difference > 0:
            above_floor = frequencies > smallest_frequency_allowed
            num_remaining = int(above_floor.sum())
            if num_remaining == 0:
                break
            amount_to_subtract = min(difference / num_remaining,
                                     float(np.min(frequencies[above_floor] - smallest_frequency_allowed)))
            frequencies[above_floor] -= amount_to_subtract
            total_amount = amount_to_subtract * num_remaining
            difference -= total_amount
            num_loops += 1
            if num_loops > max_loops or total_amount < 1e-6:
                break

    def normalize(self):
        self.normalized_frequencies = self.frequencies / self.frequencies.sum()

    def frequency_of(self, size: int) -> float:
        """Normalised frequency of complexity ``size`` (0 outside the tracked range)"""
        if 0 < size <= self.actual_maxsize:
            return float(self.normalized_frequencies[size - 1])
        return 0.0

    def copy(self) -> 'RunningSearchStatistics':
        clone = RunningSearchStatistics.__new__(RunningSearchStatistics)
        clone.window_size = self.window_size
        clone.actual_maxsize = self.actual_maxsize
        clone.frequencies = self.frequencies.copy()
        clone.normalized_frequencies = self.normalized_frequencies.copy()
        return clone


def get_cur_maxsize(options: Options, total_cycles: int, cycles_remaining: int) -> int:
    """
    Size limit in force at this point of the search.

    With ``warmup_maxsize_by > 0`` the limit grows linearly from 3 to
    ``maxsize`` over the first ``warmup_maxsize_by`` fraction of all cycles.
    """
    if options.warmup_maxsize_by <= 0 or total_cycles <= 0:
        return options.maxsize
    fraction_elapsed = (total_cycles - cycles_remaining) / total_cycles
    if fraction_elapsed >= options.warmup_maxsize_by:
        return options.maxsize
    return 3 + int(np.floor((options.maxsize - 3) * fraction_elapsed / options.warmup_maxsize_by))
