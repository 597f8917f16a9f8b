"""
Symbolic Search Package

Island-model genetic programming for symbolic regression: populations of
expression trees evolve concurrently, exchange migrants, and feed a Hall of
Fame whose Pareto frontier trades accuracy against complexity.
"""

from .dataset import Dataset
from .errors import SymbolicSearchError, ConfigurationError, MutationFailure, EmptyResultError
from .expression_tree import Expression
from .hall_of_fame import HallOfFame, format_hall_of_fame, choose_best, string_dominating_pareto_curve
from .logging_system import LogLevel, configure_logging, get_logger
from .options import Options, MutationWeights, MutationType
from .pop_member import PopMember
from .population import Population
from .search import equation_search, SearchResult

__version__ = "0.1.0"
__all__ = [
    'equation_search', 'SearchResult',
    'Options', 'MutationWeights', 'MutationType',
    'Dataset', 'Expression', 'PopMember', 'Population',
    'HallOfFame', 'format_hall_of_fame', 'choose_best', 'string_dominating_pareto_curve',
    'SymbolicSearchError', 'ConfigurationError', 'MutationFailure', 'EmptyResultError',
    'LogLevel', 'configure_logging', 'get_logger'
]
