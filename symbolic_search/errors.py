"""Exceptions raised by the search engine."""


class SymbolicSearchError(Exception):
    """Base class for errors raised by symbolic_search"""


class ConfigurationError(SymbolicSearchError, ValueError):
    """Invalid settings or data, detected before or at search start.

    Also raised when a user loss function returns a negative value, since the
    Pareto scoring assumes non-negative losses.
    """


class MutationFailure(SymbolicSearchError, RuntimeError):
    """No legal child could be produced (only raised with ``strict_mutations``)"""


class EmptyResultError(SymbolicSearchError, RuntimeError):
    """The Hall of Fame holds no successfully evaluated equation"""
