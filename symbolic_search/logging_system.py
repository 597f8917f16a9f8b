"""
Logging for the symbolic search engine

A single ``SearchLogger`` wraps the ``symbolic_search`` standard-library
logger and filters messages by a verbosity level, so long searches can report
progress and Hall of Fame snapshots without flooding the terminal.
"""

import logging
import sys
import time
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Verbosity levels of a search"""
    SILENT = 0      # Nothing
    MINIMAL = 1     # Final Hall of Fame and warnings
    MODERATE = 2    # Throttled progress and milestones
    DETAILED = 3    # Every returned iteration and intermediate Hall of Fame tables
    VERBOSE = 4     # Mutation and migration debug lines


def level_from_verbosity(verbosity: int) -> LogLevel:
    """Map an integer verbosity (as stored on Options) to a LogLevel"""
    verbosity = max(0, min(int(verbosity), LogLevel.VERBOSE.value))
    return LogLevel(verbosity)


class SearchLogger:
    """Level-filtered logger writing to stdout"""

    def __init__(self, log_level: LogLevel = LogLevel.MODERATE, progress_interval: float = 2.0):
        self.log_level = log_level
        self.progress_interval = progress_interval
        self.start_time = time.time()
        self.last_progress_time = 0.0

        self.logger = logging.getLogger('symbolic_search')
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False

        if log_level != LogLevel.SILENT:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s',
                                                   datefmt='%H:%M:%S'))
            self.logger.addHandler(handler)

    def enabled(self, required_level: LogLevel) -> bool:
        return self.log_level != LogLevel.SILENT and self.log_level.value >= required_level.value

    def progress(self, message: str, force: bool = False):
        """Throttled to one line per ``progress_interval`` seconds"""
        if not self.enabled(LogLevel.MODERATE):
            return
        now = time.time()
        if force or now - self.last_progress_time >= self.progress_interval:
            self.logger.info(f"PROGRESS: {message}")
            self.last_progress_time = now

    def iteration_step(self, output: int, population: int, iterations_done: int,
                       niterations: int, best_loss: float, num_evals: float):
        if not self.enabled(LogLevel.DETAILED):
            return
        elapsed = time.time() - self.start_time
        self.logger.info(f"Out {output} Pop {population:3d}: {iterations_done}/{niterations} "
                         f"Best={best_loss:.6e} Evals={num_evals:.3e} ({elapsed:.1f}s)")

    def milestone(self, message: str):
        if self.enabled(LogLevel.MINIMAL):
            self.logger.info(f"MILESTONE: {message}")

    def warning(self, message: str):
        if self.enabled(LogLevel.MINIMAL):
            self.logger.warning(message)

    def debug(self, message: str):
        if self.enabled(LogLevel.VERBOSE):
            self.logger.debug(message)

    def hall_of_fame(self, table: str, required_level: LogLevel = LogLevel.DETAILED):
        """Log a rendered Hall of Fame table line by line"""
        if not self.enabled(required_level):
            return
        for line in table.rstrip("\n").split("\n"):
            self.logger.info(line)


_global_logger: Optional[SearchLogger] = None


def get_logger() -> SearchLogger:
    global _global_logger
    if _global_logger is None:
        _global_logger = SearchLogger()
    return _global_logger


def configure_logging(log_level: LogLevel = LogLevel.MODERATE) -> SearchLogger:
    """Replace the global logger with one at ``log_level``"""
    global _global_logger
    _global_logger = SearchLogger(log_level=log_level)
    return _global_logger


def log_debug(message: str):
    get_logger().debug(message)
