"""
Module containing various utility functions and classes.
"""
from dataclasses import dataclass, fields
from time import perf_counter
from sys import stderr
from typing import Any, IO, Optional
import logging


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class WfeditWarning(Warning): pass
class ConfigError(ValueError): pass


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(slots=True, frozen=True, kw_only=True)
class Config:
    """
    Config parent class that can conveniently set attributes from CLI args
    """
    @classmethod
    def from_obj(cls, obj: Any) -> 'Config':
        return cls(**{f.name: val for f in fields(cls) if (val := getattr(obj, f.name, None)) is not None})


class Timer:
    """
    Wall-clock timer for benchmark phases.

    Examples:
        >>> with Timer() as t:
        ...     do_work()
        >>> t.elapsed
        0.0123
    """
    __slots__ = ('_start', '_stop')

    def __init__(self):
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    def __enter__(self) -> 'Timer':
        self._start = perf_counter()
        self._stop = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop = perf_counter()

    @property
    def elapsed(self) -> float:
        """Seconds since entering, or the total duration once exited."""
        if self._start is None: return 0.0
        return (self._stop if self._stop is not None else perf_counter()) - self._start

    def __repr__(self): return f"Timer({self.elapsed:.6f}s)"


# Functions ------------------------------------------------------------------------------------------------------------
def parse_flag(name: str, value: Optional[str], default: bool = False) -> bool:
    """
    Parses a boolean switch given as ``"0"`` or ``"1"``.

    Raises:
        ConfigError: For any other value.
    """
    if value is None: return default
    if value == '0': return False
    if value == '1': return True
    raise ConfigError(f'Invalid value for {name}: {value!r} (expected 0 or 1)')


def parse_int(name: str, value: Optional[str], default: int = 0, lo: int = 0, hi: int = 2 ** 31 - 1) -> int:
    """Parses a bounded decimal integer."""
    if value is None: return default
    try: result = int(value.strip())
    except ValueError: raise ConfigError(f'Invalid value for {name}: {value!r}') from None
    if not lo <= result <= hi: raise ConfigError(f'Invalid value for {name}: {result} (must be in [{lo}, {hi}])')
    return result


def setup_logging(debug: bool = False, verbose: bool = False, stream: IO = stderr) -> logging.Logger:
    """
    Configures the package logger.

    Args:
        debug: Log at DEBUG level.
        verbose: Log at INFO level.
        stream: Where log lines go.

    Returns:
        The configured package logger.
    """
    level = logging.WARNING
    if verbose: level = logging.INFO
    if debug: level = logging.DEBUG

    logger = logging.getLogger(__name__.split('.')[0])
    logger.setLevel(level)
    # Avoid duplicate handlers when called more than once
    for handler in list(logger.handlers): logger.removeHandler(handler)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(
        fmt="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(handler)
    return logger
