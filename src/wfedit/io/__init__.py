"""
Module for persisting alignment results and checking them against reference files.

A result file holds the decimal score, a newline, then the raw edit script bytes (end-to-start order, no separators,
no trailing newline).
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Union, BinaryIO, Optional
import logging

from wfedit.containers.alignment import Alignment


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ResultIOError(IOError):
    """Raised when a result or reference file cannot be read or written."""

class ResultFormatError(ResultIOError):
    """Raised when a reference file does not start with an integer score."""

class VerificationError(Exception):
    """Raised when a result differs from its reference."""
    def __init__(self, report: 'CheckReport'):
        super().__init__(report.describe())
        self.report = report


# Constants ------------------------------------------------------------------------------------------------------------
_LOG = logging.getLogger(__name__)
PathOrHandle = Union[str, Path, BinaryIO]


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CheckReport:
    """
    Outcome of comparing a result with a reference; truthy when they agree.

    Attributes:
        kind: ``None`` when the check passed, else ``"score"``, ``"script"`` or ``"length"``.
        position: Index of the first differing script operation (``None`` for score mismatches).
        expected: Reference value at the divergence (score, operation byte or script length).
        actual: Result value at the divergence.
    """
    kind: Optional[str] = None
    position: Optional[int] = None
    expected: Union[int, bytes, None] = None
    actual: Union[int, bytes, None] = None

    def __bool__(self): return self.kind is None

    @property
    def passed(self) -> bool: return self.kind is None

    def describe(self) -> str:
        if self.kind is None: return 'Check passed'
        if self.kind == 'score':
            return f'Reference score != result score (reference {self.expected}, result {self.actual})'
        if self.kind == 'script':
            return (f'Reference script != result script at position {self.position} '
                    f'(reference {self.expected.decode("ascii", "replace")}, '
                    f'result {self.actual.decode("ascii", "replace")})')
        return f'Reference script length != result script length (reference {self.expected}, result {self.actual})'


# Functions ------------------------------------------------------------------------------------------------------------
def write_result(alignment: Alignment, file: PathOrHandle):
    """
    Writes an alignment in the result format.

    Raises:
        ResultIOError: If the file cannot be written.
    """
    data = alignment.to_bytes()
    if hasattr(file, 'write'):
        file.write(data)
        return
    try:
        with open(file, 'wb') as handle: handle.write(data)
    except OSError as e:
        raise ResultIOError(f'Error while writing result file {file}: {e.strerror or e}') from e
    _LOG.debug('Wrote score %d and %d operations to %s', alignment.score, len(alignment), file)


def read_result(file: PathOrHandle) -> tuple[int, bytes]:
    """
    Reads a reference file.

    The script is everything after the score line up to the next newline or the end of the file.

    Returns:
        ``(score, script)``

    Raises:
        ResultIOError: If the file cannot be read.
        ResultFormatError: If the first line is not an integer.
    """
    if hasattr(file, 'read'):
        data = file.read()
    else:
        try:
            with open(file, 'rb') as handle: data = handle.read()
        except OSError as e:
            raise ResultIOError(f'Error while opening check file {file}: {e.strerror or e}') from e
    head, _, rest = data.partition(b'\n')
    try: score = int(head.strip())
    except ValueError: raise ResultFormatError(f'Error while reading reference score in check file {file}') from None
    return score, rest.partition(b'\n')[0]


def compare_result(alignment: Alignment, score: int, script: bytes) -> CheckReport:
    """Compares an alignment with a reference score and script, reporting the first divergence."""
    if alignment.score != score: return CheckReport('score', None, score, alignment.score)
    actual = alignment.script
    for i, (ref_op, res_op) in enumerate(zip(script, actual)):
        if ref_op != res_op: return CheckReport('script', i, bytes((ref_op,)), bytes((res_op,)))
    if len(script) != len(actual): return CheckReport('length', min(len(script), len(actual)), len(script), len(actual))
    return CheckReport()


def check_result(alignment: Alignment, file: PathOrHandle) -> CheckReport:
    """
    Checks an alignment against a reference file.

    Examples:
        >>> report = check_result(aln, 'reference.txt')
        >>> if not report: print(report.describe())
    """
    report = compare_result(alignment, *read_result(file))
    _LOG.debug('Checked against %s: %s', file, report.describe())
    return report


def verify_result(alignment: Alignment, file: PathOrHandle) -> CheckReport:
    """Like :func:`check_result` but raises :class:`VerificationError` on mismatch."""
    if not (report := check_result(alignment, file)): raise VerificationError(report)
    return report
