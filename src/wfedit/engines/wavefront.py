"""Edit-distance alignment engine using wavefronts (extend, compute, backtrace)."""
from concurrent.futures import Future
from threading import Lock
from typing import Union
import logging

import numpy as np

from wfedit.containers.alignment import Alignment, EditOp
from wfedit.core.seq import as_symbols, SymbolsLike
from wfedit.core.wavefront import WavefrontStore, WavefrontError, OFFSET_DTYPE
from wfedit.engines.backends import ExecutionBackend
from wfedit.utils.resources import jit


# Constants ------------------------------------------------------------------------------------------------------------
_LOG = logging.getLogger(__name__)
_M, _X, _I, _D = EditOp.M.value, EditOp.X.value, EditOp.I.value, EditOp.D.value


# Classes --------------------------------------------------------------------------------------------------------------
class WavefrontAligner:
    """
    Caller-owned alignment context: a wavefront store sized for the largest problem, plus the backend that runs it.

    The store is reset before every alignment, so one aligner serves repeated alignments of the same or smaller size.
    With ``aligned=True`` every offset buffer starts on a page boundary.
    Only one alignment runs on an aligner at a time.

    Examples:
        >>> with WavefrontAligner(4, 4, store='dense') as aligner:
        ...     aln = aligner.align(b'ACGT', b'AGT')
        >>> aln.score, aln.script
        (1, b'MMDM')
    """
    __slots__ = ('_store', '_backend', '_lock', '_closed')

    def __init__(self, max_pattern_length: int, max_text_length: int,
                 store: Union[str, WavefrontStore] = 'amortized', dtype=OFFSET_DTYPE,
                 backend: Union[str, ExecutionBackend] = 'inline', aligned: bool = False):
        if max_pattern_length < 0 or max_text_length < 0: raise ValueError('Sequence lengths must be non-negative')
        if isinstance(store, WavefrontStore): self._store = store
        else: self._store = WavefrontStore.create(store, max_pattern_length + max_text_length, dtype, aligned)
        self._backend = ExecutionBackend.create(backend)
        self._lock = Lock()
        self._closed = False
        _LOG.debug('Created %r (%d bytes) on %r', self._store, self._store.nbytes, self._backend)

    @classmethod
    def for_sequences(cls, pattern: SymbolsLike, text: SymbolsLike, **kwargs) -> 'WavefrontAligner':
        """Builds an aligner sized exactly for one pattern/text pair."""
        return cls(len(as_symbols(pattern)), len(as_symbols(text)), **kwargs)

    def __repr__(self):
        return f"WavefrontAligner({self._store!r}, {self._backend!r}{', closed' if self._closed else ''})"

    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()

    @property
    def store(self) -> WavefrontStore: return self._store
    @property
    def backend(self) -> ExecutionBackend: return self._backend
    @property
    def closed(self) -> bool: return self._closed

    def align(self, pattern: SymbolsLike, text: SymbolsLike) -> Alignment:
        """
        Aligns ``pattern`` against ``text`` and waits for the result.

        Raises:
            CapacityError: If the problem is larger than the store.
            OffsetOverflowError: If the offset dtype is too narrow for the problem.
            AllocationError: If storage could not be allocated.
            WavefrontError: If the aligner is closed.
        """
        return self.submit(pattern, text).result()

    def submit(self, pattern: SymbolsLike, text: SymbolsLike) -> Future:
        """Enqueues an alignment on the backend and returns a future for its :class:`Alignment`."""
        self._check_open()
        p, t = as_symbols(pattern), as_symbols(text)
        self._store.check_capacity(len(p), len(t))
        return self._backend.submit(self._run, p, t)

    def reset(self):
        """Resets the store explicitly (``align`` also does this before every run)."""
        with self._lock:
            self._check_open()
            self._store.reset()

    def close(self):
        """Releases the store; further use raises WavefrontError."""
        with self._lock:
            if not self._closed:
                self._store.close()
                self._closed = True

    def _run(self, pattern: np.ndarray, text: np.ndarray) -> Alignment:
        with self._lock:
            self._check_open()
            return wavefront_align(self._store, pattern, text)

    def _check_open(self):
        if self._closed: raise WavefrontError('Aligner is closed')


# Functions ------------------------------------------------------------------------------------------------------------
def align(pattern: SymbolsLike, text: SymbolsLike, store: str = 'amortized', dtype=OFFSET_DTYPE,
          backend: Union[str, ExecutionBackend] = 'inline') -> Alignment:
    """
    One-off edit-distance alignment.

    Args:
        pattern: The pattern sequence.
        text: The text sequence.
        store: Wavefront store name (``amortized`` or ``dense``).
        dtype: Signed integer dtype for offsets.
        backend: Execution backend name or instance.

    Returns:
        The optimal :class:`Alignment`; its script is in end-to-start order.

    Examples:
        >>> align('ACGT', 'ACGT').script
        b'MMMM'
    """
    with WavefrontAligner.for_sequences(pattern, text, store=store, dtype=dtype, backend=backend) as aligner:
        return aligner.align(pattern, text)


def wavefront_align(store: WavefrontStore, pattern: np.ndarray, text: np.ndarray) -> Alignment:
    """
    Runs the wavefront driver loop on a store and backtraces the result.

    Generation ``d`` covers diagonals ``[-d, d]``. Each generation is extended through matching symbols, then tested
    for the target cell (diagonal ``n - m`` at offset ``n``); otherwise the next generation is computed from it.

    Args:
        store: Store with capacity for ``len(pattern) + len(text)``; it is reset first.
        pattern: ``uint8`` pattern symbols.
        text: ``uint8`` text symbols.

    Raises:
        WavefrontError: If no alignment is found within ``m + n`` generations.
    """
    m, n = len(pattern), len(text)
    max_distance = m + n
    target_k, target_offset = n - m, n
    store.check_capacity(m, n)
    store.reset()
    store.set(0, 0, 0)

    distance = 0
    while True:
        offsets, base = store.view(distance)
        _extend_kernel(offsets, base, -distance, distance, pattern, text)
        if abs(target_k) <= distance and offsets[base + target_k] == target_offset: break
        if distance == max_distance:
            raise WavefrontError(f'No alignment found within distance {max_distance}')
        nxt = store.allocate(distance + 1, -distance - 1, distance + 1)
        _compute_kernel(offsets, base, nxt.data, nxt.base, -distance, distance)
        distance += 1

    script = backtrace(store, target_k, distance, max_distance)
    _LOG.debug('Aligned %dx%d on %s store: score %d, %d operations', m, n, store.name, distance, len(script))
    return Alignment(distance, script, m, n)


def backtrace(store: WavefrontStore, target_k: int, target_distance: int, max_length: int) -> bytes:
    """
    Rebuilds the edit script from the populated generations, END to START.

    At each step the predecessor in the previous generation is chosen in the fixed order deletion (diagonal ``k+1``),
    insertion (``k-1``), substitution (``k``); when none produced the current offset it came from a match. Offsets left
    at generation 0 are leading matches.

    Raises:
        WavefrontError: If the script would exceed ``max_length`` operations.
        IndexError: If a generation on the path was never populated.
    """
    script = bytearray(max_length)
    i = 0
    k, distance = target_k, target_distance
    offset = store.get(distance, k)
    prev, prev_distance = None, -1
    while distance > 0:
        if i == max_length: raise WavefrontError(f'Backtrace exceeded {max_length} operations')
        if prev_distance != distance - 1:
            prev, prev_distance = store.wavefront(distance - 1), distance - 1
        if k + 1 in prev and offset == prev[k + 1]:
            script[i] = _D
            k += 1
            distance -= 1
        elif k - 1 in prev and offset == prev[k - 1] + 1:
            script[i] = _I
            k -= 1
            offset -= 1
            distance -= 1
        elif k in prev and offset == prev[k] + 1:
            script[i] = _X
            offset -= 1
            distance -= 1
        else:
            script[i] = _M
            offset -= 1
        i += 1
    if i + offset > max_length: raise WavefrontError(f'Backtrace exceeded {max_length} operations')
    script[i:i + offset] = b'M' * offset
    return bytes(script[:i + offset])


# Kernels --------------------------------------------------------------------------------------------------------------
@jit
def _extend_kernel(offsets, base, lo, hi, pattern, text):
    """Advances every diagonal in ``lo..hi`` through its run of matching symbols."""
    m = len(pattern)
    n = len(text)
    for k in range(lo, hi + 1):
        h = offsets[base + k]
        v = h - k
        while v < m and h < n and pattern[v] == text[h]:
            v += 1
            h += 1
        offsets[base + k] = h


@jit
def _compute_kernel(cur, cur_base, nxt, nxt_base, lo, hi):
    """
    Fills diagonals ``lo-1..hi+1`` of the next generation from ``lo..hi`` of the current one.

    Diagonal ``k`` is reached by a deletion from ``k+1`` (same offset), an insertion from ``k-1`` (offset + 1) or a
    substitution on ``k`` (offset + 1). Neighbours outside ``lo..hi`` do not take part.
    """
    # Boundary diagonals: deletion below, insertion above
    nxt[nxt_base + lo - 1] = cur[cur_base + lo]
    nxt[nxt_base + hi + 1] = cur[cur_base + hi] + 1
    # k = lo
    lo_best = cur[cur_base + lo] + 1
    if lo + 1 <= hi: lo_best = max(lo_best, cur[cur_base + lo + 1])
    nxt[nxt_base + lo] = lo_best
    for k in range(lo + 1, hi):
        ins_sub = max(cur[cur_base + k], cur[cur_base + k - 1]) + 1
        nxt[nxt_base + k] = max(ins_sub, cur[cur_base + k + 1])
    # k = hi
    hi_best = cur[cur_base + hi]
    if hi - 1 >= lo: hi_best = max(hi_best, cur[cur_base + hi - 1])
    nxt[nxt_base + hi] = hi_best + 1
