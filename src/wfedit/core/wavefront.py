"""
Offset storage for edit wavefronts.

A wavefront holds one offset per diagonal ``k = h - v`` for a single generation (edit distance). Both stores hand out
:class:`DiagonalBuffer` accessors, indexed directly by signed diagonal, so callers never apply a bias themselves.
"""
from abc import ABC, abstractmethod
from typing import Iterator, Optional, Union
from warnings import warn

import numpy as np

from wfedit.utils import WfeditWarning
from wfedit.utils.resources import RESOURCES


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class WavefrontError(Exception): pass
class AllocationError(WavefrontError, MemoryError): pass
class CapacityError(WavefrontError, ValueError): pass
class OffsetOverflowError(WavefrontError, OverflowError): pass
class NarrowOffsetWarning(WfeditWarning): pass


# Constants ------------------------------------------------------------------------------------------------------------
OFFSET_DTYPE = np.int32
PAGE_SIZE = RESOURCES.page_size


# Classes --------------------------------------------------------------------------------------------------------------
class DiagonalBuffer:
    """
    A contiguous run of offsets for diagonals ``lo..hi`` (inclusive) of one generation.

    The underlying array may be owned (amortized store) or a view into a larger arena (dense store); either way
    ``data[base + k]`` is diagonal ``k``.

    Examples:
        >>> w = DiagonalBuffer.zeros(-2, 2)
        >>> w[-2] = 5
        >>> w[-2], len(w), w.base
        (5, 5, 2)
    """
    __slots__ = ('_data', '_lo', '_hi')

    def __init__(self, data: np.ndarray, lo: int, hi: int):
        if hi < lo: raise ValueError(f'Empty diagonal range [{lo}, {hi}]')
        if len(data) != hi - lo + 1: raise ValueError(f'Buffer of length {len(data)} cannot hold [{lo}, {hi}]')
        self._data = data
        self._lo = lo
        self._hi = hi

    @classmethod
    def zeros(cls, lo: int, hi: int, dtype=OFFSET_DTYPE, alignment: Optional[int] = None) -> 'DiagonalBuffer':
        """Allocates a zero-filled buffer for diagonals ``lo..hi``, optionally starting on an ``alignment`` boundary."""
        if hi < lo: raise ValueError(f'Empty diagonal range [{lo}, {hi}]')
        return cls(aligned_zeros(hi - lo + 1, dtype, alignment), lo, hi)

    @property
    def lo(self) -> int: return self._lo
    @property
    def hi(self) -> int: return self._hi
    @property
    def base(self) -> int: return -self._lo
    @property
    def data(self) -> np.ndarray: return self._data
    def __len__(self) -> int: return self._hi - self._lo + 1
    def __contains__(self, k: int) -> bool: return self._lo <= k <= self._hi
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"DiagonalBuffer[{self._lo}, {self._hi}]"

    def __getitem__(self, k: int) -> int:
        if not self._lo <= k <= self._hi: raise IndexError(f'Diagonal {k} outside [{self._lo}, {self._hi}]')
        return int(self._data[k - self._lo])

    def __setitem__(self, k: int, value: int):
        if not self._lo <= k <= self._hi: raise IndexError(f'Diagonal {k} outside [{self._lo}, {self._hi}]')
        self._data[k - self._lo] = value

    def items(self) -> Iterator[tuple[int, int]]:
        """Yields ``(k, offset)`` pairs from the lowest diagonal up."""
        for i, offset in enumerate(self._data.tolist()): yield self._lo + i, offset


class WavefrontStore(ABC):
    """
    Per-generation offset storage for one alignment at a time.

    Concrete stores are registered by name and built with :meth:`create`.

    Examples:
        >>> store = WavefrontStore.create('dense', max_distance=8)
        >>> w = store.allocate(0, 0, 0)
        >>> store.set(0, 0, 3)
        >>> store.get(0, 0)
        3
    """
    _REGISTRY = {}

    @classmethod
    def register(cls, name: str):
        def decorator(store_cls):
            cls._REGISTRY[name] = store_cls
            store_cls.name = name
            return store_cls
        return decorator

    @classmethod
    def create(cls, name: str, max_distance: int, dtype=OFFSET_DTYPE, aligned: bool = False) -> 'WavefrontStore':
        """Builds a registered store by name."""
        if (store_cls := cls._REGISTRY.get(name)) is None:
            raise ValueError(f'Unknown wavefront store "{name}"; choose from {", ".join(cls.names())}')
        return store_cls(max_distance, dtype, aligned)

    @classmethod
    def names(cls) -> tuple[str, ...]: return tuple(cls._REGISTRY)

    name = None

    def __init__(self, max_distance: int, dtype=OFFSET_DTYPE, aligned: bool = False):
        if max_distance < 0: raise ValueError(f'Maximum distance must be non-negative, got {max_distance}')
        self._max_distance = int(max_distance)
        self._dtype = np.dtype(dtype)
        if not np.issubdtype(self._dtype, np.signedinteger):
            raise TypeError(f'Offsets need a signed integer dtype, got {self._dtype}')
        self._alignment = PAGE_SIZE if aligned else None
        if self._dtype.itemsize < np.dtype(OFFSET_DTYPE).itemsize:
            # check_capacity bounds n + (m + n), so square problems fit up to a third of the maximum
            side = self.max_offset // 3
            warn(f'{self._dtype} offsets only hold alignments up to {side}x{side}', NarrowOffsetWarning)

    def __repr__(self): return f"{self.__class__.__name__}(max_distance={self._max_distance}, dtype={self._dtype})"

    @property
    def capacity(self) -> int:
        """The largest maximum distance (``m + n``) this store can align."""
        return self._max_distance

    @property
    def dtype(self) -> np.dtype: return self._dtype

    @property
    def alignment(self) -> Optional[int]:
        """Byte boundary offset buffers start on, or None for default numpy placement."""
        return self._alignment

    @property
    def max_offset(self) -> int: return int(np.iinfo(self._dtype).max)

    @property
    @abstractmethod
    def nbytes(self) -> int: ...

    @abstractmethod
    def allocate(self, distance: int, lo: int, hi: int) -> DiagonalBuffer:
        """Reserves storage for diagonals ``lo..hi`` of generation ``distance``."""
        ...

    @abstractmethod
    def wavefront(self, distance: int) -> DiagonalBuffer:
        """Returns the accessor of an allocated generation, raising IndexError otherwise."""
        ...

    @abstractmethod
    def reset(self):
        """Prepares the store for a new alignment; generation 0, diagonal 0 reads 0 afterwards."""
        ...

    @abstractmethod
    def close(self):
        """Releases the storage."""
        ...

    def get(self, distance: int, k: int) -> int: return self.wavefront(distance)[k]
    def set(self, distance: int, k: int, value: int): self.wavefront(distance)[k] = value

    def bounds(self, distance: int) -> tuple[int, int]:
        w = self.wavefront(distance)
        return w.lo, w.hi

    def contains(self, distance: int, k: int) -> bool:
        try: return k in self.wavefront(distance)
        except IndexError: return False

    def view(self, distance: int) -> tuple[np.ndarray, int]:
        """Raw ``(buffer, base)`` for kernels: ``buffer[base + k]`` is diagonal ``k``."""
        w = self.wavefront(distance)
        return w.data, w.base

    def check_capacity(self, pattern_length: int, text_length: int):
        """
        Validates that a ``pattern_length`` x ``text_length`` problem fits.

        Offsets never exceed ``text_length + max_distance``: each generation adds at most one to any offset and
        extension stops at the end of the text.

        Raises:
            CapacityError: If ``m + n`` exceeds the store capacity.
            OffsetOverflowError: If the offset dtype cannot represent every offset the run may write.
        """
        max_distance = pattern_length + text_length
        if max_distance > self._max_distance:
            raise CapacityError(f'Alignment of {pattern_length}x{text_length} needs distance {max_distance}, '
                                f'store holds {self._max_distance}')
        if text_length + max_distance > self.max_offset:
            raise OffsetOverflowError(f'{self._dtype} offsets overflow for {pattern_length}x{text_length}; '
                                      f'use a wider dtype')

    def _check_generation(self, distance: int):
        if not 0 <= distance <= self._max_distance:
            raise IndexError(f'Generation {distance} outside [0, {self._max_distance}]')


@WavefrontStore.register('amortized')
class AmortizedWavefrontStore(WavefrontStore):
    """
    One allocation per generation, grown outward as the distance increases.
    ``reset`` discards every generation buffer.
    """
    def __init__(self, max_distance: int, dtype=OFFSET_DTYPE, aligned: bool = False):
        super().__init__(max_distance, dtype, aligned)
        self._wavefronts: list[Optional[DiagonalBuffer]] = [None] * (self._max_distance + 1)
        self._allocated = 0

    @property
    def allocated(self) -> int:
        """Number of generation buffers allocated since the last reset."""
        return self._allocated

    @property
    def nbytes(self) -> int: return sum(w.data.nbytes for w in self._wavefronts if w is not None)

    def allocate(self, distance: int, lo: int, hi: int) -> DiagonalBuffer:
        self._check_generation(distance)
        w = self._wavefronts[distance] = DiagonalBuffer.zeros(lo, hi, self._dtype, self._alignment)
        self._allocated += 1
        return w

    def wavefront(self, distance: int) -> DiagonalBuffer:
        if not 0 <= distance <= self._max_distance or (w := self._wavefronts[distance]) is None:
            raise IndexError(f'Generation {distance} is not allocated')
        return w

    def reset(self):
        self._wavefronts = [None] * (self._max_distance + 1)
        self._allocated = 0
        self.allocate(0, 0, 0)

    def close(self):
        self._wavefronts = []
        self._allocated = 0
        self._max_distance = -1


@WavefrontStore.register('dense')
class DenseWavefrontStore(WavefrontStore):
    """
    One flat buffer for every generation, addressed by ``distance * (distance + 1) + k``.

    Generation ``d`` occupies the ``2d + 1`` cells ``[d*d, d*d + 2d]``, so generations are packed back to back and the
    arena holds ``(max_distance + 1) ** 2`` cells. ``reset`` only re-zeroes generation 0, diagonal 0: every other cell
    is written by Compute before it is read.
    """
    def __init__(self, max_distance: int, dtype=OFFSET_DTYPE, aligned: bool = False):
        super().__init__(max_distance, dtype, aligned)
        self._buffer = aligned_zeros((self._max_distance + 1) ** 2, self._dtype, self._alignment)
        self._ranges = np.zeros((self._max_distance + 1, 2), dtype=np.int64)
        self._top = 0

    @staticmethod
    def index(distance: int, k: int) -> int:
        """Closed-form arena index of diagonal ``k`` at generation ``distance``."""
        if not -distance <= k <= distance: raise IndexError(f'Diagonal {k} outside [-{distance}, {distance}]')
        return distance * (distance + 1) + k

    @property
    def buffer(self) -> np.ndarray: return self._buffer

    @property
    def nbytes(self) -> int: return self._buffer.nbytes

    def allocate(self, distance: int, lo: int, hi: int) -> DiagonalBuffer:
        self._check_generation(distance)
        start, stop = self.index(distance, lo), self.index(distance, hi)
        self._ranges[distance] = lo, hi
        self._top = max(self._top, distance)
        return DiagonalBuffer(self._buffer[start:stop + 1], lo, hi)

    def wavefront(self, distance: int) -> DiagonalBuffer:
        if not 0 <= distance <= self._top: raise IndexError(f'Generation {distance} is not allocated')
        lo, hi = self._ranges[distance].tolist()
        return DiagonalBuffer(self._buffer[self.index(distance, lo):self.index(distance, hi) + 1], lo, hi)

    def reset(self):
        self._buffer[self.index(0, 0)] = 0
        self._ranges[0] = 0, 0
        self._top = 0

    def close(self):
        self._buffer = np.empty(0, dtype=self._dtype)
        self._ranges = np.zeros((0, 2), dtype=np.int64)
        self._top = -1
        self._max_distance = -1


# Functions ------------------------------------------------------------------------------------------------------------
def aligned_zeros(size: int, dtype: Union[np.dtype, type] = OFFSET_DTYPE,
                  alignment: Optional[int] = None) -> np.ndarray:
    """
    Zero-filled 1-D array whose first element starts on an ``alignment``-byte boundary.

    With no alignment this is plain ``np.zeros``. Otherwise a byte buffer is over-allocated by ``alignment`` bytes and
    the aligned window is viewed as ``dtype``.

    Raises:
        AllocationError: If the memory cannot be allocated.
    """
    dtype = np.dtype(dtype)
    try:
        if not alignment: return np.zeros(size, dtype=dtype)
        nbytes = size * dtype.itemsize
        raw = np.zeros(nbytes + alignment, dtype=np.uint8)
        start = -raw.ctypes.data % alignment
        return raw[start:start + nbytes].view(dtype)
    except (MemoryError, ValueError, OverflowError) as e:
        raise AllocationError(f'Could not allocate {size} offsets of {dtype}') from e
