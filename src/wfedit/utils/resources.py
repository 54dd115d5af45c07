"""
Process-wide resources for alignment: the offload pool, memory page size and optional JIT compilation.
"""
from functools import cached_property, lru_cache
from importlib import import_module
from mmap import PAGESIZE
from concurrent.futures import ThreadPoolExecutor
import atexit
import os
from typing import Callable, Optional

from wfedit.utils import parse_int


# Constants ------------------------------------------------------------------------------------------------------------
KERNEL_OPTIONS = {'nopython': True, 'cache': True, 'nogil': True}


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Resources shared by every aligner in the process.

    Args:
        pool_workers: Thread count of the offload pool; defaults to ``WFEDIT_POOL_WORKERS`` or the CPU count.

    Examples:
        >>> with Resources(pool_workers=2) as resources:
        ...     resources.pool.submit(sum, [1, 2]).result()
        3
    """
    def __init__(self, pool_workers: Optional[int] = None) -> None:
        self._pool_workers = pool_workers
        atexit.register(self.shutdown)

    @cached_property
    def pool_workers(self) -> int:
        if self._pool_workers is not None: return max(1, self._pool_workers)
        if workers := parse_int('WFEDIT_POOL_WORKERS', os.environ.get('WFEDIT_POOL_WORKERS')): return workers
        try: cpus = os.process_cpu_count()
        except AttributeError: cpus = os.cpu_count()
        return cpus or 1

    @cached_property
    def pool(self) -> ThreadPoolExecutor:
        """Executor behind the ``pool`` backend, created on first use."""
        return ThreadPoolExecutor(self.pool_workers, thread_name_prefix='wfedit-offload')

    @property
    def page_size(self) -> int:
        """Boundary used for page-aligned offset and sequence buffers."""
        return PAGESIZE

    @property
    def jit_enabled(self) -> bool:
        """True when alignment kernels are compiled with Numba."""
        return self.has_module('numba')

    def shutdown(self):
        """Stops the offload pool if it was started; pending alignments are cancelled."""
        if 'pool' in self.__dict__: self.__dict__.pop('pool').shutdown(wait=False, cancel_futures=True)

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        try:
            import_module(module_name)
            return True
        except ImportError: return False

    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.shutdown()


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Compiles an alignment kernel with ``numba.jit`` when Numba is installed, else leaves it as plain Python.

    Bare ``@jit`` uses :data:`KERNEL_OPTIONS`; explicit options replace them. Kernels must stay valid Python because
    they run uncompiled without Numba.
    """
    if not RESOURCES.jit_enabled:
        if callable(signature_or_function): return signature_or_function
        return lambda func: func
    from numba import jit as numba_jit
    if callable(signature_or_function): return numba_jit(**KERNEL_OPTIONS)(signature_or_function)
    return numba_jit(signature_or_function, **(options or KERNEL_OPTIONS))


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
