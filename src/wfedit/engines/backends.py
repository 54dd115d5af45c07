"""
Execution backends deciding where an alignment body runs.

A backend never changes what is computed: it receives an ordinary callable and returns a
:class:`concurrent.futures.Future` for its result. ``inline`` runs it in the caller's thread; ``pool`` enqueues it on
the shared offload pool, standing in for a device task queue.
"""
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from typing import Callable, Optional, Union

from wfedit.utils.resources import RESOURCES


# Classes --------------------------------------------------------------------------------------------------------------
class ExecutionBackend(ABC):
    """
    Runs callables and hands back futures.

    Examples:
        >>> backend = ExecutionBackend.create('inline')
        >>> backend.run(sum, [1, 2, 3])
        6
    """
    _REGISTRY = {}

    @classmethod
    def register(cls, name: str):
        def decorator(backend_cls):
            cls._REGISTRY[name] = backend_cls
            backend_cls.name = name
            return backend_cls
        return decorator

    @classmethod
    def create(cls, backend: Union[str, 'ExecutionBackend']) -> 'ExecutionBackend':
        """Returns ``backend`` itself if it is already a backend, else builds the registered one by name."""
        if isinstance(backend, ExecutionBackend): return backend
        if (backend_cls := cls._REGISTRY.get(backend)) is None:
            raise ValueError(f'Unknown execution backend "{backend}"; choose from {", ".join(cls.names())}')
        return backend_cls()

    @classmethod
    def names(cls) -> tuple[str, ...]: return tuple(cls._REGISTRY)

    name = None

    def __repr__(self): return f"{self.__class__.__name__}()"

    @abstractmethod
    def submit(self, fn: Callable, /, *args, **kwargs) -> Future: ...

    def run(self, fn: Callable, /, *args, **kwargs):
        """Submits and waits, re-raising any exception from ``fn``."""
        return self.submit(fn, *args, **kwargs).result()


@ExecutionBackend.register('inline')
class InlineBackend(ExecutionBackend):
    """Runs the callable immediately; the returned future is already done."""
    def submit(self, fn: Callable, /, *args, **kwargs) -> Future:
        future = Future()
        future.set_running_or_notify_cancel()
        try: result = fn(*args, **kwargs)
        except Exception as e: future.set_exception(e)
        else: future.set_result(result)
        return future


@ExecutionBackend.register('pool')
class PoolBackend(ExecutionBackend):
    """Enqueues the callable on an executor, by default the shared :attr:`RESOURCES.pool`."""
    __slots__ = ('_executor',)

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor

    @property
    def executor(self) -> Executor: return self._executor if self._executor is not None else RESOURCES.pool

    def submit(self, fn: Callable, /, *args, **kwargs) -> Future: return self.executor.submit(fn, *args, **kwargs)
