from io import StringIO
from mmap import PAGESIZE
from types import SimpleNamespace
from dataclasses import dataclass
import logging

import pytest
from wfedit.utils import Config, ConfigError, Timer, parse_flag, parse_int, setup_logging
from wfedit.utils.resources import RESOURCES, Resources, jit


@dataclass(slots=True, frozen=True, kw_only=True)
class _ExampleConfig(Config):
    size: int = 1
    name: str = 'x'


class TestParsing:
    def test_flag(self):
        assert parse_flag('DEBUG', None) is False
        assert parse_flag('DEBUG', None, default=True) is True
        assert parse_flag('DEBUG', '1') is True
        assert parse_flag('DEBUG', '0') is False
        with pytest.raises(ConfigError, match="DEBUG"):
            parse_flag('DEBUG', 'true')

    def test_int(self):
        assert parse_int('REPS', None) == 0
        assert parse_int('REPS', ' 12 ') == 12
        with pytest.raises(ConfigError, match="REPS"):
            parse_int('REPS', '1.5')
        with pytest.raises(ConfigError, match="must be in"):
            parse_int('REPS', str(2 ** 31))

    def test_config_from_obj_skips_none(self):
        config = _ExampleConfig.from_obj(SimpleNamespace(size=4, name=None, other=1))
        assert (config.size, config.name) == (4, 'x')


class TestTimer:
    def test_elapsed(self):
        timer = Timer()
        assert timer.elapsed == 0.0
        with timer:
            sum(range(1000))
        elapsed = timer.elapsed
        assert elapsed > 0
        assert timer.elapsed == elapsed


class TestLogging:
    def test_levels(self):
        stream = StringIO()
        logger = setup_logging(debug=True, stream=stream)
        assert logger.name == 'wfedit'
        assert logger.level == logging.DEBUG
        logging.getLogger('wfedit.engines').debug('hello')
        assert '[DEBUG] [wfedit.engines] hello' in stream.getvalue()
        assert setup_logging(stream=stream).level == logging.WARNING
        assert setup_logging(verbose=True, stream=stream).level == logging.INFO

    def test_single_handler(self):
        setup_logging(stream=StringIO())
        logger = setup_logging(stream=StringIO())
        assert len(logger.handlers) == 1


class TestResources:
    def test_has_module(self):
        assert Resources.has_module('numpy')
        assert not Resources.has_module('wfedit_no_such_module')

    def test_page_size(self):
        assert RESOURCES.page_size == PAGESIZE

    def test_jit_keeps_kernels_callable(self):
        @jit(nopython=True)
        def mul(a, b): return a * b
        assert mul(2, 3) == 6

    def test_pool_workers(self, monkeypatch):
        assert Resources(pool_workers=2).pool_workers == 2
        monkeypatch.setenv('WFEDIT_POOL_WORKERS', '3')
        assert Resources().pool_workers == 3
        monkeypatch.setenv('WFEDIT_POOL_WORKERS', 'many')
        with pytest.raises(ConfigError, match="WFEDIT_POOL_WORKERS"):
            Resources().pool_workers

    def test_pool_restarts_after_shutdown(self):
        with Resources(pool_workers=1) as resources:
            first = resources.pool
            assert first.submit(sum, [1, 2]).result(timeout=30) == 3
            resources.shutdown()
            assert resources.pool is not first
            assert resources.pool.submit(sum, [3, 4]).result(timeout=30) == 7
