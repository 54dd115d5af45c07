"""
Benchmark driver for wavefront edit alignment.

Configured through environment variables; run with ``USAGE=1`` (or ``-h``) for the list.
"""
from argparse import ArgumentParser, RawDescriptionHelpFormatter
from dataclasses import dataclass, asdict
from os import environ, access, R_OK, W_OK
from pathlib import Path
from sys import stdout, stderr
from types import SimpleNamespace
from typing import IO, Mapping, Optional, Sequence
import logging

import numpy as np

from wfedit.core.seq import SymbolsLike
from wfedit.core.wavefront import WavefrontStore, WavefrontError, PAGE_SIZE, aligned_zeros
from wfedit.engines.backends import ExecutionBackend
from wfedit.engines.wavefront import WavefrontAligner
from wfedit.io import check_result, write_result, ResultIOError
from wfedit.utils import Config, ConfigError, Timer, parse_flag, parse_int, setup_logging


# Constants ------------------------------------------------------------------------------------------------------------
_LOG = logging.getLogger(__name__)
BENCHMARK_PATTERN = b"TCTTTACTCGCGCGTTGGAGAAATACAATAGT" * 4
BENCHMARK_TEXT = b"TCTATACTGCGCGTTTGGAGAAATAAAATAGT" * 4
_RULE = '#' * 87
_ENVIRONMENT_HELP = f"""\
Environment variables:
  USAGE           print usage information
  REPS            number of repetitions, between 0 and {2 ** 31 - 1}, default (0)
  DEBUG           print debug information, 0 -> inactive, 1 -> active, default (0)
  TIMES           print timing information, 0 -> inactive, 1 -> active, default (0)
  CHECK           file to check the results against
  WRITE_RESULT    file to write the results to
  ALIGNED         page-align offset buffers and sequences, 0 -> inactive, 1 -> active, default (1)
  WFEDIT_STORE    wavefront store: {', '.join(WavefrontStore.names())}, default (amortized)
  WFEDIT_BACKEND  execution backend: {', '.join(ExecutionBackend.names())}, default (inline)
"""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(slots=True, frozen=True, kw_only=True)
class RunConfig(Config):
    """Benchmark configuration."""
    reps: int = 0
    debug: bool = False
    times: bool = False
    check: Optional[Path] = None
    write_result: Optional[Path] = None
    aligned: bool = True
    store: str = 'amortized'
    backend: str = 'inline'

    @classmethod
    def from_env(cls, env: Mapping[str, str] = environ, **overrides) -> 'RunConfig':
        """
        Builds the configuration from environment variables; keyword overrides that are not None win.

        Raises:
            ConfigError: For malformed values.
            ResultIOError: If the check file is missing or unreadable, or the result file is not writable.
        """
        values = {
            'reps': parse_int('REPS', env.get('REPS')),
            'debug': parse_flag('DEBUG', env.get('DEBUG')),
            'times': parse_flag('TIMES', env.get('TIMES')),
            'aligned': parse_flag('ALIGNED', env.get('ALIGNED'), default=True),
            'store': env.get('WFEDIT_STORE'),
            'backend': env.get('WFEDIT_BACKEND'),
        }
        if (check := env.get('CHECK')) is not None:
            values['check'] = check = Path(check)
            if not check.exists(): raise ResultIOError(f'Check file {check} does not exist')
            if not access(check, R_OK): raise ResultIOError(f'Check file {check} is not readable')
        if (result := env.get('WRITE_RESULT')) is not None:
            values['write_result'] = result = Path(result)
            if result.exists() and not access(result, W_OK): raise ResultIOError(f'File {result} is not writable')
        values.update((k, v) for k, v in overrides.items() if v is not None)
        config = cls.from_obj(SimpleNamespace(**values))
        if config.store not in WavefrontStore.names():
            raise ConfigError(f'Invalid value for WFEDIT_STORE: {config.store!r}')
        if config.backend not in ExecutionBackend.names():
            raise ConfigError(f'Invalid value for WFEDIT_BACKEND: {config.backend!r}')
        return config


# Functions ------------------------------------------------------------------------------------------------------------
def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog='wfedit', description='Edit-distance alignment benchmark using wavefronts.',
        formatter_class=RawDescriptionHelpFormatter, epilog=_ENVIRONMENT_HELP
    )
    parser.add_argument('--pattern', help='pattern sequence (default: built-in benchmark pattern)')
    parser.add_argument('--text', help='text sequence (default: built-in benchmark text)')
    parser.add_argument('--store', choices=WavefrontStore.names(), help='overrides WFEDIT_STORE')
    parser.add_argument('--backend', choices=ExecutionBackend.names(), help='overrides WFEDIT_BACKEND')
    return parser


def usage(parser: ArgumentParser, file: IO = stderr) -> int:
    """Prints usage information and returns the failure exit code."""
    print(file=file)
    parser.print_help(file)
    print(file=file)
    return 1


def main(argv: Optional[Sequence[str]] = None, env: Optional[Mapping[str, str]] = None,
         out: IO = stdout, err: IO = stderr) -> int:
    """
    Runs the benchmark: for each repetition reset the store, align, then optionally check and write the result.

    Returns:
        The process exit code: 0 on success, 1 on usage errors, I/O errors, alignment failures or check mismatches.
    """
    env = environ if env is None else env
    parser = build_parser()
    args, extra = parser.parse_known_args(argv)
    if extra or 'USAGE' in env: return usage(parser, err)

    try:
        config = RunConfig.from_env(env, store=args.store, backend=args.backend)
    except ConfigError as e:
        print(e, file=err)
        return usage(parser, err)
    except ResultIOError as e:
        print(e, file=err)
        return 1
    setup_logging(debug=config.debug, stream=err)

    try:
        pattern = args.pattern.encode('ascii') if args.pattern is not None else BENCHMARK_PATTERN
        text = args.text.encode('ascii') if args.text is not None else BENCHMARK_TEXT
    except UnicodeEncodeError:
        print('Sequences must be ASCII', file=err)
        return 1

    _print_summary(config, pattern, text, out)
    try:
        if config.aligned: pattern, text = _page_aligned(pattern), _page_aligned(text)
        print('\nInitializing wavefronts', file=out)
        with Timer() as timer:
            aligner = WavefrontAligner(len(pattern), len(text), store=config.store, backend=config.backend,
                                       aligned=config.aligned)
        print('Wavefronts initialized', file=out)
        if config.times: print(f'Init time: {timer.elapsed:f}', file=out)

        with aligner:
            for rep in range(config.reps):
                if not _run_repetition(rep, aligner, pattern, text, config, out, err): return 1
    except (WavefrontError, MemoryError) as e:
        print(f'Alignment failed: {e}', file=err)
        return 1
    except ResultIOError as e:
        print(e, file=err)
        return 1
    print(file=out)
    return 0


def _run_repetition(rep: int, aligner: WavefrontAligner, pattern: SymbolsLike, text: SymbolsLike, config: RunConfig,
                    out: IO, err: IO) -> bool:
    print(f"\n{'-' * 87}\n\nRepetition: {rep}", file=out)

    print('\nCleaning wavefronts offsets...', file=out)
    with Timer() as timer: aligner.reset()
    print('Cleaning finished', file=out)
    if config.times: print(f'Clean time: {timer.elapsed:f}', file=out)

    print('\nAligning...', file=out)
    with Timer() as timer: alignment = aligner.align(pattern, text)
    print('Alignment finished', file=out)
    if config.times: print(f'WFA execution time: {timer.elapsed:f}', file=out)
    _LOG.debug('Score %d, script %s', alignment.score, alignment.script.decode('ascii'))

    if config.check is not None:
        print('\nChecking results...', file=out)
        with Timer() as timer: report = check_result(alignment, config.check)
        if not report:
            print(f'Check has failed: {report.describe()}', file=err)
            return False
        print('Check finished', file=out)
        if config.times: print(f'Check results time: {timer.elapsed:f}', file=out)

    if config.write_result is not None:
        print('\nWriting results...', file=out)
        with Timer() as timer: write_result(alignment, config.write_result)
        print('Results written', file=out)
        if config.times: print(f'Write results time: {timer.elapsed:f}', file=out)
    return True


def _page_aligned(seq: bytes) -> np.ndarray:
    data = aligned_zeros(len(seq), np.uint8, PAGE_SIZE)
    data[:] = np.frombuffer(seq, dtype=np.uint8)
    return data


def _print_summary(config: RunConfig, pattern: bytes, text: bytes, out: IO):
    print(f'\n{_RULE}\nConfiguration summary:\n\n\nEnvironment variables', file=out)
    for name, value in asdict(config).items():
        if value is not None: print(f'\t{name.replace("_", " ").capitalize()}: {value}', file=out)
    print(f'\nPattern length: {len(pattern)}\nText length: {len(text)}\n\n{_RULE}', file=out)
