"""
Edit-distance alignment with wavefronts.

Examples:
    >>> from wfedit import align
    >>> aln = align(b'ACGT', b'AGT')
    >>> aln.score, aln.script, aln.cigar()
    (1, b'MMDM', b'1M1D2M')
"""
from wfedit.utils import WfeditWarning, ConfigError
from wfedit.utils.resources import RESOURCES
from wfedit.core.wavefront import (WavefrontStore, AmortizedWavefrontStore, DenseWavefrontStore, DiagonalBuffer,
                                   WavefrontError, AllocationError, CapacityError, OffsetOverflowError,
                                   aligned_zeros)
from wfedit.containers.alignment import Alignment, EditOp, ScriptError
from wfedit.engines.backends import ExecutionBackend
from wfedit.engines.wavefront import WavefrontAligner, align, wavefront_align
from wfedit.io import (write_result, read_result, check_result, verify_result, CheckReport, ResultIOError,
                       ResultFormatError, VerificationError)
