"""
Containers for edit-distance alignment results.
"""
from enum import IntEnum
from itertools import groupby

import numpy as np

from wfedit.core.seq import as_symbols, SymbolsLike


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ScriptError(ValueError): pass


# Classes --------------------------------------------------------------------------------------------------------------
class EditOp(IntEnum):
    """Edit operations; each value is the byte written to the edit script."""
    M = ord('M')  # Match
    X = ord('X')  # Substitution
    I = ord('I')  # Insertion (consumes text)
    D = ord('D')  # Deletion (consumes pattern)

    @property
    def symbol(self) -> bytes: return bytes((self.value,))

    @property
    def consumes_pattern(self) -> bool: return self is not EditOp.I

    @property
    def consumes_text(self) -> bool: return self is not EditOp.D


class Alignment:
    """
    Result of a global edit-distance alignment.

    The script is kept exactly as the backtrace emits it: from the END of both sequences towards the start.
    Use :meth:`forward` or :meth:`cigar` for start-to-end views.

    Attributes:
        score (int): Edit distance.
        script (bytes): Edit operations in end-to-start order.
        pattern_length (int): Length of the pattern.
        text_length (int): Length of the text.

    Examples:
        >>> aln = Alignment(1, b'MMDM', 4, 3)
        >>> aln.forward()
        b'MDMM'
        >>> aln.cigar()
        b'1M1D2M'
    """
    __slots__ = ('_score', '_script', '_pattern_length', '_text_length')
    _VALID = frozenset(op.value for op in EditOp)

    def __init__(self, score: int, script: bytes, pattern_length: int, text_length: int):
        self._score = int(score)
        self._script = bytes(script)
        self._pattern_length = int(pattern_length)
        self._text_length = int(text_length)

    @property
    def score(self) -> int: return self._score
    @property
    def script(self) -> bytes: return self._script
    @property
    def pattern_length(self) -> int: return self._pattern_length
    @property
    def text_length(self) -> int: return self._text_length

    def __len__(self) -> int: return len(self._script)
    def __bytes__(self) -> bytes: return self.to_bytes()
    def __hash__(self): return hash((self._score, self._script, self._pattern_length, self._text_length))
    def __eq__(self, other):
        if not isinstance(other, Alignment): return NotImplemented
        return (self._score, self._script, self._pattern_length, self._text_length) == (
            other._score, other._script, other._pattern_length, other._text_length)

    def __repr__(self):
        script = self._script.decode('ascii')
        if len(script) > 20: script = f"{script[:10]}...{script[-7:]}"
        return f"Alignment(score={self._score}, script={script}, {self._pattern_length}x{self._text_length})"

    def forward(self) -> bytes:
        """Returns the script in start-to-end order."""
        return self._script[::-1]

    def counts(self) -> dict[EditOp, int]:
        """Number of occurrences of each operation."""
        return {op: self._script.count(op.symbol) for op in EditOp}

    @property
    def edits(self) -> int:
        """Number of non-match operations."""
        return len(self._script) - self._script.count(EditOp.M.symbol)

    def cigar(self) -> bytes:
        """
        Run-length encoded start-to-end script.

        Examples:
            >>> Alignment(2, b'IIMM', 2, 4).cigar()
            b'2M2I'
        """
        return b"".join(b"%d" % sum(1 for _ in run) + bytes((op,)) for op, run in groupby(self.forward()))

    def replay(self, pattern: SymbolsLike, text: SymbolsLike) -> 'Alignment':
        """
        Checks that the script transforms ``pattern`` into ``text`` at the reported cost.

        Walks the script in emission order from ``(v, h) = (m, n)``: ``M`` and ``X`` step both sequences and require
        equal and unequal symbols respectively, ``I`` steps the text, ``D`` steps the pattern. The walk must end at
        ``(0, 0)`` and the number of non-match operations must equal the score.

        Returns:
            self, for chaining.

        Raises:
            ScriptError: On the first violation found.
        """
        p, t = as_symbols(pattern), as_symbols(text)
        if (len(p), len(t)) != (self._pattern_length, self._text_length):
            raise ScriptError(f'Alignment is {self._pattern_length}x{self._text_length}, got {len(p)}x{len(t)}')
        v, h = len(p), len(t)
        for i, code in enumerate(self._script):
            if code not in self._VALID: raise ScriptError(f'Unknown operation {bytes((code,))!r} at position {i}')
            op = EditOp(code)
            if op.consumes_pattern: v -= 1
            if op.consumes_text: h -= 1
            if v < 0 or h < 0: raise ScriptError(f'Script runs past the start of the sequences at position {i}')
            if op == EditOp.M and p[v] != t[h]:
                raise ScriptError(f'Match at position {i} pairs pattern[{v}] with a different text[{h}]')
            if op == EditOp.X and p[v] == t[h]:
                raise ScriptError(f'Substitution at position {i} pairs equal symbols pattern[{v}], text[{h}]')
        if v or h: raise ScriptError(f'Script leaves {v} pattern and {h} text symbols unconsumed')
        if self.edits != self._score:
            raise ScriptError(f'Script has {self.edits} edits but the score is {self._score}')
        return self

    def to_bytes(self) -> bytes:
        """Serializes as the decimal score, a newline, then the raw script bytes."""
        return b"%d\n" % self._score + self._script

    @classmethod
    def from_bytes(cls, data: bytes, pattern_length: int = None, text_length: int = None) -> 'Alignment':
        """
        Parses the :meth:`to_bytes` format.

        Sequence lengths are recovered from the script when not given.
        """
        head, sep, script = data.partition(b"\n")
        try: score = int(head)
        except ValueError: raise ScriptError(f'Invalid score line {head[:32]!r}') from None
        if pattern_length is None: pattern_length = len(script) - script.count(EditOp.I.symbol)
        if text_length is None: text_length = len(script) - script.count(EditOp.D.symbol)
        return cls(score, script, pattern_length, text_length)

    def operations(self) -> np.ndarray:
        """The script as a ``uint8`` array of :class:`EditOp` values."""
        return np.frombuffer(self._script, dtype=np.uint8)
