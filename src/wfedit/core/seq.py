"""
Module for normalizing symbol sequences
"""
from typing import Union

import numpy as np


# Types ----------------------------------------------------------------------------------------------------------------
SymbolsLike = Union[bytes, bytearray, memoryview, str, np.ndarray]


# Functions ------------------------------------------------------------------------------------------------------------
def as_symbols(seq: SymbolsLike) -> np.ndarray:
    """
    Returns a read-only ``uint8`` view of a symbol sequence (zero copy for bytes-like input).

    Args:
        seq: Bytes-like object, ASCII string, or 1-D integer array of byte values.

    Raises:
        TypeError: For unsupported input types.
        ValueError: For non-ASCII strings, multi-dimensional arrays or values outside 0..255.

    Examples:
        >>> as_symbols('ACGT')
        array([65, 67, 71, 84], dtype=uint8)
    """
    if isinstance(seq, str):
        try: seq = seq.encode('ascii')
        except UnicodeEncodeError: raise ValueError('Sequences given as str must be ASCII') from None
    if isinstance(seq, (bytes, bytearray, memoryview)):
        data = np.frombuffer(seq, dtype=np.uint8)
    elif isinstance(seq, np.ndarray):
        if seq.ndim != 1: raise ValueError(f'Sequences must be 1-D, got shape {seq.shape}')
        if seq.dtype == np.uint8: data = seq.view()
        elif np.issubdtype(seq.dtype, np.integer):
            if len(seq) and (seq.min() < 0 or seq.max() > 255): raise ValueError('Symbol values must be in 0..255')
            data = seq.astype(np.uint8)
        else: raise TypeError(f'Cannot use a {seq.dtype} array as a sequence')
    else:
        raise TypeError(f'Cannot use {type(seq).__name__} as a sequence')
    data.flags.writeable = False
    return data
