from __future__ import annotations
import os
from typing import Iterable, Union

CodeLike = Union[bytes, bytearray, memoryview, Iterable[int]]

def as_code(obj: CodeLike) -> bytes:
    """Freeze a bytes-like object or an iterable of ints into ``bytes``."""
    if isinstance(obj, bytes):
        return obj
    if isinstance(obj, (bytearray, memoryview)):
        return bytes(obj)
    if isinstance(obj, (str, os.PathLike)):
        raise TypeError("as_code() takes bytes; use load_code() for paths")
    vals = list(obj)
    for i, v in enumerate(vals):
        if not isinstance(v, int) or not 0 <= v <= 0xFF:
            raise ValueError(f"byte {i} out of range: {v!r}")
    return bytes(vals)

def _load_file(path) -> bytes:
    with open(path, "rb") as f:
        return f.read()

def load_code(source) -> bytes:
    if isinstance(source, (str, os.PathLike)):
        return _load_file(source)
    return as_code(source)
