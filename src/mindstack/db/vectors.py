"""Embedding vector helpers: normalization, dimension checks, blob encoding."""

from __future__ import annotations

import math
import struct

from sqlite_vec import serialize_float32


def normalize(vector: list[float]) -> list[float]:
    """Return *vector* scaled to unit length. A zero vector is returned unchanged."""
    norm = math.sqrt(math.fsum(v * v for v in vector))
    if norm == 0.0:
        return list(vector)
    return [v / norm for v in vector]


def check_dimensions(vector: list[float], dimensions: int) -> None:
    """Raise ValueError unless *vector* has exactly *dimensions* entries."""
    if len(vector) != dimensions:
        raise ValueError(
            f"Embedding has {len(vector)} dimensions, expected {dimensions}"
        )


def to_blob(vector: list[float]) -> bytes:
    """Encode *vector* as the float32 blob format sqlite-vec reads."""
    return serialize_float32(vector)


def from_blob(blob: bytes) -> list[float]:
    """Decode a float32 blob written by to_blob()."""
    count = len(blob) // 4
    return list(struct.unpack(f"{count}f", blob))
