"""Tests for embedding vector helpers."""

from __future__ import annotations

import math

import pytest

from mindstack.db.vectors import check_dimensions, from_blob, normalize, to_blob


def test_normalize_unit_length():
    vector = normalize([3.0, 4.0])
    assert vector == pytest.approx([0.6, 0.8])
    assert math.isclose(sum(v * v for v in vector), 1.0)


def test_normalize_zero_vector_unchanged():
    assert normalize([0.0, 0.0]) == [0.0, 0.0]


def test_check_dimensions_mismatch():
    with pytest.raises(ValueError, match="expected 4"):
        check_dimensions([0.1, 0.2], 4)


def test_check_dimensions_ok():
    check_dimensions([0.1, 0.2, 0.3], 3)


def test_blob_round_trip_float32():
    blob = to_blob([0.5, -1.25, 2.0])
    assert len(blob) == 12
    assert from_blob(blob) == [0.5, -1.25, 2.0]
