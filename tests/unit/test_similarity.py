"""Tests for cosine similarity."""

import pytest

from src.core.errors import DataIntegrityError
from src.matching.similarity import cosine_similarity


class TestCosineSimilarity:
    def test_identical(self) -> None:
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self) -> None:
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_symmetric(self) -> None:
        a = [0.3, -0.2, 0.9]
        b = [0.1, 0.4, 0.5]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_zero_magnitude(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch_raises(self) -> None:
        with pytest.raises(DataIntegrityError, match="length"):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_within_bounds(self) -> None:
        value = cosine_similarity([1e-8, 3.0], [1e-8, 3.0])
        assert -1.0 <= value <= 1.0
