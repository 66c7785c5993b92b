import pytest

from gigradar.errors import DimensionMismatchError
from gigradar.similarity import cosine_similarity


def test_identical_vectors_score_100() -> None:
    v = [0.3, -0.2, 0.9, 0.1]
    assert cosine_similarity(v, v) == pytest.approx(100.0)


def test_zero_vector_scores_0() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_opposite_vectors_are_clamped_to_0() -> None:
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0


def test_orthogonal_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0


def test_partial_overlap() -> None:
    assert cosine_similarity([1.0, 1.0], [1.0, 0.0]) == pytest.approx(70.7107, abs=1e-3)


def test_length_mismatch_raises() -> None:
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
