# test_hessenberg.py
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from realschur.errors import ErrorCode, InvalidArgumentError
from realschur.hessenberg import is_hessenberg, reduce_to_hessenberg
from realschur.residuals import orthogonality_residual, similarity_residual

TOL = 1e-13


def test_reduction_of_random_matrix(rng):
    A0 = rng.standard_normal((7, 7))
    A = A0.copy()
    Q = np.eye(7)
    assert reduce_to_hessenberg(A, Q) == ErrorCode.SUCCESS
    assert is_hessenberg(A)
    assert_array_equal(np.tril(A, -2), 0.0)
    assert orthogonality_residual(Q) < TOL
    assert similarity_residual(A0, Q, A) < TOL


def test_reduction_in_two_column_ranges(rng):
    A0 = rng.standard_normal((6, 6))
    A = A0.copy()
    Q = np.eye(6)
    reduce_to_hessenberg(A, Q, begin=0, end=2)
    assert not is_hessenberg(A)
    reduce_to_hessenberg(A, Q, begin=2)
    assert is_hessenberg(A)
    assert similarity_residual(A0, Q, A) < TOL


def test_order_one_matrix_is_unchanged():
    A = np.array([[5.0]])
    Q = np.array([[1.0]])
    reduce_to_hessenberg(A, Q)
    assert_array_equal(A, [[5.0]])
    assert_array_equal(Q, [[1.0]])


def test_reduction_of_strided_view(rng):
    big = np.zeros((8, 8), order="F")
    big[1:6, 1:6] = rng.standard_normal((5, 5))
    A = big[1:6, 1:6]
    A0 = A.copy()
    Q = np.eye(5)
    reduce_to_hessenberg(A, Q)
    assert is_hessenberg(big[1:6, 1:6])
    assert_array_equal(big[0, :], 0.0)
    assert_array_equal(big[6:, :], 0.0)
    assert similarity_residual(A0, Q, A) < TOL


def test_nonidentity_initial_basis(rng):
    U, _ = np.linalg.qr(rng.standard_normal((5, 5)))
    A0 = rng.standard_normal((5, 5))
    A = U.T @ A0 @ U
    Q = U.copy()
    reduce_to_hessenberg(A, Q)
    assert similarity_residual(A0, Q, A) < TOL


@pytest.mark.parametrize(
    "A, Q, kwargs, position",
    [
        (np.zeros((3, 4)), np.eye(3), {}, 1),
        (np.zeros((0, 0)), np.eye(0), {}, 1),
        (np.zeros((3, 3), dtype=int), np.eye(3), {}, 1),
        (np.full((3, 3), np.nan), np.eye(3), {}, 1),
        (np.zeros((3, 3)), np.eye(4), {}, 2),
        (np.zeros((3, 3)), np.eye(3), {"begin": 4}, 3),
        (np.zeros((3, 3)), np.eye(3), {"begin": 2, "end": 1}, 4),
        (np.zeros((3, 3)), np.eye(3), {"end": 5}, 4),
    ],
)
def test_invalid_arguments(A, Q, kwargs, position):
    with pytest.raises(InvalidArgumentError) as excinfo:
        reduce_to_hessenberg(A, Q, **kwargs)
    assert excinfo.value.position == position


def test_read_only_matrix_is_rejected():
    A = np.eye(3)
    A.setflags(write=False)
    with pytest.raises(InvalidArgumentError, match="read-only") as excinfo:
        reduce_to_hessenberg(A, np.eye(3))
    assert excinfo.value.argument == "A"


def test_shared_buffers_are_rejected():
    A = np.eye(3)
    with pytest.raises(InvalidArgumentError) as excinfo:
        reduce_to_hessenberg(A, A[:, :])
    assert excinfo.value.position == 2


def test_reduction_of_huge_entries_stays_finite(rng):
    # Power-of-two scaling is exact, so the scaled reduction can be compared directly
    scale = 2.0 ** 996
    B0 = rng.standard_normal((6, 6))
    B = B0.copy()
    QB = np.eye(6)
    reduce_to_hessenberg(B, QB)

    A = B0 * scale
    Q = np.eye(6)
    assert reduce_to_hessenberg(A, Q) == ErrorCode.SUCCESS
    assert np.all(np.isfinite(A))
    assert np.all(np.isfinite(Q))
    assert is_hessenberg(A)
    assert orthogonality_residual(Q) < TOL
    assert similarity_residual(B0, Q, A / scale) < TOL
    assert_allclose(A / scale, B, atol=1e-12)
    assert_allclose(Q, QB, atol=1e-12)
