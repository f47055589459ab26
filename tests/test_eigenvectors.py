# test_eigenvectors.py
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from conftest import random_orthogonal
from realschur.core import reduce
from realschur.eigenvectors import compute_eigenvectors
from realschur.errors import InvalidArgumentError
from realschur.residuals import eigenvector_residuals
from realschur.schema import EigenvectorsConfig

RES_TOL = 1e-12


@pytest.fixture
def mixed_spectrum(rng):
    """A = U B U^T with two conjugate pairs and two real eigenvalues."""
    B = np.zeros((6, 6))
    B[0:2, 0:2] = [[1.0, 2.0], [-2.0, 1.0]]
    B[2, 2] = 3.0
    B[3:5, 3:5] = [[-1.0, 5.0], [-0.5, -1.0]]
    B[5, 5] = 2.0
    B += np.triu(rng.standard_normal((6, 6)), 2)
    U = random_orthogonal(6, rng)
    return U @ B @ U.T


def _decompose(A):
    S = A.copy()
    Q = np.eye(A.shape[0])
    result = reduce(S, Q)
    return S, Q, result


def test_all_eigenvectors_of_random_matrix(rng):
    A = rng.standard_normal((9, 9))
    S, Q, result = _decompose(A)
    mask = np.ones(9, dtype=int)
    X = compute_eigenvectors(mask, S, Q)
    assert X.shape == (9, 9)
    res = eigenvector_residuals(A, X, mask, result.real, result.imag)
    assert res.shape == (9,)
    assert np.all(res < RES_TOL)


def test_pairs_are_normalized_jointly(mixed_spectrum):
    A = mixed_spectrum
    S, Q, result = _decompose(A)
    mask = np.ones(6, dtype=int)
    X = compute_eigenvectors(mask, S, Q)
    assert np.all(eigenvector_residuals(A, X, mask, result.real, result.imag) < RES_TOL)

    col = 0
    i = 0
    while i < 6:
        if result.imag[i] != 0.0:
            v = X[:, col] + 1j * X[:, col + 1]
            assert np.linalg.norm(v) == pytest.approx(1.0)
            lam = result.real[i] + 1j * result.imag[i]
            assert_allclose(A @ v, lam * v, atol=1e-12)
            col += 2
            i += 2
        else:
            assert np.linalg.norm(X[:, col]) == pytest.approx(1.0)
            col += 1
            i += 1


def test_infinity_normalization(mixed_spectrum):
    S, Q, result = _decompose(mixed_spectrum)
    mask = np.ones(6, dtype=int)
    X = compute_eigenvectors(mask, S, Q, conf=EigenvectorsConfig(normalization="inf"))
    col = 0
    i = 0
    while i < 6:
        if result.imag[i] != 0.0:
            v = X[:, col] + 1j * X[:, col + 1]
            assert np.max(np.abs(v)) == pytest.approx(1.0)
            col += 2
            i += 2
        else:
            assert np.max(np.abs(X[:, col])) == pytest.approx(1.0)
            col += 1
            i += 1


def test_columns_follow_mask_order():
    S = np.array([[1.0, 2.0, 3.0], [0.0, 2.0, 4.0], [0.0, 0.0, 3.0]])
    Q = np.eye(3)
    X = compute_eigenvectors([1, 0, 1], S, Q)
    assert X.shape == (3, 2)
    assert_allclose(X[:, 0], [1.0, 0.0, 0.0])
    assert_allclose(S @ X[:, 1], 3.0 * X[:, 1], atol=1e-14)
    assert X[2, 1] != 0.0


def test_order_one():
    X = compute_eigenvectors([1], np.array([[5.0]]), np.array([[1.0]]))
    assert_array_equal(X, [[1.0]])


def test_rotation_matrix():
    S = np.array([[0.0, 1.0], [-1.0, 0.0]])
    Q = np.eye(2)
    assert compute_eigenvectors([0, 0], S, Q).shape == (2, 0)
    X = compute_eigenvectors([1, 1], S, Q)
    v = X[:, 0] + 1j * X[:, 1]
    assert_allclose(S @ v, 1j * v, atol=1e-15)


def test_inputs_are_not_modified(mixed_spectrum):
    S, Q, _ = _decompose(mixed_spectrum)
    S0, Q0 = S.copy(), Q.copy()
    S.setflags(write=False)
    Q.setflags(write=False)
    compute_eigenvectors(np.ones(6), S, Q)
    assert_array_equal(S, S0)
    assert_array_equal(Q, Q0)


def test_supplied_output_is_filled_in_place():
    S = np.array([[2.0, 1.0], [0.0, -1.0]])
    X = np.full((2, 1), np.nan)
    out = compute_eigenvectors([0, 1], S, np.eye(2), X=X)
    assert out is X
    assert_allclose(S @ X[:, 0], -X[:, 0], atol=1e-15)


def test_wrong_output_shape_is_rejected():
    with pytest.raises(InvalidArgumentError) as excinfo:
        compute_eigenvectors([1, 1], np.eye(2), np.eye(2), X=np.zeros((2, 1)))
    assert excinfo.value.position == 4


def test_mask_splitting_a_pair_is_rejected():
    S = np.array([[0.0, 1.0], [-1.0, 0.0]])
    with pytest.raises(InvalidArgumentError) as excinfo:
        compute_eigenvectors([1, 0], S, np.eye(2))
    assert excinfo.value.position == 1


def test_near_singular_shift_stays_finite():
    # Two equal eigenvalues: the shifted system is exactly singular
    S = np.array([[1.0, 1.0], [0.0, 1.0]])
    X = compute_eigenvectors([0, 1], S, np.eye(2))
    assert np.all(np.isfinite(X))
    assert np.linalg.norm(X[:, 0]) == pytest.approx(1.0)


def test_overflowing_back_substitution_is_rescaled():
    # Unscaled, the first component would be -1e300 / eps
    S = np.array([[1.0, 1e300], [0.0, 1.0]])
    X = compute_eigenvectors([0, 1], S, np.eye(2))
    assert np.all(np.isfinite(X))
    assert_allclose(np.abs(X[:, 0]), [1.0, 0.0], atol=1e-12)


def test_real_two_by_two_block_is_rejected():
    S = np.array([[1.0, 1.0], [2.0, 1.0]])
    with pytest.raises(InvalidArgumentError) as excinfo:
        compute_eigenvectors([1, 1], S, np.eye(2))
    assert excinfo.value.position == 2
