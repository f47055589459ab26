# test_core.py
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from conftest import assert_quasi_triangular, random_orthogonal
from realschur.core import (
    ErrorCode,
    InvalidArgumentError,
    ReduceConfig,
    eigenvectors,
    hessenberg,
    reduce,
    reorder_schur,
    schur,
    select,
)
from realschur.residuals import (
    eigenvector_residuals,
    orthogonality_residual,
    similarity_residual,
)
from realschur.schema import HessenbergConfig, SchurConfig
from realschur.selection import real_eigenvalues

TOL = 1e-13


def _distinct_real_matrix(rng, eigenvalues):
    n = len(eigenvalues)
    T = np.triu(rng.standard_normal((n, n)), 1)
    T[np.diag_indices(n)] = eigenvalues
    U = random_orthogonal(n, rng)
    return U @ T @ U.T


# --- Scenarios ---
def test_scenario_order_one():
    A = np.array([[5.0]])
    Q = np.array([[1.0]])
    assert hessenberg(A, Q) == ErrorCode.SUCCESS
    assert_array_equal(A, [[5.0]])
    result = schur(A, Q)
    assert_array_equal(result.real, [5.0])
    assert_array_equal(result.imag, [0.0])
    assert_array_equal(eigenvectors([1], A, Q), [[1.0]])


def test_scenario_rotation_has_no_real_selection():
    A = np.array([[0.0, 1.0], [-1.0, 0.0]])
    Q = np.eye(2)
    result = reduce(A, Q, predicate=real_eigenvalues())
    assert result.status == ErrorCode.SUCCESS
    assert_allclose(result.real, [0.0, 0.0])
    assert_allclose(result.imag, [1.0, -1.0])
    assert result.num_selected == 0
    assert_array_equal(result.selected, [0, 0])
    assert A[1, 0] != 0.0
    assert eigenvectors(result.selected, A, Q).shape == (2, 0)


def test_scenario_largest_real_part_moves_to_the_top(rng):
    A0 = _distinct_real_matrix(rng, [1.0, 4.0, 2.0, 3.0])
    A = A0.copy()
    Q = np.eye(4)
    result = reduce(A, Q, predicate=lambda re, im: re > 3.5)

    assert result.status == ErrorCode.SUCCESS
    assert result.num_selected == 1
    assert_array_equal(result.selected, [1, 0, 0, 0])
    assert result.real[0] == pytest.approx(4.0, abs=1e-10)
    assert A[0, 0] == pytest.approx(4.0, abs=1e-10)
    assert orthogonality_residual(Q) < TOL
    assert similarity_residual(A0, Q, A) < TOL


def test_scenario_rejected_swap_keeps_decomposition_valid():
    S = np.array([[1.0, 1e10], [0.0, 1.0 + 1e-8]])
    S0 = S.copy()
    Q = np.eye(2)
    result = reorder_schur([0, 1], S, Q)
    assert result.status == ErrorCode.PARTIAL_REORDERING
    assert_array_equal(result.selected, [0, 0])
    assert similarity_residual(S0, Q, S) == 0.0


# --- Stage by stage pipeline ---
def test_stages_preserve_similarity(rng):
    n = 12
    A0 = rng.standard_normal((n, n))
    A = A0.copy()
    Q = np.eye(n)

    hessenberg(A, Q)
    assert similarity_residual(A0, Q, A) < TOL
    sres = schur(A, Q)
    assert sres.status == ErrorCode.SUCCESS
    assert similarity_residual(A0, Q, A) < TOL

    sel = select(A, lambda re, im: re < 0.0)
    rres = reorder_schur(sel.selected, A, Q)
    assert rres.status == ErrorCode.SUCCESS
    assert_quasi_triangular(A)
    assert orthogonality_residual(Q) < TOL
    assert similarity_residual(A0, Q, A) < TOL

    k = sel.num_selected
    assert_array_equal(rres.selected[:k], 1)
    assert_array_equal(rres.selected[k:], 0)
    assert np.all(rres.real[:k] < 0.0)
    assert np.all(rres.real[k:] >= 0.0)

    X = eigenvectors(rres.selected, A, Q)
    assert X.shape == (n, k)
    res = eigenvector_residuals(A0, X, rres.selected, rres.real, rres.imag)
    assert np.all(res < 1e-12)


def test_selected_eigenvalues_span_invariant_subspace(rng):
    n = 10
    A0 = rng.standard_normal((n, n))
    A = A0.copy()
    Q = np.eye(n)
    result = reduce(A, Q, predicate=lambda re, im: abs(complex(re, im)) > 1.5)
    k = result.num_selected
    V = Q[:, :k]
    # A V = V S11 for the leading invariant subspace
    assert_allclose(A0 @ V, V @ A[:k, :k], atol=1e-12)


# --- reduce() behaviour ---
def test_reduce_without_predicate_skips_reordering(rng):
    A0 = rng.standard_normal((6, 6))
    A = A0.copy()
    Q = np.eye(6)
    result = reduce(A, Q)
    assert result.status == ErrorCode.SUCCESS
    assert result.num_selected == 0
    assert_array_equal(result.selected, np.zeros(6))
    assert similarity_residual(A0, Q, A) < TOL


def test_reduce_reports_non_convergence():
    n = 10
    A = np.zeros((n, n))
    A[np.arange(1, n), np.arange(n - 1)] = 1.0
    A[0, n - 1] = 1.0
    Q = np.eye(n)
    conf = ReduceConfig(schur=SchurConfig(iteration_limit_factor=1, exceptional_shift_period=1000))
    result = reduce(A, Q, predicate=lambda re, im: True, conf=conf)
    assert result.status == ErrorCode.DID_NOT_CONVERGE
    assert result.unconverged == n
    assert result.num_selected == 0
    assert_array_equal(result.selected, np.zeros(n))


def test_reduce_with_huge_entries(rng):
    scale = 2.0 ** 996
    B0 = _distinct_real_matrix(rng, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    A = B0 * scale
    Q = np.eye(6)
    result = reduce(A, Q, predicate=lambda re, im: re > 4.5 * scale)
    assert result.status == ErrorCode.SUCCESS
    assert np.all(np.isfinite(A))
    assert_allclose(np.sort(result.real) / scale, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0], rtol=1e-10)
    assert_array_equal(result.selected, [1, 1, 0, 0, 0, 0])
    assert similarity_residual(B0, Q, A / scale) < 1e-12


def test_reduce_rejects_incomplete_hessenberg_range(rng):
    A0 = rng.standard_normal((5, 5))
    A = A0.copy()
    Q = np.eye(5)
    conf = ReduceConfig(hessenberg=HessenbergConfig(end=1))
    with pytest.raises(InvalidArgumentError) as excinfo:
        reduce(A, Q, conf=conf)
    assert excinfo.value.position == 4
    assert_array_equal(A, A0)
    assert_array_equal(Q, np.eye(5))


def test_reduce_continues_a_partial_hessenberg_reduction(rng):
    A0 = rng.standard_normal((5, 5))
    A = A0.copy()
    Q = np.eye(5)
    conf = ReduceConfig(hessenberg=HessenbergConfig(begin=2))
    with pytest.raises(InvalidArgumentError):
        reduce(A, Q, conf=conf)
    assert_array_equal(A, A0)

    hessenberg(A, Q, begin=0, end=2)
    result = reduce(A, Q, conf=conf)
    assert result.status == ErrorCode.SUCCESS
    assert_quasi_triangular(A)
    assert similarity_residual(A0, Q, A) < TOL


def test_reduce_rejects_non_callable_predicate():
    with pytest.raises(InvalidArgumentError) as excinfo:
        reduce(np.eye(2), np.eye(2), predicate=1.0)
    assert excinfo.value.position == 3


def test_fortran_ordered_input(rng):
    A0 = np.asfortranarray(rng.standard_normal((7, 7)))
    A = A0.copy(order="F")
    Q = np.eye(7, order="F")
    result = reduce(A, Q, predicate=lambda re, im: im == 0.0)
    assert result.status in (ErrorCode.SUCCESS, ErrorCode.PARTIAL_REORDERING)
    assert similarity_residual(A0, Q, A) < TOL


# --- residuals ---
def test_residuals_of_exact_decomposition():
    A = np.array([[2.0, 1.0], [0.0, 3.0]])
    assert orthogonality_residual(np.eye(2)) == 0.0
    assert similarity_residual(A, np.eye(2), A) == 0.0
    X = np.array([[1.0], [0.0]])
    res = eigenvector_residuals(A, X, [1, 0], np.array([2.0, 3.0]), np.zeros(2))
    assert_array_equal(res, [0.0])
