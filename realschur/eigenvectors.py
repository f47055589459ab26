"""
Right eigenvectors of selected eigenvalues of a real Schur form.

For a selected block at rows k (or k, k+1) the eigenvector of the
quasi-triangular matrix is found by block back-substitution on the leading
k x k part, then mapped into the original basis with Q.
"""
import logging
import math
from typing import Optional, Sequence, Union
import numpy as np
import numpy.typing as npt

from .blocks import (
    ComplexBlock,
    DiagonalBlock,
    check_mask_against_blocks,
    check_quasi_triangular,
    diagonal_blocks,
    normalize_mask,
)
from .errors import check_matrix
from .linalg import BIG_NUM, EPS, SMALL_NUM, solve_shifted_system, standardize_block
from .schema import EigenvectorsConfig

logger = logging.getLogger(__name__)

Vector = Union[npt.NDArray[np.float64], npt.NDArray[np.complex128]]


def _complex_block_vector(B: npt.NDArray[np.float64], lam: complex) -> npt.NDArray[np.complex128]:
    """Null vector of B - lam I for a 2x2 block B with a complex eigenvalue lam."""
    from_first_row = np.array([B[0, 1], lam - B[0, 0]], dtype=np.complex128)
    from_second_row = np.array([lam - B[1, 1], B[1, 0]], dtype=np.complex128)
    if np.linalg.norm(from_first_row) >= np.linalg.norm(from_second_row):
        y = from_first_row
    else:
        y = from_second_row
    return y / np.max(np.abs(y))


def _back_substitute(
    S: npt.NDArray[np.float64],
    blocks: Sequence[DiagonalBlock],
    v: Vector,
    top: int,
    wr: float,
    wi: float,
) -> Vector:
    """
    Solve (S[:top, :top] - (wr + i wi) I) x = v[:top] in place, bottom block first.

    Whenever the small solver scales its result, or the update of the
    remaining right-hand side could overflow, the entire vector `v` is
    rescaled so that all of its entries stay consistent.
    """
    smin = max(EPS * (abs(wr) + abs(wi)), SMALL_NUM)
    for block in reversed(blocks):
        j = block.index
        if j >= top:
            continue
        s = block.size
        x, scale = solve_shifted_system(S[j : j + s, j : j + s], wr, wi, v[j : j + s], smin)
        if scale != 1.0:
            v *= scale
        xnorm = float(np.max(np.abs(x)))
        if j > 0 and xnorm > 1.0:
            colnorm = float(np.max(np.sum(np.abs(S[:j, j : j + s]), axis=0)))
            if colnorm > BIG_NUM / xnorm:
                x = x / xnorm
                v /= xnorm
        v[j : j + s] = x
        if j > 0:
            v[:j] -= S[:j, j : j + s] @ x
    return v


def _schur_vector(S: npt.NDArray[np.float64], blocks: Sequence[DiagonalBlock], block: DiagonalBlock) -> Vector:
    """Eigenvector of the quasi-triangular S for `block`, of length block.index + block.size."""
    k = block.index
    if isinstance(block, ComplexBlock):
        std = standardize_block(S[k, k], S[k, k + 1], S[k + 1, k], S[k + 1, k + 1])
        wr, wi = std.rt1r, abs(std.rt1i)
        v = np.zeros(k + 2, dtype=np.complex128)
        y = _complex_block_vector(S[k : k + 2, k : k + 2], complex(wr, wi))
        v[k : k + 2] = y
        v[:k] = -(S[:k, k : k + 2] @ y)
    else:
        wr, wi = float(S[k, k]), 0.0
        v = np.zeros(k + 1, dtype=np.float64)
        v[k] = 1.0
        v[:k] = -S[:k, k]
    return _back_substitute(S, blocks, v, k, wr, wi)


def _normalize(x: Vector, normalization: str) -> Vector:
    if normalization == "inf":
        nrm = float(np.max(np.abs(x)))
    else:
        nrm = float(np.linalg.norm(x))
    if nrm == 0.0:
        return x
    return x / nrm


def compute_eigenvectors(
    selected: Sequence,
    S: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    X: Optional[npt.NDArray[np.float64]] = None,
    conf: Optional[EigenvectorsConfig] = None,
) -> npt.NDArray[np.float64]:
    """
    Compute the right eigenvectors A v = lambda v of the selected eigenvalues.

    The columns of X follow the order of the selection. A selected conjugate
    pair fills two consecutive columns with the real and the imaginary part of
    the eigenvector of the eigenvalue with positive imaginary part; the pair is
    normalized jointly.

    Args:
        selected (Sequence): One flag per row of S; must not split a pair.
        S (npt.NDArray[np.float64]): Real Schur form, not modified.
        Q (npt.NDArray[np.float64]): Orthogonal basis with A = Q S Q^T, not modified.
        X (Optional[npt.NDArray[np.float64]]): Output array of shape (n, k),
            filled in place when given.
        conf (Optional[EigenvectorsConfig]): Normalization of the columns.

    Returns:
        npt.NDArray[np.float64]: The eigenvector matrix X.

    Raises:
        InvalidArgumentError: On malformed matrices, a selection of the wrong
                              length or one that splits a conjugate pair.
    """
    if conf is None:
        conf = EigenvectorsConfig()
    n = check_matrix(S, 2, "S", writeable=False)
    check_matrix(Q, 3, "Q", shape=(n, n), writeable=False)
    check_quasi_triangular(S, 2, "S")
    mask = normalize_mask(selected, n, 1)
    blocks = diagonal_blocks(S)
    check_mask_against_blocks(mask, blocks, 1)

    k = int(np.count_nonzero(mask))
    if X is None:
        X = np.zeros((n, k), dtype=np.float64)
    else:
        check_matrix(X, 4, "X", shape=(n, k), finite=False)

    # Column of each block in mask order
    columns = {}
    col = 0
    for block in blocks:
        if mask[block.index]:
            columns[block.index] = col
            col += block.size

    for block in reversed(blocks):
        if not mask[block.index]:
            continue
        v = _schur_vector(S, blocks, block)
        x = _normalize(Q[:, : v.shape[0]] @ v, conf.normalization)
        c = columns[block.index]
        if isinstance(block, ComplexBlock):
            X[:, c] = x.real
            X[:, c + 1] = x.imag
        else:
            X[:, c] = x
        if not math.isfinite(float(np.max(np.abs(x)))):
            logger.warning(f"Eigenvector for the block at row {block.index} is not finite.")

    logger.info(f"Computed {k} eigenvector columns of a matrix of order {n}.")
    return X
