"""
Residual diagnostics for decompositions and eigenvectors.
"""
from typing import Sequence
import numpy as np
import numpy.typing as npt

from .blocks import normalize_mask


def orthogonality_residual(Q: npt.NDArray[np.float64]) -> float:
    """||Q^T Q - I||_F / n"""
    n = Q.shape[0]
    return float(np.linalg.norm(Q.T @ Q - np.eye(n)) / n)


def similarity_residual(
    A: npt.NDArray[np.float64], Q: npt.NDArray[np.float64], S: npt.NDArray[np.float64]
) -> float:
    """||A - Q S Q^T||_F / ||A||_F, or the absolute residual for a zero A."""
    anorm = float(np.linalg.norm(A))
    res = float(np.linalg.norm(A - Q @ S @ Q.T))
    return res / anorm if anorm > 0.0 else res


def eigenvector_residuals(
    A: npt.NDArray[np.float64],
    X: npt.NDArray[np.float64],
    selected: Sequence,
    real: npt.NDArray[np.float64],
    imag: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """
    Relative residual ||A v - lambda v|| / (||A|| ||v||) of every selected eigenvalue.

    `real` and `imag` must describe the matrix the eigenvectors were computed
    from, row by row. The columns of X are read in mask order; a conjugate
    pair is read as v = X[:, c] + i X[:, c+1] for the eigenvalue with positive
    imaginary part. Both members of the pair report the same residual.

    Returns:
        npt.NDArray[np.float64]: One residual per selected row.
    """
    n = A.shape[0]
    mask = normalize_mask(selected, n, 3)
    anorm = max(float(np.linalg.norm(A, 2)), np.finfo(np.float64).tiny)
    out = []
    col = 0
    i = 0
    while i < n:
        pair = imag[i] != 0.0 and i + 1 < n
        size = 2 if pair else 1
        if mask[i]:
            if pair:
                v = X[:, col] + 1j * X[:, col + 1]
                lam = complex(real[i], abs(imag[i]))
            else:
                v = X[:, col]
                lam = real[i]
            vnorm = float(np.linalg.norm(v))
            res = float(np.linalg.norm(A @ v - lam * v)) / (anorm * vnorm) if vnorm > 0.0 else np.inf
            out.extend([res] * size)
            col += size
        i += size
    return np.array(out, dtype=np.float64)
