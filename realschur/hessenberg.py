"""
Orthogonal reduction of a general matrix to upper Hessenberg form.
"""
import logging
from typing import Optional
import numpy as np
import numpy.typing as npt

from .errors import ErrorCode, InvalidArgumentError, check_matrix
from .linalg import apply_reflector_left, apply_reflector_right, householder_vector

logger = logging.getLogger(__name__)


def reduce_to_hessenberg(
    A: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    begin: int = 0,
    end: Optional[int] = None,
) -> ErrorCode:
    """
    Reduce A to upper Hessenberg form H = U^T A U and update Q to Q U.

    For every column j in [begin, end) a Householder reflector annihilates
    the entries below the first sub-diagonal; it is applied to A from both
    sides and accumulated into Q. The annihilated entries are stored as exact
    zeros. Columns before `begin` are assumed to be reduced already, which
    allows the reduction to be carried out in several partial calls.

    Args:
        A (npt.NDArray[np.float64]): On entry the general matrix, on exit H.
        Q (npt.NDArray[np.float64]): On entry an orthogonal matrix, on exit Q U.
        begin (int): First column to be reduced.
        end (Optional[int]): One past the last column to be reduced (default n).

    Returns:
        ErrorCode: Always ErrorCode.SUCCESS; argument errors are raised.

    Raises:
        InvalidArgumentError: If A or Q is malformed or the column range is invalid.
    """
    n = check_matrix(A, 1, "A")
    check_matrix(Q, 2, "Q", shape=(n, n))
    if np.shares_memory(A, Q):
        raise InvalidArgumentError(2, "Q", "Q must not share memory with A")
    if end is None:
        end = n
    if not 0 <= begin <= n:
        raise InvalidArgumentError(3, "begin", f"must lie in [0, {n}], got {begin}")
    if not begin <= end <= n:
        raise InvalidArgumentError(4, "end", f"must lie in [{begin}, {n}], got {end}")

    for j in range(begin, min(end, n - 2)):
        v, tau, beta = householder_vector(A[j + 1 :, j])
        if tau != 0.0:
            apply_reflector_left(v, tau, A[j + 1 :, j + 1 :])
            apply_reflector_right(v, tau, A[:, j + 1 :])
            apply_reflector_right(v, tau, Q[:, j + 1 :])
        A[j + 1, j] = beta
        A[j + 2 :, j] = 0.0

    logger.info(f"Hessenberg reduction of order {n} done for columns [{begin}, {end}).")
    return ErrorCode.SUCCESS


def is_hessenberg(H: npt.NDArray[np.float64]) -> bool:
    """True when every entry below the first sub-diagonal is exactly zero."""
    return not np.any(np.tril(H, -2))
