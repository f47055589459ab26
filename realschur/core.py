#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Real Schur decomposition pipeline.

This module is the public entry point of the package. It exposes the stages

1.  `hessenberg`: orthogonal reduction A -> H = U^T A U.
2.  `schur`: Francis double-shift QR, H -> S (real Schur form).
3.  `select`: evaluation of a predicate on the eigenvalues of S.
4.  `reorder_schur`: moving the selected eigenvalues to the top-left corner.
5.  `eigenvectors`: right eigenvectors of the selected eigenvalues.

and the combined driver `reduce`, which runs stages 1-4 in sequence. Every
stage updates the caller's arrays in place and keeps A_original = Q S Q^T.

Example:
    >>> A = np.array([[4.0, 1.0], [2.0, 3.0]])
    >>> Q = np.eye(2)
    >>> result = reduce(A, Q, predicate=lambda re, im: re > 3.0)
    >>> round(float(result.real[0]), 10)
    5.0
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
import numpy.typing as npt

from .blocks import ComplexBlock, DiagonalBlock, RealBlock, diagonal_blocks
from .eigenvectors import compute_eigenvectors
from .errors import ErrorCode, InvalidArgumentError, check_matrix
from .hessenberg import reduce_to_hessenberg
from .reorder import ReorderResult, reorder_schur as _reorder_schur
from .schema import (
    EigenvectorsConfig,
    HessenbergConfig,
    ReorderConfig,
    SchurConfig,
)
from .schur import SchurResult, schur_factorize
from .selection import Predicate, SelectResult, select_eigenvalues

logger = logging.getLogger(__name__)

__all__ = [
    "ComplexBlock",
    "DiagonalBlock",
    "ErrorCode",
    "InvalidArgumentError",
    "RealBlock",
    "ReduceConfig",
    "ReduceResult",
    "ReorderResult",
    "SchurResult",
    "SelectResult",
    "diagonal_blocks",
    "eigenvectors",
    "hessenberg",
    "reduce",
    "reorder_schur",
    "schur",
    "select",
]


@dataclass
class ReduceConfig:
    """Per-stage configuration of the combined driver."""
    hessenberg: Optional[HessenbergConfig] = None
    schur: Optional[SchurConfig] = None
    reorder: Optional[ReorderConfig] = None


@dataclass
class ReduceResult:
    """
    Outcome of the combined driver.

    `selected` and `num_selected` describe the selection after reordering;
    without a predicate they are all zeros and 0. On
    ErrorCode.DID_NOT_CONVERGE the pipeline stopped after the Schur stage and
    `unconverged` gives the number of leading rows that are unusable.
    """
    status: ErrorCode
    real: npt.NDArray[np.float64]
    imag: npt.NDArray[np.float64]
    selected: npt.NDArray[np.int_]
    num_selected: int = 0
    unconverged: int = 0


def hessenberg(
    A: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    begin: int = 0,
    end: Optional[int] = None,
) -> ErrorCode:
    """Reduce A to upper Hessenberg form in place and accumulate the transform into Q."""
    return reduce_to_hessenberg(A, Q, begin, end)


def schur(
    H: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    conf: Optional[SchurConfig] = None,
) -> SchurResult:
    """Reduce an upper Hessenberg H to real Schur form in place; see `schur_factorize`."""
    return schur_factorize(H, Q, conf)


def select(S: npt.NDArray[np.float64], predicate: Predicate) -> SelectResult:
    """Build a selection mask from a predicate on the eigenvalues of S."""
    return select_eigenvalues(S, predicate)


def reorder_schur(
    selected: Sequence,
    S: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    conf: Optional[ReorderConfig] = None,
) -> ReorderResult:
    """Move the selected eigenvalues of S to its top-left corner; see `realschur.reorder`."""
    return _reorder_schur(selected, S, Q, conf)


def eigenvectors(
    selected: Sequence,
    S: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    X: Optional[npt.NDArray[np.float64]] = None,
    conf: Optional[EigenvectorsConfig] = None,
) -> npt.NDArray[np.float64]:
    """Right eigenvectors of the selected eigenvalues, one column per selected row."""
    return compute_eigenvectors(selected, S, Q, X, conf)


def reduce(
    A: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    predicate: Optional[Predicate] = None,
    conf: Optional[ReduceConfig] = None,
) -> ReduceResult:
    """
    Compute a (reordered) real Schur decomposition A = Q S Q^T in place.

    Runs the Hessenberg reduction, the Schur factorization and, when a
    predicate is given, the selection and the reordering. On return A holds S.

    Args:
        A (npt.NDArray[np.float64]): On entry the general matrix, on exit S.
        Q (npt.NDArray[np.float64]): On entry orthogonal (usually I), on exit
                                     the accumulated Schur basis.
        predicate (Optional[Predicate]): Called as predicate(real, imag).
        conf (Optional[ReduceConfig]): Per-stage configuration.

    Returns:
        ReduceResult: Status, eigenvalues and the final selection.

    Raises:
        InvalidArgumentError: On malformed arguments; positions refer to this call.
                              A Hessenberg column range that cannot finish the
                              reduction is reported against `conf`.
    """
    if conf is None:
        conf = ReduceConfig()
    n = check_matrix(A, 1, "A")
    check_matrix(Q, 2, "Q", shape=(n, n))
    if predicate is not None and not callable(predicate):
        raise InvalidArgumentError(3, "predicate", "expected a callable or None")

    hconf = conf.hessenberg or HessenbergConfig()
    end = n if hconf.end is None else hconf.end
    if not 0 <= hconf.begin <= end <= n or end < n - 2:
        raise InvalidArgumentError(
            4, "conf", f"Hessenberg column range [{hconf.begin}, {end}) leaves a matrix of order {n} unreduced"
        )
    if np.any(np.tril(A[:, : hconf.begin], -2)):
        raise InvalidArgumentError(4, "conf", f"columns before {hconf.begin} are not in Hessenberg form")
    reduce_to_hessenberg(A, Q, hconf.begin, hconf.end)

    sres = schur_factorize(A, Q, conf.schur)
    no_selection = np.zeros(n, dtype=np.int_)
    if sres.status != ErrorCode.SUCCESS:
        logger.warning("Schur factorization failed, skipping selection and reordering.")
        return ReduceResult(sres.status, sres.real, sres.imag, no_selection, 0, sres.unconverged)

    if predicate is None:
        return ReduceResult(ErrorCode.SUCCESS, sres.real, sres.imag, no_selection)

    sel = select_eigenvalues(A, predicate)
    rres = _reorder_schur(sel.selected, A, Q, conf.reorder)
    num_selected = int(np.count_nonzero(rres.selected))
    logger.info(f"Reduced a matrix of order {n}; {num_selected} eigenvalues in the leading block.")
    return ReduceResult(rres.status, rres.real, rres.imag, rres.selected, num_selected)
