#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Reordering of a real Schur form.

Selected diagonal blocks are moved to the top-left corner by a sequence of
swaps of adjacent blocks. Each swap is an orthogonal similarity transform
confined to the 2x2, 3x3 or 4x4 window spanned by the two blocks:

1.  The coupling equation T11 X - X T22 = T12 is solved. Its separation
    estimate rejects swaps of blocks whose eigenvalues are too close relative
    to the coupling (the norm of X exceeds `separation_limit`).
2.  The complete QR factorization of [X; -I] yields the local transform Z;
    the leading columns of Z span the invariant subspace that belongs to T22.
3.  The swapped window is re-standardized and checked for backward
    stability before anything outside the window is touched.

A rejected swap leaves S and Q unchanged and clears the selection of the
block that failed to move. Blocks are processed from the top, so an earlier
selected block always wins against a later one.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
import numpy.typing as npt

from .blocks import (
    block_eigenvalues,
    block_size_at,
    check_quasi_triangular,
    check_mask_against_blocks,
    diagonal_blocks,
    normalize_mask,
)
from .errors import ErrorCode, InvalidArgumentError, check_matrix
from .linalg import (
    EPS,
    SMALL_NUM,
    coupling_solution,
    frobenius_norm,
    rotate_columns,
    rotate_rows,
    standardize_block,
)
from .schema import ReorderConfig

logger = logging.getLogger(__name__)


@dataclass
class ReorderResult:
    """
    Outcome of a Schur reordering.

    `selected` marks the leading positions occupied by the selected blocks
    that were moved successfully. With ErrorCode.PARTIAL_REORDERING it holds
    fewer ones than the input selection; S and Q are valid either way.
    """
    status: ErrorCode
    selected: npt.NDArray[np.int_]
    real: npt.NDArray[np.float64]
    imag: npt.NDArray[np.float64]
    num_swaps: int = 0
    num_rejected: int = 0


def swap_adjacent_blocks(
    T: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    j: int,
    n1: int,
    n2: int,
    conf: ReorderConfig,
) -> bool:
    """
    Swap the adjacent diagonal blocks T[j:j+n1, j:j+n1] and T[j+n1:j+n1+n2, ...].

    Args:
        T (npt.NDArray[np.float64]): The Schur matrix, updated in place.
        Q (npt.NDArray[np.float64]): The orthogonal basis, updated in place.
        j (int): Leading row of the first block.
        n1 (int): Size of the first block (1 or 2).
        n2 (int): Size of the second block (1 or 2).
        conf (ReorderConfig): Separation and stability thresholds.

    Returns:
        bool: True if the swap was performed, False if it was rejected. A
              rejected swap leaves T and Q untouched.
    """
    nd = n1 + n2
    D = T[j : j + nd, j : j + nd].copy()
    T11 = D[:n1, :n1]
    T12 = D[:n1, n1:]
    T22 = D[n1:, n1:]

    dnorm = frobenius_norm(D)
    X, sep = coupling_solution(T11, T22, T12)
    if X is None:
        if float(np.max(np.abs(T12))) > EPS * dnorm:
            logger.debug(f"Swap at row {j} rejected: separation {sep:.3e} vanishes.")
            return False
        # Uncoupled blocks with equal eigenvalues: the swap is a permutation
        X = np.zeros((n1, n2))
    xnorm = frobenius_norm(X)
    if xnorm > conf.separation_limit:
        logger.debug(
            f"Swap at row {j} rejected: coupling norm {xnorm:.3e} exceeds "
            f"{conf.separation_limit:.3e} (sep={sep:.3e})."
        )
        return False

    Z, _ = np.linalg.qr(np.vstack([X, -np.eye(n2)]), mode="complete")
    Dn = Z.T @ D @ Z

    thresh = max(conf.stability_factor * EPS * dnorm, SMALL_NUM)
    residual = float(np.max(np.abs(Dn[n2:, :n2])))
    if residual > thresh:
        logger.debug(f"Swap at row {j} rejected: weak stability test ({residual:.3e} > {thresh:.3e}).")
        return False
    Dn[n2:, :n2] = 0.0

    for p, size in ((0, n2), (n2, n1)):
        if size == 1:
            continue
        std = standardize_block(Dn[p, p], Dn[p, p + 1], Dn[p + 1, p], Dn[p + 1, p + 1])
        if std.c == 0.0:
            logger.debug(f"Swap at row {j} rejected: 2x2 block split into real eigenvalues.")
            return False
        Dn[p : p + 2, p : p + 2] = [[std.a, std.b], [std.c, std.d]]
        rotate_rows(Dn[p : p + 2, p + 2 :], std.cs, std.sn)
        rotate_columns(Dn[:p, p : p + 2], std.cs, std.sn)
        rotate_columns(Z[:, p : p + 2], std.cs, std.sn)
    if n2 == 1:
        Dn[0, 0] = T22[0, 0]
    if n1 == 1:
        Dn[n2, n2] = T11[0, 0]

    backward_error = frobenius_norm(D - Z @ Dn @ Z.T)
    if backward_error > thresh:
        logger.debug(
            f"Swap at row {j} rejected: strong stability test ({backward_error:.3e} > {thresh:.3e})."
        )
        return False

    T[j : j + nd, j : j + nd] = Dn
    T[j : j + nd, j + nd :] = Z.T @ T[j : j + nd, j + nd :]
    T[:j, j : j + nd] = T[:j, j : j + nd] @ Z
    Q[:, j : j + nd] = Q[:, j : j + nd] @ Z
    return True


def reorder_schur(
    selected: Sequence,
    S: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    conf: Optional[ReorderConfig] = None,
) -> ReorderResult:
    """
    Move the selected eigenvalues to the top-left corner of a Schur form.

    Selected blocks are processed from top to bottom. Each one is bubbled up
    by adjacent swaps until it directly follows the previously placed block,
    so the selected eigenvalues keep their relative order. When a swap is
    rejected the block stays where it is, its selection is dropped, and the
    remaining selected blocks continue to move past it.

    Args:
        selected (Sequence): One flag per row; a conjugate pair must be
                             selected or deselected as a whole. Not modified.
        S (npt.NDArray[np.float64]): The Schur matrix, updated in place.
        Q (npt.NDArray[np.float64]): The orthogonal basis, updated in place.
        conf (Optional[ReorderConfig]): Swap rejection thresholds.

    Returns:
        ReorderResult: Status, the final selection and the reordered eigenvalues.

    Raises:
        InvalidArgumentError: On malformed matrices or a selection that splits
                              a conjugate pair.
    """
    if conf is None:
        conf = ReorderConfig()
    n = check_matrix(S, 2, "S")
    check_matrix(Q, 3, "Q", shape=(n, n))
    if np.shares_memory(S, Q):
        raise InvalidArgumentError(3, "Q", "Q must not share memory with S")
    check_quasi_triangular(S, 2, "S")
    mask = normalize_mask(selected, n, 1)
    check_mask_against_blocks(mask, diagonal_blocks(S), 1)

    result_mask = np.zeros(n, dtype=np.int_)
    ilst = 0
    num_swaps = 0
    num_rejected = 0
    pos = 0
    while pos < n:
        size = block_size_at(S, pos)
        if mask[pos]:
            cur = pos
            placed = True
            while cur > ilst:
                above = 2 if cur - 2 >= ilst and S[cur - 1, cur - 2] != 0.0 else 1
                if not swap_adjacent_blocks(S, Q, cur - above, above, size, conf):
                    placed = False
                    break
                num_swaps += 1
                cur -= above
            if placed:
                result_mask[ilst : ilst + size] = 1
                ilst += size
            else:
                num_rejected += 1
                logger.warning(
                    f"Eigenvalue block originally at row {pos} could not be moved past row "
                    f"{cur - 1}; it is left at row {cur} and deselected."
                )
        pos += size

    real, imag = block_eigenvalues(S)
    status = ErrorCode.PARTIAL_REORDERING if num_rejected else ErrorCode.SUCCESS
    logger.info(
        f"Reordering placed {ilst} of {int(np.count_nonzero(mask))} selected eigenvalues "
        f"using {num_swaps} swaps."
    )
    return ReorderResult(status, result_mask, real, imag, num_swaps, num_rejected)
