#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Real Schur factorization of an upper Hessenberg matrix.

The factorization runs the Francis implicit double-shift QR algorithm on the
active (not yet deflated) window of the Hessenberg matrix. Negligible
sub-diagonal entries are detected with a conservative criterion that looks at
the neighbouring entries, converged 1x1 and 2x2 blocks are split off the
bottom of the window, and a 2x2 block is brought to standardized form so that
it either carries a complex conjugate pair or is split into two real
eigenvalues. Every transformation is accumulated into the orthogonal basis Q.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
import numpy.typing as npt

from .errors import ErrorCode, InvalidArgumentError, check_matrix
from .linalg import (
    EPS,
    SAFE_MIN,
    apply_reflector_left,
    apply_reflector_right,
    householder_vector,
    rotate_columns,
    rotate_rows,
    standardize_block,
)
from .schema import SchurConfig

logger = logging.getLogger(__name__)

# --- Exceptional shift constants ---
EXCEPTIONAL_SHIFT_DIAGONAL: float = 0.75
EXCEPTIONAL_SHIFT_OFFDIAGONAL: float = -0.4375

Shifts = Tuple[float, float, float, float]


@dataclass
class SchurResult:
    """
    Outcome of a Schur factorization.

    `real` and `imag` hold one entry per row. On ErrorCode.DID_NOT_CONVERGE
    the rows 0..unconverged-1 have not converged, their eigenvalue entries
    are NaN, and the factorized matrix must be treated as unusable.
    """
    status: ErrorCode
    real: npt.NDArray[np.float64]
    imag: npt.NDArray[np.float64]
    unconverged: int = 0
    iterations: int = 0


def _find_negligible_subdiagonal(
    H: npt.NDArray[np.float64], l: int, i: int, ulp: float, smlnum: float
) -> int:
    """Return the row k in (l, i] whose sub-diagonal entry H[k, k-1] can be set to zero, or l."""
    for k in range(i, l, -1):
        if abs(H[k, k - 1]) <= smlnum:
            return k
        tst = abs(H[k - 1, k - 1]) + abs(H[k, k])
        if tst == 0.0:
            if k - 2 >= l:
                tst += abs(H[k - 1, k - 2])
            if k + 1 <= i:
                tst += abs(H[k + 1, k])
        if abs(H[k, k - 1]) <= ulp * tst:
            # Ahues & Tisseur conservative deflation criterion
            ab = max(abs(H[k, k - 1]), abs(H[k - 1, k]))
            ba = min(abs(H[k, k - 1]), abs(H[k - 1, k]))
            aa = max(abs(H[k, k]), abs(H[k - 1, k - 1] - H[k, k]))
            bb = min(abs(H[k, k]), abs(H[k - 1, k - 1] - H[k, k]))
            s = aa + ab
            if ba * (ab / s) <= max(smlnum, ulp * (bb * (aa / s))):
                return k
    return l


def _select_shifts(
    H: npt.NDArray[np.float64], l: int, i: int, kdefl: int, period: int
) -> Shifts:
    """
    Compute the pair of shifts for the next sweep on the window [l, i].

    Normally the shifts are the eigenvalues of the trailing 2x2 submatrix.
    Every `period` iterations without deflation an exceptional shift is used
    instead, alternating between the bottom and the top of the window. Real
    shift pairs are replaced by a double copy of the eigenvalue closer to H[i, i].
    """
    if kdefl % (2 * period) == 0:
        s = abs(H[i, i - 1]) + abs(H[i - 1, i - 2])
        h11 = EXCEPTIONAL_SHIFT_DIAGONAL * s + H[i, i]
        h12 = EXCEPTIONAL_SHIFT_OFFDIAGONAL * s
        h21 = s
        h22 = h11
    elif kdefl % period == 0:
        s = abs(H[l + 1, l]) + abs(H[l + 2, l + 1])
        h11 = EXCEPTIONAL_SHIFT_DIAGONAL * s + H[l, l]
        h12 = EXCEPTIONAL_SHIFT_OFFDIAGONAL * s
        h21 = s
        h22 = h11
    else:
        h11 = H[i - 1, i - 1]
        h21 = H[i, i - 1]
        h12 = H[i - 1, i]
        h22 = H[i, i]

    s = abs(h11) + abs(h12) + abs(h21) + abs(h22)
    if s == 0.0:
        return 0.0, 0.0, 0.0, 0.0
    h11 /= s
    h21 /= s
    h12 /= s
    h22 /= s
    tr = (h11 + h22) / 2.0
    det = (h11 - tr) * (h22 - tr) - h12 * h21
    rtdisc = math.sqrt(abs(det))
    if det >= 0.0:
        # Complex conjugate shifts
        rt1r = tr * s
        rt2r = rt1r
        rt1i = rtdisc * s
        rt2i = -rt1i
    else:
        rt1r = tr + rtdisc
        rt2r = tr - rtdisc
        if abs(rt1r - h22) <= abs(rt2r - h22):
            rt1r *= s
            rt2r = rt1r
        else:
            rt2r *= s
            rt1r = rt2r
        rt1i = rt2i = 0.0
    return rt1r, rt1i, rt2r, rt2i


def _find_bulge_start(
    H: npt.NDArray[np.float64], l: int, i: int, shifts: Shifts, ulp: float
) -> Tuple[int, npt.NDArray[np.float64]]:
    """
    Look for two consecutive small sub-diagonal entries above the bottom.

    Returns the row m at which the sweep starts and the first column of
    (H - s1 I)(H - s2 I) restricted to rows m..m+2, scaled to avoid overflow.
    """
    rt1r, rt1i, rt2r, rt2i = shifts
    v = np.zeros(3, dtype=np.float64)
    m = i - 2
    for m in range(i - 2, l - 1, -1):
        h21s = H[m + 1, m]
        s = abs(H[m, m] - rt2r) + abs(rt2i) + abs(h21s)
        h21s = H[m + 1, m] / s
        v[0] = h21s * H[m, m + 1] + (H[m, m] - rt1r) * ((H[m, m] - rt2r) / s) - rt1i * (rt2i / s)
        v[1] = h21s * (H[m, m] + H[m + 1, m + 1] - rt1r - rt2r)
        v[2] = h21s * H[m + 2, m + 1]
        v /= np.sum(np.abs(v))
        if m == l:
            break
        h00 = abs(H[m, m - 1]) * (abs(v[1]) + abs(v[2]))
        h01 = abs(v[0]) * (abs(H[m - 1, m - 1]) + abs(H[m, m]) + abs(H[m + 1, m + 1]))
        if h00 <= ulp * h01:
            break
    return m, v


def _double_shift_sweep(
    H: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    l: int,
    m: int,
    i: int,
    v: npt.NDArray[np.float64],
) -> None:
    """Chase the bulge introduced at row m down to the bottom of the window."""
    for k in range(m, i):
        nr = min(3, i - k + 1)
        if k > m:
            x = H[k : k + nr, k - 1].copy()
        else:
            x = v[:nr]
        u, tau, beta = householder_vector(x)
        if k > m:
            H[k, k - 1] = beta
            H[k + 1, k - 1] = 0.0
            if k < i - 1:
                H[k + 2, k - 1] = 0.0
        elif m > l:
            # Scaling instead of negation, which breaks when u[1:] underflows
            H[k, k - 1] *= 1.0 - tau
        apply_reflector_left(u, tau, H[k : k + nr, k:])
        apply_reflector_right(u, tau, H[: min(k + 3, i) + 1, k : k + nr])
        apply_reflector_right(u, tau, Q[:, k : k + nr])


def _standardize_trailing_block(
    H: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    i: int,
    real: npt.NDArray[np.float64],
    imag: npt.NDArray[np.float64],
) -> None:
    """Standardize the deflated 2x2 block at rows i-1, i and record its eigenvalues."""
    std = standardize_block(H[i - 1, i - 1], H[i - 1, i], H[i, i - 1], H[i, i])
    H[i - 1, i - 1] = std.a
    H[i - 1, i] = std.b
    H[i, i - 1] = std.c
    H[i, i] = std.d
    real[i - 1], imag[i - 1] = std.rt1r, std.rt1i
    real[i], imag[i] = std.rt2r, std.rt2i
    rotate_rows(H[i - 1 : i + 1, i + 1 :], std.cs, std.sn)
    rotate_columns(H[: i - 1, i - 1 : i + 1], std.cs, std.sn)
    rotate_columns(Q[:, i - 1 : i + 1], std.cs, std.sn)


def schur_factorize(
    H: npt.NDArray[np.float64],
    Q: npt.NDArray[np.float64],
    conf: Optional[SchurConfig] = None,
) -> SchurResult:
    """
    Drive an upper Hessenberg matrix to real Schur form, S = U^T H U, Q := Q U.

    Eigenvalues are emitted as blocks deflate from the bottom of the active
    window. A complex conjugate pair is reported with the positive imaginary
    part first.

    Args:
        H (npt.NDArray[np.float64]): On entry upper Hessenberg, on exit S.
        Q (npt.NDArray[np.float64]): On entry orthogonal, on exit Q U.
        conf (Optional[SchurConfig]): Iteration budget and shift strategy.

    Returns:
        SchurResult: Status, eigenvalues and the number of unconverged rows.

    Raises:
        InvalidArgumentError: If H is not an upper Hessenberg matrix or Q does not match.
    """
    if conf is None:
        conf = SchurConfig()
    n = check_matrix(H, 1, "H")
    check_matrix(Q, 2, "Q", shape=(n, n))
    if np.shares_memory(H, Q):
        raise InvalidArgumentError(2, "Q", "Q must not share memory with H")
    if np.any(np.tril(H, -2)):
        raise InvalidArgumentError(1, "H", "matrix is not upper Hessenberg")

    real = np.full(n, np.nan, dtype=np.float64)
    imag = np.full(n, np.nan, dtype=np.float64)
    ulp = EPS
    smlnum = SAFE_MIN * (n / ulp)
    itmax = conf.iteration_limit_factor * max(10, n)
    period = conf.exceptional_shift_period

    kdefl = 0
    total_iterations = 0
    i = n - 1
    while i >= 0:
        l = 0
        converged = False
        for _ in range(itmax + 1):
            l = _find_negligible_subdiagonal(H, l, i, ulp, smlnum)
            if l > 0:
                H[l, l - 1] = 0.0
            if l >= i - 1:
                converged = True
                break
            kdefl += 1
            total_iterations += 1
            shifts = _select_shifts(H, l, i, kdefl, period)
            m, v = _find_bulge_start(H, l, i, shifts, ulp)
            _double_shift_sweep(H, Q, l, m, i, v)

        if not converged:
            logger.warning(
                f"QR iteration did not converge within {itmax} iterations; "
                f"rows 0..{i} remain unconverged."
            )
            return SchurResult(ErrorCode.DID_NOT_CONVERGE, real, imag, i + 1, total_iterations)

        if l == i:
            real[i] = H[i, i]
            imag[i] = 0.0
        else:
            _standardize_trailing_block(H, Q, i, real, imag)
        logger.debug(f"Deflated rows [{l}, {i}] after {kdefl} iterations.")
        kdefl = 0
        i = l - 1

    logger.info(f"Schur factorization of order {n} converged after {total_iterations} sweeps.")
    return SchurResult(ErrorCode.SUCCESS, real, imag, 0, total_iterations)
