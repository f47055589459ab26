import logging
import math
from typing import NamedTuple, Optional, Tuple, Union
import numpy as np
import numpy.typing as npt
from scipy import linalg as la

logger = logging.getLogger(__name__)

# --- Machine Constants ---
EPS: float = float(np.finfo(np.float64).eps)  # relative machine precision
SAFE_MIN: float = float(np.finfo(np.float64).tiny)
SMALL_NUM: float = SAFE_MIN / EPS
BIG_NUM: float = 1.0 / SMALL_NUM

# Power-of-two scaling bounds used while standardizing 2x2 blocks
_SAFMN2: float = 2.0 ** int(math.log2(SAFE_MIN / EPS) / 2.0)
_SAFMX2: float = 1.0 / _SAFMN2
_MULTPL: float = 4.0


def _sign(a: float, b: float) -> float:
    """Magnitude of `a` with the sign of `b` (Fortran SIGN semantics)."""
    return abs(a) if b >= 0.0 else -abs(a)


class StandardBlock(NamedTuple):
    """Standardized 2x2 Schur block together with the rotation producing it."""

    a: float
    b: float
    c: float
    d: float
    rt1r: float
    rt1i: float
    rt2r: float
    rt2i: float
    cs: float
    sn: float


def householder_vector(
    x: npt.NDArray[np.float64],
) -> Tuple[npt.NDArray[np.float64], float, float]:
    """
    Generate an elementary reflector H = I - tau * v v^T with H x = beta e_1.

    Args:
        x (npt.NDArray[np.float64]): The vector to be reflected onto e_1.

    Returns:
        Tuple[npt.NDArray[np.float64], float, float]:
            - The Householder vector v, normalized so that v[0] = 1.
            - The scalar factor tau (0 when x is already a multiple of e_1).
            - The resulting leading entry beta.
    """
    x = np.asarray(x, dtype=np.float64)
    alpha = float(x[0])
    v = np.zeros_like(x)
    v[0] = 1.0
    if x.size == 1:
        return v, 0.0, alpha
    xnorm = float(la.norm(x[1:]))
    if xnorm == 0.0:
        return v, 0.0, alpha
    beta = -math.copysign(math.hypot(alpha, xnorm), alpha)
    tau = (beta - alpha) / beta
    v[1:] = x[1:] / (alpha - beta)
    return v, tau, beta


def frobenius_norm(M: npt.NDArray[np.float64]) -> float:
    """Frobenius norm computed with BLAS nrm2, free of intermediate overflow."""
    return float(la.norm(np.ravel(M)))


def apply_reflector_left(
    v: npt.NDArray[np.float64], tau: float, C: npt.NDArray[np.float64]
) -> None:
    """Overwrite the view C with (I - tau v v^T) C."""
    if tau == 0.0 or C.size == 0:
        return
    C -= tau * np.outer(v, v @ C)


def apply_reflector_right(
    v: npt.NDArray[np.float64], tau: float, C: npt.NDArray[np.float64]
) -> None:
    """Overwrite the view C with C (I - tau v v^T)."""
    if tau == 0.0 or C.size == 0:
        return
    C -= tau * np.outer(C @ v, v)


def rotate_rows(X: npt.NDArray[np.float64], cs: float, sn: float) -> None:
    """Apply the plane rotation [cs sn; -sn cs] to the two rows of the view X."""
    if X.size == 0:
        return
    top = X[0].copy()
    X[0] = cs * top + sn * X[1]
    X[1] = cs * X[1] - sn * top


def rotate_columns(X: npt.NDArray[np.float64], cs: float, sn: float) -> None:
    """Apply the plane rotation [cs -sn; sn cs] to the two columns of the view X."""
    if X.size == 0:
        return
    left = X[:, 0].copy()
    X[:, 0] = cs * left + sn * X[:, 1]
    X[:, 1] = cs * X[:, 1] - sn * left


def standardize_block(a: float, b: float, c: float, d: float) -> StandardBlock:
    """
    Compute the Schur factorization of a real 2x2 matrix in standardized form.

        [ a  b ]   [ cs -sn ] [ aa  bb ] [ cs  sn ]
        [ c  d ] = [ sn  cs ] [ cc  dd ] [-sn  cs ]

    On return either cc = 0 (two real eigenvalues, upper triangular block) or
    aa = dd and bb * cc < 0 (complex conjugate pair aa +- sqrt(|bb|) sqrt(|cc|) i).

    Args:
        a, b, c, d (float): Entries of the 2x2 matrix [[a, b], [c, d]].

    Returns:
        StandardBlock: The standardized entries, the eigenvalues (positive
                       imaginary part first) and the rotation (cs, sn).
    """
    a, b, c, d = float(a), float(b), float(c), float(d)
    if c == 0.0:
        cs, sn = 1.0, 0.0
    elif b == 0.0:
        # Swap rows and columns
        cs, sn = 0.0, 1.0
        a, d = d, a
        b = -c
        c = 0.0
    elif (a - d) == 0.0 and _sign(1.0, b) != _sign(1.0, c):
        cs, sn = 1.0, 0.0
    else:
        temp = a - d
        p = 0.5 * temp
        bcmax = max(abs(b), abs(c))
        bcmis = min(abs(b), abs(c)) * _sign(1.0, b) * _sign(1.0, c)
        scale = max(abs(p), bcmax)
        z = (p / scale) * p + (bcmax / scale) * bcmis
        if z >= _MULTPL * EPS:
            # Real eigenvalues
            z = p + _sign(math.sqrt(scale) * math.sqrt(z), p)
            a = d + z
            d = d - (bcmax / z) * bcmis
            tau = math.hypot(c, z)
            cs = z / tau
            sn = c / tau
            b = b - c
            c = 0.0
        else:
            # Complex or almost equal real eigenvalues: make the diagonal equal
            sigma = b + c
            for _ in range(20):
                scale = max(abs(temp), abs(sigma))
                if scale >= _SAFMX2:
                    sigma *= _SAFMN2
                    temp *= _SAFMN2
                    continue
                if scale <= _SAFMN2:
                    sigma *= _SAFMX2
                    temp *= _SAFMX2
                    continue
                break
            p = 0.5 * temp
            tau = math.hypot(sigma, temp)
            cs = math.sqrt(0.5 * (1.0 + abs(sigma) / tau))
            sn = -(p / (tau * cs)) * _sign(1.0, sigma)

            aa = a * cs + b * sn
            bb = -a * sn + b * cs
            cc = c * cs + d * sn
            dd = -c * sn + d * cs

            a = aa * cs + cc * sn
            b = bb * cs + dd * sn
            c = -aa * sn + cc * cs
            d = -bb * sn + dd * cs

            temp = 0.5 * (a + d)
            a = temp
            d = temp

            if c != 0.0:
                if b != 0.0:
                    if _sign(1.0, b) == _sign(1.0, c):
                        # Real eigenvalues: reduce to upper triangular form
                        sab = math.sqrt(abs(b))
                        sac = math.sqrt(abs(c))
                        p = _sign(sab * sac, c)
                        tau = 1.0 / math.sqrt(abs(b + c))
                        a = temp + p
                        d = temp - p
                        b = b - c
                        c = 0.0
                        cs1 = sab * tau
                        sn1 = sac * tau
                        temp = cs * cs1 - sn * sn1
                        sn = cs * sn1 + sn * cs1
                        cs = temp
                else:
                    b = -c
                    c = 0.0
                    temp = cs
                    cs = -sn
                    sn = temp

    if c == 0.0:
        rt1i = rt2i = 0.0
    else:
        rt1i = math.sqrt(abs(b)) * math.sqrt(abs(c))
        rt2i = -rt1i
    return StandardBlock(a, b, c, d, a, rt1i, d, rt2i, cs, sn)


def solve_shifted_system(
    block: npt.NDArray[np.float64],
    wr: float,
    wi: float,
    rhs: Union[npt.NDArray[np.float64], npt.NDArray[np.complex128]],
    smin: float,
) -> Tuple[Union[npt.NDArray[np.float64], npt.NDArray[np.complex128]], float]:
    """
    Solve (B - (wr + i wi) I) x = scale * rhs for a 1x1 or 2x2 real block B.

    Pivots smaller than `smin` are perturbed to `smin`, so a result is always
    produced. The returned `scale` (0 < scale <= 1) is chosen such that the
    solution does not overflow.

    Args:
        block (npt.NDArray[np.float64]): The 1x1 or 2x2 block B.
        wr (float): Real part of the shift.
        wi (float): Imaginary part of the shift.
        rhs: Right-hand side (real, or complex for a complex shift).
        smin (float): Lower bound for the magnitude of the pivots.

    Returns:
        Tuple: The solution x and the scale factor.
    """
    block = np.asarray(block, dtype=np.float64)
    na = block.shape[0]
    use_complex = wi != 0.0 or np.iscomplexobj(rhs)
    dtype = np.complex128 if use_complex else np.float64
    shift = complex(wr, wi) if use_complex else wr
    C = block.astype(dtype) - shift * np.eye(na, dtype=dtype)
    b = np.array(rhs, dtype=dtype)
    smin = max(smin, SMALL_NUM)
    scale = 1.0

    if na == 1:
        c = C[0, 0]
        if abs(c) < smin:
            c = smin
        bnorm = abs(b[0])
        if abs(c) < 1.0 and bnorm > 1.0 and bnorm > BIG_NUM * abs(c):
            scale = 1.0 / bnorm
        return np.array([b[0] * scale / c], dtype=dtype), scale

    magnitudes = np.abs(C)
    ip, jp = np.unravel_index(int(np.argmax(magnitudes)), magnitudes.shape)
    cmax = magnitudes[ip, jp]
    if cmax < smin:
        # Use smin * I
        bnorm = float(np.max(np.abs(b)))
        if smin < 1.0 and bnorm > 1.0 and bnorm > BIG_NUM * smin:
            scale = 1.0 / bnorm
        return b * (scale / smin), scale

    iq, jq = 1 - ip, 1 - jp
    u11 = C[ip, jp]
    u12 = C[ip, jq]
    l21 = C[iq, jp] / u11
    u22 = C[iq, jq] - l21 * u12
    if abs(u22) < smin:
        u22 = smin
    b1 = b[ip]
    b2 = b[iq] - l21 * b1
    bbnd = max(abs(b1 * (u22 / u11)), abs(b2))
    if bbnd > 1.0 and abs(u22) < 1.0 and bbnd >= BIG_NUM * abs(u22):
        scale = 1.0 / bbnd
    x2 = (b2 * scale) / u22
    x1 = (b1 * scale - u12 * x2) / u11
    x = np.empty(2, dtype=dtype)
    x[jp] = x1
    x[jq] = x2

    xnorm = float(np.max(np.abs(x)))
    if xnorm > 1.0 and cmax > 1.0 and xnorm > BIG_NUM / cmax:
        x /= xnorm
        scale /= xnorm
    return x, scale


def sylvester_operator(
    T11: npt.NDArray[np.float64], T22: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Kronecker matrix of X -> T11 X - X T22 acting on column-major vec(X)."""
    n1 = T11.shape[0]
    n2 = T22.shape[0]
    return np.kron(np.eye(n2), T11) - np.kron(T22.T, np.eye(n1))


def sylvester_separation(
    T11: npt.NDArray[np.float64], T22: npt.NDArray[np.float64]
) -> float:
    """
    Separation sep(T11, T22): smallest singular value of the Sylvester operator.

    A small separation means the eigenvalues of the two blocks are close
    relative to the coupling, and the invariant subspaces are ill-conditioned.
    """
    return float(la.svdvals(sylvester_operator(T11, T22))[-1])


def coupling_solution(
    T11: npt.NDArray[np.float64],
    T22: npt.NDArray[np.float64],
    T12: npt.NDArray[np.float64],
) -> Tuple[Optional[npt.NDArray[np.float64]], float]:
    """
    Solve the small Sylvester equation T11 X - X T22 = T12.

    Blocks are of order 1 or 2, so the equation is solved through its
    (at most 4x4) Kronecker form using an SVD, which also yields the
    separation estimate.

    Returns:
        Tuple[Optional[npt.NDArray[np.float64]], float]:
            - The solution X, or None when the operator is numerically singular.
            - The separation sep(T11, T22).
    """
    n1 = T11.shape[0]
    n2 = T22.shape[0]
    K = sylvester_operator(T11, T22)
    U, s, Vt = la.svd(K)
    sep = float(s[-1])
    if sep <= SMALL_NUM * max(1.0, float(s[0])):
        return None, sep
    rhs = np.asarray(T12, dtype=np.float64).reshape(-1, order="F")
    x = Vt.T @ ((U.T @ rhs) / s)
    return x.reshape((n1, n2), order="F"), sep
