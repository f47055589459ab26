"""
Diagonal block structure of a real Schur form.

A quasi-triangular matrix carries 1x1 blocks (real eigenvalues) and 2x2 blocks
(complex conjugate pairs) on its diagonal. The blocks are modelled as a small
tagged union so that the consumers (selection, reordering, eigenvectors) handle
both kinds explicitly.
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union
import numpy as np
import numpy.typing as npt

from .errors import InvalidArgumentError
from .linalg import standardize_block

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RealBlock:
    """1x1 diagonal block holding a real eigenvalue."""
    index: int
    value: float

    @property
    def size(self) -> int:
        return 1


@dataclass(frozen=True)
class ComplexBlock:
    """2x2 diagonal block holding the pair real +- imag i (imag > 0)."""
    index: int
    real: float
    imag: float

    @property
    def size(self) -> int:
        return 2


DiagonalBlock = Union[RealBlock, ComplexBlock]


def block_size_at(S: npt.NDArray[np.float64], i: int) -> int:
    """Size of the diagonal block starting at row `i`."""
    n = S.shape[0]
    if i + 1 < n and S[i + 1, i] != 0.0:
        return 2
    return 1


def diagonal_blocks(S: npt.NDArray[np.float64]) -> List[DiagonalBlock]:
    """
    Scan the diagonal of a quasi-triangular matrix from top to bottom.

    A non-zero sub-diagonal entry S[i+1, i] opens a 2x2 block at row i. The
    eigenvalues of a 2x2 block are computed from the block itself; the
    imaginary part is reported as a non-negative number.

    Args:
        S (npt.NDArray[np.float64]): The (quasi-)triangular matrix.

    Returns:
        List[DiagonalBlock]: The blocks in order of their leading row.
    """
    n = S.shape[0]
    blocks: List[DiagonalBlock] = []
    i = 0
    while i < n:
        if block_size_at(S, i) == 2:
            std = standardize_block(S[i, i], S[i, i + 1], S[i + 1, i], S[i + 1, i + 1])
            blocks.append(ComplexBlock(i, std.rt1r, abs(std.rt1i)))
            i += 2
        else:
            blocks.append(RealBlock(i, float(S[i, i])))
            i += 1
    return blocks


def block_eigenvalues(
    S: npt.NDArray[np.float64],
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Read the eigenvalues off the diagonal blocks.

    Returns:
        Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
            Real and imaginary parts, one entry per row. A 2x2 block reports
            the eigenvalue with positive imaginary part first.
    """
    n = S.shape[0]
    real = np.zeros(n, dtype=np.float64)
    imag = np.zeros(n, dtype=np.float64)
    for block in diagonal_blocks(S):
        if isinstance(block, ComplexBlock):
            real[block.index : block.index + 2] = block.real
            imag[block.index] = block.imag
            imag[block.index + 1] = -block.imag
        else:
            real[block.index] = block.value
    return real, imag


def normalize_mask(
    selected: Sequence, n: int, position: int, argument: str = "selected"
) -> npt.NDArray[np.int_]:
    """Convert a caller supplied selection into a 0/1 integer array of length n."""
    try:
        mask = np.asarray(selected)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(position, argument, f"not an array: {e}") from e
    if mask.ndim != 1 or mask.shape[0] != n:
        raise InvalidArgumentError(
            position, argument, f"expected {n} entries, got shape {mask.shape}"
        )
    return (mask != 0).astype(np.int_)


def check_mask_against_blocks(
    mask: npt.NDArray[np.int_],
    blocks: Sequence[DiagonalBlock],
    position: int,
    argument: str = "selected",
) -> None:
    """Raise InvalidArgumentError when the mask splits a conjugate pair."""
    for block in blocks:
        if isinstance(block, ComplexBlock) and mask[block.index] != mask[block.index + 1]:
            raise InvalidArgumentError(
                position,
                argument,
                f"selection splits the conjugate pair at rows {block.index}, {block.index + 1}",
            )


def check_quasi_triangular(S: npt.NDArray[np.float64], position: int, argument: str) -> None:
    """Raise InvalidArgumentError unless S is upper quasi-triangular."""
    if np.any(np.tril(S, -2)):
        raise InvalidArgumentError(position, argument, "entries below the first sub-diagonal")
    sub = np.diagonal(S, -1) != 0.0
    if np.any(sub[1:] & sub[:-1]):
        raise InvalidArgumentError(
            position, argument, "two consecutive non-zero sub-diagonal entries"
        )
    for i in np.flatnonzero(sub):
        if standardize_block(S[i, i], S[i, i + 1], S[i + 1, i], S[i + 1, i + 1]).c == 0.0:
            raise InvalidArgumentError(
                position, argument, f"2x2 block at rows {i}, {i + 1} has real eigenvalues"
            )
