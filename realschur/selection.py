"""
Eigenvalue selection on a real Schur form.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional
import numpy as np
import numpy.typing as npt

from .blocks import ComplexBlock, check_quasi_triangular, diagonal_blocks
from .errors import InvalidArgumentError, check_matrix
from .schema import SelectionConfig

logger = logging.getLogger(__name__)

Predicate = Callable[[float, float], bool]


@dataclass
class SelectResult:
    """Selection mask (one 0/1 entry per row) and the number of selected eigenvalues."""
    selected: npt.NDArray[np.int_]
    num_selected: int


def select_eigenvalues(S: npt.NDArray[np.float64], predicate: Predicate) -> SelectResult:
    """
    Evaluate a predicate on the eigenvalues of a Schur matrix.

    1x1 blocks are passed to the predicate directly. For a 2x2 block the
    predicate is called once, with the eigenvalue of positive imaginary part,
    and the answer applies to both rows. S is not modified.

    Args:
        S (npt.NDArray[np.float64]): The Schur matrix.
        predicate (Predicate): Called as predicate(real, imag).

    Returns:
        SelectResult: The mask and the selected count (a pair counts as two).

    Raises:
        InvalidArgumentError: If S is malformed, not quasi-triangular, or the
                              predicate is not callable.
    """
    n = check_matrix(S, 1, "S", writeable=False)
    check_quasi_triangular(S, 1, "S")
    if not callable(predicate):
        raise InvalidArgumentError(2, "predicate", "expected a callable")

    selected = np.zeros(n, dtype=np.int_)
    for block in diagonal_blocks(S):
        if isinstance(block, ComplexBlock):
            if predicate(block.real, block.imag):
                selected[block.index : block.index + 2] = 1
        elif predicate(block.value, 0.0):
            selected[block.index] = 1
    num_selected = int(np.count_nonzero(selected))
    logger.debug(f"Selected {num_selected} of {n} eigenvalues.")
    return SelectResult(selected, num_selected)


# --- Predicate factories ---
def real_part_below(threshold: float) -> Predicate:
    """Select eigenvalues with real part strictly below `threshold`."""
    return lambda re, im: re < threshold


def real_part_above(threshold: float) -> Predicate:
    """Select eigenvalues with real part strictly above `threshold`."""
    return lambda re, im: re > threshold


def magnitude_below(threshold: float) -> Predicate:
    return lambda re, im: float(np.hypot(re, im)) < threshold


def magnitude_above(threshold: float) -> Predicate:
    return lambda re, im: float(np.hypot(re, im)) > threshold


def real_eigenvalues() -> Predicate:
    """Select the real eigenvalues (1x1 blocks)."""
    return lambda re, im: im == 0.0


def predicate_from_config(selection: SelectionConfig) -> Optional[Predicate]:
    """
    Build a predicate from a selection configuration.

    Returns None for rule 'none', meaning no reordering is requested.
    """
    rule = selection.rule
    threshold = selection.threshold
    if rule == 'none':
        return None
    if rule == 'real_below':
        return real_part_below(threshold)
    if rule == 'real_above':
        return real_part_above(threshold)
    if rule == 'magnitude_below':
        return magnitude_below(threshold)
    if rule == 'magnitude_above':
        return magnitude_above(threshold)
    if rule == 'real':
        return real_eigenvalues()
    raise ValueError(f"Unknown selection rule '{rule}'")
