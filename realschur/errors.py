"""
Status codes and exceptions shared by all pipeline stages.

Structural problems with the arguments of a call are raised as
`InvalidArgumentError` before any buffer is touched. Numerical outcomes that
leave the matrices in a documented state (non-convergence, partial
reordering) are reported through `ErrorCode` in the result objects.
"""
from enum import IntEnum
from typing import Any, Optional, Tuple
import numpy as np


class ErrorCode(IntEnum):
    SUCCESS = 0
    DID_NOT_CONVERGE = 1
    PARTIAL_REORDERING = 2


class InvalidArgumentError(ValueError):
    """
    Raised when an argument violates a structural precondition.

    Attributes:
        position (int): 1-based position of the offending argument in the
                        call signature.
        argument (str): Name of the offending argument.
    """

    def __init__(self, position: int, argument: str, message: Optional[str] = None):
        self.position = position
        self.argument = argument
        detail = f": {message}" if message else ""
        super().__init__(f"Invalid argument {position} ('{argument}'){detail}")


def check_matrix(
    M: Any,
    position: int,
    argument: str,
    shape: Optional[Tuple[int, int]] = None,
    writeable: bool = True,
    finite: bool = True,
) -> int:
    """
    Validate a matrix argument and return its number of rows.

    Without `shape` the matrix must be square and non-empty. Views of larger
    arrays are accepted; they are updated in place.
    """
    if not isinstance(M, np.ndarray):
        raise InvalidArgumentError(position, argument, "expected a numpy.ndarray")
    if M.ndim != 2:
        raise InvalidArgumentError(position, argument, f"expected 2 dimensions, got {M.ndim}")
    if M.dtype != np.float64:
        raise InvalidArgumentError(position, argument, f"expected float64, got {M.dtype}")
    if shape is None:
        if M.shape[0] != M.shape[1]:
            raise InvalidArgumentError(position, argument, f"matrix is not square: {M.shape}")
        if M.shape[0] == 0:
            raise InvalidArgumentError(position, argument, "matrix order must be positive")
    elif M.shape != tuple(shape):
        raise InvalidArgumentError(
            position, argument, f"expected shape {tuple(shape)}, got {M.shape}"
        )
    if writeable and not M.flags.writeable:
        raise InvalidArgumentError(position, argument, "buffer is read-only")
    if finite and not np.all(np.isfinite(M)):
        raise InvalidArgumentError(position, argument, "matrix contains non-finite values")
    return M.shape[0]
