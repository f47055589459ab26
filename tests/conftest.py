import os
import sys

import matplotlib

matplotlib.use("Agg")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np
import pytest


def random_orthogonal(n, rng):
    Q, R = np.linalg.qr(rng.standard_normal((n, n)))
    return Q * np.sign(np.diag(R))


def assert_quasi_triangular(S):
    assert not np.any(np.tril(S, -2))
    sub = np.diagonal(S, -1) != 0.0
    assert not np.any(sub[1:] & sub[:-1])
    for i in np.flatnonzero(sub):
        # Standardized 2x2 block: equal diagonal, off-diagonals of opposite sign
        assert S[i, i + 1] * S[i + 1, i] < 0.0
        assert S[i, i] == pytest.approx(S[i + 1, i + 1], rel=1e-12, abs=1e-14)


@pytest.fixture
def rng():
    return np.random.default_rng(20241019)
