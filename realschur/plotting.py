import numpy as np
import matplotlib.pyplot as plt
import logging
import os
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


def plot_spectrum(
    real: np.ndarray,
    imag: np.ndarray,
    save_filename: Optional[str],
    selected: Optional[Sequence] = None,
    title: str = "Spectrum",
    show_plot: bool = False
):
    """
    Plots the eigenvalues in the complex plane.

    Selected eigenvalues are drawn as filled red markers, the rest as open
    blue circles. Eigenvalues that are NaN (unconverged rows) are skipped.
    """
    try:
        real = np.asarray(real, dtype=float)
        imag = np.asarray(imag, dtype=float)
        if selected is None:
            mask = np.zeros(real.shape[0], dtype=bool)
        else:
            mask = np.asarray(selected) != 0
        finite = np.isfinite(real) & np.isfinite(imag)
        if not np.all(finite):
            logger.warning(f"Skipping {int(np.sum(~finite))} unavailable eigenvalues in the spectrum plot.")

        plt.figure(figsize=(6, 6))

        rest = finite & ~mask
        chosen = finite & mask
        plt.scatter(real[rest], imag[rest], facecolors='none', edgecolors='b', s=30, label="eigenvalues")
        if np.any(chosen):
            plt.scatter(real[chosen], imag[chosen], c='r', s=30, label="selected")

        plt.axhline(0.0, color='k', lw=0.5, alpha=0.5)
        plt.axvline(0.0, color='k', lw=0.5, alpha=0.5)
        plt.title(title)
        plt.xlabel(r"Re $\lambda$")
        plt.ylabel(r"Im $\lambda$")
        plt.grid(True, alpha=0.3)
        plt.legend(loc='best')

        # Ensure directory exists
        if save_filename:
            os.makedirs(os.path.dirname(os.path.abspath(save_filename)), exist_ok=True)
            plt.savefig(save_filename, dpi=150)
            logger.info(f"Spectrum plot saved to {save_filename}")

        if show_plot:
            plt.show()
        plt.close()

    except Exception as e:
        logger.error(f"Failed to plot spectrum: {e}")
        raise e
