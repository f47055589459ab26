import os
import logging
from dataclasses import dataclass, field
from timeit import default_timer
from typing import Dict, Optional
import numpy as np
import numpy.typing as npt

from realschur.config_loader import load_matrix, load_pipeline_config
from realschur.eigenvectors import compute_eigenvectors
from realschur.errors import ErrorCode
from realschur.hessenberg import reduce_to_hessenberg
from realschur.plotting import plot_spectrum
from realschur.reorder import reorder_schur
from realschur.residuals import eigenvector_residuals, orthogonality_residual, similarity_residual
from realschur.schema import PipelineConfig
from realschur.schur import schur_factorize
from realschur.selection import predicate_from_config, select_eigenvalues

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Arrays and diagnostics produced by one pipeline run."""
    status: ErrorCode
    S: npt.NDArray[np.float64]
    Q: npt.NDArray[np.float64]
    real: npt.NDArray[np.float64]
    imag: npt.NDArray[np.float64]
    selected: npt.NDArray[np.int_]
    X: npt.NDArray[np.float64]
    residuals: Dict[str, float] = field(default_factory=dict)
    timings: Dict[str, float] = field(default_factory=dict)
    results_file: Optional[str] = None
    plot_file: Optional[str] = None


def _resolve(path: str, base_dir: str) -> str:
    return path if os.path.isabs(path) else os.path.join(base_dir, path)


def execute_pipeline(
    A: npt.NDArray[np.float64], config: PipelineConfig
) -> PipelineResult:
    """
    Run all stages on a copy of A as described by `config`.

    A is not modified. Residuals are computed against the original matrix.
    """
    n = A.shape[0]
    S = np.array(A, dtype=np.float64, order="F")
    Q = np.eye(n, order="F")
    timings: Dict[str, float] = {}
    residuals: Dict[str, float] = {}

    st = default_timer()
    reduce_to_hessenberg(S, Q, config.hessenberg.begin, config.hessenberg.end)
    timings["hessenberg"] = default_timer() - st

    st = default_timer()
    sres = schur_factorize(S, Q, config.schur)
    timings["schur"] = default_timer() - st
    status = sres.status
    real, imag = sres.real, sres.imag
    selected = np.zeros(n, dtype=np.int_)
    X = np.zeros((n, 0), dtype=np.float64)

    if status == ErrorCode.SUCCESS:
        predicate = predicate_from_config(config.selection)
        if predicate is not None:
            selected = select_eigenvalues(S, predicate).selected
            logger.info(f"Selection rule '{config.selection.rule}' picked {int(selected.sum())} of {n} eigenvalues.")
            if config.tasks.reorder:
                st = default_timer()
                rres = reorder_schur(selected, S, Q, config.reorder)
                timings["reorder"] = default_timer() - st
                status = rres.status
                selected = rres.selected
                real, imag = rres.real, rres.imag

        if config.tasks.compute_eigenvectors and np.any(selected):
            st = default_timer()
            X = compute_eigenvectors(selected, S, Q, conf=config.eigenvectors)
            timings["eigenvectors"] = default_timer() - st
            evres = eigenvector_residuals(A, X, selected, real, imag)
            residuals["eigenvectors_max"] = float(np.max(evres))
    else:
        logger.warning(f"Schur stage ended with {status.name}; {sres.unconverged} rows are unusable.")

    residuals["orthogonality"] = orthogonality_residual(Q)
    residuals["similarity"] = similarity_residual(A, Q, S)
    for name, value in residuals.items():
        logger.info(f"Residual {name}: {value:.3e}")
    for name, value in timings.items():
        logger.info(f"Stage {name} took {value:.4f} s")

    return PipelineResult(status, S, Q, real, imag, selected, X, residuals, timings)


def run_pipeline(config_file: str) -> PipelineResult:
    """
    Main execution logic for running a decomposition from a configuration file.
    """
    if not os.path.exists(config_file):
        logger.error(f"Config file '{config_file}' not found.")
        raise FileNotFoundError(f"Config file '{config_file}' not found.")

    config = load_pipeline_config(config_file)
    config_dir = os.path.dirname(os.path.abspath(config_file))
    A = load_matrix(config.input.matrix_file)

    total_start = default_timer()
    result = execute_pipeline(A, config)
    logger.info(f"Pipeline finished with status {result.status.name} in {default_timer() - total_start:.4f} s")

    results_file = _resolve(config.output.results_filename, config_dir)
    os.makedirs(os.path.dirname(os.path.abspath(results_file)), exist_ok=True)
    np.savez(
        results_file,
        S=result.S,
        Q=result.Q,
        real=result.real,
        imag=result.imag,
        selected=result.selected,
        X=result.X,
        status=int(result.status),
    )
    logger.info(f"Results saved to {results_file}")
    result.results_file = results_file

    plot_config = config.plotting
    if config.tasks.plot_spectrum and (plot_config.save_plot or plot_config.show_plot):
        plot_file = None
        if plot_config.save_plot:
            plot_file = _resolve(plot_config.spectrum_plot_filename, config_dir)
        plot_spectrum(
            result.real,
            result.imag,
            plot_file,
            selected=result.selected,
            title=plot_config.spectrum_title,
            show_plot=plot_config.show_plot,
        )
        result.plot_file = plot_file

    return result
