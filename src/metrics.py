# metrics.py
# - compute_errors(estimates, truths)
# - compute_rmse(estimates, truths)
# - compute_relative_error(estimates, truths)

from typing import Tuple
import numpy as np


def _as_pair(estimates, truths) -> Tuple[np.ndarray, np.ndarray]:
    est = np.asarray(estimates, dtype=float).ravel()
    tru = np.asarray(truths, dtype=float).ravel()
    if est.shape != tru.shape:
        raise ValueError(f"Length mismatch: {est.shape[0]} estimates vs {tru.shape[0]} true values.")
    if est.size == 0:
        raise ValueError("Need at least one (estimate, truth) pair.")
    return est, tru


def compute_errors(estimates, truths) -> Tuple[np.ndarray, float, np.ndarray]:
    """
    Absolute error, mean absolute error and the per-element root-mean-squared term.

    Returns
    -------
    abs_error : (n,) array
        |est_i - true_i|
    mean_abs_error : float
        mean_i |est_i - true_i|
    rmse : (n,) array
        sqrt((est_i - true_i)^2 / n), elementwise. Note this divides each squared
        deviation by n before the root; see `compute_rmse` for the aggregate RMSE.
    """
    est, tru = _as_pair(estimates, truths)
    n = est.shape[0]
    diff = est - tru
    abs_error = np.abs(diff)
    rmse = np.sqrt(diff**2 / n)
    return abs_error, float(abs_error.mean()), rmse


def compute_rmse(estimates, truths) -> float:
    """Conventional aggregate RMSE: sqrt(mean((est - true)^2))."""
    est, tru = _as_pair(estimates, truths)
    return float(np.sqrt(np.mean((est - tru) ** 2)))


def compute_relative_error(estimates, truths) -> np.ndarray:
    """
    |est - true| / |true| elementwise; entries with true == 0 are NaN
    unless the estimate is also 0, in which case the error is 0.
    """
    est, tru = _as_pair(estimates, truths)
    rel = np.full_like(est, np.nan)
    nonzero = tru != 0.0
    rel[nonzero] = np.abs(est[nonzero] - tru[nonzero]) / np.abs(tru[nonzero])
    rel[~nonzero & (est == 0.0)] = 0.0
    return rel
