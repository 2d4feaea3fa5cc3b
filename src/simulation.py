# simulation.py
# - Trace estimator sweep over (n, k)
# - Schatten 2p-norm estimator sweep over (p, k)
# - Optimizer comparison on a least-squares problem (Newton / GD / SGD)
#
# Outputs:
#   results/tables/*.csv (per-trial sweeps and summary tables)

from typing import Any, Callable, Dict, List, Optional, Sequence
from pathlib import Path
from concurrent.futures import ProcessPoolExecutor
import math
import time

import numpy as np
import pandas as pd
from tqdm import tqdm

# === import from files ===
from config import (
    MASTER_SEED,
    N_JOBS_SCHATTEN,
    N_JOBS_TRACE,
    N_TRIALS,
    RESULTS_DIR,
    SCHATTEN_K_LIST,
    SCHATTEN_P_LIST,
    SCHATTEN_SHAPE,
    TRACE_K_LIST,
    TRACE_N_LIST,
)
from src.dgps import (
    generate_least_squares,
    generate_psd_matrix,
    generate_rectangular_matrix,
    generate_spectrum_matrix,
)
from src.methods import (
    STATUS_INVALID,
    STATUS_OK,
    classify_estimate,
    estimate_schatten_norm,
    estimate_trace,
    true_schatten_norm,
    true_trace,
)
from src.metrics import compute_errors, compute_relative_error, compute_rmse
from src.optimizers import (
    gradient_descent,
    least_squares_component_gradients,
    least_squares_objective,
    make_batch_sizes,
    make_step_sizes,
    newton_raphson,
    row_norm_probabilities,
    stochastic_gradient_descent,
)
from src.timing import StepTimer, timer

SEED_HIGH = 2**31 - 1


def _tables_dir(out_dir: Optional[Path]) -> Path:
    tables_dir = Path(out_dir) if out_dir is not None else Path(RESULTS_DIR) / "tables"
    tables_dir.mkdir(exist_ok=True, parents=True)
    return tables_dir


def _run_cells(
    worker: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]],
    cells: List[Dict[str, Any]],
    n_jobs: int,
    desc: str,
) -> List[Dict[str, Any]]:
    """
    Evaluate `worker` over `cells`, serially (n_jobs == 1) or over chunks in a
    process pool. Every cell carries its own seed, so both paths give identical rows.
    """
    if n_jobs is None or n_jobs < 1:
        raise ValueError(f"n_jobs must be a positive integer; got {n_jobs}")
    if not cells:
        return []

    if n_jobs == 1:
        rows: List[Dict[str, Any]] = []
        for cell in tqdm(cells, desc=desc, leave=False):
            rows.extend(worker([cell]))
        return rows

    n_jobs = min(n_jobs, len(cells))  # cannot have more workers than cells
    chunk_size = math.ceil(len(cells) / n_jobs)
    chunks = [cells[start:start + chunk_size] for start in range(0, len(cells), chunk_size)]

    rows = []
    with ProcessPoolExecutor(max_workers=n_jobs) as ex:
        futures = [ex.submit(worker, chunk) for chunk in chunks]
        for fut in tqdm(futures, desc=desc, leave=False):
            rows.extend(fut.result())
    return rows


def _summarize(df: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """
    Aggregate per-trial rows into one row per grid cell. Error statistics use
    only rows with status 'ok'; the other statuses are counted.
    """
    out = []
    for key_vals, g in df.groupby(list(keys), sort=True):
        if not isinstance(key_vals, tuple):
            key_vals = (key_vals,)
        row = dict(zip(keys, key_vals))
        ok_mask = g["status"] == STATUS_OK
        if "truth_status" in g.columns:
            ok_mask &= g["truth_status"] == STATUS_OK
        ok = g[ok_mask]
        row["n_trials"] = len(g)
        row["n_ok"] = len(ok)
        for status, count in g["status"].value_counts().items():
            if status != STATUS_OK:
                row[f"n_{status}"] = int(count)
        row["truth"] = float(g["truth"].iloc[0])
        if len(ok) > 0:
            _, mae, _ = compute_errors(ok["estimate"], ok["truth"])
            row["mean_estimate"] = float(ok["estimate"].mean())
            row["mean_abs_error"] = mae
            row["rmse"] = compute_rmse(ok["estimate"], ok["truth"])
            row["mean_relative_error"] = float(np.nanmean(compute_relative_error(ok["estimate"], ok["truth"])))
            row["runtime_estimator"] = float(ok["runtime_estimator"].mean())
            row["runtime_direct"] = float(ok["runtime_direct"].mean())
            if "variance" in ok.columns:
                row["mean_variance"] = float(ok["variance"].mean())
        else:
            for col in ("mean_estimate", "mean_abs_error", "rmse", "mean_relative_error",
                        "runtime_estimator", "runtime_direct"):
                row[col] = np.nan
        out.append(row)
    summary = pd.DataFrame(out)
    status_cols = sorted(c for c in summary.columns if c.startswith("n_") and c not in ("n_trials", "n_ok"))
    if status_cols:
        summary[status_cols] = summary[status_cols].fillna(0).astype(int)
    return summary


def _add_error_columns(df: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """Per-trial abs_error and the per-element rmse term, computed within each grid cell."""
    df = df.copy()
    df["abs_error"] = np.nan
    df["rmse_term"] = np.nan
    for _, g in df.groupby(list(keys), sort=False):
        abs_err, _, rmse_term = compute_errors(g["estimate"], g["truth"])
        df.loc[g.index, "abs_error"] = abs_err
        df.loc[g.index, "rmse_term"] = rmse_term
    return df


# ------------------------------------------------------------
# Trace estimator sweep over (n, k)
# ------------------------------------------------------------

def _worker_trace_cells(cells: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Worker for run_trace_simulation: evaluate a chunk of (n, k, trial) cells.
    The PSD matrix of each n is rebuilt from its seed and cached within the chunk.
    """
    step = StepTimer()
    matrices: Dict[int, np.ndarray] = {}
    rows = []

    for cell in cells:
        n, k = cell["n"], cell["k"]
        if n not in matrices:
            matrices[n] = generate_psd_matrix(n, seed=cell["matrix_seed"])
        A = matrices[n]

        row = {"n": n, "k": k, "trial": cell["trial"]}
        with step.section("direct"):
            truth = true_trace(A)
        nonzero = truth != 0.0
        try:
            with step.section("estimator"):
                estimate, variance = estimate_trace(A, k, seed=cell["seed"])
            status = classify_estimate(estimate, expect_nonzero=nonzero)
        except ValueError:
            estimate, variance, status = np.nan, np.nan, STATUS_INVALID
        runtimes = step.pop_runtimes(("estimator", "direct"))

        row.update({
            "estimate": estimate,
            "variance": variance,
            "truth": truth,
            **runtimes,
            "status": status,
        })
        rows.append(row)
    return rows


def run_trace_simulation(
    n_list: List[int],
    k_list: List[int],
    n_trials: int,
    master_seed: int = MASTER_SEED,
    n_jobs: int = 1,
    out_dir: Optional[Path] = None,
) -> pd.DataFrame:
    """
    Sweep the stochastic trace estimator over matrix sizes and sample counts.

    Parameters
    ----------
    n_list : List[int]
        Matrix dimensions n. For each n one PSD matrix A = G G^T / n is drawn.
    k_list : List[int]
        Numbers of test vectors k passed to `estimate_trace`.
    n_trials : int
        Independent repetitions per (n, k) cell.
    master_seed : int, default=725
        Master seed. All matrix and per-trial seeds are drawn from
        default_rng(master_seed) before any work starts, so results do not
        depend on `n_jobs`.
    n_jobs : int, default=1
        1 runs serially; larger values split the cells over a process pool.
    out_dir : Path, optional
        Output directory, default results/tables.

    Outputs (files)
    ---------------
      - trace_sweep.csv   : one row per (n, k, trial)
      - trace_summary.csv : one row per (n, k)

    Returns
    -------
    pd.DataFrame
        The per-trial table (also written to trace_sweep.csv).
    """
    tables_dir = _tables_dir(out_dir)
    master_rng = np.random.default_rng(master_seed)

    cells = []
    for n in n_list:
        matrix_seed = int(master_rng.integers(0, SEED_HIGH))
        for k in k_list:
            for trial in range(n_trials):
                cells.append({
                    "n": n,
                    "k": k,
                    "trial": trial,
                    "matrix_seed": matrix_seed,
                    "seed": int(master_rng.integers(0, SEED_HIGH)),
                })

    rows = _run_cells(_worker_trace_cells, cells, n_jobs, desc="trace: (n, k) sweep")
    df = pd.DataFrame(rows).sort_values(["n", "k", "trial"]).reset_index(drop=True)
    df = _add_error_columns(df, ["n", "k"])
    summary = _summarize(df, ["n", "k"])

    df.to_csv(tables_dir / "trace_sweep.csv", index=False)
    summary.to_csv(tables_dir / "trace_summary.csv", index=False)
    print(f"✅ Trace simulation complete. Saved in {tables_dir}")
    return df


# ------------------------------------------------------------
# Schatten 2p-norm estimator sweep over (p, k)
# ------------------------------------------------------------

def _build_schatten_matrix(m: int, n: int, matrix_seed: int, decay: Optional[float]) -> np.ndarray:
    if decay is None:
        return generate_rectangular_matrix(m, n, seed=matrix_seed)
    r = min(m, n)
    return generate_spectrum_matrix(m, n, decay ** np.arange(r, dtype=float), seed=matrix_seed)


def _worker_schatten_cells(cells: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Worker for run_schatten_simulation: evaluate a chunk of (p, k, trial) cells."""
    step = StepTimer()
    B = None
    rows = []

    for cell in cells:
        if B is None:
            B = _build_schatten_matrix(cell["m"], cell["n"], cell["matrix_seed"], cell["decay"])
        p, k = cell["p"], cell["k"]

        row = {"p": p, "k": k, "trial": cell["trial"]}
        with step.section("direct"):
            truth = true_schatten_norm(B, p)
        nonzero = bool(np.any(B != 0.0))
        try:
            with step.section("estimator"):
                estimate = estimate_schatten_norm(B, p, k, seed=cell["seed"])
            status = classify_estimate(estimate, expect_nonzero=nonzero)
        except ValueError:
            estimate, status = np.nan, STATUS_INVALID
        runtimes = step.pop_runtimes(("estimator", "direct"))

        row.update({
            "estimate": estimate,
            "truth": truth,
            "truth_status": classify_estimate(truth, expect_nonzero=nonzero),
            **runtimes,
            "status": status,
        })
        rows.append(row)
    return rows


def run_schatten_simulation(
    p_list: List[int],
    k_list: List[int],
    m: int,
    n: int,
    n_trials: int,
    decay: Optional[float] = None,
    master_seed: int = MASTER_SEED,
    n_jobs: int = 1,
    out_dir: Optional[Path] = None,
) -> pd.DataFrame:
    """
    Sweep the Schatten 2p-norm estimator over powers p and sample counts k
    for one fixed (m, n) matrix B.

    Parameters
    ----------
    p_list, k_list : List[int]
        Grid of powers and sample counts. Cells with k <= p are kept in the
        table with status 'invalid'.
    m, n : int
        Shape of B.
    n_trials : int
        Independent repetitions per (p, k) cell.
    decay : float, optional
        If given, B has singular values decay**i (i = 0..min(m,n)-1);
        otherwise B is Gaussian with entries N(0, 1/n).
    master_seed, n_jobs, out_dir
        As in `run_trace_simulation`.

    Outputs (files)
    ---------------
      - schatten_sweep.csv   : one row per (p, k, trial)
      - schatten_summary.csv : one row per (p, k)

    Returns
    -------
    pd.DataFrame
        The per-trial table.
    """
    tables_dir = _tables_dir(out_dir)
    master_rng = np.random.default_rng(master_seed)
    matrix_seed = int(master_rng.integers(0, SEED_HIGH))

    cells = []
    for p in p_list:
        for k in k_list:
            for trial in range(n_trials):
                cells.append({
                    "p": p,
                    "k": k,
                    "trial": trial,
                    "m": m,
                    "n": n,
                    "decay": decay,
                    "matrix_seed": matrix_seed,
                    "seed": int(master_rng.integers(0, SEED_HIGH)),
                })

    rows = _run_cells(_worker_schatten_cells, cells, n_jobs, desc="schatten: (p, k) sweep")
    df = pd.DataFrame(rows).sort_values(["p", "k", "trial"]).reset_index(drop=True)
    df = _add_error_columns(df, ["p", "k"])
    summary = _summarize(df, ["p", "k"])

    df.to_csv(tables_dir / "schatten_sweep.csv", index=False)
    summary.to_csv(tables_dir / "schatten_summary.csv", index=False)
    print(f"✅ Schatten simulation complete. Saved in {tables_dir}")
    return df


# ------------------------------------------------------------
# Optimizer comparison on least squares
# ------------------------------------------------------------

def run_optimization_simulation(
    n_samples: int,
    dim: int,
    noise: float = 0.1,
    gamma: float = 0.1,
    n_iter: int = 200,
    sgd_gamma0: float = 0.05,
    sgd_decay: float = 0.01,
    sgd_batch: int = 10,
    sgd_growth: float = 1.0,
    newton_eps: float = 1e-4,
    newton_beta: float = 0.5,
    newton_max_iter: int = 1000,
    master_seed: int = MASTER_SEED,
    out_dir: Optional[Path] = None,
) -> pd.DataFrame:
    """
    Minimize f(x) = ||A x - b||^2 / (2N) with Newton-Raphson, gradient descent and
    SGD (uniform and row-norm importance sampling), all on numerical derivatives,
    and compare against the closed-form least-squares solution.

    Outputs (files)
    ---------------
      - optimization_summary.csv : one row per method
            (status, iterations, f(x) - f*, ||x - x*||, runtime)
      - optimization_history.csv : long format (method, iteration, gap = f(x_t) - f*)

    Returns
    -------
    pd.DataFrame
        The summary table.
    """
    tables_dir = _tables_dir(out_dir)
    master_rng = np.random.default_rng(master_seed)
    data_seed = int(master_rng.integers(0, SEED_HIGH))
    sgd_seed = int(master_rng.integers(0, SEED_HIGH))

    A, b, _ = generate_least_squares(n_samples, dim, noise=noise, seed=data_seed)
    f = least_squares_objective(A, b)
    grads = least_squares_component_gradients(A, b)
    x_star = np.linalg.lstsq(A, b, rcond=None)[0]
    f_star = f(x_star)
    x0 = np.zeros(dim)

    step_sizes = make_step_sizes(sgd_gamma0, n_iter, decay=sgd_decay)
    batch_sizes = make_batch_sizes(sgd_batch, n_iter, growth=sgd_growth, cap=n_samples)

    runs = {
        "newton": lambda: newton_raphson(f, x0, eps=newton_eps, beta=newton_beta, max_iter=newton_max_iter),
        "gd": lambda: gradient_descent(f, x0, gamma=gamma, n_iter=n_iter),
        "sgd_uniform": lambda: stochastic_gradient_descent(
            grads, x0, n_samples, batch_sizes, step_sizes, seed=sgd_seed, objective=f,
        ),
        "sgd_importance": lambda: stochastic_gradient_descent(
            grads, x0, n_samples, batch_sizes, step_sizes,
            probs=row_norm_probabilities(A), seed=sgd_seed, objective=f,
        ),
    }

    summary_rows, history_rows = [], []
    for method, run in tqdm(runs.items(), desc="optimization: methods", leave=False):
        t0 = time.perf_counter()
        res = run()
        runtime = time.perf_counter() - t0
        summary_rows.append({
            "method": method,
            "status": res.status,
            "n_iter": res.n_iter,
            "fx": res.fx,
            "gap": res.fx - f_star,
            "dist_to_opt": float(np.linalg.norm(res.x - x_star)),
            "grad_norm": res.grad_norm,
            "runtime": runtime,
        })
        for it, fx in enumerate(res.history):
            history_rows.append({"method": method, "iteration": it, "gap": fx - f_star})

    summary = pd.DataFrame(summary_rows)
    history = pd.DataFrame(history_rows)
    summary.to_csv(tables_dir / "optimization_summary.csv", index=False)
    history.to_csv(tables_dir / "optimization_history.csv", index=False)
    print(f"✅ Optimization simulation complete. Saved in {tables_dir}")
    return summary


# ------------------------------------------------------------------
# Run simulation
# ------------------------------------------------------------------
if __name__ == "__main__":
    with timer("run_trace_simulation"):
        run_trace_simulation(
            n_list=TRACE_N_LIST,
            k_list=TRACE_K_LIST,
            n_trials=N_TRIALS,
            master_seed=MASTER_SEED,
            n_jobs=N_JOBS_TRACE,
        )

    with timer("run_schatten_simulation"):
        m, n = SCHATTEN_SHAPE
        run_schatten_simulation(
            p_list=SCHATTEN_P_LIST,
            k_list=SCHATTEN_K_LIST,
            m=m,
            n=n,
            n_trials=N_TRIALS,
            master_seed=MASTER_SEED,
            n_jobs=N_JOBS_SCHATTEN,
        )

    with timer("run_optimization_simulation"):
        run_optimization_simulation(
            n_samples=500,
            dim=5,
            noise=0.1,
            master_seed=MASTER_SEED,
        )
