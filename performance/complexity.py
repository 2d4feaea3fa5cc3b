# complexity.py
#
# Estimate runtime complexity exponents via log-log regression
# using the summary tables written by src/simulation.py.
#
# Inputs:
#   results/tables/trace_summary.csv     (columns n, k, runtime_estimator, runtime_direct)
#   results/tables/schatten_summary.csv  (columns p, k, runtime_estimator, runtime_direct)
#
# For the trace sweep, for each k and each step we fit
#   log(time) = a + alpha * log(n)
# (expected alpha ≈ 2 for the estimator, ≈ 1 for the direct diagonal sum).
# For the Schatten sweep, for each p we fit log(time) against log(k).
#
# Output:
#   results/tables/complexity.csv
#   with columns: experiment, variable, fixed, step, alpha, r2

from pathlib import Path
from typing import Dict, List, Optional
import numpy as np
import pandas as pd

from config import RESULTS_DIR


# ---------------------- configuration ----------------------

# Columns in the summary CSVs to use as "steps"
STEP_COLUMNS = [
    "runtime_estimator",
    "runtime_direct",
]

# experiment -> (table stem, size column on the x-axis, column held fixed)
EXPERIMENTS = {
    "trace": ("trace_summary", "n", "k"),
    "schatten": ("schatten_summary", "k", "p"),
}


# ---------------------- helpers ----------------------
def _fit_log_log(x: np.ndarray, t: np.ndarray) -> tuple[float, float]:
    """
    Growth exponent of runtime in a sweep variable: slope of log t on log x.

    Cells whose estimator call was invalid carry NaN runtimes, and timer
    resolution can give 0 s for tiny inputs; both are dropped before the fit.
    Returns (alpha, r2), r2 measured on the log scale. ValueError if fewer
    than two distinct sizes remain.
    """
    x = np.asarray(x, dtype=float)
    t = np.asarray(t, dtype=float)
    keep = np.isfinite(x) & np.isfinite(t) & (x > 0) & (t > 0)
    if np.unique(x[keep]).size < 2:
        raise ValueError("Need at least two distinct positive sizes with positive runtimes.")

    log_x, log_t = np.log(x[keep]), np.log(t[keep])
    alpha, intercept = np.polyfit(log_x, log_t, deg=1)

    resid = log_t - (intercept + alpha * log_x)
    spread = np.sum((log_t - log_t.mean()) ** 2)
    r2 = 1.0 - np.sum(resid**2) / spread if spread > 0 else 1.0
    return float(alpha), float(r2)


def estimate_complexity(tables_dir: Path) -> pd.DataFrame:
    """Fit a growth exponent for every (experiment, fixed value, step) that has a table."""
    rows: List[Dict[str, object]] = []

    for experiment, (stem, size_col, fixed_col) in EXPERIMENTS.items():
        csv_path = tables_dir / f"{stem}.csv"
        if not csv_path.exists():
            print(f"Skipping {experiment}: {csv_path} not found")
            continue

        df = pd.read_csv(csv_path)
        for col in [size_col, fixed_col] + STEP_COLUMNS:
            if col not in df.columns:
                raise ValueError(f"Column '{col}' not found in {csv_path}")

        for fixed, g in df.groupby(fixed_col):
            for step in STEP_COLUMNS:
                try:
                    alpha, r2 = _fit_log_log(g[size_col].to_numpy(), g[step].to_numpy())
                except ValueError:
                    # fewer than two usable sizes for this slice
                    continue
                rows.append(
                    {
                        "experiment": experiment,
                        "variable": size_col,
                        "fixed": f"{fixed_col}={fixed}",
                        "step": step,
                        "alpha": alpha,
                        "r2": r2,
                    }
                )

    return pd.DataFrame(rows, columns=["experiment", "variable", "fixed", "step", "alpha", "r2"])


# ---------------------- main logic ----------------------
def main(tables_dir: Optional[Path] = None):
    tables_dir = Path(tables_dir) if tables_dir is not None else Path(RESULTS_DIR) / "tables"
    if not tables_dir.exists():
        raise FileNotFoundError(f"Directory not found: {tables_dir}")

    out_df = estimate_complexity(tables_dir)
    out_path = tables_dir / "complexity.csv"
    out_df.to_csv(out_path, index=False)

    print(f"Wrote complexity estimates to {out_path}")
    print(out_df)
    return out_df


if __name__ == "__main__":
    main()
