# plot.py
# - Trace estimator: error vs k per n, runtime estimator vs direct over n
# - Schatten estimator: relative error vs k per p, degenerate-result counts
# - Optimizers: objective gap f(x_t) - f* over iterations

from pathlib import Path
from typing import Optional
import numpy as np
import pandas as pd
import matplotlib as mpl
import matplotlib.pyplot as plt

from config import RESULTS_DIR


# ---------------------- aesthetics ----------------------
def _set_pub_style():
    """Single-panel log-scale figures: light major+minor grid, small markers, no top/right spines."""
    mpl.rcParams.update({
        "figure.figsize": (6.2, 3.9),
        "figure.dpi": 150,
        "savefig.dpi": 300,
        "savefig.bbox": "tight",
        "font.size": 10,
        "axes.labelsize": 11,
        "legend.fontsize": 9,
        "lines.markersize": 4,
        "axes.grid": True,
        "axes.grid.which": "both",
        "grid.linestyle": ":",
        "grid.alpha": 0.35,
        "axes.spines.top": False,
        "axes.spines.right": False,
        "figure.constrained_layout.use": True,
    })


def _ensure_dirs(base: Path):
    """Ensure expected folders exist."""
    (base / "tables").mkdir(exist_ok=True, parents=True)
    (base / "figures").mkdir(exist_ok=True, parents=True)


def _save(fig: mpl.figure.Figure, figures_dir: Path, stem: str):
    """Save figure as PDF and SVG into the figures directory."""
    out_pdf = figures_dir / f"{stem}.pdf"
    out_svg = figures_dir / f"{stem}.svg"
    fig.savefig(out_pdf)
    fig.savefig(out_svg)
    print(f"Saved: {out_pdf}\n       {out_svg}")


def _load_table(path: Path, required) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing table: {path}")
    df = pd.read_csv(path)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Columns {missing} not found in {path}")
    return df


# ---------------------- trace ----------------------
def make_trace_plots(base: Optional[Path] = None):
    """
    Inputs:
      results/tables/trace_summary.csv
    Outputs:
      results/figures/trace_error.(pdf|svg)    relative error vs k, one curve per n
      results/figures/trace_runtime.(pdf|svg)  runtime of estimator (per k) vs direct trace over n
    """
    base = Path(base) if base is not None else Path(RESULTS_DIR)
    figures_dir = base / "figures"
    df = _load_table(base / "tables" / "trace_summary.csv",
                     ["n", "k", "mean_relative_error", "runtime_estimator", "runtime_direct"])

    # Error vs k (log-log); O(1/sqrt(k)) reference slope
    fig, ax = plt.subplots()
    for n, g in df.groupby("n"):
        g = g.sort_values("k")
        ax.plot(g["k"], g["mean_relative_error"], marker="o", linewidth=1.9, label=f"n={n}")
    k_vals = np.sort(df["k"].unique()).astype(float)
    if k_vals.size > 0 and np.isfinite(df["mean_relative_error"]).any():
        y0 = float(np.nanmax(df.loc[df["k"] == k_vals[0], "mean_relative_error"]))
        ax.plot(k_vals, y0 * np.sqrt(k_vals[0] / k_vals), color="k", linestyle=":",
                linewidth=1.4, label=r"$\propto k^{-1/2}$")
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel(r"Number of test vectors $k$ (log scale)")
    ax.set_ylabel("Mean relative error")
    ax.set_title("Trace estimator — relative error vs $k$")
    ax.legend(ncol=2, frameon=False)
    _save(fig, figures_dir, "trace_error")
    plt.close(fig)

    # Runtime vs n: one curve per k, plus the direct O(n) diagonal sum
    fig, ax = plt.subplots()
    for k, g in df.groupby("k"):
        g = g.sort_values("n")
        ax.plot(g["n"], g["runtime_estimator"], marker="o", linewidth=1.9, label=f"estimator, k={k}")
    direct = df.groupby("n", as_index=False)["runtime_direct"].mean().sort_values("n")
    ax.plot(direct["n"], direct["runtime_direct"], color="k", linestyle="--", marker="s",
            linewidth=1.6, label="direct trace")
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel(r"Dimension $n$ (log scale)")
    ax.set_ylabel("Runtime per call (s)")
    ax.set_title("Trace estimator — runtime vs $n$")
    ax.legend(ncol=2, frameon=False)
    _save(fig, figures_dir, "trace_runtime")
    plt.close(fig)


# ---------------------- schatten ----------------------
def make_schatten_plots(base: Optional[Path] = None):
    """
    Inputs:
      results/tables/schatten_summary.csv
    Outputs:
      results/figures/schatten_error.(pdf|svg)   relative error vs k, one curve per p
      results/figures/schatten_status.(pdf|svg)  non-'ok' results per p (stacked by status)
    """
    base = Path(base) if base is not None else Path(RESULTS_DIR)
    figures_dir = base / "figures"
    df = _load_table(base / "tables" / "schatten_summary.csv",
                     ["p", "k", "n_trials", "n_ok", "mean_relative_error"])

    fig, ax = plt.subplots()
    for p, g in df.groupby("p"):
        g = g[np.isfinite(g["mean_relative_error"])].sort_values("k")
        if g.empty:
            continue
        ax.plot(g["k"], g["mean_relative_error"], marker="o", linewidth=1.9, label=f"p={p}")
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel(r"Number of test vectors $k$ (log scale)")
    ax.set_ylabel("Mean relative error")
    ax.set_title(r"Schatten-$2p$ estimator — relative error vs $k$")
    ax.legend(ncol=2, frameon=False)
    _save(fig, figures_dir, "schatten_error")
    plt.close(fig)

    status_cols = [c for c in df.columns if c.startswith("n_") and c not in ("n_trials", "n_ok")]
    counts = df.groupby("p")[status_cols].sum() if status_cols else pd.DataFrame(index=sorted(df["p"].unique()))

    fig, ax = plt.subplots()
    bottom = np.zeros(len(counts))
    x = counts.index.to_numpy()
    for col in status_cols:
        y = counts[col].to_numpy(float)
        ax.bar(x, y, bottom=bottom, label=col[len("n_"):])
        bottom += y
    ax.set_xticks(x)
    ax.set_xlabel(r"Power $p$")
    ax.set_ylabel("Number of trials")
    ax.set_title("Schatten-$2p$ estimator — invalid / degenerate results")
    if status_cols:
        ax.legend(frameon=False)
    _save(fig, figures_dir, "schatten_status")
    plt.close(fig)


# ---------------------- optimization ----------------------
def make_optimization_plots(base: Optional[Path] = None):
    """
    Inputs:
      results/tables/optimization_history.csv
    Output:
      results/figures/optimization_gap.(pdf|svg)
    """
    base = Path(base) if base is not None else Path(RESULTS_DIR)
    figures_dir = base / "figures"
    df = _load_table(base / "tables" / "optimization_history.csv", ["method", "iteration", "gap"])

    fig, ax = plt.subplots()
    for method, g in df.groupby("method"):
        g = g.sort_values("iteration")
        # gaps can hit exactly 0 (or tiny negatives from rounding) at the optimum
        gap = np.maximum(g["gap"].to_numpy(float), np.finfo(float).eps)
        ax.plot(g["iteration"], gap, linewidth=1.6, label=method)
    ax.set_yscale("log")
    ax.set_xlabel("Iteration")
    ax.set_ylabel(r"$f(x_t) - f^\star$")
    ax.set_title("Least squares — optimizer convergence")
    ax.legend(frameon=False)
    _save(fig, figures_dir, "optimization_gap")
    plt.close(fig)


# ---------------------- main ----------------------
def main(base: Optional[Path] = None):
    base = Path(base) if base is not None else Path(RESULTS_DIR)
    _ensure_dirs(base)
    _set_pub_style()

    make_trace_plots(base)
    make_schatten_plots(base)
    make_optimization_plots(base)


if __name__ == "__main__":
    main()
