# optimizers.py
# - numerical_gradient(f, x, h), numerical_hessian(f, x, h)
# - least_squares_objective(A, b), least_squares_component_gradients(A, b)
# - row_norm_probabilities(A), make_step_sizes(...), make_batch_sizes(...)
# - newton_raphson(f, x0, ...)
# - gradient_descent(f, x0, gamma, n_iter)
# - stochastic_gradient_descent(component_grads, x0, n_samples, batch_sizes, step_sizes, ...)

from dataclasses import dataclass, field
from numbers import Integral
from typing import Callable, List, Optional, Sequence
import numpy as np

from src.dgps import SeedLike

Objective = Callable[[np.ndarray], float]
ComponentGradients = Callable[[np.ndarray, np.ndarray], np.ndarray]

# Outcome labels for OptimizationResult.status
STATUS_CONVERGED = "converged"
STATUS_MAX_ITER = "max_iter"
STATUS_SINGULAR = "singular"
STATUS_COMPLETED = "completed"
STATUS_DIVERGED = "diverged"


@dataclass
class OptimizationResult:
    """Final iterate of an optimizer run together with how the run ended."""
    x: np.ndarray
    fx: float
    grad_norm: float
    n_iter: int
    status: str
    history: List[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status == STATUS_CONVERGED


# -------- numerical derivatives --------

def numerical_gradient(f: Objective, x: np.ndarray, h: float = 1e-5) -> np.ndarray:
    """
    Central-difference gradient: (f(x + h_i e_i) - f(x - h_i e_i)) / 2h_i.

    The step is relative for large coordinates, h_i = h * max(1, |x_i|), so the
    difference does not vanish in floating point once an iterate has grown large.
    """
    x = np.asarray(x, dtype=float)
    g = np.zeros_like(x)
    for i in range(x.shape[0]):
        h_i = h * max(1.0, abs(x[i]))
        e = np.zeros_like(x)
        e[i] = h_i
        g[i] = (f(x + e) - f(x - e)) / (2.0 * h_i)
    return g


def numerical_hessian(f: Objective, x: np.ndarray, h: float = 1e-4) -> np.ndarray:
    """
    Central-difference Hessian:
        H_ij = [f(x+h_i+h_j) - f(x+h_i-h_j) - f(x-h_i+h_j) + f(x-h_i-h_j)] / 4h^2
    symmetrized at the end.
    """
    x = np.asarray(x, dtype=float)
    d = x.shape[0]
    H = np.zeros((d, d))
    I = np.eye(d) * h
    for i in range(d):
        for j in range(i, d):
            H[i, j] = (
                f(x + I[i] + I[j]) - f(x + I[i] - I[j])
                - f(x - I[i] + I[j]) + f(x - I[i] - I[j])
            ) / (4.0 * h * h)
            H[j, i] = H[i, j]
    return H


# -------- least-squares objective --------

def least_squares_objective(A: np.ndarray, b: np.ndarray) -> Objective:
    """f(x) = ||A x - b||^2 / (2N), the mean of f_i(x) = (a_i^T x - b_i)^2 / 2."""
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    N = A.shape[0]

    def f(x: np.ndarray) -> float:
        r = A @ x - b
        return float(r @ r) / (2.0 * N)

    return f


def least_squares_component_gradients(A: np.ndarray, b: np.ndarray) -> ComponentGradients:
    """Rows a_i (a_i^T x - b_i) for the requested indices, shape (len(idx), d)."""
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)

    def grads(x: np.ndarray, idx: np.ndarray) -> np.ndarray:
        A_idx = A[idx]
        r = A_idx @ x - b[idx]
        return A_idx * r[:, None]

    return grads


# -------- schedules / sampling distributions --------

def row_norm_probabilities(A: np.ndarray) -> np.ndarray:
    """q_i = ||a_i||^2 / ||A||_F^2, the usual importance-sampling distribution."""
    A = np.asarray(A, dtype=float)
    w = np.sum(A**2, axis=1)
    total = w.sum()
    if total <= 0:
        raise ValueError("`A` has no non-zero rows.")
    return w / total


def make_step_sizes(gamma0: float, n_iter: int, decay: float = 0.0) -> np.ndarray:
    """gamma_t = gamma0 / (1 + decay * t), t = 0..n_iter-1."""
    if gamma0 <= 0:
        raise ValueError(f"gamma0 must be positive; got {gamma0}")
    if decay < 0:
        raise ValueError(f"decay must be non-negative; got {decay}")
    t = np.arange(n_iter, dtype=float)
    return gamma0 / (1.0 + decay * t)


def make_batch_sizes(
    b0: int,
    n_iter: int,
    growth: float = 1.0,
    cap: Optional[int] = None,
) -> np.ndarray:
    """b_t = min(cap, ceil(b0 * growth^t)), integer batch sizes."""
    if isinstance(b0, bool) or not isinstance(b0, Integral) or b0 < 1:
        raise ValueError(f"b0 must be a positive integer; got {b0!r}")
    if cap is not None and (isinstance(cap, bool) or not isinstance(cap, Integral) or cap < 1):
        raise ValueError(f"cap must be a positive integer; got {cap!r}")
    if growth < 1.0:
        raise ValueError(f"growth must be >= 1; got {growth}")
    sizes = np.ceil(b0 * growth ** np.arange(n_iter, dtype=float))
    if cap is not None:
        sizes = np.minimum(sizes, cap)
    return sizes.astype(np.int64)


# -------- Newton-Raphson --------

def newton_raphson(
    f: Objective,
    x0: np.ndarray,
    eps: float = 1e-4,
    alpha: float = 0.25,
    beta: float = 0.5,
    max_iter: int = 1000,
    max_backtrack: int = 50,
    h_grad: float = 1e-5,
    h_hess: float = 1e-4,
) -> OptimizationResult:
    """
    Damped Newton method with Armijo backtracking on numerical derivatives.

    Parameters
    ----------
    f : callable
        Objective R^d -> R.
    x0 : (d,) array
        Starting point.
    eps : float
        Stop once ||grad f(x)|| < eps.
    alpha : float in (0, 0.5]
        Armijo sufficient-decrease constant.
    beta : float in (0, 1)
        Backtracking factor, t <- beta * t.
    max_iter : int
        Cap on Newton steps; reaching it gives status 'max_iter'.
    max_backtrack : int
        Cap on step-size reductions within one Newton step.

    Returns
    -------
    OptimizationResult
        status is 'converged', 'max_iter' (best point so far returned) or
        'singular' (Hessian not invertible at the current iterate).
    """
    if not (0.0 < beta < 1.0):
        raise ValueError(f"beta must lie in (0, 1); got {beta}")
    if not (0.0 < alpha <= 0.5):
        raise ValueError(f"alpha must lie in (0, 0.5]; got {alpha}")
    if eps <= 0:
        raise ValueError(f"eps must be positive; got {eps}")
    if isinstance(max_iter, bool) or not isinstance(max_iter, Integral) or max_iter < 1:
        raise ValueError(f"max_iter must be a positive integer; got {max_iter!r}")

    x = np.asarray(x0, dtype=float).copy()
    fx = f(x)
    history = [fx]
    best_x, best_f = x.copy(), fx
    cond_limit = 1.0 / np.finfo(float).eps

    for it in range(max_iter):
        g = numerical_gradient(f, x, h=h_grad)
        g_norm = float(np.linalg.norm(g))
        if g_norm < eps:
            return OptimizationResult(x, fx, g_norm, it, STATUS_CONVERGED, history)

        H = numerical_hessian(f, x, h=h_hess)
        s = np.linalg.svd(H, compute_uv=False) if np.all(np.isfinite(H)) else None
        if s is None or s[-1] == 0.0 or s[0] / s[-1] > cond_limit:
            return OptimizationResult(x, fx, g_norm, it, STATUS_SINGULAR, history)
        try:
            dx = np.linalg.solve(H, -g)
        except np.linalg.LinAlgError:
            return OptimizationResult(x, fx, g_norm, it, STATUS_SINGULAR, history)

        slope = float(g @ dx)
        if slope >= 0:          # not a descent direction (indefinite H) => steepest descent
            dx = -g
            slope = -g_norm**2

        t = 1.0
        for _ in range(max_backtrack):
            if f(x + t * dx) <= fx + alpha * t * slope:
                break
            t *= beta

        x = x + t * dx
        fx = f(x)
        history.append(fx)
        if fx < best_f:
            best_x, best_f = x.copy(), fx

    g_norm = float(np.linalg.norm(numerical_gradient(f, best_x, h=h_grad)))
    if g_norm < eps:
        return OptimizationResult(best_x, best_f, g_norm, max_iter, STATUS_CONVERGED, history)
    return OptimizationResult(best_x, best_f, g_norm, max_iter, STATUS_MAX_ITER, history)


# -------- gradient descent --------

def gradient_descent(
    f: Objective,
    x0: np.ndarray,
    gamma: float = 0.1,
    n_iter: int = 100,
    h_grad: float = 1e-5,
) -> OptimizationResult:
    """Fixed-step gradient descent, x <- x - gamma * grad f(x), for n_iter steps."""
    if gamma <= 0:
        raise ValueError(f"gamma must be positive; got {gamma}")
    if isinstance(n_iter, bool) or not isinstance(n_iter, Integral) or n_iter < 1:
        raise ValueError(f"n_iter must be a positive integer; got {n_iter!r}")

    x = np.asarray(x0, dtype=float).copy()
    fx = f(x)
    history = [fx]
    for it in range(n_iter):
        g = numerical_gradient(f, x, h=h_grad)
        if not np.all(np.isfinite(g)):
            return OptimizationResult(x, fx, float("nan"), it, STATUS_DIVERGED, history)
        x = x - gamma * g
        fx = f(x)
        history.append(fx)
        if not np.isfinite(fx):
            return OptimizationResult(x, fx, float("nan"), it + 1, STATUS_DIVERGED, history)

    g_norm = float(np.linalg.norm(numerical_gradient(f, x, h=h_grad)))
    return OptimizationResult(x, fx, g_norm, n_iter, STATUS_COMPLETED, history)


# -------- stochastic gradient descent --------

def _check_sgd_inputs(
    n_samples: int,
    batch_sizes: np.ndarray,
    step_sizes: np.ndarray,
    probs: np.ndarray,
) -> None:
    if batch_sizes.ndim != 1 or step_sizes.ndim != 1:
        raise ValueError("`batch_sizes` and `step_sizes` must be one-dimensional.")
    if batch_sizes.shape[0] != step_sizes.shape[0]:
        raise ValueError(
            f"Need one batch size per step size; got {batch_sizes.shape[0]} vs {step_sizes.shape[0]}."
        )
    if batch_sizes.shape[0] == 0:
        raise ValueError("Need at least one iteration.")
    if not np.issubdtype(batch_sizes.dtype, np.integer):
        raise ValueError("`batch_sizes` must hold integers.")
    if np.any(batch_sizes < 1):
        raise ValueError("Every batch size must be a positive integer.")
    if np.any(batch_sizes > n_samples):
        raise ValueError(
            f"Batch size {int(batch_sizes.max())} exceeds the population size {n_samples} "
            "(sampling is without replacement)."
        )
    if np.any(~np.isfinite(step_sizes)) or np.any(step_sizes <= 0):
        raise ValueError("Every step size must be positive and finite.")
    if probs.shape != (n_samples,):
        raise ValueError(f"`probs` must have shape ({n_samples},); got {probs.shape}.")
    if np.any(probs < 0) or not np.isclose(probs.sum(), 1.0):
        raise ValueError("`probs` must be non-negative and sum to 1.")
    support = int(np.count_nonzero(probs))
    if np.any(batch_sizes > support):
        raise ValueError(
            f"Batch size {int(batch_sizes.max())} exceeds the {support} indices with positive probability."
        )


def stochastic_gradient_descent(
    component_grads: ComponentGradients,
    x0: np.ndarray,
    n_samples: int,
    batch_sizes: Sequence[int],
    step_sizes: Sequence[float],
    probs: Optional[np.ndarray] = None,
    seed: SeedLike = None,
    objective: Optional[Objective] = None,
) -> OptimizationResult:
    """
    Mini-batch SGD with non-uniform sampling without replacement.

    At iteration t, draw batch_sizes[t] distinct indices with probabilities `probs`,
    average their contributions

        g_hat = mean_{i in batch} g_i(x)

    and step x <- x - step_sizes[t] * g_hat. A full batch (b = N) therefore takes
    the exact gradient step whatever `probs` is. All inputs are validated before
    any sampling takes place.

    If `objective` is given, its value is recorded after every step in `history`
    and the final gradient norm is computed numerically from it.
    """
    if isinstance(n_samples, bool) or not isinstance(n_samples, Integral) or n_samples < 1:
        raise ValueError(f"n_samples must be a positive integer; got {n_samples!r}")
    batch_sizes = np.asarray(batch_sizes)
    step_sizes = np.asarray(step_sizes, dtype=float)
    if probs is None:
        probs = np.full(n_samples, 1.0 / n_samples)
    probs = np.asarray(probs, dtype=float)
    _check_sgd_inputs(n_samples, batch_sizes, step_sizes, probs)

    rng = np.random.default_rng(seed)
    x = np.asarray(x0, dtype=float).copy()
    history: List[float] = [] if objective is None else [objective(x)]

    for t, (b, gamma) in enumerate(zip(batch_sizes, step_sizes)):
        idx = rng.choice(n_samples, size=int(b), replace=False, p=probs)
        g_hat = component_grads(x, idx).mean(axis=0)   # (b, d) -> (d,)
        if not np.all(np.isfinite(g_hat)):
            fx = history[-1] if history else float("nan")
            return OptimizationResult(x, fx, float("nan"), t, STATUS_DIVERGED, history)
        x = x - gamma * g_hat
        if objective is not None:
            fx = objective(x)
            history.append(fx)
            if not np.isfinite(fx):
                return OptimizationResult(x, fx, float("nan"), t + 1, STATUS_DIVERGED, history)

    n_iter = int(batch_sizes.shape[0])
    if objective is None:
        return OptimizationResult(x, float("nan"), float("nan"), n_iter, STATUS_COMPLETED, history)
    g_norm = float(np.linalg.norm(numerical_gradient(objective, x)))
    return OptimizationResult(x, history[-1], g_norm, n_iter, STATUS_COMPLETED, history)
