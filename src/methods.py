# methods.py
# - estimate_trace(A, k, seed)
# - estimate_schatten_norm(B, p, k, seed)
# - matrix_power(M, exponent)
# - true_trace(A), true_schatten_norm(B, p)
# - classify_estimate(value, expect_nonzero)

import math
from numbers import Integral
from typing import Tuple
import numpy as np

from src.dgps import SeedLike, sample_gaussian_matrix, sample_gaussian_vector

# Status labels shared by the estimators and the sweep drivers
STATUS_OK = "ok"
STATUS_INVALID = "invalid"
STATUS_OVERFLOW = "overflow"
STATUS_UNDERFLOW = "underflow"
STATUS_NAN = "nan"


def _check_positive_int(name: str, value) -> int:
    """Reject bools, floats and non-positive values; return value as a plain int."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValueError(f"`{name}` must be a positive integer; got {value!r}")
    if value < 1:
        raise ValueError(f"`{name}` must be a positive integer; got {value}")
    return int(value)


def estimate_trace(A: np.ndarray, k: int, seed: SeedLike = None) -> Tuple[float, float]:
    """
    Stochastic trace estimate of a symmetric PSD matrix from k random quadratic forms.

    Parameters
    ----------
    A : (n, n) array
        Symmetric positive semi-definite matrix.
    k : int
        Number of test vectors (k >= 1).
    seed : int, Generator or None
        Randomness source. Same seed and same k give bit-identical output.

    Returns
    -------
    estimate : float
        Mean of w_i^T A w_i over k isotropic test vectors w_i ~ N(0, I_n).
    variance : float
        Unbiased sample variance (ddof=1) of the k quadratic forms.
        NaN when k == 1, where it is undefined.
    """
    A = np.asarray(A, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"`A` must be a square 2D array; got shape {A.shape}.")
    k = _check_positive_int("k", k)

    n = A.shape[0]
    rng = np.random.default_rng(seed)

    quad_forms = np.empty(k)
    for i in range(k):
        w = sample_gaussian_vector(n, seed=rng)   # fresh draw per sample
        quad_forms[i] = w @ (A @ w)               # O(n^2) matvec + O(n) dot

    estimate = float(quad_forms.mean())
    variance = float(quad_forms.var(ddof=1)) if k > 1 else float("nan")
    return estimate, variance


def matrix_power(M: np.ndarray, exponent: int) -> np.ndarray:
    """
    Integer matrix power by repeated squaring. exponent == 0 gives the identity.
    """
    M = np.asarray(M, dtype=float)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"`M` must be a square 2D array; got shape {M.shape}.")
    if isinstance(exponent, bool) or not isinstance(exponent, Integral) or exponent < 0:
        raise ValueError(f"`exponent` must be a non-negative integer; got {exponent!r}")

    result = np.eye(M.shape[0])
    base = M.copy()
    e = int(exponent)
    while e > 0:
        if e & 1:
            result = result @ base
        e >>= 1
        if e:
            base = base @ base
    return result


def estimate_schatten_norm(B: np.ndarray, p: int, k: int, seed: SeedLike = None) -> float:
    """
    Unbiased estimate of ||B||_{S_2p}^{2p} = sum_i sigma_i(B)^{2p}.

    Uses k Gaussian sketches O (n, k), the Gram matrix X = (B O)^T (B O) and its
    strict upper triangle T, which sums the cycles over increasing index tuples:

        estimate = trace(T^{p-1} X) / C(k, p)

    Overflow, underflow and NaN are not raised; pass the value through
    `classify_estimate` to tell a degenerate result from an extreme one.
    """
    B = np.asarray(B, dtype=float)
    if B.ndim != 2:
        raise ValueError(f"`B` must be a 2D array; got {B.ndim}D.")
    p = _check_positive_int("p", p)
    k = _check_positive_int("k", k)
    if k <= p:
        raise ValueError(f"Need k > p for C(k, p) to be non-degenerate; got k={k}, p={p}.")

    n = B.shape[1]
    O = sample_gaussian_matrix(n, k, seed=seed)   # (n, k)

    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        Y = B @ O                                 # (m, k)
        X = Y.T @ Y                               # (k, k), symmetric
        T = np.triu(X, k=1)                       # strict upper triangle
        T_pow = matrix_power(T, p - 1)
        estimate = np.trace(T_pow @ X) / math.comb(k, p)
    return float(estimate)


# --- ground truths ---

def true_trace(A: np.ndarray) -> float:
    """Exact trace by summing the diagonal, O(n)."""
    return float(np.trace(np.asarray(A, dtype=float)))


def true_schatten_norm(B: np.ndarray, p: int) -> float:
    """Exact sum_i sigma_i^{2p} via the singular values of B."""
    p = _check_positive_int("p", p)
    s = np.linalg.svd(np.asarray(B, dtype=float), compute_uv=False)
    with np.errstate(over="ignore", under="ignore"):
        return float(np.sum(s ** (2 * p)))


def classify_estimate(value: float, expect_nonzero: bool = False) -> str:
    """
    Label a numeric result as 'ok', 'overflow', 'underflow' or 'nan'.

    A result is 'underflow' when it is sub-normal, or exactly zero although
    `expect_nonzero` says the exact quantity is strictly non-zero (e.g. the
    Schatten norm of a non-zero matrix).
    """
    value = float(value)
    if math.isnan(value):
        return STATUS_NAN
    if math.isinf(value):
        return STATUS_OVERFLOW
    if 0.0 < abs(value) < np.finfo(float).tiny:
        return STATUS_UNDERFLOW
    if value == 0.0 and expect_nonzero:
        return STATUS_UNDERFLOW
    return STATUS_OK
