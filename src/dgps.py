# dgps.py
# - sample_gaussian_vector(n, seed)
# - sample_gaussian_matrix(n, k, seed)
# - generate_psd_matrix(n, seed)
# - generate_diagonal_matrix(diag)
# - generate_rank_one_matrix(u, v)
# - generate_rectangular_matrix(m, n, seed)
# - generate_spectrum_matrix(m, n, singular_values, seed)
# - generate_least_squares(n_samples, dim, noise, seed)

from typing import Optional, Sequence, Tuple, Union
import numpy as np

SeedLike = Optional[Union[int, np.random.Generator]]


# -------- Isotropic test vectors / matrices --------

def sample_gaussian_vector(n: int, seed: SeedLike = None) -> np.ndarray:
    """
    Draw an isotropic test vector w ~ N(0, I_n), shape (n,).
    `seed` may be an int, None, or a Generator that is advanced in place.
    """
    if n < 1:
        raise ValueError(f"n must be a positive integer; got {n}")
    rng = np.random.default_rng(seed)
    return rng.standard_normal(n)


def sample_gaussian_matrix(n: int, k: int, seed: SeedLike = None) -> np.ndarray:
    """
    Draw an (n, k) test matrix with i.i.d. N(0, 1) entries (isotropic columns).
    """
    if n < 1 or k < 1:
        raise ValueError(f"n and k must be positive integers; got n={n}, k={k}")
    rng = np.random.default_rng(seed)
    return rng.standard_normal((n, k))


# -------- Matrices for the trace estimator --------

def generate_psd_matrix(n: int, seed: SeedLike = 725) -> np.ndarray:
    """
    A = G G^T / n with G ~ N(0,1)^{n x n}: symmetric positive semi-definite, trace ≈ n.
    """
    rng = np.random.default_rng(seed)
    G = rng.standard_normal((n, n))
    A = (G @ G.T) / float(n)
    # exact symmetry (G G^T can differ from its transpose in the last bit)
    return 0.5 * (A + A.T)


def generate_diagonal_matrix(diag: Sequence[float]) -> np.ndarray:
    """Diagonal matrix with the given entries; its trace is sum(diag)."""
    d = np.asarray(diag, dtype=float)
    if d.ndim != 1:
        raise ValueError("`diag` must be one-dimensional.")
    return np.diag(d)


# -------- Matrices for the Schatten estimator --------

def generate_rank_one_matrix(u: Sequence[float], v: Sequence[float]) -> np.ndarray:
    """
    B = u v^T. Its only non-zero singular value is ||u|| ||v||,
    so ||B||_{S_2p}^{2p} = (||u|| ||v||)^{2p}.
    """
    u = np.asarray(u, dtype=float).ravel()
    v = np.asarray(v, dtype=float).ravel()
    return np.outer(u, v)


def generate_rectangular_matrix(m: int, n: int, seed: SeedLike = 725) -> np.ndarray:
    """(m, n) Gaussian matrix scaled by 1/sqrt(n) so singular values stay O(1)."""
    rng = np.random.default_rng(seed)
    return rng.standard_normal((m, n)) / np.sqrt(n)


def generate_spectrum_matrix(
    m: int,
    n: int,
    singular_values: Sequence[float],
    seed: SeedLike = 725,
) -> np.ndarray:
    """
    B = U diag(s) V^T with Haar-like orthonormal U (m, r), V (n, r), r = len(s).
    The Schatten norms of B are known exactly from `singular_values`.
    """
    s = np.asarray(singular_values, dtype=float)
    r = s.shape[0]
    if r > min(m, n):
        raise ValueError(f"At most min(m, n)={min(m, n)} singular values; got {r}.")
    rng = np.random.default_rng(seed)
    U, _ = np.linalg.qr(rng.standard_normal((m, r)), mode="reduced")
    V, _ = np.linalg.qr(rng.standard_normal((n, r)), mode="reduced")
    return (U * s[None, :]) @ V.T


# -------- Least-squares problems for the optimizers --------

def generate_least_squares(
    n_samples: int,
    dim: int,
    noise: float = 0.1,
    seed: SeedLike = 725,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Draw a linear model b = A x_true + noise * eps.
    Returns (A, b, x_true) with A of shape (n_samples, dim).
    """
    if n_samples < dim:
        raise ValueError(f"Need n_samples >= dim for a unique minimizer; got {n_samples} < {dim}.")
    rng = np.random.default_rng(seed)
    A = rng.standard_normal((n_samples, dim))
    x_true = rng.standard_normal(dim)
    b = A @ x_true + noise * rng.standard_normal(n_samples)
    return A, b, x_true
