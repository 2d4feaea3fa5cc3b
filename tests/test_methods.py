import math
from itertools import combinations

import numpy as np
import pytest

from src.methods import (
    classify_estimate,
    estimate_schatten_norm,
    estimate_trace,
    matrix_power,
    true_schatten_norm,
    true_trace,
)
from src.dgps import (
    generate_diagonal_matrix,
    generate_psd_matrix,
    generate_rank_one_matrix,
    generate_spectrum_matrix,
)


# ---------------------- trace estimator ----------------------

def test_trace_small_diagonal_scenario():
    """A = diag(4, 9), k = 1000: estimate ≈ 13, variance ≈ 2 * (16 + 81)."""
    A = generate_diagonal_matrix([4.0, 9.0])
    est, var = estimate_trace(A, k=1000, seed=725)
    assert true_trace(A) == 13.0
    assert abs(est - 13.0) < 1.5          # std of the mean is sqrt(194/1000) ≈ 0.44
    assert var == pytest.approx(194.0, rel=0.4)


@pytest.mark.parametrize("n", [1, 10, 30])
def test_trace_identity(n):
    """For I_n each quadratic form is chi^2_n, so the mean over many samples is ≈ n."""
    est, _ = estimate_trace(np.eye(n), k=20000, seed=1)
    assert abs(est - n) < 6 * np.sqrt(2 * n / 20000) + 1e-12


def test_trace_unbiased_and_variance_shrinks():
    """Averaged over repetitions the estimate matches sum(diag); its spread scales as 1/k."""
    diag = np.array([1.0, 2.0, 3.0, 4.0])
    A = generate_diagonal_matrix(diag)
    rng = np.random.default_rng(2024)

    est_small = np.array([estimate_trace(A, k=10, seed=rng)[0] for _ in range(300)])
    est_large = np.array([estimate_trace(A, k=160, seed=rng)[0] for _ in range(300)])

    assert abs(est_large.mean() - diag.sum()) < 0.2
    ratio = est_small.var(ddof=1) / est_large.var(ddof=1)
    assert 8.0 < ratio < 32.0             # expected 160 / 10 = 16


def test_trace_sample_variance_matches_theory():
    """Var(w^T A w) = 2 tr(A^2) for Gaussian w."""
    diag = np.array([1.0, 2.0, 3.0, 4.0])
    _, var = estimate_trace(generate_diagonal_matrix(diag), k=20000, seed=3)
    assert var == pytest.approx(2 * np.sum(diag**2), rel=0.1)


def test_trace_reproducible_with_seed():
    """Same seed and same k give bit-identical output; another seed does not."""
    A = generate_psd_matrix(30, seed=9)
    r1 = estimate_trace(A, k=50, seed=42)
    r2 = estimate_trace(A, k=50, seed=42)
    r3 = estimate_trace(A, k=50, seed=43)
    assert r1 == r2
    assert r1 != r3


def test_trace_k_equal_one_reports_undefined_variance():
    est, var = estimate_trace(np.eye(3), k=1, seed=0)
    assert np.isfinite(est)
    assert math.isnan(var)


@pytest.mark.parametrize("k", [0, -3, 2.5, "10", True])
def test_trace_rejects_invalid_k(k):
    with pytest.raises(ValueError):
        estimate_trace(np.eye(3), k=k, seed=0)


def test_trace_accepts_numpy_integer_k():
    est, var = estimate_trace(np.eye(3), k=np.int64(5), seed=0)
    assert np.isfinite(est) and np.isfinite(var)


def test_trace_rejects_non_square():
    with pytest.raises(ValueError):
        estimate_trace(np.ones((3, 2)), k=5)


# ---------------------- matrix power ----------------------

def test_matrix_power_zero_is_identity():
    M = np.array([[2.0, 1.0], [0.0, 3.0]])
    assert np.array_equal(matrix_power(M, 0), np.eye(2))


@pytest.mark.parametrize("e", [1, 2, 3, 5, 8])
def test_matrix_power_matches_numpy(e):
    rng = np.random.default_rng(e)
    M = rng.normal(size=(4, 4)) / 2
    assert np.allclose(matrix_power(M, e), np.linalg.matrix_power(M, e))


@pytest.mark.parametrize("e", [-1, 1.5])
def test_matrix_power_rejects_bad_exponent(e):
    with pytest.raises(ValueError):
        matrix_power(np.eye(2), e)


# ---------------------- schatten estimator ----------------------

def _cycle_sum_estimate(B, p, k, seed):
    """Brute-force sum over increasing p-tuples of the cycle products X_{i1 i2} ... X_{ip i1}."""
    O = np.random.default_rng(seed).standard_normal((B.shape[1], k))
    Y = B @ O
    X = Y.T @ Y
    total = 0.0
    for idx in combinations(range(k), p):
        prod = 1.0
        for j in range(p):
            prod *= X[idx[j], idx[(j + 1) % p]]
        total += prod
    return total / math.comb(k, p)


@pytest.mark.parametrize("p, k", [(1, 4), (2, 5), (3, 6)])
def test_schatten_matches_cycle_sum(p, k):
    """trace(T^{p-1} X) / C(k, p) equals the explicit sum over increasing index cycles."""
    B = np.random.default_rng(0).normal(size=(5, 4))
    est = estimate_schatten_norm(B, p=p, k=k, seed=17)
    assert est == pytest.approx(_cycle_sum_estimate(B, p, k, seed=17), rel=1e-10)


def test_schatten_rank_one_frobenius():
    """For B = u v^T and p = 1 the estimate averages to ||u||^2 ||v||^2."""
    u, v = np.array([1.0, 2.0, 2.0]), np.array([3.0, 4.0])
    B = generate_rank_one_matrix(u, v)
    truth = np.dot(u, u) * np.dot(v, v)
    assert true_schatten_norm(B, 1) == pytest.approx(truth)

    rng = np.random.default_rng(99)
    est = np.mean([estimate_schatten_norm(B, p=1, k=50, seed=rng) for _ in range(400)])
    assert est == pytest.approx(truth, rel=0.05)


def test_schatten_p2_unbiased():
    """With a known spectrum the p = 2 estimate averages to sum sigma^4."""
    s = np.array([1.0, 0.5, 0.25])
    B = generate_spectrum_matrix(12, 8, s, seed=4)
    truth = float(np.sum(s**4))
    assert true_schatten_norm(B, 2) == pytest.approx(truth)

    rng = np.random.default_rng(5)
    est = np.mean([estimate_schatten_norm(B, p=2, k=10, seed=rng) for _ in range(500)])
    assert est == pytest.approx(truth, rel=0.15)


def test_schatten_reproducible_with_seed():
    B = np.random.default_rng(1).normal(size=(6, 5))
    assert estimate_schatten_norm(B, 2, 8, seed=3) == estimate_schatten_norm(B, 2, 8, seed=3)


@pytest.mark.parametrize("p, k", [(3, 3), (4, 2), (1, 1)])
def test_schatten_rejects_k_not_greater_than_p(p, k):
    with pytest.raises(ValueError):
        estimate_schatten_norm(np.eye(3), p=p, k=k, seed=0)


@pytest.mark.parametrize("p", [0, -1, 1.0])
def test_schatten_rejects_invalid_p(p):
    with pytest.raises(ValueError):
        estimate_schatten_norm(np.eye(3), p=p, k=10, seed=0)


def test_schatten_overflow_is_flagged():
    """Huge singular values to a high power overflow; the result is classified, not raised."""
    B = 1e100 * np.eye(3)
    truth = true_schatten_norm(B, 4)
    est = estimate_schatten_norm(B, p=4, k=6, seed=0)
    assert classify_estimate(truth, expect_nonzero=True) == "overflow"
    assert classify_estimate(est, expect_nonzero=True) in ("overflow", "nan")


def test_schatten_underflow_is_flagged():
    B = 1e-100 * np.eye(3)
    truth = true_schatten_norm(B, 4)
    est = estimate_schatten_norm(B, p=4, k=6, seed=0)
    assert classify_estimate(truth, expect_nonzero=True) == "underflow"
    assert classify_estimate(est, expect_nonzero=True) == "underflow"


# ---------------------- classification ----------------------

@pytest.mark.parametrize("value, expect_nonzero, expected", [
    (1.5, False, "ok"),
    (-2.0, True, "ok"),
    (0.0, False, "ok"),
    (0.0, True, "underflow"),
    (1e-320, False, "underflow"),
    (np.inf, False, "overflow"),
    (-np.inf, False, "overflow"),
    (np.nan, False, "nan"),
])
def test_classify_estimate(value, expect_nonzero, expected):
    assert classify_estimate(value, expect_nonzero=expect_nonzero) == expected
