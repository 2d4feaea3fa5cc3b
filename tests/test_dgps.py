import numpy as np
import pytest
from src.dgps import (
    generate_diagonal_matrix,
    generate_least_squares,
    generate_psd_matrix,
    generate_rank_one_matrix,
    generate_spectrum_matrix,
    sample_gaussian_matrix,
    sample_gaussian_vector,
)


@pytest.mark.parametrize("n, k", [(10, 1), (50, 20)])
def test_sample_gaussian_shapes(n, k):
    """Test vectors have shape (n,), test matrices (n, k)."""
    assert sample_gaussian_vector(n, seed=1).shape == (n,)
    assert sample_gaussian_matrix(n, k, seed=1).shape == (n, k)


def test_sample_gaussian_reproducibility():
    """Same seed gives identical draws, a different seed does not."""
    W1 = sample_gaussian_matrix(20, 5, seed=123)
    W2 = sample_gaussian_matrix(20, 5, seed=123)
    W3 = sample_gaussian_matrix(20, 5, seed=124)
    assert np.array_equal(W1, W2)
    assert not np.allclose(W1, W3)


def test_shared_generator_advances():
    """Passing a Generator draws fresh vectors on every call."""
    rng = np.random.default_rng(0)
    w1 = sample_gaussian_vector(10, seed=rng)
    w2 = sample_gaussian_vector(10, seed=rng)
    assert not np.allclose(w1, w2)


def test_isotropic_second_moment():
    """E[w w^T] = I: the empirical second moment of many draws is close to identity."""
    W = sample_gaussian_matrix(5, 20000, seed=7)
    M = (W @ W.T) / W.shape[1]
    assert np.allclose(M, np.eye(5), atol=0.05)


def test_invalid_sizes():
    with pytest.raises(ValueError):
        sample_gaussian_vector(0)
    with pytest.raises(ValueError):
        sample_gaussian_matrix(3, 0)


@pytest.mark.parametrize("n", [5, 40])
def test_psd_matrix(n):
    """generate_psd_matrix returns a symmetric matrix with non-negative spectrum."""
    A = generate_psd_matrix(n, seed=3)
    assert A.shape == (n, n)
    assert np.array_equal(A, A.T)
    assert np.linalg.eigvalsh(A).min() > -1e-10


def test_diagonal_and_rank_one():
    A = generate_diagonal_matrix([4.0, 9.0])
    assert np.array_equal(A, np.array([[4.0, 0.0], [0.0, 9.0]]))

    u, v = np.array([1.0, 2.0, 2.0]), np.array([3.0, 4.0])
    B = generate_rank_one_matrix(u, v)
    s = np.linalg.svd(B, compute_uv=False)
    assert B.shape == (3, 2)
    assert np.isclose(s[0], 3.0 * 5.0)
    assert np.isclose(s[1], 0.0, atol=1e-12)


def test_spectrum_matrix_has_prescribed_singular_values():
    s_true = np.array([3.0, 1.0, 0.5])
    B = generate_spectrum_matrix(8, 6, s_true, seed=11)
    s = np.linalg.svd(B, compute_uv=False)
    assert B.shape == (8, 6)
    assert np.allclose(s[:3], s_true)
    assert np.allclose(s[3:], 0.0, atol=1e-12)

    with pytest.raises(ValueError):
        generate_spectrum_matrix(3, 2, [1.0, 1.0, 1.0])


def test_least_squares_problem():
    A, b, x_true = generate_least_squares(200, 4, noise=0.0, seed=5)
    assert A.shape == (200, 4) and b.shape == (200,) and x_true.shape == (4,)
    assert np.allclose(A @ x_true, b)

    with pytest.raises(ValueError):
        generate_least_squares(3, 4)
