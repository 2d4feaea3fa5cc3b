import numpy as np
import pandas as pd
import pytest

from performance.complexity import _fit_log_log, estimate_complexity, main


@pytest.mark.parametrize("alpha", [1.0, 2.0, 0.5])
def test_fit_log_log_recovers_exponent(alpha):
    """t = 3 x^alpha is a straight line in log-log space with slope alpha and R^2 = 1."""
    x = np.array([50.0, 100.0, 200.0, 500.0, 1000.0])
    t = 3.0 * x**alpha
    a, r2 = _fit_log_log(x, t)
    assert a == pytest.approx(alpha)
    assert r2 == pytest.approx(1.0)


def test_fit_log_log_drops_non_positive_points():
    x = np.array([0.0, 10.0, 100.0, 1000.0])
    t = np.array([1.0, 10.0, 100.0, np.nan])
    a, _ = _fit_log_log(x, t)
    assert a == pytest.approx(1.0)


def test_fit_log_log_needs_two_points():
    with pytest.raises(ValueError):
        _fit_log_log(np.array([10.0, 10.0]), np.array([1.0, 2.0]))


def test_estimate_complexity_from_summary(tmp_path):
    n = np.array([100, 200, 400, 800])
    rows = []
    for k in (10, 50):
        for ni in n:
            rows.append({"n": ni, "k": k, "runtime_estimator": 1e-9 * k * ni**2, "runtime_direct": 1e-8 * ni})
    pd.DataFrame(rows).to_csv(tmp_path / "trace_summary.csv", index=False)

    out = estimate_complexity(tmp_path)
    assert set(out["experiment"]) == {"trace"}
    est = out[out["step"] == "runtime_estimator"]
    direct = out[out["step"] == "runtime_direct"]
    assert np.allclose(est["alpha"], 2.0)
    assert np.allclose(direct["alpha"], 1.0)
    assert set(out["fixed"]) == {"k=10", "k=50"}

    main(tmp_path)
    assert (tmp_path / "complexity.csv").exists()


def test_main_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(tmp_path / "does-not-exist")
