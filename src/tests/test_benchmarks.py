"""
===============================================================================
MCBENCH - Benchmark Harness Test Suite
===============================================================================
Tests for the timing harness and the performance-pitfall scenarios.  Beyond
checking the shape of the returned tables, a few tests PROVE the headline
claims: the vectorized estimator beats the scalar loop by a clear margin and
pre-allocation beats growth by re-allocation.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import time
import tracemalloc

import numpy as np
import pandas as pd
import pytest

from mcbench.performance.benchmarks import Benchmark, Timer
from mcbench.simulation.monte_carlo import estimate_loop, estimate_vectorized, make_rng


SMALL_SETTINGS = {
    "num_trials": 2000,
    "growth_length": 200,
    "sum_length": 5000,
    "num_runs": 2,
}

STAT_ROWS = {"min", "max", "mean", "median", "std", "total", "num_runs"}


# =============================================================================
# Timer
# =============================================================================

class TestTimer:

    def test_records_wall_and_cpu(self):
        with Timer() as t:
            time.sleep(0.01)
        assert t.elapsed >= 0.009
        assert t.cpu >= 0.0
        # Sleeping does not consume CPU time
        assert t.cpu < t.elapsed


# =============================================================================
# Core measurement helpers
# =============================================================================

class TestMeasurementHelpers:

    def test_time_function_statistics(self):
        stats = Benchmark.time_function(sum, range(100), num_runs=5)
        assert set(stats) == STAT_ROWS
        assert stats["num_runs"] == 5
        assert stats["min"] <= stats["median"] <= stats["max"]
        assert stats["total"] == pytest.approx(stats["mean"] * 5)

    def test_time_function_single_run_std_zero(self):
        stats = Benchmark.time_function(lambda: None, num_runs=1)
        assert stats["std"] == 0.0

    def test_time_function_rejects_zero_runs(self):
        with pytest.raises(ValueError):
            Benchmark.time_function(lambda: None, num_runs=0)

    def test_memory_profile_sees_allocation(self):
        profile = Benchmark.memory_profile(lambda: np.ones(200_000))
        # 200_000 float64 values = 1.6 MB
        assert profile["peak_bytes"] >= 1_000_000
        assert profile["peak_mb"] == pytest.approx(profile["peak_bytes"] / (1024 * 1024))

    def test_memory_profile_stops_tracing_it_started(self):
        assert not tracemalloc.is_tracing()
        Benchmark.memory_profile(lambda: np.ones(1000))
        assert not tracemalloc.is_tracing()

    def test_memory_profile_leaves_caller_tracing_on(self):
        tracemalloc.start()
        try:
            held = np.ones(500_000)
            profile = Benchmark.memory_profile(lambda: np.ones(200_000))
            assert tracemalloc.is_tracing()
            # Memory traced before the call is not counted
            assert 1_000_000 <= profile["peak_bytes"] < held.nbytes
        finally:
            tracemalloc.stop()

    def test_compare_tracks_memory(self):
        df = Benchmark.compare(
            lambda: np.ones(200_000),
            lambda: None,
            labels=("alloc", "noop"),
            num_runs=2,
            track_memory=True,
        )
        assert df.loc["peak_kb", "alloc"] > 1000
        assert df.loc["peak_kb", "alloc"] > df.loc["peak_kb", "noop"]

    def test_compare_without_memory_has_no_peak_row(self):
        df = Benchmark.compare(sum, sum, range(10), num_runs=2)
        assert "peak_kb" not in df.index

    def test_compare_adds_speedup_row(self):
        df = Benchmark.compare(
            lambda: sum(range(2000)),
            lambda: sum(range(10)),
            labels=("slow", "fast"),
            num_runs=3,
        )
        assert list(df.columns) == ["slow", "fast"]
        assert "speedup" in df.index
        assert df.loc["speedup", "fast"] == 1.0
        assert df.loc["speedup", "slow"] == pytest.approx(
            df.loc["mean", "slow"] / df.loc["mean", "fast"]
        )


# =============================================================================
# Scenarios
# =============================================================================

class TestScenarios:

    def test_estimator_scenario(self):
        df = Benchmark.benchmark_estimator(num_trials=1000, num_runs=2, seed=3)
        assert list(df.columns) == ["loop_estimator", "vectorized_estimator"]
        assert STAT_ROWS <= set(df.index)
        assert "speedup" in df.index
        assert "peak_kb" in df.index

    def test_estimator_scenario_without_seed(self):
        df = Benchmark.benchmark_estimator(num_trials=100, num_runs=1, seed=None)
        assert "speedup" in df.index

    def test_vector_growth_scenario(self):
        df = Benchmark.benchmark_vector_growth(n=100, num_runs=2)
        assert isinstance(df.index, pd.MultiIndex)
        assert set(df.index.get_level_values(0)) == {"prealloc", "vectorized"}

    def test_vectorized_sum_scenario(self):
        df = Benchmark.benchmark_vectorized_sum(n=1000, num_runs=2)
        assert set(df.index.get_level_values(0)) == {"builtin", "numpy"}
        assert "loop_sum" in df.columns


# =============================================================================
# Headline claims
# =============================================================================

class TestVectorizedFasterThanLoop:
    """The vectorized estimator should clearly beat the scalar loop."""

    def test_vectorized_estimator_faster(self):
        n = 100_000
        # Warm up
        estimate_loop(100, make_rng(0))
        estimate_vectorized(100, make_rng(0))

        with Timer() as t_loop:
            loop_value = estimate_loop(n, make_rng(42))
        with Timer() as t_vec:
            vec_value = estimate_vectorized(n, make_rng(42))

        assert loop_value == vec_value

        speedup = t_loop.elapsed / max(t_vec.elapsed, 1e-12)
        assert speedup >= 5.0, (
            f"Vectorized only {speedup:.1f}x faster than loop "
            f"(loop={t_loop.elapsed*1e3:.1f}ms, vec={t_vec.elapsed*1e3:.1f}ms)"
        )


class TestPreallocatedFasterThanGrowth:
    """Growing by re-allocation copies the array on every step."""

    def test_preallocated_faster_than_growth(self):
        n = 20_000

        with Timer() as t_grow:
            grown = np.empty(0)
            for i in range(n):
                grown = np.append(grown, i * 0.1)

        with Timer() as t_prealloc:
            filled = np.empty(n)
            for i in range(n):
                filled[i] = i * 0.1

        np.testing.assert_array_equal(grown, filled)

        speedup = t_grow.elapsed / max(t_prealloc.elapsed, 1e-12)
        assert speedup >= 1.0, (
            f"Pre-alloc not faster: {speedup:.2f}x "
            f"(grow={t_grow.elapsed*1e3:.1f}ms, prealloc={t_prealloc.elapsed*1e3:.1f}ms)"
        )


# =============================================================================
# Orchestration and report
# =============================================================================

class TestRunAllAndReport:

    COMPARISONS = [
        "estimator",
        "vector_growth/prealloc",
        "vector_growth/vectorized",
        "vectorized_sum/builtin",
        "vectorized_sum/numpy",
    ]

    @pytest.fixture
    def bench_dir(self, tmp_path):
        out = str(tmp_path / "bench")
        summary = Benchmark.run_all_benchmarks(out, settings=SMALL_SETTINGS, seed=1)
        return out, summary

    def test_run_all_writes_artefacts(self, bench_dir):
        out, summary = bench_dir
        assert summary.index.tolist() == self.COMPARISONS
        assert {"naive_mean_s", "optimized_mean_s", "speedup_x"} <= set(summary.columns)
        for name in ("estimator.csv", "vector_growth.csv", "vectorized_sum.csv",
                     "summary.csv", "speedup_bar.png", "timing_comparison.png"):
            assert os.path.exists(os.path.join(out, name)), name

    def test_summary_has_every_comparison_label(self, bench_dir):
        _, summary = bench_dir
        assert summary.loc["vector_growth/vectorized", "optimized"] == "vectorized"
        assert summary.loc["vectorized_sum/numpy", "optimized"] == "numpy_sum"
        assert summary.loc["vectorized_sum/builtin", "optimized"] == "builtin_sum"
        assert (summary["naive"].loc[["vectorized_sum/builtin", "vectorized_sum/numpy"]]
                == "loop_sum").all()

    def test_summary_matches_scenario_csv(self, bench_dir):
        out, summary = bench_dir
        sums = pd.read_csv(os.path.join(out, "vectorized_sum.csv"), index_col=[0, 1])
        row = summary.loc["vectorized_sum/numpy"]
        assert row["optimized_mean_s"] == pytest.approx(sums.loc[("numpy", "mean"), "numpy_sum"])
        assert row["naive_mean_s"] == pytest.approx(sums.loc[("numpy", "mean"), "loop_sum"])
        assert row["speedup_x"] == pytest.approx(sums.loc[("numpy", "speedup"), "loop_sum"])

        growth = pd.read_csv(os.path.join(out, "vector_growth.csv"), index_col=[0, 1])
        assert summary.loc["vector_growth/vectorized", "optimized_mean_s"] == pytest.approx(
            growth.loc[("vectorized", "mean"), "vectorized"]
        )

    def test_summary_csv_round_trips(self, bench_dir):
        out, summary = bench_dir
        saved = pd.read_csv(os.path.join(out, "summary.csv"), index_col="comparison")
        assert saved.index.tolist() == self.COMPARISONS
        np.testing.assert_allclose(saved["speedup_x"], summary["speedup_x"])

    def test_memory_recorded_where_tracked(self, bench_dir):
        _, summary = bench_dir
        assert summary.loc["estimator", "optimized_peak_kb"] > 0
        assert summary.loc["vector_growth/prealloc", "naive_peak_kb"] > 0
        assert np.isnan(summary.loc["vectorized_sum/numpy", "naive_peak_kb"])

    def test_generate_report(self, bench_dir):
        out, _ = bench_dir
        report = Benchmark.generate_report(out)

        assert report.startswith("# Monte Carlo Benchmark Report")
        for name in self.COMPARISONS:
            assert f"| {name} |" in report
        assert "## Observations" in report
        assert "Largest gain" in report
        assert os.path.exists(os.path.join(out, "report.md"))

    def test_report_requires_summary(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Benchmark.generate_report(str(tmp_path))
