"""
===============================================================================
MCBENCH - Monte Carlo Area Estimator
===============================================================================
Estimates the area under y = x^2 on [0, 1] (exactly 1/3) by hit-or-miss
sampling.  Each trial draws two independent uniforms U1, U2 on [0, 1) and
counts a hit when the point (U1, U2) falls under the curve, i.e. U2 < U1^2.
The estimate is the hit fraction hits / N.

Two execution strategies implement the same contract:

    loop        - One Python iteration per trial, two scalar draws each.
                  Every iteration pays interpreter dispatch, float boxing
                  and a method call on the generator.

    vectorized  - One bulk draw of an (N, 2) block, an element-wise
                  comparison, and a sum of the boolean mask.  Same O(N) work
                  but executed in compiled numpy loops.

Both strategies consume the random stream in the same order
(U1_0, U2_0, U1_1, U2_1, ...), so for a given seed they return identical hit
counts.  The vectorized form can optionally draw the block in row chunks to
bound memory for very large N without changing that order.

The random source is any object with a numpy-style ``random(size=None)``
method (``numpy.random.Generator`` or ``numpy.random.RandomState``).  No
process-wide random state is used; seeds are always explicit.

A ConvergenceStudy runs the estimator over increasing sample sizes with
independent replicates and aggregates the results with pandas.
===============================================================================
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from mcbench.core.constants import (
    CONFIDENCE_LEVEL, DEFAULT_CHUNK_SIZE, DEFAULT_METHOD,
    DEFAULT_NUM_REPLICATES, DEFAULT_SAMPLE_SIZES, DEFAULT_SEED, EXACT_AREA,
    METHODS,
)

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def validate_positive_int(value: Any, name: str) -> int:
    """Return *value* as a Python int, or raise ValueError."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise ValueError(
            f"{name} must be an integer, got {type(value).__name__}: {value!r}"
        )
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return int(value)


def validate_num_trials(num_trials: Any) -> int:
    """
    Check that the trial count is a positive integer.

    Raises
    ------
    ValueError
        For zero, negative, or non-integer counts (bool included).
    """
    return validate_positive_int(num_trials, "Number of trials")


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Build an independent numpy Generator; None seeds from OS entropy."""
    return np.random.default_rng(seed)


# =============================================================================
# HIT COUNTING
# =============================================================================

def count_hits_loop(num_trials: int, rng) -> int:
    """
    Count hits one trial at a time.

    Parameters
    ----------
    num_trials : int
        Number of trials N (positive).
    rng : random source
        Object with a ``random()`` method returning one uniform on [0, 1).

    Returns
    -------
    int
        Number of trials with U2 < U1^2.
    """
    n = validate_num_trials(num_trials)
    hits = 0
    for _ in range(n):
        u1 = rng.random()
        u2 = rng.random()
        if u2 < u1 * u1:
            hits += 1
    return hits


def count_hits_vectorized(
    num_trials: int,
    rng,
    chunk_size: Optional[int] = None,
) -> int:
    """
    Count hits with bulk draws and a boolean mask.

    Parameters
    ----------
    num_trials : int
        Number of trials N (positive).
    rng : random source
        Object with a ``random(size)`` method returning an array of uniforms.
    chunk_size : int, optional
        Maximum rows drawn per block.  None draws all N rows at once.

    Returns
    -------
    int
        Number of trials with U2 < U1^2.

    Implementation note
    -------------------
    Column 0 holds U1 and column 1 holds U2.  A C-ordered (rows, 2) draw
    fills U1_i, U2_i, U1_(i+1), ... which is exactly the order the loop
    version consumes, and consecutive chunks continue that order.
    """
    n = validate_num_trials(num_trials)
    if chunk_size is None:
        chunk_size = n
    else:
        chunk_size = validate_positive_int(chunk_size, "Chunk size")

    hits = 0
    for start in range(0, n, chunk_size):
        rows = min(chunk_size, n - start)
        u = rng.random((rows, 2))
        hits += int(np.count_nonzero(u[:, 1] < u[:, 0] * u[:, 0]))
    return hits


# =============================================================================
# ESTIMATORS
# =============================================================================

@dataclass(frozen=True)
class EstimateResult:
    """Outcome of a single estimator run.

    Attributes
    ----------
    num_trials : int
        Number of trials N.
    hits : int
        Trials satisfying U2 < U1^2.
    method : str
        'loop' or 'vectorized'.
    seed : int or None
        Seed used to build the generator, if one was given.
    """
    num_trials: int
    hits: int
    method: str
    seed: Optional[int] = None

    @property
    def estimate(self) -> float:
        return self.hits / self.num_trials

    @property
    def abs_error(self) -> float:
        return abs(self.estimate - EXACT_AREA)

    @property
    def std_error(self) -> float:
        """Binomial standard error sqrt(p (1 - p) / N) at the estimated p."""
        p = self.estimate
        return float(np.sqrt(p * (1.0 - p) / self.num_trials))


def estimate_loop(num_trials: int, rng) -> float:
    """Scalar-loop estimate of the area under x^2 on [0, 1]."""
    n = validate_num_trials(num_trials)
    return count_hits_loop(n, rng) / n


def estimate_vectorized(
    num_trials: int, rng, chunk_size: Optional[int] = None
) -> float:
    """Vectorized estimate of the area under x^2 on [0, 1]."""
    n = validate_num_trials(num_trials)
    return count_hits_vectorized(n, rng, chunk_size=chunk_size) / n


def run_estimate(
    num_trials: int,
    method: str = DEFAULT_METHOD,
    seed: Optional[int] = None,
    rng=None,
    chunk_size: Optional[int] = None,
) -> EstimateResult:
    """
    Run one estimator and return the full result record.

    Parameters
    ----------
    num_trials : int
        Number of trials N (positive integer).
    method : str
        'loop' or 'vectorized'.
    seed : int, optional
        Seed for a fresh generator.  Mutually exclusive with *rng*.
    rng : random source, optional
        Existing generator to draw from.  It is advanced by 2N draws.
    chunk_size : int, optional
        Row chunk for the vectorized method; ignored by the loop method.

    Raises
    ------
    ValueError
        Invalid N, unknown method, or both *seed* and *rng* given.
    """
    n = validate_num_trials(num_trials)
    if method not in METHODS:
        raise ValueError(f"Unknown method: {method}. Valid: {list(METHODS)}")
    if seed is not None and rng is not None:
        raise ValueError("Pass either seed or rng, not both.")
    if rng is None:
        rng = make_rng(seed)

    if method == "loop":
        hits = count_hits_loop(n, rng)
    else:
        hits = count_hits_vectorized(n, rng, chunk_size=chunk_size)

    return EstimateResult(num_trials=n, hits=hits, method=method, seed=seed)


def estimate(
    num_trials: int,
    method: str = DEFAULT_METHOD,
    seed: Optional[int] = None,
    rng=None,
    chunk_size: Optional[int] = None,
) -> float:
    """
    Estimate the integral of x^2 over [0, 1] from *num_trials* trials.

    See :func:`run_estimate` for the parameters.  Returns hits / N, a value
    in [0, 1] that converges to 1/3 as N grows.
    """
    return run_estimate(
        num_trials, method=method, seed=seed, rng=rng, chunk_size=chunk_size,
    ).estimate


# =============================================================================
# CONVERGENCE STUDY
# =============================================================================

class ConvergenceStudy:
    """
    Repeated estimator runs over increasing sample sizes.

    Each (sample size, replicate) pair gets its own child seed spawned from
    the master seed, so runs are statistically independent and the whole
    study is reproducible from one integer.

    Parameters
    ----------
    sample_sizes : sequence of int
        Values of N to run, e.g. (1e3, 1e5, 1e7).
    num_replicates : int
        Independent runs per sample size.
    seed : int or None
        Master seed.  None draws fresh OS entropy.
    method : str
        'loop' or 'vectorized'.
    chunk_size : int, optional
        Row chunk for the vectorized method.

    Attributes
    ----------
    results : pd.DataFrame or None
        Populated after run() completes.
    run_seeds : list of int
        Child seed for each run, in (sample size, replicate) order.
    """

    def __init__(
        self,
        sample_sizes: Sequence[int] = DEFAULT_SAMPLE_SIZES,
        num_replicates: int = DEFAULT_NUM_REPLICATES,
        seed: Optional[int] = DEFAULT_SEED,
        method: str = DEFAULT_METHOD,
        chunk_size: Optional[int] = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.sample_sizes: List[int] = [validate_num_trials(n) for n in sample_sizes]
        if not self.sample_sizes:
            raise ValueError("At least one sample size is required.")
        self.num_replicates = validate_positive_int(num_replicates, "Number of replicates")
        if method not in METHODS:
            raise ValueError(f"Unknown method: {method}. Valid: {list(METHODS)}")
        self.method = method
        self.chunk_size = chunk_size
        self.seed = seed

        num_runs = len(self.sample_sizes) * self.num_replicates
        children = np.random.SeedSequence(seed).spawn(num_runs)
        self.run_seeds: List[int] = [
            int(child.generate_state(1, dtype=np.uint64)[0]) for child in children
        ]

        self.results: Optional[pd.DataFrame] = None

        logger.info(
            "ConvergenceStudy initialized: sizes=%s, %d replicates, method=%s, seed=%s",
            self.sample_sizes, self.num_replicates, self.method, self.seed,
        )

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self) -> pd.DataFrame:
        """
        Execute every (sample size, replicate) run sequentially.

        Returns
        -------
        pd.DataFrame
            One row per run with columns: num_trials, replicate, seed, method,
            hits, estimate, abs_error, elapsed_s.
        """
        rows: List[Dict[str, Any]] = []
        seeds = iter(self.run_seeds)

        for n in self.sample_sizes:
            logger.info("Running N=%d (%d replicates)", n, self.num_replicates)
            for replicate in range(self.num_replicates):
                run_seed = next(seeds)
                t0 = time.perf_counter()
                result = run_estimate(
                    n, method=self.method, seed=run_seed, chunk_size=self.chunk_size,
                )
                elapsed = time.perf_counter() - t0
                rows.append({
                    'num_trials': n,
                    'replicate': replicate,
                    'seed': run_seed,
                    'method': self.method,
                    'hits': result.hits,
                    'estimate': result.estimate,
                    'abs_error': result.abs_error,
                    'elapsed_s': elapsed,
                })

        self.results = pd.DataFrame(rows)
        logger.info("Convergence study complete: %d runs", len(self.results))
        return self.results

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def compute_statistics(self) -> Dict[int, Dict[str, float]]:
        """
        Summarise the runs per sample size.

        Returns
        -------
        dict
            For each N: mean, std, mean_abs_error, ci_coverage (fraction of
            replicates whose normal-approximation confidence interval covers
            1/3) and mean_elapsed_s.
        """
        if self.results is None or self.results.empty:
            logger.warning("No results to compute statistics on.")
            return {}

        z = float(stats.norm.ppf(0.5 + CONFIDENCE_LEVEL / 2.0))
        summary: Dict[int, Dict[str, float]] = {}

        for n, group in self.results.groupby('num_trials'):
            est = group['estimate'].to_numpy(dtype=np.float64)
            std_err = np.sqrt(est * (1.0 - est) / n)
            covered = np.abs(est - EXACT_AREA) <= z * std_err

            summary[int(n)] = {
                'mean': float(est.mean()),
                'std': float(est.std(ddof=1)) if len(est) > 1 else 0.0,
                'mean_abs_error': float(group['abs_error'].mean()),
                'ci_coverage': float(covered.mean()),
                'mean_elapsed_s': float(group['elapsed_s'].mean()),
            }

        return summary

    def check_equivalence(
        self, num_trials: int = 10, seed: Optional[int] = None
    ) -> Tuple[EstimateResult, EstimateResult]:
        """
        Run both strategies on the same seed and confirm identical hit counts.

        Returns
        -------
        (loop_result, vectorized_result)

        Raises
        ------
        RuntimeError
            If the two strategies disagree.
        """
        if seed is None:
            seed = self.seed if self.seed is not None else DEFAULT_SEED

        loop_result = run_estimate(num_trials, method="loop", seed=seed)
        vec_result = run_estimate(
            num_trials, method="vectorized", seed=seed, chunk_size=self.chunk_size,
        )
        if loop_result.hits != vec_result.hits:
            raise RuntimeError(
                f"Strategies disagree for N={num_trials}, seed={seed}: "
                f"loop={loop_result.hits} hits, vectorized={vec_result.hits} hits"
            )
        logger.info(
            "Equivalence check passed: N=%d, seed=%d, hits=%d",
            loop_result.num_trials, seed, loop_result.hits,
        )
        return loop_result, vec_result

    # =========================================================================
    # VISUALIZATION
    # =========================================================================

    def plot_convergence(self, output_dir: str) -> Optional[str]:
        """
        Plot mean estimate +/- one standard deviation against N.

        Parameters
        ----------
        output_dir : str
            Directory to save ``convergence.png``.

        Returns
        -------
        str or None
            Path to the saved figure, or None if there were no results.
        """
        summary = self.compute_statistics()
        if not summary:
            logger.warning("No results for convergence plot.")
            return None

        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt

        os.makedirs(output_dir, exist_ok=True)

        sizes = sorted(summary)
        means = [summary[n]['mean'] for n in sizes]
        stds = [summary[n]['std'] for n in sizes]

        fig, ax = plt.subplots(figsize=(8, 5))
        ax.errorbar(sizes, means, yerr=stds, fmt='o-', color='steelblue',
                    capsize=4, label='Mean estimate (+/- 1 sigma)')
        ax.axhline(EXACT_AREA, color='red', linestyle='--', linewidth=0.8,
                   label='Exact = 1/3')
        ax.set_xscale('log')
        ax.set_xlabel('Number of trials N')
        ax.set_ylabel('Estimate')
        ax.set_title(
            f'Monte Carlo Convergence ({self.method}, '
            f'{self.num_replicates} replicates per N)'
        )
        ax.legend()
        ax.grid(True, alpha=0.3)

        filepath = os.path.join(output_dir, 'convergence.png')
        fig.savefig(filepath, dpi=150, bbox_inches='tight')
        plt.close(fig)
        logger.info("Saved convergence plot: %s", filepath)
        return filepath

    # =========================================================================
    # REPRESENTATION
    # =========================================================================

    def __repr__(self) -> str:
        status = "not run" if self.results is None else f"{len(self.results)} results"
        return (
            f"ConvergenceStudy(sizes={self.sample_sizes}, "
            f"replicates={self.num_replicates}, method={self.method}, "
            f"seed={self.seed}, status={status})"
        )
