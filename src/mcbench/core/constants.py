"""
===============================================================================
MCBENCH - Numerical Constants and Defaults
===============================================================================
Central place for the reference values and default run parameters shared by
the estimator, the convergence study and the benchmark suite.
===============================================================================
"""

# =============================================================================
# REFERENCE VALUES
# =============================================================================
EXACT_AREA = 1.0 / 3.0                 # integral of x^2 over [0, 1]
CONFIDENCE_LEVEL = 0.95                # two-sided CI for the convergence study

# =============================================================================
# ESTIMATOR DEFAULTS
# =============================================================================
DEFAULT_SEED = 42
DEFAULT_NUM_TRIALS = 1_000_000
DEFAULT_METHOD = "vectorized"
METHODS = ("loop", "vectorized")

# Rows drawn per block by the chunked vectorized estimator.
# 2**20 rows x 2 columns x 8 bytes = 16 MiB per block.
DEFAULT_CHUNK_SIZE = 2 ** 20

# =============================================================================
# STUDY / BENCHMARK DEFAULTS
# =============================================================================
DEFAULT_SAMPLE_SIZES = (10 ** 3, 10 ** 5, 10 ** 7)
DEFAULT_NUM_REPLICATES = 10

DEFAULT_BENCH_TRIALS = 100_000         # estimator scenario
DEFAULT_GROWTH_LENGTH = 10_000         # vector-growth scenario
DEFAULT_SUM_LENGTH = 1_000_000         # vectorized-sum scenario
DEFAULT_BENCH_RUNS = 10
