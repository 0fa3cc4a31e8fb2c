"""
mcbench - Monte Carlo estimation and benchmarking of loop vs vectorized code

    simulation.monte_carlo  - Hit-or-miss estimator of the area under x^2 on
                              [0, 1] in scalar-loop and vectorized form, plus
                              a seeded convergence study.
    performance.benchmarks  - Timing harness and performance-pitfall scenarios.
    core                    - Constants, YAML configuration, logging setup.
    main                    - Command-line entry point.
"""

from mcbench.simulation.monte_carlo import (
    ConvergenceStudy,
    EstimateResult,
    count_hits_loop,
    count_hits_vectorized,
    estimate,
    estimate_loop,
    estimate_vectorized,
    make_rng,
    run_estimate,
    validate_num_trials,
)

__version__ = "0.1.0"

__all__ = [
    "ConvergenceStudy",
    "EstimateResult",
    "count_hits_loop",
    "count_hits_vectorized",
    "estimate",
    "estimate_loop",
    "estimate_vectorized",
    "make_rng",
    "run_estimate",
    "validate_num_trials",
]
