#!/usr/bin/env python3
"""
===============================================================================
MCBENCH - MAIN ENTRY POINT
===============================================================================
Estimates the area under y = x^2 on [0, 1] by Monte Carlo sampling and
benchmarks scalar-loop against vectorized execution.

USAGE:
    mcbench                              # Single estimate, default N
    mcbench --estimate 1000000           # Single estimate with N trials
    mcbench --estimate 10000 --method loop
    mcbench --convergence                # Convergence study over N
    mcbench --benchmark                  # Performance benchmarks only
    mcbench --all                        # Everything

OUTPUTS:
    <output>/convergence/  - Per-run CSV and convergence plot
    <output>/benchmarks/   - Per-scenario CSVs, plots and report.md
===============================================================================
"""

import argparse
import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcbench.core.config import load_config, setup_logging, validate_config
from mcbench.core.constants import METHODS
from mcbench.performance.benchmarks import Benchmark, Timer
from mcbench.simulation.monte_carlo import (
    ConvergenceStudy, EstimateResult, run_estimate,
)

logger = logging.getLogger('MCBENCH_MAIN')


def setup_output_directories(base: str) -> str:
    """Create the output tree if it doesn't exist and return its path."""
    base_path = Path(base)
    for d in ('convergence', 'benchmarks'):
        (base_path / d).mkdir(parents=True, exist_ok=True)
    logger.info("Output directories ready under %s", base_path)
    return str(base_path)


def run_single_estimate(
    num_trials: int,
    method: str,
    seed: Optional[int],
    chunk_size: Optional[int] = None,
) -> EstimateResult:
    """Run one estimate, print it with timings, and return the result."""
    logger.info("=" * 60)
    logger.info("ESTIMATE (N=%d, method=%s, seed=%s)", num_trials, method, seed)
    logger.info("=" * 60)

    with Timer() as t:
        result = run_estimate(num_trials, method=method, seed=seed, chunk_size=chunk_size)

    print(f"  Trials        : {result.num_trials:,}")
    print(f"  Hits          : {result.hits:,}")
    print(f"  Estimate      : {result.estimate:.6f}  (exact 1/3 = {1.0 / 3.0:.6f})")
    print(f"  Abs error     : {result.abs_error:.6f}")
    print(f"  Std error     : {result.std_error:.6f}")
    print(f"  Elapsed (s)   : {t.elapsed:.4f}  wall, {t.cpu:.4f} cpu")
    return result


def run_convergence(config: Dict[str, Any], output_dir: str, seed: Optional[int]):
    """
    Run the convergence study and save its results.

    Verifies that both strategies agree on a small seeded run first, then
    runs every sample size and writes the per-run CSV and the plot.
    """
    logger.info("=" * 60)
    logger.info("RUNNING CONVERGENCE STUDY")
    logger.info("=" * 60)

    conv_cfg = config['convergence']
    est_cfg = config['estimator']
    conv_dir = os.path.join(output_dir, 'convergence')

    study = ConvergenceStudy(
        sample_sizes=conv_cfg['sample_sizes'],
        num_replicates=conv_cfg['num_replicates'],
        seed=seed,
        method=est_cfg['method'],
        chunk_size=est_cfg['chunk_size'],
    )
    study.check_equivalence(num_trials=10)

    results = study.run()
    results.to_csv(os.path.join(conv_dir, 'convergence_results.csv'), index=False)
    study.plot_convergence(conv_dir)

    stats = study.compute_statistics()
    logger.info("Convergence statistics:")
    for n, values in stats.items():
        logger.info(
            "  N=%-10d mean=%.6f std=%.6f mean_abs_err=%.6f ci_coverage=%.0f%%",
            n, values['mean'], values['std'], values['mean_abs_error'],
            100.0 * values['ci_coverage'],
        )
    return study


def run_benchmarks(config: Dict[str, Any], output_dir: str, seed: Optional[int]):
    """Run every benchmark scenario and write the report."""
    logger.info("=" * 60)
    logger.info("RUNNING PERFORMANCE BENCHMARKS")
    logger.info("=" * 60)

    bench_dir = os.path.join(output_dir, 'benchmarks')
    summary = Benchmark.run_all_benchmarks(
        output_dir=bench_dir, settings=config['benchmark'], seed=seed,
    )
    Benchmark.generate_report(bench_dir)
    logger.info("Benchmarks complete")
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mcbench',
        description='Monte Carlo area estimate of x^2 on [0, 1]: loop vs vectorized',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mcbench                              Single estimate (default N)
  mcbench --estimate 10000 --method loop
  mcbench --convergence                Convergence study
  mcbench --benchmark                  Performance benchmarks
  mcbench --all                        Everything
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Path to YAML config')
    parser.add_argument('--estimate', type=int, default=None, metavar='N',
                        help='Run a single estimate with N trials')
    parser.add_argument('--method', choices=METHODS, default=None,
                        help='Estimator strategy (default from config)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed (default from config)')
    parser.add_argument('--convergence', action='store_true',
                        help='Run the convergence study')
    parser.add_argument('--benchmark', action='store_true',
                        help='Run performance benchmarks')
    parser.add_argument('--all', action='store_true',
                        help='Run everything')
    parser.add_argument('--output', type=str, default='output',
                        help='Output directory (default: output)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Logging level (default from config)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point. Parses command line arguments and runs
    the requested mode(s).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    if args.method is not None:
        config['estimator']['method'] = args.method
    if args.seed is not None:
        config['estimator']['seed'] = args.seed
    try:
        validate_config(config)
    except ValueError as exc:
        parser.error(str(exc))
    if args.estimate is not None and args.estimate <= 0:
        parser.error(f"--estimate must be a positive integer, got {args.estimate}")

    log_cfg = config['logging']
    try:
        setup_logging(args.log_level or log_cfg['level'], log_cfg['file'])
    except ValueError as exc:
        parser.error(str(exc))

    seed = config['estimator']['seed']

    print("=" * 70)
    print("  MCBENCH - Monte Carlo estimate of the area under x^2 on [0, 1]")
    print("=" * 70)
    print(f"  Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Random seed: {seed}")
    print("=" * 70)

    run_conv = args.convergence or args.all
    run_bench = args.benchmark or args.all
    run_single = args.estimate is not None or args.all or not (run_conv or run_bench)

    output_dir = None
    if run_conv or run_bench:
        output_dir = setup_output_directories(args.output)

    start = time.time()

    if run_single:
        run_single_estimate(
            args.estimate if args.estimate is not None else config['estimator']['num_trials'],
            method=config['estimator']['method'],
            seed=seed,
            chunk_size=config['estimator']['chunk_size'],
        )

    if run_conv:
        run_convergence(config, output_dir, seed)

    if run_bench:
        run_benchmarks(config, output_dir, seed)

    total_time = time.time() - start
    print("\n" + "=" * 70)
    print("  RUN COMPLETE")
    print(f"  Total wall time: {total_time:.1f} seconds")
    if output_dir is not None:
        print(f"  Outputs saved to: {output_dir}")
        for root, dirs, files in os.walk(output_dir):
            for f in sorted(files):
                print(f"    {os.path.relpath(os.path.join(root, f), output_dir)}")
    print("=" * 70)
    return 0


if __name__ == '__main__':
    sys.exit(main())
