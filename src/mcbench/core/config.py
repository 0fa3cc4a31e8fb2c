"""
===============================================================================
MCBENCH - Configuration and Logging Setup
===============================================================================
Loads run configuration from YAML and configures process logging.

Configuration is a plain nested dict.  Built-in defaults are always present;
an optional YAML file overrides any subset of them.  Only known top-level
sections are accepted so that a typo in a config file fails loudly instead of
being silently ignored::

    estimator:
      num_trials: 1000000
      method: vectorized
      seed: 42
      chunk_size: 1048576
    convergence:
      sample_sizes: [1000, 100000, 10000000]
      num_replicates: 10
    benchmark:
      num_trials: 100000
      growth_length: 10000
      sum_length: 1000000
      num_runs: 10
    logging:
      level: INFO
      file: null
===============================================================================
"""

import copy
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from mcbench.core.constants import (
    DEFAULT_BENCH_RUNS, DEFAULT_BENCH_TRIALS, DEFAULT_CHUNK_SIZE,
    DEFAULT_GROWTH_LENGTH, DEFAULT_METHOD, DEFAULT_NUM_REPLICATES,
    DEFAULT_NUM_TRIALS, DEFAULT_SAMPLE_SIZES, DEFAULT_SEED, DEFAULT_SUM_LENGTH,
    METHODS,
)
from mcbench.simulation.monte_carlo import validate_num_trials, validate_positive_int

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    'estimator': {
        'num_trials': DEFAULT_NUM_TRIALS,
        'method': DEFAULT_METHOD,
        'seed': DEFAULT_SEED,
        'chunk_size': DEFAULT_CHUNK_SIZE,
    },
    'convergence': {
        'sample_sizes': list(DEFAULT_SAMPLE_SIZES),
        'num_replicates': DEFAULT_NUM_REPLICATES,
    },
    'benchmark': {
        'num_trials': DEFAULT_BENCH_TRIALS,
        'growth_length': DEFAULT_GROWTH_LENGTH,
        'sum_length': DEFAULT_SUM_LENGTH,
        'num_runs': DEFAULT_BENCH_RUNS,
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load run configuration, layering an optional YAML file over defaults.

    Args:
        config_path: Path to a YAML config.  None returns the defaults.

    Returns:
        Dictionary of configuration sections.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
        ValueError: If the document is not a mapping or has unknown sections.
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.info("Loading configuration from: %s", path)
    with open(path, 'r') as f:
        loaded = yaml.safe_load(f)

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(
            f"Config root must be a mapping, got {type(loaded).__name__}"
        )

    unknown = sorted(set(loaded) - set(DEFAULT_CONFIG))
    if unknown:
        raise ValueError(
            f"Unknown config sections: {unknown}. Valid: {list(DEFAULT_CONFIG)}"
        )

    config = _deep_merge(DEFAULT_CONFIG, loaded)
    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Check the values of a merged configuration.

    Trial counts, chunk size, replicate and run counts must be positive
    integers; the method must be a known strategy; the seed must be null or a
    non-negative integer.  YAML reads ``1e6`` as a string, so write large
    counts as ``1000000`` or ``1_000_000``.

    Raises:
        ValueError: On the first invalid value, naming its section and key.
    """
    est = config['estimator']
    conv = config['convergence']
    bench = config['benchmark']

    if est['method'] not in METHODS:
        raise ValueError(
            f"estimator.method: unknown method {est['method']!r}. Valid: {list(METHODS)}"
        )

    seed = est['seed']
    if seed is not None:
        if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
            raise ValueError(
                f"estimator.seed must be null or a non-negative integer, got {seed!r}"
            )

    checks = [
        ('estimator.num_trials', est['num_trials'], validate_num_trials),
        ('convergence.num_replicates', conv['num_replicates'], None),
        ('benchmark.num_trials', bench['num_trials'], validate_num_trials),
        ('benchmark.growth_length', bench['growth_length'], None),
        ('benchmark.sum_length', bench['sum_length'], None),
        ('benchmark.num_runs', bench['num_runs'], None),
    ]
    if est['chunk_size'] is not None:
        checks.append(('estimator.chunk_size', est['chunk_size'], None))

    sizes = conv['sample_sizes']
    if not isinstance(sizes, list) or not sizes:
        raise ValueError(
            f"convergence.sample_sizes must be a non-empty list, got {sizes!r}"
        )
    for i, n in enumerate(sizes):
        checks.append((f'convergence.sample_sizes[{i}]', n, validate_num_trials))

    for key, value, check in checks:
        try:
            if check is None:
                validate_positive_int(value, key)
            else:
                check(value)
        except ValueError as exc:
            raise ValueError(f"{key}: {exc}") from exc


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """
    Configure root logging to stdout, plus an optional log file.

    Safe to call more than once; existing handlers are replaced.
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='w'))

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
