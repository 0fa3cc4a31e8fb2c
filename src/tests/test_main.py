"""
===============================================================================
MCBENCH - Command-Line Entry Point Test Suite
===============================================================================
End-to-end runs of the CLI with small configurations: single estimates,
argument validation, the convergence study and the benchmark suite.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pandas as pd
import pytest

from mcbench.main import main
from mcbench.simulation.monte_carlo import run_estimate


SMALL_CONFIG = """
convergence:
  sample_sizes: [100, 1000]
  num_replicates: 2
benchmark:
  num_trials: 1000
  growth_length: 100
  sum_length: 1000
  num_runs: 2
logging:
  level: WARNING
"""


@pytest.fixture
def small_config(tmp_path):
    path = tmp_path / "small.yaml"
    path.write_text(SMALL_CONFIG)
    return str(path)


class TestSingleEstimate:

    def test_estimate_prints_result(self, capsys):
        assert main(['--estimate', '1000', '--seed', '7', '--log-level', 'WARNING']) == 0
        out = capsys.readouterr().out
        expected = run_estimate(1000, seed=7)
        assert f"{expected.estimate:.6f}" in out
        assert "Hits" in out

    def test_loop_method_matches_vectorized(self, capsys):
        main(['--estimate', '500', '--seed', '3', '--method', 'loop', '--log-level', 'WARNING'])
        loop_out = capsys.readouterr().out
        main(['--estimate', '500', '--seed', '3', '--method', 'vectorized', '--log-level', 'WARNING'])
        vec_out = capsys.readouterr().out

        def hits_line(text):
            return next(line for line in text.splitlines() if line.strip().startswith("Hits"))

        assert hits_line(loop_out) == hits_line(vec_out)

    @pytest.mark.parametrize("bad_n", ['0', '-5'])
    def test_non_positive_estimate_rejected(self, bad_n):
        with pytest.raises(SystemExit) as exc_info:
            main(['--estimate', bad_n])
        assert exc_info.value.code == 2

    def test_non_integer_estimate_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['--estimate', '2.5'])
        assert exc_info.value.code == 2

    def test_unknown_method_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['--method', 'simd'])
        assert exc_info.value.code == 2


class TestConfigErrors:

    def test_missing_config(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(['--config', str(tmp_path / 'missing.yaml')])
        assert exc_info.value.code == 2

    def test_bad_log_level(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['--estimate', '10', '--log-level', 'CHATTY'])
        assert exc_info.value.code == 2

    @pytest.mark.parametrize("section,body", [
        ('estimator', 'method: gpu'),
        ('estimator', 'num_trials: 0'),
        ('estimator', 'num_trials: 1e6'),
        ('estimator', 'chunk_size: 0'),
        ('estimator', 'seed: -1'),
        ('convergence', 'num_replicates: 0'),
        ('convergence', 'sample_sizes: []'),
        ('convergence', 'sample_sizes: [100, 0]'),
        ('benchmark', 'num_runs: 0'),
        ('benchmark', 'growth_length: -10'),
    ])
    def test_invalid_config_value_exits_2(self, tmp_path, capsys, section, body):
        path = tmp_path / 'bad.yaml'
        path.write_text(f"{section}:\n  {body}\n")
        with pytest.raises(SystemExit) as exc_info:
            main(['--config', str(path), '--all', '--output', str(tmp_path / 'out')])
        assert exc_info.value.code == 2
        assert section in capsys.readouterr().err
        assert not (tmp_path / 'out').exists()

    def test_negative_seed_flag_exits_2(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['--estimate', '10', '--seed', '-3'])
        assert exc_info.value.code == 2


class TestStudyModes:

    def test_convergence_writes_outputs(self, small_config, tmp_path):
        out = tmp_path / 'out'
        assert main(['--convergence', '--config', small_config, '--output', str(out)]) == 0

        csv_path = out / 'convergence' / 'convergence_results.csv'
        assert csv_path.exists()
        assert (out / 'convergence' / 'convergence.png').exists()
        df = pd.read_csv(csv_path)
        assert len(df) == 4
        assert df['estimate'].between(0.0, 1.0).all()

    def test_benchmark_writes_report(self, small_config, tmp_path):
        out = tmp_path / 'out'
        assert main(['--benchmark', '--config', small_config, '--output', str(out)]) == 0
        assert (out / 'benchmarks' / 'summary.csv').exists()
        assert (out / 'benchmarks' / 'report.md').exists()
