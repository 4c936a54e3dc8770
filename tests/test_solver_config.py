"""
Unit tests for SolverConfig.
"""

import pytest
from solver_config import SolverConfig


def test_default_config():
    """Test default configuration values."""
    config = SolverConfig()
    assert config.zero_threshold == 1e-30
    assert config.block_size is None
    assert config.n_jobs == 1
    assert config.permc_spec == 'COLAMD'
    assert config.diag_pivot_thresh is None
    assert config.refinement_steps == 2
    assert config.clamp_tolerance == 1e-10
    assert SolverConfig.default() == config


def test_exact_config():
    """Test exact() keeps every transition and skips refinement."""
    config = SolverConfig.exact()
    assert config.zero_threshold == 0.0
    assert config.refinement_steps == 0


def test_copy_method():
    """Test copy() creates independent copy."""
    config1 = SolverConfig(zero_threshold=1e-20, block_size=5)
    config2 = config1.copy()

    assert config2 == config1

    config2.block_size = 7
    assert config1.block_size == 5


def test_dict_round_trip():
    config = SolverConfig(zero_threshold=1e-12, block_size=40, n_jobs=-1,
                          permc_spec='MMD_AT_PLUS_A', diag_pivot_thresh=0.5,
                          refinement_steps=0, clamp_tolerance=1e-8)
    config_dict = config.to_dict()
    assert config_dict['permc_spec'] == 'MMD_AT_PLUS_A'
    assert SolverConfig.from_dict(config_dict) == config


@pytest.mark.parametrize("kwargs,match", [
    ({'zero_threshold': -1e-30}, "zero_threshold"),
    ({'zero_threshold': 1.0}, "zero_threshold"),
    ({'block_size': 0}, "block_size"),
    ({'block_size': 2.5}, "block_size"),
    ({'n_jobs': 0}, "n_jobs"),
    ({'n_jobs': -2}, "n_jobs"),
    ({'permc_spec': 'METIS'}, "permc_spec"),
    ({'diag_pivot_thresh': 1.5}, "diag_pivot_thresh"),
    ({'refinement_steps': -1}, "refinement_steps"),
    ({'clamp_tolerance': -1.0}, "clamp_tolerance"),
])
def test_invalid_values(kwargs, match):
    """Invalid settings are rejected at construction."""
    with pytest.raises(ValueError, match=match):
        SolverConfig(**kwargs)


def test_str():
    assert str(SolverConfig()) == \
        "SolverConfig(zero_threshold=1e-30, block_size=auto, permc_spec=COLAMD)"
    assert "block_size=12" in str(SolverConfig(block_size=12))


def test_summary():
    summary = SolverConfig(n_jobs=-1).summary()
    lines = summary.split("\n")
    assert lines[0] == "Solver Configuration:"
    assert "  Zero threshold: 1e-30" in lines
    assert "  Block size: auto" in lines
    assert "  Row construction jobs: all cores" in lines
    assert "  Pivot threshold: default" in lines
