"""
Shared pytest fixtures and configuration for Wright-Fisher solver tests.
"""

import pytest
from solver_config import SolverConfig
from wright_fisher import ModelParameters


@pytest.fixture(scope='session')
def tolerances():
    """Define tolerance levels for different tests."""
    return {
        'probability': 1e-10,
        'sojourn': 1e-8,
        'row_sum': 1e-12,
        'threshold_deviation': 1e-6,
    }


@pytest.fixture
def neutral_params():
    """Neutral model without mutation, N = 10."""
    return ModelParameters(population_size=10, selection=0.0,
                           forward_mutation_rate=0.0,
                           backward_mutation_rate=0.0, dominance=0.5)


@pytest.fixture
def selection_params():
    """Weak selection with mutation, N = 50."""
    return ModelParameters(population_size=50, selection=0.01,
                           forward_mutation_rate=1e-6,
                           backward_mutation_rate=1e-6, dominance=0.5)


@pytest.fixture
def exact_config():
    """Solver configuration that keeps every nonzero transition."""
    return SolverConfig.exact()

