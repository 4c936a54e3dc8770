"""
Absorption statistics of the Wright-Fisher model.

Solves for the probability of extinction from every transient state and
for the expected number of generations spent in every transient state
starting from a single copy of 'A', then derives the probabilities and
conditional times of extinction and fixation.
"""

import time
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import psutil

from generator import build_generator
from solver_config import SolverConfig
from sparse import SparseSolverSession, SolveMode
from wright_fisher import ModelParameters, extinction_probabilities

GB_CONV = 1024**3


class NegativeSolutionWarning(UserWarning):
    """Warning raised when clamping removes a non-negligible negative value."""
    pass


@dataclass
class WFStatistics:
    """
    Absorption statistics for a population starting with one copy of 'A'.

    Vector index k corresponds to k + 1 copies of 'A'.

    Attributes
    ----------
    B1 : numpy.ndarray
        Probability of extinction from each transient state
    B2 : numpy.ndarray
        Probability of fixation from each transient state, 1 - B1
    N : numpy.ndarray
        Expected number of generations spent in each transient state
    probability_extinction : float
        Probability that 'A' is lost
    probability_fixation : float
        Probability that 'A' fixes
    time_extinction : float
        Expected generations until loss, given loss (NaN if loss is impossible)
    time_fixation : float
        Expected generations until fixation, given fixation
    count_before_extinction : float
        Expected copies of 'A' summed over generations before loss, given loss
    """
    B1: np.ndarray
    B2: np.ndarray
    N: np.ndarray
    probability_extinction: float = 0.0
    probability_fixation: float = 0.0
    time_extinction: float = np.nan
    time_fixation: float = np.nan
    count_before_extinction: float = np.nan

    def summary_dict(self) -> dict:
        return {
            'probability_extinction': self.probability_extinction,
            'probability_fixation': self.probability_fixation,
            'time_extinction': self.time_extinction,
            'time_fixation': self.time_fixation,
            'count_before_extinction': self.count_before_extinction,
        }


def clamp_negative(x: np.ndarray, tolerance: float, name: str) -> np.ndarray:
    """
    Set negative entries to zero.

    Negative values are numerical noise from the solver.  A
    NegativeSolutionWarning is issued when the largest one exceeds
    ``tolerance`` in magnitude.
    """
    x = np.array(x, dtype=np.float64)
    negative = x < 0
    if np.any(negative):
        worst = -np.min(x)
        if worst > tolerance:
            warnings.warn(
                f"Clamped {np.count_nonzero(negative)} negative entries of {name} "
                f"to zero (largest magnitude {worst:.3e})",
                NegativeSolutionWarning,
                stacklevel=2
            )
        x[negative] = 0.0
    return x


def aggregate_statistics(B1: np.ndarray, N: np.ndarray) -> WFStatistics:
    """
    Derive summary statistics from extinction probabilities and sojourn times.

    Parameters
    ----------
    B1 : numpy.ndarray
        Clamped extinction probabilities, shape (2N - 1,)
    N : numpy.ndarray
        Clamped sojourn times from one copy, shape (2N - 1,)

    Returns
    -------
    stats : WFStatistics
        Per-state vectors and summary statistics
    """
    B1 = np.asarray(B1, dtype=np.float64)
    N = np.asarray(N, dtype=np.float64)
    if B1.shape != N.shape or B1.ndim != 1 or B1.size == 0:
        raise ValueError(f"B1 and N must be non-empty vectors of equal length, "
                         f"got {B1.shape} and {N.shape}")

    B1 = np.minimum(B1, 1.0)
    B2 = 1.0 - B1
    stats = WFStatistics(B1=B1, B2=B2, N=N)

    copies = np.arange(1, B1.size + 1)
    if B1[0] > 0:
        stats.probability_extinction = float(B1[0])
        stats.time_extinction = float(np.dot(B1, N) / B1[0])
        stats.count_before_extinction = float(np.dot(N * B1, copies) / B1[0])
    if B2[0] > 0:
        stats.probability_fixation = float(B2[0])
        stats.time_fixation = float(np.dot(B2, N) / B2[0])

    return stats


def solve_wright_fisher(params: ModelParameters,
                        config: Optional[SolverConfig] = None,
                        force: bool = False,
                        verbose: bool = False) -> WFStatistics:
    """
    Solve for conditional times to absorption and sojourn times.

    Builds the generator matrix I - Q, factorizes it once, and solves

    - (I - Q) B1 = b, with b[i] the one-step probability of extinction
      from state i, for the probability of extinction from each state;
    - (I - Q)^T N = e_1 for the expected number of generations spent in
      each state starting from one copy of 'A'.

    The factorization is released whether or not the solves succeed.

    Parameters
    ----------
    params : ModelParameters
        Model parameters
    config : SolverConfig, optional
        Solver configuration.  Uses SolverConfig() when None.
    force : bool, optional
        Skip the operating range checks on the parameters
    verbose : bool, optional
        Print timing and memory information for each phase

    Returns
    -------
    stats : WFStatistics
        Absorption statistics

    Raises
    ------
    ParameterValidationError
        If the parameters are outside the safe range and force is False
    SolverPhaseError
        If the sparse solver fails; the phase is available as ``e.phase``
    """
    if config is None:
        config = SolverConfig()
    params.check_operating_range(force=force)

    global_start_time = time.time()
    start_time = time.time()
    generator = build_generator(params, block_size=config.block_size,
                                zero_threshold=config.zero_threshold,
                                n_jobs=config.n_jobs)
    M = generator.size
    if verbose:
        print(f"Building matrix: {time.time() - start_time:g}s")
        print(f"Matrix dimension: {M} x {M}, non-zeros: {generator.nnz}, "
              f"block size: {generator.block_size}")

    with SparseSolverSession(generator.matrix, generator.block_size, config) as session:
        start_time = time.time()
        session.analyze()
        if verbose:
            print(f"Symbolic factorization {time.time() - start_time:g}s")

        start_time = time.time()
        session.factorize()
        if verbose:
            print(f"Numeric factorization {time.time() - start_time:g}s")
            print(f"Factor non-zeros: {session.factor_nnz}")

        start_time = time.time()
        rhs_extinction = extinction_probabilities(params)
        B1 = session.solve(rhs_extinction, SolveMode.STANDARD)
        B1 = clamp_negative(B1, config.clamp_tolerance, "extinction probabilities")

        rhs_sojourn = np.zeros(M)
        rhs_sojourn[0] = 1.0
        N = session.solve(rhs_sojourn, SolveMode.TRANSPOSE)
        N = clamp_negative(N, config.clamp_tolerance, "sojourn times")
        if verbose:
            print(f"Solution {time.time() - start_time:g}s")

    stats = aggregate_statistics(B1, N)

    if verbose:
        memory = psutil.Process().memory_info().rss / GB_CONV
        print(f"Memory used: {memory:.3g} GB")
        print(f"Total runtime {time.time() - global_start_time:g}s")

    return stats
