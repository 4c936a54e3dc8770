"""
Wright-Fisher allele dynamics with selection, dominance and mutation.

A diploid population of N individuals carries 2N copies of a locus with
two alleles, 'A' and 'a'.  The state of the chain is the number of copies
of 'A'.  Each generation, the expected frequency of 'A' after selection
and mutation is computed from the current frequency, and the next
generation is drawn by binomial sampling of 2N gametes.
"""

from dataclasses import dataclass, asdict
from typing import Union

import numpy as np
from scipy.stats import binom

# Operating range limits
MAX_POPULATION_SIZE = 500000    # Larger populations are refused without force


class ParameterValidationError(ValueError):
    """Raised when model parameters are invalid or outside the safe range."""
    pass


@dataclass(frozen=True)
class ModelParameters:
    """
    Parameters of the single-locus Wright-Fisher model.

    Parameters
    ----------
    population_size : int
        Number of diploid individuals N (at least 2)
    selection : float
        Selection coefficient s, the relative advantage of 'A' over 'a'
        (at least -1)
    forward_mutation_rate : float
        Rate u of mutation from 'A' to 'a'
    backward_mutation_rate : float
        Rate v of mutation from 'a' to 'A'
    dominance : float
        Dominance coefficient h, the proportion of the selective
        advantage carried by heterozygotes 'Aa' (between 0 and 1)
    """

    population_size: int
    selection: float = 0.0
    forward_mutation_rate: float = 0.0
    backward_mutation_rate: float = 0.0
    dominance: float = 0.5

    def __post_init__(self):
        N = self.population_size
        if isinstance(N, bool) or not isinstance(N, (int, np.integer)) or N < 2:
            raise ParameterValidationError(
                f"population_size must be an integer >= 2, got {N}")
        values = {
            'selection': self.selection,
            'forward_mutation_rate': self.forward_mutation_rate,
            'backward_mutation_rate': self.backward_mutation_rate,
            'dominance': self.dominance,
        }
        for key, value in values.items():
            if not isinstance(value, (int, float, np.floating)) or not np.isfinite(value):
                raise ParameterValidationError(f"{key} must be a finite number, got {value}")
        if self.selection < -1.0:
            raise ParameterValidationError(f"selection must be >= -1, got {self.selection}")
        if not 0.0 <= self.dominance <= 1.0:
            raise ParameterValidationError(f"dominance must be in [0, 1], got {self.dominance}")
        for key in ['forward_mutation_rate', 'backward_mutation_rate']:
            if not 0.0 <= values[key] <= 1.0:
                raise ParameterValidationError(f"{key} must be in [0, 1], got {values[key]}")

    @property
    def n_copies(self) -> int:
        """Number of allele copies 2N."""
        return 2 * self.population_size

    @property
    def matrix_size(self) -> int:
        """Number of transient states 2N - 1."""
        return 2 * self.population_size - 1

    def check_operating_range(self, force: bool = False) -> None:
        """
        Check that the parameters respect the Wright-Fisher assumptions.

        Large populations make the computation very slow, and mutation
        rates above 1/2N violate the assumption that at most one mutation
        happens per generation.

        Parameters
        ----------
        force : bool, optional
            Skip the checks

        Raises
        ------
        ParameterValidationError
            If a parameter is outside the safe operating range
        """
        if force:
            return
        if self.population_size > MAX_POPULATION_SIZE:
            raise ParameterValidationError(
                f"population_size {self.population_size} is too large "
                f"(> {MAX_POPULATION_SIZE}), the computation might take a very long time")
        max_mutation_rate = 1.0 / (2.0 * self.population_size)
        if (self.forward_mutation_rate > max_mutation_rate
                or self.backward_mutation_rate > max_mutation_rate):
            raise ParameterValidationError(
                f"mutation rates must not exceed 1/2N = {max_mutation_rate:g}, "
                "the Wright-Fisher assumptions might be violated")

    def to_dict(self) -> dict:
        return asdict(self)


def sampling_coefficient(params: ModelParameters,
                         i: Union[int, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Expected frequency of 'A' in the next generation.

    Applies selection with dominance-weighted heterozygote fitness and
    two-way mutation to the current frequency p = i / 2N.

    Parameters
    ----------
    params : ModelParameters
        Model parameters
    i : int or numpy.ndarray
        Current number of copies of 'A', in [1, 2N-1]

    Returns
    -------
    q : float or numpy.ndarray
        Binomial success probability for the next generation
    """
    s = params.selection
    h = params.dominance
    u = params.forward_mutation_rate
    v = params.backward_mutation_rate

    p = np.asarray(i, dtype=np.float64) / params.n_copies

    # With genotype fitnesses 1 + s (AA), 1 + sh (Aa) and 1 (aa):
    #   x_A   = (1 + s) p^2 + (1 + sh) p (1 - p)
    #   x_a   = (1 + sh) p (1 - p) + (1 - p)^2
    #   w_bar = x_A + x_a
    # written so that s = 0 gives x_A = p and w_bar = 1 exactly.
    x_A = p * (1.0 + s * (p + h * (1.0 - p)))
    x_a = (1.0 - p) * (1.0 + s * h * p)
    w_bar = 1.0 + s * p * (p + 2.0 * h * (1.0 - p))

    q = ((1.0 - u) * x_A + v * x_a) / w_bar
    q = np.clip(q, 0.0, 1.0)
    return float(q) if q.ndim == 0 else q


def transition_row(params: ModelParameters, i: int) -> np.ndarray:
    """
    Transition probabilities from state i to every state 0..2N.

    Parameters
    ----------
    params : ModelParameters
        Model parameters
    i : int
        Current number of copies of 'A'

    Returns
    -------
    row : numpy.ndarray
        Binomial(2N, q(i)) mass, shape (2N + 1,)
    """
    n = params.n_copies
    q = sampling_coefficient(params, i)
    return binom.pmf(np.arange(n + 1), n, q)


def extinction_probabilities(params: ModelParameters) -> np.ndarray:
    """
    One-step probability of losing every copy of 'A' from each transient state.

    Returns
    -------
    p0 : numpy.ndarray
        (1 - q(i))^(2N) for i = 1..2N-1
    """
    q = sampling_coefficient(params, np.arange(1, params.n_copies))
    return np.power(1.0 - q, params.n_copies)
