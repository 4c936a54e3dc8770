"""
Configuration system for the sparse solver and matrix construction.
"""

from dataclasses import dataclass
from typing import Optional

# Fill-reducing orderings understood by SuperLU
PERMC_SPECS = ('NATURAL', 'MMD_ATA', 'MMD_AT_PLUS_A', 'COLAMD')


@dataclass
class SolverConfig:
    """
    Configuration for building and solving the generator matrix.

    Attributes
    ----------
    zero_threshold : float
        Transition probabilities not above this value are dropped from
        the generator matrix
    block_size : int or None
        Block size passed to the factorization and used to chunk row
        construction.  None selects it from the matrix size.
    permc_spec : str
        Fill-reducing column ordering used by SuperLU
    diag_pivot_thresh : float or None
        Threshold for partial pivoting (None uses the SuperLU default)
    refinement_steps : int
        Maximum number of iterative refinement steps per solve
    clamp_tolerance : float
        Negative solver output larger in magnitude than this value
        triggers a NegativeSolutionWarning before being clamped to zero
    n_jobs : int
        Worker processes for row construction (-1 for all cores)
    """

    # Matrix construction
    zero_threshold: float = 1e-30
    block_size: Optional[int] = None
    n_jobs: int = 1

    # Factorization and solution
    permc_spec: str = 'COLAMD'
    diag_pivot_thresh: Optional[float] = None
    refinement_steps: int = 2
    clamp_tolerance: float = 1e-10

    def __post_init__(self):
        if not isinstance(self.zero_threshold, (int, float)) or not 0.0 <= self.zero_threshold < 1.0:
            raise ValueError(f"zero_threshold must be in [0, 1), got {self.zero_threshold}")
        if self.block_size is not None:
            if isinstance(self.block_size, bool) or not isinstance(self.block_size, int) or self.block_size < 1:
                raise ValueError(f"block_size must be a positive integer or None, got {self.block_size}")
        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, int) or (self.n_jobs < 1 and self.n_jobs != -1):
            raise ValueError(f"n_jobs must be a positive integer or -1, got {self.n_jobs}")
        if self.permc_spec not in PERMC_SPECS:
            raise ValueError(f"permc_spec must be one of {PERMC_SPECS}, got {self.permc_spec}")
        if self.diag_pivot_thresh is not None and not 0.0 <= self.diag_pivot_thresh <= 1.0:
            raise ValueError(f"diag_pivot_thresh must be in [0, 1] or None, got {self.diag_pivot_thresh}")
        if isinstance(self.refinement_steps, bool) or not isinstance(self.refinement_steps, int) or self.refinement_steps < 0:
            raise ValueError(f"refinement_steps must be a non-negative integer, got {self.refinement_steps}")
        if not isinstance(self.clamp_tolerance, (int, float)) or self.clamp_tolerance < 0:
            raise ValueError(f"clamp_tolerance must be non-negative, got {self.clamp_tolerance}")

    def copy(self) -> 'SolverConfig':
        """
        Create a copy of this configuration.

        Returns
        -------
        SolverConfig
            A new instance with the same settings
        """
        return SolverConfig(**self.to_dict())

    @classmethod
    def default(cls) -> 'SolverConfig':
        """
        Default configuration.

        Returns
        -------
        SolverConfig
            Configuration with a 1e-30 zero threshold and two refinement steps
        """
        return cls()

    @classmethod
    def exact(cls) -> 'SolverConfig':
        """
        Configuration without sparsification or refinement.

        Every nonzero transition probability is kept in the matrix.

        Returns
        -------
        SolverConfig
            Configuration with a zero threshold of 0
        """
        return cls(zero_threshold=0.0, refinement_steps=0)

    def to_dict(self) -> dict:
        """
        Convert configuration to dictionary.

        Returns
        -------
        dict
            Dictionary representation of the configuration
        """
        return {
            'zero_threshold': self.zero_threshold,
            'block_size': self.block_size,
            'n_jobs': self.n_jobs,
            'permc_spec': self.permc_spec,
            'diag_pivot_thresh': self.diag_pivot_thresh,
            'refinement_steps': self.refinement_steps,
            'clamp_tolerance': self.clamp_tolerance,
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'SolverConfig':
        """
        Create configuration from dictionary.

        Parameters
        ----------
        config_dict : dict
            Dictionary with solver settings

        Returns
        -------
        SolverConfig
            Configuration instance
        """
        return cls(**config_dict)

    def __str__(self) -> str:
        block = "auto" if self.block_size is None else self.block_size
        return (f"SolverConfig(zero_threshold={self.zero_threshold:g}, "
                f"block_size={block}, permc_spec={self.permc_spec})")

    def summary(self) -> str:
        """
        Generate a detailed summary of the configuration.

        Returns
        -------
        str
            Multi-line summary of solver settings
        """
        block = "auto" if self.block_size is None else self.block_size
        pivot = "default" if self.diag_pivot_thresh is None else self.diag_pivot_thresh
        jobs = "all cores" if self.n_jobs == -1 else self.n_jobs
        lines = ["Solver Configuration:"]
        lines.append(f"  Zero threshold: {self.zero_threshold:g}")
        lines.append(f"  Block size: {block}")
        lines.append(f"  Row construction jobs: {jobs}")
        lines.append(f"  Column ordering: {self.permc_spec}")
        lines.append(f"  Pivot threshold: {pivot}")
        lines.append(f"  Refinement steps: {self.refinement_steps}")
        lines.append(f"  Clamp tolerance: {self.clamp_tolerance:g}")
        return "\n".join(lines)
