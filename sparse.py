"""
Sparse direct solver session built on SuperLU.

The factorization follows a fixed protocol: analyze the matrix structure,
factorize it numerically, solve any number of right-hand sides, and
release.  SparseSolverSession makes that protocol explicit and refuses
calls made out of order.
"""

from enum import Enum, IntEnum
from typing import Optional

import numpy as np
from scipy.sparse import issparse
from scipy.sparse.linalg import splu

from solver_config import SolverConfig

# Upper bound on SuperLU supernode relaxation; kept at or below the panel size
SUPERNODE_RELAX = 10


class SolverPhase(IntEnum):
    """Solver phases, numbered by the codes reported on failure."""
    ANALYZE = 11
    FACTORIZE = 22
    SOLVE = 33
    RELEASE = -1


PHASE_NAMES = {
    SolverPhase.ANALYZE: "symbolic factorization",
    SolverPhase.FACTORIZE: "numeric factorization",
    SolverPhase.SOLVE: "solution",
    SolverPhase.RELEASE: "memory release",
}


class SessionState(Enum):
    CREATED = 'created'
    ANALYZED = 'analyzed'
    FACTORIZED = 'factorized'
    SOLVED = 'solved'
    RELEASED = 'released'


class SolveMode(Enum):
    """Solve A x = b (standard) or A^T x = b (transpose)."""
    STANDARD = 'N'
    TRANSPOSE = 'T'


class SolverPhaseError(RuntimeError):
    """Raised when the sparse solver fails during one of its phases."""

    def __init__(self, phase: SolverPhase, message: str):
        self.phase = SolverPhase(phase)
        super().__init__(f"ERROR during {PHASE_NAMES[self.phase]}: {message}")


class SparseSolverSession:
    """
    Factorization of one sparse matrix, owned by a single solve.

    Parameters
    ----------
    matrix : scipy.sparse matrix
        Square system matrix
    block_size : int
        Block size hint, forwarded to SuperLU as the panel size
    config : SolverConfig, optional
        Ordering, pivoting and refinement settings

    Examples
    --------
    >>> with SparseSolverSession(A, block_size) as session:
    ...     session.analyze()
    ...     session.factorize()
    ...     x = session.solve(b)
    ...     y = session.solve(c, SolveMode.TRANSPOSE)
    """

    def __init__(self, matrix, block_size: int,
                 config: Optional[SolverConfig] = None) -> None:
        self.matrix = matrix
        self.block_size = block_size
        self.config = config if config is not None else SolverConfig()
        self.state = SessionState.CREATED
        self._csc = None
        self._lu = None

    def __enter__(self) -> 'SparseSolverSession':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.release()
        return False

    def _require(self, phase: SolverPhase, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SolverPhaseError(
                phase, f"session is {self.state.value}, expected {allowed}")

    def analyze(self) -> None:
        """
        Check the matrix structure and prepare it for factorization.

        Raises
        ------
        SolverPhaseError
            If the matrix is not square, has non-finite values, or the
            block size is not a positive integer
        """
        self._require(SolverPhase.ANALYZE, SessionState.CREATED)

        matrix = self.matrix
        if not issparse(matrix):
            raise SolverPhaseError(SolverPhase.ANALYZE,
                                   f"matrix must be sparse, got {type(matrix)}")
        n_rows, n_cols = matrix.shape
        if n_rows != n_cols or n_rows == 0:
            raise SolverPhaseError(SolverPhase.ANALYZE,
                                   f"matrix is not square: {matrix.shape}")
        if not np.all(np.isfinite(matrix.data)):
            raise SolverPhaseError(SolverPhase.ANALYZE,
                                   "matrix contains non-finite values")
        if isinstance(self.block_size, bool) or not isinstance(self.block_size, (int, np.integer)) \
                or self.block_size < 1:
            raise SolverPhaseError(SolverPhase.ANALYZE,
                                   f"block size must be a positive integer, got {self.block_size}")

        # SuperLU works on CSC with sorted indices
        csc = matrix.tocsc(copy=True)
        csc.sum_duplicates()
        csc.sort_indices()
        self._csc = csc
        self.state = SessionState.ANALYZED

    def factorize(self) -> None:
        """
        Compute the LU factorization.

        Raises
        ------
        SolverPhaseError
            If the session was not analyzed or the matrix is singular
        """
        self._require(SolverPhase.FACTORIZE, SessionState.ANALYZED)

        panel_size = int(self.block_size)
        try:
            self._lu = splu(self._csc,
                            permc_spec=self.config.permc_spec,
                            diag_pivot_thresh=self.config.diag_pivot_thresh,
                            relax=min(panel_size, SUPERNODE_RELAX),
                            panel_size=panel_size)
        except (RuntimeError, ValueError, MemoryError) as e:
            raise SolverPhaseError(SolverPhase.FACTORIZE, str(e)) from e
        self.state = SessionState.FACTORIZED

    @property
    def factor_nnz(self) -> int:
        """Number of nonzeros in the L and U factors."""
        if self._lu is None:
            return 0
        return self._lu.L.nnz + self._lu.U.nnz

    def solve(self, rhs: np.ndarray, mode: SolveMode = SolveMode.STANDARD) -> np.ndarray:
        """
        Solve the factorized system for one right-hand side.

        The right-hand side is not modified.  Up to
        ``config.refinement_steps`` steps of iterative refinement are
        applied while they reduce the residual.

        Parameters
        ----------
        rhs : numpy.ndarray
            Right-hand side vector
        mode : SolveMode, optional
            Standard or transpose solve

        Returns
        -------
        x : numpy.ndarray
            Solution vector

        Raises
        ------
        SolverPhaseError
            If the session is not factorized, the right-hand side has the
            wrong length, or the solution is not finite
        """
        self._require(SolverPhase.SOLVE, SessionState.FACTORIZED, SessionState.SOLVED)

        b = np.asarray(rhs, dtype=np.float64)
        n = self._csc.shape[0]
        if b.shape != (n,):
            raise SolverPhaseError(SolverPhase.SOLVE,
                                   f"rhs has shape {b.shape}, but matrix has {n} rows")
        mode = SolveMode(mode)
        A = self._csc if mode is SolveMode.STANDARD else self._csc.T

        try:
            x = self._lu.solve(b, trans=mode.value)

            # Iterative refinement
            residual = b - A @ x
            residual_norm = np.max(np.abs(residual))
            for _ in range(self.config.refinement_steps):
                if residual_norm == 0.0:
                    break
                x_new = x + self._lu.solve(residual, trans=mode.value)
                residual_new = b - A @ x_new
                norm_new = np.max(np.abs(residual_new))
                if not norm_new < residual_norm:
                    break
                x, residual, residual_norm = x_new, residual_new, norm_new
        except (RuntimeError, ValueError) as e:
            raise SolverPhaseError(SolverPhase.SOLVE, str(e)) from e

        if not np.all(np.isfinite(x)):
            raise SolverPhaseError(SolverPhase.SOLVE, "solution contains non-finite values")

        self.state = SessionState.SOLVED
        return x

    def release(self) -> None:
        """Free the factorization.  Calling it again has no effect."""
        if self.state is SessionState.RELEASED:
            return
        self._lu = None
        self._csc = None
        self.state = SessionState.RELEASED

    def __repr__(self) -> str:
        return (f"SparseSolverSession(shape={self.matrix.shape}, "
                f"block_size={self.block_size}, state={self.state.value})")
