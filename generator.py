"""
Sparse generator matrix (I - Q) of the Wright-Fisher transient states.
"""

from dataclasses import dataclass
from multiprocessing import Pool, cpu_count
from typing import List, Optional, Tuple

import numpy as np
from scipy.sparse import csr_matrix

from wright_fisher import ModelParameters, transition_row

# Matrices at least this large use a block size of 10% of their dimension
BLOCK_SIZE_THRESHOLD = 100
BLOCK_SIZE_FRACTION = 0.1


@dataclass
class GeneratorMatrix:
    """
    Generator matrix over the transient states with its build settings.

    Attributes
    ----------
    matrix : scipy.sparse.csr_matrix
        I - Q restricted to copy-counts 1..2N-1, with sorted column indices
    block_size : int
        Block size hint forwarded to the factorization
    zero_threshold : float
        Threshold used when dropping transition probabilities
    """
    matrix: csr_matrix
    block_size: int
    zero_threshold: float

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    @property
    def nnz(self) -> int:
        return self.matrix.nnz


def block_size_for(matrix_size: int) -> int:
    """Block size heuristic: 10% of the dimension for large matrices."""
    if matrix_size >= BLOCK_SIZE_THRESHOLD:
        return int(matrix_size * BLOCK_SIZE_FRACTION)
    return matrix_size


def _build_rows(params: ModelParameters, start: int, stop: int,
                zero_threshold: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Build rows for copy-counts start..stop-1 of the generator matrix.

    Returns
    -------
    data : numpy.ndarray
        Nonzero values of the rows, concatenated
    indices : numpy.ndarray
        Column index of each value, ascending within each row
    counts : numpy.ndarray
        Number of nonzeros in each row
    """
    n = params.n_copies
    data = []
    indices = []
    counts = np.zeros(stop - start, dtype=np.int64)

    for row, i in enumerate(range(start, stop)):
        # Columns 0 and 2N are absorbing and are not part of the matrix
        mass = transition_row(params, i)[1:n]
        diag = i - 1

        keep = mass > zero_threshold
        keep[diag] = True
        cols = np.flatnonzero(keep)

        values = -mass[cols]
        values[np.searchsorted(cols, diag)] = 1.0 - mass[diag]

        data.append(values)
        indices.append(cols)
        counts[row] = cols.size

    return np.concatenate(data), np.concatenate(indices), counts


def _row_blocks(matrix_size: int, block_size: int) -> List[Tuple[int, int]]:
    """Split copy-counts 1..matrix_size into consecutive blocks."""
    return [(start, min(start + block_size, matrix_size + 1))
            for start in range(1, matrix_size + 1, block_size)]


def build_generator(params: ModelParameters,
                    block_size: Optional[int] = None,
                    zero_threshold: float = 1e-30,
                    n_jobs: int = 1) -> GeneratorMatrix:
    """
    Assemble the generator matrix I - Q in CSR format.

    Row i holds 1 - P(i, i) on the diagonal and -P(i, j) for every other
    transient state j whose transition probability exceeds the zero
    threshold.  Transitions into the absorbing states are left out, so
    every row of Q is substochastic.

    Parameters
    ----------
    params : ModelParameters
        Model parameters
    block_size : int, optional
        Block size hint; chosen from the matrix size when None
    zero_threshold : float, optional
        Transition probabilities not above this value are dropped
    n_jobs : int, optional
        Worker processes used to build blocks of rows (-1 for all cores)

    Returns
    -------
    generator : GeneratorMatrix
        The matrix together with the block size and threshold used
    """
    M = params.matrix_size
    if block_size is None:
        block_size = block_size_for(M)
    if block_size < 1:
        raise ValueError(f"block_size must be positive, got {block_size}")
    if zero_threshold < 0:
        raise ValueError(f"zero_threshold must be non-negative, got {zero_threshold}")
    if n_jobs == -1:
        n_jobs = cpu_count()

    tasks = [(params, start, stop, zero_threshold)
             for start, stop in _row_blocks(M, block_size)]
    if n_jobs == 1 or len(tasks) == 1:
        blocks = [_build_rows(*task) for task in tasks]
    else:
        with Pool(processes=min(n_jobs, len(tasks))) as pool:
            blocks = pool.starmap(_build_rows, tasks)

    data = np.concatenate([block[0] for block in blocks])
    indices = np.concatenate([block[1] for block in blocks])
    counts = np.concatenate([block[2] for block in blocks])

    indptr = np.zeros(M + 1, dtype=np.int64)
    np.cumsum(counts, out=indptr[1:])

    matrix = csr_matrix((data, indices, indptr), shape=(M, M))
    matrix.has_sorted_indices = True

    return GeneratorMatrix(matrix=matrix, block_size=block_size,
                           zero_threshold=zero_threshold)
