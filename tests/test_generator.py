#!/usr/bin/env python3
"""
Unit tests for the generator matrix builder.
"""

import pytest
import numpy as np
from scipy.sparse import identity
from generator import GeneratorMatrix, build_generator, block_size_for, _row_blocks
from wright_fisher import ModelParameters, transition_row


def create_params(N=10, s=0.0, u=0.0, v=0.0, h=0.5):
    """Create model parameters from short names."""
    return ModelParameters(population_size=N, selection=s,
                           forward_mutation_rate=u,
                           backward_mutation_rate=v, dominance=h)


def dense_generator(params):
    """Reference generator I - Q built densely from the transition rows."""
    n = params.n_copies
    Q = np.array([transition_row(params, i)[1:n] for i in range(1, n)])
    return np.eye(n - 1) - Q


@pytest.mark.parametrize("matrix_size,expected", [
    (3, 3), (19, 19), (99, 99), (100, 10), (101, 10), (199, 19), (999, 99),
])
def test_block_size_heuristic(matrix_size, expected):
    assert block_size_for(matrix_size) == expected


def test_row_blocks_cover_all_states():
    blocks = _row_blocks(25, 10)
    assert blocks == [(1, 11), (11, 21), (21, 26)]
    assert _row_blocks(5, 5) == [(1, 6)]


@pytest.mark.parametrize("N,s,u,v,h", [
    (2, 0.0, 0.0, 0.0, 0.5),
    (5, 0.1, 0.0, 0.0, 0.5),
    (10, -0.05, 1e-3, 1e-3, 0.2),
    (20, 0.5, 0.0, 1e-2, 1.0),
])
def test_matches_dense_reference(N, s, u, v, h):
    """With a zero threshold the sparse matrix equals the dense generator."""
    params = create_params(N=N, s=s, u=u, v=v, h=h)
    generator = build_generator(params, zero_threshold=0.0)

    assert isinstance(generator, GeneratorMatrix)
    assert generator.matrix.format == 'csr'
    assert generator.matrix.shape == (2 * N - 1, 2 * N - 1)
    assert generator.size == 2 * N - 1
    assert generator.block_size == block_size_for(2 * N - 1)
    np.testing.assert_allclose(generator.matrix.toarray(), dense_generator(params),
                               rtol=1e-14, atol=0.0)


def test_csr_structure(selection_params):
    """Columns ascend within each row and every row has a diagonal entry."""
    G = build_generator(selection_params).matrix
    M = G.shape[0]

    assert G.indptr[0] == 0
    assert G.indptr[-1] == G.nnz
    assert np.all(np.diff(G.indptr) >= 1)
    for row in range(M):
        cols = G.indices[G.indptr[row]:G.indptr[row + 1]]
        assert np.all(np.diff(cols) > 0)
        assert row in cols


def test_signs(selection_params):
    """Diagonal entries are in [0, 1] and off-diagonal entries are negative."""
    G = build_generator(selection_params).matrix
    diag = G.diagonal()
    assert np.all(diag >= 0.0)
    assert np.all(diag <= 1.0)
    off_diag = G - identity(G.shape[0], format='csr').multiply(G)
    assert np.all(off_diag.data <= 0.0)


@pytest.mark.parametrize("N,s,u,v,h,threshold", [
    (10, 0.0, 0.0, 0.0, 0.5, 0.0),
    (50, 0.01, 1e-6, 1e-6, 0.5, 1e-30),
    (30, -0.2, 1e-3, 1e-3, 0.0, 1e-10),
    (40, 1.0, 0.0, 0.0, 1.0, 1e-5),
])
def test_substochastic_rows(N, s, u, v, h, threshold, tolerances):
    """Retained transition probabilities of every row sum to at most one."""
    params = create_params(N=N, s=s, u=u, v=v, h=h)
    G = build_generator(params, zero_threshold=threshold).matrix
    Q = identity(G.shape[0], format='csr') - G

    assert np.all(Q.toarray() >= -tolerances['row_sum'])
    row_sums = np.asarray(Q.sum(axis=1)).ravel()
    assert np.all(row_sums <= 1.0 + tolerances['row_sum'])
    # Absorption leaks mass out of the boundary rows
    assert row_sums[0] < 1.0
    assert row_sums[-1] < 1.0


def test_threshold_monotonic_nnz(selection_params):
    """Raising the zero threshold never adds nonzero entries."""
    thresholds = [0.0, 1e-300, 1e-30, 1e-20, 1e-10, 1e-5, 1e-2]
    nnz = [build_generator(selection_params, zero_threshold=t).nnz for t in thresholds]
    for before, after in zip(nnz[:-1], nnz[1:]):
        assert after <= before
    assert nnz[-1] < nnz[0]
    # Diagonal entries always survive
    assert nnz[-1] >= selection_params.matrix_size


def test_threshold_drops_small_entries():
    """Every stored off-diagonal entry exceeds the threshold."""
    params = create_params(N=30, s=0.05)
    threshold = 1e-8
    G = build_generator(params, zero_threshold=threshold).matrix.tocoo()
    off = G.row != G.col
    assert np.all(-G.data[off] > threshold)


def test_explicit_block_size():
    """An explicit block size is kept and does not change the matrix."""
    params = create_params(N=20, s=0.1)
    reference = build_generator(params)
    generator = build_generator(params, block_size=7)
    assert generator.block_size == 7
    assert (generator.matrix != reference.matrix).nnz == 0


def test_parallel_build_matches_serial():
    """Building blocks of rows in worker processes gives the same matrix."""
    params = create_params(N=60, s=0.02, u=1e-4, v=1e-4)
    serial = build_generator(params)
    parallel = build_generator(params, n_jobs=2)
    np.testing.assert_array_equal(parallel.matrix.indptr, serial.matrix.indptr)
    np.testing.assert_array_equal(parallel.matrix.indices, serial.matrix.indices)
    np.testing.assert_array_equal(parallel.matrix.data, serial.matrix.data)


def test_invalid_arguments():
    params = create_params()
    with pytest.raises(ValueError, match="block_size"):
        build_generator(params, block_size=0)
    with pytest.raises(ValueError, match="zero_threshold"):
        build_generator(params, zero_threshold=-1.0)
