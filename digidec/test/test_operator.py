
import itertools

import numpy as np
import numpy.testing as npt
import pytest
import scipy.sparse

from digidec.calculus import Calculus
from digidec.form import Form
from digidec.operator import LinearOperator, compose, combine, identity
from digidec.topology import PRIMAL, DUAL, TagMismatch, StaleComplexError


def all_operators(calculus):
    """Every derivative and hodge operator of a calculus"""
    ops = []
    for duality in [PRIMAL, DUAL]:
        for k in range(calculus.n_dim):
            ops.append(calculus.derivative(k, duality))
        for k in range(calculus.n_dim + 1):
            ops.append(calculus.hodge(k, duality))
    return ops


def test_compose_all_combinations():
    """Composition succeeds exactly when the tags chain"""
    calculus = Calculus.from_domain((3, 2))
    ops = all_operators(calculus)
    n_valid = 0
    for a, b in itertools.product(ops, ops):
        if a.source == b.target:
            c = compose(a, b)
            assert c.source == b.source
            assert c.target == a.target
            npt.assert_allclose(c.to_dense(), a.to_dense() @ b.to_dense())
            n_valid += 1
        else:
            with pytest.raises(TagMismatch):
                compose(a, b)
            with pytest.raises(TagMismatch):
                a * b
    assert n_valid > 0


def test_combine_all_combinations():
    calculus = Calculus.from_domain((3, 2))
    ops = all_operators(calculus)
    for a, b in itertools.product(ops, ops):
        if a.source == b.source and a.target == b.target:
            c = combine(a, b, 2., -3.)
            npt.assert_allclose(c.to_dense(), 2 * a.to_dense() - 3 * b.to_dense())
        else:
            with pytest.raises(TagMismatch):
                combine(a, b)
            with pytest.raises(TagMismatch):
                a + b


def test_apply(grid):
    d0 = grid.derivative(0, DUAL)
    f = Form(grid, 0, DUAL, np.arange(100.))
    g = d0 * f
    assert g.tags == (1, DUAL)
    npt.assert_allclose(g.values, d0.matrix @ f.values)
    npt.assert_allclose(d0.apply(f).values, g.values)
    with pytest.raises(TagMismatch):
        d0 * Form(grid, 0, PRIMAL)


def test_identity(grid):
    I = identity(grid, 1, PRIMAL)
    assert I.is_square
    assert I.shape == (220, 220)
    f = Form(grid, 1, PRIMAL, np.random.normal(size=220))
    npt.assert_array_equal((I * f).values, f.values)
    npt.assert_array_equal(grid.identity(0, DUAL).to_dense(), np.eye(100))


def test_regularized_laplacian(grid):
    d0 = grid.derivative(0, DUAL)
    d1p = grid.derivative(1, PRIMAL)
    hodge1 = grid.dual_hodge(1)
    hodge2p = grid.primal_hodge(2)
    laplacian = hodge2p * d1p * hodge1 * d0 + 0.01 * grid.identity(0, DUAL)
    assert laplacian.source == laplacian.target == (0, DUAL)
    dense = laplacian.to_dense()
    npt.assert_allclose(dense, dense.T)
    assert np.linalg.eigvalsh(dense).min() > 0


def test_scalar_and_negation(grid):
    d = grid.derivative(0)
    npt.assert_allclose((-d).to_dense(), -d.to_dense())
    npt.assert_allclose((d * 2).to_dense(), 2 * d.to_dense())
    npt.assert_allclose((np.float64(2) * d).to_dense(), 2 * d.to_dense())
    npt.assert_allclose((d - d).to_dense(), 0)
    assert (d - d).is_zero()
    assert not d.is_zero()


def test_transpose(grid):
    d = grid.derivative(0)
    t = d.T
    assert t.source == d.target
    assert t.target == d.source
    npt.assert_array_equal(t.to_dense(), d.to_dense().T)


def test_clear(grid):
    d = grid.derivative(1)
    d.clear()
    assert d.nnz == 0
    assert d.is_zero()
    assert d.shape == (100, 220)


def test_shape_validated(grid):
    with pytest.raises(ValueError):
        LinearOperator(grid, (0, PRIMAL), (0, PRIMAL), scipy.sparse.identity(3))


def test_stale_operator(grid):
    d0 = grid.derivative(0)
    f = Form(grid, 0)
    grid.erase_cell((20, 20))
    assert d0.is_stale()
    with pytest.raises(StaleComplexError):
        d0.apply(f)
    with pytest.raises(StaleComplexError):
        d0 + d0


def test_different_calculus(grid):
    other = Calculus.from_domain((10, 10))
    with pytest.raises(TagMismatch):
        compose(grid.derivative(1), other.derivative(0))
    with pytest.raises(TagMismatch):
        grid.derivative(0) * Form(other, 0)
