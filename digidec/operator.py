"""Typed sparse linear operators between form spaces

Every operator carries the (order, duality) tags of the forms it accepts and produces;
composition and linear combination check these tags before doing any numeric work
"""

import numpy as np
import scipy.sparse

from digidec.form import Form
from digidec.topology import Duality, TagMismatch, StaleComplexError


class LinearOperator(object):
    """Sparse matrix mapping forms of the source space to forms of the target space"""

    __array_ufunc__ = None

    def __init__(self, calculus, source, target, matrix):
        """

        Parameters
        ----------
        calculus : Calculus
        source : tuple (int, Duality)
            tags of the forms this operator acts on
        target : tuple (int, Duality)
            tags of the forms this operator produces
        matrix : sparse matrix, [n_target, n_source]
        """
        self.calculus = calculus
        self.source = int(source[0]), Duality(source[1])
        self.target = int(target[0]), Duality(target[1])
        self.generation = calculus.generation
        self.matrix = scipy.sparse.csr_matrix(matrix, dtype=np.float64)
        shape = calculus.length(*self.target), calculus.length(*self.source)
        if not self.matrix.shape == shape:
            raise ValueError(f'Matrix of shape {self.matrix.shape} does not match index spaces {shape}')

    @property
    def shape(self):
        return self.matrix.shape

    @property
    def nnz(self):
        return self.matrix.nnz

    @property
    def is_square(self):
        return self.source == self.target

    def is_stale(self):
        return (
            self.generation != self.calculus.generation or
            self.matrix.shape != (self.calculus.length(*self.target), self.calculus.length(*self.source))
        )

    def check_fresh(self):
        if self.is_stale():
            raise StaleComplexError(f'{self!r} was built before its calculus was last mutated')

    def copy(self, matrix=None):
        """Operator with identical tags; with a copy of the matrix, or with the given one"""
        op = type(self).__new__(type(self))
        op.calculus = self.calculus
        op.source = self.source
        op.target = self.target
        op.generation = self.generation
        op.matrix = scipy.sparse.csr_matrix(self.matrix.copy() if matrix is None else matrix, dtype=np.float64)
        return op

    def apply(self, form):
        """Apply the operator to a form tagged with its source tags

        Returns
        -------
        Form
            tagged with the target tags of this operator
        """
        if not isinstance(form, Form):
            raise TypeError(f'Expected a Form, got {type(form).__name__}')
        if form.calculus is not self.calculus:
            raise TagMismatch('Form and operator belong to different calculi')
        if not form.tags == self.source:
            raise TagMismatch(f'Cannot apply operator {self.source} -> {self.target} to form {form.tags}')
        self.check_fresh()
        form.check_fresh()
        return Form(self.calculus, *self.target, values=self.matrix @ form.values)

    def transpose(self):
        """Operator with swapped tags and transposed matrix"""
        op = self.copy(self.matrix.T)
        op.source, op.target = self.target, self.source
        return op

    @property
    def T(self):
        return self.transpose()

    def clear(self):
        """Zero out all entries, keeping the tags"""
        self.matrix = scipy.sparse.csr_matrix(self.matrix.shape, dtype=np.float64)

    def to_dense(self):
        return self.matrix.toarray()

    def is_zero(self, atol=0.):
        """True if no entry exceeds `atol` in magnitude"""
        m = self.matrix
        return m.nnz == 0 or bool(np.all(np.abs(m.data) <= atol))

    def __neg__(self):
        return self.copy(-self.matrix)

    def __add__(self, other):
        return combine(self, other)

    def __sub__(self, other):
        return combine(self, other, 1., -1.)

    def __mul__(self, other):
        if isinstance(other, LinearOperator):
            return compose(self, other)
        if isinstance(other, Form):
            return self.apply(other)
        if np.isscalar(other):
            return self.copy(self.matrix * other)
        return NotImplemented

    def __rmul__(self, other):
        if np.isscalar(other):
            return self.copy(self.matrix * other)
        return NotImplemented

    def __repr__(self):
        (so, sd), (to, td) = self.source, self.target
        return f'LinearOperator({so} {sd.value} -> {to} {td.value}, shape={self.shape}, nnz={self.nnz})'


def _check_same_calculus(a, b):
    if not (isinstance(a, LinearOperator) and isinstance(b, LinearOperator)):
        raise TypeError('Expected two LinearOperators')
    if a.calculus is not b.calculus:
        raise TagMismatch('Operators belong to different calculi')


def compose(a, b):
    """Product a * b; apply b first, then a

    Raises
    ------
    TagMismatch
        if the target tags of b differ from the source tags of a
    """
    _check_same_calculus(a, b)
    if not a.source == b.target:
        raise TagMismatch(f'Cannot compose {a.source} -> {a.target} after {b.source} -> {b.target}')
    a.check_fresh()
    b.check_fresh()
    return LinearOperator(a.calculus, b.source, a.target, a.matrix @ b.matrix)


def combine(a, b, alpha=1., beta=1.):
    """Linear combination alpha * a + beta * b of two operators with identical tags"""
    _check_same_calculus(a, b)
    if not (a.source == b.source and a.target == b.target):
        raise TagMismatch(f'Cannot combine {a.source} -> {a.target} with {b.source} -> {b.target}')
    a.check_fresh()
    b.check_fresh()
    return LinearOperator(a.calculus, a.source, a.target, alpha * a.matrix + beta * b.matrix)


def identity(calculus, order, duality):
    """Identity operator on the given form space"""
    n = calculus.length(order, duality)
    return LinearOperator(calculus, (order, duality), (order, duality), scipy.sparse.identity(n, format='csr'))
