"""Discrete differential forms and sampled vector fields

A form is a vector of coefficients over the cells of a single (order, duality) index space
of a `Calculus`; its tags are fixed at construction
"""

import numpy as np

from digidec.topology import Duality, PRIMAL, TagMismatch, StaleComplexError


class Form(object):
    """A k-form over either the primal or the dual complex of a calculus"""

    # let numpy scalars defer to our reflected operators
    __array_ufunc__ = None

    def __init__(self, calculus, order, duality=PRIMAL, values=None):
        """

        Parameters
        ----------
        calculus : Calculus
        order : int
        duality : Duality or str
            primal by default
        values : array_like, [n_cells], float, optional
            coefficients in index order; zero-initialized if omitted
        """
        self.calculus = calculus
        self.order = int(order)
        self.duality = Duality(duality)
        self.generation = calculus.generation
        length = calculus.length(self.order, self.duality)
        if values is None:
            values = np.zeros(length)
        values = np.array(values, dtype=np.float64)
        if not values.shape == (length,):
            raise ValueError(f'Expected {length} coefficients, got shape {values.shape}')
        self.values = values

    @classmethod
    def dirac(cls, calculus, order, duality, cell):
        """Form that is one at `cell` and zero elsewhere"""
        form = cls(calculus, order, duality)
        form.values[form.get_index(cell)] = 1
        return form

    @property
    def tags(self):
        return self.order, self.duality

    @property
    def length(self):
        return len(self.values)

    def __len__(self):
        return len(self.values)

    def __getitem__(self, item):
        return self.values[item]

    def __setitem__(self, item, value):
        self.values[item] = value

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.values, dtype=dtype)

    def get_cell(self, index):
        return self.calculus.get_cell(self.order, self.duality, index)

    def get_index(self, cell):
        return self.calculus.get_index(cell, self.order, self.duality)

    def is_stale(self):
        """True if the calculus was mutated after this form was created"""
        return (
            self.generation != self.calculus.generation or
            len(self) != self.calculus.length(self.order, self.duality)
        )

    def check_fresh(self):
        if self.is_stale():
            raise StaleComplexError(f'{self!r} was created before its calculus was last mutated')

    def check_compatible(self, other):
        if not isinstance(other, Form):
            raise TypeError(f'Expected a Form, got {type(other).__name__}')
        if other.calculus is not self.calculus:
            raise TagMismatch('Forms belong to different calculi')
        if not other.tags == self.tags:
            raise TagMismatch(f'Form tags {self.tags} and {other.tags} do not match')
        if not len(other) == len(self):
            raise TagMismatch(f'Form lengths {len(self)} and {len(other)} do not match')

    def copy(self, values=None):
        """Form with identical tags; with a copy of the coefficients, or with the given ones"""
        form = type(self).__new__(type(self))
        form.calculus = self.calculus
        form.order = self.order
        form.duality = self.duality
        form.generation = self.generation
        form.values = np.array(self.values if values is None else values, dtype=np.float64)
        return form

    def clear(self):
        self.values.fill(0)

    def min(self):
        """Smallest coefficient; 0 for a form over an empty index space"""
        return self.values.min() if len(self) else 0.

    def max(self):
        """Largest coefficient; 0 for a form over an empty index space"""
        return self.values.max() if len(self) else 0.

    def dot(self, other):
        """Plain l2 inner product of the coefficients"""
        self.check_compatible(other)
        return float(np.dot(self.values, other.values))

    def norm(self):
        return float(np.linalg.norm(self.values))

    def __add__(self, other):
        self.check_compatible(other)
        return self.copy(self.values + other.values)

    def __sub__(self, other):
        self.check_compatible(other)
        return self.copy(self.values - other.values)

    def __neg__(self):
        return self.copy(-self.values)

    def __mul__(self, scalar):
        if not np.isscalar(scalar):
            return NotImplemented
        return self.copy(self.values * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar):
        if not np.isscalar(scalar):
            return NotImplemented
        return self.copy(self.values / scalar)

    def __repr__(self):
        return f'Form(order={self.order}, duality={self.duality!r}, length={len(self)})'


class VectorField(object):
    """Vector samples at the 0-cells of either the primal or the dual complex"""

    def __init__(self, calculus, duality, coordinates=None):
        """

        Parameters
        ----------
        calculus : Calculus
        duality : Duality or str
        coordinates : array_like, [n_dim, n_zero_cells], float, optional
            per-axis component arrays; zero-initialized if omitted
        """
        self.calculus = calculus
        self.duality = Duality(duality)
        self.generation = calculus.generation
        shape = (calculus.n_dim, calculus.length(0, self.duality))
        if coordinates is None:
            coordinates = np.zeros(shape)
        coordinates = np.array(coordinates, dtype=np.float64)
        if not coordinates.shape == shape:
            raise ValueError(f'Expected coordinates of shape {shape}, got {coordinates.shape}')
        self.coordinates = coordinates

    @classmethod
    def from_function(cls, calculus, duality, func):
        """Sample a function of cell centers, mapping [n, n_dim] positions to [n, n_dim] vectors"""
        centers = calculus.centers(0, duality)
        return cls(calculus, duality, np.asarray(func(centers), dtype=np.float64).T)

    def __len__(self):
        return self.coordinates.shape[1]

    def is_stale(self):
        return (
            self.generation != self.calculus.generation or
            len(self) != self.calculus.length(0, self.duality)
        )

    def check_fresh(self):
        if self.is_stale():
            raise StaleComplexError(f'{self!r} was created before its calculus was last mutated')

    def check_compatible(self, other):
        if not isinstance(other, VectorField):
            raise TypeError(f'Expected a VectorField, got {type(other).__name__}')
        if other.calculus is not self.calculus or other.duality != self.duality:
            raise TagMismatch('Vector fields live on different complexes')
        if not other.coordinates.shape == self.coordinates.shape:
            raise TagMismatch('Vector field lengths do not match')

    def copy(self, coordinates=None):
        field = type(self).__new__(type(self))
        field.calculus = self.calculus
        field.duality = self.duality
        field.generation = self.generation
        field.coordinates = np.array(self.coordinates if coordinates is None else coordinates, dtype=np.float64)
        return field

    def extract_zero_form(self, axis):
        """Component along a single axis, as a 0-form"""
        form = Form(self.calculus, 0, self.duality, self.coordinates[axis])
        form.generation = self.generation
        return form

    def norm(self):
        """Pointwise magnitude, as a 0-form"""
        form = Form(self.calculus, 0, self.duality, np.linalg.norm(self.coordinates, axis=0))
        form.generation = self.generation
        return form

    def normalized(self, epsilon=0.):
        """Unit vectors; vectors of magnitude not exceeding epsilon are set to zero"""
        magnitude = np.linalg.norm(self.coordinates, axis=0)
        nonzero = magnitude > epsilon
        coordinates = np.zeros_like(self.coordinates)
        coordinates[:, nonzero] = self.coordinates[:, nonzero] / magnitude[nonzero]
        return self.copy(coordinates)

    def __add__(self, other):
        self.check_compatible(other)
        return self.copy(self.coordinates + other.coordinates)

    def __sub__(self, other):
        self.check_compatible(other)
        return self.copy(self.coordinates - other.coordinates)

    def __neg__(self):
        return self.copy(-self.coordinates)

    def __mul__(self, scalar):
        if not np.isscalar(scalar):
            return NotImplemented
        return self.copy(self.coordinates * scalar)

    __rmul__ = __mul__

    def __repr__(self):
        return f'VectorField(duality={self.duality!r}, length={len(self)})'
