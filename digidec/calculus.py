"""Discrete exterior calculus over a set of cells of a Khalimsky space

The calculus owns one index space per primal dimension; the dual k-cells are the
primal (n-k)-cells, so primal and dual forms of complementary order share an index.

Sign conventions
----------------
primal derivative : d_k[C, c] = o(C) o(c) incidence(C, c), with o = -1 for flipped cells
dual derivative   : d_k = (-1)**((k+1)(n-1-k)) (primal d_{n-k-1})^T
primal hodge k    : dual_size / primal_size over primal k-cells
dual hodge k      : (-1)**(k(n-k)) primal_size / dual_size over primal (n-k)-cells

With these choices hodge * d * hodge is the adjoint of d with respect to the
hodge inner products, up to sign, and every hodge * d * hodge * d is positive semi-definite
"""

import logging

import numpy as np
import numpy_indexed as npi
import pycosat
import scipy.sparse
import scipy.sparse.csgraph

from digidec import sparse
from digidec.form import Form, VectorField
from digidec.operator import LinearOperator, identity
from digidec.topology import Duality, PRIMAL, DUAL, MissingCellError, TagMismatch, index_dtype
from digidec.topology.index import CellIndex
from digidec.topology.khalimsky import KhalimskySpace, SCell, as_cells, cell_dims, lower_incident_arrays, open_axes, \
    closed_axes

logger = logging.getLogger(__name__)


class Calculus(object):
    """Discrete exterior calculus on a subset of the cells of a Khalimsky space"""

    def __init__(self, space):
        """

        Parameters
        ----------
        space : KhalimskySpace
            space containing all cells that will be inserted
        """
        self.space = space
        self.n_dim = space.n_dim
        self.indices = [CellIndex(self.n_dim, k) for k in range(self.n_dim + 1)]
        self.generation = 0

    @classmethod
    def from_points(cls, points, space=None):
        """Calculus over the closure of the spels of a set of digital points

        Parameters
        ----------
        points : ndarray, [n_points, n_dim], int
        space : KhalimskySpace, optional
            defaults to the bounding box of the points

        Notes
        -----
        Cells are inserted positively oriented with unit measures,
        in lexicographical order within each dimension
        """
        points = np.asarray(points)
        if points.ndim != 2 or not len(points):
            raise ValueError('Expected a non-empty array of points of shape [n_points, n_dim]')
        if space is None:
            space = KhalimskySpace(points.min(axis=0), points.max(axis=0))
        calculus = cls(space)
        calculus.insert_cells(space.closure(space.spels(npi.unique(points))))
        return calculus

    @classmethod
    def from_domain(cls, shape):
        """Calculus over a full box of digital points"""
        space = KhalimskySpace.from_shape(shape)
        grid = np.indices(space.shape).reshape(space.n_dim, -1).T
        return cls.from_points(grid, space=space)

    @classmethod
    def from_cells(cls, space, cells, positive=True):
        """Calculus over the closure of a set of cells

        The given cells are inserted with the given orientations;
        the faces completing their closure are inserted positively
        """
        cells = as_cells(cells)
        calculus = cls(space)
        calculus.insert_cells(cells, positive=positive)
        closure = space.closure(cells)
        calculus.insert_cells(closure[~npi.contains(cells, closure)])
        return calculus

    # index space management

    def _primal_order(self, order, duality):
        duality = Duality(duality)
        if not 0 <= order <= self.n_dim:
            raise ValueError(f'Order {order} out of range for a {self.n_dim}-dimensional calculus')
        return order if duality is PRIMAL else self.n_dim - order

    def _mutated(self):
        self.generation += 1

    def index(self, order, duality=PRIMAL):
        """The index space of the given (order, duality)

        Returns
        -------
        CellIndex
        """
        return self.indices[self._primal_order(order, duality)]

    def length(self, order, duality=PRIMAL):
        """Number of coefficients of a form of the given (order, duality)"""
        return len(self.index(order, duality))

    def cells(self, order, duality=PRIMAL):
        """Coordinates of the cells of an index space, in index order"""
        return self.index(order, duality).coordinates

    def centers(self, order, duality=PRIMAL):
        """Embedding positions of the cells of an index space"""
        return self.space.center(self.cells(order, duality))

    def get_cell(self, order, duality, index):
        """Signed cell at an index; negatively oriented if it was inserted flipped"""
        return self.index(order, duality).cell(index)

    def get_index(self, cell, order=None, duality=PRIMAL):
        """Index of a cell; by default in the primal index space matching its dimension

        Raises
        ------
        MissingCellError
            if the cell is not part of the calculus
        """
        coordinates = getattr(cell, 'coordinates', cell)
        dim = int(cell_dims(coordinates)[0])
        if order is None:
            order = dim if Duality(duality) is PRIMAL else self.n_dim - dim
        if not self._primal_order(order, duality) == dim:
            raise MissingCellError(f'Cell {tuple(coordinates)} does not index forms of order {order}')
        return self.index(order, duality).index_of(coordinates)

    def insert_cell(self, cell, primal_size=1., dual_size=1.):
        """Insert a single signed cell

        Parameters
        ----------
        cell : SCell or tuple of int
            a negatively signed cell is recorded as flipped
        primal_size : float
        dual_size : float

        Returns
        -------
        int
            index assigned to the cell
        """
        if not isinstance(cell, SCell):
            cell = SCell(cell)
        if not np.all(self.space.contains(cell.coordinates)):
            raise ValueError(f'Cell {cell.coordinates} lies outside of {self.space}')
        index = self.indices[cell.dim].insert(
            cell.coordinates, flipped=not cell.positive, primal_size=primal_size, dual_size=dual_size)
        self._mutated()
        return index

    def insert_cells(self, cells, positive=True, primal_size=1., dual_size=1.):
        """Vectorized insertion of cells of possibly mixed dimension

        Parameters
        ----------
        cells : ndarray, [n_cells, n_dim], int
        positive : bool or ndarray, [n_cells], bool
        primal_size : float or ndarray, [n_cells], float
        dual_size : float or ndarray, [n_cells], float
        """
        cells = as_cells(cells)
        if not np.all(self.space.contains(cells)):
            raise ValueError(f'Some cells lie outside of {self.space}')
        n = len(cells)
        positive = np.broadcast_to(np.asarray(positive, dtype=bool), (n,))
        primal_size = np.broadcast_to(np.asarray(primal_size, dtype=np.float64), (n,))
        dual_size = np.broadcast_to(np.asarray(dual_size, dtype=np.float64), (n,))
        dims = cell_dims(cells)
        for k in np.unique(dims):
            self.indices[k].check_new(cells[dims == k])
        for k in np.unique(dims):
            m = dims == k
            self.indices[k].insert_many(cells[m], flipped=~positive[m], primal_size=primal_size[m], dual_size=dual_size[m])
        self._mutated()

    def erase_cell(self, cell):
        """Remove a cell; indices of cells inserted after it shift down by one"""
        coordinates = getattr(cell, 'coordinates', cell)
        dim = int(cell_dims(coordinates)[0])
        index = self.indices[dim].erase(coordinates)
        self._mutated()
        return index

    # operator builders

    def _primal_derivative(self, k):
        """Signed incidence matrix of primal k-cells on the boundary of primal (k+1)-cells"""
        upper, lower = self.indices[k + 1], self.indices[k]
        shape = len(upper), len(lower)
        if not len(upper) or not len(lower):
            return scipy.sparse.csr_matrix(shape, dtype=np.float64)
        faces, signs = lower_incident_arrays(upper.coordinates)
        cols = lower.indices_of(faces.reshape(-1, self.n_dim)).reshape(faces.shape[:2])
        rows = np.repeat(np.arange(len(upper), dtype=index_dtype)[:, None], faces.shape[1], axis=1)
        data = signs * upper.orientation[:, None] * np.where(cols >= 0, lower.orientation[cols], 0)
        return sparse.coo_matrix(rows, cols, data, shape)

    def derivative(self, order, duality=PRIMAL):
        """Exterior derivative mapping forms of (order, duality) to (order + 1, duality)

        Returns
        -------
        LinearOperator
        """
        duality = Duality(duality)
        if not 0 <= order < self.n_dim:
            raise ValueError(f'No derivative of order {order} in {self.n_dim} dimensions')
        if duality is PRIMAL:
            matrix = self._primal_derivative(order)
        else:
            sign = (-1) ** ((order + 1) * (self.n_dim - 1 - order))
            matrix = sign * self._primal_derivative(self.n_dim - order - 1).T
        logger.debug('derivative %d %s: shape=%s, nnz=%d', order, duality.value, matrix.shape, matrix.nnz)
        return LinearOperator(self, (order, duality), (order + 1, duality), matrix)

    def primal_hodge(self, order):
        """Hodge star mapping primal order-forms to dual (n - order)-forms"""
        index = self.index(order, PRIMAL)
        matrix = sparse.diag(index.dual_size / index.primal_size)
        logger.debug('primal hodge %d: shape=%s', order, matrix.shape)
        return LinearOperator(self, (order, PRIMAL), (self.n_dim - order, DUAL), matrix)

    def dual_hodge(self, order):
        """Hodge star mapping dual order-forms to primal (n - order)-forms"""
        index = self.index(order, DUAL)
        sign = (-1) ** (order * (self.n_dim - order))
        matrix = sparse.diag(sign * index.primal_size / index.dual_size)
        logger.debug('dual hodge %d: shape=%s', order, matrix.shape)
        return LinearOperator(self, (order, DUAL), (self.n_dim - order, PRIMAL), matrix)

    def hodge(self, order, duality=PRIMAL):
        """Hodge star on forms of (order, duality), mapping to (n - order, other duality)"""
        if Duality(duality) is PRIMAL:
            return self.primal_hodge(order)
        return self.dual_hodge(order)

    def identity(self, order, duality=PRIMAL):
        return identity(self, order, duality)

    def antiderivative(self, order, duality=PRIMAL):
        """Codifferential hodge * d * hodge, mapping (order, duality) to (order - 1, duality)"""
        duality = Duality(duality)
        if not 0 < order <= self.n_dim:
            raise ValueError(f'No antiderivative of order {order} in {self.n_dim} dimensions')
        other = duality.other
        n = self.n_dim
        return self.hodge(n - order + 1, other) * self.derivative(n - order, other) * self.hodge(order, duality)

    def laplace(self, order=0, duality=PRIMAL):
        """Hodge Laplacian d * ad + ad * d on forms of (order, duality); positive semi-definite"""
        duality = Duality(duality)
        terms = []
        if order > 0:
            terms.append(self.derivative(order - 1, duality) * self.antiderivative(order, duality))
        if order < self.n_dim:
            terms.append(self.antiderivative(order + 1, duality) * self.derivative(order, duality))
        laplace = terms[0]
        for term in terms[1:]:
            laplace = laplace + term
        return laplace

    # flat and sharp

    def edge_directions(self, duality=PRIMAL):
        """Orientation of the 1-cells of a complex relative to the coordinate axes

        Returns
        -------
        axis : ndarray, [n_edges], int
            axis each edge is parallel to
        sign : ndarray, [n_edges], int
            +1 if the edge points along increasing coordinate, -1 otherwise
        endpoints : ndarray, [n_edges, 2], index_dtype
            index of the 0-cell at the lower and upper end of each edge; -1 where absent
        """
        duality = Duality(duality)
        index = self.index(1, duality)
        cells = index.coordinates
        if duality is PRIMAL:
            axis = open_axes(cells).reshape(-1)
            sign = index.orientation.astype(np.int64)
        else:
            axis = closed_axes(cells).reshape(-1)
            sign = (-1) ** (self.n_dim + axis) * index.orientation
        if not len(cells):
            return axis, sign, np.zeros((0, 2), dtype=index_dtype)
        unit = np.eye(self.n_dim, dtype=cells.dtype)[axis]
        zero = self.index(0, duality)
        endpoints = np.stack([zero.indices_of(cells - unit), zero.indices_of(cells + unit)], axis=1)
        return axis, sign, endpoints

    def flat_operator(self, duality=PRIMAL):
        """Sparse matrix mapping stacked vector field components to 1-form coefficients

        Returns
        -------
        sparse matrix, [n_edges, n_dim * n_zero_cells]
            columns are ordered component-major, matching VectorField.coordinates.flatten()
        """
        axis, sign, endpoints = self.edge_directions(duality)
        n_zero = self.length(0, duality)
        rows = np.repeat(np.arange(len(axis)), 2)
        cols = np.where(endpoints >= 0, axis[:, None] * n_zero + endpoints, -1).reshape(-1)
        data = np.repeat(sign, 2)
        A = sparse.coo_matrix(rows, cols, data, (len(axis), self.n_dim * n_zero))
        # mean of the endpoint samples, times a unit edge length
        return sparse.normalize_l1(A, axis=1)

    def sharp_operator(self, duality=PRIMAL):
        """Sparse matrix mapping 1-form coefficients to stacked vector field components

        Each component at a 0-cell is the mean of the oriented values
        of the incident edges parallel to that axis

        Returns
        -------
        sparse matrix, [n_dim * n_zero_cells, n_edges]
        """
        axis, sign, endpoints = self.edge_directions(duality)
        n_zero = self.length(0, duality)
        rows = np.where(endpoints >= 0, axis[:, None] * n_zero + endpoints, -1).reshape(-1)
        cols = np.repeat(np.arange(len(axis)), 2)
        data = np.repeat(sign, 2)
        A = sparse.coo_matrix(rows, cols, data, (self.n_dim * n_zero, len(axis)))
        return sparse.normalize_l1(A, axis=1)

    def flat(self, field):
        """Convert a vector field sampled at 0-cells into a 1-form of the same duality"""
        if not isinstance(field, VectorField):
            raise TypeError(f'Expected a VectorField, got {type(field).__name__}')
        if field.calculus is not self:
            raise TagMismatch('Vector field belongs to a different calculus')
        field.check_fresh()
        values = self.flat_operator(field.duality) @ field.coordinates.reshape(-1)
        return Form(self, 1, field.duality, values)

    def sharp(self, form):
        """Reconstruct a vector field at 0-cells from a 1-form"""
        if not isinstance(form, Form):
            raise TypeError(f'Expected a Form, got {type(form).__name__}')
        if form.order != 1:
            raise ValueError(f'Sharp applies to 1-forms, got a {form.order}-form')
        form.check_fresh()
        coordinates = self.sharp_operator(form.duality) @ form.values
        return VectorField(self, form.duality, coordinates.reshape(self.n_dim, -1))

    # orientation

    def relative_orientation(self, order=None):
        """Try to find a consistent relative orientation of all order-cells

        Faces shared by exactly two order-cells must appear with opposite signs on their boundaries.
        Within each connected component, the first cell keeps its orientation.

        Parameters
        ----------
        order : int, optional
            defaults to the highest order present

        Returns
        -------
        ndarray, [n_cells], bool
            False for cells whose orientation should be reversed

        Raises
        ------
        ValueError
            if the cells do not form an orientable manifold
        """
        if order is None:
            order = max(k for k in range(self.n_dim + 1) if len(self.indices[k]))
        n = len(self.indices[order])
        if order == 0 or n == 0:
            return np.ones(n, dtype=bool)
        inc = self._primal_derivative(order - 1).T.tocsr().astype(np.int64)
        inc.eliminate_zeros()

        # filter out faces that are not shared by exactly two cells
        interior = inc[inc.getnnz(axis=1) == 2]
        interior.sort_indices()
        # each shared face yields an exclusive-or constraint between its two cells
        clauses = ((interior.indices + 1) * interior.data).reshape(-1, 2)
        if not len(clauses):
            return np.ones(n, dtype=bool)
        orientation = pycosat.solve(clauses.tolist() + (-clauses).tolist(), vars=n)
        if orientation == 'UNSAT':
            raise ValueError('Cells do not form an orientable manifold')
        orientation = np.array(orientation) > 0

        # normalize such that the first cell of each connected component is kept
        graph = interior.T @ interior
        _, labels = scipy.sparse.csgraph.connected_components(abs(graph), directed=False)
        first = npi.group_by(labels).first(orientation)[1]
        return orientation == first[labels]

    def is_oriented(self, order=None):
        return bool(np.all(self.relative_orientation(order)))

    def fix_orientation(self, order=None):
        """Flip cells as needed to make the orientation consistent

        Returns
        -------
        int
            number of cells flipped
        """
        if order is None:
            order = max(k for k in range(self.n_dim + 1) if len(self.indices[k]))
        keep = self.relative_orientation(order)
        n_flipped = int(np.count_nonzero(~keep))
        if n_flipped:
            self.indices[order].toggle(~keep)
            self._mutated()
            logger.debug('flipped %d cells of order %d', n_flipped, order)
        return n_flipped

    def __repr__(self):
        sizes = [len(i) for i in self.indices]
        return f'Calculus(n_dim={self.n_dim}, cells={sizes})'
