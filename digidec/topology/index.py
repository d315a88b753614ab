"""Dense index spaces over the cells of a single dimension

A dual k-cell is identified with the primal (n-k)-cell it crosses,
so one `CellIndex` per primal dimension serves both complexes
"""

from collections import namedtuple

import numpy as np
import numpy_indexed as npi
from cached_property import cached_property

from digidec.topology import index_dtype, sign_dtype, coordinate_dtype
from digidec.topology import DuplicateCellError, MissingCellError
from digidec.topology.khalimsky import SCell, as_cells, cell_dims


CellProperty = namedtuple('CellProperty', ['index', 'flipped', 'primal_size', 'dual_size'])


class CellIndex(object):
    """Bidirectional map between the primal cells of one dimension and [0, len)

    Indices are assigned in insertion order; erasing a cell compacts the remaining
    indices while preserving their relative order.
    Each cell carries a pair of measures, and a flag recording whether it was
    inserted with an orientation opposite to its native one
    """

    def __init__(self, n_dim, order):
        self.n_dim = n_dim
        self.order = order
        self._cells = []
        self._positions = {}
        self._flipped = []
        self._primal_size = []
        self._dual_size = []

    def _invalidate(self):
        for name in ['coordinates', 'flipped', 'orientation', 'primal_size', 'dual_size']:
            self.__dict__.pop(name, None)

    def _check_cells(self, cells):
        cells = as_cells(cells)
        if not cells.shape[1] == self.n_dim:
            raise ValueError(f'Expected cells of {self.n_dim} coordinates, got {cells.shape[1]}')
        if not np.all(cell_dims(cells) == self.order):
            raise ValueError(f'Expected cells of dimension {self.order}')
        return cells

    def check_new(self, cells):
        """Validate a batch of cells for insertion, without modifying the index

        Raises
        ------
        DuplicateCellError
            if the batch contains duplicates, or cells that are already indexed
        """
        cells = self._check_cells(cells)
        if len(cells) and len(npi.unique(cells)) != len(cells):
            raise DuplicateCellError('Duplicate cells within a single insertion')
        if len(self) and len(cells) and np.any(npi.contains(self.coordinates, cells)):
            raise DuplicateCellError('Some cells were already inserted')
        return cells

    def __len__(self):
        return len(self._cells)

    def __contains__(self, cell):
        if isinstance(cell, SCell):
            cell = cell.coordinates
        return tuple(int(c) for c in cell) in self._positions

    def __iter__(self):
        return iter(self._cells)

    def insert(self, cell, flipped=False, primal_size=1., dual_size=1.):
        """Append a single cell to the index

        Parameters
        ----------
        cell : tuple of int or SCell
        flipped : bool
            whether the cell is stored with its orientation reversed
        primal_size : float
        dual_size : float

        Returns
        -------
        int
            index assigned to the cell

        Raises
        ------
        DuplicateCellError
            if the cell is already present
        """
        key = tuple(int(c) for c in self._check_cells(getattr(cell, 'coordinates', cell))[0])
        if key in self._positions:
            raise DuplicateCellError(f'Cell {key} was already inserted')
        index = len(self._cells)
        self._positions[key] = index
        self._cells.append(key)
        self._flipped.append(bool(flipped))
        self._primal_size.append(float(primal_size))
        self._dual_size.append(float(dual_size))
        self._invalidate()
        return index

    def insert_many(self, cells, flipped=False, primal_size=1., dual_size=1.):
        """Vectorized insertion; arguments broadcast against the number of cells

        Returns
        -------
        ndarray, [n_cells], index_dtype
            indices assigned to the cells, in the order given
        """
        cells = self.check_new(cells)
        n = len(cells)
        if n == 0:
            return np.zeros(0, dtype=index_dtype)

        flipped = np.broadcast_to(np.asarray(flipped, dtype=bool), (n,))
        primal_size = np.broadcast_to(np.asarray(primal_size, dtype=np.float64), (n,))
        dual_size = np.broadcast_to(np.asarray(dual_size, dtype=np.float64), (n,))

        offset = len(self._cells)
        keys = [tuple(c) for c in cells.tolist()]
        self._positions.update({k: offset + i for i, k in enumerate(keys)})
        self._cells.extend(keys)
        self._flipped.extend(flipped.tolist())
        self._primal_size.extend(primal_size.tolist())
        self._dual_size.extend(dual_size.tolist())
        self._invalidate()
        return np.arange(offset, offset + n, dtype=index_dtype)

    def erase(self, cell):
        """Remove a cell, compacting the indices of the cells inserted after it

        Returns
        -------
        int
            the index the cell used to have
        """
        key = tuple(int(c) for c in getattr(cell, 'coordinates', cell))
        try:
            index = self._positions[key]
        except KeyError:
            raise MissingCellError(key)
        for l in [self._cells, self._flipped, self._primal_size, self._dual_size]:
            del l[index]
        self._positions = {k: i for i, k in enumerate(self._cells)}
        self._invalidate()
        return index

    def index_of(self, cell):
        """Index of a single cell

        Raises
        ------
        MissingCellError
            if the cell is not indexed
        """
        key = tuple(int(c) for c in getattr(cell, 'coordinates', cell))
        try:
            return self._positions[key]
        except KeyError:
            raise MissingCellError(key)

    def indices_of(self, cells, missing=-1):
        """Vectorized lookup of many cells

        Parameters
        ----------
        cells : ndarray, [n_cells, n_dim], int
        missing : int or 'raise'
            value substituted for absent cells, or 'raise' to raise MissingCellError

        Returns
        -------
        ndarray, [n_cells], index_dtype
        """
        cells = as_cells(cells)
        if len(self) == 0 or len(cells) == 0:
            idx = np.full(len(cells), -1, dtype=index_dtype)
        else:
            idx = npi.indices(self.coordinates, cells, missing=-1).astype(index_dtype)
        if missing == 'raise':
            if np.any(idx == -1):
                raise MissingCellError(tuple(cells[np.argmax(idx == -1)].tolist()))
            return idx
        idx[idx == -1] = missing
        return idx

    def cell(self, index):
        """Signed cell at an index; negative if the cell was inserted flipped"""
        return SCell(self._cells[index], not self._flipped[index])

    def properties(self, index):
        return CellProperty(index, self._flipped[index], self._primal_size[index], self._dual_size[index])

    def toggle(self, mask):
        """Reverse the stored orientation of the cells selected by a boolean mask"""
        for i in np.flatnonzero(mask):
            self._flipped[i] = not self._flipped[i]
        self._invalidate()

    @cached_property
    def coordinates(self):
        """Cell coordinates in index order

        Returns
        -------
        ndarray, [n_cells, n_dim], coordinate_dtype
        """
        return np.array(self._cells, dtype=coordinate_dtype).reshape(len(self), self.n_dim)

    @cached_property
    def flipped(self):
        return np.array(self._flipped, dtype=bool)

    @cached_property
    def orientation(self):
        """Orientation factor of each cell; -1 for flipped cells, +1 otherwise"""
        return np.where(self.flipped, -1, 1).astype(sign_dtype)

    @cached_property
    def primal_size(self):
        return np.array(self._primal_size, dtype=np.float64)

    @cached_property
    def dual_size(self):
        return np.array(self._dual_size, dtype=np.float64)

    def __repr__(self):
        return f'CellIndex(order={self.order}, n_cells={len(self)})'
