"""Khalimsky space; the cubical cell complex implied by a digital domain

Every cell is an integer tuple of Khalimsky coordinates.
Along each axis, an even coordinate denotes a closed, point-like extent,
and an odd coordinate an open, segment-like extent.
The dimension of a cell is its number of open axes.

The digital point p corresponds to the spel 2p+1 (an n-cell) and to the pointel 2p (a 0-cell)
"""

from collections import namedtuple

import numpy as np
import numpy_indexed as npi
from cached_property import cached_property

from digidec.topology import coordinate_dtype, sign_dtype


class SCell(namedtuple('SCell', ['coordinates', 'positive'])):
    """Signed cell; a cell together with an orientation bit"""
    __slots__ = ()

    def __new__(cls, coordinates, positive=True):
        return super(SCell, cls).__new__(cls, tuple(int(c) for c in coordinates), bool(positive))

    @property
    def sign(self):
        return 1 if self.positive else -1

    @property
    def dim(self):
        return sum(c % 2 for c in self.coordinates)

    def opposite(self):
        return SCell(self.coordinates, not self.positive)

    def __neg__(self):
        return self.opposite()


def as_cells(cells):
    """Cast to a coordinate array

    Parameters
    ----------
    cells : array_like, [n_cells, n_dim] or [n_dim], int

    Returns
    -------
    ndarray, [n_cells, n_dim], coordinate_dtype
    """
    if isinstance(cells, SCell):
        cells = cells.coordinates
    cells = np.asarray(cells, dtype=coordinate_dtype)
    if cells.ndim == 1:
        cells = cells[None, :]
    return cells


def cell_dims(cells):
    """Dimension of each cell; its number of odd coordinates"""
    return (as_cells(cells) % 2).sum(axis=-1)


def open_axes(cells):
    """Open axes of a set of cells of equal dimension

    Parameters
    ----------
    cells : ndarray, [n_cells, n_dim], int

    Returns
    -------
    ndarray, [n_cells, k], int
        open axes of each cell, in increasing order

    Raises
    ------
    ValueError
        if not all cells have the same dimension
    """
    cells = as_cells(cells)
    mask = cells % 2 == 1
    n_open = mask.sum(axis=1)
    if len(cells) and not np.all(n_open == n_open[0]):
        raise ValueError('Cells need to be of equal dimension')
    k = n_open[0] if len(cells) else 0
    # nonzero iterates in row-major order, so axes come out sorted within each row
    return np.nonzero(mask)[1].reshape(len(cells), k)


def closed_axes(cells):
    """Closed axes of a set of cells of equal dimension; see `open_axes`"""
    cells = as_cells(cells)
    return open_axes(cells + 1)


def lower_incident_arrays(cells):
    """Oriented boundary of a set of k-cells

    Parameters
    ----------
    cells : ndarray, [n_cells, n_dim], int
        cells of equal dimension k

    Returns
    -------
    faces : ndarray, [n_cells, 2 * k, n_dim], int
        the (k-1)-cells bounding each cell; upper faces first, then lower faces
    signs : ndarray, [n_cells, 2 * k], sign_dtype
        incidence sign of each face

    Notes
    -----
    Signs follow the cubical product rule; along the open axis at position p,
    the upper face has sign (-1)**p and the lower face -(-1)**p.
    As a result, the boundary of a boundary vanishes identically.
    """
    cells = as_cells(cells)
    axes = open_axes(cells)
    n_cells, k = axes.shape
    n_dim = cells.shape[1]

    unit = np.eye(n_dim, dtype=coordinate_dtype)[axes]
    parity = ((-1) ** np.arange(k)).astype(sign_dtype)
    faces = np.concatenate([cells[:, None, :] + unit, cells[:, None, :] - unit], axis=1)
    signs = np.concatenate([
        np.broadcast_to(parity, (n_cells, k)),
        np.broadcast_to(-parity, (n_cells, k)),
    ], axis=1)
    return faces, signs.astype(sign_dtype)


def upper_incident_arrays(cells):
    """Oriented coboundary of a set of k-cells

    Parameters
    ----------
    cells : ndarray, [n_cells, n_dim], int
        cells of equal dimension k

    Returns
    -------
    cofaces : ndarray, [n_cells, 2 * (n_dim - k), n_dim], int
        the (k+1)-cells having each cell on their boundary; cofaces along increasing coordinate first
    signs : ndarray, [n_cells, 2 * (n_dim - k)], sign_dtype
        incidence sign of each cell on the boundary of the coface;
        identical to the sign produced by `lower_incident_arrays` applied to the coface
    """
    cells = as_cells(cells)
    axes = closed_axes(cells)
    n_cells, m = axes.shape
    n_dim = cells.shape[1]

    unit = np.eye(n_dim, dtype=coordinate_dtype)[axes]
    # position of the newly opened axis among the open axes of the coface
    mask = (cells % 2).astype(np.int64)
    position = np.take_along_axis(np.cumsum(mask, axis=1), axes, axis=1)
    parity = ((-1) ** position).astype(sign_dtype)
    cofaces = np.concatenate([cells[:, None, :] + unit, cells[:, None, :] - unit], axis=1)
    # the cell is the lower face of the coface along increasing coordinate, and vice versa
    signs = np.concatenate([-parity, parity], axis=1)
    return cofaces, signs.astype(sign_dtype)


class KhalimskySpace(object):
    """Bounded Khalimsky space over a box of digital points

    This is the digital-topology collaborator consumed by `Calculus`;
    it answers existence, dimension and oriented incidence queries for cells
    """

    def __init__(self, lower, upper):
        """

        Parameters
        ----------
        lower : array_like, [n_dim], int
            lowest digital point of the domain, inclusive
        upper : array_like, [n_dim], int
            highest digital point of the domain, inclusive
        """
        self.lower = np.asarray(lower, dtype=coordinate_dtype).reshape(-1)
        self.upper = np.asarray(upper, dtype=coordinate_dtype).reshape(-1)
        if not self.lower.shape == self.upper.shape:
            raise ValueError('Bounds need to be of equal dimension')
        if np.any(self.upper < self.lower):
            raise ValueError('Empty domain')

    @classmethod
    def from_shape(cls, shape):
        """Space over the digital points in [0, shape)"""
        shape = np.asarray(shape, dtype=coordinate_dtype)
        return cls(lower=np.zeros_like(shape), upper=shape - 1)

    @cached_property
    def n_dim(self):
        return len(self.lower)

    @cached_property
    def shape(self):
        return tuple(self.upper - self.lower + 1)

    @cached_property
    def bounds(self):
        """Inclusive range of valid Khalimsky coordinates

        Returns
        -------
        ndarray, [2, n_dim], int
        """
        return np.array([2 * self.lower, 2 * self.upper + 2])

    def contains(self, cells):
        """Test which cells lie inside the bounded space

        Returns
        -------
        ndarray, [n_cells], bool
        """
        cells = as_cells(cells)
        lo, hi = self.bounds
        return np.all((cells >= lo) & (cells <= hi), axis=-1)

    def spels(self, points):
        """Khalimsky coordinates of the n-cells of digital points"""
        return 2 * np.asarray(points, dtype=coordinate_dtype) + 1

    def pointels(self, points):
        """Khalimsky coordinates of the 0-cells at digital points"""
        return 2 * np.asarray(points, dtype=coordinate_dtype)

    def spel(self, point, positive=True):
        return SCell(self.spels(point), positive)

    def pointel(self, point, positive=True):
        return SCell(self.pointels(point), positive)

    def cell(self, coordinates, positive=True):
        """Signed cell from raw Khalimsky coordinates"""
        cell = SCell(coordinates, positive)
        if not len(cell.coordinates) == self.n_dim:
            raise ValueError('Cell dimension does not match space dimension')
        if not self.contains(cell.coordinates)[0]:
            raise ValueError(f'Cell {cell.coordinates} lies outside of the space')
        return cell

    def center(self, cells):
        """Embedding position of cells; spel 2p+1 sits at p + 0.5"""
        return as_cells(cells) / 2.

    def lower_incident(self, scell):
        """Signed boundary faces of a signed cell

        Returns
        -------
        list of SCell
        """
        faces, signs = lower_incident_arrays(scell.coordinates)
        return [SCell(f, s * scell.sign > 0) for f, s in zip(faces[0], signs[0])]

    def upper_incident(self, scell):
        """Signed cofaces of a signed cell that lie inside the space

        The sign of each coface is such that `scell` appears with the sign
        of `scell` on its boundary
        """
        cofaces, signs = upper_incident_arrays(scell.coordinates)
        inside = self.contains(cofaces[0])
        return [SCell(f, s * scell.sign > 0) for f, s, i in zip(cofaces[0], signs[0], inside) if i]

    def closure(self, cells):
        """All faces of all given cells, the cells themselves included

        Parameters
        ----------
        cells : ndarray, [n_cells, n_dim], int

        Returns
        -------
        ndarray, [n_closure, n_dim], int
            unique cells, in lexicographical order
        """
        cells = as_cells(cells)
        if not len(cells):
            return cells
        result = [cells]
        dims = cell_dims(cells)
        for d in np.unique(dims):
            current = cells[dims == d]
            while d > 0:
                faces, _ = lower_incident_arrays(current)
                current = npi.unique(faces.reshape(-1, self.n_dim))
                result.append(current)
                d -= 1
        return npi.unique(np.concatenate(result, axis=0))

    def __repr__(self):
        return f'KhalimskySpace(lower={self.lower.tolist()}, upper={self.upper.tolist()})'
