"""Generation of some simple digital domains"""

import numpy as np
import numpy_indexed as npi

from digidec.topology import coordinate_dtype
from digidec.topology.khalimsky import lower_incident_arrays


def box_points(shape):
    """All digital points in [0, shape)

    Returns
    -------
    ndarray, [prod(shape), n_dim], int
    """
    shape = tuple(shape)
    return np.indices(shape, dtype=coordinate_dtype).reshape(len(shape), -1).T


def ring_points(shape, inner=None, outer=None, ord=2, center=None, axes=None):
    """Digital points of a box whose distance to a center lies within [inner, outer]

    Parameters
    ----------
    shape : tuple of int
    inner : float, optional
        defaults to a quarter of the smallest extent
    outer : float, optional
        defaults to half of the smallest extent
    ord : {2, np.inf, ...}
        order of the norm used as distance; np.inf gives square rings
    center : array_like, [n_dim], float, optional
        defaults to the center of the box
    axes : tuple of int, optional
        axes over which the distance is measured; all axes by default.
        Points are extruded along the remaining axes

    Returns
    -------
    ndarray, [n_points, n_dim], int
    """
    points = box_points(shape)
    shape = np.asarray(shape)
    axes = np.arange(len(shape)) if axes is None else np.asarray(axes)
    extent = shape[axes].min()
    inner = extent / 4. if inner is None else inner
    outer = extent / 2. if outer is None else outer
    center = (shape - 1) / 2. if center is None else np.asarray(center, dtype=np.float64)

    delta = points[:, axes] - center[axes]
    r = np.linalg.norm(delta, ord=ord, axis=1)
    return points[(r >= inner) & (r <= outer)]


def double_ring_points(shape, inner=None, outer=None, ord=2):
    """Two rings side by side; the box is split in two halves along the first axis

    Parameters
    ----------
    shape : tuple of int
    inner, outer : float, optional
        radii of each ring; default to a quarter and half of the smallest extent of a half-box

    Returns
    -------
    ndarray, [n_points, n_dim], int
    """
    shape = np.asarray(shape)
    half = shape.copy()
    half[0] = shape[0] // 2
    left = ring_points(half, inner, outer, ord=ord)
    offset = np.zeros_like(shape)
    offset[0] = shape[0] - half[0]
    right = ring_points(half, inner, outer, ord=ord) + offset
    return npi.unique(np.concatenate([left, right], axis=0))


def solid_boundary(points):
    """Oriented boundary surface of a solid made of the spels of a set of points

    Parameters
    ----------
    points : ndarray, [n_points, n_dim], int

    Returns
    -------
    cells : ndarray, [n_faces, n_dim], int
        Khalimsky coordinates of the (n-1)-cells bounding the solid
    positive : ndarray, [n_faces], bool
        orientation such that the signed faces form the boundary of the positively oriented solid
    """
    points = npi.unique(np.asarray(points, dtype=coordinate_dtype))
    n_dim = points.shape[1]
    faces, signs = lower_incident_arrays(2 * points + 1)
    faces = faces.reshape(-1, n_dim)
    signs = signs.reshape(-1)
    # interior faces are shared by two spels
    boundary = npi.multiplicity(faces) == 1
    return faces[boundary], signs[boundary] > 0


def ring_surface(shape=(12, 12, 4), inner=2, outer=None):
    """Torus-like closed surface; the boundary of a square ring extruded along the last axis

    Returns
    -------
    cells : ndarray, [n_faces, 3], int
    positive : ndarray, [n_faces], bool
    """
    points = ring_points(shape, inner, outer, ord=np.inf, axes=(0, 1))
    return solid_boundary(points)


def box_surface(shape=(4, 4, 4)):
    """Sphere-like closed surface; the boundary of a box"""
    return solid_boundary(box_points(shape))
