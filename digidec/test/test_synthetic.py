
import numpy as np
import numpy.testing as npt
import numpy_indexed as npi

from digidec import synthetic
from digidec.topology.khalimsky import cell_dims, lower_incident_arrays


def test_box_points():
    points = synthetic.box_points((3, 2))
    assert points.shape == (6, 2)
    assert len(npi.unique(points)) == 6
    npt.assert_array_equal(points.max(axis=0), [2, 1])


def test_square_ring():
    points = synthetic.ring_points((12, 12), inner=2, outer=6, ord=np.inf)
    assert len(points) == 12 * 12 - 4 * 4
    hole = np.all((points >= 4) & (points <= 7), axis=1)
    assert not hole.any()


def test_round_ring():
    points = synthetic.ring_points((10, 10))
    r = np.linalg.norm(points - 4.5, axis=1)
    assert np.all(r >= 2.5)
    assert np.all(r <= 5)
    assert [2, 5] in points.tolist()


def test_double_ring():
    points = synthetic.double_ring_points((24, 12), ord=np.inf)
    left = points[points[:, 0] < 12]
    right = points[points[:, 0] >= 12]
    npt.assert_array_equal(left, right - [12, 0])


def test_box_surface():
    cells, positive = synthetic.box_surface((2, 3, 4))
    assert np.all(cell_dims(cells) == 2)
    assert len(cells) == 2 * (2 * 3 + 3 * 4 + 2 * 4)
    assert positive.dtype == bool


def test_ring_surface_is_closed():
    cells, positive = synthetic.ring_surface((12, 12, 4))
    # every edge of a closed surface is shared by exactly two faces
    faces, _ = lower_incident_arrays(cells)
    _, count = npi.count(faces.reshape(-1, 3))
    npt.assert_array_equal(count, 2)
