
import numpy as np
import numpy.testing as npt

from digidec import synthetic
from digidec.calculus import Calculus
from digidec.topology import PRIMAL
from digidec.topology.khalimsky import KhalimskySpace


def ring_surface(flips=None):
    shape = (12, 12, 4)
    cells, positive = synthetic.ring_surface(shape)
    if flips is not None:
        positive = positive ^ flips
    return Calculus.from_cells(KhalimskySpace.from_shape(shape), cells, positive)


def test_surface_is_oriented():
    calculus = ring_surface()
    assert calculus.is_oriented(2)
    assert calculus.is_oriented()
    assert calculus.fix_orientation() == 0


def test_fix_orientation():
    cells, positive = synthetic.ring_surface((12, 12, 4))
    flips = np.random.RandomState(0).rand(len(cells)) > .7
    flips[0] = False
    calculus = ring_surface(flips)
    assert not calculus.is_oriented(2)
    keep = calculus.relative_orientation(2)
    npt.assert_array_equal(keep, ~flips)

    generation = calculus.generation
    assert calculus.fix_orientation(2) == np.count_nonzero(flips)
    assert calculus.generation == generation + 1
    assert calculus.is_oriented(2)
    # the first cell keeps its orientation; the others follow it
    npt.assert_array_equal(calculus.index(2).flipped, ~positive)


def test_fix_orientation_keeps_first_cell():
    cells, positive = synthetic.ring_surface((12, 12, 4))
    flips = np.zeros(len(cells), dtype=bool)
    flips[0] = True
    calculus = ring_surface(flips)
    assert calculus.fix_orientation(2) == len(cells) - 1
    npt.assert_array_equal(calculus.index(2).flipped, positive)


def test_consistent_orientation_closes_chain():
    """The sum of consistently oriented faces of a closed surface has no boundary"""
    cells, _ = synthetic.ring_surface((12, 12, 4))
    calculus = ring_surface(np.random.RandomState(1).rand(len(cells)) > .5)
    calculus.fix_orientation(2)
    d1 = calculus.derivative(1, PRIMAL).matrix
    npt.assert_array_equal(d1.T @ np.ones(len(cells)), 0)


def test_disconnected_components():
    """Each connected component is normalized to its own first cell"""
    shape = (20, 4, 4)
    left, pl = synthetic.box_surface((4, 4, 4))
    right, pr = synthetic.box_surface((4, 4, 4))
    right = right + [16, 0, 0]
    cells = np.concatenate([left, right])
    positive = np.concatenate([pl, ~pr])
    calculus = Calculus.from_cells(KhalimskySpace.from_shape(shape), cells, positive)
    assert calculus.is_oriented(2)


def test_planar_region():
    """Cells of full dimension are always consistently oriented"""
    calculus = Calculus.from_points(synthetic.ring_points((8, 8)))
    assert calculus.is_oriented()
    assert calculus.relative_orientation(0).all()
