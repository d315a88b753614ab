
import numpy as np
import pytest

from digidec import synthetic
from digidec.calculus import Calculus


@pytest.fixture
def grid():
    """Square 10x10 grid of digital points"""
    return Calculus.from_domain((10, 10))


@pytest.fixture
def annulus():
    """Square ring around a 4x4 hole"""
    return Calculus.from_points(synthetic.ring_points((12, 12), inner=2, outer=6, ord=np.inf))


@pytest.fixture(params=[1, 2, 3])
def box(request):
    """Full box of digital points in 1, 2 and 3 dimensions"""
    return Calculus.from_domain((5, 4, 3)[:request.param])
