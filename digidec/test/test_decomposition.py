
import numpy as np
import numpy.testing as npt
import pytest

from digidec import synthetic
from digidec.calculus import Calculus
from digidec.decomposition import helmholtz_decomposition
from digidec.form import Form, VectorField
from digidec.topology import PRIMAL, DUAL
from digidec.topology.khalimsky import KhalimskySpace


def wavy(p):
    return np.stack([np.cos(-.5 * p[:, 0] + .3 * p[:, 1]), np.cos(.4 * p[:, 0] + .8 * p[:, 1])], axis=1)


def rotation(center):
    def field(p):
        q = p - center
        return np.stack([-q[:, 1], q[:, 0]] + [np.zeros(len(p))] * (p.shape[1] - 2), axis=1)
    return field


def radial(center):
    def field(p):
        return p - center
    return field


def circulating(duality, center):
    """A field winding around a hole; rotational on the primal complex, radial on the dual complex"""
    return rotation(center) if duality is PRIMAL else radial(center)


def check_components(one_form, decomposition):
    calculus = one_form.calculus
    duality = one_form.duality
    total = decomposition.curl_free + decomposition.div_free + decomposition.harmonic
    npt.assert_allclose(total.values, one_form.values, atol=1e-10)
    # the harmonic remainder is closed and co-closed
    h = decomposition.harmonic
    scale = max(one_form.norm(), 1)
    assert (calculus.derivative(1, duality) * h).norm() < 1e-8 * scale
    assert (calculus.antiderivative(1, duality) * h).norm() < 1e-8 * scale


@pytest.mark.parametrize('duality', [PRIMAL, DUAL])
def test_square_has_no_harmonic_part(duality):
    calculus = Calculus.from_domain((9, 7))
    one_form = calculus.flat(VectorField.from_function(calculus, duality, wavy))
    decomposition = helmholtz_decomposition(one_form)
    check_components(one_form, decomposition)
    assert decomposition.harmonic.norm() < 1e-8 * one_form.norm()
    assert decomposition.potential.tags == (0, duality)
    assert decomposition.vector_potential.tags == (2, duality)


@pytest.mark.parametrize('duality', [PRIMAL, DUAL])
def test_random_form_on_square(duality):
    calculus = Calculus.from_domain((6, 6))
    np.random.seed(4)
    one_form = Form(calculus, 1, duality, np.random.normal(size=calculus.length(1, duality)))
    decomposition = helmholtz_decomposition(one_form)
    assert decomposition.harmonic.norm() < 1e-8 * one_form.norm()


@pytest.mark.parametrize('duality', [PRIMAL, DUAL])
def test_annulus_has_harmonic_part(annulus, duality):
    center = np.array([6., 6.])
    one_form = annulus.flat(VectorField.from_function(annulus, duality, circulating(duality, center)))
    decomposition = helmholtz_decomposition(one_form)
    check_components(one_form, decomposition)
    assert decomposition.harmonic.norm() > 0.1 * one_form.norm()


@pytest.mark.parametrize('duality', [PRIMAL, DUAL])
def test_double_ring(duality):
    points = synthetic.double_ring_points((24, 12), ord=np.inf)
    calculus = Calculus.from_points(points, KhalimskySpace.from_shape((24, 12)))

    def field(p):
        center = np.where(p[:, :1] < 12, [6., 6.], [18., 6.])
        return circulating(duality, center)(p)

    one_form = calculus.flat(VectorField.from_function(calculus, duality, field))
    decomposition = helmholtz_decomposition(one_form, 'sparse_qr')
    check_components(one_form, decomposition)
    assert decomposition.harmonic.norm() > 0.05 * one_form.norm()


@pytest.mark.parametrize('duality', [PRIMAL, DUAL])
def test_annulus_harmonic_space(annulus, duality):
    """A single hole gives a one dimensional space of harmonic 1-forms"""
    L = annulus.laplace(1, duality).to_dense()
    assert np.linalg.matrix_rank(L, tol=1e-8) == len(L) - 1


def surface_calculus(cells, positive, shape):
    return Calculus.from_cells(KhalimskySpace.from_shape(shape), cells, positive)


def test_box_surface_has_no_harmonic_part():
    shape = (4, 4, 4)
    calculus = surface_calculus(*synthetic.box_surface(shape), shape)
    np.random.seed(5)
    one_form = Form(calculus, 1, PRIMAL, np.random.normal(size=calculus.length(1)))
    decomposition = helmholtz_decomposition(one_form)
    check_components(one_form, decomposition)
    assert decomposition.harmonic.norm() < 1e-8 * one_form.norm()


def test_ring_surface_has_harmonic_part():
    shape = (12, 12, 4)
    cells, positive = synthetic.ring_surface(shape)
    calculus = surface_calculus(cells, positive, shape)
    center = np.array([6., 6., 2.])
    one_form = calculus.flat(VectorField.from_function(calculus, PRIMAL, rotation(center)))
    decomposition = helmholtz_decomposition(one_form)
    check_components(one_form, decomposition)
    assert decomposition.harmonic.norm() > 0.1 * one_form.norm()

    # reversing the orientation of arbitrary faces leaves the 1-form components unchanged
    flips = np.random.RandomState(6).rand(len(cells)) > .5
    flipped = surface_calculus(cells, positive ^ flips, shape)
    one_form = Form(flipped, 1, PRIMAL, one_form.values)
    npt.assert_allclose(helmholtz_decomposition(one_form).harmonic.values, decomposition.harmonic.values, atol=1e-8)


def test_requires_one_form(grid):
    with pytest.raises(ValueError):
        helmholtz_decomposition(Form(grid, 0, PRIMAL))
    with pytest.raises(ValueError):
        helmholtz_decomposition(Form(Calculus.from_domain((4,)), 1, PRIMAL))
