"""Hodge-Helmholtz decomposition of 1-forms"""

import logging
from collections import namedtuple

from digidec.form import Form
from digidec.solvers import Solver, Strategy, SolverInfo

logger = logging.getLogger(__name__)


Decomposition = namedtuple('Decomposition', ['potential', 'vector_potential', 'curl_free', 'div_free', 'harmonic'])


def helmholtz_decomposition(one_form, strategy=Strategy.SPARSE_QR, **kwargs):
    """Split a 1-form into curl-free, divergence-free and harmonic components

    Parameters
    ----------
    one_form : Form
        1-form on either the primal or the dual complex of a calculus of at least two dimensions
    strategy : Strategy or str
        must be able to handle the singular but consistent systems that arise;
        the default rank revealing QR does
    kwargs :
        passed on to `Solver`

    Returns
    -------
    Decomposition
        potential : 0-form alpha such that curl_free = d alpha
        vector_potential : 2-form beta such that div_free = ad beta
        curl_free, div_free, harmonic : 1-forms summing to `one_form`

    Raises
    ------
    RuntimeError
        if one of the two solves fails
    """
    if not isinstance(one_form, Form):
        raise TypeError(f'Expected a Form, got {type(one_form).__name__}')
    if not one_form.order == 1:
        raise ValueError(f'Expected a 1-form, got a {one_form.order}-form')
    calculus = one_form.calculus
    if calculus.n_dim < 2:
        raise ValueError('Decomposition requires a calculus of at least two dimensions')
    duality = one_form.duality

    d0 = calculus.derivative(0, duality)
    d1 = calculus.derivative(1, duality)
    ad1 = calculus.antiderivative(1, duality)
    ad2 = calculus.antiderivative(2, duality)

    def solve(operator, rhs, name):
        solver = Solver(strategy, **kwargs).compute(operator)
        if solver.info is not SolverInfo.SUCCESS:
            raise RuntimeError(f'{name} problem could not be prepared: {solver.info.value}')
        solution = solver.solve(rhs)
        if solver.info is not SolverInfo.SUCCESS:
            raise RuntimeError(f'{name} problem could not be solved: {solver.info.value}')
        logger.debug('%s component: min=%g max=%g', name, solution.min(), solution.max())
        return solution

    potential = solve(ad1 * d0, ad1 * one_form, 'curl free')
    vector_potential = solve(d1 * ad2, d1 * one_form, 'div free')

    curl_free = d0 * potential
    div_free = ad2 * vector_potential
    harmonic = one_form - curl_free - div_free
    return Decomposition(potential, vector_potential, curl_free, div_free, harmonic)
