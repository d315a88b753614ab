"""Sparse linear solvers for square operators between form spaces

All strategies share one contract: `compute` prepares the operator, after which any number
of `solve` calls reuse that preparation. Numeric failures never raise; they are reported
through `Solver.state` and `Solver.info`
"""

import logging
from enum import Enum

import numpy as np
import scipy.linalg
import scipy.sparse
import scipy.sparse.linalg

from digidec import sparse
from digidec.form import Form
from digidec.operator import LinearOperator
from digidec.topology import TagMismatch

logger = logging.getLogger(__name__)


class Strategy(Enum):
    LLT = 'llt'
    LDLT = 'ldlt'
    SPARSE_LU = 'sparse_lu'
    SPARSE_QR = 'sparse_qr'
    CONJUGATE_GRADIENT = 'conjugate_gradient'
    BICGSTAB = 'bicgstab'

    @property
    def is_direct(self):
        return self not in (Strategy.CONJUGATE_GRADIENT, Strategy.BICGSTAB)


class SolverState(Enum):
    UNINITIALIZED = 'uninitialized'
    PREPARED = 'prepared'
    SOLVED = 'solved'
    FAILED = 'failed'


class SolverInfo(Enum):
    SUCCESS = 'success'
    NOT_POSITIVE_DEFINITE = 'not_positive_definite'
    NOT_SYMMETRIC = 'not_symmetric'
    SINGULAR = 'singular'
    NO_CONVERGENCE = 'no_convergence'
    BREAKDOWN = 'breakdown'


class SolverStateError(RuntimeError):
    """Raised when solving without a successfully prepared operator"""
    pass


class Solver(object):
    """Uniform prepare/solve wrapper around a single solving strategy"""

    def __init__(self, strategy=Strategy.SPARSE_LU, tol=1e-10, maxiter=None, pivot_tol=None):
        """

        Parameters
        ----------
        strategy : Strategy or str
        tol : float
            relative residual tolerance of the iterative strategies,
            and symmetry tolerance of the symmetric factorizations
        maxiter : int, optional
            iteration budget of the iterative strategies; scipy's default if omitted
        pivot_tol : float, optional
            relative threshold below which a diagonal entry of R is considered zero by the QR strategy;
            1e-10 if omitted
        """
        self.strategy = Strategy(strategy)
        self.tol = tol
        self.maxiter = maxiter
        self.pivot_tol = pivot_tol

        self.state = SolverState.UNINITIALIZED
        self.info = None
        self.iterations = None
        self.operator = None
        self._factor = None

    @property
    def is_valid(self):
        return self.info is SolverInfo.SUCCESS

    def _fail(self, info, reason=''):
        self.state = SolverState.FAILED
        self.info = info
        logger.warning('%s solver failed: %s %s', self.strategy.value, info.value, reason)

    def compute(self, operator):
        """Prepare the solver for a square operator

        Parameters
        ----------
        operator : LinearOperator
            source tags must equal target tags

        Returns
        -------
        self

        Raises
        ------
        TagMismatch
            if the operator is not square in its tags
        StaleComplexError
            if the operator was built before its calculus was last mutated
        """
        if not isinstance(operator, LinearOperator):
            raise TypeError(f'Expected a LinearOperator, got {type(operator).__name__}')
        if not operator.is_square:
            raise TagMismatch(f'Cannot solve with non-square operator {operator.source} -> {operator.target}')
        operator.check_fresh()

        self.operator = operator
        self._factor = None
        self.iterations = None
        A = operator.matrix.tocsc()

        if self.strategy in (Strategy.LLT, Strategy.LDLT):
            self._factor = self._symmetric_factor(A, positive=self.strategy is Strategy.LLT)
        elif self.strategy is Strategy.SPARSE_LU:
            try:
                self._factor = scipy.sparse.linalg.splu(A)
            except RuntimeError as e:
                self._fail(SolverInfo.SINGULAR, str(e))
        elif self.strategy is Strategy.SPARSE_QR:
            self._factor = self._qr_factor(A)
        else:
            self._factor = A.tocsr()

        if self._factor is not None:
            self.state = SolverState.PREPARED
            self.info = SolverInfo.SUCCESS
            logger.debug('%s solver prepared for operator of shape %s', self.strategy.value, A.shape)
        return self

    def _symmetric_factor(self, A, positive):
        """Symmetric LU factorization with diagonal pivoting; acts as a Cholesky or LDL^T factorization"""
        if not sparse.is_symmetric(A, rtol=self.tol):
            self._fail(SolverInfo.NOT_SYMMETRIC)
            return None
        try:
            factor = scipy.sparse.linalg.splu(
                A,
                permc_spec='MMD_AT_PLUS_A',
                diag_pivot_thresh=0.,
                options=dict(SymmetricMode=True),
            )
        except RuntimeError as e:
            self._fail(SolverInfo.NOT_POSITIVE_DEFINITE if positive else SolverInfo.SINGULAR, str(e))
            return None
        pivots = factor.U.diagonal()
        if positive:
            # a symmetric positive definite matrix factorizes without off-diagonal pivoting into positive pivots
            if not (np.array_equal(factor.perm_r, factor.perm_c) and np.all(pivots > 0)):
                self._fail(SolverInfo.NOT_POSITIVE_DEFINITE)
                return None
        elif np.any(pivots == 0):
            self._fail(SolverInfo.SINGULAR)
            return None
        return factor

    def _qr_factor(self, A):
        """Rank revealing QR factorization; yields basic least-squares solutions for rank deficient operators"""
        dense = A.toarray()
        Q, R, P = scipy.linalg.qr(dense, mode='economic', pivoting=True)
        d = np.abs(np.diag(R))
        if len(d) == 0:
            rank = 0
        else:
            rtol = self.pivot_tol if self.pivot_tol is not None else 1e-10
            rank = int(np.count_nonzero(d > rtol * d[0]))
        if rank < len(d):
            logger.debug('QR factorization is rank deficient: rank %d of %d', rank, len(d))
        return Q, R, P, rank

    def solve(self, rhs):
        """Solve operator * x = rhs

        Parameters
        ----------
        rhs : Form
            tagged with the target tags of the prepared operator

        Returns
        -------
        Form
            tagged with the source tags of the prepared operator

        Raises
        ------
        SolverStateError
            unless the solver is prepared, or its last solve succeeded;
            after a failure, call compute again
        TagMismatch
            if the tags of rhs do not match the operator
        """
        if self._factor is None or self.state not in (SolverState.PREPARED, SolverState.SOLVED):
            raise SolverStateError(f'Solve called in state {self.state.value}; call compute with a valid operator first')
        if not isinstance(rhs, Form):
            raise TypeError(f'Expected a Form, got {type(rhs).__name__}')
        if rhs.calculus is not self.operator.calculus or not rhs.tags == self.operator.target:
            raise TagMismatch(f'Right hand side {rhs.tags} does not match operator target {self.operator.target}')
        self.operator.check_fresh()
        rhs.check_fresh()

        b = rhs.values
        if self.strategy in (Strategy.LLT, Strategy.LDLT, Strategy.SPARSE_LU):
            x = self._factor.solve(b)
            info = SolverInfo.SUCCESS
        elif self.strategy is Strategy.SPARSE_QR:
            x = self._qr_solve(b)
            info = SolverInfo.SUCCESS
        else:
            x, info = self._iterative_solve(b)

        if info is SolverInfo.SUCCESS and not np.all(np.isfinite(x)):
            info = SolverInfo.BREAKDOWN
        if info is SolverInfo.SUCCESS:
            self.state = SolverState.SOLVED
            self.info = info
            logger.debug('%s solve succeeded; iterations=%s', self.strategy.value, self.iterations)
        else:
            self._fail(info, f'after {self.iterations} iterations')
        return Form(rhs.calculus, *self.operator.source, values=x)

    def _qr_solve(self, b):
        Q, R, P, rank = self._factor
        x = np.zeros(R.shape[1])
        if rank:
            y = Q[:, :rank].T @ b
            x[P[:rank]] = scipy.linalg.solve_triangular(R[:rank, :rank], y)
        return x

    def _iterative_solve(self, b):
        A = self._factor
        self.iterations = 0

        def callback(xk):
            self.iterations += 1

        method = scipy.sparse.linalg.cg if self.strategy is Strategy.CONJUGATE_GRADIENT else scipy.sparse.linalg.bicgstab
        x, code = method(A, b, rtol=self.tol, atol=0., maxiter=self.maxiter, callback=callback)
        if code == 0:
            return x, SolverInfo.SUCCESS
        if code > 0:
            return x, SolverInfo.NO_CONVERGENCE
        return x, SolverInfo.BREAKDOWN

    def __repr__(self):
        return f'Solver({self.strategy.value}, state={self.state.value}, info={getattr(self.info, "value", None)})'
