"""Sparse matrix helpers specialized for DEC-like applications"""

import numpy as np
import scipy.sparse


def diag(d):
    """Sparse diagonal matrix in csr format"""
    d = np.asarray(d, dtype=np.float64)
    return scipy.sparse.diags(d, 0, shape=(len(d), len(d)), format='csr')


def normalize_l1(A, axis=1):
    """Return A scaled such that the absolute sum over `axis` equals 1

    Empty rows or columns are left empty
    """
    s = np.asarray(abs(A).sum(axis=axis)).flatten()
    with np.errstate(divide='ignore'):
        s = np.where(s > 0, 1. / s, 0.)
    D = diag(s)
    if axis == 0:
        return (A @ D).tocsr()
    elif axis == 1:
        return (D @ A).tocsr()
    raise ValueError('axis must be 0 or 1')


def coo_matrix(rows, cols, data, shape):
    """Assemble a csr matrix, dropping entries whose row or column is negative"""
    rows, cols, data = np.asarray(rows).ravel(), np.asarray(cols).ravel(), np.asarray(data).ravel()
    keep = (rows >= 0) & (cols >= 0)
    return scipy.sparse.coo_matrix(
        (data[keep].astype(np.float64), (rows[keep], cols[keep])),
        shape=shape
    ).tocsr()


def is_symmetric(A, rtol=1e-12):
    """Test symmetry of a square sparse matrix, relative to its largest entry"""
    if not A.shape[0] == A.shape[1]:
        return False
    scale = abs(A).max() if A.nnz else 0.
    if scale == 0:
        return True
    diff = A - A.T
    return (abs(diff).max() if diff.nnz else 0.) <= rtol * scale
