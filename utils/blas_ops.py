"""
Thin in-place wrappers around the double precision BLAS routines used by the SPG solver.

Only five primitives are needed: copy, axpy, dot, gemv and asum.
All vectors are 1-D contiguous float64 arrays and matrices are stored
column-major (Fortran order) so that no hidden copies happen inside the hot loop.
"""

import numpy as np
from scipy.linalg import blas

_dcopy = blas.dcopy
_daxpy = blas.daxpy
_ddot = blas.ddot
_dgemv = blas.dgemv
_dasum = blas.dasum


def as_vector(x):
    """Return x as a contiguous float64 vector (no copy if already one)."""
    return np.ascontiguousarray(x, dtype=np.float64)


def as_matrix(A):
    """Return A as a Fortran-ordered float64 matrix (no copy if already one)."""
    return np.asfortranarray(A, dtype=np.float64)


def copy(x, y):
    """y <- x"""
    z = _dcopy(x, y)
    if z is not y:
        y[...] = z
    return y


def axpy(a, x, y):
    """y <- a * x + y"""
    z = _daxpy(x, y, a=a)
    if z is not y:
        y[...] = z
    return y


def dot(x, y):
    """x' * y"""
    return float(_ddot(x, y))


def gemv(A, x, y):
    """y <- A * x"""
    z = _dgemv(1.0, A, x, beta=0.0, y=y, overwrite_y=1)
    if z is not y:
        y[...] = z
    return y


def asum(x):
    """||x||_1"""
    return float(_dasum(x))
