"""
Objective functions for L1-regularized quadratic programs on the unit hypercube.

For a Gram matrix G and a target w the problem is

    min_a  a' G a - 2 w' a + lam * ||a||_1,   0 <= a_i <= 1.

On the hypercube ||a||_1 = sum(a), so the objective is the smooth quadratic
a' G a - beta' a with beta = 2 w - lam and constant Hessian H = 2 G.
"""

import numpy as np

from utils.blas_ops import as_matrix, as_vector, axpy, dot, gemv


def set_input(G, w, lam, hess, beta):
    """Write the constant Hessian (2 G) and linear term (2 w - lam) into the given buffers.

    Pass hess=None to only refresh beta (the Hessian does not depend on w).
    """
    np.multiply(w, 2.0, out=beta)
    beta -= lam
    if hess is not None:
        np.multiply(G, 2.0, out=hess)
    return hess, beta


def project_hypercube(v, out=None):
    """Project v onto [0, 1]^k coordinate-wise."""
    return np.clip(v, 0.0, 1.0, out=out)


class HypercubeLasso:
    """Lasso-type quadratic a'Ga - 2w'a + lam*||a||_1 restricted to the unit hypercube."""

    def __init__(self, G, w=None, lam=0.0, H=None):
        """
        Initialize the hypercube lasso problem.

        Args:
            G: Gram matrix of shape (k, k), symmetric PSD (not checked)
            w: Target vector of shape (k,); may be set later with set_target
            lam: L1 regularization weight
            H: Precomputed Hessian 2*G to share between problems (optional)
        """
        G = as_matrix(G)
        if G.ndim != 2 or G.shape[0] != G.shape[1]:
            raise ValueError(f"G must be a square matrix, got shape {G.shape}")
        self.G = G
        self.k = G.shape[0]
        self.lam = float(lam)

        if H is None:
            H = as_matrix(2.0 * G)
        elif H.shape != G.shape:
            raise ValueError(f"H has shape {H.shape}, expected {G.shape}")
        self.H = H

        self.beta = np.zeros(self.k)
        self.w = None
        if w is not None:
            self.set_target(w)

    def set_target(self, w):
        """Switch to a new target column; only beta is recomputed."""
        w = as_vector(w)
        if w.shape != (self.k,):
            raise ValueError(f"w has shape {w.shape}, expected ({self.k},)")
        self.w = w
        set_input(self.G, w, self.lam, None, self.beta)

    def f(self, x, tmp=None):
        """Objective value x'Gx - beta'x, computed as x'(Gx - beta)."""
        if tmp is None:
            tmp = np.empty(self.k)
        gemv(self.G, x, tmp)
        axpy(-1.0, self.beta, tmp)
        return dot(x, tmp)

    def grad(self, x, out=None):
        """Gradient: H x - beta."""
        if out is None:
            out = np.empty(self.k)
        gemv(self.H, x, out)
        axpy(-1.0, self.beta, out)
        return out

    def hess(self):
        """Hessian: 2 G (constant, PSD)."""
        return self.H

    def lasso_value(self, x):
        """Objective in its original form: x'Gx - 2w'x + lam*||x||_1."""
        x = np.asarray(x, dtype=np.float64)
        return float(x @ (self.G @ x) - 2.0 * (self.w @ x) + self.lam * np.sum(np.abs(x)))

    def project(self, x, out=None):
        """Project x onto the unit hypercube."""
        return project_hypercube(x, out=out)


def create_hclasso_test_problem(k, d, m=None, lam=0.1, seed=None):
    """Create a random batch of hypercube lasso problems sharing one Gram matrix.

    Args:
        k: Problem dimension
        d: Batch size (number of target columns)
        m: Number of rows of the design B used for G = B'B / m (default 2k)
        lam: L1 regularization weight
        seed: Random seed for reproducibility

    Returns:
        G: Gram matrix (k, k), PSD
        W: Targets (k, d)
        A0: Warm starts (k, d) inside the hypercube
        A_true: Ground-truth coefficients (k, d) used to build W
    """
    rng = np.random.default_rng(seed)
    if m is None:
        m = 2 * k

    B = rng.standard_normal((m, k))
    G = B.T @ B / m

    # Sparse ground truth in the hypercube
    A_true = rng.random((k, d)) * (rng.random((k, d)) < 0.3)
    W = G @ A_true + 0.05 * rng.standard_normal((k, d)) + 0.5 * lam

    A0 = np.full((k, d), 0.5)
    return as_matrix(G), as_matrix(W), as_matrix(A0), A_true
