"""
Spectral Projected Gradient (SPG) solver for L1-regularized quadratics on the unit hypercube.
Barzilai-Borwein step length, projected-gradient direction and a non-monotone
Armijo line search that compares against the worst of the last M objective values.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto

import numpy as np

from solver.workspace import MEM_OLD_VALUES, SPGWorkspace
from utils.blas_ops import as_vector, asum, axpy, copy, dot, gemv
from utils.hypercube_objective import project_hypercube

# convergence accuracy
OPT_TOL = 1e-10
# sufficient descent criterion in line search
SUFF_DEC = 1e-3
# iteration cap per subproblem
MAX_ITERS = 500
# safeguard range for the BB step
ALPHA_MIN = 1e-10
ALPHA_MAX = 1e10


class SPGStatus(Enum):
    """Reason the SPG loop stopped. None of these is an error."""
    NO_DESCENT = auto()
    FIRST_ORDER_OPTIMAL = auto()
    STEP_TOO_SMALL = auto()
    FUNCTION_CHANGE_TOO_SMALL = auto()
    MAX_ITERATIONS = auto()


@dataclass
class SPGResult:
    x: np.ndarray
    f: float
    iterations: int
    status: SPGStatus
    history: list = field(default_factory=list)


def bb_step(x, x_old, g, g_old, tmp, tmp1):
    """
    Spectral (Barzilai-Borwein) step: alpha = (dx'dx) / (dx'dg).

    Falls back to alpha = 1 when the ratio is not finite or outside (1e-10, 1e10].
    tmp and tmp1 are overwritten with dx and dg.
    """
    copy(x, tmp)
    axpy(-1.0, x_old, tmp)
    copy(g, tmp1)
    axpy(-1.0, g_old, tmp1)

    numerator = dot(tmp, tmp)
    denominator = dot(tmp, tmp1)
    if denominator == 0.0:
        return 1.0
    alpha = numerator / denominator
    if not np.isfinite(alpha) or alpha <= ALPHA_MIN or alpha > ALPHA_MAX:
        alpha = 1.0
    return alpha


def projected_step(d, x, g, alpha):
    """d <- P(x - alpha * g) - x"""
    copy(x, d)
    axpy(-alpha, g, d)
    project_hypercube(d, out=d)
    axpy(-1.0, x, d)
    return d


def pg_residual(x, g, tmp):
    """First-order optimality residual ||P(x - g) - x||_1 (zero at a stationary point)."""
    copy(x, tmp)
    axpy(-1.0, g, tmp)
    project_hypercube(tmp, out=tmp)
    axpy(-1.0, x, tmp)
    return asum(tmp)


def nonmonotone_line_search(f, f_ref, gtd, dHd, norm1_d, t, suff_dec=SUFF_DEC, opt_tol=OPT_TOL):
    """
    Backtracking on the step x + factor * t * d for a quadratic objective.

    The change in objective is exact: linear = factor*t*g'd, quad = (factor*t)^2 d'Hd,
    delta_f = 0.5*quad + linear. A step is accepted when
    f + delta_f < f_ref + suff_dec * linear.

    Args:
        f: Current objective value
        f_ref: Non-monotone reference (max of recent objective values)
        gtd: Directional derivative g'd (negative)
        dHd: Curvature d'Hd
        norm1_d: ||d||_1
        t: Initial step length
        suff_dec: Sufficient decrease parameter
        opt_tol: Minimum ||t*d||_1 before giving up

    Returns:
        t: Accepted step length (0 if the search failed)
        delta_f: Exact objective change for the accepted step
        norm1_dx: ||t*d||_1 for the accepted step
    """
    Linear = t * gtd
    Quad = dHd * t * t
    Norm1_dx = t * norm1_d

    factor = 1.0
    while True:
        linear = Linear * factor
        quad = Quad * factor * factor
        delta_f = 0.5 * quad + linear

        if f + delta_f < f_ref + suff_dec * linear:
            return t * factor, delta_f, Norm1_dx * factor

        factor *= 0.5
        if Norm1_dx * factor < opt_tol or t == 0:
            return 0.0, 0.0, 0.0


def SPG_hypercube(problem, a0, workspace=None, out=None, max_iters=MAX_ITERS, opt_tol=OPT_TOL,
                  suff_dec=SUFF_DEC, memory=MEM_OLD_VALUES, track_history=False, verbose=False):
    """
    SPG solver for min a'Ga - beta'a on [0, 1]^k.

    Args:
        problem: HypercubeLasso problem instance (target already set)
        a0: Starting point (clamped into the hypercube)
        workspace: SPGWorkspace to reuse (allocated if None)
        out: Buffer receiving the best iterate (allocated if None)
        max_iters: Iteration cap
        opt_tol: Convergence tolerance
        suff_dec: Sufficient decrease parameter of the line search
        memory: Size of the non-monotone window (only used when allocating a workspace)
        track_history: Record (iter, f, fhat, pg_residual, time) tuples
        verbose: Print progress

    Returns:
        SPGResult with the best iterate and its objective value
    """
    k = problem.k
    if workspace is None:
        workspace = SPGWorkspace(k, memory)
    elif not workspace.fits(k):
        raise ValueError(f"workspace is sized for k={workspace.k}, problem has k={k}")
    if out is None:
        out = np.empty(k)

    ws = workspace
    x, x_old, g, g_old, d = ws.x, ws.x_old, ws.g, ws.g_old, ws.d
    tmp, tmp1 = ws.tmp, ws.tmp1
    fvals = ws.history
    H = problem.H

    # Init
    a0 = as_vector(a0)
    if a0.shape != (k,):
        raise ValueError(f"a0 has shape {a0.shape}, expected ({k},)")
    problem.project(a0, out=x)
    problem.grad(x, out=g)
    f = problem.f(x, tmp)
    fvals.reset()

    copy(x, out)
    fhat = f

    history = []
    t0 = time.time()
    if track_history:
        history.append((0, f, fhat, pg_residual(x, g, tmp), 0.0))

    it = 0
    status = SPGStatus.MAX_ITERATIONS
    while True:
        # Compute step direction
        if it == 0:
            alpha = 1.0
        else:
            alpha = bb_step(x, x_old, g, g_old, tmp, tmp1)
        projected_step(d, x, g, alpha)

        # Check that progress can be made along the direction
        gtd = dot(g, d)
        if gtd > -opt_tol:
            status = SPGStatus.NO_DESCENT
            break

        # Initial guess for the step length
        if it == 0:
            gnorm = asum(g)
            t = min(1.0, 1.0 / gnorm) if gnorm > 0 else 1.0
        else:
            t = 1.0

        fvals.push(f)
        f_ref = fvals.reference()

        gemv(H, d, tmp)
        dHd = dot(d, tmp)
        t, delta_f, norm1_dx = nonmonotone_line_search(
            f, f_ref, gtd, dHd, asum(d), t, suff_dec=suff_dec, opt_tol=opt_tol)

        # Take step
        copy(x, x_old)
        axpy(t, d, x)
        copy(g, g_old)
        problem.grad(x, out=g)
        f = f + delta_f
        it += 1

        # Keep track of the best iterate
        if f < fhat:
            fhat = f
            copy(x, out)

        residual = pg_residual(x, g, tmp)
        if track_history:
            history.append((it, f, fhat, residual, time.time() - t0))
        if verbose and it % 50 == 0:
            print(f"[SPG-hc] iter={it:4d} f={f:.6e} ||pg||_1={residual:.3e} time={time.time() - t0:.2f}s")

        # Check convergence
        if residual < opt_tol:
            status = SPGStatus.FIRST_ORDER_OPTIMAL
            break
        if norm1_dx < opt_tol:
            status = SPGStatus.STEP_TOO_SMALL
            break
        if abs(delta_f) < opt_tol:
            status = SPGStatus.FUNCTION_CHANGE_TOO_SMALL
            break
        if it > max_iters:
            status = SPGStatus.MAX_ITERATIONS
            break

    if verbose:
        print(f"[SPG-hc] stop: {status.name} after {it} iterations, fhat={fhat:.6e}")

    return SPGResult(out, fhat, it, status, history)
