"""
Batch solver for hypercube lasso problems sharing one Gram matrix.

For each column w of W solve

    min  a' G a - 2 w' a + lam * ||a||_1,   s.t. 1 >= a_i >= 0

by SPG, starting from the matching column of A0, and return the minimizers
together with the summed optimal objective. Columns are independent and are
spread over a pool of worker threads; every worker owns one scratch workspace
and one problem object that it reuses for all of its columns.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np

from solver.spg_hypercube import MAX_ITERS, OPT_TOL, SUFF_DEC, SPG_hypercube
from solver.workspace import MEM_OLD_VALUES, WorkspaceArena
from utils.blas_ops import as_matrix
from utils.hypercube_objective import HypercubeLasso

# default pool size and dynamic thread allocation
MAX_NUM_THREADS = 1
DYNAMIC_THREADS = True


@dataclass
class ParallelConfig:
    """
    Worker pool settings for solve_batch.

    n_workers: maximum number of parallel workers (None = number of CPUs)
    dynamic: let the pool shrink to what the batch and machine can use
    """
    n_workers: Optional[int] = MAX_NUM_THREADS
    dynamic: bool = DYNAMIC_THREADS

    def resolve(self, d):
        """Number of workers to use for a batch of d columns."""
        n = self.n_workers
        if n is None:
            if not self.dynamic:
                raise ValueError("n_workers=None requires dynamic=True")
            n = os.cpu_count() or 1
        n = int(n)
        if n < 1:
            raise ValueError(f"n_workers must be >= 1, got {n}")
        if self.dynamic:
            n = max(1, min(n, d, os.cpu_count() or 1))
        return n


def _check_dimensions(G, W, A0):
    if G.ndim != 2 or G.shape[0] != G.shape[1]:
        raise ValueError(f"G must be a square (k, k) matrix, got shape {G.shape}")
    k = G.shape[0]
    if k < 1:
        raise ValueError("problem dimension k must be >= 1")
    if W.ndim != 2 or W.shape[0] != k:
        raise ValueError(f"W must have shape ({k}, d), got {W.shape}")
    if A0.shape != W.shape:
        raise ValueError(f"A0 must have the same shape as W {W.shape}, got {A0.shape}")
    return k, W.shape[1]


def _solve_columns(worker_id, columns, problem, arena, W, A0, Anew, losses, iters, status, opts):
    """Solve the given columns with the workspace owned by worker_id; return the partial loss."""
    ws = arena[worker_id]
    loss = 0.0
    for j in columns:
        problem.set_target(W[:, j])
        res = SPG_hypercube(problem, A0[:, j], workspace=ws, out=Anew[:, j], **opts)
        losses[j] = res.f
        iters[j] = res.iterations
        status[j] = res.status
        loss = loss + res.f
    return loss


def solve_batch(G, W, A0, lam, config=None, max_iters=MAX_ITERS, opt_tol=OPT_TOL, suff_dec=SUFF_DEC,
                memory=MEM_OLD_VALUES, return_info=False, verbose=False):
    """
    Solve one hypercube lasso problem per column of W.

    Args:
        G: Gram matrix (k, k), symmetric PSD (not validated)
        W: Targets (k, d)
        A0: Starting points (k, d); need not lie in the hypercube
        lam: L1 regularization weight
        config: ParallelConfig (default: one worker, dynamic sizing)
        max_iters: SPG iteration cap per column
        opt_tol: SPG convergence tolerance
        suff_dec: Sufficient decrease parameter of the line search
        memory: Size of the non-monotone window
        return_info: Also return per-column diagnostics
        verbose: Print a batch summary

    Returns:
        Anew: Minimizers (k, d), column j solves column j of W
        loss: Sum of the optimal objective values
        info: (only with return_info) dict with 'losses', 'iterations', 'status',
              'n_workers' and 'elapsed'
    """
    G = as_matrix(G)
    W = as_matrix(W)
    A0 = as_matrix(A0)
    k, d = _check_dimensions(G, W, A0)
    lam = float(lam)
    if config is None:
        config = ParallelConfig()
    n_workers = config.resolve(d)

    t0 = time.time()
    try:
        Anew = np.zeros((k, d), order='F')
        losses = np.zeros(d)
        # H = 2G is the same for every column: build it once and share it read-only
        H = as_matrix(2.0 * G)
    except MemoryError as exc:
        raise MemoryError(f"Out of memory allocating output for k={k}, d={d}") from exc
    iters = np.zeros(d, dtype=int)
    status = [None] * d

    loss = 0.0
    if d > 0:
        arena = WorkspaceArena(n_workers, k, memory)
        problems = [HypercubeLasso(G, lam=lam, H=H) for _ in range(n_workers)]
        blocks = np.array_split(np.arange(d), n_workers)
        opts = dict(max_iters=max_iters, opt_tol=opt_tol, suff_dec=suff_dec)
        args = (arena, W, A0, Anew, losses, iters, status, opts)

        if n_workers == 1:
            partials = [_solve_columns(0, blocks[0], problems[0], *args)]
        else:
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(_solve_columns, wid, blocks[wid], problems[wid], *args)
                           for wid in range(n_workers)]
                partials = [future.result() for future in futures]

        for partial in partials:
            loss = loss + partial

    elapsed = time.time() - t0
    if verbose:
        print(f"[HCLasso] k={k} d={d} workers={n_workers} loss={loss:.6e} time={elapsed:.2f}s")

    if return_info:
        info = {
            'losses': losses,
            'iterations': iters,
            'status': status,
            'n_workers': n_workers,
            'elapsed': elapsed,
        }
        return Anew, loss, info
    return Anew, loss
