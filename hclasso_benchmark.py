"""
HCLasso batch benchmark script.

Compares:
- SPG (solve_batch): spectral projected gradient with non-monotone line search
- L-BFGS-B (scipy): bound-constrained quasi-Newton, one call per column (external baseline)

All methods solve, for every column w of W:
    min_{a in [0,1]^k} a'Ga - 2w'a + lam*||a||_1
"""

import os
import time

import matplotlib.pyplot as plt
import numpy as np
from scipy.optimize import minimize

from solver.hclasso_batch import ParallelConfig, solve_batch
from solver.spg_hypercube import SPG_hypercube
from utils.hypercube_objective import HypercubeLasso, create_hclasso_test_problem


def lbfgsb_batch(G, W, A0, lam, max_iters=2000):
    """Reference solution: one L-BFGS-B solve per column."""
    k, d = W.shape
    A = np.empty((k, d))
    losses = np.empty(d)
    iters = np.empty(d, dtype=int)
    for j in range(d):
        beta = 2.0 * W[:, j] - lam

        def fun(a):
            Ga = G @ a
            return float(a @ Ga - beta @ a), 2.0 * Ga - beta

        res = minimize(fun, np.clip(A0[:, j], 0.0, 1.0), jac=True, method='L-BFGS-B',
                       bounds=[(0.0, 1.0)] * k,
                       options={'maxiter': max_iters, 'ftol': 1e-15, 'gtol': 1e-12})
        A[:, j] = res.x
        losses[j] = res.fun
        iters[j] = res.nit
    return A, float(losses.sum()), iters


def run_hclasso_benchmark(k=100, d=50, lam=0.1, n_workers=1, seed=20, verbose=False):
    """
    Run benchmark comparing SPG batch solver and the L-BFGS-B baseline.

    Args:
        k: Problem dimension
        d: Batch size
        lam: L1 regularization weight
        n_workers: Worker threads for solve_batch
        seed: Random seed for reproducibility
        verbose: Print detailed progress

    Returns:
        results: Dictionary with solutions, losses and timing for each method
    """
    print(f"\n=== HCLasso Batch Benchmark ===")
    print(f"Problem: k={k}, d={d}, lam={lam}, workers={n_workers}")
    print(f"Objective: min_{{a in [0,1]^k}} a'Ga - 2w'a + lam ||a||_1")

    G, W, A0, A_true = create_hclasso_test_problem(k, d, lam=lam, seed=seed)
    print(f"cond(G) = {np.linalg.cond(G):.3e}")
    print("-" * 70)

    print("Running SPG (solve_batch)...")
    t0 = time.perf_counter()
    A_spg, loss_spg, info = solve_batch(G, W, A0, lam, config=ParallelConfig(n_workers=n_workers),
                                        return_info=True, verbose=verbose)
    t_spg = time.perf_counter() - t0

    print("Running L-BFGS-B (scipy, per column)...")
    t0 = time.perf_counter()
    A_ref, loss_ref, it_ref = lbfgsb_batch(G, W, A0, lam)
    t_ref = time.perf_counter() - t0

    err = np.max(np.abs(A_spg - A_ref))
    print("\n" + "=" * 75)
    print("BENCHMARK SUMMARY")
    print("=" * 75)
    print(f"{'Method':<25} {'Loss':<14} {'mean iters':<12} {'Time [s]':<10}")
    print("-" * 75)
    print(f"{'SPG (non-monotone)':<25} {loss_spg:<14.6e} {info['iterations'].mean():<12.1f} {t_spg:<10.3f}")
    print(f"{'L-BFGS-B':<25} {loss_ref:<14.6e} {it_ref.mean():<12.1f} {t_ref:<10.3f}")
    print("-" * 75)
    print(f"max |A_spg - A_ref| = {err:.3e}, loss gap = {loss_spg - loss_ref:.3e}")
    print("=" * 75)

    return {
        'problem': {'G': G, 'W': W, 'A0': A0, 'A_true': A_true, 'lam': lam},
        'spg': {'A': A_spg, 'loss': loss_spg, 'info': info, 'time': t_spg},
        'lbfgsb': {'A': A_ref, 'loss': loss_ref, 'iters': it_ref, 'time': t_ref},
    }


def time_worker_counts(k=200, d=200, lam=0.1, workers=(1, 2, 4, 8), seed=0):
    """Wall-clock time of solve_batch for several pool sizes."""
    G, W, A0, _ = create_hclasso_test_problem(k, d, lam=lam, seed=seed)
    times = []
    losses = []
    for n in workers:
        t0 = time.perf_counter()
        _, loss = solve_batch(G, W, A0, lam, config=ParallelConfig(n_workers=n, dynamic=False))
        times.append(time.perf_counter() - t0)
        losses.append(loss)
        print(f"[HCLasso] workers={n:2d} time={times[-1]:.3f}s loss={loss:.10e}")
    return np.array(workers), np.array(times), np.array(losses)


def plot_results(results, scaling=None):
    """Plot SPG convergence traces for a few columns and, optionally, timing vs workers."""
    G = results['problem']['G']
    W = results['problem']['W']
    A0 = results['problem']['A0']
    lam = results['problem']['lam']
    A_ref = results['lbfgsb']['A']

    plt.style.use('default')
    plt.rcParams.update({
        'font.size': 12,
        'font.weight': 'bold',
        'axes.labelweight': 'bold',
        'axes.titleweight': 'bold',
        'figure.titleweight': 'bold'
    })

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    # Objective gap of f and best-so-far f for the first columns
    ax = axes[0]
    problem = HypercubeLasso(G, lam=lam)
    for j in range(min(4, W.shape[1])):
        problem.set_target(W[:, j])
        f_star = problem.f(A_ref[:, j])
        res = SPG_hypercube(problem, A0[:, j], track_history=True)
        it = np.array([h[0] for h in res.history])
        f = np.array([h[1] for h in res.history])
        fhat = np.array([h[2] for h in res.history])
        line, = ax.semilogy(it, np.abs(f - f_star) + 1e-16, '-', linewidth=2, alpha=0.6,
                            label=f'col {j}: f')
        ax.semilogy(it, np.abs(fhat - f_star) + 1e-16, '--', linewidth=3, color=line.get_color(),
                    label=f'col {j}: best f')
    ax.set_xlabel('Iterations', fontweight='bold')
    ax.set_ylabel(r'$|f(a_k) - f^*|$', fontweight='bold')
    ax.set_title('SPG objective gap (non-monotone)', fontweight='bold')
    ax.grid(True, alpha=0.3)
    ax.legend(fontsize=9)

    # Solution comparison for column 0
    ax = axes[1]
    k = G.shape[0]
    indices = np.arange(k)
    width = 0.35
    ax.bar(indices - width/2, results['spg']['A'][:, 0], width, label='SPG', alpha=0.8, color='red')
    ax.bar(indices + width/2, A_ref[:, 0], width, label='L-BFGS-B', alpha=0.8, color='blue')
    ax.set_xlabel('Component Index', fontweight='bold')
    ax.set_ylabel('Value', fontweight='bold')
    ax.set_title('Column 0 minimizer on [0,1]^k', fontweight='bold')
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    os.makedirs("figs", exist_ok=True)
    plt.savefig("figs/hclasso_benchmark.pdf", bbox_inches="tight")
    plt.show()

    if scaling is not None:
        workers, times, _ = scaling
        plt.figure(figsize=(7, 5))
        plt.plot(workers, times, 'ro-', linewidth=3)
        plt.xlabel('Workers', fontweight='bold')
        plt.ylabel('Time [seconds]', fontweight='bold')
        plt.title('solve_batch: time vs pool size', fontweight='bold')
        plt.grid(True, alpha=0.3, which='both', ls=':')
        plt.savefig("figs/hclasso_workers.pdf", bbox_inches="tight")
        plt.show()


if __name__ == "__main__":
    lam_values = [0.0, 0.1, 0.5, 1.0]

    print("Testing SPG batch solver with different lam values:")
    print("=" * 60)

    for lam in lam_values:
        print(f"\n--- Testing lam = {lam} ---")
        results = run_hclasso_benchmark(k=100, d=50, lam=lam, seed=20)
        nnz = np.mean(results['spg']['A'] > 0)
        print(f"Fraction of nonzero coefficients: {nnz:.3f}")

    print(f"\n--- Final detailed run with lam = {lam_values[1]} ---")
    final_results = run_hclasso_benchmark(k=100, d=50, lam=lam_values[1], seed=20, verbose=True)

    print("\n--- Timing vs worker count ---")
    scaling = time_worker_counts()

    plot_results(final_results, scaling)
