#!/usr/bin/env python3
"""
HCLasso Demo Script

A simple demonstration of the SPG hypercube lasso solver:
one column solved directly, then a whole batch through solve_batch.
"""

import numpy as np
from solver.spg_hypercube import SPG_hypercube
from solver.hclasso_batch import ParallelConfig, solve_batch
from utils.hypercube_objective import HypercubeLasso, create_hclasso_test_problem

def demo_single():
    """Demo one hypercube lasso problem."""
    print("📦 Single Problem Demo")
    print("-" * 30)

    G, W, A0, A_true = create_hclasso_test_problem(20, 1, lam=0.1, seed=42)
    problem = HypercubeLasso(G, W[:, 0], lam=0.1)

    res = SPG_hypercube(problem, A0[:, 0], track_history=True, verbose=True)

    print(f"Final objective: {res.f:.6e}")
    print(f"Iterations: {res.iterations} ({res.status.name})")
    print(f"Nonzeros: {np.count_nonzero(res.x)} / {problem.k}")
    print(f"Box constraints satisfied: {np.all((res.x >= 0) & (res.x <= 1))}")
    print(f"||a - a_true||_2: {np.linalg.norm(res.x - A_true[:, 0]):.2e}")
    print()

def demo_batch():
    """Demo a batch of problems sharing one Gram matrix."""
    print("🧮 Batch Demo")
    print("-" * 30)

    G, W, A0, _ = create_hclasso_test_problem(50, 40, lam=0.2, seed=7)

    A1, loss1 = solve_batch(G, W, A0, 0.2, verbose=True)
    A4, loss4 = solve_batch(G, W, A0, 0.2, config=ParallelConfig(n_workers=4), verbose=True)

    print(f"Total loss (1 worker):  {loss1:.10e}")
    print(f"Total loss (4 workers): {loss4:.10e}")
    print(f"Same minimizers: {np.array_equal(A1, A4)}")
    print()

def main():
    """Run all demos."""
    print("🚀 HCLasso Demo")
    print("=" * 50)
    print("Solves min a'Ga - 2w'a + lam*||a||_1 subject to 0 <= a <= 1")
    print()

    demo_single()
    demo_batch()

    print("🎉 Demo completed!")
    print("\nTo run the full benchmark with comparisons:")
    print("  python hclasso_benchmark.py")

if __name__ == "__main__":
    main()
