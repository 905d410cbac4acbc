"""
Tests for the SPG hypercube solver: step size, line search, projection and the main loop.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.optimize import minimize

from solver.spg_hypercube import (SPG_hypercube, SPGStatus, bb_step, nonmonotone_line_search,
                                  pg_residual, projected_step)
from solver.workspace import SPGWorkspace
from utils.hypercube_objective import HypercubeLasso, create_hclasso_test_problem
from utils.nonmonotone import ObjectiveHistory


def _bb(x, x_old, g, g_old):
    k = len(x)
    return bb_step(np.array(x, float), np.array(x_old, float), np.array(g, float),
                   np.array(g_old, float), np.empty(k), np.empty(k))


def test_bb_step_ratio():
    assert _bb([1.0, 0.0], [0.0, 0.0], [2.0, 0.0], [0.0, 0.0]) == pytest.approx(0.5)


def test_bb_step_safeguards():
    # zero denominator
    assert _bb([1.0, 0.0], [0.0, 0.0], [3.0, 1.0], [3.0, 1.0]) == 1.0
    # negative curvature along dx
    assert _bb([1.0, 0.0], [0.0, 0.0], [-1.0, 0.0], [0.0, 0.0]) == 1.0
    # ratio above 1e10
    assert _bb([1.0, 0.0], [0.0, 0.0], [1e-12, 0.0], [0.0, 0.0]) == 1.0
    # no movement at all
    assert _bb([0.3, 0.3], [0.3, 0.3], [1.0, 2.0], [0.0, 0.0]) == 1.0


def test_projected_step_stays_in_box():
    x = np.array([0.2, 0.9, 0.5])
    g = np.array([1.0, -1.0, 0.1])
    d = np.empty(3)
    projected_step(d, x, g, 1.0)
    assert_allclose(d, [-0.2, 0.1, -0.1])
    assert np.all(x + d >= 0.0) and np.all(x + d <= 1.0)


def test_pg_residual_zero_at_corner():
    # gradient pushes both coordinates outwards at the corner (1, 0)
    x = np.array([1.0, 0.0])
    g = np.array([-3.0, 2.0])
    assert pg_residual(x, g, np.empty(2)) == 0.0
    assert pg_residual(np.array([0.5, 0.5]), g, np.empty(2)) > 0.0


def test_line_search_accepts_full_step():
    t, delta_f, norm1_dx = nonmonotone_line_search(0.0, 0.0, -1.0, 0.0, 1.0, 1.0)
    assert (t, delta_f, norm1_dx) == (1.0, -1.0, 1.0)


def test_line_search_backtracks():
    t, delta_f, norm1_dx = nonmonotone_line_search(0.0, 0.0, -1.0, 4.0, 1.0, 1.0)
    assert t == 0.25
    assert delta_f == pytest.approx(-0.125)
    assert norm1_dx == 0.25


def test_line_search_tolerates_increase_below_reference():
    # f rises from 1.0 to 1.25 but stays under the reference 2.0
    t, delta_f, _ = nonmonotone_line_search(1.0, 2.0, -1.0, 2.5, 1.0, 1.0)
    assert t == 1.0
    assert delta_f == pytest.approx(0.25)


def test_line_search_failure_returns_zero_step():
    assert nonmonotone_line_search(0.0, 0.0, -1e-3, 1e20, 1e-9, 1.0) == (0.0, 0.0, 0.0)


def test_objective_history_ring():
    hist = ObjectiveHistory(m=10)
    assert hist.reference() == -np.inf
    for f in range(1, 13):
        hist.push(float(f))
    assert hist.reference() == 12.0
    assert sorted(hist.values) == [float(v) for v in range(3, 13)]
    assert hist.pos == 2
    hist.push(-1.0)
    assert hist.reference() == 12.0
    hist.reset()
    assert hist.reference() == -np.inf
    with pytest.raises(ValueError):
        ObjectiveHistory(m=0)


@pytest.mark.parametrize("G, w, lam", [
    (2.0, 1.5, 0.4),
    (0.5, 0.1, 0.0),
    (1.0, -2.0, 1.0),
    (0.3, 4.0, 0.2),
    (3.0, 0.7, 1.4),
])
def test_scalar_problem_matches_soft_threshold(G, w, lam):
    problem = HypercubeLasso(np.array([[G]]), np.array([w]), lam)
    res = SPG_hypercube(problem, np.array([0.5]))
    expected = np.clip((w - lam / 2.0) / G, 0.0, 1.0)
    assert_allclose(res.x, [expected], atol=1e-8)


def test_identity_gram_boundary_case():
    problem = HypercubeLasso(np.eye(2), np.array([1.0, 0.5]), 1.0)
    assert_allclose(problem.beta, [1.0, 0.0])
    res = SPG_hypercube(problem, np.array([0.5, 0.5]))
    assert np.all(res.x >= 0.0) and np.all(res.x <= 1.0)
    assert res.x[0] > res.x[1]
    assert_allclose(res.x, [0.5, 0.0], atol=1e-8)


def test_negative_targets_go_to_lower_corner():
    problem = HypercubeLasso(np.eye(2), np.array([-5.0, -5.0]), 1.0)
    res = SPG_hypercube(problem, np.array([0.5, 0.5]))
    assert_allclose(res.x, [0.0, 0.0], atol=1e-12)
    assert res.f == pytest.approx(0.0, abs=1e-12)


def test_stationary_start_stops_immediately():
    problem = HypercubeLasso(np.eye(2), np.array([-5.0, -5.0]), 1.0)
    res = SPG_hypercube(problem, np.zeros(2))
    assert res.status is SPGStatus.NO_DESCENT
    assert res.iterations == 0


def test_infeasible_start_is_clamped():
    G, W, _, _ = create_hclasso_test_problem(6, 1, seed=3)
    problem = HypercubeLasso(G, W[:, 0], 0.1)
    res = SPG_hypercube(problem, np.array([5.0, -3.0, 2.0, -1.0, 0.5, 7.0]))
    assert np.all(res.x >= 0.0) and np.all(res.x <= 1.0)


def test_best_objective_is_non_increasing():
    G, W, A0, _ = create_hclasso_test_problem(20, 1, lam=0.2, seed=11)
    problem = HypercubeLasso(G, W[:, 0], 0.2)
    res = SPG_hypercube(problem, A0[:, 0], track_history=True)
    fhat = np.array([h[2] for h in res.history])
    fvals = np.array([h[1] for h in res.history])
    assert np.all(np.diff(fhat) <= 0.0)
    assert fhat[-1] == res.f
    assert res.f == fvals.min()
    assert res.f == pytest.approx(problem.f(res.x), rel=1e-8, abs=1e-10)


def test_iteration_cap():
    G, W, A0, _ = create_hclasso_test_problem(30, 1, seed=5)
    problem = HypercubeLasso(G, W[:, 0], 0.1)
    res = SPG_hypercube(problem, A0[:, 0], max_iters=2)
    assert res.status is SPGStatus.MAX_ITERATIONS
    assert res.iterations == 3


def test_failed_line_search_takes_zero_step():
    # curvature so large that no halving of the first step decreases f before ||t*d||_1 < opt_tol
    problem = HypercubeLasso(np.array([[1e14]]), np.array([0.3e14]), 0.0)
    a0 = np.array([0.3 + 1e-12])
    f0 = problem.f(a0.copy())
    res = SPG_hypercube(problem, a0)
    assert res.status is SPGStatus.STEP_TOO_SMALL
    assert res.iterations == 1
    assert np.all(res.x >= 0.0) and np.all(res.x <= 1.0)
    assert np.array_equal(res.x, a0)
    assert res.f == f0


def test_initial_point_goes_through_problem_projection():
    problem = HypercubeLasso(np.eye(3), np.array([-5.0, -5.0, -5.0]), 1.0)
    out = np.empty(3)
    assert problem.project(np.array([-1.0, 0.5, 3.0]), out=out) is out
    assert_allclose(out, [0.0, 0.5, 1.0])
    res = SPG_hypercube(problem, np.array([-1.0, 0.0, -2.0]))
    # clamped start is already the stationary corner
    assert res.status is SPGStatus.NO_DESCENT
    assert_allclose(res.x, 0.0)


def test_matches_lbfgsb_reference():
    lam = 0.15
    G, W, A0, _ = create_hclasso_test_problem(15, 3, lam=lam, seed=7)
    problem = HypercubeLasso(G, lam=lam)
    ws = SPGWorkspace(15)
    for j in range(W.shape[1]):
        problem.set_target(W[:, j])
        res = SPG_hypercube(problem, A0[:, j], workspace=ws)

        beta = problem.beta.copy()
        ref = minimize(lambda a: (a @ G @ a - beta @ a, 2.0 * G @ a - beta), A0[:, j],
                       jac=True, method='L-BFGS-B', bounds=[(0.0, 1.0)] * 15,
                       options={'ftol': 1e-15, 'gtol': 1e-12, 'maxiter': 5000})
        assert res.f <= ref.fun + 1e-8
        assert_allclose(res.x, ref.x, atol=1e-4)
        assert problem.lasso_value(res.x) == pytest.approx(res.f, rel=1e-8, abs=1e-10)


def test_workspace_size_mismatch():
    problem = HypercubeLasso(np.eye(3), np.ones(3), 0.0)
    with pytest.raises(ValueError):
        SPG_hypercube(problem, np.zeros(3), workspace=SPGWorkspace(4))
    with pytest.raises(ValueError):
        SPG_hypercube(problem, np.zeros(2))


def test_verbose_prints_stop_line(capsys):
    problem = HypercubeLasso(np.eye(2), np.array([1.0, 0.5]), 1.0)
    SPG_hypercube(problem, np.array([0.5, 0.5]), verbose=True)
    assert "[SPG-hc] stop:" in capsys.readouterr().out
