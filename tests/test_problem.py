import numpy as np
import pytest

from react_ik.errors import ConfigurationError, InfeasibleProblem, SizeMismatch
from react_ik.model import KinematicChain
from react_ik.solver import GuardZone, ProblemState, ReactiveIKProblem, SolveStatus
from react_ik.utils import rpy_to_rotation_matrix

from .conftest import make_planar_arm


def make_problem(chain, v_max=1.0, dt=0.1, **flags):
    problem = ReactiveIKProblem(chain)
    n = chain.get_nr_of_joints()
    problem.set_v_lim(np.column_stack([np.full(n, -v_max), np.full(n, v_max)]))
    problem.set_dt(dt)
    problem.set_joint_limit_guard(flags.get('guard', False))
    problem.set_orientation_control(flags.get('orientation', False))
    return problem


def finite_difference_gradient(problem, v, eps=1e-6):
    grad = np.zeros_like(v)
    for i in range(v.size):
        dv = np.zeros_like(v)
        dv[i] = eps
        grad[i] = (problem.eval_f(v + dv) - problem.eval_f(v - dv)) / (2 * eps)
    return grad


def test_constraint_count_follows_guard_flag(spatial_arm):
    problem = make_problem(spatial_arm, guard=False)
    problem.initialize()
    assert problem.get_nlp_info() == (4, 0, 0, 0)
    assert problem.eval_g(np.zeros(4)).size == 0

    problem.set_joint_limit_guard(True)
    problem.initialize()
    assert problem.get_nlp_info() == (4, 4, 4, 0)
    rows, cols = problem.eval_jac_g_structure()
    np.testing.assert_array_equal(rows, np.arange(4))
    np.testing.assert_array_equal(cols, np.arange(4))
    np.testing.assert_allclose(problem.eval_jac_g(np.zeros(4)), np.full(4, 0.1))


def test_objective_at_current_pose_is_zero(spatial_arm):
    problem = make_problem(spatial_arm, orientation=True)
    problem.initialize()
    assert problem.eval_f(np.zeros(4)) == pytest.approx(0.0, abs=1e-20)
    np.testing.assert_allclose(problem.eval_grad_f(np.zeros(4)), np.zeros(4), atol=1e-12)


def test_objective_position_only(planar_arm):
    problem = make_problem(planar_arm)
    problem.set_xr(np.array([1.0, 0.02, 0.0, 0.0, 0.0, 0.0]))
    problem.initialize()
    # p(v) = (1, 0.1 v, 0)
    assert problem.eval_f(np.array([0.0])) == pytest.approx(0.02 ** 2)
    assert problem.eval_f(np.array([0.2])) == pytest.approx(0.0, abs=1e-20)
    np.testing.assert_allclose(problem.eval_grad_f(np.array([0.0])), [2 * 0.1 * (-0.02)])


@pytest.mark.parametrize("orientation", [False, True])
def test_gradient_matches_finite_differences(spatial_arm, orientation):
    problem = make_problem(spatial_arm, dt=0.05, orientation=orientation)
    target = np.identity(4)
    target[:3, :3] = rpy_to_rotation_matrix([0.2, -0.1, 0.4])
    target[:3, 3] = spatial_arm.forward_kinematics()[:3, 3] + [0.02, -0.01, 0.03]
    problem.set_target_pose(target)
    problem.initialize()

    rng = np.random.default_rng(11)
    for _ in range(5):
        v = rng.uniform(-1.0, 1.0, size=4)
        np.testing.assert_allclose(problem.eval_grad_f(v), finite_difference_gradient(problem, v), atol=1e-6)


def test_quantities_recomputed_for_new_point(planar_arm):
    problem = make_problem(planar_arm)
    problem.set_xr(np.array([1.0, 0.02, 0.0, 0.0, 0.0, 0.0]))
    problem.initialize()
    first = problem.eval_f(np.array([0.1]))
    second = problem.eval_f(np.array([0.2]))
    assert first != second
    assert problem.eval_f(np.array([0.1])) == first


def test_guard_zone_thresholds():
    guard = GuardZone.from_limits(np.array([-1.0, -np.inf]), np.array([1.0, np.inf]), guard_ratio=0.1)
    np.testing.assert_allclose(guard.guard, [0.05, 0.0])
    assert guard.min_ext[0] == pytest.approx(-0.95)
    assert guard.min_int[0] == pytest.approx(-0.90)
    assert guard.min_cog[0] == pytest.approx(-0.925)
    assert guard.max_ext[0] == pytest.approx(0.95)
    assert guard.max_int[0] == pytest.approx(0.90)
    assert guard.max_cog[0] == pytest.approx(0.925)
    assert guard.min_ext[1] == -np.inf
    assert guard.max_ext[1] == np.inf


def test_guard_scaling():
    guard = GuardZone.from_limits(np.array([-1.0]), np.array([1.0]))
    np.testing.assert_allclose(guard.velocity_scaling(np.array([0.0])), [[1.0, 1.0]])
    np.testing.assert_allclose(guard.velocity_scaling(np.array([-0.925])), [[0.5, 1.0]])
    np.testing.assert_allclose(guard.velocity_scaling(np.array([-0.96])), [[0.0, 1.0]])
    np.testing.assert_allclose(guard.velocity_scaling(np.array([0.97])), [[1.0, 0.0]])


def test_guard_shaping_only_tightens():
    guard = GuardZone.from_limits(np.array([-1.0, -1.0]), np.array([1.0, 1.0]))
    v_lim = np.array([[-0.5, 0.5], [0.1, 0.4]])
    shaped = guard.shape_bounds(np.array([-0.925, 0.0]), v_lim)
    np.testing.assert_allclose(shaped, [[-0.25, 0.5], [0.1, 0.4]])


def test_guard_shaping_handles_infinite_bounds():
    guard = GuardZone.from_limits(np.array([-1.0]), np.array([1.0]))
    shaped = guard.shape_bounds(np.array([-0.99]), np.array([[-np.inf, np.inf]]))
    np.testing.assert_array_equal(shaped, [[0.0, np.inf]])


def test_guard_bounds_applied_when_enabled():
    chain = make_planar_arm([1.0], limits=[(-1.0, 1.0)])
    chain.set_ang([-0.925])
    problem = make_problem(chain, guard=True)
    problem.initialize()
    x_l, x_u, g_l, g_u = problem.get_bounds_info()
    np.testing.assert_allclose(x_l, [-0.5])
    np.testing.assert_allclose(x_u, [1.0])
    np.testing.assert_allclose(g_l, [-0.95])
    np.testing.assert_allclose(g_u, [0.95])
    np.testing.assert_allclose(problem.eval_g(np.array([0.5])), [-0.875])


def test_starting_point_clipped_into_bounds(two_link_arm):
    problem = make_problem(two_link_arm, v_max=0.5)
    problem.set_v0(np.array([2.0, -0.1]))
    problem.initialize()
    np.testing.assert_allclose(problem.get_starting_point(), [0.5, -0.1])


def test_evaluation_before_initialize_fails(planar_arm):
    problem = make_problem(planar_arm)
    with pytest.raises(ConfigurationError):
        problem.eval_f(np.zeros(1))
    problem.initialize()
    problem.eval_f(np.zeros(1))
    # 任何配置修改都需要重新初始化
    problem.set_dt(0.2)
    assert problem.state is ProblemState.CONFIGURED
    with pytest.raises(ConfigurationError):
        problem.eval_grad_f(np.zeros(1))


def test_initialize_requires_velocity_bounds(planar_arm):
    with pytest.raises(ConfigurationError):
        ReactiveIKProblem(planar_arm).initialize()


def test_initialize_requires_joints():
    with pytest.raises(ConfigurationError):
        ReactiveIKProblem(KinematicChain()).initialize()


def test_configuration_errors(planar_arm):
    problem = ReactiveIKProblem(planar_arm)
    with pytest.raises(SizeMismatch):
        problem.set_v_lim(np.zeros((2, 2)))
    with pytest.raises(SizeMismatch):
        problem.set_xr(np.zeros(4))
    with pytest.raises(SizeMismatch):
        problem.set_v0(np.zeros(3))
    with pytest.raises(ConfigurationError):
        problem.set_dt(0.0)


def test_inverted_bounds_are_infeasible(planar_arm):
    problem = ReactiveIKProblem(planar_arm)
    problem.set_v_lim(np.array([[0.5, -0.5]]))
    with pytest.raises(InfeasibleProblem):
        problem.initialize()
    assert problem.state is ProblemState.INFEASIBLE


def test_guard_without_feasible_velocity_is_infeasible():
    chain = make_planar_arm([1.0], limits=[(-1.0, 1.0)])
    # 关节已越过 max_ext，且速度边界不允许后退
    chain.set_ang([0.99])
    problem = ReactiveIKProblem(chain)
    problem.set_v_lim(np.array([[0.0, 1.0]]))
    problem.set_dt(0.01)
    problem.set_joint_limit_guard(True)
    with pytest.raises(InfeasibleProblem):
        problem.initialize()


def test_degree_interfaces(planar_arm):
    problem = ReactiveIKProblem(planar_arm)
    problem.set_v_lim_in_deg_per_second(np.array([[-180.0, 90.0]]))
    problem.set_v0_in_deg_per_second(np.array([45.0]))
    problem.initialize()
    x_l, x_u, _, _ = problem.get_bounds_info()
    np.testing.assert_allclose([x_l[0], x_u[0]], [-np.pi, np.pi / 2])
    np.testing.assert_allclose(problem.get_starting_point(), [np.pi / 4])

    problem.begin_solve()
    problem.finalize_solution(SolveStatus.CONVERGED, np.array([np.pi / 6]))
    assert problem.state is ProblemState.CONVERGED
    np.testing.assert_allclose(problem.get_result_in_deg_per_second(), [30.0])


def test_is_feasible(two_link_arm):
    problem = make_problem(two_link_arm)
    problem.initialize()
    assert problem.is_feasible(np.array([0.5, -1.0]))
    assert not problem.is_feasible(np.array([1.1, 0.0]))
