import numpy as np
import pytest

from react_ik.errors import SizeMismatch, DimensionMismatch, IndexOutOfRange
from react_ik.model import KinematicChain, Segment, RevoluteJoint, PrismaticJoint, FixedJoint
from react_ik.utils import translation_matrix

from .conftest import make_planar_arm


def numerical_jacobian(chain: KinematicChain, eps: float = 1e-6) -> np.ndarray:
    """中心差分：线速度取末端位置差分，角速度取旋转矩阵差分的反对称部分"""
    q = chain.get_ang()
    n = q.size
    jac = np.zeros((6, n))
    for i in range(n):
        dq = np.zeros(n)
        dq[i] = eps
        chain.set_ang(q + dq)
        H_plus = chain.forward_kinematics()
        chain.set_ang(q - dq)
        H_minus = chain.forward_kinematics()
        jac[:3, i] = (H_plus[:3, 3] - H_minus[:3, 3]) / (2 * eps)
        dR = (H_plus[:3, :3] - H_minus[:3, :3]) / (2 * eps)
        omega_hat = dR @ H_plus[:3, :3].T
        jac[3:, i] = [omega_hat[2, 1], omega_hat[0, 2], omega_hat[1, 0]]
    chain.set_ang(q)
    return jac


def test_planar_forward_kinematics(two_link_arm):
    two_link_arm.set_ang([np.pi / 2, -np.pi / 2])
    H = two_link_arm.forward_kinematics()
    np.testing.assert_allclose(H[:3, 3], [1.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(H[:3, :3], np.identity(3), atol=1e-12)


def test_forward_kinematics_of_intermediate_joint(two_link_arm):
    two_link_arm.set_ang([np.pi / 2, 0.3])
    H = two_link_arm.forward_kinematics(0)
    np.testing.assert_allclose(H[:3, 3], [0.0, 1.0, 0.0], atol=1e-12)


def test_planar_jacobian_analytic(planar_arm):
    jac = planar_arm.jacobian()
    np.testing.assert_allclose(jac[:, 0], [0.0, 1.0, 0.0, 0.0, 0.0, 1.0], atol=1e-12)


def test_jacobian_matches_finite_differences(spatial_arm):
    np.testing.assert_allclose(spatial_arm.jacobian(), numerical_jacobian(spatial_arm), atol=1e-5)


def test_jacobian_matches_finite_differences_random_configurations(spatial_arm):
    rng = np.random.default_rng(42)
    for _ in range(5):
        spatial_arm.set_ang(rng.uniform(-1.0, 1.0, size=4) * [1.0, 1.0, 1.0, 0.05])
        np.testing.assert_allclose(spatial_arm.jacobian(), numerical_jacobian(spatial_arm), atol=1e-5)


def test_jacobian_partial_segment_count(two_link_arm):
    two_link_arm.set_ang([0.0, 0.0])
    jac = two_link_arm.jacobian(1)
    # 参考点为第一个段末端 (1, 0, 0)，第二个关节的列尚未出现
    np.testing.assert_allclose(jac[:, 0], [0.0, 1.0, 0.0, 0.0, 0.0, 1.0], atol=1e-12)
    np.testing.assert_allclose(jac[:, 1], np.zeros(6))


def test_jacobian_dimension_mismatch(two_link_arm):
    two_link_arm._q = [0.0]
    with pytest.raises(DimensionMismatch):
        two_link_arm.jacobian()


def test_new_joint_bounds_from_limits():
    chain = make_planar_arm([1.0, 1.0], limits=[(-1.0, 2.0), None])
    np.testing.assert_array_equal(chain.get_ang(), [0.0, 0.0])
    np.testing.assert_array_equal(chain.get_lower_bounds(), [-1.0, -np.inf])
    np.testing.assert_array_equal(chain.get_upper_bounds(), [2.0, np.inf])
    assert chain.get_min(0) == -1.0
    assert chain.get_max(1) == np.inf


def test_set_ang_wrong_length_leaves_state_unchanged(two_link_arm):
    two_link_arm.set_ang([0.1, 0.2])
    with pytest.raises(SizeMismatch):
        two_link_arm.set_ang([1.0, 2.0, 3.0])
    np.testing.assert_array_equal(two_link_arm.get_ang(), [0.1, 0.2])


def test_set_bounds_wrong_length(two_link_arm):
    with pytest.raises(SizeMismatch):
        two_link_arm.set_bounds([0.0], [1.0, 2.0])
    np.testing.assert_array_equal(two_link_arm.get_lower_bounds(), [-np.inf, -np.inf])


def test_get_ang_returns_copy(two_link_arm):
    q = two_link_arm.get_ang()
    q[0] = 5.0
    assert two_link_arm.get_ang()[0] == 0.0


def test_remove_joint_drops_trailing_fixed_segments(spatial_arm):
    assert spatial_arm.get_nr_of_segments() == 5
    spatial_arm.remove_joint()
    assert spatial_arm.get_nr_of_segments() == 3
    assert spatial_arm.get_nr_of_joints() == 3
    np.testing.assert_allclose(spatial_arm.get_ang(), [0.3, -0.5, 0.8])


def test_remove_from_empty_chain():
    chain = KinematicChain()
    with pytest.raises(IndexOutOfRange):
        chain.remove_segment()
    chain.add_segment(Segment(FixedJoint("base"), translation_matrix([0.0, 0.0, 1.0])))
    with pytest.raises(IndexOutOfRange):
        chain.remove_joint()
    assert chain.get_nr_of_segments() == 1


def test_invariant_under_random_add_remove():
    rng = np.random.default_rng(7)
    chain = KinematicChain()
    for _ in range(200):
        action = rng.integers(0, 4)
        if action == 0:
            chain.add_segment(Segment(RevoluteJoint("r", rng.normal(size=3) + 0.1), translation_matrix(rng.normal(size=3))))
        elif action == 1:
            chain.add_segment(Segment(PrismaticJoint("p", np.array([0.0, 0.0, 1.0]), (-0.5, 0.5))))
        elif action == 2:
            chain.add_segment(Segment(None, translation_matrix([0.1, 0.0, 0.0])))
        elif chain.get_nr_of_segments() > 0:
            chain.remove_segment()

        n_joint_segments = sum(1 for s in chain.segments if s.has_joint)
        n = chain.get_nr_of_joints()
        assert n == n_joint_segments <= chain.get_nr_of_segments()
        assert chain.get_ang().size == chain.get_lower_bounds().size == chain.get_upper_bounds().size == n


def test_build_sub_chain_is_independent(spatial_arm):
    sub_chain = spatial_arm.build_sub_chain(2)
    assert sub_chain.get_nr_of_joints() == 2
    np.testing.assert_allclose(sub_chain.get_ang(), [0.3, -0.5])
    np.testing.assert_allclose(sub_chain.get_lower_bounds(), [-np.pi, -2.0])
    np.testing.assert_allclose(sub_chain.forward_kinematics(), spatial_arm.forward_kinematics(1))

    sub_chain.set_ang([0.0, 0.0])
    np.testing.assert_allclose(spatial_arm.get_ang(), [0.3, -0.5, 0.8, 0.04])


def test_build_sub_chain_includes_trailing_fixed_segments(spatial_arm):
    sub_chain = spatial_arm.build_sub_chain(4)
    assert sub_chain.get_nr_of_segments() == 5
    np.testing.assert_allclose(sub_chain.forward_kinematics(), spatial_arm.forward_kinematics())


@pytest.mark.parametrize("joint_count", [0, 5])
def test_build_sub_chain_out_of_range(spatial_arm, joint_count):
    with pytest.raises(IndexOutOfRange):
        spatial_arm.build_sub_chain(joint_count)


def test_copy_shares_no_state(two_link_arm):
    clone = two_link_arm.copy()
    clone.set_ang([1.0, 1.0])
    clone.add_segment(Segment(None, translation_matrix([0.5, 0.0, 0.0])))
    np.testing.assert_array_equal(two_link_arm.get_ang(), [0.0, 0.0])
    assert two_link_arm.get_nr_of_segments() == 2


def test_joint_positions(two_link_arm):
    two_link_arm.set_ang([np.pi / 2, 0.0])
    positions = two_link_arm.joint_positions()
    np.testing.assert_allclose(positions[0], [0.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(positions[1], [0.0, 1.0, 0.0], atol=1e-12)


def test_zero_axis_rejected():
    with pytest.raises(ValueError):
        RevoluteJoint("bad", np.zeros(3))


def test_segment_tip_is_read_only():
    segment = Segment(RevoluteJoint("r", np.array([0.0, 0.0, 1.0])), translation_matrix([1.0, 0.0, 0.0]))
    with pytest.raises(ValueError):
        segment.tip[0, 3] = 2.0


def test_add_chain_appends_segments(two_link_arm, planar_arm):
    two_link_arm.set_ang([0.5, 0.5])
    two_link_arm.add_chain(planar_arm)
    assert two_link_arm.get_nr_of_segments() == 3
    assert two_link_arm.get_nr_of_joints() == 3
    np.testing.assert_allclose(two_link_arm.get_ang(), [0.5, 0.5, 0.0])
