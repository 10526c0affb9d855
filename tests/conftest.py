import numpy as np
import pytest

from react_ik.model import KinematicChain, Segment, RevoluteJoint, PrismaticJoint, FixedJoint
from react_ik.utils import translation_matrix


def make_planar_arm(link_lengths, limits=None):
    """平面机械臂：每个关节绕 z 轴旋转，连杆沿 x 轴"""
    chain = KinematicChain()
    for i, length in enumerate(link_lengths):
        joint_limits = None if limits is None else limits[i]
        chain.add_segment(Segment(RevoluteJoint(f"j{i}", np.array([0.0, 0.0, 1.0]), joint_limits),
                                  translation_matrix([length, 0.0, 0.0]), name=f"link{i}"))
    return chain


@pytest.fixture
def planar_arm():
    """单关节平面臂，末端在 (1, 0, 0)"""
    return make_planar_arm([1.0])


@pytest.fixture
def two_link_arm():
    return make_planar_arm([1.0, 1.0])


@pytest.fixture
def spatial_arm():
    """三个转动关节 + 一个移动关节 + 末端工具段"""
    chain = KinematicChain()
    chain.add_segment(Segment.from_offset(RevoluteJoint("base_yaw", np.array([0.0, 0.0, 1.0]),
                                                        (-np.pi, np.pi)),
                                          np.array([0.0, 0.0, 0.3]), name="base"))
    chain.add_segment(Segment.from_offset(RevoluteJoint("shoulder", np.array([0.0, 1.0, 0.0]),
                                                        (-2.0, 2.0)),
                                          np.array([0.4, 0.0, 0.0]), name="upper_arm"))
    chain.add_segment(Segment.from_offset(RevoluteJoint("elbow", np.array([0.0, 1.0, 0.0])),
                                          np.array([0.3, 0.0, 0.05]),
                                          np.array([np.cos(0.2), 0.0, 0.0, np.sin(0.2)]), name="forearm"))
    chain.add_segment(Segment.from_offset(PrismaticJoint("slide", np.array([1.0, 0.0, 0.0]), (0.0, 0.1)),
                                          np.array([0.05, 0.0, 0.0]), name="slider"))
    chain.add_segment(Segment(FixedJoint("tool"), translation_matrix([0.1, 0.02, 0.0]), name="tool"))
    chain.set_ang([0.3, -0.5, 0.8, 0.04])
    return chain
