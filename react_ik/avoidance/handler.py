"""
避障：为每个障碍物寻找最活跃的碰撞点，并据此收缩关节速度边界
"""
import logging
import numpy as np
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from ..errors import SizeMismatch
from ..model import KinematicChain, Segment, Obstacle, CollisionPoint
from ..utils import build_frame, invert_transform
from .activation import MagnitudeFunction, linear_falloff

DEFAULT_MAGNITUDE_THRESHOLD = 1e-2


class AvoidanceStrategy(Enum):
    """
    NONE: 直接返回原速度边界（仍然计算碰撞点）
    TACTILE: 根据碰撞点的法向量与激活强度收缩速度边界
    """
    NONE = 'none'
    TACTILE = 'tactile'


def obstacle_to_collision_point(sub_chain: KinematicChain, obstacle: Obstacle,
                                magnitude_fn: MagnitudeFunction) -> CollisionPoint:
    """
    将障碍物中心投影到子链最后一根连杆上（从最后一个关节原点到子链末端，投影点限制在连杆内）

    :param sub_chain: 子链（至少一个关节）
    :param obstacle: 世界坐标系下的障碍物
    :param magnitude_fn: 距离 -> 激活强度
    :return: 碰撞点；法向量由障碍物指向连杆，法向量为零时 n_erf 为零向量
    """
    tip = sub_chain.forward_kinematics()
    link_start = sub_chain.joint_positions()[-1]
    link_end = tip[:3, 3]
    centre = obstacle.position

    ab = link_end - link_start
    denom = float(np.dot(ab, ab))
    t = 0.0 if denom < 1e-12 else float(np.clip(np.dot(centre - link_start, ab) / denom, 0.0, 1.0))
    closest = link_start + t * ab

    n_wrf = closest - centre
    norm = float(np.linalg.norm(n_wrf))
    if norm > 0.0:
        n_wrf = n_wrf / norm
    distance = max(0.0, norm - obstacle.radius)
    magnitude = float(np.clip(magnitude_fn(distance), 0.0, 1.0))

    tip_inv = invert_transform(tip)
    x_erf = tip_inv[:3, :3] @ closest + tip_inv[:3, 3]
    n_erf = tip[:3, :3].T @ n_wrf

    return CollisionPoint(x_erf=x_erf, n_erf=n_erf, magnitude=magnitude, distance=distance,
                          x_wrf=closest, n_wrf=n_wrf, joint_count=sub_chain.get_nr_of_joints())


def find_collision_candidates(chain: KinematicChain, obstacle: Obstacle,
                              magnitude_fn: MagnitudeFunction,
                              logger: Optional[logging.Logger] = None
                              ) -> List[Tuple[KinematicChain, CollisionPoint]]:
    """
    从 1 个关节的子链开始逐个增加关节，在每个长度上计算碰撞点。
    每个候选的控制链 = 子链 + 末端固定段（碰撞点处、z 轴为法向量的坐标系），
    这样标准的雅可比计算直接作用在碰撞点上。

    :return: [(控制链, 碰撞点), ...]，按关节数递增
    """
    logger = logger or logging.getLogger(__name__)
    candidates = []
    for joint_count in range(1, chain.get_nr_of_joints() + 1):
        sub_chain = chain.build_sub_chain(joint_count)
        point = obstacle_to_collision_point(sub_chain, obstacle, magnitude_fn)

        frame, ok = build_frame(point.x_erf, point.n_erf)
        if not ok:
            logger.warning("障碍物 %s 与 %d 关节子链的碰撞法向量为零，跳过该候选", obstacle.name, joint_count)
            continue

        ctrl_chain = sub_chain.copy()
        ctrl_chain.add_segment(Segment(None, frame, name="collision_point"))
        candidates.append((ctrl_chain, point))
    return candidates


def select_collision_point(points: Sequence[CollisionPoint],
                           threshold: float = DEFAULT_MAGNITUDE_THRESHOLD) -> Optional[int]:
    """
    在激活强度大于 threshold 的候选中选出强度最大者（并列时取最先找到的）

    :return: 选中候选的下标，没有候选超过阈值时返回 None
    """
    max_mag = 0.0
    max_idx = None
    for i, point in enumerate(points):
        if point.magnitude > threshold and point.magnitude > max_mag:
            max_mag = point.magnitude
            max_idx = i
    return max_idx


def shape_velocity_bounds(v_lim: np.ndarray, ctrl_chains: Sequence[KinematicChain],
                          points: Sequence[CollisionPoint],
                          logger: Optional[logging.Logger] = None) -> np.ndarray:
    """
    按碰撞点收缩速度边界。

    s = -J_xyz^T n，n 为控制链末端坐标系的 z 轴（由障碍物指向机械臂）。
    s_j >= 0 表示关节 j 正向运动使碰撞点靠近障碍物：收缩上界，下界不超过上界；
    s_j < 0 时对称地收缩下界。只收缩不放宽，每个障碍物的收缩量都以原始 v_lim 计算，
    因此结果与障碍物的处理顺序无关。

    :param v_lim: Nx2 速度边界 (lower, upper)
    :return: 收缩后的 Nx2 速度边界
    """
    logger = logger or logging.getLogger(__name__)
    v_lim = np.asarray(v_lim, dtype=np.float64)
    V_LIM = v_lim.copy()

    for ctrl_chain, point in zip(ctrl_chains, points):
        n_joints = ctrl_chain.get_nr_of_joints()
        J_xyz = ctrl_chain.jacobian()[:3, :n_joints]
        nrm = ctrl_chain.forward_kinematics()[:3, 2]
        s = -J_xyz.T @ nrm

        for j in range(n_joints):
            vm, vM = V_LIM[j, 0], V_LIM[j, 1]
            if s[j] >= 0.0:
                V_LIM[j, 1] = min(V_LIM[j, 1], v_lim[j, 1] * (1.0 - point.magnitude))
                V_LIM[j, 0] = min(V_LIM[j, 0], V_LIM[j, 1])
                logger.debug("s[%d]: %g [avoidance], adjusting max. Limits: [%g %g]->[%g %g]",
                             j, s[j], vm, vM, V_LIM[j, 0], V_LIM[j, 1])
            else:
                V_LIM[j, 0] = max(V_LIM[j, 0], v_lim[j, 0] * (1.0 - point.magnitude))
                V_LIM[j, 1] = max(V_LIM[j, 0], V_LIM[j, 1])
                logger.debug("s[%d]: %g [approach], adjusting min. Limits: [%g %g]->[%g %g]",
                             j, s[j], vm, vM, V_LIM[j, 0], V_LIM[j, 1])

    return V_LIM


class AvoidanceHandler:
    """
    每个控制周期构造一次：对每个障碍物选出一个碰撞点与对应的控制链，
    再按所选策略收缩速度边界。
    """

    def __init__(self, chain: KinematicChain, obstacles: Sequence[Obstacle],
                 strategy: Union[AvoidanceStrategy, str] = AvoidanceStrategy.TACTILE,
                 magnitude_fn: Optional[MagnitudeFunction] = None,
                 threshold: float = DEFAULT_MAGNITUDE_THRESHOLD,
                 logger: Optional[logging.Logger] = None):
        """
        :param chain: 当前关节角下的完整运动链（不会被修改）
        :param obstacles: 本周期的障碍物快照（世界坐标系）
        :param strategy: 速度边界收缩策略
        :param magnitude_fn: 距离 -> 激活强度，默认 0.2 米线性衰减
        :param threshold: 碰撞点的最小激活强度
        """
        self.chain = chain
        self.strategy = AvoidanceStrategy(strategy)
        self.magnitude_fn = magnitude_fn or linear_falloff(0.2)
        self.threshold = threshold
        self.logger = logger or logging.getLogger(__name__)

        self.ctrl_chains: List[KinematicChain] = []
        self.collision_points: List[CollisionPoint] = []

        for obstacle in obstacles:
            candidates = find_collision_candidates(chain, obstacle, self.magnitude_fn, self.logger)
            points = [point for _, point in candidates]
            max_idx = select_collision_point(points, self.threshold)

            if max_idx is None:
                continue

            self.logger.debug("Collision points with  distance: %s Selected: %d",
                              " ".join(f"{p.distance:g}" for p in points), max_idx)
            self.logger.debug("Collision points with magnitude: %s Selected: %d",
                              " ".join(f"{p.magnitude:g}" for p in points), max_idx)

            self.ctrl_chains.append(candidates[max_idx][0])
            self.collision_points.append(points[max_idx])

    def get_ctrl_chains(self) -> List[KinematicChain]:
        return list(self.ctrl_chains)

    def get_ctrl_points(self) -> List[CollisionPoint]:
        return list(self.collision_points)

    def get_v_lim(self, v_lim: np.ndarray) -> np.ndarray:
        """
        按策略返回收缩后的速度边界

        :param v_lim: Nx2 速度边界，N 为完整链的关节数
        """
        v_lim = np.asarray(v_lim, dtype=np.float64)
        expected = (self.chain.get_nr_of_joints(), 2)
        if v_lim.shape != expected:
            raise SizeMismatch(f"Velocity bounds must have shape {expected}, got {v_lim.shape}")

        if self.strategy is AvoidanceStrategy.TACTILE:
            return shape_velocity_bounds(v_lim, self.ctrl_chains, self.collision_points, self.logger)
        return v_lim.copy()
