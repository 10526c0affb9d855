"""
反应式控制器：单个控制周期的编排

周期调度、关节状态读取与速度指令下发由外部循环负责；
本模块只做 关节角 -> 避障收缩速度边界 -> 单步 IK 求解 -> 速度指令。
"""
import itertools
import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence

from .avoidance import AvoidanceHandler, MagnitudeFunction, make_magnitude_function
from .config import ControllerConfig
from .model import KinematicChain, Obstacle
from .solver import SolverBackend, ScipyBackend, SolveResult, SolveStatus, ReactiveIKProblem, solve_problem
from .utils import deg_to_rad, rotation_matrix_to_rpy


@dataclass
class ControlCommand:
    """
    下发给机器人的速度指令；velocity_deg 为 None 表示本周期没有可用结果，
    外部循环应使用安全的后备指令（零速度或上一周期的指令）。
    """
    velocity_deg: Optional[np.ndarray]
    status: SolveStatus


class ReactController:
    """
    每个控制周期调用一次 step()，周期之间不保留任何求解状态。
    """

    def __init__(self, chain: KinematicChain, config: Optional[ControllerConfig] = None,
                 backend: Optional[SolverBackend] = None,
                 magnitude_fn: Optional[MagnitudeFunction] = None,
                 logger: Optional[logging.Logger] = None):
        """
        :param chain: 机械臂运动链，由控制器独占
        :param config: 控制器参数
        :param backend: 求解后端，默认 ScipyBackend
        :param magnitude_fn: 距离 -> 激活强度，默认按 config.activation 构造
        """
        self.chain = chain
        self.config = config or ControllerConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.backend = backend or ScipyBackend(self.logger)
        self.magnitude_fn = magnitude_fn or make_magnitude_function(self.config.activation,
                                                                    self.config.activation_range)

    def velocity_limits(self) -> np.ndarray:
        """对称的机器速度边界 ±v_max (rad/s)，Nx2"""
        v_max = float(deg_to_rad(self.config.v_max))
        n = self.chain.get_nr_of_joints()
        return np.column_stack([np.full(n, -v_max), np.full(n, v_max)])

    def solve(self, target_position: Sequence[float], target_rpy: Sequence[float],
              obstacles: Sequence[Obstacle] = (),
              joint_angles: Optional[Sequence[float]] = None) -> SolveResult:
        """
        :param target_position: 目标位置 [x, y, z]（米）
        :param target_rpy: 目标姿态 [roll, pitch, yaw]（弧度）
        :param obstacles: 本周期的障碍物快照
        :param joint_angles: 当前关节角（弧度），None 表示沿用链中已有的值
        """
        if joint_angles is not None:
            self.chain.set_ang(joint_angles)

        v_lim = self.velocity_limits()
        handler = AvoidanceHandler(self.chain, obstacles, self.config.avoidance, self.magnitude_fn,
                                   self.config.magnitude_threshold, self.logger)
        v_lim = handler.get_v_lim(v_lim)

        problem = ReactiveIKProblem(self.chain, guard_ratio=self.config.guard_ratio, logger=self.logger)
        problem.set_xr(np.concatenate([np.asarray(target_position, dtype=np.float64),
                                       np.asarray(target_rpy, dtype=np.float64)]))
        problem.set_v_lim(v_lim)
        problem.set_dt(self.config.dt)
        problem.set_joint_limit_guard(self.config.enable_joint_limit_guard)
        problem.set_orientation_control(self.config.enable_orientation_control)

        return solve_problem(problem, self.backend, self.config.tol, self.config.time_limit,
                             self.config.max_iterations, self.logger)

    def step(self, target_position: Sequence[float], target_rpy: Sequence[float],
             obstacles: Sequence[Obstacle] = (),
             joint_angles: Optional[Sequence[float]] = None) -> ControlCommand:
        """
        一个控制周期：返回可下发的速度指令 (deg/s)，结果不可用时 velocity_deg 为 None
        """
        result = self.solve(target_position, target_rpy, obstacles, joint_angles)
        if not result.is_usable:
            return ControlCommand(None, result.status)
        return ControlCommand(result.velocity_deg, result.status)

    def self_test(self, increments: Sequence[float] = (0.001, 0.004, 0.010),
                  position_tolerance: float = 1e-4) -> bool:
        """
        求解器自检：以当前位姿为基准，对每个增量、x/y/z 偏移的 8 种组合各求解一次（无障碍物）。
        每次求解须收敛，且一步预测位置 p0 + dt·J·v 与偏移后的目标相差不超过 position_tolerance，
        全部满足时返回 True。
        """
        H = self.chain.forward_kinematics()
        position = H[:3, 3]
        rpy = rotation_matrix_to_rpy(H[:3, :3])
        J_xyz = self.chain.jacobian()[:3]

        passed = True
        counter = 0
        for i, j, k in itertools.product((0, 1), repeat=3):
            for increment in increments:
                offset = increment * np.array([i, j, k], dtype=np.float64)
                target = position + offset
                result = self.solve(target, rpy)
                predicted = position + self.config.dt * J_xyz @ result.velocity
                error = float(np.linalg.norm(predicted - target))
                ok = result.status is SolveStatus.CONVERGED and error <= position_tolerance
                log = self.logger.warning if ok else self.logger.error
                log("Test number %d, dT %g, offset [%g %g %g], error %g, result %s",
                    counter, self.config.dt, offset[0], offset[1], offset[2], error, "TRUE" if ok else "FALSE")
                passed = passed and ok
                counter += 1
        return passed
