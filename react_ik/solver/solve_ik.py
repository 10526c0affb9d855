"""
反应式 IK 单步求解
构建并初始化 ReactiveIKProblem，在时间预算内调用后端，返回关节速度与求解状态
"""
import logging
import time
import numpy as np
from dataclasses import dataclass
from typing import Optional

from ..errors import InfeasibleProblem, SolverNonConvergence, SolverFailure
from ..model import KinematicChain
from ..utils import rad_to_deg
from .backend import SolverBackend, ScipyBackend
from .guard import DEFAULT_GUARD_RATIO
from .problem import ReactiveIKProblem
from .status import SolveStatus

# 时间预算占控制周期的比例
DEFAULT_TIME_BUDGET_RATIO = 0.97


@dataclass
class SolveResult:
    status: SolveStatus
    velocity: np.ndarray  # rad/s
    iterations: int = 0
    solve_time: float = 0.0
    message: str = ""

    @property
    def velocity_deg(self) -> np.ndarray:
        """关节速度（deg/s）"""
        return rad_to_deg(self.velocity)

    @property
    def is_usable(self) -> bool:
        return self.status.is_usable

    def raise_for_status(self):
        """不可用的结果转换为对应的异常"""
        if self.status.is_usable:
            return
        if self.status is SolveStatus.INFEASIBLE:
            raise InfeasibleProblem(self.message or "Problem is infeasible")
        if self.status in (SolveStatus.ITERATION_LIMIT, SolveStatus.TIME_LIMIT_INFEASIBLE):
            raise SolverNonConvergence(self.message or f"Solver stopped with status {self.status.name}")
        raise SolverFailure(self.message or f"Solver failed with status {self.status.name}")


def solve_problem(
    problem: ReactiveIKProblem,
    backend: Optional[SolverBackend] = None,
    tol: float = 1e-6,
    time_limit: Optional[float] = None,
    max_iterations: int = 1000,
    logger: Optional[logging.Logger] = None
) -> SolveResult:
    """
    初始化并求解一个已配置好的问题

    :param problem: 已设置目标、速度边界、dt 等的问题
    :param backend: 求解后端，默认 ScipyBackend
    :param tol: 收敛容差，按位姿误差计（米 / 弧度）
    :param time_limit: 墙钟时间预算（秒），默认 0.97 * dt
    :param max_iterations: 最大迭代次数
    :return: SolveResult；不可行时不调用后端，直接返回 INFEASIBLE 与零速度
    """
    logger = logger or logging.getLogger(__name__)
    backend = backend or ScipyBackend(logger)
    start_time = time.perf_counter()

    try:
        problem.initialize()
    except InfeasibleProblem as e:
        logger.warning("Reactive IK problem is infeasible: %s", e)
        return SolveResult(SolveStatus.INFEASIBLE, np.zeros(problem.n), 0,
                           time.perf_counter() - start_time, str(e))

    if time_limit is None:
        time_limit = DEFAULT_TIME_BUDGET_RATIO * problem.dt

    problem.begin_solve()
    outcome = backend.solve(problem, tol, time_limit, max_iterations)
    problem.finalize_solution(outcome.status, outcome.x)

    result = SolveResult(outcome.status, problem.get_result(), outcome.iterations,
                         time.perf_counter() - start_time, outcome.message)
    if not result.is_usable:
        logger.warning("Reactive IK solve not usable: status %s (%s)", result.status.name, result.message)
    return result


def solve_ik(
    chain: KinematicChain,
    target: np.ndarray,
    v_lim: np.ndarray,
    dt: float,
    v0: Optional[np.ndarray] = None,
    joint_limit_guard: bool = False,
    orientation_control: bool = False,
    guard_ratio: float = DEFAULT_GUARD_RATIO,
    tol: float = 1e-6,
    time_limit: Optional[float] = None,
    max_iterations: int = 1000,
    backend: Optional[SolverBackend] = None,
    logger: Optional[logging.Logger] = None
) -> SolveResult:
    """
    在运动链当前关节角处求解一步反应式 IK

    :param chain: 运动链（关节角已更新为当前值）
    :param target: 目标 4x4 变换矩阵，或 [x, y, z, roll, pitch, yaw]（米/弧度）
    :param v_lim: Nx2 速度边界（rad/s），可以是避障收缩后的边界
    :param dt: 控制周期（秒）
    :param v0: 初始猜测（rad/s），默认全零
    :param joint_limit_guard: 是否启用关节限位保护约束
    :param orientation_control: 目标函数是否包含姿态误差
    :param guard_ratio: 限位保护裕度比例
    :param tol: 收敛容差，按位姿误差计（米 / 弧度）
    :param time_limit: 墙钟时间预算（秒），默认 0.97 * dt
    :param max_iterations: 最大迭代次数
    :param backend: 求解后端，默认 ScipyBackend
    :return: SolveResult
    """
    problem = ReactiveIKProblem(chain, guard_ratio=guard_ratio, logger=logger)

    target = np.asarray(target, dtype=np.float64)
    if target.shape == (4, 4):
        problem.set_target_pose(target)
    else:
        problem.set_xr(target)

    problem.set_v_lim(v_lim)
    if v0 is not None:
        problem.set_v0(v0)
    problem.set_dt(dt)
    problem.set_joint_limit_guard(joint_limit_guard)
    problem.set_orientation_control(orientation_control)

    return solve_problem(problem, backend, tol, time_limit, max_iterations, logger)
