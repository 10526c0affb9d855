"""
单步速度级反应式 IK 问题 (Reactive IK Problem)

决策变量为关节速度 v。在初始化时的关节角处线性化（整个求解过程中不再重新线性化），
用一步欧拉积分预测下一周期的末端位姿，最小化其与目标位姿的误差。
"""
import logging
import numpy as np
from enum import Enum
from typing import Optional, Tuple

from ..errors import ConfigurationError, SizeMismatch, InfeasibleProblem
from ..model import KinematicChain
from ..utils import skew, angular_error, rpy_to_rotation_matrix, deg_to_rad, rad_to_deg
from .guard import GuardZone, DEFAULT_GUARD_RATIO
from .status import SolveStatus


class ProblemState(Enum):
    CONFIGURED = 'configured'
    INITIALIZED = 'initialized'
    SOLVING = 'solving'
    CONVERGED = 'converged'
    TIME_LIMIT_REACHED = 'time_limit_reached'
    INFEASIBLE = 'infeasible'
    FAILED = 'failed'


_FINAL_STATES = {
    SolveStatus.CONVERGED: ProblemState.CONVERGED,
    SolveStatus.TIME_LIMIT: ProblemState.TIME_LIMIT_REACHED,
    SolveStatus.TIME_LIMIT_INFEASIBLE: ProblemState.TIME_LIMIT_REACHED,
    SolveStatus.INFEASIBLE: ProblemState.INFEASIBLE,
    SolveStatus.ITERATION_LIMIT: ProblemState.FAILED,
    SolveStatus.FAILED: ProblemState.FAILED,
}


class ReactiveIKProblem:
    """
    一个控制周期内的非线性规划问题，向求解后端提供回调接口：
    get_nlp_info / get_bounds_info / get_starting_point /
    eval_f / eval_grad_f / eval_g / eval_jac_g_structure / eval_jac_g / finalize_solution

    目标函数:  ||p0 + dt*J_xyz*v - p_r||^2 (+ ||e_ang||^2)
    约束:      速度上下界（盒约束）；启用限位保护时每个关节一个线性约束
               q0_i + dt*v_i ∈ [min_ext_i, max_ext_i]
    不提供 Hessian，由后端的拟牛顿近似代替。
    """

    def __init__(self, chain: KinematicChain, guard_ratio: float = DEFAULT_GUARD_RATIO,
                 logger: Optional[logging.Logger] = None):
        """
        :param chain: 运动链，initialize() 时在其当前关节角处取快照
        :param guard_ratio: 限位保护裕度比例
        """
        self.chain = chain
        self.n = chain.get_nr_of_joints()
        self.guard_ratio = guard_ratio
        self.logger = logger or logging.getLogger(__name__)

        self.dt = 0.01
        self.hitting_constraints = False
        self.orientation_control = False

        # 默认目标为当前位姿（保持不动）
        H = chain.forward_kinematics()
        self.pr: np.ndarray = H[:3, 3].copy()
        self.Hr: np.ndarray = H[:3, :3].copy()

        self.v_lim: Optional[np.ndarray] = None
        self.v0: np.ndarray = np.zeros(self.n)
        self.v: np.ndarray = np.zeros(self.n)

        self.state = ProblemState.CONFIGURED
        self._cache_v: Optional[np.ndarray] = None

    # ------------------------------------------------------------------
    # 配置（任何修改都回到 CONFIGURED 状态）
    # ------------------------------------------------------------------
    def set_xr(self, xr: np.ndarray):
        """
        :param xr: [x, y, z, roll, pitch, yaw]，位置（米）+ 姿态（弧度）
        """
        xr = np.asarray(xr, dtype=np.float64)
        if xr.shape != (6,):
            raise SizeMismatch(f"Target must be a 6-element vector, got shape {xr.shape}")
        self.pr = xr[:3].copy()
        self.Hr = rpy_to_rotation_matrix(xr[3:])
        self._reconfigure()

    def set_target_pose(self, target: np.ndarray):
        """
        :param target: 目标 4x4 变换矩阵
        """
        target = np.asarray(target, dtype=np.float64)
        if target.shape != (4, 4):
            raise SizeMismatch(f"Target pose must be a 4x4 matrix, got shape {target.shape}")
        self.pr = target[:3, 3].copy()
        self.Hr = target[:3, :3].copy()
        self._reconfigure()

    def set_v_lim(self, v_lim: np.ndarray):
        """
        :param v_lim: Nx2 速度边界 (lower, upper)，单位 rad/s
        """
        v_lim = np.array(v_lim, dtype=np.float64)
        if v_lim.shape != (self.n, 2):
            raise SizeMismatch(f"Velocity bounds must have shape {(self.n, 2)}, got {v_lim.shape}")
        self.v_lim = v_lim
        self._reconfigure()

    def set_v_lim_in_deg_per_second(self, v_lim: np.ndarray):
        self.set_v_lim(deg_to_rad(v_lim))

    def set_v0(self, v0: np.ndarray):
        """
        :param v0: 初始猜测（rad/s），初始化时会被裁剪进速度边界
        """
        v0 = np.array(v0, dtype=np.float64).ravel()
        if v0.size != self.n:
            raise SizeMismatch(f"Initial guess must have {self.n} elements, got {v0.size}")
        self.v0 = v0
        self._reconfigure()

    def set_v0_in_deg_per_second(self, v0: np.ndarray):
        self.set_v0(deg_to_rad(v0))

    def set_dt(self, dt: float):
        if dt <= 0.0:
            raise ConfigurationError(f"dt must be positive, got {dt}")
        self.dt = float(dt)
        self._reconfigure()

    def set_joint_limit_guard(self, enabled: bool):
        self.hitting_constraints = bool(enabled)
        self._reconfigure()

    def set_orientation_control(self, enabled: bool):
        self.orientation_control = bool(enabled)
        self._reconfigure()

    def _reconfigure(self):
        self.state = ProblemState.CONFIGURED
        self._cache_v = None

    # ------------------------------------------------------------------
    # 初始化
    # ------------------------------------------------------------------
    def initialize(self):
        """
        在运动链当前关节角处取快照 (H0, J0, q0)，计算限位保护区与速度边界，
        并把初始猜测裁剪进边界得到可行起点。
        """
        if self.n == 0:
            raise ConfigurationError("Chain has no joints")
        if self.v_lim is None:
            raise ConfigurationError("Velocity bounds must be set before initialize()")

        self.q0 = self.chain.get_ang()
        H0 = self.chain.forward_kinematics()
        self.R0 = H0[:3, :3].copy()
        self.p0 = H0[:3, 3].copy()
        J0 = self.chain.jacobian()
        self.J0_xyz = J0[:3, :]
        self.J0_ang = J0[3:, :]

        self.guard = GuardZone.from_limits(self.chain.get_lower_bounds(), self.chain.get_upper_bounds(),
                                           self.guard_ratio)
        self.bounds = self._compute_bounds()

        # e_ang 对 w = dt*J_ang*v 的导数（一阶旋转更新下精确成立）
        self.Derr_ang = 0.5 * sum(skew(self.Hr[:, i]) @ skew(self.R0[:, i]) for i in range(3))

        self.x0 = np.clip(self.v0, self.bounds[:, 0], self.bounds[:, 1])
        self.v = self.x0.copy()
        self._cache_v = None
        self.state = ProblemState.INITIALIZED

        try:
            self._check_feasibility()
        except InfeasibleProblem:
            self.state = ProblemState.INFEASIBLE
            raise

    def _compute_bounds(self) -> np.ndarray:
        if self.hitting_constraints:
            return self.guard.shape_bounds(self.q0, self.v_lim)
        return self.v_lim.copy()

    def _check_feasibility(self):
        lower, upper = self.bounds[:, 0], self.bounds[:, 1]
        bad = np.flatnonzero(lower > upper)
        if bad.size > 0:
            raise InfeasibleProblem(f"Velocity bounds have lower > upper for joints {bad.tolist()}")

        if self.hitting_constraints:
            g_lo = (self.guard.min_ext - self.q0) / self.dt
            g_hi = (self.guard.max_ext - self.q0) / self.dt
            bad = np.flatnonzero(np.maximum(g_lo, lower) > np.minimum(g_hi, upper))
            if bad.size > 0:
                raise InfeasibleProblem(f"Joint limit guard leaves no feasible velocity for joints {bad.tolist()}")

    def _require_initialized(self):
        if self.state is ProblemState.CONFIGURED:
            raise ConfigurationError("Problem must be initialized before evaluation")

    # ------------------------------------------------------------------
    # 求解器回调
    # ------------------------------------------------------------------
    def get_nlp_info(self) -> Tuple[int, int, int, int]:
        """
        :return: (变量数 n, 约束数 m, 约束雅可比非零元数, Hessian 非零元数)
        """
        m = self.n if self.hitting_constraints else 0
        return self.n, m, m, 0

    def get_bounds_info(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        :return: (x_l, x_u, g_l, g_u)
        """
        self._require_initialized()
        if self.hitting_constraints:
            g_l, g_u = self.guard.min_ext.copy(), self.guard.max_ext.copy()
        else:
            g_l, g_u = np.zeros(0), np.zeros(0)
        return self.bounds[:, 0].copy(), self.bounds[:, 1].copy(), g_l, g_u

    def get_starting_point(self) -> np.ndarray:
        self._require_initialized()
        return self.x0.copy()

    def _compute_quantities(self, v: np.ndarray):
        """只有 v 与上一次求值不同时才重新计算预测位姿与误差"""
        if self._cache_v is not None and np.array_equal(v, self._cache_v):
            return
        self._cache_v = v.copy()

        self.err_xyz = self.p0 + self.dt * (self.J0_xyz @ v) - self.pr
        if self.orientation_control:
            w = self.dt * (self.J0_ang @ v)
            self.He = (np.identity(3) + skew(w)) @ self.R0
            self.err_ang = angular_error(self.He, self.Hr)

    def eval_f(self, v: np.ndarray) -> float:
        self._require_initialized()
        v = np.asarray(v, dtype=np.float64)
        self._compute_quantities(v)
        value = float(np.dot(self.err_xyz, self.err_xyz))
        if self.orientation_control:
            value += float(np.dot(self.err_ang, self.err_ang))
        return value

    def eval_grad_f(self, v: np.ndarray) -> np.ndarray:
        self._require_initialized()
        v = np.asarray(v, dtype=np.float64)
        self._compute_quantities(v)
        grad = 2.0 * self.dt * (self.J0_xyz.T @ self.err_xyz)
        if self.orientation_control:
            grad += 2.0 * self.dt * (self.J0_ang.T @ (self.Derr_ang.T @ self.err_ang))
        return grad

    def eval_g(self, v: np.ndarray) -> np.ndarray:
        """限位保护约束 g_i(v) = q0_i + dt*v_i"""
        self._require_initialized()
        if not self.hitting_constraints:
            return np.zeros(0)
        return self.q0 + self.dt * np.asarray(v, dtype=np.float64)

    def eval_jac_g_structure(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        约束雅可比的稀疏结构：每个约束只依赖一个变量，为对角阵

        :return: (行下标, 列下标)
        """
        _, m, _, _ = self.get_nlp_info()
        index = np.arange(m)
        return index, index.copy()

    def eval_jac_g(self, v: np.ndarray) -> np.ndarray:
        """约束雅可比的非零元（与 eval_jac_g_structure 顺序一致）"""
        self._require_initialized()
        _, m, _, _ = self.get_nlp_info()
        return np.full(m, self.dt)

    def is_feasible(self, v: np.ndarray, tol: float = 1e-8) -> bool:
        """v 是否满足盒约束与限位保护约束（允许 tol 的误差）"""
        self._require_initialized()
        v = np.asarray(v, dtype=np.float64)
        x_l, x_u, g_l, g_u = self.get_bounds_info()
        if np.any(v < x_l - tol) or np.any(v > x_u + tol):
            return False
        g = self.eval_g(v)
        return not (np.any(g < g_l - tol) or np.any(g > g_u + tol))

    def begin_solve(self):
        self._require_initialized()
        self.state = ProblemState.SOLVING

    def finalize_solution(self, status: SolveStatus, v: np.ndarray):
        """记录后端返回的最优迭代点并进入终止状态"""
        self.v = np.array(v, dtype=np.float64)
        self.state = _FINAL_STATES[SolveStatus(status)]
        self.logger.debug("Solve finished with status %s, v = %s", SolveStatus(status).name, self.v)

    # ------------------------------------------------------------------
    # 结果
    # ------------------------------------------------------------------
    def get_result(self) -> np.ndarray:
        """最优关节速度（rad/s）"""
        return self.v.copy()

    def get_result_in_deg_per_second(self) -> np.ndarray:
        return rad_to_deg(self.v)
