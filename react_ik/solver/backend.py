"""
非线性规划求解后端

后端只通过 ReactiveIKProblem 的回调接口访问问题，任何满足 SolverBackend 约定的实现都可以互换。
"""
import logging
import time
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from scipy.optimize import minimize
from scipy.sparse import coo_matrix

from .problem import ReactiveIKProblem
from .status import SolveStatus


@dataclass
class BackendResult:
    status: SolveStatus
    x: np.ndarray
    iterations: int = 0
    message: str = ""


class SolverBackend(ABC):
    """
    求解后端接口：在 time_limit 秒的墙钟预算内求解，返回状态码与最优迭代点
    """

    @abstractmethod
    def solve(self, problem: ReactiveIKProblem, tol: float, time_limit: float,
              max_iterations: int) -> BackendResult:
        """
        :param problem: 已初始化的问题
        :param tol: 收敛容差
        :param time_limit: 墙钟时间预算（秒）
        :param max_iterations: 最大迭代次数
        """


class _TimeLimitReached(Exception):
    pass


# SLSQP 退出码 -> 求解状态
_SLSQP_STATUS = {
    0: SolveStatus.CONVERGED,
    4: SolveStatus.INFEASIBLE,
    9: SolveStatus.ITERATION_LIMIT,
}


class ScipyBackend(SolverBackend):
    """
    scipy.optimize.minimize(method='SLSQP')：盒约束 + 不等式约束，Hessian 由 BFGS 拟牛顿更新近似。
    每次回调检查截止时间，超时后返回迄今为止目标函数最小的可行迭代点。
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def solve(self, problem: ReactiveIKProblem, tol: float, time_limit: float,
              max_iterations: int) -> BackendResult:
        n, m, _, _ = problem.get_nlp_info()
        x_l, x_u, g_l, g_u = problem.get_bounds_info()
        x0 = problem.get_starting_point()

        deadline = time.perf_counter() + time_limit
        iterations = 0
        best_x = None
        best_f = np.inf

        def record(x: np.ndarray):
            nonlocal best_x, best_f
            if problem.is_feasible(x, tol=max(tol, 1e-8)):
                value = problem.eval_f(x)
                if value < best_f:
                    best_x, best_f = np.array(x, dtype=np.float64), value

        def check_deadline():
            if time.perf_counter() >= deadline:
                raise _TimeLimitReached()

        def fun(x):
            check_deadline()
            return problem.eval_f(x)

        def jac(x):
            check_deadline()
            return problem.eval_grad_f(x)

        def callback(xk):
            nonlocal iterations
            iterations += 1
            record(xk)
            check_deadline()

        record(x0)

        bounds = [(lo if np.isfinite(lo) else None, hi if np.isfinite(hi) else None)
                  for lo, hi in zip(x_l, x_u)]
        constraints = self._build_constraints(problem, n, m, g_l, g_u)

        # 目标函数是误差的平方，ftol 取 tol 的平方，使 tol 对应位姿误差本身
        try:
            result = minimize(
                fun,
                x0,
                jac=jac,
                method='SLSQP',
                bounds=bounds,
                constraints=constraints,
                callback=callback,
                options={'maxiter': max_iterations, 'ftol': tol * tol, 'disp': False}
            )
        except _TimeLimitReached:
            if best_x is not None:
                self.logger.debug("Time limit of %gs reached after %d iterations, returning best feasible iterate",
                                  time_limit, iterations)
                return BackendResult(SolveStatus.TIME_LIMIT, best_x, iterations, "time limit reached")
            self.logger.debug("Time limit of %gs reached without a feasible iterate", time_limit)
            return BackendResult(SolveStatus.TIME_LIMIT_INFEASIBLE, x0, iterations,
                                 "time limit reached without a feasible iterate")

        status = _SLSQP_STATUS.get(int(result.status), SolveStatus.FAILED)
        return BackendResult(status, np.asarray(result.x, dtype=np.float64),
                             int(getattr(result, 'nit', iterations)), str(result.message))

    @staticmethod
    def _build_constraints(problem: ReactiveIKProblem, n: int, m: int,
                           g_l: np.ndarray, g_u: np.ndarray) -> list:
        """
        将 g_l <= g(v) <= g_u 转换为 SLSQP 的 fun(v) >= 0 形式，只保留有限的一侧；
        约束雅可比由稀疏结构 (行, 列, 值) 装配。
        """
        if m == 0:
            return []
        rows_l = np.flatnonzero(np.isfinite(g_l))
        rows_u = np.flatnonzero(np.isfinite(g_u))
        if rows_l.size + rows_u.size == 0:
            return []

        def g_fun(x):
            g = problem.eval_g(x)
            return np.concatenate([g[rows_l] - g_l[rows_l], g_u[rows_u] - g[rows_u]])

        def g_jac(x):
            jac = coo_matrix((problem.eval_jac_g(x), problem.eval_jac_g_structure()), shape=(m, n)).toarray()
            return np.vstack([jac[rows_l], -jac[rows_u]])

        return [{'type': 'ineq', 'fun': g_fun, 'jac': g_jac}]
