"""
求解状态码（沿用 IPOPT ApplicationReturnStatus 的编号习惯）
"""
from enum import IntEnum


class SolveStatus(IntEnum):
    CONVERGED = 0
    INFEASIBLE = 2
    ITERATION_LIMIT = -1
    FAILED = -3
    # 超出时间预算，但返回的是可行的最优迭代点
    TIME_LIMIT = -4
    # 超出时间预算，且没有找到可行迭代点
    TIME_LIMIT_INFEASIBLE = -5

    @property
    def is_usable(self) -> bool:
        """实时约束下可以直接下发的结果：收敛，或超时但可行"""
        return self in (SolveStatus.CONVERGED, SolveStatus.TIME_LIMIT)
