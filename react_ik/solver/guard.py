"""
关节限位保护区 (Guard Zone)
"""
import numpy as np
from dataclasses import dataclass

DEFAULT_GUARD_RATIO = 0.1


@dataclass(frozen=True)
class GuardZone:
    """
    每个关节距硬限位的保护裕度 guard = 0.25 * guard_ratio * (ub - lb) 及六个阈值：
    min_ext = lb + guard, min_int = min_ext + guard, min_cog = (min_ext + min_int) / 2，
    max 侧对称。范围无穷大的关节裕度为 0，阈值为 ±inf。
    """
    guard: np.ndarray
    min_ext: np.ndarray
    min_int: np.ndarray
    min_cog: np.ndarray
    max_ext: np.ndarray
    max_int: np.ndarray
    max_cog: np.ndarray

    @classmethod
    def from_limits(cls, lb: np.ndarray, ub: np.ndarray, guard_ratio: float = DEFAULT_GUARD_RATIO) -> 'GuardZone':
        lb = np.asarray(lb, dtype=np.float64)
        ub = np.asarray(ub, dtype=np.float64)
        with np.errstate(invalid='ignore'):
            span = ub - lb
            guard = np.where(np.isfinite(span), 0.25 * guard_ratio * span, 0.0)

        min_ext = lb + guard
        min_int = min_ext + guard
        max_ext = ub - guard
        max_int = max_ext - guard
        return cls(guard=guard,
                   min_ext=min_ext, min_int=min_int, min_cog=0.5 * (min_ext + min_int),
                   max_ext=max_ext, max_int=max_int, max_cog=0.5 * (max_ext + max_int))

    def velocity_scaling(self, q: np.ndarray) -> np.ndarray:
        """
        关节接近限位时速度边界的缩放系数 (Nx2)，在 [0, 1] 内：
        关节位于 [min_int, max_int] 内时为 1；越过 min_int 后下界系数按 tanh 平滑降到 0，
        越过 min_ext 时为 0。max 侧对称。
        """
        q = np.asarray(q, dtype=np.float64)
        scaling = np.ones((q.size, 2), dtype=np.float64)
        for i, qi in enumerate(q):
            if self.guard[i] <= 0.0:
                continue
            if self.min_int[i] <= qi <= self.max_int[i]:
                continue
            if qi < self.min_int[i]:
                scaling[i, 0] = 0.0 if qi <= self.min_ext[i] else \
                    0.5 * (1.0 + np.tanh(10.0 * (qi - self.min_cog[i]) / self.guard[i]))
            else:
                scaling[i, 1] = 0.0 if qi >= self.max_ext[i] else \
                    0.5 * (1.0 + np.tanh(-10.0 * (qi - self.max_cog[i]) / self.guard[i]))
        return scaling

    def shape_bounds(self, q: np.ndarray, v_lim: np.ndarray) -> np.ndarray:
        """
        按 velocity_scaling 收缩速度边界（只收缩，不放宽）

        :param q: 当前关节角（弧度）
        :param v_lim: Nx2 速度边界
        """
        v_lim = np.asarray(v_lim, dtype=np.float64)
        scaling = self.velocity_scaling(q)
        # inf * 0 记为 0
        with np.errstate(invalid='ignore'):
            scaled = np.where(np.isfinite(v_lim), v_lim * scaling, np.where(scaling > 0.0, v_lim, 0.0))
        bounds = v_lim.copy()
        bounds[:, 0] = np.maximum(v_lim[:, 0], scaled[:, 0])
        bounds[:, 1] = np.minimum(v_lim[:, 1], scaled[:, 1])
        return bounds
