"""
距离 -> 激活强度 (magnitude) 的映射函数

每个函数接收障碍物到机械臂表面的距离（米，>= 0），返回 [0, 1] 内、
随距离单调不增的激活强度。由 AvoidanceHandler 注入使用。
"""
import numpy as np
from typing import Callable

from ..errors import ConfigurationError

MagnitudeFunction = Callable[[float], float]


def linear_falloff(activation_range: float) -> MagnitudeFunction:
    """距离为 0 时为 1，线性衰减，在 activation_range 处降为 0"""
    if activation_range <= 0.0:
        raise ConfigurationError(f"activation_range must be positive, got {activation_range}")

    def magnitude(distance: float) -> float:
        return float(np.clip(1.0 - distance / activation_range, 0.0, 1.0))

    return magnitude


def exponential_falloff(length_scale: float) -> MagnitudeFunction:
    """exp(-distance / length_scale)"""
    if length_scale <= 0.0:
        raise ConfigurationError(f"length_scale must be positive, got {length_scale}")

    def magnitude(distance: float) -> float:
        return float(np.clip(np.exp(-max(distance, 0.0) / length_scale), 0.0, 1.0))

    return magnitude


def constant_magnitude(value: float) -> MagnitudeFunction:
    """与距离无关的常数激活，用于测试与调试"""
    value = float(np.clip(value, 0.0, 1.0))

    def magnitude(distance: float) -> float:
        return value

    return magnitude


_FACTORIES = {
    'linear': linear_falloff,
    'exponential': exponential_falloff,
    'constant': constant_magnitude,
}


def make_magnitude_function(name: str, scale: float) -> MagnitudeFunction:
    """
    按名称构造激活函数

    :param name: 'linear' | 'exponential' | 'constant'
    :param scale: 衰减尺度（米），constant 时为常数值
    """
    try:
        factory = _FACTORIES[name]
    except KeyError:
        raise ConfigurationError(f"Unknown activation function '{name}', expected one of {sorted(_FACTORIES)}") from None
    return factory(scale)
