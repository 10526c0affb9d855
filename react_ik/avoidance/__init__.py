"""
避障层 (Avoidance Layer)
由障碍物快照与当前运动链求出碰撞点，并收缩送入求解层的速度边界
"""

from .activation import (
    MagnitudeFunction,
    linear_falloff,
    exponential_falloff,
    constant_magnitude,
    make_magnitude_function
)
from .handler import (
    AvoidanceStrategy,
    AvoidanceHandler,
    obstacle_to_collision_point,
    find_collision_candidates,
    select_collision_point,
    shape_velocity_bounds
)

__all__ = [
    'MagnitudeFunction',
    'linear_falloff',
    'exponential_falloff',
    'constant_magnitude',
    'make_magnitude_function',
    'AvoidanceStrategy',
    'AvoidanceHandler',
    'obstacle_to_collision_point',
    'find_collision_candidates',
    'select_collision_point',
    'shape_velocity_bounds'
]
