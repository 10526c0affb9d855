"""
工具函数：几何/数学运算与旋转表示转换
"""

from .math_utils import (
    skew,
    cross_columns,
    angular_error,
    build_frame,
    translation_matrix,
    invert_transform,
    deg_to_rad,
    rad_to_deg
)
from .rotation_utils import (
    quaternion_to_rotation_matrix,
    rpy_to_rotation_matrix,
    rotation_matrix_to_rpy,
    axis_angle_to_rotation_matrix
)

__all__ = [
    'skew',
    'cross_columns',
    'angular_error',
    'build_frame',
    'translation_matrix',
    'invert_transform',
    'deg_to_rad',
    'rad_to_deg',
    'quaternion_to_rotation_matrix',
    'rpy_to_rotation_matrix',
    'rotation_matrix_to_rpy',
    'axis_angle_to_rotation_matrix'
]
