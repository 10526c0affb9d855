"""
旋转表示转换工具函数
"""
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import Union, Sequence


def quaternion_to_rotation_matrix(quaternion: Union[np.ndarray, Sequence[float]]) -> np.ndarray:
    """
    将四元数转换为旋转矩阵

    :param quaternion: 四元数，格式为 [w, x, y, z]
    :return: 3x3 旋转矩阵
    """
    quaternion = np.asarray(quaternion, dtype=np.float64)
    if quaternion.shape != (4,):
        raise ValueError(f"Quaternion must be a 4-element array, got shape {quaternion.shape}")
    if np.linalg.norm(quaternion) < 1e-10:
        raise ValueError(f"Quaternion norm too small: {quaternion}, cannot normalize")

    # scipy 使用 [x, y, z, w] 格式
    w, x, y, z = quaternion
    return R.from_quat([x, y, z, w]).as_matrix()


def rpy_to_rotation_matrix(rpy: Union[np.ndarray, Sequence[float]]) -> np.ndarray:
    """
    roll/pitch/yaw（弧度，绕固定轴 X-Y-Z 依次旋转）转换为旋转矩阵

    :param rpy: [roll, pitch, yaw]
    :return: 3x3 旋转矩阵
    """
    rpy = np.asarray(rpy, dtype=np.float64)
    if rpy.shape != (3,):
        raise ValueError(f"RPY must be a 3-element array, got shape {rpy.shape}")
    return R.from_euler('xyz', rpy).as_matrix()


def rotation_matrix_to_rpy(rot: np.ndarray) -> np.ndarray:
    """旋转矩阵转换为 roll/pitch/yaw（弧度）"""
    return R.from_matrix(np.asarray(rot, dtype=np.float64)[:3, :3]).as_euler('xyz')


def axis_angle_to_rotation_matrix(axis: np.ndarray, angle: float) -> np.ndarray:
    """
    绕单位轴 axis 旋转 angle 弧度的旋转矩阵

    :param axis: 旋转轴（需已归一化）
    :param angle: 旋转角（弧度）
    :return: 3x3 旋转矩阵
    """
    return R.from_rotvec(np.asarray(axis, dtype=np.float64) * angle).as_matrix()
