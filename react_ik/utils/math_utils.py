"""
几何/数学工具函数
"""
import numpy as np
from typing import Tuple


def skew(w: np.ndarray) -> np.ndarray:
    """
    构造反对称矩阵，使 skew(w) @ v == np.cross(w, v)

    :param w: 3x1 向量
    :return: 3x3 反对称矩阵
    """
    w = np.asarray(w, dtype=np.float64)
    return np.array([
        [0.0, -w[2], w[1]],
        [w[2], 0.0, -w[0]],
        [-w[1], w[0], 0.0]
    ], dtype=np.float64)


def cross_columns(a: np.ndarray, col_a: int, b: np.ndarray, col_b: int) -> np.ndarray:
    """
    计算矩阵 a 第 col_a 列与矩阵 b 第 col_b 列的叉积（只取前3行）

    :return: 3x1 向量
    """
    return np.cross(a[:3, col_a], b[:3, col_b])


def angular_error(current: np.ndarray, desired: np.ndarray) -> np.ndarray:
    """
    两个旋转矩阵之间的姿态误差 e = 0.5 * sum_i (current_i x desired_i)
    (Siciliano & Sciavicco, Robotics: Modelling, Planning and Control, p.139)

    :param current: 当前 3x3 旋转矩阵（也接受 4x4 位姿）
    :param desired: 期望 3x3 旋转矩阵（也接受 4x4 位姿）
    :return: 3x1 误差向量，在基坐标系下表示
    """
    return 0.5 * (cross_columns(current, 0, desired, 0)
                  + cross_columns(current, 1, desired, 1)
                  + cross_columns(current, 2, desired, 2))


def build_frame(position: np.ndarray, normal: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    由位置和法向量构造右手正交坐标系，z 轴与法向量同向

    :param position: 坐标系原点 (Vec3)
    :param normal: 法向量 (Vec3)，不要求单位长度
    :return: (4x4 变换矩阵, 是否成功)；法向量为零向量时返回 (单位阵, False)
    """
    normal = np.asarray(normal, dtype=np.float64)
    frame = np.identity(4, dtype=np.float64)
    if not np.any(normal):
        return frame, False

    z = normal / np.linalg.norm(normal)

    # y 在法平面内，y[2] = 1 为任意取值
    z0 = z[0] if abs(z[0]) >= 1e-8 else np.copysign(1e-8, z[0])
    y = np.array([-z[2] / z0, 0.0, 1.0])
    y = y - np.dot(y, z) * z
    y = y / np.linalg.norm(y)

    x = -np.cross(z, y)
    x = x / np.linalg.norm(x)

    frame[:3, 0] = x
    frame[:3, 1] = y
    frame[:3, 2] = z
    frame[:3, 3] = np.asarray(position, dtype=np.float64)
    return frame, True


def translation_matrix(offset: np.ndarray) -> np.ndarray:
    """返回纯平移的 4x4 变换矩阵"""
    transform = np.identity(4, dtype=np.float64)
    transform[:3, 3] = np.asarray(offset, dtype=np.float64)
    return transform


def invert_transform(transform: np.ndarray) -> np.ndarray:
    """刚体变换求逆: [R^T | -R^T p]"""
    rot = transform[:3, :3]
    inverse = np.identity(4, dtype=np.float64)
    inverse[:3, :3] = rot.T
    inverse[:3, 3] = -rot.T @ transform[:3, 3]
    return inverse


def deg_to_rad(values) -> np.ndarray:
    """度 -> 弧度（外部接口边界使用，只转换一次）"""
    return np.deg2rad(np.asarray(values, dtype=np.float64))


def rad_to_deg(values) -> np.ndarray:
    """弧度 -> 度"""
    return np.rad2deg(np.asarray(values, dtype=np.float64))
