"""
关节类层次结构实现

关节位于所属段 (Segment) 的基坐标系原点，axis 在该坐标系下表示。
"""
import numpy as np
from abc import ABC, abstractmethod
from typing_extensions import override
from typing import Optional, Tuple

from ..utils import axis_angle_to_rotation_matrix


class Joint(ABC):
    """
    所有关节类型的抽象基类，定义运动学接口。
    """

    def __init__(self, name: str = "", limits: Optional[Tuple[float, float]] = None):
        """
        初始化关节

        :param name: 关节名称
        :param limits: 约束范围 [min, max]，None 表示无约束
        """
        self.name = name
        if limits is not None:
            lower, upper = float(limits[0]), float(limits[1])
            if lower > upper:
                raise ValueError(f"Joint '{name}' has lower limit {lower} > upper limit {upper}")
            limits = (lower, upper)
        self.limits: Optional[Tuple[float, float]] = limits

    @abstractmethod
    def get_local_matrix(self, q: float) -> np.ndarray:
        """
        根据关节变量计算局部变换矩阵。

        :param q: 关节变量（弧度或米）
        :return: 4x4 局部变换矩阵
        """

    @abstractmethod
    def compute_jacobian_column(self, joint_frame: np.ndarray, ref_point: np.ndarray) -> np.ndarray:
        """
        计算该关节对应的雅可比列向量 (6x1)，所有量在基坐标系下表示。

        :param joint_frame: 关节所在坐标系（段的基坐标系）在基坐标系中的 4x4 位姿
        :param ref_point: 参考点（通常为当前末端）在基坐标系中的位置
        :return: 6x1 列向量，前3个元素为线速度贡献，后3个元素为角速度贡献
        """

    @abstractmethod
    def get_dof(self) -> int:
        """
        返回自由度数量 (0 或 1)。
        """

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.name}>"


def _normalized_axis(axis: np.ndarray) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    axis_norm = np.linalg.norm(axis)
    if axis_norm <= 1e-6:
        raise ValueError(f"Axis vector is not a unit vector and too small to be normalized: {axis}")
    return axis / axis_norm


class FixedJoint(Joint):
    """
    固定关节 - 无变量的结构连接
    """

    @override
    def get_local_matrix(self, q: float = 0.0) -> np.ndarray:
        return np.identity(4, dtype=np.float64)

    @override
    def compute_jacobian_column(self, joint_frame: np.ndarray, ref_point: np.ndarray) -> np.ndarray:
        """返回 6x1 零向量（固定关节不参与雅可比构建）"""
        return np.zeros(6)

    @override
    def get_dof(self) -> int:
        return 0


class RevoluteJoint(Joint):
    """
    旋转关节 - 绕固定轴旋转的铰链
    """

    def __init__(self, name: str, axis: np.ndarray,
                 limits: Optional[Tuple[float, float]] = None):
        """
        初始化旋转关节

        :param name: 关节名称
        :param axis: 旋转轴（局部坐标系，不能为零向量。程序自动归一化）
        :param limits: 约束范围 [min, max]（弧度），None 表示无约束
        """
        super().__init__(name, limits)
        self.axis = _normalized_axis(axis)

    @override
    def get_local_matrix(self, q: float) -> np.ndarray:
        """生成绕 axis 旋转 q 的矩阵"""
        local_transform = np.identity(4, dtype=np.float64)
        local_transform[:3, :3] = axis_angle_to_rotation_matrix(self.axis, q)
        return local_transform

    @override
    def compute_jacobian_column(self, joint_frame: np.ndarray, ref_point: np.ndarray) -> np.ndarray:
        """
        J_i = [z_i x (p_ref - p_i), z_i]^T
        """
        z_i = joint_frame[:3, :3] @ self.axis
        p_i = joint_frame[:3, 3]
        return np.concatenate([np.cross(z_i, ref_point - p_i), z_i])

    @override
    def get_dof(self) -> int:
        return 1


class PrismaticJoint(Joint):
    """
    移动关节 - 沿固定轴滑动的滑块
    """

    def __init__(self, name: str, axis: np.ndarray,
                 limits: Optional[Tuple[float, float]] = None):
        """
        初始化移动关节

        :param name: 关节名称
        :param axis: 移动轴（局部坐标系，不能为零向量。程序自动归一化）
        :param limits: 约束范围 [min, max](米), None 表示无约束
        """
        super().__init__(name, limits)
        self.axis = _normalized_axis(axis)

    @override
    def get_local_matrix(self, q: float) -> np.ndarray:
        """生成沿 axis 平移 q 的矩阵: T = [I | q * axis]"""
        local_transform = np.identity(4, dtype=np.float64)
        local_transform[:3, 3] = q * self.axis
        return local_transform

    @override
    def compute_jacobian_column(self, joint_frame: np.ndarray, ref_point: np.ndarray) -> np.ndarray:
        """
        J_i = [z_i, 0]^T，移动关节不产生旋转
        """
        z_i = joint_frame[:3, :3] @ self.axis
        return np.concatenate([z_i, np.zeros(3)])

    @override
    def get_dof(self) -> int:
        return 1
