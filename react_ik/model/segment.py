"""
运动链的基本单元：段 (Segment)
"""
import numpy as np
from typing import Optional

from .joint import Joint, FixedJoint
from ..utils import quaternion_to_rotation_matrix


class Segment:
    """
    刚性连杆 + 可选的单自由度关节。

    关节位于段的基坐标系原点，其后接固定的末端变换 tip：
    pose(q) = joint.get_local_matrix(q) @ tip
    创建后不可修改。
    """

    def __init__(self, joint: Optional[Joint] = None, tip: Optional[np.ndarray] = None, name: str = ""):
        """
        :param joint: 关节，None 表示无关节（等价于 FixedJoint）
        :param tip: 关节之后的固定 4x4 变换，None 表示单位阵
        :param name: 段名称
        """
        self.name = name
        self.joint: Joint = joint if joint is not None else FixedJoint(name)
        if tip is None:
            tip = np.identity(4, dtype=np.float64)
        tip = np.array(tip, dtype=np.float64)
        if tip.shape != (4, 4):
            raise ValueError(f"Segment tip must be a 4x4 matrix, got shape {tip.shape}")
        tip.setflags(write=False)
        self._tip = tip

    @classmethod
    def from_offset(cls, joint: Optional[Joint], offset: np.ndarray,
                    quaternion: Optional[np.ndarray] = None, name: str = "") -> 'Segment':
        """
        由平移与姿态（四元数, [w, x, y, z]）构造段

        :param joint: 关节
        :param offset: 关节之后的静态位移 (Vec3)
        :param quaternion: 末端的固定旋转，None 表示无旋转
        """
        tip = np.identity(4, dtype=np.float64)
        if quaternion is not None:
            tip[:3, :3] = quaternion_to_rotation_matrix(quaternion)
        tip[:3, 3] = np.asarray(offset, dtype=np.float64)
        return cls(joint, tip, name)

    @property
    def tip(self) -> np.ndarray:
        return self._tip

    @property
    def has_joint(self) -> bool:
        return self.joint.get_dof() > 0

    def pose(self, q: float = 0.0) -> np.ndarray:
        """段基坐标系到段末端的 4x4 变换"""
        return self.joint.get_local_matrix(q) @ self._tip

    def __repr__(self):
        return f"<Segment: {self.name} {self.joint!r}>"
