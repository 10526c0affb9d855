"""
运动链：有序的段序列，提供正运动学、几何雅可比、关节边界与子链构造
"""
import numpy as np
from typing import Iterable, List, Optional, Sequence

from .segment import Segment
from ..errors import SizeMismatch, DimensionMismatch, IndexOutOfRange


class KinematicChain:
    """
    有序的段 (Segment) 序列与关节状态 q / lb / ub。

    不变量：len(q) == len(lb) == len(ub) == 带关节的段数 <= 段数，
    在任何外部可观察的时刻都成立。q、lb、ub 只能整体替换，
    或随末尾段的添加/删除逐个增减。
    """

    def __init__(self, segments: Optional[Iterable[Segment]] = None):
        self._segments: List[Segment] = []
        self._nr_of_joints = 0
        self._q: List[float] = []
        self._lb: List[float] = []
        self._ub: List[float] = []
        if segments is not None:
            for segment in segments:
                self.add_segment(segment)

    # ------------------------------------------------------------------
    # 结构修改
    # ------------------------------------------------------------------
    def add_segment(self, segment: Segment):
        """
        在链末尾添加一个段；若段带关节，q/lb/ub 各增加一个元素
        新关节 q = 0，边界取关节自身的 limits，无 limits 时为 (-inf, +inf)
        """
        self._segments.append(segment)
        if segment.has_joint:
            lower, upper = segment.joint.limits if segment.joint.limits is not None else (-np.inf, np.inf)
            self._q.append(0.0)
            self._lb.append(lower)
            self._ub.append(upper)
            self._nr_of_joints += 1

    def add_chain(self, chain: 'KinematicChain'):
        """依次添加另一条链的所有段（关节值取默认值）"""
        for segment in chain.segments:
            self.add_segment(segment)

    def remove_segment(self):
        """删除末尾段，add_segment 的逆操作"""
        if not self._segments:
            raise IndexOutOfRange("Cannot remove a segment from an empty chain")
        segment = self._segments.pop()
        if segment.has_joint:
            self._q.pop()
            self._lb.pop()
            self._ub.pop()
            self._nr_of_joints -= 1

    def remove_joint(self):
        """
        不断删除末尾段，直到删除了一个带关节的段
        （最后一个关节之后的固定段一并丢弃）
        """
        if self._nr_of_joints == 0:
            raise IndexOutOfRange("Cannot remove a joint from a chain without joints")
        while True:
            has_joint = self._segments[-1].has_joint
            self.remove_segment()
            if has_joint:
                break

    # ------------------------------------------------------------------
    # 访问器
    # ------------------------------------------------------------------
    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    def get_nr_of_joints(self) -> int:
        return self._nr_of_joints

    def get_nr_of_segments(self) -> int:
        return len(self._segments)

    def get_segment(self, index: int) -> Segment:
        if not 0 <= index < len(self._segments):
            raise IndexOutOfRange(f"Segment index {index} out of range [0, {len(self._segments)})")
        return self._segments[index]

    def get_ang(self) -> np.ndarray:
        return np.array(self._q, dtype=np.float64)

    def set_ang(self, q: Sequence[float]):
        """
        整体替换关节角（弧度）；长度不等于关节数时抛出 SizeMismatch，q 保持不变
        """
        values = [float(v) for v in np.asarray(q, dtype=np.float64).ravel()]
        if len(values) != self._nr_of_joints:
            raise SizeMismatch(f"Expected {self._nr_of_joints} joint angles, got {len(values)}")
        self._q = values

    def get_lower_bounds(self) -> np.ndarray:
        return np.array(self._lb, dtype=np.float64)

    def get_upper_bounds(self) -> np.ndarray:
        return np.array(self._ub, dtype=np.float64)

    def set_bounds(self, lb: Sequence[float], ub: Sequence[float]):
        """整体替换关节上下界"""
        lower = [float(v) for v in np.asarray(lb, dtype=np.float64).ravel()]
        upper = [float(v) for v in np.asarray(ub, dtype=np.float64).ravel()]
        if len(lower) != self._nr_of_joints or len(upper) != self._nr_of_joints:
            raise SizeMismatch(f"Expected {self._nr_of_joints} bounds, got {len(lower)} lower and {len(upper)} upper")
        self._lb = lower
        self._ub = upper

    def get_min(self, index: int) -> float:
        self._check_joint_index(index)
        return self._lb[index]

    def get_max(self, index: int) -> float:
        self._check_joint_index(index)
        return self._ub[index]

    def joint_segment_index(self, joint_index: int) -> int:
        """返回引入第 joint_index 个关节的段的下标"""
        self._check_joint_index(joint_index)
        count = 0
        for i, segment in enumerate(self._segments):
            if segment.has_joint:
                if count == joint_index:
                    return i
                count += 1
        raise DimensionMismatch(f"Chain records {self._nr_of_joints} joints but segments carry {count}")

    # ------------------------------------------------------------------
    # 运动学
    # ------------------------------------------------------------------
    def segment_pose(self, segment_count: Optional[int] = None) -> np.ndarray:
        """
        依次复合前 segment_count 个段的位姿（None 表示全部段）

        :return: 4x4 齐次变换
        """
        count = self._check_segment_count(segment_count)
        pose = np.identity(4, dtype=np.float64)
        j = 0
        for segment in self._segments[:count]:
            if segment.has_joint:
                pose = pose @ segment.pose(self._q[j])
                j += 1
            else:
                pose = pose @ segment.pose()
        return pose

    def forward_kinematics(self, joint_index: Optional[int] = None) -> np.ndarray:
        """
        正运动学：复合到引入第 joint_index 个关节的段为止（含该段）。
        joint_index 为最后一个关节（默认）时，复合全部段，包括末尾的固定段。

        :return: 4x4 齐次变换
        """
        if joint_index is None or joint_index == self._nr_of_joints - 1:
            return self.segment_pose()
        return self.segment_pose(self.joint_segment_index(joint_index) + 1)

    def jacobian(self, segment_count: Optional[int] = None) -> np.ndarray:
        """
        构建几何雅可比矩阵 J (6xN)，基坐标系下表示，参考点为第 segment_count 个段的末端

        逐段扫描：每遇到带关节的段，计算其在基坐标系下的运动旋量并写入新列；
        每经过一个段，已有的列的参考点都平移到新的末端
        （所有列都在基坐标系下表示，只需平移参考点）。
        """
        if len(self._q) != self._nr_of_joints:
            raise DimensionMismatch(f"Chain records {self._nr_of_joints} joints but holds {len(self._q)} angles")
        count = self._check_segment_count(segment_count)

        jac = np.zeros((6, self._nr_of_joints), dtype=np.float64)
        t_tmp = np.identity(4, dtype=np.float64)
        j = 0
        for segment in self._segments[:count]:
            column = None
            if segment.has_joint:
                total = t_tmp @ segment.pose(self._q[j])
                column = segment.joint.compute_jacobian_column(t_tmp, total[:3, 3])
            else:
                total = t_tmp @ segment.pose()

            # 已有列的参考点平移到新末端: v' = v + w x dp
            if j > 0:
                delta = total[:3, 3] - t_tmp[:3, 3]
                jac[:3, :j] += np.cross(jac[3:, :j].T, delta).T

            if column is not None:
                jac[:, j] = column
                j += 1
            t_tmp = total

        return jac

    def joint_positions(self) -> List[np.ndarray]:
        """每个关节坐标系原点在基坐标系中的位置"""
        positions = []
        pose = np.identity(4, dtype=np.float64)
        j = 0
        for segment in self._segments:
            if segment.has_joint:
                positions.append(pose[:3, 3].copy())
                pose = pose @ segment.pose(self._q[j])
                j += 1
            else:
                pose = pose @ segment.pose()
        return positions

    # ------------------------------------------------------------------
    # 子链
    # ------------------------------------------------------------------
    def build_sub_chain(self, joint_count: int) -> 'KinematicChain':
        """
        构造只包含前 joint_count 个关节的独立子链
        （包括其后直到下一个关节之前的固定段），复制关节角与边界

        :param joint_count: 子链的关节数，1 <= joint_count <= 关节数
        """
        if not 1 <= joint_count <= self._nr_of_joints:
            raise IndexOutOfRange(f"Sub-chain joint count {joint_count} out of range [1, {self._nr_of_joints}]")

        end = self.joint_segment_index(joint_count - 1) + 1
        while end < len(self._segments) and not self._segments[end].has_joint:
            end += 1

        sub_chain = KinematicChain(self._segments[:end])
        sub_chain.set_ang(self._q[:joint_count])
        sub_chain.set_bounds(self._lb[:joint_count], self._ub[:joint_count])
        return sub_chain

    def copy(self) -> 'KinematicChain':
        """独立副本（段本身不可变，可共享）"""
        chain = KinematicChain(self._segments)
        chain.set_ang(self._q)
        chain.set_bounds(self._lb, self._ub)
        return chain

    # ------------------------------------------------------------------
    def _check_joint_index(self, index: int):
        if not 0 <= index < self._nr_of_joints:
            raise IndexOutOfRange(f"Joint index {index} out of range [0, {self._nr_of_joints})")

    def _check_segment_count(self, segment_count: Optional[int]) -> int:
        if segment_count is None:
            return len(self._segments)
        if not 0 <= segment_count <= len(self._segments):
            raise IndexOutOfRange(f"Segment count {segment_count} out of range [0, {len(self._segments)}]")
        return segment_count

    def __len__(self):
        return len(self._segments)

    def __repr__(self):
        return f"<KinematicChain: {len(self._segments)} segments, {self._nr_of_joints} joints>"
