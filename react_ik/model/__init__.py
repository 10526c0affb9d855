"""
模型层 (Model Layer)
运动链的数据结构：关节、段、运动链，以及障碍物与碰撞点

导出：
- Joint: 抽象基类，定义所有关节的通用接口
- FixedJoint: 固定关节，无自由度
- RevoluteJoint: 旋转关节，1自由度，绕固定轴旋转
- PrismaticJoint: 移动关节，1自由度，沿固定轴滑动
- Segment: 关节 + 固定末端变换
- KinematicChain: 段的有序序列，正运动学与雅可比
- Obstacle / CollisionPoint: 避障输入与中间结果
"""

from .joint import (
    Joint,
    FixedJoint,
    RevoluteJoint,
    PrismaticJoint
)
from .segment import Segment
from .chain import KinematicChain
from .obstacle import Obstacle, CollisionPoint

__all__ = [
    'Joint',
    'FixedJoint',
    'RevoluteJoint',
    'PrismaticJoint',
    'Segment',
    'KinematicChain',
    'Obstacle',
    'CollisionPoint'
]
