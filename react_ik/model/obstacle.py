"""
障碍物与碰撞点
"""
import numpy as np
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Obstacle:
    """
    世界坐标系下的球形障碍物，radius 为 0 表示点障碍物
    """
    position: np.ndarray
    radius: float = 0.0
    name: str = ""

    def __post_init__(self):
        position = np.array(self.position, dtype=np.float64)
        if position.shape != (3,):
            raise ValueError(f"Obstacle position must be a 3-element array, got shape {position.shape}")
        if self.radius < 0.0:
            raise ValueError(f"Obstacle radius must be non-negative, got {self.radius}")
        position.setflags(write=False)
        object.__setattr__(self, 'position', position)


@dataclass
class CollisionPoint:
    """
    某条子链上的碰撞点。x_erf / n_erf 在子链末端坐标系下表示，
    x_wrf / n_wrf 为同一点与法向量在世界坐标系下的表示。
    法向量由障碍物指向机械臂。
    """
    x_erf: np.ndarray
    n_erf: np.ndarray
    magnitude: float
    distance: float
    x_wrf: np.ndarray = field(default_factory=lambda: np.zeros(3))
    n_wrf: np.ndarray = field(default_factory=lambda: np.zeros(3))
    joint_count: int = 0
