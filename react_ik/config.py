"""
控制器配置
"""
import json
from dataclasses import dataclass, fields, asdict
from typing import Any, Dict

from .errors import ConfigurationError

# config.json 中供命令行驱动使用、不属于控制器参数的键
DRIVER_KEYS = ('chain_path', 'targets_path', 'obstacles_path', 'output_path', 'mode')


@dataclass(frozen=True)
class ControllerConfig:
    """
    控制器参数。外部接口中的角速度单位为 deg/s。
    """
    dt: float = 0.02                        # 控制周期 (s)
    tol: float = 1e-6                       # 求解容差
    v_max: float = 30.0                     # 关节速度上限 (deg/s)
    time_budget_ratio: float = 0.97         # 求解时间预算占控制周期的比例
    max_iterations: int = 1000
    enable_joint_limit_guard: bool = True
    enable_orientation_control: bool = False
    guard_ratio: float = 0.1
    avoidance: str = 'tactile'              # 'none' | 'tactile'
    magnitude_threshold: float = 0.01
    activation: str = 'linear'              # 'linear' | 'exponential' | 'constant'
    activation_range: float = 0.2           # 衰减尺度 (m)，constant 时为常数值

    def __post_init__(self):
        if self.dt <= 0.0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if self.tol <= 0.0:
            raise ConfigurationError(f"tol must be positive, got {self.tol}")
        if self.v_max <= 0.0:
            raise ConfigurationError(f"v_max must be positive, got {self.v_max}")
        if not 0.0 < self.time_budget_ratio <= 1.0:
            raise ConfigurationError(f"time_budget_ratio must be in (0, 1], got {self.time_budget_ratio}")
        if self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not 0.0 <= self.guard_ratio < 1.0:
            raise ConfigurationError(f"guard_ratio must be in [0, 1), got {self.guard_ratio}")
        if self.avoidance not in ('none', 'tactile'):
            raise ConfigurationError(f"Unknown avoidance strategy '{self.avoidance}'")
        if self.activation not in ('linear', 'exponential', 'constant'):
            raise ConfigurationError(f"Unknown activation function '{self.activation}'")
        if not 0.0 <= self.magnitude_threshold < 1.0:
            raise ConfigurationError(f"magnitude_threshold must be in [0, 1), got {self.magnitude_threshold}")

    @property
    def time_limit(self) -> float:
        """求解的墙钟时间预算 (s)"""
        return self.time_budget_ratio * self.dt

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ControllerConfig':
        """
        由字典构造；未知的键抛出 ConfigurationError（命令行驱动使用的键除外）
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known - set(DRIVER_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(config_path: str) -> ControllerConfig:
    """
    从 JSON 文件加载控制器配置

    :param config_path: config.json 路径
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return ControllerConfig.from_dict(data)
