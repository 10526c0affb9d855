"""
反应式逆运动学控制器

每个控制周期：避障层根据障碍物收缩关节速度边界，求解层在时间预算内求解单步速度级 IK，
返回下一周期的关节速度指令。
"""

from .config import ControllerConfig, load_config
from .controller import ReactController, ControlCommand
from .errors import (
    ReactIKError,
    ConfigurationError,
    SizeMismatch,
    DimensionMismatch,
    IndexOutOfRange,
    InfeasibleProblem,
    SolverNonConvergence,
    SolverFailure,
    DegenerateGeometry
)
from .model import KinematicChain, Segment, Obstacle
from .solver import SolveStatus, SolveResult, ReactiveIKProblem, solve_ik

__version__ = "0.1.0"

__all__ = [
    'ControllerConfig',
    'load_config',
    'ReactController',
    'ControlCommand',
    'ReactIKError',
    'ConfigurationError',
    'SizeMismatch',
    'DimensionMismatch',
    'IndexOutOfRange',
    'InfeasibleProblem',
    'SolverNonConvergence',
    'SolverFailure',
    'DegenerateGeometry',
    'KinematicChain',
    'Segment',
    'Obstacle',
    'SolveStatus',
    'SolveResult',
    'ReactiveIKProblem',
    'solve_ik'
]
