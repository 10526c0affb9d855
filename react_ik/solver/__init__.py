"""
求解层 (Solver Layer)
单步速度级反应式 IK：问题构建（目标函数、梯度、限位保护约束）、可插拔的求解后端与求解流程
"""

from .status import SolveStatus
from .guard import GuardZone
from .problem import ReactiveIKProblem, ProblemState
from .backend import BackendResult, SolverBackend, ScipyBackend
from .solve_ik import SolveResult, solve_problem, solve_ik

__all__ = [
    'SolveStatus',
    'GuardZone',
    'ReactiveIKProblem',
    'ProblemState',
    'BackendResult',
    'SolverBackend',
    'ScipyBackend',
    'SolveResult',
    'solve_problem',
    'solve_ik'
]
