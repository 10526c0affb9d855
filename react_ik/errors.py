"""
异常层次结构

配置类错误 (ConfigurationError) 属于调用方的 bug，立即抛出且不做任何部分修改；
不可行、不收敛属于实时预算下的正常结果，由 solve_ik 以状态码返回，
调用方需要异常时可通过 SolveResult.raise_for_status() 获得。
"""


class ReactIKError(Exception):
    """react_ik 所有异常的基类"""


class ConfigurationError(ReactIKError, ValueError):
    """尺寸不匹配、下标越界、非法参数等，在求解开始之前发现"""


class SizeMismatch(ConfigurationError):
    """向量长度与关节数不一致"""


class DimensionMismatch(ConfigurationError):
    """内部关节数与链记录的关节数不一致"""


class IndexOutOfRange(ConfigurationError, IndexError):
    """关节/段下标越界"""


class InfeasibleProblem(ReactIKError):
    """速度边界 lower > upper，或 guard 区间与速度边界无交集"""


class SolverNonConvergence(ReactIKError):
    """迭代次数或时间预算耗尽，且没有可接受的解"""


class SolverFailure(ReactIKError):
    """求解后端报告数值失败"""


class DegenerateGeometry(ReactIKError):
    """碰撞法向量长度为零；build_frame 以返回标志的方式报告，不抛出"""
