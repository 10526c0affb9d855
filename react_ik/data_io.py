"""
数据交换功能实现
"""
import json
import os
import numpy as np
from typing import Dict, List, Sequence

from .model import Joint, FixedJoint, RevoluteJoint, PrismaticJoint, Segment, KinematicChain, Obstacle
from .utils import deg_to_rad


def _build_joint(joint_data: Dict, name: str) -> Joint:
    joint_type = joint_data.get('type', 'fixed')
    limits = None
    if joint_data.get('limits') is not None:
        limits = tuple(joint_data['limits'])

    if joint_type == 'fixed':
        return FixedJoint(name)
    elif joint_type == 'revolute':
        return RevoluteJoint(name, np.array(joint_data['axis'], dtype=np.float64), limits)
    elif joint_type == 'prismatic':
        return PrismaticJoint(name, np.array(joint_data['axis'], dtype=np.float64), limits)
    raise ValueError(f"Unknown joint type: {joint_type}")


def load_chain(json_path: str) -> KinematicChain:
    """
    从chain.json加载运动链定义

    :param json_path: chain.json文件路径
    :return: 运动链，所有关节角初始化为 0
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    chain = KinematicChain()
    for index, segment_data in enumerate(data['segments']):
        name = segment_data.get('name', f"segment_{index}")
        joint = _build_joint(segment_data.get('joint') or {}, name)

        offset = np.array(segment_data.get('offset', [0.0, 0.0, 0.0]), dtype=np.float64)
        quat = None
        if segment_data.get('quaternion') is not None:
            quat = np.array(segment_data['quaternion'], dtype=np.float64)

        chain.add_segment(Segment.from_offset(joint, offset, quat, name))

    return chain


def load_obstacles(json_path: str) -> List[Obstacle]:
    """
    从obstacles.json加载障碍物（世界坐标系）

    :param json_path: obstacles.json文件路径
    :return: 障碍物列表
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return [Obstacle(np.array(item['position'], dtype=np.float64),
                     float(item.get('radius', 0.0)),
                     item.get('name', ""))
            for item in data]


def load_targets(json_path: str) -> List[Dict]:
    """
    从targets.json加载每个控制周期的输入

    :param json_path: targets.json文件路径
    :return: 列表，每个元素为 {"cycle": int, "q": ndarray | None, "pos": [x,y,z], "rpy": [r,p,y]}，
             q 与 rpy 为弧度（文件中 euler 为度）
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    records = []
    for index, item in enumerate(data):
        q = item.get('q')
        record = {
            'cycle': int(item.get('cycle', index)),
            'q': None if q is None else np.array(q, dtype=np.float64),
            'pos': np.array(item['pos'], dtype=np.float64),
            'rpy': deg_to_rad(np.array(item.get('euler', [0.0, 0.0, 0.0]), dtype=np.float64))
        }
        records.append(record)

    # 按周期号排序
    records.sort(key=lambda r: r['cycle'])

    return records


def export_result(cycles: Sequence[Dict], output_path: str):
    """
    导出每个周期的求解结果到 JSON

    :param cycles: 列表，每个元素为 {"cycle": int, "status": str, "velocity_deg": ndarray | None}
    :param output_path: 输出文件路径
    """
    # 确保输出目录存在
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

    cycles_output = []
    for item in cycles:
        velocity = item.get('velocity_deg')
        cycles_output.append({
            'cycle': int(item['cycle']),
            'status': str(item['status']),
            'velocity_deg': None if velocity is None else [float(v) for v in velocity]
        })

    output = {'cycles': cycles_output}
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)
