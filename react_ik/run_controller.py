import json
import logging
import os
import sys
import time

from .config import ControllerConfig
from .controller import ReactController
from .data_io import load_chain, load_obstacles, load_targets, export_result
from .errors import ReactIKError


def run_controller(config_path="config.json") -> int:
    # 1. 加载配置
    if not os.path.exists(config_path):
        print(f"❌ 找不到配置文件: {config_path}")
        return 1

    with open(config_path, 'r', encoding='utf-8') as f:
        raw_config = json.load(f)

    print("----------- Reactive IK Controller Headless -----------")
    print(f"配置加载: {config_path}")

    try:
        config = ControllerConfig.from_dict(raw_config)
    except ReactIKError as e:
        print(f"❌ 配置无效: {e}")
        return 1

    chain_path = raw_config.get('chain_path')
    targets_path = raw_config.get('targets_path')
    obstacles_path = raw_config.get('obstacles_path')
    output_path = raw_config.get('output_path', 'commands.json')
    mode = raw_config.get('mode', 'run')

    # 2. 加载运动链
    print(f"正在加载运动链: {chain_path} ...")
    try:
        chain = load_chain(chain_path)
        print(f"运动链构建成功，包含 {chain.get_nr_of_segments()} 个段，{chain.get_nr_of_joints()} 个关节")
    except (OSError, ValueError, KeyError) as e:
        print(f"❌ 运动链加载失败: {e}")
        return 1

    controller = ReactController(chain, config)

    # 3. 自检模式
    if mode == 'self_test':
        print(">>> 自检模式: 当前位姿附近的小位移求解")
        passed = controller.self_test()
        print("✅ 自检通过！" if passed else "❌ 自检失败")
        return 0 if passed else 1

    # 4. 加载障碍物与目标
    obstacles = []
    if obstacles_path:
        print(f"正在加载障碍物: {obstacles_path} ...")
        try:
            obstacles = load_obstacles(obstacles_path)
            print(f"障碍物加载成功，共 {len(obstacles)} 个")
        except (OSError, ValueError, KeyError) as e:
            print(f"❌ 障碍物加载失败: {e}")
            return 1

    print(f"正在加载目标: {targets_path} ...")
    try:
        records = load_targets(targets_path)
        print(f"目标加载成功，共 {len(records)} 个控制周期")
    except (OSError, ValueError, KeyError) as e:
        print(f"❌ 目标加载失败: {e}")
        return 1

    # 5. 逐周期求解
    cycles = []
    start_time = time.time()
    for index, record in enumerate(records):
        if index % 10 == 0:
            sys.stdout.write(f"\r进度: {index}/{len(records)}")
            sys.stdout.flush()

        try:
            command = controller.step(record['pos'], record['rpy'], obstacles, record['q'])
        except ReactIKError as e:
            print(f"\n❌ 第 {record['cycle']} 周期求解出错: {e}")
            return 1

        cycles.append({
            'cycle': record['cycle'],
            'status': command.status.name,
            'velocity_deg': command.velocity_deg
        })
    print()  # 换行

    duration = time.time() - start_time
    print(f"求解完成，耗时: {duration:.2f} 秒")

    # 6. 导出结果
    print(f"正在导出到: {output_path} ...")
    export_result(cycles, output_path)
    print("✅ 任务完成！")
    return 0


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if len(argv) > 0:
        return run_controller(argv[0])
    return run_controller()


if __name__ == "__main__":
    sys.exit(main())
