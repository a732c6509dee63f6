#!/usr/bin/env python3
"""
ECG QRS检测 - 主程序
====================

基于 Pan-Tompkins 算法的心拍检测命令行工具

使用方法:
---------
1. 离线检测: python main.py detect data.csv --fs 250
2. 输出图表: python main.py detect data.csv --fs 360 --plot figures/result.html
3. 实时模拟: python main.py detect data.csv --fs 250 --streaming
"""

import os
import sys
import argparse
from datetime import datetime
from loguru import logger

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ecg_qrs.preprocessing.signal_pipeline import PipelineConfig, QRSPipeline
from ecg_qrs.preprocessing.streaming import StreamingQRSDetector
from ecg_qrs.utils.data_loader import ECGDataLoader
from ecg_qrs.utils.visualization import ECGVisualizer


EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_CONFIG_ERROR = 2


def configure_logging(level: str = "INFO", log_dir: str = "logs"):
    """
    配置日志

    Args:
        level: 控制台日志级别
        log_dir: 日志文件目录 (空字符串表示不写文件)
    """
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logger.add(
            os.path.join(log_dir, "ecg_qrs_{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="7 days",
            level="DEBUG"
        )


def run_streaming(config: PipelineConfig, samples):
    """逐点送入实时检测器, 模拟在线采集"""
    detector = StreamingQRSDetector(config)

    for sample in samples:
        for peak in detector.push(sample):
            logger.info(f"  R峰 @ {peak} ({peak / config.sampling_rate:.3f}s), "
                        f"当前心率 {detector.heart_rate} BPM")

    return detector.finish()


def run_detect(args) -> int:
    """
    执行检测命令

    Returns:
        退出码
    """
    logger.info("=" * 60)
    logger.info("ECG QRS检测")
    logger.info(f"启动时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 60)

    try:
        config = PipelineConfig(
            sampling_rate=args.fs,
            dtype='float32' if args.float32 else 'float64'
        )
        loader = ECGDataLoader(args.file, delimiter=args.delimiter, preview_rows=args.preview)
    except ValueError as e:
        logger.error(f"配置无效: {e}")
        return EXIT_CONFIG_ERROR

    try:
        loaded = loader.load()
    except FileNotFoundError as e:
        logger.error(f"无法打开文件: {e}")
        return EXIT_IO_ERROR

    if loaded.preview:
        logger.info(f"前 {len(loaded.preview)} 条记录预览:")
        for line in loaded.preview:
            logger.info(f"  {line}")
    elif args.preview:
        logger.warning("文件为空")

    if args.streaming:
        result = run_streaming(config, loaded.samples)
    else:
        result = QRSPipeline(config).process(loaded.samples)

    if result.is_empty:
        logger.warning("没有可用数据 (数据不足或无数值内容)")
    else:
        logger.info(f"采样点: {len(result.integrated)} "
                    f"({len(result.integrated) / config.sampling_rate:.1f}s)")
        logger.info(f"R峰数量: {result.n_peaks}")
        logger.info(f"最终阈值: {result.threshold:.4g}")
        logger.info(f"估计心率: {result.heart_rate} BPM")

    if args.plot:
        visualizer = ECGVisualizer(theme=args.theme)
        fig = visualizer.plot_detection(result, raw_signal=loaded.samples)
        try:
            visualizer.save_html(fig, args.plot)
        except OSError as e:
            logger.error(f"无法写入图表: {args.plot} ({e})")
            return EXIT_IO_ERROR

    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='ECG QRS检测 (Pan-Tompkins)')
    parser.add_argument('--log-level', default='INFO', help='控制台日志级别')
    parser.add_argument('--log-dir', default='logs', help='日志文件目录 (空字符串不写文件)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    detect = subparsers.add_parser('detect', help='检测CSV文件中的QRS波群')
    detect.add_argument('file', help='CSV数据文件')
    detect.add_argument('--fs', type=float, default=250.0, help='采样率 (Hz)')
    detect.add_argument('--delimiter', default=',', help='字段分隔符')
    detect.add_argument('--preview', type=int, default=100, help='预览记录数')
    detect.add_argument('--plot', default=None, help='检测结果HTML图表输出路径')
    detect.add_argument('--theme', default='cyberpunk', choices=['cyberpunk', 'medical'],
                        help='图表主题')
    detect.add_argument('--streaming', action='store_true', help='逐点实时检测')
    detect.add_argument('--float32', action='store_true', help='使用32位精度计算')

    return parser


def main(argv=None) -> int:
    """
    主函数
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_dir)

    if args.command == 'detect':
        return run_detect(args)

    parser.error(f"未知命令: {args.command}")


if __name__ == '__main__':
    sys.exit(main())
