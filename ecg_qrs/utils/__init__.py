"""
工具模块
========

包含数据加载、可视化等工具函数
"""

from .data_loader import ECGDataLoader, LoadedSignal, extract_numeric_value
from .visualization import ECGVisualizer

__all__ = ['ECGDataLoader', 'LoadedSignal', 'extract_numeric_value', 'ECGVisualizer']
