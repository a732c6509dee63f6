"""
信号处理模块
===========

包含:
- Pan-Tompkins 滤波级 (Low-pass / High-pass / Derivative / Squaring / MWI)
- 自适应阈值R峰检测 (R-peak Detection)
- 离线检测管道 (QRS Pipeline)
- 实时检测 (Streaming Detection)
"""

from .filters import (
    low_pass,
    high_pass,
    band_pass,
    derivative,
    square,
    moving_average,
    window_samples,
)
from .rpeak_detection import RPeakDetector, ThresholdState, estimate_heart_rate
from .signal_pipeline import PipelineConfig, DetectionResult, QRSPipeline, detect_qrs
from .streaming import StreamingQRSDetector

__all__ = [
    'low_pass',
    'high_pass',
    'band_pass',
    'derivative',
    'square',
    'moving_average',
    'window_samples',
    'RPeakDetector',
    'ThresholdState',
    'estimate_heart_rate',
    'PipelineConfig',
    'DetectionResult',
    'QRSPipeline',
    'detect_qrs',
    'StreamingQRSDetector'
]
