"""
信号处理管道
============

整合 Pan-Tompkins 各级处理的统一接口
实现从原始ECG采样到R峰位置与心率的端到端流程
"""

import math
import numbers
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple, Union

import numpy as np
from loguru import logger

from .filters import (
    band_pass,
    derivative,
    moving_average,
    square,
    window_samples,
)
from .rpeak_detection import RPeakDetector, estimate_heart_rate


SUPPORTED_DTYPES = ('float64', 'float32')


@dataclass
class PipelineConfig:
    """检测管道配置"""

    # 采样率 (Hz)
    sampling_rate: float = 250.0

    # 带通滤波: 低通截止 (通带上限) / 高通截止 (通带下限)
    low_cutoff_hz: float = 15.0
    high_cutoff_hz: float = 5.0

    # 移动窗口积分宽度 (秒)
    integration_window_sec: float = 0.150

    # R峰检测参数
    refractory_period_sec: float = 0.200
    init_window_sec: float = 2.0

    # 少于该时长的信号直接返回空结果
    min_duration_sec: float = 0.5

    # 计算精度 (默认64位; 32位仅用于对比数值漂移)
    dtype: str = 'float64'

    def __post_init__(self):
        self.validate()

    def validate(self):
        """参数校验, 在任何处理开始之前抛出 ValueError"""
        for name in ('sampling_rate', 'low_cutoff_hz', 'high_cutoff_hz',
                     'integration_window_sec', 'refractory_period_sec',
                     'init_window_sec', 'min_duration_sec'):
            value = getattr(self, name)
            if not isinstance(value, numbers.Real) or not math.isfinite(value) or value <= 0:
                raise ValueError(f"配置参数 {name} 必须为正数, 当前值: {value!r}")

        if self.dtype not in SUPPORTED_DTYPES:
            raise ValueError(f"不支持的精度: {self.dtype}. 可选: {SUPPORTED_DTYPES}")

    @property
    def integration_window(self) -> int:
        """积分窗口 (采样点)"""
        return window_samples(self.integration_window_sec, self.sampling_rate)

    @property
    def refractory_samples(self) -> int:
        """不应期 (采样点)"""
        return window_samples(self.refractory_period_sec, self.sampling_rate)

    @property
    def init_samples(self) -> int:
        """阈值初始化片段长度 (采样点)"""
        return window_samples(self.init_window_sec, self.sampling_rate)

    @property
    def min_samples(self) -> int:
        """最少采样点数"""
        return int(math.ceil(self.sampling_rate * self.min_duration_sec))

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """返回修改部分参数后的新配置"""
        return replace(self, **overrides)


def _readonly(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class DetectionResult:
    """
    检测结果

    构造后不可修改, 是管道交给展示层的唯一产物
    """

    integrated: np.ndarray = field(default_factory=lambda: np.array([]))
    peaks: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.int64))
    threshold: float = 0.0
    heart_rate: int = 0
    sampling_rate: float = 250.0

    def __post_init__(self):
        integrated = np.asarray(self.integrated)
        dtype = integrated.dtype if integrated.dtype.kind == 'f' else np.float64
        object.__setattr__(self, 'integrated', _readonly(integrated, dtype))
        object.__setattr__(self, 'peaks', _readonly(self.peaks, np.int64))
        object.__setattr__(self, 'threshold', float(self.threshold))
        object.__setattr__(self, 'heart_rate', int(self.heart_rate))

    @classmethod
    def empty(cls, sampling_rate: float) -> "DetectionResult":
        """空结果: 数据不足或无有效数值"""
        return cls(sampling_rate=sampling_rate)

    @property
    def n_peaks(self) -> int:
        return len(self.peaks)

    @property
    def is_empty(self) -> bool:
        """是否没有任何可显示的数据"""
        return len(self.integrated) == 0

    @property
    def rr_intervals(self) -> np.ndarray:
        """RR间期 (采样点)"""
        return np.diff(self.peaks)

    @property
    def peak_times(self) -> np.ndarray:
        """R峰时刻 (秒)"""
        return self.peaks / self.sampling_rate

    def summary(self) -> Dict[str, Union[int, float]]:
        return {
            'n_samples': len(self.integrated),
            'n_peaks': self.n_peaks,
            'threshold': self.threshold,
            'heart_rate': self.heart_rate,
            'sampling_rate': self.sampling_rate,
        }


class QRSPipeline:
    """
    Pan-Tompkins QRS检测管道

    处理流程:
    1. 带通滤波 (低通15Hz -> 高通5Hz)
    2. 五点微分
    3. 平方
    4. 移动窗口积分
    5. 自适应阈值R峰检测
    6. 心率估计

    Usage:
        pipeline = QRSPipeline(PipelineConfig(sampling_rate=360))
        result = pipeline.process(ecg_signal)
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        初始化检测管道

        Args:
            config: 管道配置 (默认使用默认配置)
        """
        self.config = config if config else PipelineConfig()
        self.config.validate()

        self.rpeak_detector = RPeakDetector(
            sampling_rate=self.config.sampling_rate,
            refractory_period=self.config.refractory_period_sec,
            init_window=self.config.init_window_sec
        )

        logger.info(f"QRS检测管道初始化完成: fs={self.config.sampling_rate}Hz, "
                    f"dtype={self.config.dtype}")

    def _prepare(self, ecg_signal) -> np.ndarray:
        samples = np.array(ecg_signal, dtype=self.config.dtype)
        if samples.ndim != 1:
            raise ValueError(f"输入信号必须为一维序列, 当前维度: {samples.ndim}")
        if not np.all(np.isfinite(samples)):
            n_bad = int(np.sum(~np.isfinite(samples)))
            raise ValueError(f"输入信号包含 {n_bad} 个非有限值 (NaN/Inf)")
        return samples

    def process(
        self,
        ecg_signal,
        return_stages: bool = False
    ) -> Union[DetectionResult, Tuple[DetectionResult, Dict[str, np.ndarray]]]:
        """
        执行完整的检测流程

        Args:
            ecg_signal: 输入ECG采样序列
            return_stages: 是否同时返回各级中间结果

        Returns:
            DetectionResult (return_stages=True 时为 (result, stages))
        """
        cfg = self.config
        samples = self._prepare(ecg_signal)

        if len(samples) < cfg.min_samples:
            logger.warning(f"数据不足: {len(samples)} 个采样点 < {cfg.min_samples}, "
                           f"返回空结果")
            result = DetectionResult.empty(cfg.sampling_rate)
            return (result, {}) if return_stages else result

        # Step 1: 带通滤波
        filtered = band_pass(
            samples,
            cfg.sampling_rate,
            low_cutoff_hz=cfg.low_cutoff_hz,
            high_cutoff_hz=cfg.high_cutoff_hz,
            dtype=cfg.dtype
        )

        # Step 2-4: 微分 / 平方 / 积分
        differentiated = derivative(filtered, cfg.sampling_rate, dtype=cfg.dtype)
        squared = square(differentiated, dtype=cfg.dtype)
        integrated = moving_average(squared, cfg.integration_window, dtype=cfg.dtype)

        # Step 5: R峰检测
        r_peaks, state = self.rpeak_detector.detect(integrated)

        # Step 6: 心率
        heart_rate = estimate_heart_rate(r_peaks, cfg.sampling_rate)

        result = DetectionResult(
            integrated=integrated,
            peaks=r_peaks,
            threshold=state.threshold,
            heart_rate=heart_rate,
            sampling_rate=cfg.sampling_rate
        )

        logger.info(f"检测完成: {result.n_peaks} 个R峰, 心率 {heart_rate} BPM, "
                    f"阈值 {result.threshold:.4g}")

        if return_stages:
            stages = {
                'filtered': filtered,
                'differentiated': differentiated,
                'squared': squared,
                'integrated': integrated
            }
            return result, stages

        return result


def detect_qrs(ecg_signal, sampling_rate: float, **overrides) -> DetectionResult:
    """
    便捷接口: 使用默认配置检测

    Args:
        ecg_signal: 输入ECG采样序列
        sampling_rate: 采样率
        **overrides: 其它 PipelineConfig 参数

    Returns:
        DetectionResult
    """
    config = PipelineConfig(sampling_rate=sampling_rate, **overrides)
    return QRSPipeline(config).process(ecg_signal)
