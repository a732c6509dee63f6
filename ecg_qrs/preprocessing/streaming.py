"""
实时QRS检测
===========

逐点输入采样, 在线输出R峰位置

与离线管道共用同一组滤波级与阈值状态, 对同一段数据
finish() 返回的结果与 QRSPipeline.process 逐位一致
"""

from typing import Iterable, List, Optional

import numpy as np
from loguru import logger

from .filters import (
    DerivativeStage,
    HighPassStage,
    LowPassStage,
    MovingAverageStage,
    SquareStage,
)
from .rpeak_detection import RPeakDetector, ThresholdState, estimate_heart_rate
from .signal_pipeline import DetectionResult, PipelineConfig


class StreamingQRSDetector:
    """
    实时QRS检测器

    阈值初始化需要前2秒的积分信号, 候选峰判定需要后一个采样点,
    因此R峰在初始化完成后、且下一个采样到达时才被确认

    积分信号在整个会话期间全部保留 (finish() 的结果需要完整序列),
    内存随输入长度线性增长; 长时间采集应分段调用 finish() 与 reset()

    Usage:
        detector = StreamingQRSDetector(PipelineConfig(sampling_rate=250))
        for sample in source:
            for peak in detector.push(sample):
                ...
        result = detector.finish()
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        初始化实时检测器

        Args:
            config: 管道配置
        """
        self.config = config if config else PipelineConfig()
        self.config.validate()
        cfg = self.config

        self._stages = [
            LowPassStage(cfg.low_cutoff_hz, cfg.sampling_rate, cfg.dtype),
            HighPassStage(cfg.high_cutoff_hz, cfg.sampling_rate, cfg.dtype),
            DerivativeStage(cfg.sampling_rate, cfg.dtype),
            SquareStage(cfg.dtype),
            MovingAverageStage(cfg.integration_window, cfg.dtype),
        ]

        self.rpeak_detector = RPeakDetector(
            sampling_rate=cfg.sampling_rate,
            refractory_period=cfg.refractory_period_sec,
            init_window=cfg.init_window_sec
        )

        # 初始化片段与最短时长取较大者, 保证在线确认的R峰不会被 finish() 撤销
        self._warmup = max(self.rpeak_detector.init_samples, cfg.min_samples)

        self.reset()

        logger.info(f"实时QRS检测器初始化完成: fs={cfg.sampling_rate}Hz, "
                    f"warmup={self._warmup} 个采样点")

    def reset(self):
        """清空全部状态, 开始新的记录"""
        for stage in self._stages:
            stage.reset()

        self._integrated = []
        self._peaks: List[int] = []
        self._state: Optional[ThresholdState] = None
        self._next_candidate = 1
        self._result: Optional[DetectionResult] = None

    @property
    def n_samples(self) -> int:
        return len(self._integrated)

    @property
    def peaks(self) -> List[int]:
        """已确认的R峰 (副本)"""
        return list(self._peaks)

    @property
    def threshold(self) -> float:
        """当前阈值, 初始化完成前为0"""
        return self._state.threshold if self._state else 0.0

    @property
    def heart_rate(self) -> int:
        """根据已确认R峰估计的心率"""
        return estimate_heart_rate(self._peaks, self.config.sampling_rate)

    def _integrated_array(self) -> np.ndarray:
        return np.asarray(self._integrated, dtype=self.config.dtype)

    def _scan(self, last: int) -> List[int]:
        """判定 [next_candidate, last] 范围内的候选点"""
        s = self._integrated
        refractory = self.rpeak_detector.refractory_samples
        new_peaks = []

        while self._next_candidate <= last:
            i = self._next_candidate
            if s[i - 1] < s[i] >= s[i + 1]:
                if self._state.observe(i, s[i], refractory):
                    new_peaks.append(i)
            self._next_candidate += 1

        self._peaks.extend(new_peaks)
        return new_peaks

    def push(self, sample) -> List[int]:
        """
        输入一个采样点

        Args:
            sample: 采样值

        Returns:
            本次新确认的R峰位置列表
        """
        if self._result is not None:
            raise RuntimeError("检测器已结束, 请先调用 reset()")
        if not np.isfinite(sample):
            raise ValueError(f"采样值必须为有限数值, 当前值: {sample}")

        y = sample
        for stage in self._stages:
            y = stage.step(y)
        self._integrated.append(y)

        n = len(self._integrated)
        if self._state is None:
            if n < self._warmup:
                return []
            self._state = self.rpeak_detector.init_state(self._integrated_array())
            logger.debug(f"实时阈值初始化: SPKI={self._state.spki:.4g}, "
                         f"NPKI={self._state.npki:.4g}")

        return self._scan(n - 2)

    def extend(self, samples: Iterable) -> List[int]:
        """批量输入采样点, 返回新确认的R峰"""
        new_peaks = []
        for sample in samples:
            new_peaks.extend(self.push(sample))
        return new_peaks

    def finish(self) -> DetectionResult:
        """
        结束输入并生成检测结果

        Returns:
            DetectionResult (与离线管道一致)
        """
        if self._result is not None:
            return self._result

        cfg = self.config
        n = len(self._integrated)

        if n < cfg.min_samples:
            logger.warning(f"数据不足: {n} 个采样点 < {cfg.min_samples}, 返回空结果")
            self._result = DetectionResult.empty(cfg.sampling_rate)
            return self._result

        if self._state is None:
            self._state = self.rpeak_detector.init_state(self._integrated_array())
        self._scan(n - 2)

        self._result = DetectionResult(
            integrated=self._integrated_array(),
            peaks=self._peaks,
            threshold=self._state.threshold,
            heart_rate=estimate_heart_rate(self._peaks, cfg.sampling_rate),
            sampling_rate=cfg.sampling_rate
        )

        logger.info(f"实时检测结束: {n} 个采样点, {self._result.n_peaks} 个R峰, "
                    f"心率 {self._result.heart_rate} BPM")

        return self._result
