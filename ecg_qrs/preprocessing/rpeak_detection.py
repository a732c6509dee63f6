"""
R峰检测模块
===========

Pan-Tompkins 自适应阈值检测:
在移动窗口积分信号上寻找局部极大值, 并用信号峰/噪声峰两个
指数滑动估计构造阈值, 结合不应期判定每个候选是否为QRS波群

数学原理:
---------
初始化 (前2秒积分信号):
    SPKI = 0.25 * max,  NPKI = 0.5 * mean
阈值:
    THR = NPKI + 0.25 * (SPKI - NPKI)
候选点 i 满足 s[i-1] < s[i] >= s[i+1]
接受 (v >= THR 且距上一R峰 >= 不应期):
    SPKI = 0.125 * v + 0.875 * SPKI
拒绝:
    NPKI = 0.125 * v + 0.875 * NPKI

Reference: Pan & Tompkins, IEEE TBME, 1985
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from .filters import window_samples


# 指数滑动平均的新值权重 (衰减因子 0.875)
PEAK_WEIGHT = 0.125
# 阈值位于 NPKI 与 SPKI 之间的比例
THRESHOLD_RATIO = 0.25


@dataclass
class ThresholdState:
    """
    自适应阈值状态

    每次检测重新创建, 检测结束后丢弃

    Attributes:
        spki: 信号峰值估计
        npki: 噪声峰值估计
        threshold: 当前判决阈值
        last_accepted_index: 上一个被接受的R峰位置 (尚无时为None)
    """

    spki: float
    npki: float
    threshold: float = 0.0
    last_accepted_index: Optional[int] = None

    def __post_init__(self):
        self._update_threshold()

    @classmethod
    def from_segment(cls, segment: np.ndarray) -> "ThresholdState":
        """由积分信号起始段初始化"""
        if len(segment) == 0:
            raise ValueError("初始化片段不能为空")

        return cls(
            spki=0.25 * float(np.max(segment)),
            npki=0.5 * float(np.mean(segment))
        )

    def _update_threshold(self):
        self.threshold = self.npki + THRESHOLD_RATIO * (self.spki - self.npki)

    def observe(self, index: int, value: float, refractory: int) -> bool:
        """
        判定一个候选峰并更新状态

        Args:
            index: 候选点位置
            value: 候选点积分值
            refractory: 不应期 (采样点)

        Returns:
            是否接受为R峰
        """
        value = float(value)
        outside_refractory = (
            self.last_accepted_index is None
            or index - self.last_accepted_index >= refractory
        )

        accepted = value >= self.threshold and outside_refractory
        if accepted:
            self.spki = PEAK_WEIGHT * value + (1 - PEAK_WEIGHT) * self.spki
            self.last_accepted_index = index
        else:
            self.npki = PEAK_WEIGHT * value + (1 - PEAK_WEIGHT) * self.npki

        self._update_threshold()
        return accepted


def find_candidates(integrated: np.ndarray) -> np.ndarray:
    """
    寻找局部极大值

    左侧严格大于, 右侧大于等于: 两个相等的相邻点取靠前者

    Args:
        integrated: 积分信号

    Returns:
        候选点索引 (升序)
    """
    s = np.asarray(integrated)
    if len(s) < 3:
        return np.array([], dtype=np.int64)

    middle = s[1:-1]
    is_peak = (middle > s[:-2]) & (middle >= s[2:])
    return np.flatnonzero(is_peak).astype(np.int64) + 1


def estimate_heart_rate(r_peaks, sampling_rate: float) -> int:
    """
    由RR间期估计平均心率

    bpm = round(60 * fs / mean(RR)),  R峰少于2个时返回0
    取整为四舍五入 (.5 向上进位)

    Args:
        r_peaks: R峰位置 (升序)
        sampling_rate: 采样率

    Returns:
        心率 (BPM, 整数)
    """
    r_peaks = np.asarray(r_peaks)
    if len(r_peaks) < 2:
        return 0

    mean_rr = float(np.mean(np.diff(r_peaks)))
    if mean_rr <= 0:
        return 0

    return int(math.floor(60.0 * sampling_rate / mean_rr + 0.5))


class RPeakDetector:
    """
    Pan-Tompkins 自适应阈值R峰检测器

    Attributes:
        sampling_rate: 采样率 (Hz)
        refractory_period: 不应期 (秒)
        init_window: 阈值初始化时长 (秒)
    """

    def __init__(
        self,
        sampling_rate: float = 250.0,
        refractory_period: float = 0.2,
        init_window: float = 2.0
    ):
        """
        初始化R峰检测器

        Args:
            sampling_rate: 采样率
            refractory_period: 不应期 (秒), 防止同一心拍被重复计数
            init_window: 初始化片段时长 (秒)
        """
        self.sampling_rate = sampling_rate
        self.refractory_period = refractory_period
        self.init_window = init_window

        # 换算为采样点 (同时完成参数校验)
        self.refractory_samples = window_samples(refractory_period, sampling_rate)
        self.init_samples = window_samples(init_window, sampling_rate)

        logger.debug(f"初始化R峰检测器: fs={sampling_rate}Hz, "
                     f"refractory={self.refractory_samples}, init={self.init_samples}")

    def init_state(self, integrated: np.ndarray) -> ThresholdState:
        """用起始段 (截断至信号长度) 初始化阈值状态"""
        segment = integrated[:min(len(integrated), self.init_samples)]
        return ThresholdState.from_segment(segment)

    def detect(
        self,
        integrated: np.ndarray
    ) -> Tuple[np.ndarray, ThresholdState]:
        """
        检测R峰位置

        Args:
            integrated: 移动窗口积分信号

        Returns:
            r_peaks: R峰索引数组
            state: 检测结束时的阈值状态
        """
        integrated = np.asarray(integrated)
        if len(integrated) == 0:
            raise ValueError("积分信号为空, 无法检测")

        state = self.init_state(integrated)
        logger.debug(f"阈值初始化: SPKI={state.spki:.4g}, NPKI={state.npki:.4g}, "
                     f"THR={state.threshold:.4g}")

        r_peaks: List[int] = []
        candidates = find_candidates(integrated)

        for idx in candidates:
            if state.observe(int(idx), integrated[idx], self.refractory_samples):
                r_peaks.append(int(idx))

        logger.debug(f"候选峰 {len(candidates)} 个, 接受 {len(r_peaks)} 个")

        return np.array(r_peaks, dtype=np.int64), state
