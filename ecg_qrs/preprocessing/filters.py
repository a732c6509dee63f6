"""
Pan-Tompkins 滤波模块
=====================

实现QRS检测前端的各级滤波器:
1. 一阶低通滤波 (15Hz, 抑制高频噪声/肌电)
2. 一阶高通滤波 (5Hz, 去除基线漂移)
3. 五点因果微分
4. 平方
5. 移动窗口积分 (约150ms)

数学原理:
---------
低通:  α = dt / (RC + dt),  y[n] = y[n-1] + α (x[n] - y[n-1])
高通:  α = RC / (RC + dt),  y[n] = α (y[n-1] + x[n] - x[n-1])
其中 RC = 1 / (2π fc), dt = 1 / fs, 且 y[0] = x[0]

微分:  y[n] = (2x[n] + x[n-1] - x[n-3] - 2x[n-4]) / (8T),  y[0..3] = 0
积分:  y[n] = (1/N) Σ x[n-k],  N 在前 W-1 个采样点内从 1 增长到 W

每一级都提供一个逐点处理的 Stage 类 (实时模式) 和一个批量函数,
批量函数复用同一个 Stage 类或与之完全相同的逐元素运算,
因此离线与实时两种模式的结果逐位一致。
"""

from collections import deque
from typing import Optional, Tuple, Union

import numpy as np
from scipy import signal as sp_signal
from loguru import logger


DTypeLike = Union[str, type, np.dtype]


def _check_positive(name: str, value: float) -> None:
    """参数校验: 必须为有限正数"""
    if not np.isfinite(value) or value <= 0:
        raise ValueError(f"{name} 必须为正数, 当前值: {value}")


def _as_signal(data, dtype: DTypeLike) -> np.ndarray:
    """转换为一维数组 (复制, 不修改调用方数据)"""
    arr = np.array(data, dtype=dtype)
    if arr.ndim != 1:
        raise ValueError(f"输入信号必须为一维序列, 当前维度: {arr.ndim}")
    return arr


def window_samples(duration_sec: float, sampling_rate: float) -> int:
    """
    将时长换算为采样点数

    四舍五入到最近整数, 最小为1

    Args:
        duration_sec: 时长 (秒)
        sampling_rate: 采样率 (Hz)

    Returns:
        采样点数
    """
    _check_positive("duration_sec", duration_sec)
    _check_positive("sampling_rate", sampling_rate)
    return max(1, int(round(duration_sec * sampling_rate)))


class LowPassStage:
    """
    一阶递归低通滤波器 (单极点RC平滑)

    Attributes:
        alpha: 平滑系数 dt / (RC + dt)
    """

    def __init__(
        self,
        cutoff_hz: float,
        sampling_rate: float,
        dtype: DTypeLike = np.float64
    ):
        _check_positive("cutoff_hz", cutoff_hz)
        _check_positive("sampling_rate", sampling_rate)

        self.cutoff_hz = cutoff_hz
        self.sampling_rate = sampling_rate
        self._cast = np.dtype(dtype).type

        dt = 1.0 / sampling_rate
        rc = 1.0 / (2 * np.pi * cutoff_hz)
        self.alpha = self._cast(dt / (rc + dt))

        self.reset()

    def reset(self):
        self._prev_out = None

    def step(self, x):
        x = self._cast(x)
        if self._prev_out is None:
            y = x
        else:
            y = self._cast(self._prev_out + self.alpha * (x - self._prev_out))
        self._prev_out = y
        return y


class HighPassStage:
    """
    一阶递归高通滤波器

    Attributes:
        alpha: 系数 RC / (RC + dt)
    """

    def __init__(
        self,
        cutoff_hz: float,
        sampling_rate: float,
        dtype: DTypeLike = np.float64
    ):
        _check_positive("cutoff_hz", cutoff_hz)
        _check_positive("sampling_rate", sampling_rate)

        self.cutoff_hz = cutoff_hz
        self.sampling_rate = sampling_rate
        self._cast = np.dtype(dtype).type

        dt = 1.0 / sampling_rate
        rc = 1.0 / (2 * np.pi * cutoff_hz)
        self.alpha = self._cast(rc / (rc + dt))

        self.reset()

    def reset(self):
        self._prev_in = None
        self._prev_out = None

    def step(self, x):
        x = self._cast(x)
        if self._prev_in is None:
            y = x
        else:
            y = self._cast(self.alpha * (self._prev_out + x - self._prev_in))
        self._prev_in = x
        self._prev_out = y
        return y


class DerivativeStage:
    """
    五点因果微分器

    前4个输出固定为0 (历史数据不足)
    """

    TAPS = 4

    def __init__(self, sampling_rate: float, dtype: DTypeLike = np.float64):
        _check_positive("sampling_rate", sampling_rate)

        self.sampling_rate = sampling_rate
        self._cast = np.dtype(dtype).type
        self.denominator = self._cast(8.0 * (1.0 / sampling_rate))

        self.reset()

    def reset(self):
        self._history = deque(maxlen=self.TAPS)

    def step(self, x):
        x = self._cast(x)
        h = self._history
        if len(h) < self.TAPS:
            y = self._cast(0.0)
        else:
            # h[-1] = x[n-1], h[-3] = x[n-3], h[-4] = x[n-4]
            y = self._cast((2 * x + h[-1] - h[-3] - 2 * h[-4]) / self.denominator)
        h.append(x)
        return y


class SquareStage:
    """逐点平方"""

    def __init__(self, dtype: DTypeLike = np.float64):
        self._cast = np.dtype(dtype).type

    def reset(self):
        pass

    def step(self, x):
        x = self._cast(x)
        return self._cast(x * x)


class MovingAverageStage:
    """
    因果移动窗口积分器

    维护滑动累加和, 除数在窗口填满之前随采样点数增长,
    避免信号起始段被人为压低
    """

    def __init__(self, window_size: int, dtype: DTypeLike = np.float64):
        if int(window_size) != window_size or window_size < 1:
            raise ValueError(f"window_size 必须为不小于1的整数, 当前值: {window_size}")

        self.window_size = int(window_size)
        self._cast = np.dtype(dtype).type

        self.reset()

    def reset(self):
        self._window = deque()
        self._total = self._cast(0.0)

    def step(self, x):
        x = self._cast(x)
        self._total = self._cast(self._total + x)
        self._window.append(x)
        if len(self._window) > self.window_size:
            self._total = self._cast(self._total - self._window.popleft())
        return self._cast(self._total / self._cast(len(self._window)))


def _run_stage(stage, data: np.ndarray) -> np.ndarray:
    """严格按索引顺序逐点执行一个滤波级"""
    out = np.empty(len(data), dtype=data.dtype)
    for i, x in enumerate(data):
        out[i] = stage.step(x)
    return out


def low_pass(
    signal_data,
    cutoff_hz: float,
    sampling_rate: float,
    dtype: DTypeLike = np.float64
) -> np.ndarray:
    """
    一阶低通滤波

    Args:
        signal_data: 输入信号
        cutoff_hz: 截止频率 (Hz)
        sampling_rate: 采样率 (Hz)
        dtype: 计算精度

    Returns:
        滤波后信号 (与输入等长, 首点与输入相同)
    """
    stage = LowPassStage(cutoff_hz, sampling_rate, dtype)
    return _run_stage(stage, _as_signal(signal_data, dtype))


def high_pass(
    signal_data,
    cutoff_hz: float,
    sampling_rate: float,
    dtype: DTypeLike = np.float64
) -> np.ndarray:
    """
    一阶高通滤波

    Args:
        signal_data: 输入信号
        cutoff_hz: 截止频率 (Hz)
        sampling_rate: 采样率 (Hz)
        dtype: 计算精度

    Returns:
        滤波后信号 (与输入等长, 首点与输入相同)
    """
    stage = HighPassStage(cutoff_hz, sampling_rate, dtype)
    return _run_stage(stage, _as_signal(signal_data, dtype))


def band_pass(
    signal_data,
    sampling_rate: float,
    low_cutoff_hz: float = 15.0,
    high_cutoff_hz: float = 5.0,
    dtype: DTypeLike = np.float64
) -> np.ndarray:
    """
    带通滤波: 先低通后高通

    高通级的差分项作用于低通输出, 两级顺序不可交换

    Args:
        signal_data: 输入信号
        sampling_rate: 采样率
        low_cutoff_hz: 低通截止频率 (通带上限)
        high_cutoff_hz: 高通截止频率 (通带下限)
        dtype: 计算精度

    Returns:
        带通信号
    """
    smoothed = low_pass(signal_data, low_cutoff_hz, sampling_rate, dtype)
    filtered = high_pass(smoothed, high_cutoff_hz, sampling_rate, dtype)

    logger.debug(f"带通滤波: {high_cutoff_hz}-{low_cutoff_hz}Hz, fs={sampling_rate}Hz, "
                 f"n={len(filtered)}")

    return filtered


def derivative(
    signal_data,
    sampling_rate: float,
    dtype: DTypeLike = np.float64
) -> np.ndarray:
    """
    五点因果微分

    y[n] = (2x[n] + x[n-1] - x[n-3] - 2x[n-4]) / (8T)
    缩放常数直接影响平方能量的量级及后续阈值

    Args:
        signal_data: 带通信号
        sampling_rate: 采样率
        dtype: 计算精度

    Returns:
        微分信号, 前4个点为0
    """
    _check_positive("sampling_rate", sampling_rate)
    x = _as_signal(signal_data, dtype)
    denominator = np.dtype(dtype).type(8.0 * (1.0 / sampling_rate))

    out = np.zeros_like(x)
    if len(x) > DerivativeStage.TAPS:
        out[4:] = (2 * x[4:] + x[3:-1] - x[1:-3] - 2 * x[:-4]) / denominator

    return out


def square(signal_data, dtype: DTypeLike = np.float64) -> np.ndarray:
    """逐点平方, 使所有值非负并放大大斜率"""
    x = _as_signal(signal_data, dtype)
    return x * x


def moving_average(
    signal_data,
    window_size: int,
    dtype: DTypeLike = np.float64
) -> np.ndarray:
    """
    移动窗口积分

    Args:
        signal_data: 平方信号
        window_size: 窗口宽度 (采样点, >= 1)
        dtype: 计算精度

    Returns:
        能量包络
    """
    stage = MovingAverageStage(window_size, dtype)
    return _run_stage(stage, _as_signal(signal_data, dtype))


def low_pass_coefficients(
    cutoff_hz: float,
    sampling_rate: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    低通递推式对应的传递函数系数

    H(z) = α / (1 - (1-α) z^-1)

    Returns:
        (b, a)
    """
    alpha = float(LowPassStage(cutoff_hz, sampling_rate).alpha)
    return np.array([alpha]), np.array([1.0, alpha - 1.0])


def high_pass_coefficients(
    cutoff_hz: float,
    sampling_rate: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    高通递推式对应的传递函数系数

    H(z) = α (1 - z^-1) / (1 - α z^-1)

    Returns:
        (b, a)
    """
    alpha = float(HighPassStage(cutoff_hz, sampling_rate).alpha)
    return np.array([alpha, -alpha]), np.array([1.0, -alpha])


def frequency_response(
    b: np.ndarray,
    a: np.ndarray,
    sampling_rate: float,
    n_points: Optional[int] = 512
) -> Tuple[np.ndarray, np.ndarray]:
    """
    计算滤波器幅频响应

    Args:
        b, a: 传递函数系数
        sampling_rate: 采样率
        n_points: 频率点数

    Returns:
        freqs: 频率 (Hz, 0 到 fs/2)
        gain: 幅值增益
    """
    _check_positive("sampling_rate", sampling_rate)
    freqs, response = sp_signal.freqz(b, a, worN=n_points, fs=sampling_rate)
    return freqs, np.abs(response)
