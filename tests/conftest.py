# tests/conftest.py
import pytest
import numpy as np
from ecg_qrs.preprocessing.signal_pipeline import PipelineConfig


@pytest.fixture
def config():
    """提供默认配置fixture (250Hz)"""
    return PipelineConfig(sampling_rate=250.0)


@pytest.fixture
def impulse_train():
    """等间隔脉冲序列: 250Hz, 间隔200点 (75 BPM), 共10秒"""
    sampling_rate = 250
    spacing = 200
    signal = np.zeros(10 * sampling_rate)
    signal[50::spacing] = 100.0

    return {
        'signal': signal,
        'sampling_rate': sampling_rate,
        'spacing': spacing,
        'heart_rate': round(60 * sampling_rate / spacing)
    }


@pytest.fixture
def example_impulses():
    """500Hz, 1000个零点, 在100/350/600/850处放置幅值100的脉冲 (120 BPM)"""
    signal = np.zeros(1000)
    signal[[100, 350, 600, 850]] = 100.0
    return {'signal': signal, 'sampling_rate': 500}


@pytest.fixture
def synthetic_ecg():
    """合成ECG: 高斯形QRS + 基线漂移 + 白噪声, 75 BPM, 360Hz, 20秒"""
    rng = np.random.default_rng(42)
    sampling_rate = 360
    duration = 20.0
    rr_sec = 0.8
    n = int(duration * sampling_rate)
    t = np.arange(n) / sampling_rate

    signal = 0.3 * np.sin(2 * np.pi * 0.3 * t)
    beat_times = np.arange(0.4, duration - 0.2, rr_sec)
    for bt in beat_times:
        # QRS (约20ms宽) 与较宽的T波
        signal += 1.0 * np.exp(-0.5 * ((t - bt) / 0.008) ** 2)
        signal += 0.2 * np.exp(-0.5 * ((t - bt - 0.25) / 0.04) ** 2)
    signal += rng.normal(0, 0.01, n)

    return {
        'signal': signal,
        'sampling_rate': sampling_rate,
        'n_beats': len(beat_times),
        'heart_rate': round(60 / rr_sec)
    }
