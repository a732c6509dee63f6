# tests/test_rpeak_detection.py
import pytest
import numpy as np

from ecg_qrs.preprocessing.rpeak_detection import (
    RPeakDetector,
    ThresholdState,
    estimate_heart_rate,
    find_candidates,
)


class TestThresholdState:
    def test_initialization(self):
        """测试 SPKI/NPKI 初始化与阈值公式"""
        segment = np.array([0.0, 4.0, 2.0, 2.0])
        state = ThresholdState.from_segment(segment)

        assert state.spki == pytest.approx(1.0)     # 0.25 * max
        assert state.npki == pytest.approx(1.0)     # 0.5 * mean
        assert state.threshold == pytest.approx(1.0)
        assert state.last_accepted_index is None

    def test_empty_segment(self):
        """测试空初始化片段"""
        with pytest.raises(ValueError):
            ThresholdState.from_segment(np.array([]))

    def test_accept_updates_spki(self):
        """测试接受候选时更新 SPKI"""
        state = ThresholdState(spki=8.0, npki=0.0)
        assert state.threshold == pytest.approx(2.0)

        assert state.observe(10, 16.0, refractory=5)
        assert state.spki == pytest.approx(0.125 * 16.0 + 0.875 * 8.0)
        assert state.npki == 0.0
        assert state.last_accepted_index == 10
        assert state.threshold == pytest.approx(0.25 * state.spki)

    def test_reject_below_threshold_updates_npki(self):
        """测试低于阈值的候选更新 NPKI"""
        state = ThresholdState(spki=8.0, npki=0.0)

        assert not state.observe(10, 1.0, refractory=5)
        assert state.npki == pytest.approx(0.125)
        assert state.spki == 8.0
        assert state.last_accepted_index is None

    def test_refractory_rejection(self):
        """测试不应期内的高幅候选被当作噪声"""
        state = ThresholdState(spki=8.0, npki=0.0)
        assert state.observe(10, 16.0, refractory=5)

        spki = state.spki
        assert not state.observe(14, 16.0, refractory=5)
        assert state.spki == spki
        assert state.npki == pytest.approx(2.0)

        # 恰好相隔不应期时接受
        assert state.observe(15, 16.0, refractory=5)

    def test_threshold_equality_accepts(self):
        """测试候选值等于阈值时接受"""
        state = ThresholdState(spki=8.0, npki=0.0)
        assert state.observe(0, state.threshold, refractory=5)


class TestCandidates:
    def test_tie_break(self):
        """测试相等相邻点取靠前者"""
        s = np.array([0.0, 1.0, 3.0, 3.0, 1.0, 0.0])
        np.testing.assert_array_equal(find_candidates(s), [2])

    def test_plateau_left_strict(self):
        """测试左侧不严格时不构成候选"""
        s = np.array([1.0, 1.0, 1.0, 1.0])
        assert len(find_candidates(s)) == 0

    def test_edges_excluded(self):
        """测试首尾点不作为候选"""
        s = np.array([5.0, 1.0, 2.0, 1.0, 5.0])
        np.testing.assert_array_equal(find_candidates(s), [2])

    def test_short_signal(self):
        assert len(find_candidates(np.array([1.0, 2.0]))) == 0


class TestHeartRate:
    def test_mean_interval(self):
        """测试由平均RR间期计算心率"""
        assert estimate_heart_rate([0, 250, 500, 750], 500) == 120
        assert estimate_heart_rate([0, 200, 420], 250) == round(60 * 250 / 210)

    def test_half_rounds_up(self):
        """测试 .5 向上取整"""
        assert estimate_heart_rate([0, 240], 250) == 63     # 62.5
        assert estimate_heart_rate([0, 1200], 250) == 13    # 12.5
        assert estimate_heart_rate([0, 240, 480], 250) == 63

    @pytest.mark.parametrize('peaks', [[], [100]])
    def test_insufficient_peaks(self, peaks):
        """测试少于两个R峰时心率为0"""
        assert estimate_heart_rate(peaks, 250) == 0


class TestRPeakDetector:
    def test_sample_conversion(self):
        """测试不应期与初始化时长换算"""
        detector = RPeakDetector(sampling_rate=500)
        assert detector.refractory_samples == 100
        assert detector.init_samples == 1000

    def test_invalid_sampling_rate(self):
        with pytest.raises(ValueError):
            RPeakDetector(sampling_rate=0)

    def test_detect_pulses(self):
        """测试在简单包络上检测"""
        fs = 100
        integrated = np.zeros(600)
        for center in (50, 150, 250, 350, 450, 550):
            integrated[center - 5:center + 6] += np.hanning(11)

        detector = RPeakDetector(sampling_rate=fs)
        peaks, state = detector.detect(integrated)

        np.testing.assert_array_equal(peaks, [50, 150, 250, 350, 450, 550])
        assert state.last_accepted_index == 550
        assert state.threshold > 0

    def test_refractory_suppresses_double_count(self):
        """测试同一心拍附近的次峰被不应期抑制"""
        fs = 100
        integrated = np.zeros(400)
        for center in (50, 150, 250, 350):
            integrated[center - 5:center + 6] += np.hanning(11)
            integrated[center + 10] = 0.9

        peaks, _ = RPeakDetector(sampling_rate=fs).detect(integrated)

        np.testing.assert_array_equal(peaks, [50, 150, 250, 350])
        assert np.all(np.diff(peaks) >= 20)

    def test_empty_signal(self):
        with pytest.raises(ValueError):
            RPeakDetector(sampling_rate=100).detect(np.array([]))
