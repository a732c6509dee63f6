# tests/test_visualization.py
import pytest
import numpy as np

from ecg_qrs.preprocessing.signal_pipeline import DetectionResult, PipelineConfig, QRSPipeline
from ecg_qrs.utils.visualization import ECGVisualizer


@pytest.fixture
def detection(impulse_train):
    config = PipelineConfig(sampling_rate=impulse_train['sampling_rate'])
    result, stages = QRSPipeline(config).process(impulse_train['signal'], return_stages=True)
    return impulse_train['signal'], result, stages


class TestECGVisualizer:
    def test_invalid_theme(self):
        with pytest.raises(ValueError):
            ECGVisualizer(theme='neon')

    def test_plot_detection(self, detection):
        """测试检测结果图包含积分信号与R峰"""
        signal, result, _ = detection
        fig = ECGVisualizer().plot_detection(result, raw_signal=signal)

        names = [trace.name for trace in fig.data]
        assert names == ['ECG', 'MWI', 'R-peaks']
        assert len(fig.data[2].x) == result.n_peaks
        assert str(result.heart_rate) in fig.layout.title.text

    def test_plot_detection_without_raw(self, detection):
        _, result, _ = detection
        fig = ECGVisualizer(theme='medical').plot_detection(result)

        assert [trace.name for trace in fig.data] == ['MWI', 'R-peaks']

    def test_plot_empty_result(self):
        """测试空结果显示无数据提示"""
        fig = ECGVisualizer().plot_detection(DetectionResult.empty(250))

        assert len(fig.data) == 0
        assert fig.layout.annotations[0].text == "No data"

    def test_plot_stages(self, detection):
        """测试各级中间结果各占一行"""
        _, _, stages = detection
        fig = ECGVisualizer().plot_stages(stages, 250)

        assert len(fig.data) == len(stages)

        with pytest.raises(ValueError):
            ECGVisualizer().plot_stages({}, 250)

    def test_plot_ecg_signal(self, impulse_train):
        signal = impulse_train['signal']
        fig = ECGVisualizer().plot_ecg_signal(signal, 250, r_peaks=np.flatnonzero(signal))

        assert len(fig.data) == 2
        np.testing.assert_array_equal(fig.data[1].y, signal[signal > 0])

    def test_save_html(self, detection, tmp_path):
        """测试保存为HTML文件"""
        _, result, _ = detection
        visualizer = ECGVisualizer()
        path = tmp_path / "figures" / "result.html"

        visualizer.save_html(visualizer.plot_detection(result), str(path))

        assert path.exists()
        assert path.stat().st_size > 0
