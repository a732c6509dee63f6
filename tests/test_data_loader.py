# tests/test_data_loader.py
import pytest
import numpy as np

from ecg_qrs.utils.data_loader import ECGDataLoader, extract_numeric_value


@pytest.fixture
def mixed_csv(tmp_path):
    """包含表头、非数值字段与空记录的CSV文件"""
    path = tmp_path / "mixed.csv"
    path.write_text(
        "time,value\n"
        "0.1,1.5\n"
        "abc,2.0\n"
        ",,\n"
        " 3.25 ,x\n"
        "nan,4\n",
        encoding='utf-8'
    )
    return path


class TestExtractNumericValue:
    def test_first_numeric_field(self):
        """测试取第一个可解析字段"""
        assert extract_numeric_value([" x ", " 2.5", "3"]) == 2.5
        assert extract_numeric_value(["-7"]) == -7.0

    def test_no_numeric_field(self):
        assert extract_numeric_value(["a", "b"]) is None
        assert extract_numeric_value([]) is None

    def test_type_suffix(self):
        """测试 f/d 类型后缀"""
        assert extract_numeric_value(["1.5f", "4"]) == 1.5
        assert extract_numeric_value([" 2D "]) == 2.0
        assert extract_numeric_value(["1.5ff", "4"]) == 4.0

    def test_non_finite_skipped(self):
        """测试 inf/nan 字段不作为采样值"""
        assert extract_numeric_value(["inf", "nan", "7"]) == 7.0


class TestECGDataLoader:
    def test_load_mixed(self, mixed_csv):
        """测试每条记录取第一个数值字段, 无数值记录被跳过"""
        loaded = ECGDataLoader(mixed_csv).load()

        np.testing.assert_array_equal(loaded.samples, [0.1, 2.0, 3.25, 4.0])
        np.testing.assert_array_equal(loaded.record_indices, [1, 2, 4, 5])
        assert loaded.n_records == 6
        assert loaded.n_skipped == 2
        assert loaded.source == str(mixed_csv)

    def test_preview(self, mixed_csv):
        """测试预览为前N条记录, 字段以 | 连接"""
        loaded = ECGDataLoader(mixed_csv, preview_rows=3).load()

        assert loaded.preview == ["time | value", "0.1 | 1.5", "abc | 2.0"]

    def test_preview_default_cap(self, tmp_path):
        """测试默认最多预览100条记录"""
        path = tmp_path / "long.csv"
        path.write_text("".join(f"{i},{i * 2}\n" for i in range(250)), encoding='utf-8')

        loaded = ECGDataLoader(path).load()

        assert len(loaded.preview) == 100
        assert loaded.preview[0] == "0 | 0"
        assert loaded.n_samples == 250
        assert loaded.samples[-1] == 249.0

    def test_custom_delimiter(self, tmp_path):
        path = tmp_path / "semicolon.csv"
        path.write_text("lead;1.0\nlead;2.5\n", encoding='utf-8')

        loaded = ECGDataLoader(path, delimiter=';').load()

        np.testing.assert_array_equal(loaded.samples, [1.0, 2.5])
        assert loaded.preview[0] == "lead | 1.0"

    def test_empty_file(self, tmp_path):
        """测试空文件返回空结果"""
        path = tmp_path / "empty.csv"
        path.write_text("", encoding='utf-8')

        loaded = ECGDataLoader(path).load()

        assert loaded.is_empty
        assert loaded.n_records == 0
        assert loaded.preview == []

    def test_missing_file(self, tmp_path):
        """测试文件不存在时报错"""
        with pytest.raises(FileNotFoundError):
            ECGDataLoader(tmp_path / "missing.csv").load()

    def test_get_ecg_signal(self, mixed_csv):
        """测试首次获取信号时自动加载"""
        loader = ECGDataLoader(mixed_csv)
        signal = loader.get_ecg_signal()

        assert signal.dtype == np.float64
        assert len(signal) == 4

    @pytest.mark.parametrize('kwargs', [{'delimiter': ''}, {'preview_rows': -1}])
    def test_invalid_arguments(self, tmp_path, kwargs):
        with pytest.raises(ValueError):
            ECGDataLoader(tmp_path / "x.csv", **kwargs)

    def test_ragged_trailing_row(self, tmp_path):
        """测试个别超长记录不影响其它记录的解析"""
        path = tmp_path / "ragged.csv"
        lines = [f"{i}" for i in range(2000)] + ["1" + "," * 3000]
        path.write_text("\n".join(lines) + "\n", encoding='utf-8')

        loaded = ECGDataLoader(path, preview_rows=0).load()

        assert loaded.n_records == 2001
        assert loaded.n_samples == 2001
        assert loaded.samples[1999] == 1999.0
        assert loaded.samples[-1] == 1.0

    def test_ragged_row_without_leading_number(self, tmp_path):
        """测试长记录中靠后的数值字段"""
        path = tmp_path / "ragged.csv"
        path.write_text("a" + ",x" * 500 + ",9.5\n3\n", encoding='utf-8')

        loaded = ECGDataLoader(path).load()

        np.testing.assert_array_equal(loaded.samples, [9.5, 3.0])
        np.testing.assert_array_equal(loaded.record_indices, [0, 1])

    def test_type_suffix_fields(self, tmp_path):
        """测试带类型后缀的浮点字段按数值解析"""
        path = tmp_path / "suffix.csv"
        path.write_text("1.5f,4\n2d,x\n-3.0E2F,1\nf,7\n", encoding='utf-8')

        loaded = ECGDataLoader(path).load()

        np.testing.assert_array_equal(loaded.samples, [1.5, 2.0, -300.0, 7.0])
