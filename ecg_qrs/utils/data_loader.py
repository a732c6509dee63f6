"""
数据加载模块
============

从分隔文本 (CSV) 文件加载单导联ECG采样

规则: 每条记录取第一个可解析为有限数值的字段, 没有则跳过该记录
字段语法兼容浮点字面量的类型后缀 (如 1.5f, 2d)
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger


# 十进制浮点字面量后接 f/F/d/D 类型后缀
_TYPE_SUFFIX = r'^([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)[fFdD]$'


def _parse_fields(cells: pd.Series) -> pd.Series:
    """
    逐字段解析数值

    Returns:
        与输入同索引的float64 Series, 无法解析或非有限的字段为NaN
    """
    text = cells.astype(str).str.strip().str.replace(_TYPE_SUFFIX, r'\1', regex=True)
    values = pd.to_numeric(text, errors='coerce').astype(np.float64)
    return values.where(np.isfinite(values))


def extract_numeric_value(fields: Sequence[str]) -> Optional[float]:
    """
    提取记录中第一个数值字段

    Args:
        fields: 已按分隔符拆分的字段

    Returns:
        第一个可解析的有限数值, 没有时返回None
    """
    if len(fields) == 0:
        return None

    values = _parse_fields(pd.Series([str(cell) for cell in fields], dtype=object)).dropna()
    return float(values.iloc[0]) if len(values) else None


@dataclass
class LoadedSignal:
    """加载结果"""

    samples: np.ndarray = field(default_factory=lambda: np.array([]))
    # 每个采样对应的原始记录序号 (含被跳过的记录)
    record_indices: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.int64))
    preview: List[str] = field(default_factory=list)
    n_records: int = 0
    source: str = ""

    @property
    def n_samples(self) -> int:
        return len(self.samples)

    @property
    def n_skipped(self) -> int:
        """没有数值字段而被跳过的记录数"""
        return self.n_records - self.n_samples

    @property
    def is_empty(self) -> bool:
        return self.n_samples == 0


class ECGDataLoader:
    """
    ECG数据加载器

    从CSV文件加载ECG采样序列, 并生成前N条记录的文本预览
    """

    def __init__(
        self,
        filepath: str,
        delimiter: str = ',',
        preview_rows: int = 100,
        encoding: str = 'utf-8'
    ):
        """
        初始化数据加载器

        Args:
            filepath: 数据文件路径
            delimiter: 字段分隔符
            preview_rows: 预览记录数 (0 表示不生成预览)
            encoding: 文件编码
        """
        if not delimiter:
            raise ValueError("分隔符不能为空")
        if preview_rows < 0:
            raise ValueError(f"preview_rows 不能为负数, 当前值: {preview_rows}")

        self.filepath = str(filepath)
        self.delimiter = delimiter
        self.preview_rows = preview_rows
        self.encoding = encoding

        self._loaded: Optional[LoadedSignal] = None

    def _read_records(self) -> List[str]:
        """按行读取记录"""
        if not os.path.isfile(self.filepath):
            raise FileNotFoundError(f"数据文件不存在: {self.filepath}")

        try:
            with open(self.filepath, 'r', encoding=self.encoding, errors='replace') as f:
                return [line.rstrip('\n') for line in f]
        except OSError as e:
            raise FileNotFoundError(f"无法打开数据文件: {self.filepath} ({e})") from e

    def _parse_values(self, records: List[str]) -> pd.Series:
        """
        解析每条记录的第一个数值字段

        Returns:
            与记录等长的Series, 无数值的记录为NaN
        """
        # 展开为一字段一行 (索引为记录序号), 开销与字段总数成正比
        cells = pd.Series(records, dtype=object).str.split(
            self.delimiter, regex=False
        ).explode()
        values = _parse_fields(cells)

        # groupby.first 跳过NaN, 即每条记录的第一个数值
        first = values.groupby(level=0).first()
        return first.reindex(range(len(records)))

    def load(self) -> LoadedSignal:
        """
        加载数据文件

        Returns:
            LoadedSignal

        Raises:
            FileNotFoundError: 文件不存在或无法打开
        """
        records = self._read_records()

        preview = [
            " | ".join(record.split(self.delimiter))
            for record in records[:self.preview_rows]
        ]

        if not records:
            logger.warning(f"数据文件为空: {self.filepath}")
            self._loaded = LoadedSignal(preview=preview, source=self.filepath)
            return self._loaded

        values = self._parse_values(records)
        valid = values.notna().to_numpy()

        self._loaded = LoadedSignal(
            samples=values.to_numpy(dtype=np.float64)[valid],
            record_indices=np.flatnonzero(valid).astype(np.int64),
            preview=preview,
            n_records=len(records),
            source=self.filepath
        )

        logger.info(f"加载 {os.path.basename(self.filepath)}: {len(records)} 条记录, "
                    f"{self._loaded.n_samples} 个采样, 跳过 {self._loaded.n_skipped} 条")

        if self._loaded.is_empty:
            logger.warning(f"文件中没有可解析的数值: {self.filepath}")

        return self._loaded

    def get_ecg_signal(self) -> np.ndarray:
        """
        获取ECG信号

        Returns:
            ECG采样数组 (首次调用时加载)
        """
        if self._loaded is None:
            self.load()
        return self._loaded.samples
