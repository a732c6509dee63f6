"""
可视化模块
==========

ECG信号与QRS检测结果的可视化
"""

import os
from typing import Dict, Optional

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots
from loguru import logger

from ..preprocessing.signal_pipeline import DetectionResult


class ECGVisualizer:
    """
    ECG可视化器

    生成交互式 Plotly 图表
    """

    # 赛博朋克配色方案
    CYBERPUNK_COLORS = {
        'primary': '#00ff9f',      # 霓虹绿
        'secondary': '#ff00ff',    # 霓虹粉
        'accent': '#00ffff',       # 青色
        'warning': '#ffff00',      # 黄色
        'danger': '#ff0040',       # 红色
        'background': '#0a0a0f',   # 深色背景
        'surface': '#1a1a2e',      # 表面色
        'text': '#e0e0e0',         # 文字色
        'grid': '#2a2a3e'          # 网格色
    }

    # 浅色医疗配色
    MEDICAL_COLORS = {
        'primary': '#1E88E5',
        'secondary': '#8E24AA',
        'accent': '#00897B',
        'warning': '#F9A825',
        'danger': '#E53935',
        'background': '#ffffff',
        'surface': '#fafafa',
        'text': '#111111',
        'grid': '#e0e0e0'
    }

    THEMES = {
        'cyberpunk': CYBERPUNK_COLORS,
        'medical': MEDICAL_COLORS
    }

    def __init__(self, theme: str = 'cyberpunk'):
        """
        初始化可视化器

        Args:
            theme: 主题 ('cyberpunk', 'medical')
        """
        if theme not in self.THEMES:
            raise ValueError(f"不支持的主题: {theme}. 可选: {list(self.THEMES)}")

        self.theme = theme
        self.colors = self.THEMES[theme]

    def _apply_layout(self, fig: go.Figure, title: str, height: int):
        fig.update_layout(
            title=dict(text=title, font=dict(color=self.colors['text'])),
            template='plotly_dark' if self.theme == 'cyberpunk' else 'plotly_white',
            paper_bgcolor=self.colors['background'],
            plot_bgcolor=self.colors['surface'],
            font=dict(color=self.colors['text']),
            hovermode='x unified',
            height=height
        )
        fig.update_xaxes(gridcolor=self.colors['grid'], showgrid=True)
        fig.update_yaxes(gridcolor=self.colors['grid'], showgrid=True)

    def plot_ecg_signal(
        self,
        signal: np.ndarray,
        sampling_rate: float = 250.0,
        title: str = "ECG Signal",
        r_peaks: Optional[np.ndarray] = None
    ) -> go.Figure:
        """
        绘制ECG信号

        Args:
            signal: ECG信号
            sampling_rate: 采样率
            title: 标题
            r_peaks: R峰位置

        Returns:
            Plotly Figure
        """
        signal = np.asarray(signal)
        time = np.arange(len(signal)) / sampling_rate

        fig = go.Figure()

        fig.add_trace(go.Scatter(
            x=time,
            y=signal,
            mode='lines',
            name='ECG',
            line=dict(color=self.colors['primary'], width=1.5),
            hovertemplate='Time: %{x:.3f}s<br>Amplitude: %{y:.2f}<extra></extra>'
        ))

        if r_peaks is not None and len(r_peaks) > 0:
            r_peaks = np.asarray(r_peaks, dtype=int)
            fig.add_trace(go.Scatter(
                x=r_peaks / sampling_rate,
                y=signal[r_peaks],
                mode='markers',
                name='R-peaks',
                marker=dict(color=self.colors['danger'], size=8, symbol='triangle-up')
            ))

        self._apply_layout(fig, title, height=400)
        fig.update_layout(xaxis_title='Time (s)', yaxis_title='Amplitude')

        return fig

    def plot_detection(
        self,
        result: DetectionResult,
        raw_signal: Optional[np.ndarray] = None,
        title: str = "QRS Detection"
    ) -> go.Figure:
        """
        绘制检测结果

        上图为原始信号 (可选), 下图为积分信号、最终阈值与R峰

        Args:
            result: 检测结果
            raw_signal: 原始ECG信号
            title: 标题

        Returns:
            Plotly Figure
        """
        fs = result.sampling_rate

        if result.is_empty:
            fig = go.Figure()
            fig.add_annotation(
                text="No data",
                xref='paper', yref='paper', x=0.5, y=0.5,
                showarrow=False,
                font=dict(size=20, color=self.colors['text'])
            )
            self._apply_layout(fig, title, height=300)
            return fig

        has_raw = raw_signal is not None and len(raw_signal) > 0
        rows = 2 if has_raw else 1
        fig = make_subplots(
            rows=rows, cols=1,
            shared_xaxes=True,
            vertical_spacing=0.08,
            subplot_titles=(['Raw ECG'] if has_raw else []) + ['Integrated Signal']
        )

        peak_times = result.peak_times

        if has_raw:
            raw_signal = np.asarray(raw_signal)
            fig.add_trace(go.Scatter(
                x=np.arange(len(raw_signal)) / fs,
                y=raw_signal,
                mode='lines',
                name='ECG',
                line=dict(color=self.colors['primary'], width=1.2)
            ), row=1, col=1)

        integrated = result.integrated
        fig.add_trace(go.Scatter(
            x=np.arange(len(integrated)) / fs,
            y=integrated,
            mode='lines',
            name='MWI',
            line=dict(color=self.colors['accent'], width=1.2)
        ), row=rows, col=1)

        if result.n_peaks > 0:
            fig.add_trace(go.Scatter(
                x=peak_times,
                y=integrated[result.peaks],
                mode='markers',
                name='R-peaks',
                marker=dict(color=self.colors['danger'], size=8, symbol='triangle-up')
            ), row=rows, col=1)

        fig.add_hline(
            y=result.threshold,
            line=dict(color=self.colors['warning'], dash='dash', width=1),
            row=rows, col=1
        )

        self._apply_layout(fig, f"{title} - {result.heart_rate} BPM", height=300 * rows)
        fig.update_xaxes(title_text='Time (s)', row=rows, col=1)

        return fig

    def plot_stages(
        self,
        stages: Dict[str, np.ndarray],
        sampling_rate: float,
        title: str = "Pan-Tompkins Stages"
    ) -> go.Figure:
        """
        绘制各级中间结果

        Args:
            stages: QRSPipeline.process(..., return_stages=True) 返回的字典
            sampling_rate: 采样率
            title: 标题

        Returns:
            Plotly Figure
        """
        names = list(stages)
        if not names:
            raise ValueError("没有可绘制的中间结果")

        fig = make_subplots(
            rows=len(names), cols=1,
            shared_xaxes=True,
            vertical_spacing=0.04,
            subplot_titles=[name.capitalize() for name in names]
        )

        palette = [self.colors['primary'], self.colors['secondary'],
                   self.colors['accent'], self.colors['warning']]

        for i, name in enumerate(names, start=1):
            data = np.asarray(stages[name])
            fig.add_trace(go.Scatter(
                x=np.arange(len(data)) / sampling_rate,
                y=data,
                mode='lines',
                name=name,
                line=dict(color=palette[(i - 1) % len(palette)], width=1)
            ), row=i, col=1)

        self._apply_layout(fig, title, height=220 * len(names))
        fig.update_layout(showlegend=False)

        return fig

    def save_html(self, fig: go.Figure, filepath: str) -> str:
        """
        保存为独立HTML文件

        Returns:
            保存路径
        """
        directory = os.path.dirname(os.path.abspath(filepath))
        os.makedirs(directory, exist_ok=True)
        fig.write_html(filepath)
        logger.info(f"图表已保存: {filepath}")
        return filepath
