"""
ECG QRS Detection - Pan-Tompkins Implementation
===============================================

基于 Pan-Tompkins 算法的心电信号 QRS 波群 (心拍) 检测
采用递归带通滤波、五点微分、平方、移动窗口积分与自适应双估计阈值

Author: ECG-QRS Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "ECG-QRS Team"
