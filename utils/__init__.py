"""
MapReduce What-If Engine - 工具模块
"""

from .math_utils import MathUtils
from .format_utils import FormatUtils

__all__ = ['MathUtils', 'FormatUtils']
