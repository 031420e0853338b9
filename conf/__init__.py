"""
MapReduce What-If Engine - 作业配置
"""

from .config_loader import Configuration, ConfigLoader

__all__ = ['Configuration', 'ConfigLoader']
