"""
作业输入 / Shuffle / 输出规格数据模型
"""

from dataclasses import dataclass
from enum import Enum


class DataLocality(Enum):
    """Map 任务与输入数据的本地性"""
    DATA_LOCAL = 1
    RACK_LOCAL = 2
    NON_LOCAL = 3


@dataclass
class MapInputSpecs:
    """一组大小相同的输入分片"""
    input_index: int
    num_splits: int
    size: int
    is_compressed: bool = False
    locality: DataLocality = DataLocality.DATA_LOCAL

    def to_dict(self):
        """转换为字典，确保类型正确"""
        return {
            'input_index': int(self.input_index),
            'num_splits': int(self.num_splits),
            'size': int(self.size),
            'is_compressed': bool(self.is_compressed),
            'locality': self.locality.name,
        }


@dataclass
class ReduceShuffleSpecs:
    """一组 Reduce 任务收到的 Shuffle 数据"""
    num_mappers: int
    num_reducers: int
    size: int
    records: int

    def to_dict(self):
        """转换为字典，确保类型正确"""
        return {
            'num_mappers': int(self.num_mappers),
            'num_reducers': int(self.num_reducers),
            'size': int(self.size),
            'records': int(self.records),
        }


@dataclass
class JobOutputSpecs:
    """一组输出任务写出的数据"""
    num_tasks: int
    size: int
    records: int

    def to_dict(self):
        """转换为字典，确保类型正确"""
        return {
            'num_tasks': int(self.num_tasks),
            'size': int(self.size),
            'records': int(self.records),
        }
