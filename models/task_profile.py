"""
任务级别剖析模型
"""

import sys
from typing import Dict

from models.enums import MRTaskPhase
from models.exec_profile import ExecutionProfile
from utils.format_utils import FormatUtils


class TaskProfile(ExecutionProfile):
    """
    任务剖析

    num_tasks 为 1 表示一次具体的任务尝试；大于 1 表示该数量任务按任务数加权的平均剖析。
    """

    def __init__(self, task_id, num_tasks=1):
        super().__init__()
        self.task_id = task_id
        self._timings: Dict[MRTaskPhase, float] = {}
        self._num_tasks = 1
        self.num_tasks = num_tasks

    @property
    def num_tasks(self) -> int:
        return self._num_tasks

    @num_tasks.setter
    def num_tasks(self, value):
        if value < 1:
            raise ValueError(f"任务数必须不小于1: {value}")
        self._num_tasks = int(value)

    @property
    def timings(self):
        return dict(self._timings)

    def add_timing(self, phase: MRTaskPhase, value):
        self._timings[phase] = float(value)

    def add_timings(self, timings):
        for phase, value in timings.items():
            self.add_timing(phase, value)

    def contains_timing(self, phase: MRTaskPhase) -> bool:
        return phase in self._timings

    def get_timing(self, phase: MRTaskPhase, default):
        return self._timings.get(phase, default)

    def total_duration(self) -> float:
        """各阶段耗时之和（毫秒）"""
        return sum(self._timings.values())

    def is_empty(self) -> bool:
        return super().is_empty() and not self._timings

    def clear_profile(self):
        super().clear_profile()
        self._timings.clear()

    def _copy_from(self, other):
        super()._copy_from(other)
        self.task_id = other.task_id
        self._timings = dict(other._timings)
        self._num_tasks = other._num_tasks

    def to_dict(self):
        data = super().to_dict()
        data['task_id'] = self.task_id
        data['num_tasks'] = self._num_tasks
        data['timings'] = {k.name: v for k, v in self._sorted(self._timings)}
        return data

    def _load_dict(self, data):
        super()._load_dict(data)
        for name, value in (data.get('timings') or {}).items():
            self.add_timing(MRTaskPhase.from_name(name), value)

    @classmethod
    def from_dict(cls, data):
        """从 to_dict 的输出重建剖析"""
        profile = cls(data.get('task_id', ''), data.get('num_tasks', 1))
        profile._load_dict(data)
        return profile

    def print_profile(self, out=None):
        """打印剖析内容"""
        out = out or sys.stdout
        out.write(f"Tasks:\n\t{self._num_tasks}\n")
        if self._counters:
            out.write("Counters:\n")
            self._write_lines(out, FormatUtils.format_enum_map(self._counters))
        if self._stats:
            out.write("Statistics:\n")
            self._write_lines(out, FormatUtils.format_enum_map(self._stats, 6))
        if self._costs:
            out.write("Cost Factors:\n")
            self._write_lines(out, FormatUtils.format_enum_map(self._costs, 6))
        if self._timings:
            out.write("Timings:\n")
            self._write_lines(out, FormatUtils.format_enum_map(self._timings, 6))
            out.write(f"Total Duration:\n\t{FormatUtils.format_duration(self.total_duration())}\n")
        out.write("\n")

    @staticmethod
    def _write_lines(out, lines):
        for line in lines:
            out.write(line + "\n")

    def _describe(self):
        return f"{self.__class__.__name__}[{self.task_id}]"

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, TaskProfile):
            return NotImplemented
        return (super().__eq__(other)
                and self.task_id == other.task_id
                and self._num_tasks == other._num_tasks
                and self._timings == other._timings)

    __hash__ = None

    def __repr__(self):
        return (f"{self.__class__.__name__}(task={self.task_id}, counters={len(self._counters)}, "
                f"stats={len(self._stats)}, costs={len(self._costs)}, timings={len(self._timings)})")


class MapProfile(TaskProfile):
    """Map 任务剖析"""

    def __init__(self, task_id, num_tasks=1, input_index=0):
        super().__init__(task_id, num_tasks)
        self.input_index = input_index

    def _copy_from(self, other):
        super()._copy_from(other)
        self.input_index = other.input_index

    def to_dict(self):
        data = super().to_dict()
        data['input_index'] = self.input_index
        return data

    def _load_dict(self, data):
        super()._load_dict(data)
        self.input_index = int(data.get('input_index', 0))

    def __eq__(self, other):
        if not isinstance(other, MapProfile):
            return NotImplemented if not isinstance(other, TaskProfile) else False
        return super().__eq__(other) and self.input_index == other.input_index

    __hash__ = None

    def print_profile(self, out=None):
        out = out or sys.stdout
        out.write(f"MAP PROFILE:\n\t{self.task_id}\n")
        out.write(f"Input Path Index:\n\t{self.input_index}\n")
        super().print_profile(out)


class ReduceProfile(TaskProfile):
    """Reduce 任务剖析"""

    def print_profile(self, out=None):
        out = out or sys.stdout
        out.write(f"REDUCE PROFILE:\n\t{self.task_id}\n")
        super().print_profile(out)
