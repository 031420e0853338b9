"""
执行剖析基础模型

计数器、统计量、代价因子三张稀疏映射。键不存在表示"未知"，与存储的 0 含义不同，
因此所有读取都必须显式给出默认值；需要强制存在的指标使用 require_* 读取。
"""

from typing import Dict, Optional

from models.enums import MRCounter, MRStatistics, MRCostFactors
from models.errors import PreconditionViolation


class ExecutionProfile:
    """执行剖析：计数器 / 统计量 / 代价因子"""

    def __init__(self):
        self._counters: Dict[MRCounter, int] = {}
        self._stats: Dict[MRStatistics, float] = {}
        self._costs: Dict[MRCostFactors, float] = {}

    # ---- 只读视图 ----

    @property
    def counters(self):
        return dict(self._counters)

    @property
    def statistics(self):
        return dict(self._stats)

    @property
    def cost_factors(self):
        return dict(self._costs)

    # ---- 写入 ----

    def add_counter(self, counter: MRCounter, value):
        self._counters[counter] = int(value)

    def add_statistic(self, stat: MRStatistics, value):
        self._stats[stat] = float(value)

    def add_cost_factor(self, cost: MRCostFactors, value):
        self._costs[cost] = float(value)

    def add_counters(self, counters):
        for counter, value in counters.items():
            self.add_counter(counter, value)

    def add_statistics(self, stats):
        for stat, value in stats.items():
            self.add_statistic(stat, value)

    def add_cost_factors(self, costs):
        for cost, value in costs.items():
            self.add_cost_factor(cost, value)

    # ---- 读取 ----

    def contains_counter(self, counter: MRCounter) -> bool:
        return counter in self._counters

    def contains_statistic(self, stat: MRStatistics) -> bool:
        return stat in self._stats

    def contains_cost_factor(self, cost: MRCostFactors) -> bool:
        return cost in self._costs

    def get_counter(self, counter: MRCounter, default: Optional[int]):
        return self._counters.get(counter, default)

    def get_statistic(self, stat: MRStatistics, default: Optional[float]):
        return self._stats.get(stat, default)

    def get_cost_factor(self, cost: MRCostFactors, default: Optional[float]):
        return self._costs.get(cost, default)

    def require_counter(self, counter: MRCounter) -> int:
        """读取必须存在的计数器，缺失时抛出 PreconditionViolation"""
        if counter not in self._counters:
            raise PreconditionViolation(f"{self._describe()} 缺少计数器 {counter.name}")
        return self._counters[counter]

    def require_statistic(self, stat: MRStatistics) -> float:
        """读取必须存在的统计量"""
        if stat not in self._stats:
            raise PreconditionViolation(f"{self._describe()} 缺少统计量 {stat.name}")
        return self._stats[stat]

    def require_cost_factor(self, cost: MRCostFactors) -> float:
        """读取必须存在的代价因子"""
        if cost not in self._costs:
            raise PreconditionViolation(f"{self._describe()} 缺少代价因子 {cost.name}")
        return self._costs[cost]

    # ---- 状态 ----

    def is_empty(self) -> bool:
        return not self._counters and not self._stats and not self._costs

    def clear_profile(self):
        self._counters.clear()
        self._stats.clear()
        self._costs.clear()

    def copy(self):
        """值语义克隆，新对象不与原对象共享任何映射"""
        other = self.__class__.__new__(self.__class__)
        other._copy_from(self)
        return other

    def _copy_from(self, other):
        self._counters = dict(other._counters)
        self._stats = dict(other._stats)
        self._costs = dict(other._costs)

    def to_dict(self):
        """转换为以枚举名称为键的字典"""
        return {
            'counters': {k.name: v for k, v in self._sorted(self._counters)},
            'statistics': {k.name: v for k, v in self._sorted(self._stats)},
            'cost_factors': {k.name: v for k, v in self._sorted(self._costs)},
        }

    def _load_dict(self, data):
        for name, value in (data.get('counters') or {}).items():
            self.add_counter(MRCounter.from_name(name), value)
        for name, value in (data.get('statistics') or {}).items():
            self.add_statistic(MRStatistics.from_name(name), value)
        for name, value in (data.get('cost_factors') or {}).items():
            self.add_cost_factor(MRCostFactors.from_name(name), value)

    @staticmethod
    def _sorted(mapping):
        return sorted(mapping.items(), key=lambda item: item[0].value)

    def _describe(self):
        return self.__class__.__name__

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, ExecutionProfile):
            return NotImplemented
        return (self._counters == other._counters
                and self._stats == other._stats
                and self._costs == other._costs)

    __hash__ = None

    def __repr__(self):
        return (f"{self.__class__.__name__}(counters={len(self._counters)}, "
                f"stats={len(self._stats)}, costs={len(self._costs)})")
