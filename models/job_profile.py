"""
作业级别剖析模型
"""

import sys
from typing import List, Optional

from models.enums import MRCounter, MRStatistics, MRCostFactors, MRTaskPhase
from models.exec_profile import ExecutionProfile
from models.task_profile import MapProfile, ReduceProfile
from utils.math_utils import MathUtils

AVG_MAP = "average_map_"
AVG_REDUCE = "average_reduce_"

# 平均 Map 剖析缺失时从作业级聚合中补齐的代价因子
MISSING_MAP_COSTS = (
    MRCostFactors.READ_LOCAL_IO_COST,
    MRCostFactors.WRITE_LOCAL_IO_COST,
    MRCostFactors.MERGE_CPU_COST,
    MRCostFactors.INTERM_UNCOMPRESS_CPU_COST,
)

MISSING_REDUCE_COSTS = (
    MRCostFactors.READ_LOCAL_IO_COST,
    MRCostFactors.WRITE_LOCAL_IO_COST,
    MRCostFactors.COMBINE_CPU_COST,
    MRCostFactors.MERGE_CPU_COST,
    MRCostFactors.INTERM_UNCOMPRESS_CPU_COST,
    MRCostFactors.INTERM_COMPRESS_CPU_COST,
)

MISSING_REDUCE_STATS = (
    MRStatistics.COMBINE_SIZE_SEL,
    MRStatistics.COMBINE_PAIRS_SEL,
)


class JobProfile(ExecutionProfile):
    """
    作业剖析

    包含全部 Map/Reduce 任务剖析，以及按输入路径划分的平均 Map 剖析和平均 Reduce 剖析。
    作业级别的计数器/统计量/代价因子是所有任务剖析按任务数加权的平均值。
    """

    def __init__(self, job_id, cluster_name=None, job_inputs=None):
        super().__init__()
        self.job_id = job_id
        self.cluster_name: Optional[str] = cluster_name
        self.job_inputs: List[str] = list(job_inputs) if job_inputs else []
        self._map_profiles: List[MapProfile] = []
        self._reduce_profiles: List[ReduceProfile] = []
        self._avg_map_profiles: Optional[List[MapProfile]] = None
        self._avg_reduce_profile: Optional[ReduceProfile] = None

    @property
    def map_profiles(self) -> List[MapProfile]:
        return self._map_profiles

    @property
    def reduce_profiles(self) -> List[ReduceProfile]:
        return self._reduce_profiles

    @property
    def avg_map_profiles(self) -> List[MapProfile]:
        self._init_avg_map_profiles()
        return self._avg_map_profiles

    @property
    def avg_reduce_profile(self) -> ReduceProfile:
        if self._avg_reduce_profile is None:
            self._avg_reduce_profile = ReduceProfile(AVG_REDUCE + self.job_id)
        return self._avg_reduce_profile

    def add_map_profile(self, map_profile: MapProfile):
        self._map_profiles.append(map_profile)

    def add_reduce_profile(self, reduce_profile: ReduceProfile):
        self._reduce_profiles.append(reduce_profile)

    def update_profile(self):
        """
        重新计算作业级聚合与平均任务剖析

        MAP_TASKS / REDUCE_TASKS 是任务数量元数据而非平均值，清空重算后需要还原。
        """
        num_mappers = self.get_counter(MRCounter.MAP_TASKS, 0)
        num_reducers = self.get_counter(MRCounter.REDUCE_TASKS, 0)

        # 单个 Map 最多可能产生的分组数等于全部 Reduce 输入分组之和
        max_unique_groups = sum(
            prof.num_tasks * prof.get_counter(MRCounter.REDUCE_INPUT_GROUPS, 1)
            for prof in self._reduce_profiles
        )
        for map_profile in self._map_profiles:
            map_profile.add_counter(MRCounter.MAP_MAX_UNIQUE_GROUPS, max_unique_groups)

        all_profiles = self._map_profiles + self._reduce_profiles
        self._update_exec_profile(self, all_profiles)

        if self._map_profiles:
            partitions = self._separate_map_profiles_by_input()
            for avg_profile, partition in zip(self.avg_map_profiles, partitions):
                self._update_task_profile(avg_profile, partition)
                if partition:
                    avg_profile.input_index = partition[0].input_index
                for cost in MISSING_MAP_COSTS:
                    if self.contains_cost_factor(cost) and not avg_profile.contains_cost_factor(cost):
                        avg_profile.add_cost_factor(cost, self.get_cost_factor(cost, 0.0))

        if self._reduce_profiles:
            avg_profile = self.avg_reduce_profile
            self._update_task_profile(avg_profile, self._reduce_profiles)
            for stat in MISSING_REDUCE_STATS:
                if self.contains_statistic(stat) and not avg_profile.contains_statistic(stat):
                    avg_profile.add_statistic(stat, self.get_statistic(stat, 0.0))
            for cost in MISSING_REDUCE_COSTS:
                if self.contains_cost_factor(cost) and not avg_profile.contains_cost_factor(cost):
                    avg_profile.add_cost_factor(cost, self.get_cost_factor(cost, 0.0))

        self.add_counter(MRCounter.MAP_TASKS, num_mappers)
        self.add_counter(MRCounter.REDUCE_TASKS, num_reducers)

    def print_profile(self, out=None, print_task_profiles=False):
        """打印作业剖析"""
        out = out or sys.stdout
        out.write(f"JOB PROFILE:\n\tID:\t{self.job_id}\n")
        if self.cluster_name is not None:
            out.write(f"\tCluster Name:\t{self.cluster_name}\n")
        for i, job_input in enumerate(self.job_inputs):
            out.write(f"\tInput Path {i}:\t{job_input}\n")
        out.write(f"\tTotal Mappers:\t{self.get_counter(MRCounter.MAP_TASKS, 0)}\n")
        out.write(f"\tProfiled Mappers:\t{len(self._map_profiles)}\n")
        out.write(f"\tTotal Reducers:\t{self.get_counter(MRCounter.REDUCE_TASKS, 0)}\n")
        out.write(f"\tProfiled Reducers:\t{len(self._reduce_profiles)}\n\n")

        if self._avg_map_profiles is not None:
            for avg_profile in self._avg_map_profiles:
                avg_profile.print_profile(out)
        if self._avg_reduce_profile is not None:
            self._avg_reduce_profile.print_profile(out)

        if print_task_profiles:
            for profile in self._map_profiles + self._reduce_profiles:
                profile.print_profile(out)
            out.write("\n")

    def _copy_from(self, other):
        super()._copy_from(other)
        self.job_id = other.job_id
        self.cluster_name = other.cluster_name
        self.job_inputs = list(other.job_inputs)
        self._map_profiles = [prof.copy() for prof in other._map_profiles]
        self._reduce_profiles = [prof.copy() for prof in other._reduce_profiles]
        self._avg_map_profiles = (None if other._avg_map_profiles is None
                                  else [prof.copy() for prof in other._avg_map_profiles])
        self._avg_reduce_profile = (None if other._avg_reduce_profile is None
                                    else other._avg_reduce_profile.copy())

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'job_id': self.job_id,
            'cluster_name': self.cluster_name,
            'job_inputs': list(self.job_inputs),
            'map_profiles': [prof.to_dict() for prof in self._map_profiles],
            'reduce_profiles': [prof.to_dict() for prof in self._reduce_profiles],
        })
        return data

    @classmethod
    def from_dict(cls, data):
        """从 to_dict 的输出重建作业剖析，并重新计算平均剖析"""
        profile = cls(data['job_id'], data.get('cluster_name'), data.get('job_inputs'))
        for map_data in data.get('map_profiles') or []:
            profile.add_map_profile(MapProfile.from_dict(map_data))
        for reduce_data in data.get('reduce_profiles') or []:
            profile.add_reduce_profile(ReduceProfile.from_dict(reduce_data))
        profile.update_profile()
        profile._load_dict(data)
        return profile

    # ---- 聚合 ----

    def _num_inputs(self):
        return max(len(self.job_inputs), 1)

    def _init_avg_map_profiles(self):
        num_profiles = self._num_inputs()
        if self._avg_map_profiles is None or len(self._avg_map_profiles) != num_profiles:
            self._avg_map_profiles = [
                MapProfile(f"{AVG_MAP}{i}_{self.job_id}") for i in range(num_profiles)
            ]

    def _separate_map_profiles_by_input(self):
        num_profiles = self._num_inputs()
        if num_profiles == 1:
            return [list(self._map_profiles)]
        partitions = [[] for _ in range(num_profiles)]
        for map_profile in self._map_profiles:
            partitions[map_profile.input_index].append(map_profile)
        return partitions

    @staticmethod
    def _weighted_average(keys, profiles, contains, getter):
        """
        按任务数加权平均
        :param keys: 需要遍历的枚举成员
        :param profiles: 任务剖析列表
        :param contains: 判断剖析是否包含某个键
        :param getter: 读取剖析中某个键的值
        :return: {键: 平均值}，只包含至少一个剖析定义过的键
        """
        averages = {}
        for key in keys:
            sum_values = 0.0
            num_values = 0
            for profile in profiles:
                if contains(profile, key):
                    sum_values += profile.num_tasks * getter(profile, key)
                    num_values += profile.num_tasks
            if num_values != 0:
                averages[key] = sum_values / num_values
        return averages

    @classmethod
    def _update_exec_profile(cls, profile, task_profiles):
        profile.clear_profile()
        counters = cls._weighted_average(
            MRCounter, task_profiles,
            lambda p, k: p.contains_counter(k), lambda p, k: p.get_counter(k, 0))
        profile.add_counters({k: MathUtils.round_half_up(v) for k, v in counters.items()})
        profile.add_statistics(cls._weighted_average(
            MRStatistics, task_profiles,
            lambda p, k: p.contains_statistic(k), lambda p, k: p.get_statistic(k, 0.0)))
        profile.add_cost_factors(cls._weighted_average(
            MRCostFactors, task_profiles,
            lambda p, k: p.contains_cost_factor(k), lambda p, k: p.get_cost_factor(k, 0.0)))

    @classmethod
    def _update_task_profile(cls, profile, task_profiles):
        cls._update_exec_profile(profile, task_profiles)
        profile.add_timings(cls._weighted_average(
            MRTaskPhase, task_profiles,
            lambda p, k: p.contains_timing(k), lambda p, k: p.get_timing(k, 0.0)))
        profile.num_tasks = max(sum(prof.num_tasks for prof in task_profiles), 1)

    def _describe(self):
        return f"JobProfile[{self.job_id}]"

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, JobProfile):
            return NotImplemented
        return (ExecutionProfile.__eq__(self, other)
                and self.job_id == other.job_id
                and self._map_profiles == other._map_profiles
                and self._reduce_profiles == other._reduce_profiles)

    __hash__ = None

    def __repr__(self):
        return (f"JobProfile(job={self.job_id}, maps={len(self._map_profiles)}, "
                f"reduces={len(self._reduce_profiles)}, counters={len(self._counters)})")
