"""
数据集模型：由配置推导 Map 输入规格、Reduce Shuffle 规格与作业输出规格
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence, Union

from models.enums import MRCounter, MRStatistics
from models.specs import DataLocality, MapInputSpecs, ReduceShuffleSpecs, JobOutputSpecs
from utils.math_utils import MathUtils
from whatif import constants as c

logger = logging.getLogger(__name__)

# 与分组首个分片大小相差不足该比例的分片归入同一组
SPLIT_GROUP_TOLERANCE = 0.2


class DataSetModel(ABC):
    """
    数据集模型基类

    默认的 Shuffle 规格假设没有数据倾斜，所有 Reduce 收到等量数据。
    """

    @abstractmethod
    def generate_map_input_specs(self, conf) -> List[MapInputSpecs]:
        """
        生成 Map 输入规格
        :param conf: 作业配置
        :return: MapInputSpecs 列表
        """

    def generate_reduce_shuffle_specs(self, conf, map_profiles) -> List[ReduceShuffleSpecs]:
        """
        由（虚拟）Map 剖析汇总 Shuffle 数据量，平均分配给每个 Reduce
        :param conf: 作业配置
        :param map_profiles: Map 剖析列表
        :return: 只含一个元素的 ReduceShuffleSpecs 列表
        """
        shuffle_size = 0.0
        shuffle_recs = 0.0
        num_mappers = 0
        num_reducers = conf.get_int(c.MAPRED_REDUCE_TASKS, c.DEFAULT_REDUCE_TASKS)

        for map_prof in map_profiles:
            shuffle_size += map_prof.num_tasks * (
                map_prof.get_counter(MRCounter.FILE_BYTES_WRITTEN, 0)
                - map_prof.get_counter(MRCounter.FILE_BYTES_READ, 0))
            shuffle_recs += map_prof.num_tasks * (
                map_prof.get_counter(MRCounter.COMBINE_OUTPUT_RECORDS, 0)
                + map_prof.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 0)
                - map_prof.get_counter(MRCounter.COMBINE_INPUT_RECORDS, 0))
            num_mappers += map_prof.num_tasks

        divisor = max(num_reducers, 1)
        specs = ReduceShuffleSpecs(num_mappers, num_reducers,
                                   MathUtils.round_half_up(shuffle_size / divisor),
                                   MathUtils.round_half_up(shuffle_recs / divisor))
        logger.debug("Shuffle 规格: %s", specs)
        return [specs]

    def generate_job_output_specs(self, conf, job_profile) -> List[JobOutputSpecs]:
        """
        作业输出规格：Map-only 作业取 Map 输出，否则取 Reduce 输出
        :param conf: 作业配置
        :param job_profile: 作业剖析
        :return: JobOutputSpecs 列表
        """
        if not job_profile.reduce_profiles:
            return [JobOutputSpecs(prof.num_tasks,
                                   prof.get_counter(MRCounter.MAP_OUTPUT_BYTES, 0),
                                   prof.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 0))
                    for prof in job_profile.map_profiles]

        return [JobOutputSpecs(prof.num_tasks,
                               prof.get_counter(MRCounter.REDUCE_OUTPUT_BYTES, 0),
                               prof.get_counter(MRCounter.REDUCE_OUTPUT_RECORDS, 0))
                for prof in job_profile.reduce_profiles]


class FixedInputSpecsDataSetModel(DataSetModel):
    """总是返回固定输入规格的数据集模型"""

    def __init__(self, specs: List[MapInputSpecs]):
        self.specs = list(specs)

    def generate_map_input_specs(self, conf) -> List[MapInputSpecs]:
        return list(self.specs)

    @classmethod
    def from_job_profile(cls, job_profile):
        """
        用源作业实际处理的数据构造输入规格，每个输入路径一组

        分片数按该输入的已剖析任务数占比分摊 MAP_TASKS，分片大小取平均 HDFS 读取字节数，
        平均剖析带有输入压缩比时视为压缩输入。
        :param job_profile: 已聚合的源作业剖析
        :return: FixedInputSpecsDataSetModel
        """
        avg_profiles = [prof for prof in job_profile.avg_map_profiles if not prof.is_empty()]
        profiled = sum(prof.num_tasks for prof in avg_profiles)
        num_mappers = job_profile.get_counter(MRCounter.MAP_TASKS, profiled)

        specs = []
        for avg_profile in avg_profiles:
            num_splits = MathUtils.round_half_up(
                num_mappers * MathUtils.safe_divide(avg_profile.num_tasks, profiled))
            specs.append(MapInputSpecs(
                avg_profile.input_index,
                max(num_splits, 1),
                avg_profile.get_counter(MRCounter.HDFS_BYTES_READ, 0),
                avg_profile.contains_statistic(MRStatistics.INPUT_COMPRESS_RATIO),
                DataLocality.DATA_LOCAL))
        logger.debug("由 %s 推导出 %d 组输入规格", job_profile.job_id, len(specs))
        return cls(specs)


class SplitSizesDataSetModel(DataSetModel):
    """
    按真实分片大小生成输入规格

    每个输入路径的分片按大小降序排列，与组内首个分片相差不足 20% 的连续分片归为一组，
    每组生成一个 MapInputSpecs，大小取组内平均值。
    """

    def __init__(self, splits_per_input: Sequence[Sequence[int]],
                 compressed: Union[bool, Sequence[bool]] = False):
        """
        :param splits_per_input: 每个输入路径的分片大小列表
        :param compressed: 输入是否压缩，可按输入路径分别指定
        """
        self.splits_per_input = [list(splits) for splits in splits_per_input]
        if isinstance(compressed, bool):
            self.compressed = [compressed] * len(self.splits_per_input)
        else:
            self.compressed = list(compressed)
        if len(self.compressed) != len(self.splits_per_input):
            raise ValueError(f"压缩标记数量 {len(self.compressed)} 与输入路径数量 "
                             f"{len(self.splits_per_input)} 不一致")

    def generate_map_input_specs(self, conf) -> List[MapInputSpecs]:
        if not self.splits_per_input:
            raise ValueError("没有指定任何输入路径")

        specs = []
        for input_index, splits in enumerate(self.splits_per_input):
            if splits:
                specs.extend(self._group_splits(input_index, splits, self.compressed[input_index]))
        return specs

    @staticmethod
    def _group_splits(input_index, splits, compressed):
        ordered = sorted(splits, reverse=True)
        groups = []

        count = 1
        group_sum = float(ordered[0])
        group_init_length = float(ordered[0])
        for length in ordered[1:]:
            within = group_init_length > 0 \
                and (group_init_length - length) / group_init_length < SPLIT_GROUP_TOLERANCE
            if within or group_init_length == length:
                count += 1
                group_sum += length
            else:
                groups.append(MapInputSpecs(input_index, count, MathUtils.trunc(group_sum / count),
                                            compressed, DataLocality.DATA_LOCAL))
                count = 1
                group_sum = float(length)
                group_init_length = float(length)

        groups.append(MapInputSpecs(input_index, count, MathUtils.trunc(group_sum / count),
                                    compressed, DataLocality.DATA_LOCAL))
        return groups
