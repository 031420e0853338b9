"""
作业剖析预测
"""

import logging

from models.enums import MRCounter
from models.errors import ConfigurationInconsistency, PreconditionViolation
from models.job_profile import JobProfile
from whatif import constants as c
from whatif.map_oracle import MapProfileOracle
from whatif.profile_utils import ProfileUtils
from whatif.reduce_oracle import ReduceProfileOracle

logger = logging.getLogger(__name__)

VIRTUAL_JOB = 'virtual_'


class JobProfileOracle:
    """
    作业剖析预测器

    每个输入路径的平均 Map 剖析对应一个 MapProfileOracle，平均 Reduce 剖析对应一个
    ReduceProfileOracle。预测器创建后不再修改，可以被多个调用方共享。
    """

    def __init__(self, source_profile: JobProfile):
        self._source_prof = source_profile
        self._map_oracles = [MapProfileOracle(prof) for prof in source_profile.avg_map_profiles]
        self._reduce_oracle = ReduceProfileOracle(source_profile.avg_reduce_profile)
        self.ignore_reducers = False

    @property
    def source_profile(self) -> JobProfile:
        return self._source_prof

    def whatif(self, conf, data_model) -> JobProfile:
        """
        预测虚拟作业剖析
        :param conf: 新配置
        :param data_model: 数据集模型
        :return: 新建的 JobProfile
        """
        avg_map_profiles = self._source_prof.avg_map_profiles
        if not avg_map_profiles or all(prof.is_empty() for prof in avg_map_profiles):
            raise PreconditionViolation(f"源作业 {self._source_prof.job_id} 没有可用的 Map 剖析")

        # 配置中没有输入路径时沿用源作业的输入路径
        job_inputs = ProfileUtils.get_input_dirs(conf) or list(self._source_prof.job_inputs)
        virtual_prof = JobProfile(VIRTUAL_JOB + self._source_prof.job_id,
                                  self._source_prof.cluster_name, job_inputs)

        num_mappers = 0
        for input_specs in data_model.generate_map_input_specs(conf):
            if not 0 <= input_specs.input_index < len(self._map_oracles):
                raise ConfigurationInconsistency(
                    f"输入路径索引 {input_specs.input_index} 没有对应的 Map 剖析"
                    f"（共 {len(self._map_oracles)} 个）")
            if len(job_inputs) > 1 and input_specs.input_index >= len(job_inputs):
                raise ConfigurationInconsistency(
                    f"输入路径索引 {input_specs.input_index} 超出输入路径数量 {len(job_inputs)}")
            map_prof = self._map_oracles[input_specs.input_index].whatif(conf, input_specs)
            num_mappers += input_specs.num_splits
            virtual_prof.add_map_profile(map_prof)

        num_reducers = conf.get_int(c.MAPRED_REDUCE_TASKS, c.DEFAULT_REDUCE_TASKS)
        if num_reducers > 0 and not self.ignore_reducers:
            shuffle_specs = data_model.generate_reduce_shuffle_specs(conf, virtual_prof.map_profiles)
            for specs in shuffle_specs:
                virtual_prof.add_reduce_profile(self._reduce_oracle.whatif(conf, specs))

        virtual_prof.update_profile()
        virtual_prof.add_counter(MRCounter.MAP_TASKS, num_mappers)
        virtual_prof.add_counter(MRCounter.REDUCE_TASKS, num_reducers)

        logger.info("作业 %s 预测完成: %d 个 Map, %d 个 Reduce, Map 剖析 %d 组, Reduce 剖析 %d 组",
                    virtual_prof.job_id, num_mappers, num_reducers,
                    len(virtual_prof.map_profiles), len(virtual_prof.reduce_profiles))
        return virtual_prof
