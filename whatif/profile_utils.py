"""
剖析工具类
"""

import logging
import re

from models.enums import MRCounter, MRStatistics, MRCostFactors
from models.errors import ConfigurationInconsistency
from utils.math_utils import MathUtils
from whatif import constants as c

logger = logging.getLogger(__name__)

JVM_MEM_PATTERN = re.compile(r'-Xmx([0-9]+)([M|m|G|g])')


class ProfileUtils:
    """任务内存参数与剖析修正工具"""

    # ---- 任务内存 ----

    @staticmethod
    def is_task_memory_set(conf):
        java_opts = conf.get(c.MAPRED_CHILD_JAVA_OPTS)
        if java_opts is None:
            return False
        return JVM_MEM_PATTERN.search(java_opts) is not None

    @staticmethod
    def get_task_memory(conf):
        """
        从 mapred.child.java.opts 的 -Xmx 解析任务内存
        :param conf: 作业配置
        :return: 内存字节数，未设置时为 200MB
        """
        java_opts = conf.get(c.MAPRED_CHILD_JAVA_OPTS)
        if java_opts is None:
            return c.DEFAULT_TASK_MEM

        match = JVM_MEM_PATTERN.search(java_opts)
        if not match:
            return c.DEFAULT_TASK_MEM

        amount = int(match.group(1))
        unit = match.group(2)
        if unit in ('m', 'M'):
            return amount << 20
        if unit in ('g', 'G'):
            return amount << 30
        return amount

    @staticmethod
    def set_task_memory(conf, memory):
        """将任务内存（字节）以 -Xmx<N>M 写入 mapred.child.java.opts"""
        task_mem = f"-Xmx{int(memory) >> 20}M"
        java_opts = conf.get(c.MAPRED_CHILD_JAVA_OPTS, '')
        if JVM_MEM_PATTERN.search(java_opts):
            java_opts = JVM_MEM_PATTERN.sub(task_mem, java_opts)
        else:
            java_opts = f"{java_opts} {task_mem}".strip()
        conf.set(c.MAPRED_CHILD_JAVA_OPTS, java_opts)

    @staticmethod
    def get_input_dirs(conf):
        """mapred.input.dir 中逗号分隔的输入路径"""
        input_dirs = conf.get(c.MAPRED_INPUT_DIR)
        if not input_dirs:
            return []
        return [path.strip() for path in input_dirs.split(',') if path.strip()]

    @staticmethod
    def get_map_memory_required(map_profile):
        """Map 任务所需内存（字节）"""
        return ProfileUtils._get_memory_required(
            map_profile, MRStatistics.MAP_MEM_PER_RECORD, MRCounter.MAP_INPUT_RECORDS)

    @staticmethod
    def get_reduce_memory_required(reduce_profile):
        """Reduce 任务所需内存（字节）"""
        return ProfileUtils._get_memory_required(
            reduce_profile, MRStatistics.REDUCE_MEM_PER_RECORD, MRCounter.REDUCE_INPUT_RECORDS)

    @staticmethod
    def _get_memory_required(profile, mem_per_record_stat, input_records_counter):
        if profile is None:
            return 0
        memory = profile.get_statistic(MRStatistics.STARTUP_MEM, 0.0) \
            + profile.get_statistic(MRStatistics.SETUP_MEM, 0.0) \
            + profile.get_statistic(MRStatistics.CLEANUP_MEM, 0.0) \
            + profile.get_statistic(mem_per_record_stat, 0.0) \
            * profile.get_counter(input_records_counter, 0)
        return MathUtils.round_half_up(memory)

    # ---- 压缩代价修正 ----

    @staticmethod
    def adjust_profiles_for_compression(prof_no_compr, prof_with_compr):
        """
        合并同一作业在关闭压缩与开启压缩两次运行得到的剖析

        开启压缩时 IO 代价中混入了压缩/解压的 CPU 时间，两者相减得到独立的压缩代价，
        IO 代价恢复为未压缩时的值。
        :param prof_no_compr: 关闭压缩运行的作业剖析
        :param prof_with_compr: 开启压缩运行的作业剖析
        :return: 以 prof_no_compr 为基础修正后的新作业剖析
        """
        map_no = prof_no_compr.map_profiles
        map_with = prof_with_compr.map_profiles
        if len(map_no) != len(map_with):
            raise ConfigurationInconsistency(
                f"Map 剖析数量不一致: {len(map_no)} != {len(map_with)}")

        red_no = prof_no_compr.reduce_profiles
        red_with = prof_with_compr.reduce_profiles
        if len(red_no) != len(red_with):
            raise ConfigurationInconsistency(
                f"Reduce 剖析数量不一致: {len(red_no)} != {len(red_with)}")

        prof_result = prof_no_compr.copy()
        for no_compr, with_compr, result in zip(map_no, map_with, prof_result.map_profiles):
            ProfileUtils._adjust_map_profile(no_compr, with_compr, result)
        for no_compr, with_compr, result in zip(red_no, red_with, prof_result.reduce_profiles):
            ProfileUtils._adjust_reduce_profile(no_compr, with_compr, result)

        prof_result.update_profile()
        logger.debug("作业 %s 的压缩代价已修正", prof_result.job_id)
        return prof_result

    @staticmethod
    def _average_costs(no_compr, with_compr, result):
        for cost in MRCostFactors:
            if no_compr.contains_cost_factor(cost) and with_compr.contains_cost_factor(cost):
                result.add_cost_factor(cost, (no_compr.get_cost_factor(cost, 0.0)
                                              + with_compr.get_cost_factor(cost, 0.0)) / 2)

    @staticmethod
    def _adjust_map_profile(no_compr, with_compr, result):
        ProfileUtils._average_costs(no_compr, with_compr, result)

        if with_compr.contains_statistic(MRStatistics.INPUT_COMPRESS_RATIO):
            ProfileUtils._adjust_input_compression(no_compr, with_compr, result)

        if with_compr.contains_statistic(MRStatistics.INTERM_COMPRESS_RATIO):
            avg_rec_size = MathUtils.safe_divide(
                with_compr.get_counter(MRCounter.MAP_OUTPUT_BYTES, 0),
                with_compr.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 0))
            ProfileUtils._adjust_interm_compression(
                no_compr, with_compr, result, avg_rec_size,
                with_compr.get_counter(MRCounter.SPILLED_RECORDS, 0))

        # 只有 Map-only 作业的 Map 才有输出压缩
        if with_compr.contains_statistic(MRStatistics.OUT_COMPRESS_RATIO):
            ProfileUtils._adjust_output_compression(
                no_compr, with_compr, result,
                with_compr.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 0),
                with_compr.get_counter(MRCounter.MAP_OUTPUT_BYTES, 0))

    @staticmethod
    def _adjust_reduce_profile(no_compr, with_compr, result):
        ProfileUtils._average_costs(no_compr, with_compr, result)

        if with_compr.contains_statistic(MRStatistics.INTERM_COMPRESS_RATIO):
            avg_rec_size = MathUtils.safe_divide(
                with_compr.get_counter(MRCounter.REDUCE_INPUT_BYTES, 0),
                with_compr.get_counter(MRCounter.REDUCE_INPUT_RECORDS, 0))
            ProfileUtils._adjust_interm_compression(
                no_compr, with_compr, result, avg_rec_size,
                with_compr.get_counter(MRCounter.SPILLED_RECORDS, 0))

            # Shuffle 时的解压代价混在网络代价中
            network_no = no_compr.get_cost_factor(MRCostFactors.NETWORK_COST, 0.0)
            uncompr_cost = max(with_compr.get_cost_factor(MRCostFactors.NETWORK_COST, 0.0)
                               - network_no, 0.0)
            uncompr_cost = (uncompr_cost + result.get_cost_factor(
                MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, 0.0)) / 2
            result.add_cost_factor(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, uncompr_cost)
            result.add_cost_factor(MRCostFactors.NETWORK_COST, network_no)

        if with_compr.contains_statistic(MRStatistics.OUT_COMPRESS_RATIO):
            ProfileUtils._adjust_output_compression(
                no_compr, with_compr, result,
                with_compr.get_counter(MRCounter.REDUCE_OUTPUT_RECORDS, 0),
                with_compr.get_counter(MRCounter.REDUCE_OUTPUT_BYTES, 0))

    @staticmethod
    def _adjust_input_compression(no_compr, with_compr, result):
        read_no = no_compr.get_cost_factor(MRCostFactors.READ_HDFS_IO_COST, 0.0)
        read_with = with_compr.get_cost_factor(MRCostFactors.READ_HDFS_IO_COST, 0.0)

        if no_compr.contains_statistic(MRStatistics.INPUT_COMPRESS_RATIO):
            # 两次运行的输入都是压缩的，读代价按一半 IO 一半解压拆分
            half_read_cost = (read_no + read_with) / 4.0
            result.add_cost_factor(MRCostFactors.READ_HDFS_IO_COST, half_read_cost)
            result.add_cost_factor(MRCostFactors.INPUT_UNCOMPRESS_CPU_COST, half_read_cost)
        else:
            result.add_statistic(MRStatistics.INPUT_COMPRESS_RATIO, with_compr.get_statistic(
                MRStatistics.INPUT_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))
            result.add_cost_factor(MRCostFactors.INPUT_UNCOMPRESS_CPU_COST, max(read_with - read_no, 0.0))
            result.add_cost_factor(MRCostFactors.READ_HDFS_IO_COST, read_no)

    @staticmethod
    def _adjust_interm_compression(no_compr, with_compr, result, avg_rec_size, num_recs):
        result.add_statistic(MRStatistics.INTERM_COMPRESS_RATIO, with_compr.get_statistic(
            MRStatistics.INTERM_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))
        if avg_rec_size == 0 or num_recs == 0:
            return

        if no_compr.contains_cost_factor(MRCostFactors.READ_LOCAL_IO_COST) \
                and with_compr.contains_cost_factor(MRCostFactors.READ_LOCAL_IO_COST):
            read_cost = no_compr.get_cost_factor(MRCostFactors.READ_LOCAL_IO_COST, 0.0)
            uncompr_cost = with_compr.get_cost_factor(MRCostFactors.READ_LOCAL_IO_COST, 0.0) - read_cost
            result.add_cost_factor(MRCostFactors.READ_LOCAL_IO_COST, read_cost)
            result.add_cost_factor(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, max(uncompr_cost, 0.0))

        if no_compr.contains_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST) \
                and with_compr.contains_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST) \
                and with_compr.contains_counter(MRCounter.FILE_BYTES_WRITTEN):
            write_cost = no_compr.get_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0)
            compr_cost = (with_compr.get_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0) - write_cost) \
                * with_compr.get_counter(MRCounter.FILE_BYTES_WRITTEN, 0) / (num_recs * avg_rec_size)
            result.add_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST, write_cost)
            result.add_cost_factor(MRCostFactors.INTERM_COMPRESS_CPU_COST, max(compr_cost, 0.0))

    @staticmethod
    def _adjust_output_compression(no_compr, with_compr, result, num_recs, num_bytes):
        result.add_statistic(MRStatistics.OUT_COMPRESS_RATIO, with_compr.get_statistic(
            MRStatistics.OUT_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))
        if num_recs == 0 or num_bytes == 0:
            return

        write_no = no_compr.get_cost_factor(MRCostFactors.WRITE_HDFS_IO_COST, 0.0)
        write_with = with_compr.get_cost_factor(MRCostFactors.WRITE_HDFS_IO_COST, 0.0)
        avg_rec_size = num_bytes / float(num_recs)
        compr_cost = (write_with - write_no) * with_compr.get_counter(MRCounter.HDFS_BYTES_WRITTEN, 0) \
            / (num_recs * avg_rec_size)
        result.add_cost_factor(MRCostFactors.OUTPUT_COMPRESS_CPU_COST, max(compr_cost, 0.0))
        result.add_cost_factor(MRCostFactors.WRITE_HDFS_IO_COST, write_no)
