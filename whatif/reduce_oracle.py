"""
Reduce 任务剖析预测
"""

import logging
import math

from models.enums import MRCounter, MRStatistics, MRCostFactors, MRTaskPhase
from models.specs import ReduceShuffleSpecs
from models.task_profile import ReduceProfile
from utils.math_utils import MathUtils
from whatif import constants as c
from whatif.merge_simulator import MergeSimulator
from whatif.profile_utils import ProfileUtils
from whatif.task_oracle import TaskCallContext, TaskProfileOracle

logger = logging.getLogger(__name__)


class ReduceCallContext(TaskCallContext):
    """一次 Reduce 预测调用的配置、Shuffle 规格与各阶段归并量"""

    def __init__(self, conf, shuffle_specs: ReduceShuffleSpecs, virtual_prof: ReduceProfile):
        super().__init__(conf)
        self.shuffle_specs = shuffle_specs
        self.virtual_prof = virtual_prof
        self.use_output_compr = conf.get_boolean(c.MAPRED_OUTPUT_COMPRESS, False)

        # SHUFFLE 阶段
        self.merged_records_in_shuffle = 0.0
        self.bytes_read_in_shuffle_merge = 0
        self.bytes_written_in_shuffle_merge = 0

        # SORT 阶段
        self.merged_records_in_sort = 0.0
        self.bytes_read_in_sort_merge = 0
        self.bytes_written_in_sort_merge = 0

        self.bytes_read_in_reduce = 0


class ReduceProfileOracle(TaskProfileOracle):
    """
    根据一个 Reduce 源剖析预测新配置、新 Shuffle 数据量下的虚拟 Reduce 剖析

    Shuffle 段（一个 Map 输出给本 Reduce 的分区）先进入内存缓冲区，缓冲区达到合并阈值或段数
    上限时合并溢写为 Shuffle 文件；过大的段直接写磁盘。磁盘文件过多时在 Shuffle 阶段合并，
    剩余文件在 SORT 阶段归并到不超过 sort_factor 个，最后一轮归并由 Reduce 阶段流式完成。
    """

    def __init__(self, source_profile: ReduceProfile):
        super().__init__(source_profile)

    def whatif(self, conf, shuffle_specs: ReduceShuffleSpecs) -> ReduceProfile:
        """
        预测虚拟 Reduce 剖析
        :param conf: 新配置
        :param shuffle_specs: 每个 Reduce 收到的 Shuffle 数据
        :return: 新建的 ReduceProfile，num_tasks 等于 Reduce 数
        """
        self._check_source()

        virtual_prof = ReduceProfile(self.get_virtual_task_id(self._source_prof.task_id),
                                     max(shuffle_specs.num_reducers, 1))
        ctx = ReduceCallContext(conf, shuffle_specs, virtual_prof)

        self._calc_statistics(ctx)
        self._calc_counters(ctx)
        self._calc_costs(ctx)
        self._calc_timings(ctx)

        logger.debug("Reduce 预测 %s: Shuffle %d 字节, %d 条记录, 耗时 %.2f ms",
                     virtual_prof.task_id, shuffle_specs.size, shuffle_specs.records,
                     virtual_prof.total_duration())
        return virtual_prof

    # ---- 统计量 ----

    def _calc_statistics(self, ctx: ReduceCallContext):
        self.calc_virtual_task_statistics(ctx.virtual_prof, ctx)
        source = self._source_prof
        virtual = ctx.virtual_prof

        virtual.add_statistic(MRStatistics.REDUCE_PAIRS_PER_GROUP, source.get_statistic(
            MRStatistics.REDUCE_PAIRS_PER_GROUP, c.DEFAULT_SELECTIVITY))
        virtual.add_statistic(MRStatistics.REDUCE_SIZE_SEL, source.get_statistic(
            MRStatistics.REDUCE_SIZE_SEL, c.DEFAULT_SELECTIVITY))
        virtual.add_statistic(MRStatistics.REDUCE_PAIRS_SEL, source.get_statistic(
            MRStatistics.REDUCE_PAIRS_SEL, c.DEFAULT_SELECTIVITY))

        if ctx.use_output_compr:
            virtual.add_statistic(MRStatistics.OUT_COMPRESS_RATIO, source.get_statistic(
                MRStatistics.OUT_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))

        virtual.add_statistic(MRStatistics.REDUCE_MEM_PER_RECORD, source.get_statistic(
            MRStatistics.REDUCE_MEM_PER_RECORD, c.DEFAULT_MEM_PER_RECORD))

    # ---- 计数器 ----

    def _calc_counters(self, ctx: ReduceCallContext):
        ctx.virtual_prof.add_counter(MRCounter.COMBINE_INPUT_RECORDS, 0)
        ctx.virtual_prof.add_counter(MRCounter.COMBINE_OUTPUT_RECORDS, 0)
        self._calc_counters_shuffle_sort_phase(ctx)
        self._calc_counters_reduce_phase(ctx)

    def _calc_counters_shuffle_sort_phase(self, ctx: ReduceCallContext):
        virtual = ctx.virtual_prof
        specs = ctx.shuffle_specs
        conf = ctx.conf
        sort_factor = ctx.sort_factor

        virtual.add_counter(MRCounter.REDUCE_SHUFFLE_BYTES, specs.size)

        # 段：一个 Map 输出给本 Reduce 的分区
        num_mappers = max(specs.num_mappers, 1)
        segment_compr_size = specs.size / float(num_mappers)
        segment_uncompr_size = segment_compr_size
        if ctx.compress_interm:
            segment_uncompr_size /= virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO,
                                                          c.DEFAULT_COMPRESS_RATIO)
        segment_pairs = specs.records / float(num_mappers)
        combine_size_sel = virtual.get_statistic(MRStatistics.COMBINE_SIZE_SEL, c.DEFAULT_SELECTIVITY)
        combine_pairs_sel = virtual.get_statistic(MRStatistics.COMBINE_PAIRS_SEL, c.DEFAULT_SELECTIVITY)

        combine_in_recs = 0.0
        combine_out_recs = 0.0
        num_spilled_recs = 0.0

        task_mem = ProfileUtils.get_task_memory(conf)
        shuffle_buffer_size = conf.get_float(c.SHUFFLE_INPUT_BUFFER_PERCENT,
                                             c.DEFAULT_SHUFFLE_INPUT_BUFFER_PERCENT) * task_mem
        merge_size_thr = conf.get_float(c.SHUFFLE_MERGE_PERCENT,
                                        c.DEFAULT_SHUFFLE_MERGE_PERCENT) * shuffle_buffer_size
        in_mem_merge_thr = conf.get_long(c.MAPRED_INMEM_MERGE_THRESHOLD,
                                         c.DEFAULT_INMEM_MERGE_THRESHOLD)

        if segment_uncompr_size < c.MAX_SINGLE_SHUFFLE_SEG_FRACTION * shuffle_buffer_size:
            # 小段进入内存，缓冲区达到阈值后合并写成 Shuffle 文件
            if segment_uncompr_size == 0:
                num_seg_in_shuffle_file = float(in_mem_merge_thr)
            else:
                num_seg_in_shuffle_file = merge_size_thr / segment_uncompr_size
                if math.ceil(num_seg_in_shuffle_file) * segment_uncompr_size <= shuffle_buffer_size:
                    num_seg_in_shuffle_file = float(math.ceil(num_seg_in_shuffle_file))
                else:
                    num_seg_in_shuffle_file = float(math.floor(num_seg_in_shuffle_file))
            num_seg_in_shuffle_file = max(min(num_seg_in_shuffle_file, in_mem_merge_thr), 1.0)

            shuffle_file_size = num_seg_in_shuffle_file * segment_compr_size
            shuffle_file_pairs = num_seg_in_shuffle_file * segment_pairs
            if ctx.use_combiner:
                shuffle_file_size *= combine_size_sel
                shuffle_file_pairs *= combine_pairs_sel

            num_shuffle_files = math.floor(num_mappers / num_seg_in_shuffle_file)
            num_segments_in_mem = num_mappers % int(num_seg_in_shuffle_file)

            if num_shuffle_files > 0:
                combine_in_recs += num_shuffle_files * num_seg_in_shuffle_file * segment_pairs
                if ctx.use_combiner:
                    combine_out_recs += combine_in_recs * combine_pairs_sel
                else:
                    combine_out_recs += combine_in_recs
                num_spilled_recs += combine_out_recs
                ctx.merged_records_in_shuffle += combine_in_recs
        else:
            # 大段直接写磁盘
            shuffle_file_size = segment_compr_size
            shuffle_file_pairs = segment_pairs
            num_shuffle_files = num_mappers
            num_segments_in_mem = 0

        # 磁盘上的 Shuffle 文件达到 2*sort_factor-1 个时开始合并
        num_shuffle_merges = 0
        if num_shuffle_files >= 2 * sort_factor - 1:
            num_shuffle_merges = 1 + (num_shuffle_files - 2 * sort_factor + 1) // sort_factor

        num_merged_shuf_files = num_shuffle_merges
        merged_shuf_file_size = sort_factor * shuffle_file_size
        merged_shuf_file_pairs = sort_factor * shuffle_file_pairs
        num_unmerged_shuf_files = num_shuffle_files - sort_factor * num_shuffle_merges
        unmerged_shuf_file_size = shuffle_file_size
        unmerged_shuf_file_pairs = shuffle_file_pairs

        ctx.bytes_read_in_shuffle_merge = MathUtils.trunc(num_merged_shuf_files * merged_shuf_file_size)
        ctx.bytes_written_in_shuffle_merge = MathUtils.trunc(
            num_shuffle_files * shuffle_file_size + num_merged_shuf_files * merged_shuf_file_size)
        ctx.merged_records_in_shuffle += num_merged_shuf_files * merged_shuf_file_pairs
        num_spilled_recs += num_merged_shuf_files * merged_shuf_file_pairs

        # SORT 阶段：内存中的段超过 Reduce 输入缓冲区时被逐出
        max_segment_buffer = task_mem * conf.get_float(c.REDUCE_INPUT_BUFFER_PERCENT,
                                                       c.DEFAULT_REDUCE_INPUT_BUFFER_PERCENT)
        curr_segment_buffer = num_segments_in_mem * segment_uncompr_size
        num_segments_evicted = 0
        if curr_segment_buffer > max_segment_buffer:
            num_segments_evicted = min(math.ceil(
                (curr_segment_buffer - max_segment_buffer) / segment_uncompr_size), num_segments_in_mem)
        num_segments_remain_mem = num_segments_in_mem - num_segments_evicted

        # 磁盘文件少于 sort_factor 时，被逐出的段先合并成一个文件
        num_files_merged_from_mem = 0
        files_from_mem_size = 0.0
        files_from_mem_pairs = 0.0
        if num_segments_evicted > 0 \
                and num_merged_shuf_files + num_unmerged_shuf_files < sort_factor:
            num_files_merged_from_mem = 1
            files_from_mem_size = num_segments_evicted * segment_compr_size
            files_from_mem_pairs = num_segments_evicted * segment_pairs
            ctx.bytes_written_in_sort_merge = MathUtils.trunc(
                ctx.bytes_written_in_sort_merge + files_from_mem_size)
            num_spilled_recs += files_from_mem_pairs
            ctx.merged_records_in_sort += files_from_mem_pairs

        if num_merged_shuf_files + num_unmerged_shuf_files + num_files_merged_from_mem > sort_factor:
            merger = MergeSimulator()
            merger.add_segments(num_merged_shuf_files, MathUtils.trunc(merged_shuf_file_size),
                                MathUtils.trunc(merged_shuf_file_pairs))
            merger.add_segments(num_unmerged_shuf_files, MathUtils.trunc(unmerged_shuf_file_size),
                                MathUtils.trunc(unmerged_shuf_file_pairs))
            merger.add_segments(num_files_merged_from_mem, MathUtils.trunc(files_from_mem_size),
                                MathUtils.trunc(files_from_mem_pairs))
            merger.add_mem_segments(num_segments_evicted, MathUtils.trunc(segment_compr_size),
                                    MathUtils.trunc(segment_pairs))
            merger.simulate_merge(sort_factor, skip_final_merge=True)

            ctx.merged_records_in_sort += merger.merged_records
            num_spilled_recs += merger.spilled_records
            ctx.bytes_read_in_sort_merge += merger.bytes_read
            ctx.bytes_written_in_sort_merge += merger.bytes_written

        # Reduce 输入一部分在磁盘，一部分在内存
        red_input_on_disk_size = num_merged_shuf_files * merged_shuf_file_size \
            + num_unmerged_shuf_files * unmerged_shuf_file_size \
            + num_files_merged_from_mem * files_from_mem_size
        red_input_on_disk_pairs = num_merged_shuf_files * merged_shuf_file_pairs \
            + num_unmerged_shuf_files * unmerged_shuf_file_pairs \
            + num_files_merged_from_mem * files_from_mem_pairs

        ctx.bytes_read_in_reduce = MathUtils.trunc(red_input_on_disk_size)

        red_input_size = red_input_on_disk_size + num_segments_remain_mem * segment_compr_size
        if ctx.compress_interm:
            red_input_size /= virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO,
                                                    c.DEFAULT_COMPRESS_RATIO)
        red_input_pairs = red_input_on_disk_pairs + num_segments_remain_mem * segment_pairs
        virtual.add_counter(MRCounter.REDUCE_INPUT_BYTES, MathUtils.trunc(red_input_size))
        virtual.add_counter(MRCounter.REDUCE_INPUT_RECORDS, MathUtils.trunc(red_input_pairs))

        if ctx.use_combiner:
            virtual.add_counter(MRCounter.COMBINE_INPUT_RECORDS, MathUtils.trunc(combine_in_recs))
            virtual.add_counter(MRCounter.COMBINE_OUTPUT_RECORDS, MathUtils.trunc(combine_out_recs))
        virtual.add_counter(MRCounter.SPILLED_RECORDS, MathUtils.trunc(num_spilled_recs))

        virtual.add_counter(MRCounter.FILE_BYTES_READ,
                            ctx.bytes_read_in_shuffle_merge + ctx.bytes_read_in_sort_merge
                            + ctx.bytes_read_in_reduce)
        virtual.add_counter(MRCounter.FILE_BYTES_WRITTEN,
                            ctx.bytes_written_in_shuffle_merge + ctx.bytes_written_in_sort_merge)

        logger.debug("Shuffle 文件 %d 个（合并 %d 次）, 内存段 %d 个（逐出 %d 个）",
                     num_shuffle_files, num_shuffle_merges, num_segments_in_mem, num_segments_evicted)

    def _calc_counters_reduce_phase(self, ctx: ReduceCallContext):
        virtual = ctx.virtual_prof

        red_input_size = float(virtual.get_counter(MRCounter.REDUCE_INPUT_BYTES, 0))
        red_input_pairs = float(virtual.get_counter(MRCounter.REDUCE_INPUT_RECORDS, 0))

        red_out_size = red_input_size * virtual.get_statistic(MRStatistics.REDUCE_SIZE_SEL,
                                                              c.DEFAULT_SELECTIVITY)
        red_out_pairs = red_input_pairs * virtual.get_statistic(MRStatistics.REDUCE_PAIRS_SEL,
                                                                c.DEFAULT_SELECTIVITY)
        virtual.add_counter(MRCounter.REDUCE_OUTPUT_BYTES, MathUtils.trunc(red_out_size))
        virtual.add_counter(MRCounter.REDUCE_OUTPUT_RECORDS, MathUtils.trunc(red_out_pairs))

        pairs_per_group = virtual.get_statistic(MRStatistics.REDUCE_PAIRS_PER_GROUP,
                                                c.DEFAULT_RED_PAIRS_PER_GROUP)
        virtual.add_counter(MRCounter.REDUCE_INPUT_GROUPS, MathUtils.trunc(
            MathUtils.safe_divide(red_input_pairs, pairs_per_group, red_input_pairs)))

        if ctx.use_output_compr:
            red_out_size *= virtual.get_statistic(MRStatistics.OUT_COMPRESS_RATIO,
                                                  c.DEFAULT_COMPRESS_RATIO)
        virtual.add_counter(MRCounter.HDFS_BYTES_WRITTEN, MathUtils.trunc(red_out_size))

    # ---- 代价因子 ----

    def _calc_costs(self, ctx: ReduceCallContext):
        self.calc_virtual_task_costs(ctx.virtual_prof, ctx)
        if ctx.use_output_compr:
            ctx.virtual_prof.add_cost_factor(
                MRCostFactors.OUTPUT_COMPRESS_CPU_COST,
                self._source_prof.get_cost_factor(MRCostFactors.OUTPUT_COMPRESS_CPU_COST,
                                                  c.DEFAULT_COMPRESS_CPU_COST))

    # ---- 耗时 ----

    def _calc_timings(self, ctx: ReduceCallContext):
        self._calc_timings_shuffle_sort_phase(ctx)
        self._calc_timings_reduce_phase(ctx)

    def _calc_timings_shuffle_sort_phase(self, ctx: ReduceCallContext):
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor

        shuffle_bytes = float(virtual.get_counter(MRCounter.REDUCE_SHUFFLE_BYTES, 0))
        net_cost = shuffle_bytes * cost(MRCostFactors.NETWORK_COST, 0.0)
        shuffle_cpu = 0.0
        if ctx.compress_interm:
            shuffle_cpu = shuffle_bytes * cost(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, 0.0)
        merge_time = self._calc_merge_time(ctx, ctx.merged_records_in_shuffle,
                                           ctx.bytes_read_in_shuffle_merge,
                                           ctx.bytes_written_in_shuffle_merge)
        combine_cpu = 0.0
        if ctx.use_combiner:
            combine_cpu = virtual.get_counter(MRCounter.COMBINE_INPUT_RECORDS, 0) \
                * cost(MRCostFactors.COMBINE_CPU_COST, 0.0)
        virtual.add_timing(MRTaskPhase.SHUFFLE,
                           (net_cost + shuffle_cpu + merge_time + combine_cpu) / c.NS_PER_MS)

        merge_time = self._calc_merge_time(ctx, ctx.merged_records_in_sort,
                                           ctx.bytes_read_in_sort_merge,
                                           ctx.bytes_written_in_sort_merge)
        virtual.add_timing(MRTaskPhase.SORT, merge_time / c.NS_PER_MS)

    def _calc_timings_reduce_phase(self, ctx: ReduceCallContext):
        source = self._source_prof
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor

        virtual.add_timing(MRTaskPhase.SETUP, source.get_timing(MRTaskPhase.SETUP, 0.0))

        read_io = ctx.bytes_read_in_reduce * cost(MRCostFactors.READ_LOCAL_IO_COST, 0.0)
        reduce_cpu = virtual.get_counter(MRCounter.REDUCE_INPUT_RECORDS, 0) \
            * cost(MRCostFactors.REDUCE_CPU_COST, 0.0)
        virtual.add_timing(MRTaskPhase.REDUCE, (read_io + reduce_cpu) / c.NS_PER_MS)

        write_io = virtual.get_counter(MRCounter.HDFS_BYTES_WRITTEN, 0) \
            * cost(MRCostFactors.WRITE_HDFS_IO_COST, 0.0)
        compr_cpu = 0.0
        if ctx.use_output_compr:
            compr_cpu = virtual.get_counter(MRCounter.REDUCE_OUTPUT_BYTES, 0) \
                * cost(MRCostFactors.OUTPUT_COMPRESS_CPU_COST, 0.0)
        virtual.add_timing(MRTaskPhase.WRITE, (write_io + compr_cpu) / c.NS_PER_MS)

        virtual.add_timing(MRTaskPhase.CLEANUP, source.get_timing(MRTaskPhase.CLEANUP, 0.0))

    @staticmethod
    def _calc_merge_time(ctx: ReduceCallContext, merged_records, bytes_read, bytes_written):
        """SHUFFLE 或 SORT 阶段归并的总耗时（纳秒）"""
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor

        read_io = bytes_read * cost(MRCostFactors.READ_LOCAL_IO_COST, 0.0)
        write_io = bytes_written * cost(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0)
        uncompr_cpu = 0.0
        compr_cpu = 0.0
        if ctx.compress_interm:
            uncompr_cpu = bytes_read * cost(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, 0.0)
            compr_cpu = bytes_written * cost(MRCostFactors.INTERM_COMPRESS_CPU_COST, 0.0) \
                / virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO)
        merge_cpu = merged_records * cost(MRCostFactors.MERGE_CPU_COST, 0.0)
        return read_io + write_io + uncompr_cpu + compr_cpu + merge_cpu
