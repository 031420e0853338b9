"""
Map 任务剖析预测
"""

import logging
import math

from models.enums import MRCounter, MRStatistics, MRCostFactors, MRTaskPhase
from models.specs import MapInputSpecs
from models.task_profile import MapProfile
from utils.math_utils import MathUtils
from whatif import constants as c
from whatif.merge_simulator import MergeSimulator
from whatif.task_oracle import TaskCallContext, TaskProfileOracle

logger = logging.getLogger(__name__)


class MapCallContext(TaskCallContext):
    """一次 Map 预测调用的配置、输入规格与中间结果"""

    def __init__(self, conf, input_specs: MapInputSpecs, virtual_prof: MapProfile):
        super().__init__(conf)
        self.input_specs = input_specs
        self.virtual_prof = virtual_prof

        self.is_map_only = conf.get_int(c.MAPRED_REDUCE_TASKS, c.DEFAULT_REDUCE_TASKS) == 0
        self.use_input_compr = input_specs.is_compressed
        self.use_output_compr = self.is_map_only and conf.get_boolean(c.MAPRED_OUTPUT_COMPRESS, False)
        self.num_spills_for_combine = conf.get_int(c.MIN_NUM_SPILLS_FOR_COMBINE,
                                                   c.DEFAULT_MIN_NUM_SPILLS_FOR_COMBINE)

        self.adj_combine_pairs_sel = 1.0
        self.adj_combine_size_sel = 1.0

        # 计算 MERGE 耗时所需
        self.num_merged_records = 0
        self.num_combine_in_merge_recs = 0


class MapProfileOracle(TaskProfileOracle):
    """
    根据一个 Map 源剖析预测新配置、新输入下的虚拟 Map 剖析

    推导顺序固定为 统计量 -> 计数器 -> 代价因子 -> 耗时，后一步只读取前一步写入虚拟剖析的值。
    """

    def __init__(self, source_profile: MapProfile):
        super().__init__(source_profile)

    def whatif(self, conf, input_specs: MapInputSpecs) -> MapProfile:
        """
        预测虚拟 Map 剖析
        :param conf: 新配置
        :param input_specs: 新输入规格
        :return: 新建的 MapProfile，num_tasks 等于分片数
        """
        self._check_source()

        virtual_prof = MapProfile(self.get_virtual_task_id(self._source_prof.task_id),
                                  max(input_specs.num_splits, 1), input_specs.input_index)
        ctx = MapCallContext(conf, input_specs, virtual_prof)
        self._initialize_combiner(ctx)

        self._calc_statistics(ctx)
        self._calc_counters(ctx)
        self._calc_costs(ctx)
        self._calc_timings(ctx)

        logger.debug("Map 预测 %s: 输入 %d 字节, %d 次溢写, 耗时 %.2f ms",
                     virtual_prof.task_id, input_specs.size,
                     virtual_prof.get_counter(MRCounter.MAP_NUM_SPILLS, 0),
                     virtual_prof.total_duration())
        return virtual_prof

    def _initialize_combiner(self, ctx: MapCallContext):
        if not ctx.use_combiner:
            return
        source = self._source_prof
        output_pairs = source.require_counter(MRCounter.MAP_OUTPUT_RECORDS)
        output_size = source.require_counter(MRCounter.MAP_OUTPUT_BYTES)
        num_spills = float(max(source.require_counter(MRCounter.MAP_NUM_SPILLS), 1))

        ctx.adj_combine_pairs_sel = source.get_statistic(
            MRStatistics.COMBINE_PAIRS_SEL, c.DEFAULT_SELECTIVITY) \
            * MathUtils.log_floor(output_pairs / num_spills)
        ctx.adj_combine_size_sel = source.get_statistic(
            MRStatistics.COMBINE_SIZE_SEL, c.DEFAULT_SELECTIVITY) \
            * MathUtils.log_floor(output_size / num_spills)

    # ---- 统计量 ----

    def _calc_statistics(self, ctx: MapCallContext):
        self.calc_virtual_task_statistics(ctx.virtual_prof, ctx)
        source = self._source_prof
        virtual = ctx.virtual_prof

        virtual.add_statistic(MRStatistics.INPUT_PAIR_WIDTH, source.get_statistic(
            MRStatistics.INPUT_PAIR_WIDTH, c.DEFAULT_PAIR_WIDTH))
        virtual.add_statistic(MRStatistics.MAP_SIZE_SEL, source.get_statistic(
            MRStatistics.MAP_SIZE_SEL, c.DEFAULT_SELECTIVITY))
        virtual.add_statistic(MRStatistics.MAP_PAIRS_SEL, source.get_statistic(
            MRStatistics.MAP_PAIRS_SEL, c.DEFAULT_SELECTIVITY))

        if ctx.use_input_compr:
            virtual.add_statistic(MRStatistics.INPUT_COMPRESS_RATIO, source.get_statistic(
                MRStatistics.INPUT_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))
        if ctx.use_output_compr:
            virtual.add_statistic(MRStatistics.OUT_COMPRESS_RATIO, source.get_statistic(
                MRStatistics.OUT_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))

        virtual.add_statistic(MRStatistics.MAP_MEM_PER_RECORD, source.get_statistic(
            MRStatistics.MAP_MEM_PER_RECORD, c.DEFAULT_MEM_PER_RECORD))

    # ---- 计数器 ----

    def _calc_counters(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof
        if not ctx.is_map_only:
            for counter in (MRCounter.SPILLED_RECORDS, MRCounter.COMBINE_INPUT_RECORDS,
                            MRCounter.COMBINE_OUTPUT_RECORDS, MRCounter.FILE_BYTES_READ,
                            MRCounter.FILE_BYTES_WRITTEN, MRCounter.MAP_NUM_SPILL_MERGES):
                virtual.add_counter(counter, 0)

        self._calc_counters_read_map_phase(ctx)
        if ctx.is_map_only:
            return

        self._calc_counters_spill_phase(ctx)
        num_spills = virtual.get_counter(MRCounter.MAP_NUM_SPILLS, 0)
        if num_spills > 1:
            if num_spills <= ctx.sort_factor * ctx.sort_factor:
                self._calc_counters_merge_phase(ctx)
            else:
                self._calc_counters_sim_merge_phase(ctx)

    def _calc_counters_read_map_phase(self, ctx: MapCallContext):
        source = self._source_prof
        virtual = ctx.virtual_prof
        specs = ctx.input_specs

        map_input_bytes = float(specs.size)
        if ctx.use_input_compr:
            map_input_bytes /= virtual.get_statistic(MRStatistics.INPUT_COMPRESS_RATIO,
                                                     c.DEFAULT_COMPRESS_RATIO)
        map_input_recs = map_input_bytes / virtual.get_statistic(MRStatistics.INPUT_PAIR_WIDTH,
                                                                 c.DEFAULT_PAIR_WIDTH)

        virtual.add_counter(MRCounter.HDFS_BYTES_READ, specs.size)
        virtual.add_counter(MRCounter.MAP_INPUT_BYTES, MathUtils.trunc(map_input_bytes))
        virtual.add_counter(MRCounter.MAP_INPUT_RECORDS, MathUtils.trunc(map_input_recs))

        map_out_bytes = map_input_bytes * virtual.get_statistic(MRStatistics.MAP_SIZE_SEL,
                                                                c.DEFAULT_SELECTIVITY)
        map_out_recs = map_input_recs * virtual.get_statistic(MRStatistics.MAP_PAIRS_SEL,
                                                              c.DEFAULT_SELECTIVITY)
        if map_out_bytes < 1 or map_out_recs < 1:
            # 至少输出一条记录
            map_out_bytes = source.get_counter(MRCounter.MAP_OUTPUT_BYTES, 1) \
                / float(max(source.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 1), 1))
            map_out_recs = 1.0

        virtual.add_counter(MRCounter.MAP_OUTPUT_BYTES, MathUtils.trunc(map_out_bytes))
        virtual.add_counter(MRCounter.MAP_OUTPUT_RECORDS, MathUtils.trunc(map_out_recs))

        max_source_groups = source.get_counter(MRCounter.MAP_MAX_UNIQUE_GROUPS,
                                               c.DEFAULT_MAX_UNIQUE_GROUPS)
        max_unique_groups = map_out_recs * max_source_groups \
            / max(source.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 1), 1)
        virtual.add_counter(MRCounter.MAP_MAX_UNIQUE_GROUPS, math.ceil(max_unique_groups))

        if ctx.is_map_only:
            if ctx.use_output_compr:
                map_out_bytes *= virtual.get_statistic(MRStatistics.OUT_COMPRESS_RATIO,
                                                       c.DEFAULT_COMPRESS_RATIO)
            virtual.add_counter(MRCounter.HDFS_BYTES_WRITTEN, MathUtils.trunc(map_out_bytes))

    def _calc_counters_spill_phase(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof
        conf = ctx.conf

        map_out_bytes = virtual.get_counter(MRCounter.MAP_OUTPUT_BYTES, 0)
        map_out_recs = max(virtual.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 1), 1)
        map_out_rec_width = map_out_bytes / float(map_out_recs)

        sort_bytes = conf.get_int(c.IO_SORT_MB, c.DEFAULT_IO_SORT_MB) * 1024 * 1024
        record_perc = conf.get_float(c.IO_SORT_RECORD_PERCENT, c.DEFAULT_IO_SORT_RECORD_PERCENT)
        spill_perc = conf.get_float(c.IO_SORT_SPILL_PERCENT, c.DEFAULT_IO_SORT_SPILL_PERCENT)

        # 序列化缓冲区、记录元数据缓冲区、总输出三者中的最小值
        max_ser_pairs = MathUtils.trunc(
            MathUtils.safe_divide(sort_bytes * (1 - record_perc) * spill_perc,
                                  map_out_rec_width, float('inf')))
        max_acc_pairs = MathUtils.trunc(
            sort_bytes * record_perc * spill_perc / c.RECORD_ACCOUNTING_BYTES)
        max_spill_buffer_pairs = max(min(max_ser_pairs, max_acc_pairs, map_out_recs), 1)

        num_spills = math.ceil(map_out_recs / float(max_spill_buffer_pairs))
        avg_spill_buffer_pairs = MathUtils.round_half_up(map_out_recs / float(num_spills))
        avg_spill_buffer_size = MathUtils.round_half_up(map_out_bytes / float(num_spills))
        if avg_spill_buffer_pairs == 0 or avg_spill_buffer_size == 0:
            avg_spill_buffer_pairs = 1
            avg_spill_buffer_size = MathUtils.trunc(map_out_rec_width)

        virtual.add_counter(MRCounter.MAP_RECS_PER_BUFF_SPILL, avg_spill_buffer_pairs)
        virtual.add_counter(MRCounter.MAP_BUFF_SPILL_SIZE, avg_spill_buffer_size)

        spill_file_pairs = float(avg_spill_buffer_pairs)
        spill_file_size = float(avg_spill_buffer_size)
        if ctx.use_combiner:
            spill_file_pairs = avg_spill_buffer_pairs * ctx.adj_combine_pairs_sel \
                / MathUtils.log_floor(avg_spill_buffer_pairs)
            spill_file_size = avg_spill_buffer_size * ctx.adj_combine_size_sel \
                / MathUtils.log_floor(avg_spill_buffer_size)
        if ctx.compress_interm:
            spill_file_size *= virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO,
                                                     c.DEFAULT_COMPRESS_RATIO)

        virtual.add_counter(MRCounter.MAP_NUM_SPILLS, num_spills)
        virtual.add_counter(MRCounter.MAP_RECORDS_PER_SPILL, MathUtils.trunc(spill_file_pairs))
        virtual.add_counter(MRCounter.MAP_SPILL_SIZE, MathUtils.trunc(spill_file_size))

        num_spilled_records = MathUtils.round_half_up(num_spills * spill_file_pairs)
        virtual.add_counter(MRCounter.SPILLED_RECORDS, num_spilled_records)

        if ctx.use_combiner:
            virtual.add_counter(MRCounter.COMBINE_INPUT_RECORDS, map_out_recs)
            virtual.add_counter(MRCounter.COMBINE_OUTPUT_RECORDS, num_spilled_records)

        virtual.add_counter(MRCounter.FILE_BYTES_WRITTEN,
                            MathUtils.round_half_up(num_spills * spill_file_size))

    def _calc_counters_merge_phase(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof
        sort_factor = ctx.sort_factor

        num_spills = virtual.get_counter(MRCounter.MAP_NUM_SPILLS, 0)
        virtual.add_counter(MRCounter.MAP_NUM_SPILL_MERGES,
                            self.get_num_spill_merges(num_spills, sort_factor))

        combine_in_final_merge = (ctx.use_combiner
                                  and min(num_spills, sort_factor) >= ctx.num_spills_for_combine)

        num_spilled_records = virtual.get_counter(MRCounter.SPILLED_RECORDS, 0)
        recs_per_spill = virtual.get_counter(MRCounter.MAP_RECORDS_PER_SPILL, 0)
        num_interm_spills = self.get_num_interm_spill_reads(num_spills, sort_factor)
        num_spilled_records += num_interm_spills * recs_per_spill
        ctx.num_merged_records = num_spilled_records

        max_unique_groups = virtual.get_counter(MRCounter.MAP_MAX_UNIQUE_GROUPS,
                                                c.DEFAULT_MAX_UNIQUE_GROUPS)
        if combine_in_final_merge:
            ctx.num_combine_in_merge_recs = num_spills * recs_per_spill
            combine_out_final = MathUtils.trunc(
                ctx.num_combine_in_merge_recs * ctx.adj_combine_pairs_sel
                / MathUtils.log_floor(ctx.num_combine_in_merge_recs))
            combine_out_final = max(combine_out_final, recs_per_spill)
            if max_unique_groups < ctx.num_combine_in_merge_recs:
                combine_out_final = max(combine_out_final, max_unique_groups)

            virtual.add_counter(MRCounter.COMBINE_INPUT_RECORDS,
                                virtual.get_counter(MRCounter.COMBINE_INPUT_RECORDS, 0)
                                + ctx.num_combine_in_merge_recs)
            virtual.add_counter(MRCounter.COMBINE_OUTPUT_RECORDS,
                                virtual.get_counter(MRCounter.COMBINE_OUTPUT_RECORDS, 0)
                                + combine_out_final)
            num_spilled_records += combine_out_final
        else:
            num_spilled_records += num_spills * recs_per_spill

        virtual.add_counter(MRCounter.SPILLED_RECORDS, num_spilled_records)

        bytes_per_spill = virtual.get_counter(MRCounter.MAP_SPILL_SIZE, 0)
        virtual.add_counter(MRCounter.FILE_BYTES_READ,
                            (num_interm_spills + num_spills) * bytes_per_spill)

        bytes_written = virtual.get_counter(MRCounter.FILE_BYTES_WRITTEN, 0)
        bytes_written += num_interm_spills * bytes_per_spill
        if combine_in_final_merge:
            final_merge_bytes = num_spills * bytes_per_spill
            bytes_written_final = final_merge_bytes * ctx.adj_combine_size_sel \
                / MathUtils.log_floor(final_merge_bytes)
            bytes_written_final = max(bytes_written_final, bytes_per_spill)
            if max_unique_groups < ctx.num_combine_in_merge_recs:
                map_out_bytes = virtual.get_counter(MRCounter.MAP_OUTPUT_BYTES, 0)
                map_out_recs = max(virtual.get_counter(MRCounter.MAP_OUTPUT_RECORDS, 1), 1)
                max_output = (map_out_bytes / float(map_out_recs)) * max_unique_groups
                bytes_written_final = max(bytes_written_final, max_output)
            bytes_written = MathUtils.trunc(bytes_written + bytes_written_final)
        else:
            bytes_written += num_spills * bytes_per_spill

        virtual.add_counter(MRCounter.FILE_BYTES_WRITTEN, bytes_written)

    def _calc_counters_sim_merge_phase(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof

        merger = MergeSimulator()
        merger.add_segments(virtual.get_counter(MRCounter.MAP_NUM_SPILLS, 0),
                            virtual.get_counter(MRCounter.MAP_SPILL_SIZE, 0),
                            virtual.get_counter(MRCounter.MAP_RECORDS_PER_SPILL, 0))
        if ctx.use_combiner:
            merger.enable_combiner(ctx.num_spills_for_combine,
                                   ctx.adj_combine_size_sel, ctx.adj_combine_pairs_sel)
        merger.simulate_merge(ctx.sort_factor)

        virtual.add_counter(MRCounter.MAP_NUM_SPILL_MERGES, merger.num_merge_passes)
        virtual.add_counter(MRCounter.SPILLED_RECORDS,
                            virtual.get_counter(MRCounter.SPILLED_RECORDS, 0) + merger.spilled_records)
        virtual.add_counter(MRCounter.FILE_BYTES_READ,
                            virtual.get_counter(MRCounter.FILE_BYTES_READ, 0) + merger.bytes_read)
        virtual.add_counter(MRCounter.FILE_BYTES_WRITTEN,
                            virtual.get_counter(MRCounter.FILE_BYTES_WRITTEN, 0) + merger.bytes_written)

        ctx.num_merged_records = merger.merged_records
        if ctx.use_combiner:
            ctx.num_combine_in_merge_recs = merger.combine_in_records
            virtual.add_counter(MRCounter.COMBINE_INPUT_RECORDS,
                                virtual.get_counter(MRCounter.COMBINE_INPUT_RECORDS, 0)
                                + merger.combine_in_records)
            virtual.add_counter(MRCounter.COMBINE_OUTPUT_RECORDS,
                                virtual.get_counter(MRCounter.COMBINE_OUTPUT_RECORDS, 0)
                                + merger.combine_out_records)

    # ---- 代价因子 ----

    def _calc_costs(self, ctx: MapCallContext):
        self.calc_virtual_task_costs(ctx.virtual_prof, ctx)
        if ctx.use_input_compr:
            self._copy_nonzero_cost(ctx.virtual_prof, MRCostFactors.INPUT_UNCOMPRESS_CPU_COST,
                                    c.DEFAULT_UNCOMPRESS_CPU_COST)
        if ctx.use_output_compr:
            self._copy_nonzero_cost(ctx.virtual_prof, MRCostFactors.OUTPUT_COMPRESS_CPU_COST,
                                    c.DEFAULT_COMPRESS_CPU_COST)

    # ---- 耗时 ----

    def _calc_timings(self, ctx: MapCallContext):
        self._calc_timings_read_map_phase(ctx)
        if not ctx.is_map_only:
            self._calc_timings_spill_phase(ctx)
            self._calc_timings_merge_phase(ctx)

    def _calc_timings_read_map_phase(self, ctx: MapCallContext):
        source = self._source_prof
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor
        counter = virtual.get_counter

        virtual.add_timing(MRTaskPhase.SETUP, source.get_timing(MRTaskPhase.SETUP, 0.0))

        bytes_read = float(counter(MRCounter.HDFS_BYTES_READ, 0))
        read_cpu = 0.0
        if ctx.use_input_compr:
            read_cpu = bytes_read * cost(MRCostFactors.INPUT_UNCOMPRESS_CPU_COST, 0.0)
        read_io = bytes_read * cost(MRCostFactors.READ_HDFS_IO_COST, 0.0)
        virtual.add_timing(MRTaskPhase.READ, (read_cpu + read_io) / c.NS_PER_MS)

        map_cpu = counter(MRCounter.MAP_INPUT_RECORDS, 0) * cost(MRCostFactors.MAP_CPU_COST, 0.0)
        virtual.add_timing(MRTaskPhase.MAP, map_cpu / c.NS_PER_MS)

        virtual.add_timing(MRTaskPhase.CLEANUP, source.get_timing(MRTaskPhase.CLEANUP, 0.0))

        if ctx.is_map_only:
            write_cpu = 0.0
            if ctx.use_output_compr:
                write_cpu = counter(MRCounter.MAP_OUTPUT_BYTES, 0) \
                    * cost(MRCostFactors.OUTPUT_COMPRESS_CPU_COST, 0.0)
            write_io = counter(MRCounter.HDFS_BYTES_WRITTEN, 0) \
                * cost(MRCostFactors.WRITE_HDFS_IO_COST, 0.0)
            virtual.add_timing(MRTaskPhase.WRITE, (write_cpu + write_io) / c.NS_PER_MS)

    def _calc_timings_spill_phase(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor
        counter = virtual.get_counter

        map_out_recs = counter(MRCounter.MAP_OUTPUT_RECORDS, 0)
        writes_from_spill = counter(MRCounter.MAP_NUM_SPILLS, 0) * counter(MRCounter.MAP_SPILL_SIZE, 0)

        collect_cpu = map_out_recs * cost(MRCostFactors.PARTITION_CPU_COST, 0.0) \
            + map_out_recs * cost(MRCostFactors.SERDE_CPU_COST, 0.0)
        virtual.add_timing(MRTaskPhase.COLLECT, collect_cpu / c.NS_PER_MS)

        num_reducers = max(ctx.conf.get_int(c.MAPRED_REDUCE_TASKS, c.DEFAULT_REDUCE_TASKS), 1)
        num_recs_per_red = counter(MRCounter.MAP_RECS_PER_BUFF_SPILL, 0) / float(num_reducers)
        sort_cpu = map_out_recs * math.log(max(num_recs_per_red, 10)) \
            * cost(MRCostFactors.SORT_CPU_COST, 0.0)

        combine_cpu = 0.0
        if ctx.use_combiner:
            combine_cpu = map_out_recs * cost(MRCostFactors.COMBINE_CPU_COST, 0.0)

        compr_cpu = 0.0
        if ctx.compress_interm:
            compr_cpu = writes_from_spill * cost(MRCostFactors.INTERM_COMPRESS_CPU_COST, 0.0) \
                / virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO)

        spill_io = writes_from_spill * cost(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0)
        virtual.add_timing(MRTaskPhase.SPILL,
                           (sort_cpu + combine_cpu + compr_cpu + spill_io) / c.NS_PER_MS)

    def _calc_timings_merge_phase(self, ctx: MapCallContext):
        virtual = ctx.virtual_prof
        cost = virtual.get_cost_factor
        counter = virtual.get_counter

        local_reads = counter(MRCounter.FILE_BYTES_READ, 0)
        local_writes = counter(MRCounter.FILE_BYTES_WRITTEN, 0)
        writes_from_spill = counter(MRCounter.MAP_NUM_SPILLS, 0) * counter(MRCounter.MAP_SPILL_SIZE, 0)
        merge_writes = local_writes - writes_from_spill

        uncompr_cpu = 0.0
        compr_cpu = 0.0
        if ctx.compress_interm:
            uncompr_cpu = local_reads * cost(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, 0.0)
            compr_cpu = merge_writes * cost(MRCostFactors.INTERM_COMPRESS_CPU_COST, 0.0) \
                / virtual.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO)

        merge_cpu = ctx.num_merged_records * cost(MRCostFactors.MERGE_CPU_COST, 0.0)
        combine_cpu = 0.0
        if ctx.use_combiner:
            combine_cpu = ctx.num_combine_in_merge_recs * cost(MRCostFactors.COMBINE_CPU_COST, 0.0)

        merge_read_io = local_reads * cost(MRCostFactors.READ_LOCAL_IO_COST, 0.0)
        merge_write_io = merge_writes * cost(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0)

        virtual.add_timing(MRTaskPhase.MERGE,
                           (uncompr_cpu + merge_cpu + combine_cpu + compr_cpu
                            + merge_read_io + merge_write_io) / c.NS_PER_MS)
