"""
任务剖析预测基类
"""

from models.enums import MRStatistics, MRCostFactors
from models.errors import PreconditionViolation
from whatif import constants as c


class TaskCallContext:
    """
    单次 whatif 调用的状态

    每次调用新建一个，预测器实例只持有不可变的源剖析。
    """

    def __init__(self, conf):
        self.conf = conf
        self.use_combiner = (conf.get(c.MAPREDUCE_COMBINE_CLASS) is not None
                             and conf.get_boolean(c.STARFISH_USE_COMBINER, c.DEFAULT_USE_COMBINER))
        self.compress_interm = conf.get_boolean(c.MAPRED_COMPRESS_MAP_OUTPUT, False)
        self.sort_factor = conf.get_int(c.IO_SORT_FACTOR, c.DEFAULT_IO_SORT_FACTOR)
        if self.sort_factor < 2:
            raise ValueError(f"归并因子必须不小于2: {self.sort_factor}")


class TaskProfileOracle:
    """Map / Reduce 预测器共用的推导与归并公式"""

    def __init__(self, source_profile):
        self._source_prof = source_profile

    @property
    def source_profile(self):
        return self._source_prof

    def _check_source(self):
        if self._source_prof is None or self._source_prof.is_empty():
            raise PreconditionViolation(f"源剖析为空，无法预测: {self._source_prof!r}")

    def calc_virtual_task_statistics(self, virtual_prof, ctx: TaskCallContext):
        """复制 Combiner 选择率、中间数据压缩比和内存统计量"""
        source = self._source_prof
        if ctx.use_combiner:
            virtual_prof.add_statistic(MRStatistics.COMBINE_SIZE_SEL, source.get_statistic(
                MRStatistics.COMBINE_SIZE_SEL, c.DEFAULT_SELECTIVITY))
            virtual_prof.add_statistic(MRStatistics.COMBINE_PAIRS_SEL, source.get_statistic(
                MRStatistics.COMBINE_PAIRS_SEL, c.DEFAULT_SELECTIVITY))

        if ctx.compress_interm:
            virtual_prof.add_statistic(MRStatistics.INTERM_COMPRESS_RATIO, source.get_statistic(
                MRStatistics.INTERM_COMPRESS_RATIO, c.DEFAULT_COMPRESS_RATIO))

        for stat in (MRStatistics.STARTUP_MEM, MRStatistics.SETUP_MEM, MRStatistics.CLEANUP_MEM):
            virtual_prof.add_statistic(stat, source.get_statistic(stat, c.DEFAULT_MEMORY))

    def calc_virtual_task_costs(self, virtual_prof, ctx: TaskCallContext):
        """复制全部代价因子，补齐 Combiner 与中间数据压缩代价"""
        source = self._source_prof
        virtual_prof.add_cost_factors(source.cost_factors)

        if ctx.use_combiner:
            virtual_prof.add_cost_factor(MRCostFactors.COMBINE_CPU_COST, source.get_cost_factor(
                MRCostFactors.COMBINE_CPU_COST, c.DEFAULT_COMBINE_CPU_COST))

        if ctx.compress_interm:
            self._copy_nonzero_cost(virtual_prof, MRCostFactors.INTERM_COMPRESS_CPU_COST,
                                    c.DEFAULT_COMPRESS_CPU_COST)
            self._copy_nonzero_cost(virtual_prof, MRCostFactors.INTERM_UNCOMPRESS_CPU_COST,
                                    c.DEFAULT_UNCOMPRESS_CPU_COST)

    def _copy_nonzero_cost(self, virtual_prof, cost, default):
        value = self._source_prof.get_cost_factor(cost, default)
        virtual_prof.add_cost_factor(cost, value if value != 0 else default)

    # ---- 归并公式（spills <= factor^2 时成立）----

    @staticmethod
    def get_num_spills_in_first_merge(num_spills, sort_factor):
        """第一轮合并的溢写文件数"""
        if num_spills <= sort_factor:
            return num_spills
        mod = (num_spills - 1) % (sort_factor - 1)
        if mod == 0:
            return sort_factor
        return mod + 1

    @staticmethod
    def get_num_interm_spill_reads(num_spills, sort_factor):
        """中间归并读取的溢写文件数"""
        if num_spills <= sort_factor:
            return 0
        first_merge = TaskProfileOracle.get_num_spills_in_first_merge(num_spills, sort_factor)
        return first_merge + ((num_spills - first_merge) // sort_factor) * sort_factor

    @staticmethod
    def get_num_spill_merges(num_spills, sort_factor):
        """归并轮数（含最终归并）"""
        if num_spills == 1:
            return 0
        if num_spills <= sort_factor:
            return 1
        first_merge = TaskProfileOracle.get_num_spills_in_first_merge(num_spills, sort_factor)
        return 2 + (num_spills - first_merge) // sort_factor

    @staticmethod
    def get_virtual_task_id(task_id):
        index = task_id.find('_')
        if index != -1:
            return c.VIRTUAL + task_id[index:]
        return c.VIRTUAL + task_id
