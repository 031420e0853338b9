"""
工具模块单元测试
"""

import math
import unittest

from conf.config_loader import Configuration
from models.enums import MRCounter, MRStatistics, MRCostFactors
from models.errors import ConfigurationInconsistency
from models.job_profile import JobProfile
from models.task_profile import MapProfile, ReduceProfile
from utils.format_utils import FormatUtils
from utils.math_utils import MathUtils, LONG_MAX
from whatif.profile_utils import ProfileUtils
from sample_profiles import SampleProfiles


class TestMathUtils(unittest.TestCase):
    """数值工具测试"""

    def test_round_half_up(self):
        """四舍五入"""
        self.assertEqual(MathUtils.round_half_up(2.5), 3)
        self.assertEqual(MathUtils.round_half_up(2.49), 2)
        self.assertEqual(MathUtils.round_half_up(-2.5), -2)
        self.assertEqual(MathUtils.round_half_up(float('nan')), 0)

    def test_trunc(self):
        """向零截断"""
        self.assertEqual(MathUtils.trunc(2.9), 2)
        self.assertEqual(MathUtils.trunc(-2.9), -2)
        self.assertEqual(MathUtils.trunc(7), 7)
        self.assertEqual(MathUtils.trunc(float('nan')), 0)
        self.assertEqual(MathUtils.trunc(float('inf')), LONG_MAX)

    def test_safe_divide(self):
        """除零返回默认值"""
        self.assertEqual(MathUtils.safe_divide(10, 4), 2.5)
        self.assertEqual(MathUtils.safe_divide(10, 0), 0.0)
        self.assertEqual(MathUtils.safe_divide(10, 0, 10), 10)

    def test_log_floor(self):
        """不大于 e 时取 1"""
        self.assertEqual(MathUtils.log_floor(0), 1.0)
        self.assertEqual(MathUtils.log_floor(2), 1.0)
        self.assertAlmostEqual(MathUtils.log_floor(math.e ** 3), 3.0)


class TestFormatUtils(unittest.TestCase):
    """格式化工具测试"""

    def test_format_number(self):
        self.assertEqual(FormatUtils.format_number(1234567), '1,234,567')
        self.assertEqual(FormatUtils.format_number(1.5, 2), '1.50')

    def test_format_enum_map(self):
        """按枚举声明顺序输出"""
        lines = FormatUtils.format_enum_map({MRCounter.MAP_OUTPUT_RECORDS: 5, MRCounter.MAP_TASKS: 1})
        self.assertEqual(lines, ['\tMAP_TASKS\t1', '\tMAP_OUTPUT_RECORDS\t5'])

    def test_format_duration(self):
        self.assertEqual(FormatUtils.format_duration(1500), '1.50 sec')
        self.assertEqual(FormatUtils.format_duration(125000), '2 min 5 sec')
        self.assertEqual(FormatUtils.format_duration(3725000), '1 h 2 min 5 sec')


class TestProfileUtils(unittest.TestCase):
    """剖析工具测试"""

    def test_task_memory(self):
        """解析 -Xmx"""
        self.assertEqual(ProfileUtils.get_task_memory(Configuration()), 200 << 20)
        self.assertEqual(ProfileUtils.get_task_memory(
            Configuration({'mapred.child.java.opts': '-Xmx300m'})), 300 << 20)
        self.assertEqual(ProfileUtils.get_task_memory(
            Configuration({'mapred.child.java.opts': '-server -Xmx2G'})), 2 << 30)
        self.assertEqual(ProfileUtils.get_task_memory(
            Configuration({'mapred.child.java.opts': '-server'})), 200 << 20)

    def test_set_task_memory(self):
        """写入 -Xmx 时保留其他参数"""
        conf = Configuration({'mapred.child.java.opts': '-Xmx300m -verbose:gc'})
        ProfileUtils.set_task_memory(conf, 512 << 20)
        self.assertEqual(conf.get('mapred.child.java.opts'), '-Xmx512M -verbose:gc')

        conf = Configuration()
        self.assertFalse(ProfileUtils.is_task_memory_set(conf))
        ProfileUtils.set_task_memory(conf, 1 << 30)
        self.assertTrue(ProfileUtils.is_task_memory_set(conf))
        self.assertEqual(ProfileUtils.get_task_memory(conf), 1 << 30)

    def test_input_dirs(self):
        conf = Configuration({'mapred.input.dir': '/in/a, /in/b,,/in/c'})
        self.assertEqual(ProfileUtils.get_input_dirs(conf), ['/in/a', '/in/b', '/in/c'])
        self.assertEqual(ProfileUtils.get_input_dirs(Configuration()), [])

    def test_memory_required(self):
        """启动、初始化、清理内存加上每条记录的内存"""
        self.assertEqual(ProfileUtils.get_map_memory_required(SampleProfiles.terasort_map_profile()),
                         11828909)
        red_prof = ReduceProfile('r')
        red_prof.add_statistic(MRStatistics.STARTUP_MEM, 1000.0)
        red_prof.add_statistic(MRStatistics.REDUCE_MEM_PER_RECORD, 2.5)
        red_prof.add_counter(MRCounter.REDUCE_INPUT_RECORDS, 100)
        self.assertEqual(ProfileUtils.get_reduce_memory_required(red_prof), 1250)
        self.assertEqual(ProfileUtils.get_reduce_memory_required(None), 0)


class TestCompressionAdjustment(unittest.TestCase):
    """压缩代价修正测试"""

    @staticmethod
    def _job(read_cost, write_cost, compressed):
        job = JobProfile('job_1_0001')
        map_prof = MapProfile('m')
        map_prof.add_counters({
            MRCounter.MAP_OUTPUT_BYTES: 1000,
            MRCounter.MAP_OUTPUT_RECORDS: 10,
            MRCounter.SPILLED_RECORDS: 10,
            MRCounter.FILE_BYTES_WRITTEN: 500,
        })
        map_prof.add_cost_factor(MRCostFactors.READ_LOCAL_IO_COST, read_cost)
        map_prof.add_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST, write_cost)
        map_prof.add_cost_factor(MRCostFactors.MAP_CPU_COST, 40.0 if compressed else 20.0)
        if compressed:
            map_prof.add_statistic(MRStatistics.INTERM_COMPRESS_RATIO, 0.5)
        job.add_map_profile(map_prof)
        job.update_profile()
        return job

    def test_interm_compression_costs(self):
        """IO 代价与压缩代价分离"""
        no_compr = self._job(100.0, 200.0, False)
        with_compr = self._job(130.0, 260.0, True)
        result = ProfileUtils.adjust_profiles_for_compression(no_compr, with_compr)

        map_prof = result.map_profiles[0]
        self.assertEqual(map_prof.get_cost_factor(MRCostFactors.READ_LOCAL_IO_COST, 0.0), 100.0)
        self.assertEqual(map_prof.get_cost_factor(MRCostFactors.INTERM_UNCOMPRESS_CPU_COST, 0.0), 30.0)
        self.assertEqual(map_prof.get_cost_factor(MRCostFactors.WRITE_LOCAL_IO_COST, 0.0), 200.0)
        # (260 - 200) * 500 / (10 * 100)
        self.assertEqual(map_prof.get_cost_factor(MRCostFactors.INTERM_COMPRESS_CPU_COST, 0.0), 30.0)
        self.assertEqual(map_prof.get_cost_factor(MRCostFactors.MAP_CPU_COST, 0.0), 30.0)
        self.assertEqual(map_prof.get_statistic(MRStatistics.INTERM_COMPRESS_RATIO, 0.0), 0.5)
        self.assertEqual(result.avg_map_profiles[0].get_cost_factor(
            MRCostFactors.INTERM_COMPRESS_CPU_COST, 0.0), 30.0)

        # 原剖析不被修改
        self.assertFalse(no_compr.map_profiles[0].contains_cost_factor(
            MRCostFactors.INTERM_UNCOMPRESS_CPU_COST))

    def test_mismatched_profiles(self):
        """Map 剖析数量不一致"""
        no_compr = self._job(100.0, 200.0, False)
        with_compr = self._job(130.0, 260.0, True)
        with_compr.add_map_profile(MapProfile('m2'))

        with self.assertRaises(ConfigurationInconsistency):
            ProfileUtils.adjust_profiles_for_compression(no_compr, with_compr)
        with self.assertRaises(ValueError):
            ProfileUtils.adjust_profiles_for_compression(no_compr, with_compr)


if __name__ == '__main__':
    unittest.main()
