"""
归并模拟器单元测试
"""

import math
import unittest

from whatif.merge_simulator import MergeSimulator, MergeResult
from whatif.task_oracle import TaskProfileOracle

SEGMENT_SIZE = 1024
SEGMENT_RECS = 10


class TestMergeSimulator(unittest.TestCase):
    """归并模拟器测试"""

    def _simulate(self, spills, factor, combiner=None):
        merger = MergeSimulator()
        merger.add_segments(spills, SEGMENT_SIZE, SEGMENT_RECS)
        if combiner is not None:
            merger.enable_combiner(*combiner)
        merger.simulate_merge(factor)
        return merger

    def test_matches_closed_form(self):
        """溢写数不超过 factor^2 时与公式一致"""
        for factor in range(5, 21, 5):
            for spills in range(2, factor * factor + 1):
                merger = self._simulate(spills, factor)
                num_interm = TaskProfileOracle.get_num_interm_spill_reads(spills, factor)

                self.assertEqual(merger.num_merge_passes,
                                 TaskProfileOracle.get_num_spill_merges(spills, factor),
                                 f"spills={spills}, factor={factor}")
                self.assertEqual(merger.spilled_records,
                                 num_interm * SEGMENT_RECS + spills * SEGMENT_RECS)
                self.assertEqual(merger.bytes_read,
                                 num_interm * SEGMENT_SIZE + spills * SEGMENT_SIZE)
                self.assertEqual(merger.bytes_written,
                                 num_interm * SEGMENT_SIZE + spills * SEGMENT_SIZE)

    def test_many_spills_without_combiner(self):
        """26 个段、归并因子 5"""
        merger = self._simulate(26, 5)

        self.assertEqual(merger.num_merge_passes, 7)
        self.assertEqual(merger.spilled_records, 540)
        self.assertEqual(merger.bytes_read, 55296)
        self.assertEqual(merger.bytes_written, 55296)

    def test_combiner_in_final_merge(self):
        """19 个段、归并因子 5、最终归并执行 Combiner"""
        size_sel = int(0.5 * math.log(19 * 1024))
        rec_sel = int(0.5 * math.log(19 * 10))
        merger = self._simulate(19, 5, combiner=(3, size_sel, rec_sel))

        self.assertEqual(merger.num_merge_passes, 5)
        self.assertEqual(merger.spilled_records, 252)
        self.assertEqual(merger.bytes_read, 37888)
        self.assertEqual(merger.bytes_written, 26312)
        self.assertEqual(merger.combine_in_records, 190)
        self.assertEqual(merger.combine_out_records, 72)

    def test_combiner_below_threshold(self):
        """最终归并的段数低于阈值时不执行 Combiner"""
        merger = self._simulate(19, 5, combiner=(9999, 0.5, 0.5))
        plain = self._simulate(19, 5)

        self.assertEqual(merger.combine_in_records, 0)
        self.assertEqual(merger.combine_out_records, 0)
        self.assertEqual(merger.get_results(), plain.get_results())

    def test_combiner_never_increases_spills(self):
        """选择率不超过 1 时 Combiner 不会增加溢写记录"""
        for spills in (3, 12, 30, 70):
            with_combiner = self._simulate(spills, 5, combiner=(2, 1.0, 1.0))
            without = self._simulate(spills, 5)
            self.assertLessEqual(with_combiner.spilled_records, without.spilled_records)

    def test_combiner_output_floor(self):
        """Combiner 输出不少于最大输入段的记录数与字节数"""
        merger = self._simulate(3, 5, combiner=(2, 0.01, 0.01))

        self.assertEqual(merger.num_merge_passes, 1)
        self.assertEqual(merger.combine_in_records, 3 * SEGMENT_RECS)
        self.assertEqual(merger.combine_out_records, SEGMENT_RECS)
        self.assertEqual(merger.spilled_records, SEGMENT_RECS)
        self.assertEqual(merger.bytes_read, 3 * SEGMENT_SIZE)
        self.assertEqual(merger.bytes_written, SEGMENT_SIZE)

    def test_conservation(self):
        """无 Combiner 时读写字节相等，溢写记录随轮数增长"""
        previous = 0
        for spills in range(2, 60):
            merger = self._simulate(spills, 4)
            self.assertEqual(merger.bytes_read, merger.bytes_written)
            self.assertGreaterEqual(merger.spilled_records, previous)
            previous = merger.spilled_records

    def test_skip_final_merge(self):
        """跳过最终归并时只统计中间轮"""
        merger = MergeSimulator()
        merger.add_segments(26, SEGMENT_SIZE, SEGMENT_RECS)
        merger.simulate_merge(5, skip_final_merge=True)

        self.assertEqual(merger.num_merge_passes, 6)
        self.assertEqual(merger.bytes_read, 55296 - 26 * SEGMENT_SIZE)
        self.assertEqual(merger.merged_records, 26 * SEGMENT_RECS + merger.spilled_records)

    def test_mem_segments_join_first_pass(self):
        """内存段在第一轮中间归并时一并写出"""
        merger = MergeSimulator()
        merger.add_segments(12, SEGMENT_SIZE, SEGMENT_RECS)
        merger.add_mem_segments(2, 100, 1)
        merger.simulate_merge(5, skip_final_merge=True)

        # 第一轮合并 4 个段并写出 2 个内存段，第二轮合并 5 个段
        self.assertEqual(merger.num_merge_passes, 2)
        self.assertEqual(merger.bytes_read, 9 * SEGMENT_SIZE)
        self.assertEqual(merger.bytes_written, 9 * SEGMENT_SIZE + 200)
        self.assertEqual(merger.spilled_records, 9 * SEGMENT_RECS + 2)
        self.assertEqual(merger.merged_records, 12 * SEGMENT_RECS + 2 + merger.spilled_records)

    def test_single_segment(self):
        """只有一个段时不需要归并"""
        merger = self._simulate(1, 5)
        self.assertEqual(merger.get_results(), MergeResult())

    def test_invalid_sort_factor(self):
        """归并因子小于 2"""
        merger = MergeSimulator()
        merger.add_segments(3, SEGMENT_SIZE, SEGMENT_RECS)
        with self.assertRaises(ValueError):
            merger.simulate_merge(1)

    def test_results_snapshot(self):
        """get_results 返回独立快照"""
        merger = self._simulate(26, 5)
        result = merger.get_results()
        result.bytes_read = 0

        self.assertEqual(merger.bytes_read, 55296)
        self.assertEqual(result.to_dict()['num_merge_passes'], 7)


if __name__ == '__main__':
    unittest.main()
