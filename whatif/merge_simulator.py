"""
多路归并模拟器
"""

import heapq
import itertools
import logging
from dataclasses import dataclass

from utils.math_utils import MathUtils

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """一次归并模拟的结果"""
    num_merge_passes: int = 0
    bytes_read: int = 0
    bytes_written: int = 0
    spilled_records: int = 0
    merged_records: int = 0
    combine_in_records: int = 0
    combine_out_records: int = 0

    def to_dict(self):
        return {
            'num_merge_passes': self.num_merge_passes,
            'bytes_read': self.bytes_read,
            'bytes_written': self.bytes_written,
            'spilled_records': self.spilled_records,
            'merged_records': self.merged_records,
            'combine_in_records': self.combine_in_records,
            'combine_out_records': self.combine_out_records,
        }


class MergeSimulator:
    """
    模拟 Hadoop 的多路外部归并

    每轮从最小的段开始合并，合并结果重新放回堆中。第一轮合并的段数使得之后每轮
    恰好合并 sort_factor 个段。同样大小的段按加入顺序出堆，结果是确定的。
    """

    def __init__(self):
        self._segments = []
        self._sequence = itertools.count()
        self._total_input_records = 0

        self._use_combiner = False
        self._num_spills_for_combine = 0
        self._combine_size_sel = 0.0
        self._combine_rec_sel = 0.0
        self._min_num_unique_values = 0
        self._min_size_unique_values = 0

        self._num_mem_segments = 0
        self._mem_segment_size = 0
        self._mem_segment_recs = 0

        self._result = MergeResult()

    # ---- 结果 ----

    @property
    def num_merge_passes(self):
        return self._result.num_merge_passes

    @property
    def bytes_read(self):
        return self._result.bytes_read

    @property
    def bytes_written(self):
        return self._result.bytes_written

    @property
    def spilled_records(self):
        return self._result.spilled_records

    @property
    def merged_records(self):
        return self._result.merged_records

    @property
    def combine_in_records(self):
        return self._result.combine_in_records

    @property
    def combine_out_records(self):
        return self._result.combine_out_records

    def get_results(self) -> MergeResult:
        """返回结果快照"""
        return MergeResult(**self._result.to_dict())

    # ---- 输入 ----

    def add_segments(self, count, size, records):
        """
        加入 count 个相同的磁盘段
        :param count: 段数
        :param size: 每段字节数
        :param records: 每段记录数
        """
        for _ in range(int(count)):
            self._push(size, records)
        self._total_input_records += count * records
        self._min_num_unique_values = max(self._min_num_unique_values, records)
        self._min_size_unique_values = max(self._min_size_unique_values, size)

    def add_mem_segments(self, count, size, records):
        """记录 count 个内存段，它们在第一轮中间归并时一并写出"""
        self._num_mem_segments = count
        self._mem_segment_size = size
        self._mem_segment_recs = records
        self._total_input_records += count * records

    def enable_combiner(self, num_spills_for_combine, size_sel, rec_sel):
        self._use_combiner = True
        self._num_spills_for_combine = num_spills_for_combine
        self._combine_size_sel = size_sel
        self._combine_rec_sel = rec_sel

    # ---- 模拟 ----

    def simulate_merge(self, sort_factor, skip_final_merge=False):
        """
        执行归并模拟
        :param sort_factor: 每轮最多合并的段数
        :param skip_final_merge: 为 True 时不执行最后一轮归并
        """
        if sort_factor < 2:
            raise ValueError(f"归并因子必须不小于2: {sort_factor}")

        self._initialize()
        result = self._result

        if len(self._segments) <= 1:
            return

        pass_no = 1
        while len(self._segments) > sort_factor:
            size, records = self._merge_segments(sort_factor, pass_no)
            result.bytes_read += size
            result.bytes_written += size
            result.spilled_records += records

            if pass_no == 1 and self._num_mem_segments > 0:
                mem_size = self._num_mem_segments * self._mem_segment_size
                mem_records = self._num_mem_segments * self._mem_segment_recs
                size += mem_size
                records += mem_records
                result.bytes_written += mem_size
                result.spilled_records += mem_records

            self._push(size, records)
            logger.debug("第%d轮归并: %d 字节, %d 条记录", pass_no, size, records)
            pass_no += 1

        result.merged_records = self._total_input_records + result.spilled_records

        if len(self._segments) <= 1 or skip_final_merge:
            return

        num_left = len(self._segments)
        size, records = self._merge_segments(sort_factor, pass_no)
        self._push(size, records)

        if self._use_combiner and num_left >= self._num_spills_for_combine:
            result.combine_in_records = records
            result.combine_out_records = MathUtils.trunc(max(
                records * self._combine_rec_sel / MathUtils.log_floor(records),
                self._min_num_unique_values))
            result.bytes_read += size
            result.bytes_written = MathUtils.trunc(result.bytes_written + max(
                size * self._combine_size_sel / MathUtils.log_floor(size),
                self._min_size_unique_values))
            result.spilled_records += result.combine_out_records
        else:
            result.bytes_read += size
            result.bytes_written += size
            result.spilled_records += records

        logger.debug("最终归并 %d 个段: %s", num_left, result)

    def _initialize(self):
        self._result = MergeResult()

    def _push(self, size, records):
        heapq.heappush(self._segments, (size, next(self._sequence), records))

    def _merge_segments(self, sort_factor, pass_no):
        self._result.num_merge_passes += 1
        num_segments = self._num_segments_to_merge(len(self._segments), sort_factor, pass_no)
        size = 0
        records = 0
        for _ in range(num_segments):
            seg_size, _, seg_records = heapq.heappop(self._segments)
            size += seg_size
            records += seg_records
        return size, records

    @staticmethod
    def _num_segments_to_merge(num_segments, sort_factor, pass_no):
        if num_segments <= sort_factor:
            return num_segments
        if pass_no > 1:
            return sort_factor
        mod = (num_segments - 1) % (sort_factor - 1)
        if mod == 0:
            return sort_factor
        return mod + 1
