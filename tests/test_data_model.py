"""
数据集模型单元测试
"""

import unittest

from conf.config_loader import Configuration
from models.enums import MRCounter, MRStatistics
from models.job_profile import JobProfile
from models.specs import MapInputSpecs, ReduceShuffleSpecs
from models.task_profile import MapProfile, ReduceProfile
from whatif.data_model import FixedInputSpecsDataSetModel, SplitSizesDataSetModel
from sample_profiles import SampleProfiles


class TestSplitSizesDataSetModel(unittest.TestCase):
    """按分片大小分组测试"""

    def setUp(self):
        self.conf = Configuration()

    def test_group_similar_splits(self):
        """与组内首个分片相差不足 20% 的分片归为一组"""
        model = SplitSizesDataSetModel([[90, 10, 100, 48, 95, 50]])
        specs = model.generate_map_input_specs(self.conf)

        self.assertEqual([(s.input_index, s.num_splits, s.size) for s in specs],
                         [(0, 3, 95), (0, 2, 49), (0, 1, 10)])
        self.assertFalse(any(s.is_compressed for s in specs))

    def test_multiple_inputs(self):
        """每个输入路径分别分组，可以分别指定压缩"""
        model = SplitSizesDataSetModel([[64, 64], [], [128]], compressed=[False, False, True])
        specs = model.generate_map_input_specs(self.conf)

        self.assertEqual(specs, [MapInputSpecs(0, 2, 64, False), MapInputSpecs(2, 1, 128, True)])

    def test_zero_size_splits(self):
        """大小为 0 的分片"""
        specs = SplitSizesDataSetModel([[0, 0]]).generate_map_input_specs(self.conf)
        self.assertEqual(specs, [MapInputSpecs(0, 2, 0)])

    def test_invalid_arguments(self):
        """没有输入路径或压缩标记数量不一致"""
        with self.assertRaises(ValueError):
            SplitSizesDataSetModel([]).generate_map_input_specs(self.conf)
        with self.assertRaises(ValueError):
            SplitSizesDataSetModel([[1], [2]], compressed=[True])


class TestDataSetModel(unittest.TestCase):
    """Shuffle 与输出规格测试"""

    def setUp(self):
        self.model = FixedInputSpecsDataSetModel([MapInputSpecs(0, 4, 1000)])

    def _map_profiles(self):
        first = MapProfile('m_first', num_tasks=2)
        first.add_counters({
            MRCounter.FILE_BYTES_WRITTEN: 1000,
            MRCounter.FILE_BYTES_READ: 100,
            MRCounter.MAP_OUTPUT_RECORDS: 50,
            MRCounter.COMBINE_INPUT_RECORDS: 50,
            MRCounter.COMBINE_OUTPUT_RECORDS: 10,
        })
        second = MapProfile('m_second')
        second.add_counters({
            MRCounter.FILE_BYTES_WRITTEN: 301,
            MRCounter.MAP_OUTPUT_RECORDS: 7,
        })
        return [first, second]

    def test_fixed_specs(self):
        """固定规格模型返回副本"""
        specs = self.model.generate_map_input_specs(Configuration())
        specs.append(MapInputSpecs(1, 1, 1))
        self.assertEqual(len(self.model.generate_map_input_specs(Configuration())), 1)

    def test_specs_from_job_profile(self):
        """由源作业推导输入规格"""
        model = FixedInputSpecsDataSetModel.from_job_profile(SampleProfiles.terasort_job_profile())
        self.assertEqual(model.generate_map_input_specs(Configuration()),
                         [MapInputSpecs(0, 5, 20000000, False)])

        job = JobProfile('job_1_0001', job_inputs=['/in/a', '/in/b'])
        first = MapProfile('m0', num_tasks=3, input_index=0)
        first.add_counter(MRCounter.HDFS_BYTES_READ, 100)
        second = MapProfile('m1', num_tasks=1, input_index=1)
        second.add_counter(MRCounter.HDFS_BYTES_READ, 40)
        second.add_statistic(MRStatistics.INPUT_COMPRESS_RATIO, 0.4)
        job.add_map_profile(first)
        job.add_map_profile(second)
        job.update_profile()
        job.add_counter(MRCounter.MAP_TASKS, 8)

        specs = FixedInputSpecsDataSetModel.from_job_profile(job).generate_map_input_specs(Configuration())
        self.assertEqual(specs, [MapInputSpecs(0, 6, 100, False), MapInputSpecs(1, 2, 40, True)])

    def test_shuffle_specs(self):
        """Shuffle 数据按 Reduce 数均分并四舍五入"""
        conf = Configuration({'mapred.reduce.tasks': 2})
        specs = self.model.generate_reduce_shuffle_specs(conf, self._map_profiles())

        # 字节 (2 * 900 + 301) / 2，记录 (2 * 10 + 7) / 2
        self.assertEqual(specs, [ReduceShuffleSpecs(3, 2, 1051, 14)])

    def test_shuffle_specs_without_reducers(self):
        """Reduce 数为 0 时不做除法"""
        conf = Configuration({'mapred.reduce.tasks': 0})
        specs = self.model.generate_reduce_shuffle_specs(conf, self._map_profiles())

        self.assertEqual(specs[0].num_reducers, 0)
        self.assertEqual(specs[0].size, 2101)
        self.assertEqual(specs[0].records, 27)

    def test_job_output_specs(self):
        """输出规格取 Reduce 输出，Map-only 作业取 Map 输出"""
        job = JobProfile('job_1_0001')
        map_prof = MapProfile('m', num_tasks=3)
        map_prof.add_counter(MRCounter.MAP_OUTPUT_BYTES, 300)
        map_prof.add_counter(MRCounter.MAP_OUTPUT_RECORDS, 30)
        job.add_map_profile(map_prof)

        outputs = self.model.generate_job_output_specs(Configuration(), job)
        self.assertEqual([o.to_dict() for o in outputs], [{'num_tasks': 3, 'size': 300, 'records': 30}])

        red_prof = ReduceProfile('r', num_tasks=2)
        red_prof.add_counter(MRCounter.REDUCE_OUTPUT_BYTES, 80)
        job.add_reduce_profile(red_prof)

        outputs = self.model.generate_job_output_specs(Configuration(), job)
        self.assertEqual(len(outputs), 1)
        self.assertEqual((outputs[0].num_tasks, outputs[0].size, outputs[0].records), (2, 80, 0))


if __name__ == '__main__':
    unittest.main()
