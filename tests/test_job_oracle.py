"""
作业剖析预测单元测试
"""

import unittest

from models.enums import MRCounter, MRTaskPhase
from models.errors import ConfigurationInconsistency, PreconditionViolation
from models.job_profile import JobProfile
from models.specs import MapInputSpecs
from whatif.data_model import FixedInputSpecsDataSetModel
from whatif.job_oracle import JobProfileOracle
from sample_profiles import SampleProfiles, SampleDataSetModel, TERASORT_JOB_ID, WORDCOUNT_JOB_ID


class TestJobProfileOracle(unittest.TestCase):
    """作业预测测试"""

    def setUp(self):
        self.model = SampleDataSetModel()

        self.ts_conf = SampleProfiles.terasort_configuration()
        self.ts_conf.set_int(SampleDataSetModel.NUM_MAPPERS, 5)
        self.ts_conf.set_int(SampleDataSetModel.INPUT_SIZE, 20000000)
        self.ts_conf.set_boolean(SampleDataSetModel.INPUT_COMPR, False)
        self.ts_oracle = JobProfileOracle(SampleProfiles.terasort_job_profile())

        self.wc_conf = SampleProfiles.wordcount_configuration()
        self.wc_conf.set_int(SampleDataSetModel.NUM_MAPPERS, 15)
        self.wc_conf.set_int(SampleDataSetModel.INPUT_SIZE, 21252750)
        self.wc_conf.set_boolean(SampleDataSetModel.INPUT_COMPR, False)
        self.wc_oracle = JobProfileOracle(SampleProfiles.wordcount_job_profile())

    def test_terasort_whatif(self):
        """TeraSort 作业预测"""
        virtual = self.ts_oracle.whatif(self.ts_conf, self.model)

        self.assertEqual(virtual.job_id, f"virtual_{TERASORT_JOB_ID}")
        self.assertEqual(virtual.cluster_name, 'duke-cluster')
        self.assertEqual(virtual.job_inputs,
                         ['hdfs://hadoop21.cs.duke.edu:9000/usr/research/home/hero/tera/in'])
        self.assertEqual(virtual.get_counter(MRCounter.MAP_TASKS, 0), 5)
        self.assertEqual(virtual.get_counter(MRCounter.REDUCE_TASKS, 0), 1)
        self.assertEqual(len(virtual.map_profiles), 1)
        self.assertEqual(len(virtual.reduce_profiles), 1)

        map_prof = virtual.map_profiles[0]
        self.assertEqual(map_prof.task_id, f"virtual_map_0_{TERASORT_JOB_ID}")
        self.assertEqual(map_prof.num_tasks, 5)
        self.assertEqual(map_prof.get_counter(MRCounter.MAP_MAX_UNIQUE_GROUPS, 0), 1000000)

        red_prof = virtual.reduce_profiles[0]
        self.assertEqual(red_prof.get_counter(MRCounter.REDUCE_INPUT_RECORDS, 0), 1000000)
        self.assertAlmostEqual(red_prof.get_counter(MRCounter.REDUCE_SHUFFLE_BYTES, 0), 14437000, delta=10)
        self.assertGreater(virtual.avg_reduce_profile.get_timing(MRTaskPhase.SORT, 0.0), 0.0)

    def test_split_per_spec_matches_average(self):
        """每个分片单独预测与按平均规格预测的作业汇总一致"""
        for oracle, conf in ((self.ts_oracle, self.ts_conf), (self.wc_oracle, self.wc_conf)):
            averaged = oracle.whatif(conf, self.model)
            conf.set_boolean(SampleDataSetModel.USE_AVG_PROFILE, False)
            per_split = oracle.whatif(conf, self.model)

            self.assertEqual(len(per_split.map_profiles), conf.get_int(SampleDataSetModel.NUM_MAPPERS, 0))
            self.assertEqual(per_split.counters, averaged.counters)
            self.assertEqual(per_split.avg_map_profiles[0].counters,
                             averaged.avg_map_profiles[0].counters)
            self.assertEqual(per_split.reduce_profiles, averaged.reduce_profiles)

    def test_deterministic(self):
        """相同输入得到相同预测"""
        first = self.wc_oracle.whatif(self.wc_conf, self.model)
        second = JobProfileOracle(SampleProfiles.wordcount_job_profile()).whatif(self.wc_conf, self.model)

        self.assertEqual(first, second)
        self.assertEqual(first.job_id, f"virtual_{WORDCOUNT_JOB_ID}")

    def test_ignore_reducers(self):
        """忽略 Reduce 时只预测 Map"""
        self.ts_oracle.ignore_reducers = True
        virtual = self.ts_oracle.whatif(self.ts_conf, self.model)

        self.assertEqual(virtual.reduce_profiles, [])
        self.assertEqual(virtual.get_counter(MRCounter.REDUCE_TASKS, 0), 1)
        self.assertTrue(virtual.map_profiles[0].contains_counter(MRCounter.MAP_NUM_SPILLS))

    def test_map_only(self):
        """mapred.reduce.tasks 为 0"""
        self.ts_conf.set_int('mapred.reduce.tasks', 0)
        virtual = self.ts_oracle.whatif(self.ts_conf, self.model)

        self.assertEqual(virtual.reduce_profiles, [])
        self.assertEqual(virtual.get_counter(MRCounter.REDUCE_TASKS, -1), 0)
        self.assertTrue(virtual.map_profiles[0].contains_counter(MRCounter.HDFS_BYTES_WRITTEN))

        outputs = self.model.generate_job_output_specs(self.ts_conf, virtual)
        self.assertEqual(len(outputs), 1)
        self.assertEqual(outputs[0].num_tasks, 5)
        self.assertEqual(outputs[0].records, 200000)

    def test_more_reducers(self):
        """Reduce 数增加时每个 Reduce 的输入减少"""
        baseline = self.ts_oracle.whatif(self.ts_conf, self.model)
        self.ts_conf.set_int('mapred.reduce.tasks', 4)
        virtual = self.ts_oracle.whatif(self.ts_conf, self.model)

        red_prof = virtual.reduce_profiles[0]
        self.assertEqual(red_prof.num_tasks, 4)
        self.assertEqual(red_prof.get_counter(MRCounter.REDUCE_INPUT_RECORDS, 0), 250000)
        self.assertLess(red_prof.get_timing(MRTaskPhase.REDUCE, 0.0),
                        baseline.reduce_profiles[0].get_timing(MRTaskPhase.REDUCE, 0.0))

    def test_input_dirs_fall_back_to_source(self):
        """配置中没有输入路径时沿用源作业的输入路径"""
        self.ts_conf.unset('mapred.input.dir')
        virtual = self.ts_oracle.whatif(self.ts_conf, self.model)
        self.assertEqual(virtual.job_inputs, self.ts_oracle.source_profile.job_inputs)

    def test_unknown_input_index(self):
        """输入规格引用不存在的输入路径"""
        model = FixedInputSpecsDataSetModel([MapInputSpecs(3, 1, 1000)])
        with self.assertRaises(ConfigurationInconsistency):
            self.ts_oracle.whatif(self.ts_conf, model)

    def test_missing_reduce_profile(self):
        """源作业没有 Reduce 剖析却需要预测 Reduce"""
        source = JobProfile('job_1_0001')
        source.add_map_profile(SampleProfiles.terasort_map_profile())
        source.update_profile()

        with self.assertRaises(PreconditionViolation):
            JobProfileOracle(source).whatif(self.ts_conf, self.model)

    def test_empty_source_profile(self):
        """源作业没有任何 Map 剖析时即使不预测 Reduce 也不能生成虚拟作业"""
        source = JobProfile('job_empty')
        source.update_profile()
        model = FixedInputSpecsDataSetModel.from_job_profile(source)

        self.ts_conf.set_int('mapred.reduce.tasks', 0)
        with self.assertRaises(PreconditionViolation):
            JobProfileOracle(source).whatif(self.ts_conf, model)

        self.ts_conf.set_int('mapred.reduce.tasks', 1)
        oracle = JobProfileOracle(source)
        oracle.ignore_reducers = True
        with self.assertRaises(PreconditionViolation):
            oracle.whatif(self.ts_conf, self.model)


if __name__ == '__main__':
    unittest.main()
