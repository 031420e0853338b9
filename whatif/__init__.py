"""
MapReduce What-If Engine - 剖析预测
"""

from models.errors import WhatIfError, PreconditionViolation, ConfigurationInconsistency
from .merge_simulator import MergeSimulator, MergeResult
from .task_oracle import TaskProfileOracle
from .map_oracle import MapProfileOracle
from .reduce_oracle import ReduceProfileOracle
from .job_oracle import JobProfileOracle
from .data_model import DataSetModel, FixedInputSpecsDataSetModel, SplitSizesDataSetModel
from .profile_utils import ProfileUtils

__all__ = ['WhatIfError', 'PreconditionViolation', 'ConfigurationInconsistency',
           'MergeSimulator', 'MergeResult', 'TaskProfileOracle', 'MapProfileOracle',
           'ReduceProfileOracle', 'JobProfileOracle', 'DataSetModel',
           'FixedInputSpecsDataSetModel', 'SplitSizesDataSetModel', 'ProfileUtils']
