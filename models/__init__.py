"""
MapReduce What-If Engine - 剖析数据模型
"""

from .enums import MRCounter, MRStatistics, MRCostFactors, MRTaskPhase
from .errors import WhatIfError, PreconditionViolation, ConfigurationInconsistency
from .exec_profile import ExecutionProfile
from .task_profile import TaskProfile, MapProfile, ReduceProfile
from .job_profile import JobProfile
from .specs import DataLocality, MapInputSpecs, ReduceShuffleSpecs, JobOutputSpecs

__all__ = ['MRCounter', 'MRStatistics', 'MRCostFactors', 'MRTaskPhase',
           'WhatIfError', 'PreconditionViolation', 'ConfigurationInconsistency',
           'ExecutionProfile', 'TaskProfile', 'MapProfile', 'ReduceProfile', 'JobProfile',
           'DataLocality', 'MapInputSpecs', 'ReduceShuffleSpecs', 'JobOutputSpecs']
