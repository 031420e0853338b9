"""
剖析模型与预测引擎共用的异常类型
"""


class WhatIfError(Exception):
    """预测引擎异常基类"""


class PreconditionViolation(WhatIfError):
    """源剖析为空，或缺少无默认值的指标"""


class ConfigurationInconsistency(WhatIfError, ValueError):
    """调用方输入前后不一致（例如待比较的两组剖析数量不同）"""
