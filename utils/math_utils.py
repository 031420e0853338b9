"""
数值计算工具

预测公式中的取整语义与剖析数据来源（JVM 任务计数器）保持一致：
round 为四舍五入（.5 向上），整型转换为向零截断。
"""

import math

# 64位有符号长整型上限，截断溢出时使用
LONG_MAX = (1 << 63) - 1


class MathUtils:
    """数值计算工具"""

    @staticmethod
    def round_half_up(value):
        """四舍五入到整数（.5 向正无穷方向）"""
        if math.isnan(value):
            return 0
        if math.isinf(value):
            return LONG_MAX if value > 0 else -LONG_MAX
        return int(math.floor(value + 0.5))

    @staticmethod
    def trunc(value):
        """向零截断为整数，NaN 视为 0，无穷大截断到长整型边界"""
        if isinstance(value, int):
            return value
        if math.isnan(value):
            return 0
        if math.isinf(value):
            return LONG_MAX if value > 0 else -LONG_MAX
        return int(value)

    @staticmethod
    def safe_divide(numerator, denominator, default=0.0):
        """安全除法，避免除零"""
        if denominator == 0:
            return default
        return numerator / denominator

    @staticmethod
    def log_floor(value):
        """
        用于选择率修正的自然对数
        :param value: 数据量（记录数或字节数）
        :return: ln(value)，当 value 不大于 e 时取 1
        """
        if value <= math.e:
            return 1.0
        return math.log(value)
