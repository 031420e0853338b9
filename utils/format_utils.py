"""
格式化工具类
"""


class FormatUtils:
    """数值与剖析映射的文本格式化"""

    @staticmethod
    def format_number(value, decimals=0):
        """带千分位的数值格式化"""
        if decimals <= 0:
            return f"{round(value):,}"
        return f"{value:,.{decimals}f}"

    @staticmethod
    def format_enum_map(mapping, decimals=0):
        """
        将枚举键映射格式化为文本行，按枚举声明顺序输出
        :param mapping: {枚举成员: 数值}
        :param decimals: 小数位数
        :return: 行列表
        """
        lines = []
        for key in sorted(mapping, key=lambda k: k.value):
            lines.append(f"\t{key.name}\t{FormatUtils.format_number(mapping[key], decimals)}")
        return lines

    @staticmethod
    def format_duration(duration_ms):
        """毫秒时长转可读字符串"""
        total_seconds = duration_ms / 1000.0
        if total_seconds < 60:
            return f"{total_seconds:.2f} sec"
        minutes, seconds = divmod(total_seconds, 60)
        if minutes < 60:
            return f"{int(minutes)} min {seconds:.0f} sec"
        hours, minutes = divmod(minutes, 60)
        return f"{int(hours)} h {int(minutes)} min {seconds:.0f} sec"
