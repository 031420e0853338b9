"""
剖析指标枚举定义

四类封闭枚举构成整个剖析模型的指标词汇表，声明顺序即聚合与打印时的遍历顺序。
"""

from enum import Enum


class _DescribedEnum(Enum):
    """带描述信息的枚举基类"""

    def __new__(cls, description):
        # 成员值按声明顺序自动编号，描述单独保存
        value = len(cls.__members__) + 1
        obj = object.__new__(cls)
        obj._value_ = value
        obj.description = description
        return obj

    def __str__(self):
        return self.name

    @classmethod
    def from_name(cls, name):
        """
        按名称查找枚举成员
        :param name: 成员名称（不区分大小写）
        :return: 枚举成员
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"未知的{cls.__name__}名称: {name}")


class MRCounter(_DescribedEnum):
    """计数器（整型数据量）"""
    MAP_TASKS = "Number of map tasks"
    REDUCE_TASKS = "Number of reduce tasks"
    MAP_INPUT_RECORDS = "Map input records"
    MAP_INPUT_BYTES = "Map input bytes"
    MAP_OUTPUT_RECORDS = "Map output records"
    MAP_OUTPUT_BYTES = "Map output bytes"
    MAP_SKIPPED_RECORDS = "Map skipped records"
    MAP_NUM_SPILLS = "Number of spills"
    MAP_NUM_SPILL_MERGES = "Number of merge rounds"
    MAP_RECS_PER_BUFF_SPILL = "Number of records in buffer per spill"
    MAP_BUFF_SPILL_SIZE = "Buffer size (bytes) per spill"
    MAP_RECORDS_PER_SPILL = "Number of records in spill file"
    MAP_SPILL_SIZE = "Spill file size (bytes)"
    MAP_MAX_UNIQUE_GROUPS = "Max number of unique groups"
    REDUCE_SHUFFLE_BYTES = "Shuffle size (bytes)"
    REDUCE_INPUT_GROUPS = "Reduce input groups (unique keys)"
    REDUCE_INPUT_RECORDS = "Reduce input records"
    REDUCE_INPUT_BYTES = "Reduce input bytes"
    REDUCE_OUTPUT_RECORDS = "Reduce output records"
    REDUCE_OUTPUT_BYTES = "Reduce output bytes"
    REDUCE_SKIPPED_RECORDS = "Reduce skipped records"
    REDUCE_SKIPPED_GROUPS = "Reduce skipped groups"
    COMBINE_INPUT_RECORDS = "Combine input records"
    COMBINE_OUTPUT_RECORDS = "Combine output records"
    SPILLED_RECORDS = "Total spilled records"
    FILE_BYTES_READ = "Bytes read from local file system"
    FILE_BYTES_WRITTEN = "Bytes written to local file system"
    HDFS_BYTES_READ = "Bytes read from HDFS"
    HDFS_BYTES_WRITTEN = "Bytes written to HDFS"


class MRStatistics(_DescribedEnum):
    """统计量（无量纲比例）"""
    INPUT_PAIR_WIDTH = "Input data pair width"
    REDUCE_PAIRS_PER_GROUP = "Number of reduce pairs per group"
    MAP_SIZE_SEL = "Map selectivity in terms of size"
    MAP_PAIRS_SEL = "Map selectivity in terms of records"
    REDUCE_SIZE_SEL = "Reduce selectivity in terms of size"
    REDUCE_PAIRS_SEL = "Reduce selectivity in terms of records"
    COMBINE_SIZE_SEL = "Combiner selectivity in terms of size"
    COMBINE_PAIRS_SEL = "Combiner selectivity in terms of records"
    INPUT_COMPRESS_RATIO = "Input data compression ratio"
    INTERM_COMPRESS_RATIO = "Intermediate data compression ratio"
    OUT_COMPRESS_RATIO = "Output data compression ratio"
    STARTUP_MEM = "Startup memory (bytes)"
    SETUP_MEM = "Setup memory (bytes)"
    MAP_MEM_PER_RECORD = "Memory per map record (bytes)"
    REDUCE_MEM_PER_RECORD = "Memory per reduce record (bytes)"
    CLEANUP_MEM = "Cleanup memory (bytes)"


class MRCostFactors(_DescribedEnum):
    """代价因子（单位字节或单位记录的纳秒数）"""
    READ_HDFS_IO_COST = "I/O cost for reading from HDFS per byte"
    WRITE_HDFS_IO_COST = "I/O cost for writing to HDFS per byte"
    READ_LOCAL_IO_COST = "I/O cost for reading from local disk per byte"
    WRITE_LOCAL_IO_COST = "I/O cost for writing to local disk per byte"
    NETWORK_COST = "Cost for network transfers per byte"
    MAP_CPU_COST = "CPU cost for executing the Mapper per record"
    REDUCE_CPU_COST = "CPU cost for executing the Reducer per record"
    COMBINE_CPU_COST = "CPU cost for executing the Combiner per record"
    PARTITION_CPU_COST = "CPU cost for partitioning per record"
    SERDE_CPU_COST = "CPU cost for serializing/deserializing per record"
    SORT_CPU_COST = "CPU cost for sorting per record"
    MERGE_CPU_COST = "CPU cost for merging per record"
    INPUT_UNCOMPRESS_CPU_COST = "CPU cost for uncompressing the input per byte"
    INTERM_UNCOMPRESS_CPU_COST = "CPU cost for uncompressing map output per byte"
    INTERM_COMPRESS_CPU_COST = "CPU cost for compressing map output per byte"
    OUTPUT_COMPRESS_CPU_COST = "CPU cost for compressing the output per byte"
    SETUP_CPU_COST = "CPU cost of setting up a task"
    CLEANUP_CPU_COST = "CPU cost of cleaning up a task"


class MRTaskPhase(_DescribedEnum):
    """任务执行阶段"""
    SHUFFLE = "Shuffle"
    SORT = "Sort"
    SETUP = "Setup"
    READ = "Read"
    MAP = "Map"
    REDUCE = "Reduce"
    COLLECT = "Collect"
    WRITE = "Write"
    SPILL = "Spill"
    MERGE = "Merge"
    CLEANUP = "Cleanup"
