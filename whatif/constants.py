"""
Hadoop 参数名与预测模型默认值
"""

# ---- Hadoop 参数 ----
IO_SORT_MB = 'io.sort.mb'
IO_SORT_SPILL_PERCENT = 'io.sort.spill.percent'
IO_SORT_RECORD_PERCENT = 'io.sort.record.percent'
IO_SORT_FACTOR = 'io.sort.factor'
MIN_NUM_SPILLS_FOR_COMBINE = 'min.num.spills.for.combine'
MAPRED_REDUCE_TASKS = 'mapred.reduce.tasks'
MAPRED_INMEM_MERGE_THRESHOLD = 'mapred.inmem.merge.threshold'
SHUFFLE_INPUT_BUFFER_PERCENT = 'mapred.job.shuffle.input.buffer.percent'
SHUFFLE_MERGE_PERCENT = 'mapred.job.shuffle.merge.percent'
REDUCE_INPUT_BUFFER_PERCENT = 'mapred.job.reduce.input.buffer.percent'
MAPREDUCE_COMBINE_CLASS = 'mapreduce.combine.class'
MAPRED_COMPRESS_MAP_OUTPUT = 'mapred.compress.map.output'
MAPRED_OUTPUT_COMPRESS = 'mapred.output.compress'
MAPRED_INPUT_DIR = 'mapred.input.dir'
MAPRED_CHILD_JAVA_OPTS = 'mapred.child.java.opts'
STARFISH_USE_COMBINER = 'starfish.use.combiner'

DEFAULT_IO_SORT_MB = 100
DEFAULT_IO_SORT_SPILL_PERCENT = 0.8
DEFAULT_IO_SORT_RECORD_PERCENT = 0.05
DEFAULT_IO_SORT_FACTOR = 10
DEFAULT_MIN_NUM_SPILLS_FOR_COMBINE = 3
DEFAULT_REDUCE_TASKS = 1
DEFAULT_INMEM_MERGE_THRESHOLD = 1000
DEFAULT_SHUFFLE_INPUT_BUFFER_PERCENT = 0.70
DEFAULT_SHUFFLE_MERGE_PERCENT = 0.66
DEFAULT_REDUCE_INPUT_BUFFER_PERCENT = 0.0
DEFAULT_USE_COMBINER = True

# ---- 模型默认值 ----
DEFAULT_TASK_MEM = 200 << 20
DEFAULT_MAX_UNIQUE_GROUPS = 1
DEFAULT_PAIR_WIDTH = 100
DEFAULT_RED_PAIRS_PER_GROUP = 1
DEFAULT_SELECTIVITY = 1.0
DEFAULT_COMPRESS_RATIO = 0.3
DEFAULT_MEMORY = 10 << 20
DEFAULT_MEM_PER_RECORD = 100
DEFAULT_UNCOMPRESS_CPU_COST = 100.0
DEFAULT_COMPRESS_CPU_COST = 150.0
DEFAULT_COMBINE_CPU_COST = 4000.0

NS_PER_MS = 1000000.0

# 每条记录在排序缓冲区元数据中占用的字节数
RECORD_ACCOUNTING_BYTES = 16

# Shuffle 段小于缓冲区该比例时保留在内存
MAX_SINGLE_SHUFFLE_SEG_FRACTION = 0.25

VIRTUAL = 'virtual'
