"""
配置加载模块
"""

import logging
import os
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

# validate() 检查的百分比参数，取值必须在 [0, 1]
PERCENT_KEYS = (
    'io.sort.spill.percent',
    'io.sort.record.percent',
    'mapred.job.shuffle.input.buffer.percent',
    'mapred.job.shuffle.merge.percent',
    'mapred.job.reduce.input.buffer.percent',
)

TRUE_VALUES = ('true',)
FALSE_VALUES = ('false',)


class Configuration:
    """
    Hadoop 作业配置

    扁平的字符串键值表，值统一以字符串保存，读取时按需转换类型。
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self._options: Dict[str, str] = {}
        for key, value in (options or {}).items():
            self.set(key, value)

    # ---- 读取 ----

    def get(self, key, default=None):
        return self._options.get(key, default)

    def get_int(self, key, default: int) -> int:
        return self._get_number(key, default, int)

    def get_long(self, key, default: int) -> int:
        return self._get_number(key, default, int)

    def get_float(self, key, default: float) -> float:
        return self._get_number(key, default, float)

    def get_boolean(self, key, default: bool) -> bool:
        """只接受 true / false（不区分大小写），其余取默认值"""
        value = self._options.get(key)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        logger.warning("配置项 %s 的值 %r 不是布尔值，使用默认值 %s", key, value, default)
        return default

    def _get_number(self, key, default, convert):
        value = self._options.get(key)
        if value is None:
            return default
        try:
            return convert(value.strip())
        except ValueError:
            logger.warning("配置项 %s 的值 %r 无法解析，使用默认值 %s", key, value, default)
            return default

    # ---- 写入 ----

    def set(self, key, value):
        if value is None:
            self._options.pop(key, None)
        elif isinstance(value, bool):
            self._options[key] = 'true' if value else 'false'
        else:
            self._options[key] = str(value)

    def set_int(self, key, value: int):
        self._options[key] = str(int(value))

    def set_float(self, key, value: float):
        self._options[key] = str(float(value))

    def set_boolean(self, key, value: bool):
        self._options[key] = 'true' if value else 'false'

    def unset(self, key):
        self._options.pop(key, None)

    # ---- 其他 ----

    def contains(self, key) -> bool:
        return key in self._options

    def keys(self):
        return sorted(self._options)

    def copy(self):
        return Configuration(dict(self._options))

    def to_dict(self):
        return dict(self._options)

    def validate(self):
        """验证已设置的参数取值"""
        errors = []

        for key in PERCENT_KEYS:
            if self.contains(key):
                value = self.get_float(key, -1.0)
                if not 0.0 <= value <= 1.0:
                    errors.append(f"{key} 必须在 [0, 1] 之间: {self.get(key)}")

        if self.contains('io.sort.factor') and self.get_int('io.sort.factor', 0) < 2:
            errors.append(f"io.sort.factor 必须不小于2: {self.get('io.sort.factor')}")

        if self.contains('io.sort.mb') and self.get_int('io.sort.mb', 0) <= 0:
            errors.append(f"io.sort.mb 必须为正数: {self.get('io.sort.mb')}")

        if self.contains('mapred.reduce.tasks') and self.get_int('mapred.reduce.tasks', -1) < 0:
            errors.append(f"mapred.reduce.tasks 不能为负数: {self.get('mapred.reduce.tasks')}")

        if self.contains('mapred.inmem.merge.threshold') \
                and self.get_int('mapred.inmem.merge.threshold', 0) <= 0:
            errors.append(f"mapred.inmem.merge.threshold 必须为正数: "
                          f"{self.get('mapred.inmem.merge.threshold')}")

        if errors:
            raise ValueError(f"配置验证失败:\n" + "\n".join(errors))

        return True

    def __eq__(self, other):
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._options == other._options

    __hash__ = None

    def __str__(self):
        """打印配置信息"""
        lines = ["=== 作业配置 ==="]
        lines.extend(f"{key}: {self._options[key]}" for key in self.keys())
        lines.append("================")
        return "\n".join(lines)


class ConfigLoader:
    """配置加载器"""

    @staticmethod
    def load(config_path, validate=True):
        """
        加载配置
        :param config_path: YAML 配置文件路径
        :param validate: 是否调用 Configuration.validate
        :return: Configuration对象
        """
        config_dict = ConfigLoader._load_yaml(config_path)
        return ConfigLoader.from_dict(config_dict, validate)

    @staticmethod
    def from_dict(config_dict, validate=True):
        """
        从字典创建配置，支持扁平键值或 hadoop: 分节，嵌套映射以点号展开
        :param config_dict: 配置字典
        :param validate: 是否调用 Configuration.validate
        :return: Configuration对象
        """
        config_dict = config_dict or {}
        if 'hadoop' in config_dict and isinstance(config_dict['hadoop'], dict):
            config_dict = config_dict['hadoop']

        config = Configuration(ConfigLoader._flatten(config_dict))
        logger.debug("加载了 %d 个配置项", len(config.keys()))

        if validate:
            config.validate()

        return config

    @staticmethod
    def _flatten(mapping, prefix=''):
        flat = {}
        for key, value in mapping.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, dict):
                flat.update(ConfigLoader._flatten(value, full_key))
            else:
                flat[full_key] = value
        return flat

    @staticmethod
    def _load_yaml(file_path):
        """加载YAML配置文件"""
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"配置文件不存在: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
