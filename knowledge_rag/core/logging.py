"""
Logging Configuration
"""

import logging
import sys
import json
import re
from pathlib import Path
from typing import Optional, Any, Mapping

from knowledge_rag.config.settings import settings


class VectorFieldFilter(logging.Filter):
    """
    屏蔽日志中的向量大字段，避免输出巨型数组导致刷屏。
    会将以下键名的值替换为占位符：embedding, embeddings, vector, query_embedding。
    """

    SENSITIVE_KEYS = {"embedding", "embeddings", "vector", "query_embedding"}
    _INLINE_PATTERN = re.compile(r'"(embedding|embeddings|vector|query_embedding)"\s*:\s*\[(?:[^\]]|\n)*\]')

    def _redact_obj(self, obj: Any):
        if isinstance(obj, Mapping):
            redacted = {}
            for k, v in obj.items():
                if k in self.SENSITIVE_KEYS:
                    dim = len(v) if isinstance(v, (list, tuple)) else None
                    redacted[k] = f"<vector dim={dim if dim is not None else '?'}>"
                else:
                    redacted[k] = self._redact_obj(v)
            return redacted
        if isinstance(obj, (list, tuple)) and len(obj) > 16 and all(
            isinstance(x, (int, float)) for x in obj[:16]
        ):
            return f"<vector dim={len(obj)}>"
        return obj

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, Mapping):
            record.msg = self._redact_obj(record.msg)
        if isinstance(record.args, tuple) and record.args:
            record.args = tuple(self._redact_obj(a) for a in record.args)
        if isinstance(record.msg, str) and any(key in record.msg for key in self.SENSITIVE_KEYS):
            try:
                data = json.loads(record.msg)
                record.msg = json.dumps(self._redact_obj(data), ensure_ascii=False)
            except ValueError:
                # 非严格JSON：使用正则替换大数组
                record.msg = self._INLINE_PATTERN.sub(r'"\1": "<vector>"', record.msg)
        return True


def _tune_external_loggers():
    # 降低第三方库噪音，防止请求/响应体（含向量）被打印
    for name in ("urllib3", "httpx", "minio", "sqlalchemy", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("celery").setLevel(logging.INFO)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None
):
    """
    配置日志系统

    Args:
        log_level: 日志级别（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        log_file: 日志文件路径
        log_format: 日志格式
    """
    level = log_level or settings.LOG_LEVEL
    log_path = log_file or settings.LOG_FILE
    fmt = log_format or settings.LOG_FORMAT

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    vector_filter = VectorFieldFilter()

    # 控制台处理器
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(fmt))
    console_handler.addFilter(vector_filter)
    root_logger.addHandler(console_handler)

    # 文件处理器
    if log_path:
        try:
            Path(log_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(fmt))
            file_handler.addFilter(vector_filter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"无法创建日志文件 {log_path}: {e}")

    _tune_external_loggers()


# 初始化日志
setup_logging()

# 创建全局日志记录器
logger = logging.getLogger('knowledge-rag')
