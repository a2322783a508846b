"""
File Utils
"""

import base64
import hashlib
import mimetypes
import re
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from knowledge_rag.core.constants import STORAGE_KEY_PREFIX, DEFAULT_STORAGE_FILE_NAME

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")
_DASH_RUN = re.compile(r"-+")
_SLUG_UNSAFE = re.compile(r"[^a-z0-9]+")


def sanitize_file_name(file_name: str) -> str:
    """把文件名规整为对象存储安全的形式，空结果回退为 document"""
    sanitized = _UNSAFE_CHARS.sub("-", file_name or "")
    sanitized = _DASH_RUN.sub("-", sanitized).strip("-")
    sanitized = sanitized.replace("-.", ".")
    return sanitized or DEFAULT_STORAGE_FILE_NAME


def build_storage_key(knowledge_base_id: int, document_key: str, file_name: str) -> str:
    """生成对象存储键: knowledge-bases/{kb_id}/{document_key}/{safe_name}"""
    return f"{STORAGE_KEY_PREFIX}/{knowledge_base_id}/{document_key}/{sanitize_file_name(file_name)}"


def compute_checksum(content: bytes) -> str:
    """SHA-256 校验和（base64 编码）"""
    return base64.b64encode(hashlib.sha256(content).digest()).decode("ascii")


def get_file_extension(file_name: str) -> str:
    """获取文件扩展名（小写，不含点）"""
    return Path(file_name or "").suffix.lstrip(".").lower()


def guess_mime_type(file_name: str, declared: Optional[str] = None) -> str:
    """优先使用客户端声明的类型，否则根据扩展名推断"""
    if declared and declared != "application/octet-stream":
        return declared
    mime_type, _ = mimetypes.guess_type(file_name or "")
    return mime_type or declared or "application/octet-stream"


def build_web_file_name(title: Optional[str], url: str, now: Optional[datetime] = None) -> str:
    """网页导入文件名: 标题（无标题时用域名+路径）的 slug，最多60字符，再加时间戳"""
    parsed = urlparse(url)
    fallback = f"{parsed.hostname or ''}{parsed.path or ''}".strip()
    base = (title or "").strip() or fallback or "web-page"
    slug = _SLUG_UNSAFE.sub("-", base.lower()).strip("-")[:60]
    timestamp = re.sub(r"[:.]", "-", (now or datetime.utcnow()).isoformat(timespec="milliseconds"))
    return f"{slug or 'web-page'}-{timestamp}.txt"
