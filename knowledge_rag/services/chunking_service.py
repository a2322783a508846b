"""
Text Chunking Service
按段落累积、超长段落滑动窗口的 token 感知分块
"""

import re
from functools import lru_cache
from typing import List

import tiktoken

from knowledge_rag.config.settings import settings

PARAGRAPH_SEPARATOR = "\n\n"
_PARAGRAPH_SPLIT = re.compile(r"\n{2,}")


@lru_cache(maxsize=4)
def get_encoding(name: str = None) -> "tiktoken.Encoding":
    """获取（并缓存）分词器"""
    return tiktoken.get_encoding(name or settings.TOKENIZER_ENCODING)


def count_tokens(text: str) -> int:
    """计算文本的 token 数"""
    if not text:
        return 0
    return len(get_encoding().encode(text))


def chunk_text(
    text: str,
    max_tokens: int = None,
    overlap_tokens: int = None,
) -> List[str]:
    """
    将长文本切分为有序、非空、不超过 max_tokens 的文本块

    - 以空行切分段落，段落依次累积到当前块，超出上限时先输出当前块
    - 单个段落超过上限时，先输出当前块，再以 max_tokens 为窗口、
      max(1, max_tokens - overlap_tokens) 为步长滑动切分
    - 不同段落之间的块边界没有重叠
    - 若最终没有任何块而输入非空白，返回去除首尾空白后的原文
    """
    max_tokens = max_tokens or settings.CHUNK_MAX_TOKENS
    overlap_tokens = settings.CHUNK_OVERLAP_TOKENS if overlap_tokens is None else overlap_tokens
    if max_tokens <= 0:
        raise ValueError("max_tokens 必须大于0")

    encoding = get_encoding()
    separator_tokens = encoding.encode(PARAGRAPH_SEPARATOR)
    step = max(1, max_tokens - overlap_tokens)

    chunks: List[str] = []
    current: List[int] = []

    def flush():
        if not current:
            return
        decoded = encoding.decode(current).strip()
        if decoded:
            chunks.append(decoded)
        current.clear()

    paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT.split(text or "")]
    for paragraph in paragraphs:
        if not paragraph:
            continue
        tokens = encoding.encode(paragraph)

        if len(tokens) > max_tokens:
            flush()
            start = 0
            while start < len(tokens):
                window = tokens[start:start + max_tokens]
                decoded = encoding.decode(window).strip()
                if decoded:
                    chunks.append(decoded)
                if len(window) < max_tokens:
                    break
                start += step
            continue

        if len(current) + len(tokens) > max_tokens:
            flush()
        current.extend(tokens)
        current.extend(separator_tokens)

    flush()

    if not chunks and text and text.strip():
        return [text.strip()]
    return chunks
