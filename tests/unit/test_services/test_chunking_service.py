"""
Test Chunking Service
"""

import pytest

from knowledge_rag.services.chunking_service import chunk_text, count_tokens, get_encoding


def test_short_text_is_single_trimmed_chunk():
    """短文本整体作为一个块，去掉首尾空白"""
    assert chunk_text("  Hello world, this is a short note.  \n", max_tokens=50) == [
        "Hello world, this is a short note."
    ]


def test_blank_input_produces_no_chunks():
    """空白输入不产生任何块"""
    assert chunk_text("", max_tokens=50) == []
    assert chunk_text("   \n\n \n", max_tokens=50) == []


def test_small_paragraphs_are_accumulated():
    """多个小段落累积到同一块，以空行连接"""
    text = "First paragraph.\n\n\n\nSecond paragraph."
    assert chunk_text(text, max_tokens=100) == ["First paragraph.\n\nSecond paragraph."]


def test_paragraphs_split_when_budget_exceeded():
    """超出上限时在段落边界切分，且保持原有顺序"""
    paragraphs = [f"paragraph number {i} has some words in it" for i in range(6)]
    text = "\n\n".join(paragraphs)
    budget = count_tokens(paragraphs[0]) + 2

    chunks = chunk_text(text, max_tokens=budget, overlap_tokens=0)

    assert chunks == paragraphs


def test_long_paragraph_uses_overlapping_windows():
    """单个超长段落按窗口滑动切分，步长为 max_tokens - overlap_tokens"""
    text = " ".join(f"w{i}" for i in range(300))
    encoding = get_encoding()
    tokens = encoding.encode(text)

    chunks = chunk_text(text, max_tokens=40, overlap_tokens=10)

    assert len(chunks) > 1
    assert chunks[0] == encoding.decode(tokens[:40]).strip()
    assert chunks[1] == encoding.decode(tokens[30:70]).strip()
    assert chunks[0].startswith("w0 ")
    assert chunks[-1].endswith("w299")


def test_long_paragraph_flushes_pending_chunk_first():
    """超长段落之前累积的内容先单独输出"""
    intro = "A short introduction."
    long_paragraph = " ".join(f"token{i}" for i in range(200))
    outro = "A short conclusion."

    chunks = chunk_text("\n\n".join([intro, long_paragraph, outro]), max_tokens=30, overlap_tokens=5)

    assert chunks[0] == intro
    assert chunks[1].startswith("token0 ")
    assert chunks[-1] == outro
    assert len(chunks) > 3


def test_chunks_are_non_empty():
    text = "\n\n".join(["alpha beta gamma"] * 20)
    chunks = chunk_text(text, max_tokens=12, overlap_tokens=2)
    assert chunks
    assert all(chunk.strip() == chunk and chunk for chunk in chunks)


def test_negative_budget_is_rejected():
    with pytest.raises(ValueError):
        chunk_text("anything", max_tokens=-1)
