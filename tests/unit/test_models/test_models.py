"""
Test Models
"""

import pytest
from sqlalchemy.exc import IntegrityError

from knowledge_rag.models.chunk import DocumentChunk
from knowledge_rag.models.document import Document
from knowledge_rag.models.knowledge_base import KnowledgeBase


def test_knowledge_base_defaults(db_session, make_user):
    """测试知识库默认值"""
    alice = make_user("alice")
    kb = KnowledgeBase(name="kb", user_id=alice.id)
    db_session.add(kb)
    db_session.commit()

    assert kb.visibility == "private"
    assert kb.organization_id is None
    assert kb.created_at is not None


def test_knowledge_base_name_unique_per_owner(db_session, make_user):
    alice = make_user("alice")
    db_session.add(KnowledgeBase(name="kb", user_id=alice.id))
    db_session.commit()

    db_session.add(KnowledgeBase(name="kb", user_id=alice.id))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_document_defaults_and_chunk_uniqueness(db_session, make_user):
    """文档默认 pending；同一文档的分块索引唯一"""
    alice = make_user("alice")
    kb = KnowledgeBase(name="kb", user_id=alice.id)
    db_session.add(kb)
    db_session.flush()
    document = Document(
        knowledge_base_id=kb.id,
        file_name="a.txt",
        file_size=1,
        mime_type="text/plain",
        storage_key="knowledge-bases/1/x/a.txt",
    )
    db_session.add(document)
    db_session.commit()

    assert document.status == "pending"
    assert (document.chunk_count, document.embedding_tokens) == (0, 0)
    assert document.to_dict()["storage_key"] == "knowledge-bases/1/x/a.txt"

    db_session.add_all([
        DocumentChunk(document_id=document.id, knowledge_base_id=kb.id, chunk_index=0, content="a", embedding=[1.0]),
        DocumentChunk(document_id=document.id, knowledge_base_id=kb.id, chunk_index=0, content="b", embedding=[1.0]),
    ])
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
