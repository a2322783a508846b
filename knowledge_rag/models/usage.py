"""
Embedding Usage Log Model
"""

from sqlalchemy import Column, String, Integer, JSON
from knowledge_rag.models.base import BaseModel


class EmbeddingUsageLog(BaseModel):
    """向量化用量记录"""
    __tablename__ = "embedding_usage_logs"

    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")
    organization_id = Column(Integer, nullable=True, index=True, comment="组织ID")
    agent_id = Column(Integer, nullable=True, comment="智能体ID")
    knowledge_base_id = Column(Integer, nullable=True, index=True, comment="知识库ID")
    document_id = Column(Integer, nullable=True, comment="文档ID")
    operation = Column(String(20), nullable=False, comment="操作: ingest/query/delete")
    tokens = Column(Integer, nullable=False, default=0, comment="token数量")
    model = Column(String(100), nullable=True, comment="向量模型")
    # SQLAlchemy Declarative 保留名冲突，使用列名 metadata、属性名 meta
    meta = Column("metadata", JSON, comment="元数据JSON")
