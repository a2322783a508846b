"""
Ollama Dependencies
"""

from functools import lru_cache

from knowledge_rag.config.database import SessionLocal
from knowledge_rag.services.embedding_service import EmbeddingService
from knowledge_rag.services.usage_service import UsageService

@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    """获取向量服务（进程内单例）"""
    return EmbeddingService()

def get_usage_service() -> UsageService:
    """获取用量记录服务"""
    return UsageService(SessionLocal)
