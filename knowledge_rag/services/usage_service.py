"""
Usage Service
向量化用量记录：写入失败只记录日志，不影响主流程
"""

from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from knowledge_rag.core.constants import USAGE_OPERATIONS
from knowledge_rag.core.logging import logger
from knowledge_rag.models.usage import EmbeddingUsageLog


class UsageService:
    """用量记录服务，使用独立会话，避免影响调用方的事务"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(
        self,
        user_id: int,
        operation: str,
        tokens: int,
        model: Optional[str] = None,
        organization_id: Optional[int] = None,
        agent_id: Optional[int] = None,
        knowledge_base_id: Optional[int] = None,
        document_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """记录一次用量，成功返回 True"""
        if operation not in USAGE_OPERATIONS:
            logger.warning(f"未知的用量操作类型，跳过记录: {operation}")
            return False

        db = self.session_factory()
        try:
            db.add(EmbeddingUsageLog(
                user_id=user_id,
                organization_id=organization_id,
                agent_id=agent_id,
                knowledge_base_id=knowledge_base_id,
                document_id=document_id,
                operation=operation,
                tokens=tokens,
                model=model,
                meta=metadata or {},
            ))
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.warning(
                f"记录向量用量失败（忽略）: user_id={user_id}, operation={operation}, tokens={tokens}, {e}"
            )
            return False
        finally:
            db.close()
