"""
Search Service
向量相似度检索：余弦距离排序，仅检索已完成文档、调用方授权的知识库
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from sqlalchemy.orm import Session

from knowledge_rag.config.settings import settings
from knowledge_rag.core.constants import DOC_STATUS_COMPLETED
from knowledge_rag.core.logging import logger
from knowledge_rag.models.chunk import DocumentChunk
from knowledge_rag.models.document import Document


class SearchService:
    """检索服务（无副作用，可与摄取并发执行）"""

    def __init__(self, db: Session):
        self.db = db

    def search(
        self,
        knowledge_base_ids: Iterable[int],
        query_embedding: Sequence[float],
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        按与查询向量的余弦距离升序返回分块

        调用方必须已确认 knowledge_base_ids 可读，这里不再校验权限。
        score = max(0, 1 - distance)；距离相同时保持分块ID顺序。
        """
        kb_ids = sorted(set(knowledge_base_ids))
        limit = limit or settings.SEARCH_DEFAULT_LIMIT
        if not kb_ids or not query_embedding or limit <= 0:
            return []

        rows = (
            self.db.query(
                DocumentChunk.knowledge_base_id,
                DocumentChunk.document_id,
                DocumentChunk.chunk_index,
                DocumentChunk.content,
                DocumentChunk.embedding,
                Document.file_name,
            )
            .join(Document, Document.id == DocumentChunk.document_id)
            .filter(
                DocumentChunk.knowledge_base_id.in_(kb_ids),
                Document.status == DOC_STATUS_COMPLETED,
            )
            .order_by(DocumentChunk.id.asc())
            .all()
        )

        query = np.asarray(query_embedding, dtype=np.float64)
        candidates = [row for row in rows if row.embedding and len(row.embedding) == query.shape[0]]
        if len(candidates) != len(rows):
            logger.warning(f"跳过维度不一致的分块: {len(rows) - len(candidates)} 个（查询维度 {query.shape[0]}）")
        if not candidates:
            return []

        matrix = np.asarray([row.embedding for row in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        similarity = np.divide(
            matrix @ query,
            norms,
            out=np.zeros(len(candidates), dtype=np.float64),
            where=norms > 0,
        )
        distances = 1.0 - similarity
        order = np.argsort(distances, kind="stable")[:limit]

        results = []
        for idx in order:
            row = candidates[int(idx)]
            results.append({
                "knowledge_base_id": row.knowledge_base_id,
                "document_id": row.document_id,
                "document_name": row.file_name,
                "chunk_index": row.chunk_index,
                "content": row.content,
                "score": float(max(0.0, 1.0 - distances[idx])),
            })
        logger.debug(f"检索完成: 知识库={kb_ids}, 候选={len(candidates)}, 返回={len(results)}")
        return results
