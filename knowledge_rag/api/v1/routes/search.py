"""
Search API Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from knowledge_rag.core.constants import USAGE_OPERATION_QUERY
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.core.logging import logger
from knowledge_rag.dependencies.auth import get_current_user_id
from knowledge_rag.dependencies.database import get_db
from knowledge_rag.dependencies.ollama import get_embedding_service, get_usage_service
from knowledge_rag.schemas.response import ApiResponse
from knowledge_rag.schemas.search import SearchRequest, SearchResponse
from knowledge_rag.services.knowledge_base_service import KnowledgeBaseService
from knowledge_rag.services.search_service import SearchService

router = APIRouter()

@router.post("/search", response_model=ApiResponse[SearchResponse])
def search(
    request: SearchRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    embedder=Depends(get_embedding_service),
    usage=Depends(get_usage_service),
):
    """
    语义检索

    仅在当前用户可读的知识库中检索；显式指定的知识库ID中不可读的部分会被忽略。
    """
    query = request.query.strip()
    if not query:
        raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="查询内容不能为空")

    kb_ids = KnowledgeBaseService(db).get_readable_knowledge_base_ids(user_id, request.knowledge_base_ids)
    if not kb_ids:
        return {"code": 0, "message": "ok", "data": {"results": [], "knowledge_base_ids": []}}

    query_embedding, tokens = embedder.embed_query(query)
    try:
        results = SearchService(db).search(kb_ids, query_embedding, limit=request.limit)
    except CustomException:
        raise
    except Exception as e:
        logger.error(f"检索失败: user_id={user_id}, {e}", exc_info=True)
        raise CustomException(code=ErrorCode.SEARCH_FAILED, message=f"检索失败: {e}")

    if tokens > 0:
        usage.record(
            user_id=user_id,
            operation=USAGE_OPERATION_QUERY,
            tokens=tokens,
            model=getattr(embedder, "model", None),
            metadata={"knowledge_base_ids": kb_ids, "result_count": len(results)},
        )
    return {"code": 0, "message": "ok", "data": {"results": results, "knowledge_base_ids": kb_ids}}
