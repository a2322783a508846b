"""
Search Schemas
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from knowledge_rag.config.settings import settings

class SearchRequest(BaseModel):
    """知识库检索请求"""
    query: str = Field(..., min_length=1)
    knowledge_base_ids: Optional[List[int]] = None
    limit: Optional[int] = Field(None, ge=1, le=settings.SEARCH_MAX_LIMIT)

class SearchResult(BaseModel):
    """检索结果"""
    knowledge_base_id: int
    document_id: int
    document_name: str
    chunk_index: int
    content: str
    score: float

class SearchResponse(BaseModel):
    """检索响应：结果及实际检索的知识库ID"""
    results: List[SearchResult]
    knowledge_base_ids: List[int]
