"""
Knowledge Base Schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from knowledge_rag.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema

Visibility = Literal["private", "public", "readonly"]

class KnowledgeBaseCreate(BaseCreateSchema):
    """知识库创建模式"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: Visibility = "private"
    organization_id: Optional[int] = None

class KnowledgeBaseUpdate(BaseUpdateSchema):
    """知识库更新模式"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: Optional[Visibility] = None
    organization_id: Optional[int] = None

class KnowledgeBaseResponse(BaseResponseSchema):
    """知识库响应模式（含派生统计与当前用户的能力）"""
    name: str
    description: Optional[str] = None
    visibility: Visibility
    user_id: int
    organization_id: Optional[int] = None
    document_count: int = 0
    pending_document_count: int = 0
    processing_document_count: int = 0
    can_read: bool = True
    can_write: bool = False
    is_owner: bool = False

class KnowledgeBaseListResponse(BaseModel):
    """知识库分页列表响应"""
    list: List[KnowledgeBaseResponse]
    total: int
    page: int
    size: int

class KnowledgeBaseDeleteResponse(BaseModel):
    """知识库删除结果"""
    id: int
    deleted_documents: int
