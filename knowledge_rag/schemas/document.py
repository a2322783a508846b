"""
Document Schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl

from knowledge_rag.config.settings import settings
from knowledge_rag.schemas.base import BaseResponseSchema

class DocumentResponse(BaseResponseSchema):
    """文档响应模式"""
    knowledge_base_id: int
    uploaded_by_user_id: Optional[int] = None
    uploaded_by_name: Optional[str] = None
    organization_id: Optional[int] = None
    file_name: str
    file_size: int
    mime_type: str
    status: str
    error_message: Optional[str] = None
    chunk_count: int = 0
    embedding_tokens: int = 0
    processed_at: Optional[datetime] = None

class DocumentRename(BaseModel):
    """文档重命名"""
    file_name: str = Field(..., min_length=1, max_length=255)

class WebPageImport(BaseModel):
    """网页导入请求"""
    url: HttpUrl
    max_characters: Optional[int] = Field(
        None, ge=settings.WEB_IMPORT_MIN_CHARACTERS, le=settings.WEB_IMPORT_MAX_CHARACTERS
    )

class DocumentListResponse(BaseModel):
    """文档列表响应"""
    list: List[DocumentResponse]
    total: int

class DocumentDeleteResponse(BaseModel):
    """文档删除结果"""
    id: int
