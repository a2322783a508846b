"""
Knowledge Base API Routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from knowledge_rag.config.settings import settings
from knowledge_rag.core.logging import logger
from knowledge_rag.dependencies.auth import get_current_user_id
from knowledge_rag.dependencies.database import get_db
from knowledge_rag.dependencies.minio import get_storage
from knowledge_rag.schemas.knowledge_base import (
    KnowledgeBaseCreate,
    KnowledgeBaseDeleteResponse,
    KnowledgeBaseListResponse,
    KnowledgeBaseResponse,
    KnowledgeBaseUpdate,
)
from knowledge_rag.schemas.response import ApiResponse
from knowledge_rag.services.knowledge_base_service import KnowledgeBaseService
from knowledge_rag.services.minio_storage_service import delete_objects_quietly

router = APIRouter()

@router.get("/", response_model=ApiResponse[KnowledgeBaseListResponse])
def get_knowledge_bases(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """获取当前用户可读的知识库列表（分页）"""
    items, total = KnowledgeBaseService(db).list_knowledge_bases(user_id, page=page, size=size, search=search)
    return {
        "code": 0,
        "message": "ok",
        "data": {"list": items, "total": total, "page": page, "size": size},
    }

@router.post("/", response_model=ApiResponse[KnowledgeBaseResponse])
def create_knowledge_base(
    knowledge_base: KnowledgeBaseCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """创建知识库"""
    kb = KnowledgeBaseService(db).create_knowledge_base(user_id, knowledge_base)
    return {"code": 0, "message": "ok", "data": kb}

@router.get("/{kb_id}", response_model=ApiResponse[KnowledgeBaseResponse])
def get_knowledge_base(
    kb_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """获取知识库详情"""
    kb = KnowledgeBaseService(db).get_knowledge_base(kb_id, user_id)
    return {"code": 0, "message": "ok", "data": kb}

@router.put("/{kb_id}", response_model=ApiResponse[KnowledgeBaseResponse])
def update_knowledge_base(
    kb_id: int,
    knowledge_base: KnowledgeBaseUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """更新知识库"""
    kb = KnowledgeBaseService(db).update_knowledge_base(kb_id, user_id, knowledge_base)
    return {"code": 0, "message": "ok", "data": kb}

@router.delete("/{kb_id}", response_model=ApiResponse[KnowledgeBaseDeleteResponse])
def delete_knowledge_base(
    kb_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """删除知识库（仅所有者），数据库删除成功后尽力清理对象存储"""
    storage_keys = KnowledgeBaseService(db).delete_knowledge_base(kb_id, user_id)
    removed = delete_objects_quietly(storage, storage_keys)
    if removed != len(storage_keys):
        logger.warning(f"知识库 {kb_id} 部分对象未能清理: {removed}/{len(storage_keys)}")
    return {
        "code": 0,
        "message": "ok",
        "data": {"id": kb_id, "deleted_documents": len(storage_keys)},
    }
