"""
Document API Routes
知识库下的文档：列表、上传、网页导入、重命名、删除
"""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from knowledge_rag.core.logging import logger
from knowledge_rag.dependencies.auth import get_current_user_id
from knowledge_rag.dependencies.database import get_db
from knowledge_rag.dependencies.minio import get_storage
from knowledge_rag.schemas.document import (
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentRename,
    DocumentResponse,
    WebPageImport,
)
from knowledge_rag.schemas.response import ApiResponse
from knowledge_rag.services.document_service import DocumentService
from knowledge_rag.services.minio_storage_service import delete_objects_quietly

router = APIRouter()

@router.get("/{kb_id}/documents", response_model=ApiResponse[DocumentListResponse])
def list_documents(
    kb_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """获取知识库下的文档列表（按创建时间倒序）"""
    documents = DocumentService(db).list_documents(kb_id, user_id)
    return {"code": 0, "message": "ok", "data": {"list": documents, "total": len(documents)}}

@router.post("/{kb_id}/documents", response_model=ApiResponse[DocumentResponse])
def upload_document(
    kb_id: int,
    file: UploadFile = File(...),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """上传文档，登记为待处理，由摄取 Worker 异步处理"""
    content = file.file.read()
    logger.info(f"收到文档上传: kb_id={kb_id}, file={file.filename}, size={len(content)}")
    document = DocumentService(db, storage=storage).upload_document(
        kb_id,
        user_id,
        file_name=file.filename or "",
        content=content,
        content_type=file.content_type,
    )
    return {"code": 0, "message": "ok", "data": document}

@router.post("/{kb_id}/documents/web", response_model=ApiResponse[DocumentResponse])
def import_web_page(
    kb_id: int,
    payload: WebPageImport,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """抓取网页正文并导入为文档"""
    document = DocumentService(db, storage=storage).import_web_page(
        kb_id,
        user_id,
        url=str(payload.url),
        max_characters=payload.max_characters,
    )
    return {"code": 0, "message": "ok", "data": document}

@router.patch("/{kb_id}/documents/{document_id}", response_model=ApiResponse[DocumentResponse])
def rename_document(
    kb_id: int,
    document_id: int,
    payload: DocumentRename,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """重命名文档"""
    document = DocumentService(db).rename_document(document_id, user_id, payload.file_name, kb_id=kb_id)
    return {"code": 0, "message": "ok", "data": document}

@router.delete("/{kb_id}/documents/{document_id}", response_model=ApiResponse[DocumentDeleteResponse])
def delete_document(
    kb_id: int,
    document_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """删除文档及其分块，随后尽力删除对象存储中的原文件"""
    storage_key = DocumentService(db, storage=storage).delete_document(document_id, user_id, kb_id=kb_id)
    delete_objects_quietly(storage, [storage_key])
    return {"code": 0, "message": "ok", "data": {"id": document_id}}
