"""
Exception Handlers
"""

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)

class ErrorCode:
    """错误代码定义"""
    # 参数/文件验证错误
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FILE_EMPTY = "FILE_EMPTY"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    KNOWLEDGE_BASE_NAME_EXISTS = "KNOWLEDGE_BASE_NAME_EXISTS"

    # 权限错误
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # 资源不存在
    KNOWLEDGE_BASE_NOT_FOUND = "KNOWLEDGE_BASE_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"

    # 解析处理错误
    DOCUMENT_PARSING_FAILED = "DOCUMENT_PARSING_FAILED"

    # 向量化错误
    VECTOR_GENERATION_FAILED = "VECTOR_GENERATION_FAILED"

    # MinIO错误
    MINIO_UPLOAD_FAILED = "MINIO_UPLOAD_FAILED"
    MINIO_DOWNLOAD_FAILED = "MINIO_DOWNLOAD_FAILED"
    MINIO_DELETE_FAILED = "MINIO_DELETE_FAILED"

    # 网页抓取错误
    WEB_FETCH_FAILED = "WEB_FETCH_FAILED"

    # 搜索错误
    SEARCH_FAILED = "SEARCH_FAILED"

# 错误代码到HTTP状态码的映射，未列出的按500处理
ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.FILE_EMPTY: 400,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.UNSUPPORTED_FILE_TYPE: 415,
    ErrorCode.KNOWLEDGE_BASE_NAME_EXISTS: 409,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.KNOWLEDGE_BASE_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.VECTOR_GENERATION_FAILED: 502,
    ErrorCode.MINIO_UPLOAD_FAILED: 502,
    ErrorCode.MINIO_DOWNLOAD_FAILED: 502,
    ErrorCode.MINIO_DELETE_FAILED: 502,
    ErrorCode.WEB_FETCH_FAILED: 502,
}

class CustomException(Exception):
    """自定义异常类"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES.get(self.code, 500)

def _error_body(code, message, data=None) -> dict:
    return {"code": code, "message": message, "data": data}

def setup_exception_handlers(app: FastAPI):
    """设置异常处理器"""

    @app.exception_handler(CustomException)
    async def custom_exception_handler(request: Request, exc: CustomException):
        """业务异常处理器"""
        if exc.status_code >= 500:
            logger.error(f"业务异常: {exc.code} {exc.message} ({request.method} {request.url.path})")
        else:
            logger.info(f"请求被拒绝: {exc.code} {exc.message} ({request.method} {request.url.path})")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """HTTP异常处理器"""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """请求验证异常处理器"""
        return JSONResponse(
            status_code=422,
            content=_error_body(ErrorCode.VALIDATION_ERROR, "请求参数验证失败", jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Starlette异常处理器"""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.detail),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """通用异常处理器"""
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(500, "服务器内部错误"),
        )
