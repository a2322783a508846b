"""
Authentication Middleware
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from knowledge_rag.core.security import verify_token
import logging

logger = logging.getLogger(__name__)

# 跳过认证的路径
SKIP_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}

def create_error_response(status_code: int, detail: str) -> JSONResponse:
    """创建认证失败响应"""
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "message": detail, "data": None},
        headers={"WWW-Authenticate": "Bearer"},
    )

async def auth_middleware(request: Request, call_next):
    """认证中间件 - 所有/api路径都需要认证"""
    # 跳过 OPTIONS 预检请求（CORS 预检）
    if request.method == "OPTIONS":
        return await call_next(request)

    path = request.url.path
    if path in SKIP_PATHS or not path.startswith("/api/"):
        return await call_next(request)

    authorization = request.headers.get("Authorization")
    if not authorization:
        return create_error_response(status.HTTP_401_UNAUTHORIZED, "缺少认证令牌")
    if not authorization.startswith("Bearer "):
        return create_error_response(status.HTTP_401_UNAUTHORIZED, "认证令牌格式错误")

    payload = verify_token(authorization.split(" ", 1)[1])
    if not payload:
        logger.debug(f"令牌校验失败: {request.method} {path}")
        return create_error_response(status.HTTP_401_UNAUTHORIZED, "认证令牌无效或已过期")

    # 将用户信息添加到请求中
    request.state.user = payload
    return await call_next(request)
