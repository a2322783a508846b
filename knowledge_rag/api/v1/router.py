"""
API Router Configuration
"""

from fastapi import APIRouter

from knowledge_rag.api.v1.routes import documents, knowledge_bases, search

# 创建API路由器
# 注意：认证由中间件处理，不在路由级别设置全局依赖
api_router = APIRouter()

# 注册各个模块的路由
api_router.include_router(
    knowledge_bases.router,
    prefix="/knowledge-bases",
    tags=["知识库管理"]
)
api_router.include_router(
    documents.router,
    prefix="/knowledge-bases",
    tags=["文档管理"]
)
api_router.include_router(
    search.router,
    tags=["检索"]
)
