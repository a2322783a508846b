"""
FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from knowledge_rag.api.v1.router import api_router
from knowledge_rag.config.settings import settings
from knowledge_rag.core.exceptions import setup_exception_handlers
from knowledge_rag.core.logging import logger
from knowledge_rag.middleware.auth import auth_middleware
from knowledge_rag.middleware.logging import logging_middleware

# 注册所有模型，解决字符串关系解析问题
import knowledge_rag.models  # noqa: F401


def _check_database() -> None:
    from knowledge_rag.config.database import engine
    with engine.connect() as conn:
        conn.exec_driver_sql("SELECT 1")


def _check_minio() -> None:
    from knowledge_rag.dependencies.minio import get_storage
    storage = get_storage()
    storage.client.bucket_exists(storage.bucket_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理 - 启动时检查中间件连接"""
    logger.info("正在检查中间件连接...")

    try:
        _check_database()
        logger.info("✅ 数据库连接正常")
    except Exception as e:
        logger.error(f"❌ 数据库连接失败: {e}")

    try:
        logger.info(f"连接 MinIO: {settings.MINIO_ENDPOINT}")
        _check_minio()
        logger.info("✅ MinIO 连接正常")
    except Exception as e:
        logger.error(f"❌ MinIO 连接失败: {e}")

    logger.info("🚀 服务器启动完成")
    yield
    logger.info("👋 服务器关闭")


app = FastAPI(
    title=settings.APP_NAME,
    description="知识库检索增强（RAG）后端API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# 添加CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 请求日志中间件（记录每个请求的开始、结束、状态码与耗时）
app.middleware("http")(logging_middleware)

# 认证中间件（在所有/api路径上要求认证）
app.middleware("http")(auth_middleware)

# 注册API路由
app.include_router(api_router, prefix="/api/v1")

# 设置异常处理器
setup_exception_handlers(app)

@app.get("/")
async def root():
    """根路径"""
    return {"message": settings.APP_NAME, "version": settings.APP_VERSION}

@app.get("/health")
def health_check():
    """健康检查 - 检查数据库与对象存储连接状态"""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "services": {}
    }

    for name, check in (("database", _check_database), ("minio", _check_minio)):
        try:
            check()
            health_status["services"][name] = {"status": "healthy"}
        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["services"][name] = {"status": "error", "message": str(e)}

    return health_status
