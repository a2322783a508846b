"""
Celery worker launcher.

Usage:
  python -m celery_worker.worker

Environment (optional):
  CELERY_LOG_LEVEL=INFO|DEBUG
  CELERY_CONCURRENCY=1
  CELERY_QUEUES=document,celery
  CELERY_EMBED_BEAT=true|false
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import sys

from knowledge_rag.tasks.celery_app import celery_app
from knowledge_rag.config.settings import settings
from knowledge_rag.core.logging import setup_logging


def setup_celery_logging() -> None:
    """配置 Celery Worker 日志（复用应用日志配置）"""
    setup_logging(log_level=settings.CELERY_LOG_LEVEL)
    # Celery 将标准输出重定向到日志，便于在控制台看到 print/traceback
    celery_app.conf.worker_redirect_stdouts = True
    celery_app.conf.worker_redirect_stdouts_level = "INFO"


def resolve_concurrency() -> str:
    """并发数：优先使用 settings，然后环境变量，最后按 CPU 核数计算"""
    if settings.CELERY_CONCURRENCY is not None:
        return str(settings.CELERY_CONCURRENCY)
    if os.getenv("CELERY_CONCURRENCY"):
        return os.getenv("CELERY_CONCURRENCY")
    cpu_count = multiprocessing.cpu_count() or 2
    return str(max(2, min(4, cpu_count)))


def build_argv() -> list[str]:
    log_level = (os.getenv("CELERY_LOG_LEVEL") or settings.CELERY_LOG_LEVEL).lower()
    queues = os.getenv("CELERY_QUEUES") or settings.CELERY_QUEUES
    pool = "solo" if os.name == "nt" else "prefork"

    argv = [
        "worker",
        "-l",
        log_level,
        "-Q",
        queues,
        "-c",
        resolve_concurrency(),
        "--pool",
        pool,
        "--without-gossip",
        "--without-mingle",
    ]
    # 内嵌 beat 负责按轮询间隔投递 drain 任务；多实例部署时只应有一个实例开启
    if os.getenv("CELERY_EMBED_BEAT", "true").lower() == "true":
        argv.append("-B")
    return argv


def main() -> None:
    setup_celery_logging()
    argv = build_argv()

    logger = logging.getLogger("celery")
    logger.info(f"Celery Worker 启动参数: {' '.join(argv)}")
    logger.info(f"Redis 连接: {settings.REDIS_URL}")
    if "document" not in argv[argv.index("-Q") + 1].split(","):
        logger.error("Worker 未监听必需的 document 队列，文档将不会被处理")

    try:
        celery_app.worker_main(argv)
    except SystemExit as exc:
        sys.exit(exc.code)


if __name__ == "__main__":
    main()
