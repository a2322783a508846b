"""
Uvicorn launcher
"""

import os

import uvicorn

from knowledge_rag.config.settings import settings


def main() -> None:
    # 明确默认禁用 reload，避免子进程导致的信号处理问题
    enable_reload = os.getenv("ENABLE_RELOAD", "false").lower() == "true"
    try:
        uvicorn.run(
            "knowledge_rag.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=enable_reload,
            workers=1,
            log_level=os.getenv("UVICORN_LOG_LEVEL", "info"),
        )
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
