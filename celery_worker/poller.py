"""
Standalone ingestion loop.

Usage:
  python -m celery_worker.poller

Polls the database for pending documents every KB_WORKER_POLL_INTERVAL_SECONDS
and stops gracefully on SIGINT/SIGTERM after the current document finishes.
"""

from __future__ import annotations

import signal
import threading

from knowledge_rag.config.database import SessionLocal
from knowledge_rag.core.logging import logger
from knowledge_rag.services.ingestion_service import IngestionWorker

import knowledge_rag.models  # noqa: F401


def main() -> None:
    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"收到信号 {signum}，处理完当前文档后退出")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    # 用 Event.wait 代替 time.sleep，收到信号后立即结束休眠
    worker = IngestionWorker(SessionLocal, sleep=stop_event.wait)
    worker.run_forever(stop_event)


if __name__ == "__main__":
    main()
