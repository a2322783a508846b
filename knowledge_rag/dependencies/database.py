"""
Database Dependencies
"""

from knowledge_rag.config.database import SessionLocal, get_db  # noqa: F401
