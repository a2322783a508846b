"""
MinIO Dependencies
"""

from functools import lru_cache

from knowledge_rag.services.minio_storage_service import MinioStorageService

@lru_cache(maxsize=1)
def get_storage() -> MinioStorageService:
    """获取对象存储服务（进程内单例）"""
    return MinioStorageService()
