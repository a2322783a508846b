"""
MinIO Storage Service
对象存储：按存储键读写/删除文档原始字节
"""

import io
from typing import Dict, Optional
from urllib.parse import quote

from minio import Minio
from minio.error import S3Error
from knowledge_rag.config.settings import settings
from knowledge_rag.core.logging import logger
from knowledge_rag.core.exceptions import CustomException, ErrorCode

class MinioStorageService:
    """MinIO存储服务"""

    def __init__(self, client: Optional[Minio] = None, bucket_name: Optional[str] = None):
        self.client = client or Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ROOT_USER,
            secret_key=settings.MINIO_ROOT_PASSWORD,
            secure=settings.MINIO_SECURE
        )
        self.bucket_name = bucket_name or settings.MINIO_BUCKET_NAME
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """确保存储桶存在"""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)
                logger.info(f"创建MinIO存储桶: {self.bucket_name}")
        except S3Error as e:
            logger.error(f"MinIO存储桶操作失败: {e}")
            raise CustomException(
                code=ErrorCode.MINIO_UPLOAD_FAILED,
                message=f"MinIO存储桶操作失败: {str(e)}"
            )

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        checksum: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """上传对象"""
        # S3 元数据只允许 ASCII，统一做 URL 编码
        object_metadata = {k: quote(str(v), safe="") for k, v in (metadata or {}).items() if v is not None}
        if checksum:
            object_metadata["checksum-sha256"] = checksum
        try:
            self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
                metadata=object_metadata or None,
            )
            logger.info(f"对象上传成功: {key}, 大小: {len(data)} bytes")
        except S3Error as e:
            logger.error(f"MinIO上传错误: {key}, {e}")
            raise CustomException(
                code=ErrorCode.MINIO_UPLOAD_FAILED,
                message=f"文件上传失败: {str(e)}"
            )

    def get_object(self, key: str) -> bytes:
        """下载对象的全部字节"""
        response = None
        try:
            response = self.client.get_object(self.bucket_name, key)
            content = response.read()
            logger.debug(f"对象下载成功: {key}, 大小: {len(content)} bytes")
            return content
        except S3Error as e:
            logger.error(f"MinIO下载错误: {key}, {e}")
            raise CustomException(
                code=ErrorCode.MINIO_DOWNLOAD_FAILED,
                message=f"文件下载失败: {str(e)}"
            )
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def delete_object(self, key: str) -> None:
        """删除对象"""
        try:
            self.client.remove_object(self.bucket_name, key)
            logger.info(f"对象删除成功: {key}")
        except S3Error as e:
            logger.error(f"MinIO删除错误: {key}, {e}")
            raise CustomException(
                code=ErrorCode.MINIO_DELETE_FAILED,
                message=f"文件删除失败: {str(e)}"
            )


def delete_objects_quietly(storage, keys) -> int:
    """尽力删除一组对象，失败只记录日志，返回成功删除的数量"""
    deleted = 0
    for key in keys:
        try:
            storage.delete_object(key)
            deleted += 1
        except Exception as e:
            logger.warning(f"清理对象失败（忽略）: {key}, {e}")
    return deleted
