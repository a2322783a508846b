"""
Test Configuration
"""

import os

# 必须在导入应用之前设置，避免连接真实数据库
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import zlib
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from knowledge_rag.config.database import Base
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.core.security import create_access_token
from knowledge_rag.dependencies.database import get_db
from knowledge_rag.dependencies.minio import get_storage
from knowledge_rag.dependencies.ollama import get_embedding_service, get_usage_service
from knowledge_rag.main import app
from knowledge_rag.models.organization import Organization, OrganizationMember
from knowledge_rag.models.user import User
from knowledge_rag.services.usage_service import UsageService


class FakeStorage:
    """内存对象存储"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self.fail_put = False
        self.deleted: List[str] = []

    def put_object(self, key, data, content_type=None, checksum=None, metadata=None):
        if self.fail_put:
            raise CustomException(code=ErrorCode.MINIO_UPLOAD_FAILED, message="文件上传失败: fake")
        self.objects[key] = bytes(data)
        self.metadata[key] = dict(metadata or {})

    def get_object(self, key):
        if key not in self.objects:
            raise CustomException(code=ErrorCode.MINIO_DOWNLOAD_FAILED, message=f"文件下载失败: NoSuchKey {key}")
        return self.objects[key]

    def delete_object(self, key):
        self.objects.pop(key, None)
        self.deleted.append(key)


class FakeEmbedder:
    """
    确定性的词袋向量：每个词按 crc32 落到固定维度上

    token 数按空白分词计算；fail=True 时模拟向量服务不可用。
    """

    model = "fake-embedding"

    def __init__(self, dimension: int = 16):
        self.dimension = dimension
        self.fail = False
        self.calls: List[List[str]] = []

    def vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for word in text.lower().split():
            vector[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        return vector

    def embed(self, texts):
        if not texts:
            return [], 0
        self.calls.append(list(texts))
        if self.fail:
            raise CustomException(code=ErrorCode.VECTOR_GENERATION_FAILED, message="向量生成失败: fake")
        return [self.vector(text) for text in texts], sum(len(text.split()) for text in texts)

    def embed_query(self, text):
        vectors, tokens = self.embed([text])
        return vectors[0], tokens


@pytest.fixture
def engine(tmp_path):
    """每个测试使用独立的 SQLite 文件数据库"""
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """创建数据库会话"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def client(session_factory, fake_storage, fake_embedder):
    """创建测试客户端（不触发启动检查）"""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: fake_storage
    app.dependency_overrides[get_embedding_service] = lambda: fake_embedder
    app.dependency_overrides[get_usage_service] = lambda: UsageService(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """创建用户"""

    def _make_user(username: str, nickname: Optional[str] = None) -> User:
        user = User(username=username, email=f"{username}@example.com", nickname=nickname)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_organization(db_session):
    """创建组织并添加成员"""

    def _make_organization(name: str, owner: User, members=()) -> Organization:
        org = Organization(name=name, owner_user_id=owner.id)
        db_session.add(org)
        db_session.flush()
        for user in (owner, *members):
            db_session.add(OrganizationMember(organization_id=org.id, user_id=user.id))
        db_session.commit()
        db_session.refresh(org)
        return org

    return _make_organization


@pytest.fixture
def auth_headers():
    """生成指定用户的认证头"""

    def _auth_headers(user: User) -> Dict[str, str]:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
