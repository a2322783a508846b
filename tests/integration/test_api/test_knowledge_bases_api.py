"""
Test Knowledge Base API
"""

from knowledge_rag.main import app
from knowledge_rag.schemas.knowledge_base import KnowledgeBaseListResponse, KnowledgeBaseResponse


def _create(client, headers, **data):
    response = client.post("/api/v1/knowledge-bases/", json=data, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["data"]


def test_requires_authentication(client):
    """未携带令牌时返回401"""
    response = client.get("/api/v1/knowledge-bases/")
    assert response.status_code == 401
    assert response.json()["code"] == 401

    response = client.get("/api/v1/knowledge-bases/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_create_and_get_knowledge_base(client, make_user, auth_headers):
    """测试创建并获取知识库"""
    alice = make_user("alice")
    headers = auth_headers(alice)

    created = _create(client, headers, name="测试知识库", description="这是一个测试知识库")
    kb = KnowledgeBaseResponse(**created)
    assert kb.name == "测试知识库"
    assert kb.is_owner and kb.can_write

    response = client.get(f"/api/v1/knowledge-bases/{kb.id}", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 0
    assert body["data"]["description"] == "这是一个测试知识库"


def test_list_knowledge_bases(client, make_user, auth_headers):
    """测试获取知识库列表"""
    alice, bob = make_user("alice"), make_user("bob")
    _create(client, auth_headers(alice), name="private")
    _create(client, auth_headers(alice), name="public", visibility="public")
    _create(client, auth_headers(bob), name="mine")

    response = client.get("/api/v1/knowledge-bases/?page=1&size=10", headers=auth_headers(bob))

    assert response.status_code == 200
    page = KnowledgeBaseListResponse(**response.json()["data"])
    assert page.total == 2
    assert {kb.name for kb in page.list} == {"public", "mine"}


def test_validation_and_conflict_errors(client, make_user, auth_headers):
    headers = auth_headers(make_user("alice"))

    response = client.post("/api/v1/knowledge-bases/", json={"name": ""}, headers=headers)
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = client.post("/api/v1/knowledge-bases/", json={"name": "kb", "visibility": "secret"}, headers=headers)
    assert response.status_code == 422

    _create(client, headers, name="kb")
    response = client.post("/api/v1/knowledge-bases/", json={"name": "kb"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "KNOWLEDGE_BASE_NAME_EXISTS"


def test_update_knowledge_base(client, make_user, auth_headers):
    """测试更新知识库"""
    alice, bob = make_user("alice"), make_user("bob")
    kb = _create(client, auth_headers(alice), name="old", visibility="public")

    response = client.put(f"/api/v1/knowledge-bases/{kb['id']}", json={"name": "new"}, headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "new"
    assert response.json()["data"]["visibility"] == "public"

    response = client.put(f"/api/v1/knowledge-bases/{kb['id']}", json={"name": "x"}, headers=auth_headers(bob))
    assert response.status_code == 403


def test_private_knowledge_base_is_hidden(client, make_user, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")
    kb = _create(client, auth_headers(alice), name="secret")

    response = client.get(f"/api/v1/knowledge-bases/{kb['id']}", headers=auth_headers(bob))

    assert response.status_code == 404
    assert response.json()["code"] == "KNOWLEDGE_BASE_NOT_FOUND"


def test_delete_knowledge_base_removes_objects(client, make_user, auth_headers, fake_storage):
    """测试删除知识库，对象存储中的原文件一并清理"""
    alice = make_user("alice")
    headers = auth_headers(alice)
    kb = _create(client, headers, name="kb")
    for name in ("a.txt", "b.txt"):
        response = client.post(
            f"/api/v1/knowledge-bases/{kb['id']}/documents",
            files={"file": (name, b"some text", "text/plain")},
            headers=headers,
        )
        assert response.status_code == 200
    assert len(fake_storage.objects) == 2

    response = client.delete(f"/api/v1/knowledge-bases/{kb['id']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["deleted_documents"] == 2
    assert fake_storage.objects == {}
    assert client.get(f"/api/v1/knowledge-bases/{kb['id']}", headers=headers).status_code == 404


def test_openapi_declares_response_models(client):
    """路由声明响应模型，OpenAPI 文档中可见"""
    schemas = app.openapi()["components"]["schemas"]

    for name in ("KnowledgeBaseResponse", "KnowledgeBaseListResponse", "DocumentResponse", "SearchResult"):
        assert name in schemas

    search = app.openapi()["paths"]["/api/v1/search"]["post"]["responses"]["200"]
    assert "$ref" in search["content"]["application/json"]["schema"]
