"""
Test Search API
"""

import pytest

from knowledge_rag.config.settings import settings
from knowledge_rag.models.usage import EmbeddingUsageLog
from knowledge_rag.schemas.search import SearchResult
from knowledge_rag.services.ingestion_service import IngestionWorker
from knowledge_rag.services.usage_service import UsageService


def _setup_corpus(client, users, auth_headers, session_factory, fake_storage, fake_embedder):
    """alice 的私有知识库与公开知识库各一篇文档，并完成摄取"""
    alice = users("alice")
    headers = auth_headers(alice)
    kb_ids = {}
    for name, visibility, text in (
        ("private", "private", b"apples and oranges are fruit"),
        ("public", "public", b"rockets travel to orbit"),
    ):
        response = client.post(
            "/api/v1/knowledge-bases/", json={"name": name, "visibility": visibility}, headers=headers
        )
        kb_ids[name] = response.json()["data"]["id"]
        client.post(
            f"/api/v1/knowledge-bases/{kb_ids[name]}/documents",
            files={"file": (f"{name}.txt", text, "text/plain")},
            headers=headers,
        )
    IngestionWorker(
        session_factory,
        storage=fake_storage,
        embedder=fake_embedder,
        usage=UsageService(session_factory),
    ).drain()
    return alice, kb_ids


def test_search_ranks_owned_results(client, make_user, auth_headers, session_factory, fake_storage, fake_embedder):
    alice, kb_ids = _setup_corpus(client, make_user, auth_headers, session_factory, fake_storage, fake_embedder)

    response = client.post("/api/v1/search", json={"query": "apples and oranges are fruit"}, headers=auth_headers(alice))

    assert response.status_code == 200
    data = response.json()["data"]
    results = [SearchResult(**item) for item in data["results"]]
    assert sorted(data["knowledge_base_ids"]) == sorted(kb_ids.values())
    assert results[0].document_name == "private.txt"
    assert results[0].score == pytest.approx(1.0)


def test_search_excludes_unreadable_knowledge_bases(
    client, make_user, auth_headers, session_factory, fake_storage, fake_embedder
):
    """其他用户只能检索公开知识库，显式指定私有知识库也会被忽略"""
    _, kb_ids = _setup_corpus(client, make_user, auth_headers, session_factory, fake_storage, fake_embedder)
    bob = make_user("bob")

    response = client.post(
        "/api/v1/search",
        json={"query": "apples and oranges are fruit", "knowledge_base_ids": [kb_ids["private"], kb_ids["public"]]},
        headers=auth_headers(bob),
    )

    data = response.json()["data"]
    assert data["knowledge_base_ids"] == [kb_ids["public"]]
    assert {item["knowledge_base_id"] for item in data["results"]} == {kb_ids["public"]}


def test_search_without_readable_knowledge_bases(client, make_user, auth_headers, fake_embedder):
    response = client.post("/api/v1/search", json={"query": "anything"}, headers=auth_headers(make_user("bob")))

    assert response.status_code == 200
    assert response.json()["data"]["results"] == []
    assert fake_embedder.calls == []


def test_search_records_query_usage(
    client, make_user, auth_headers, session_factory, fake_storage, fake_embedder, db_session
):
    alice, _ = _setup_corpus(client, make_user, auth_headers, session_factory, fake_storage, fake_embedder)

    client.post("/api/v1/search", json={"query": "rockets", "limit": 1}, headers=auth_headers(alice))

    logs = db_session.query(EmbeddingUsageLog).filter(EmbeddingUsageLog.operation == "query").all()
    assert len(logs) == 1
    assert logs[0].user_id == alice.id
    assert logs[0].tokens == 1


def test_search_rejects_blank_query(client, make_user, auth_headers):
    headers = auth_headers(make_user("alice"))
    assert client.post("/api/v1/search", json={"query": ""}, headers=headers).status_code == 422
    assert client.post("/api/v1/search", json={"query": "   "}, headers=headers).status_code == 400


def test_search_limit_bounded_by_settings(client, make_user, auth_headers, fake_embedder):
    headers = auth_headers(make_user("alice"))
    too_many = settings.SEARCH_MAX_LIMIT + 1

    response = client.post("/api/v1/search", json={"query": "rockets", "limit": too_many}, headers=headers)

    assert response.status_code == 422
    assert fake_embedder.calls == []
