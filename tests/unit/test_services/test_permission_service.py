"""
Test Permission Service
"""

import pytest

from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.models.knowledge_base import KnowledgeBase
from knowledge_rag.services.permission_service import (
    ACCESS_OWNER,
    ACCESS_READ,
    ACCESS_WRITE,
    KnowledgeBasePermissionService,
    compute_access,
)

OWNER = 1
OTHER = 2


@pytest.mark.parametrize(
    "visibility, member, acting, expected",
    [
        ("private", False, OWNER, (True, True, True)),
        ("readonly", False, OWNER, (True, True, True)),
        ("private", False, OTHER, (False, False, False)),
        ("private", True, OTHER, (True, True, False)),
        ("public", False, OTHER, (True, False, False)),
        ("public", True, OTHER, (True, True, False)),
        ("readonly", False, OTHER, (True, False, False)),
        ("readonly", True, OTHER, (True, False, False)),
    ],
)
def test_compute_access_matrix(visibility, member, acting, expected):
    """所有者/可见性/组织成员关系决定读写能力"""
    access = compute_access(OWNER, visibility, member, acting)
    assert (access.can_read, access.can_write, access.is_owner) == expected


def _make_kb(db, owner, name, visibility="private", organization_id=None):
    kb = KnowledgeBase(name=name, user_id=owner.id, visibility=visibility, organization_id=organization_id)
    db.add(kb)
    db.commit()
    db.refresh(kb)
    return kb


def test_missing_knowledge_base_is_not_found(db_session, make_user):
    alice = make_user("alice")
    service = KnowledgeBasePermissionService(db_session)
    with pytest.raises(CustomException) as exc_info:
        service.ensure_permission(999, alice.id, ACCESS_READ)
    assert exc_info.value.code == ErrorCode.KNOWLEDGE_BASE_NOT_FOUND


def test_unreadable_knowledge_base_looks_missing(db_session, make_user):
    """不可读的知识库与不存在的知识库返回相同错误"""
    alice, bob = make_user("alice"), make_user("bob")
    kb = _make_kb(db_session, alice, "secret")
    service = KnowledgeBasePermissionService(db_session)
    with pytest.raises(CustomException) as exc_info:
        service.ensure_permission(kb.id, bob.id, ACCESS_READ)
    assert exc_info.value.code == ErrorCode.KNOWLEDGE_BASE_NOT_FOUND


def test_readonly_knowledge_base_rejects_writes(db_session, make_user, make_organization):
    alice, bob = make_user("alice"), make_user("bob")
    org = make_organization("team", alice, members=[bob])
    kb = _make_kb(db_session, alice, "handbook", visibility="readonly", organization_id=org.id)
    service = KnowledgeBasePermissionService(db_session)

    _, access = service.ensure_permission(kb.id, bob.id, ACCESS_READ)
    assert access.can_read and not access.can_write
    with pytest.raises(CustomException) as exc_info:
        service.ensure_permission(kb.id, bob.id, ACCESS_WRITE)
    assert exc_info.value.code == ErrorCode.PERMISSION_DENIED


def test_organization_member_can_write_but_not_own(db_session, make_user, make_organization):
    alice, bob = make_user("alice"), make_user("bob")
    org = make_organization("team", alice, members=[bob])
    kb = _make_kb(db_session, alice, "shared", organization_id=org.id)
    service = KnowledgeBasePermissionService(db_session)

    returned, access = service.ensure_permission(kb.id, bob.id, ACCESS_WRITE)
    assert returned.id == kb.id
    assert access.can_write and not access.is_owner
    with pytest.raises(CustomException) as exc_info:
        service.ensure_permission(kb.id, bob.id, ACCESS_OWNER)
    assert exc_info.value.code == ErrorCode.PERMISSION_DENIED


def test_readable_filter_matches_compute_access(db_session, make_user, make_organization):
    """列表过滤条件与 compute_access 保持一致"""
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    org = make_organization("team", alice, members=[bob])
    own = _make_kb(db_session, bob, "bob-own")
    private_other = _make_kb(db_session, alice, "alice-private")
    public_other = _make_kb(db_session, carol, "carol-public", visibility="public")
    readonly_other = _make_kb(db_session, carol, "carol-readonly", visibility="readonly")
    org_private = _make_kb(db_session, alice, "team-private", organization_id=org.id)
    foreign_org = make_organization("other", carol)
    foreign = _make_kb(db_session, carol, "foreign", organization_id=foreign_org.id)

    service = KnowledgeBasePermissionService(db_session)
    query = service.apply_readable_filter(db_session.query(KnowledgeBase.id), bob.id)
    readable = {kb_id for (kb_id,) in query.all()}

    assert readable == {own.id, public_other.id, readonly_other.id, org_private.id}
    for kb in (own, private_other, public_other, readonly_other, org_private, foreign):
        assert service.get_access(kb, bob.id).can_read == (kb.id in readable)
