"""
Organization Models
"""

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from knowledge_rag.core.constants import ORG_ROLE_MEMBER
from knowledge_rag.models.base import BaseModel


class Organization(BaseModel):
    """组织模型"""
    __tablename__ = "organizations"

    name = Column(String(255), nullable=False, comment="组织名称")
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, comment="创建者ID")

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")


class OrganizationMember(BaseModel):
    """组织成员表"""
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uk_org_member"),
    )

    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True, comment="组织ID"
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")
    role = Column(String(20), default=ORG_ROLE_MEMBER, nullable=False, comment="角色: owner/admin/member")

    organization = relationship("Organization", back_populates="members")
    user = relationship("User")
