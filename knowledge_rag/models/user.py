"""
User Model
认证由外部系统完成，这里只保存知识库归属与展示所需的字段
"""

from sqlalchemy import Column, String
from knowledge_rag.models.base import BaseModel


class User(BaseModel):
    """用户模型"""
    __tablename__ = "users"

    username = Column(String(50), nullable=False, unique=True, index=True, comment="用户名")
    email = Column(String(100), nullable=True, unique=True, index=True, comment="邮箱")
    nickname = Column(String(100), comment="昵称")

    @property
    def display_name(self) -> str:
        return self.nickname or self.username

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"
