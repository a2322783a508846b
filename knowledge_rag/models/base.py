"""
Base Model
"""

from datetime import datetime

from sqlalchemy import Column, Integer, DateTime

from knowledge_rag.config.database import Base


class BaseModel(Base):
    """模型基类：主键与创建/更新时间"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, comment="创建时间")
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        comment="更新时间",
    )

    def to_dict(self) -> dict:
        """转换为字典（仅包含列字段）"""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}
