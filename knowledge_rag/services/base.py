"""
Base Service Class
"""

from typing import TypeVar, Generic, Optional
from sqlalchemy.orm import Session
from knowledge_rag.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)

class BaseService(Generic[ModelType]):
    """基础服务类"""

    def __init__(self, db: Session, model: type[ModelType]):
        self.db = db
        self.model = model

    def get(self, id: int) -> Optional[ModelType]:
        """获取单个对象"""
        return self.db.query(self.model).filter(self.model.id == id).first()

    def create(self, obj_in: dict) -> ModelType:
        """创建对象"""
        db_obj = self.model(**obj_in)
        self.db.add(db_obj)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(db_obj)
        return db_obj

    def update(self, db_obj: ModelType, obj_in: dict) -> ModelType:
        """按给定字段更新对象（None 也会写入）"""
        for key, value in obj_in.items():
            if hasattr(db_obj, key):
                setattr(db_obj, key, value)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(db_obj)
        return db_obj
