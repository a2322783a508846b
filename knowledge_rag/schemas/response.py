"""
Response Schemas
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

class ApiResponse(BaseModel, Generic[T]):
    """统一响应模式: {"code": 0, "message": "ok", "data": ...}"""
    code: int = 0
    message: str = "ok"
    data: Optional[T] = None
