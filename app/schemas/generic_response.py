from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional, Generic, TypeVar

T = TypeVar('T')


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    code: str
