"""Shared schema base: camelCase on the wire, snake_case in Python."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ApiResponse(CamelModel, Generic[DataT]):
    """Success envelope shared by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
