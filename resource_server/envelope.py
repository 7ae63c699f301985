"""
Uniform response envelope used by every endpoint, success or failure.
"""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

OK_MESSAGE = "OK"


class BaseRes(BaseModel, Generic[T]):
    """{code, message, data}. code is reserved and always empty for now."""

    code: str = ""
    message: str
    data: T | None = None

    @classmethod
    def from_message(cls, message: str) -> "BaseRes[T]":
        return cls(code="", message=message, data=None)

    @classmethod
    def success(cls, data: T | None) -> "BaseRes[T]":
        return cls(code="", message=OK_MESSAGE, data=data)
