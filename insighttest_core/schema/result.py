from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, Field
from .error_code import Code

T = TypeVar("T")


class Error(BaseModel):
    status: Code = Code.SUCCESS
    errmsg: str = ""
    errors: list[str] = Field(default_factory=list)
    trace_id: Optional[str] = None

    @classmethod
    def init(
        cls,
        status: Code,
        errmsg: str,
        errors: Optional[list[str]] = None,
        trace_id: Optional[str] = None,
    ) -> "Error":
        return cls(
            status=status, errmsg=errmsg, errors=errors or [], trace_id=trace_id
        )


class Result(BaseModel, Generic[T]):
    data: Optional[T] = None
    error: Error = Field(default_factory=Error)

    @classmethod
    def resolve(cls, data: T) -> "Result[T]":
        return cls(data=data, error=Error())

    @classmethod
    def reject(
        cls,
        errmsg: str,
        status: Code = Code.INTERNAL_ERROR,
        errors: Optional[list[str]] = None,
        trace_id: Optional[str] = None,
    ) -> "Result[T]":
        assert status != Code.SUCCESS, "status must not be SUCCESS for reject"
        return cls(
            data=None,
            error=Error.init(status, errmsg, errors=errors, trace_id=trace_id),
        )

    def ok(self) -> bool:
        return self.error.status == Code.SUCCESS

    def unpack(self) -> tuple[Optional[T], Optional[Error]]:
        if self.ok():
            return self.data, None
        return None, self.error
