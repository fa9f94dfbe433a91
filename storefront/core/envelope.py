from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None

class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None

class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorDetail

def success(data: Any = None, message: str = "OK") -> dict:
    return {"success": True, "message": message, "data": data}

def failure(code: str, message: str, details: Any = None) -> dict:
    body = ErrorEnvelope(error=ErrorDetail(code=code, message=message, details=details))
    return body.model_dump(mode="json", exclude_none=True)
