# coursehub/schemas/common/common.py
from pydantic import BaseModel
from typing import Optional

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    status_code: Optional[int] = None
    field: Optional[str] = None

class MessageResponse(BaseModel):
    success: bool = True
    message: str
