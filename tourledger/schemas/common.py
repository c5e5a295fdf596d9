from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ActionError(BaseModel):
    code: str
    message: str
    batch_name: Optional[str] = Field(None, description="Batch already holding the file, for duplicate-file errors")


class ActionResponse(BaseModel, Generic[T]):
    """Result-or-error envelope returned by every endpoint."""
    success: bool
    data: Optional[T] = None
    error: Optional[ActionError] = None
    warnings: List[str] = Field(default_factory=list)
