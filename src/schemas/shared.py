"""Shared base schemas and common models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    error: str
    code: Optional[str] = None
    error_type: Optional[str] = Field(None, alias="errorType")


class SuccessResponse(BaseModel):
    """Standard success response schema."""

    success: bool = True
    message: Optional[str] = None
