"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Envelope wrapping every JSON response of the HTTP surface."""

    success: bool = Field(default=True, description="Whether the request succeeded.")
    data: DataT | None = Field(default=None, description="Response payload.")
    message: str = Field(default="", description="Human readable status message.")
