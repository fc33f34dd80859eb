"""Base models shared by every repository."""

from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class Entity(BaseModel):
    """A persisted record identified by a unique integer id.

    Entities are immutable so they can be used as dict keys.
    """
    model_config = ConfigDict(frozen=True)

    id: int


T = TypeVar("T", bound=Entity)


class Page(BaseModel, Generic[T]):
    """One page of a filtered query plus the row count of the whole filter."""
    items: List[T]
    total: int = Field(..., ge=0, description="Rows matching the filter without the limit")
    offset: int = Field(..., ge=0)
    page_size: int = Field(..., ge=1)
