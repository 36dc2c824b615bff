"""
Shared pydantic models for API responses
"""

from pydantic import BaseModel, Field


class PaginationMeta(BaseModel):
    """Pagination metadata"""

    total: int = Field(..., description="Total number of records")
    page: int = Field(..., description="Current page, starting at 1")
    limit: int = Field(..., description="Number of records per page")
    total_pages: int = Field(..., description="Number of pages")


class MessageResponse(BaseModel):
    message: str


class GenreResponse(BaseModel):
    id: int
    name: str
