"""Pydantic schemas for API responses."""

from pydantic import BaseModel


class CounterResponse(BaseModel):
    """Value of the counter after an increment."""

    counter: int


class HealthResponse(BaseModel):
    status: str = "healthy"


class ErrorResponse(BaseModel):
    error: str
