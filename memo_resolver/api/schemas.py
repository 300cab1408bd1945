"""
Request and response models for the resolver HTTP API.
"""

from pydantic import BaseModel, Field, AliasChoices, field_validator
from typing import Optional, List, Dict, Any


class AskRequest(BaseModel):
    # "question" is accepted for older web clients
    query: str = Field(validation_alias=AliasChoices("query", "question"))

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v


class AskResponse(BaseModel):
    answer: str
    source: str
    category: Optional[str] = None
    confidence: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
    answer: Optional[str] = None


class MemoryRecord(BaseModel):
    query: str
    answer: str


class MemoryListResponse(BaseModel):
    entries: List[MemoryRecord]
    count: int
    capacity: Optional[int] = None


class ClearResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str
    memory_health: bool
    memory_entries: int
    model_shape: List[int]
    heartbeat: Dict[str, Any]
    stats: Dict[str, Any]


class ModelDebugResponse(BaseModel):
    shape: List[int]
    neurons: int
    vocabulary_size: int
    categories: List[str]
    generated: bool
    threshold: float
