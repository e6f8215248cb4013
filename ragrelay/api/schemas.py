"""
Request and response models for the HTTP API.
"""

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Literal


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    # Optional so the route can answer a missing list with its own 400 payload
    messages: Optional[List[ChatMessage]] = None
    model: Optional[str] = None
    stream: bool = True

    @field_validator('model')
    @classmethod
    def model_must_not_be_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('model cannot be blank')
        return v


class IngestDocument(BaseModel):
    id: Optional[str] = None
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v


class IngestRequest(BaseModel):
    documents: Optional[List[IngestDocument]] = None


class IngestResponse(BaseModel):
    success: bool
    message: str
    count: int


class KnowledgeSearchRequest(BaseModel):
    query: str
    limit: int = Field(default=3, ge=1, le=50)

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v


class KnowledgeResult(BaseModel):
    text: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class KnowledgeSearchResponse(BaseModel):
    results: List[KnowledgeResult]
    degraded: bool = False


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    version: str
    vector_store_healthy: bool


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    details: Optional[Any] = None
    debug: Optional[str] = None


def error_response(status_code: int, error: str, headers: Optional[Dict[str, str]] = None, **fields) -> JSONResponse:
    """JSON error body with only the fields that are set."""
    body = ErrorResponse(error=error, **fields)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)
