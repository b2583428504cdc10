"""
Request and response models for the advice chat API.
Field names on the wire are camelCase.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any


class ChatRequest(BaseModel):
    query: str

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v.strip()


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thumbs_up: bool = Field(alias="thumbsUp")
    feedback: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    query: str
    stage1_response: Optional[str] = Field(default=None, alias="stage1Response")
    final_response: Optional[str] = Field(default=None, alias="finalResponse")
    metadata: Optional[Dict[str, Any]] = None
    thumbs_up: Optional[bool] = Field(default=None, alias="thumbsUp")
    feedback: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class BrowseResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entries: List[Dict[str, Any]]
    categories: List[str]
    sub_categories: List[str] = Field(alias="subCategories")
    total: int
    start: int = Field(alias="from")
    end: int = Field(alias="to")
    total_pages: int = Field(alias="totalPages")


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    corpus_size: int
    embedding_model: str
    language_model: str
