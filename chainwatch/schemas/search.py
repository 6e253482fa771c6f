from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    type: Literal["report", "test_result"]
    id: str
    title: str
    description: str
    blockchain: str | None = None
    status: str
    timestamp: datetime
    relevance_score: int = 0
    highlights: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 50
    total_pages: int = 0
    search_time: int = 0


class SearchSuggestions(BaseModel):
    blockchains: list[str] = Field(default_factory=list)
    test_suites: list[str] = Field(default_factory=list)
    test_names: list[str] = Field(default_factory=list)
