"""
Search option validation models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..core.config import DEFAULT_LIMIT, DEFAULT_THRESHOLD

MAX_LIMIT = 1000


class SearchOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')

    threshold: float = DEFAULT_THRESHOLD
    limit: int = DEFAULT_LIMIT
    category_filter: Optional[str] = None
    source_type_filter: Optional[str] = None

    @field_validator('threshold')
    @classmethod
    def threshold_must_be_in_range(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError('threshold must be between 0 and 1')
        return v

    @field_validator('limit')
    @classmethod
    def limit_must_be_in_range(cls, v):
        if not 1 <= v <= MAX_LIMIT:
            raise ValueError(f'limit must be between 1 and {MAX_LIMIT}')
        return v

    @field_validator('category_filter', 'source_type_filter')
    @classmethod
    def empty_filter_means_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v
