from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..schemas import OutcomeReason


class DerivativeType(str, Enum):
    THUMBNAIL = "thumbnail"
    OPTIMIZED = "optimized"


class RawAsset(BaseModel):
    """An uploaded object as reported by the storage trigger"""
    path: str
    content_type: Optional[str] = None
    bucket: Optional[str] = None


class DerivativeResult(BaseModel):
    original_path: str
    thumbnail_ref: Optional[str] = None
    optimized_ref: Optional[str] = None
    thumbnail_url: Optional[str] = None
    optimized_url: Optional[str] = None
    written_back_to: Optional[str] = None
    skipped: bool = False
    reason: Optional[OutcomeReason] = None
