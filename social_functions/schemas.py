from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class OutcomeStatus(str, Enum):
    OK = "ok"
    IGNORED = "ignored"
    FAILED = "failed"


class OutcomeReason(str, Enum):
    NOT_FOUND = "not_found"
    NO_TOKEN = "no_token"
    NO_RECIPIENTS = "no_recipients"
    NOT_AN_IMAGE = "not_an_image"
    DERIVATIVE_PATH = "derivative_path"
    TEMP_PATH = "temp_path"
    RENDER_ERROR = "render_error"
    TRANSPORT_ERROR = "transport_error"
    STORE_ERROR = "store_error"
    STORAGE_ERROR = "storage_error"
    CODEC_ERROR = "codec_error"
    UNEXPECTED_ERROR = "unexpected_error"


class StoredDocument(BaseModel):
    """A document read from the document store"""
    id: str
    path: str
    data: Dict[str, Any] = Field(default_factory=dict)


class DocumentEvent(BaseModel):
    """A document-created or document-updated trigger event"""
    path: str
    params: Dict[str, str] = Field(default_factory=dict)
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @property
    def document_id(self) -> str:
        return self.path.rstrip('/').split('/')[-1]


class StorageEvent(BaseModel):
    """An object-finalized trigger event"""
    bucket: Optional[str] = None
    name: str
    contentType: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class ScheduleEvent(BaseModel):
    """A timer tick"""
    schedule: str
    timezone: str = "UTC"


class HandlerOutcome(BaseModel):
    """Result of a single handler invocation.

    Handlers never raise to the trigger runtime; IGNORED marks intentionally
    skipped work, FAILED marks a logged unexpected failure.
    """
    status: OutcomeStatus
    reason: Optional[OutcomeReason] = None
    detail: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, **detail) -> "HandlerOutcome":
        return cls(status=OutcomeStatus.OK, detail=detail)

    @classmethod
    def ignored(cls, reason: OutcomeReason, **detail) -> "HandlerOutcome":
        return cls(status=OutcomeStatus.IGNORED, reason=reason, detail=detail)

    @classmethod
    def failed(cls, reason: OutcomeReason, **detail) -> "HandlerOutcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason, detail=detail)
