"""
Transient records passed between the renderer, fetcher, and attachment client.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class AttachmentErrorKind(str, Enum):
    """Classified failure of an attach-to-Jira operation."""

    FILE_NOT_FOUND = "file_not_found"
    NON_RETRYABLE = "non_retryable"
    RETRIES_EXHAUSTED = "retries_exhausted"


class AttachmentState(str, Enum):
    """Lifecycle of a background attachment job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class GeneratedArtifact(BaseModel):
    """A PDF written to local disk by the renderer."""

    file_path: str = Field(..., description="Absolute or relative path of the written PDF")
    filename: str = Field(..., description="Basename of the PDF (AI_Analysis_<key>.pdf)")
    content_text: str = Field(default="", description="Text that was rendered into the PDF")


class RepoSnapshot(BaseModel):
    """Bounded README + file listing of a GitHub repository."""

    owner: str
    repo: str
    readme: str = ""
    files: List[str] = Field(default_factory=list, description="Blob paths in remote order, capped")
    snippets: Dict[str, str] = Field(
        default_factory=dict,
        description="Truncated contents of the first few files, fetched explicitly per file"
    )


class AttachmentResult(BaseModel):
    """
    Outcome of one attach operation (success or classified failure).

    The retry loop is internal to producing this record; a returned result is
    never retried.
    """

    success: bool
    filename: Optional[str] = None
    url: Optional[str] = Field(default=None, description="Jira-hosted content URL of the attachment")
    size: Optional[int] = None
    error_kind: Optional[AttachmentErrorKind] = None
    status: Optional[int] = Field(default=None, description="Last HTTP status seen, if any")
    details: Optional[Any] = None
    attempts: int = 0

    @classmethod
    def failure(
        cls,
        error_kind: AttachmentErrorKind,
        status: Optional[int] = None,
        details: Optional[Any] = None,
        attempts: int = 0
    ) -> "AttachmentResult":
        return cls(
            success=False,
            error_kind=error_kind,
            status=status,
            details=details,
            attempts=attempts
        )


class AttachmentStatus(BaseModel):
    """Latest known state of the attachment job for an issue key."""

    issue_key: str
    state: AttachmentState = AttachmentState.PENDING
    filename: Optional[str] = None
    result: Optional[AttachmentResult] = None
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.now)
