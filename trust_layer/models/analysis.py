"""
Request and response models for the /analyze API.
"""
from typing import Optional
from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Request model for POST /analyze (JSON body)."""

    prompt: str = Field(..., min_length=1, description="Prompt forwarded to the AI provider")
    issue_key: Optional[str] = Field(
        default=None,
        alias="issueKey",
        description="Jira issue to attach the generated PDF to (e.g., 'ABC-123')"
    )
    github_url: Optional[str] = Field(
        default=None,
        alias="githubUrl",
        description="GitHub repository whose README and file listing enrich the prompt"
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "prompt": "Summarize the security posture of this service.",
                "issueKey": "SEC-42",
                "githubUrl": "https://github.com/octocat/Hello-World"
            }
        }


class AnalyzeResponse(BaseModel):
    """Generated text plus a reference to the rendered PDF."""

    result: str
    pdf_url: Optional[str] = Field(default=None, alias="pdfUrl", description="Public link to the PDF")
    pdf: Optional[str] = Field(default=None, description="Local path of the PDF when no public URL is configured")
    jira: Optional[str] = Field(
        default=None,
        description="Attachment status: processing | attached | skipped (omitted without issueKey)"
    )

    class Config:
        populate_by_name = True
