"""
POST /analyze endpoint: prompt -> AI text -> PDF -> Jira attachment.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from trust_layer.middleware.api_key import verify_api_key
from trust_layer.models.analysis import AnalyzeRequest, AnalyzeResponse
from trust_layer.models.artifacts import AttachmentStatus
from trust_layer.services.attachment_tracker import run_attachment_job
from trust_layer.services.llm_client import LLMClientError
from trust_layer.services.pdf_renderer import PDFRendererError
from trust_layer.services.prompt_builder import enrich_prompt

logger = logging.getLogger(__name__)

JIRA_PROCESSING = "processing"
JIRA_ATTACHED = "attached"
JIRA_SKIPPED = "skipped"

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse, response_model_exclude_none=True)
async def analyze(request: Request, background_tasks: BackgroundTasks) -> AnalyzeResponse:
    """
    Generate an AI analysis, render it to PDF, and attach it to a Jira issue.

    Steps run strictly in order:
    1. Provider credential check (500 "Server misconfiguration")
    2. x-api-key check (403 "Unauthorized")
    3. Optional GitHub enrichment (failures only log)
    4. Provider call (500 "AI request failed")
    5. PDF rendering
    6. Jira upload, in the background or inline depending on ATTACH_MODE

    Returns:
        AnalyzeResponse with the generated text, a PDF reference
        (pdfUrl when PUBLIC_BASE_URL is set, pdf otherwise) and, when an
        issueKey was sent, the attachment status.
    """
    state = request.app.state
    settings = state.settings

    if not settings.provider_api_key or state.llm_client is None:
        logger.error("Provider credential missing for AI_PROVIDER=%s", settings.ai_provider)
        raise HTTPException(status_code=500, detail="Server misconfiguration")

    await verify_api_key(request)

    try:
        payload = AnalyzeRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning("Rejected /analyze body: %s", e)
        raise HTTPException(status_code=400, detail="Invalid request")

    logger.info("Processing analyze request: prompt_length=%d issue_key=%s github_url=%s",
                len(payload.prompt), payload.issue_key, bool(payload.github_url))

    prompt = payload.prompt
    if payload.github_url:
        snapshot = await run_in_threadpool(state.github_client.fetch_repo_contents, payload.github_url)
        if snapshot is None:
            logger.warning("Continuing without repository context for %s", payload.github_url)
        prompt = enrich_prompt(prompt, snapshot, max_chars=settings.repo_summary_max_chars)

    try:
        result_text = await run_in_threadpool(state.llm_client.generate, prompt)
    except LLMClientError as e:
        logger.error("AI request failed: %s", e)
        raise HTTPException(status_code=500, detail="AI request failed")

    try:
        artifact = await run_in_threadpool(state.pdf_renderer.render, result_text, payload.issue_key)
    except PDFRendererError as e:
        logger.error("PDF generation failed: %s", e)
        raise HTTPException(status_code=500, detail="Internal server error")

    public_url = settings.public_pdf_url(artifact.filename)
    response = AnalyzeResponse(result=result_text)
    if public_url:
        response.pdf_url = public_url
    else:
        response.pdf = artifact.file_path

    if not payload.issue_key:
        return response

    jira_client = state.jira_client
    if jira_client is None:
        logger.warning("issueKey %s given but Jira is not configured; skipping upload", payload.issue_key)
        response.jira = JIRA_SKIPPED
        return response

    add_comment = settings.jira_add_comment
    if settings.attach_mode == "sync":
        attachment = await run_in_threadpool(
            jira_client.attach_file,
            payload.issue_key,
            artifact.file_path,
            public_url=public_url,
            add_comment=add_comment
        )
        if not attachment.success:
            logger.error("Jira attachment failed: issue=%s kind=%s status=%s details=%s",
                         payload.issue_key, attachment.error_kind.value, attachment.status,
                         str(attachment.details)[:500])
            raise HTTPException(status_code=500, detail="Jira attachment failed")
        response.jira = JIRA_ATTACHED
        return response

    state.attachment_tracker.mark_pending(payload.issue_key, artifact.filename)
    background_tasks.add_task(
        run_attachment_job,
        state.attachment_tracker,
        jira_client,
        payload.issue_key,
        artifact.file_path,
        artifact.filename,
        public_url=public_url,
        add_comment=add_comment
    )
    response.jira = JIRA_PROCESSING
    return response


@router.get(
    "/attachments/{issue_key}",
    response_model=AttachmentStatus,
    dependencies=[Depends(verify_api_key)]
)
async def attachment_status(issue_key: str, request: Request) -> AttachmentStatus:
    """Latest background attachment state for an issue key."""
    status = request.app.state.attachment_tracker.get(issue_key)
    if status is None:
        raise HTTPException(status_code=404, detail="No attachment job for issue")
    return status
