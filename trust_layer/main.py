"""
FastAPI entry point for the Trust Layer service.
"""
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from trust_layer.api import analyze
from trust_layer.config import ATTACH_MODES, Settings, get_settings
from trust_layer.services.attachment_tracker import AttachmentTracker
from trust_layer.services.github_client import GitHubClient
from trust_layer.services.jira_client import JiraClient
from trust_layer.services.llm_client import build_llm_client
from trust_layer.services.pdf_renderer import PDFRenderer

logger = logging.getLogger(__name__)


def _build_jira_client(settings: Settings) -> Optional[JiraClient]:
    if not settings.jira_configured:
        logger.warning("Jira not configured (JIRA_BASE_URL/JIRA_EMAIL/JIRA_API_TOKEN); uploads disabled")
        return None
    return JiraClient(
        base_url=settings.jira_base_url,
        email=settings.jira_email,
        api_token=settings.jira_api_token,
        max_retries=settings.jira_max_retries,
        retry_delay=settings.jira_retry_delay_seconds,
        upload_timeout=settings.jira_upload_timeout,
        comment_timeout=settings.jira_comment_timeout
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Render every error body as {"error": <message>}."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "details": exc.errors()}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    All collaborators are constructed once from the settings and stored on
    app.state; request handlers never read the environment directly.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    if settings.attach_mode not in ATTACH_MODES:
        raise ValueError(f"ATTACH_MODE must be one of {ATTACH_MODES}, got '{settings.attach_mode}'")

    app = FastAPI(
        title=settings.api_title,
        description="Turns AI analyses into PDF reports attached to Jira issues",
        version=settings.api_version
    )

    app.state.settings = settings
    app.state.llm_client = build_llm_client(settings)
    app.state.github_client = GitHubClient(
        token=settings.github_token,
        api_base=settings.github_api_base,
        tree_ref=settings.github_tree_ref,
        max_files=settings.github_max_files,
        snippet_files=settings.github_snippet_files,
        snippet_chars=settings.github_snippet_chars,
        timeout=settings.github_timeout
    )
    app.state.pdf_renderer = PDFRenderer(
        output_dir=settings.pdf_output_dir,
        require_issue_key=settings.pdf_require_issue_key
    )
    app.state.jira_client = _build_jira_client(settings)
    app.state.attachment_tracker = AttachmentTracker(max_entries=settings.attachment_status_max_entries)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _register_exception_handlers(app)
    app.include_router(analyze.router, tags=["Analysis"])

    if settings.serve_pdfs:
        # Directory is created by the renderer on first write
        app.mount("/pdfs", StaticFiles(directory=settings.pdf_output_dir, check_dir=False), name="pdfs")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Trust Layer API"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    logger.info("Trust Layer configured: provider=%s attach_mode=%s output_dir=%s",
                settings.ai_provider, settings.attach_mode, settings.pdf_output_dir)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    logger.info("Trust Layer running on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
