"""
Shared fixtures: explicit settings, a mocked provider, and an app factory.
"""
import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from trust_layer.config import Settings
from trust_layer.main import create_app
from trust_layer.models.artifacts import AttachmentResult

API_KEY = "test-trust-layer-key"
AI_TEXT = "Overall the service looks healthy.\n\n- Rotate the API token\n- Add rate limiting"


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the host environment and .env files."""
    return Settings(
        _env_file=None,
        trust_layer_key=API_KEY,
        ai_provider="openai",
        openai_api_key="sk-test",
        gemini_api_key=None,
        github_token=None,
        jira_base_url=None,
        jira_email=None,
        jira_api_token=None,
        pdf_output_dir=str(tmp_path / "pdfs"),
        pdf_require_issue_key=False,
        public_base_url=None,
        attach_mode="background",
        jira_add_comment=True,
        cors_allowed_origins=""
    )


@pytest.fixture
def mock_llm():
    llm = Mock()
    llm.generate.return_value = AI_TEXT
    return llm


@pytest.fixture
def mock_jira():
    jira = Mock()
    jira.attach_file.return_value = AttachmentResult(
        success=True,
        filename="AI_Analysis_ABC-1.pdf",
        url="https://example.atlassian.net/secure/attachment/10001/AI_Analysis_ABC-1.pdf",
        size=2048,
        attempts=1
    )
    return jira


@pytest.fixture
def make_client(settings, mock_llm):
    """Build a TestClient with the provider (and optionally Jira) replaced by mocks."""

    def _make(jira_client=None, **overrides):
        app = create_app(settings.model_copy(update=overrides))
        app.state.llm_client = mock_llm
        app.state.jira_client = jira_client
        return TestClient(app)

    return _make
