"""
End-to-end tests for POST /analyze and the attachment status endpoint.
"""
import os
from unittest.mock import Mock
from trust_layer.models.artifacts import AttachmentErrorKind, AttachmentResult, RepoSnapshot
from trust_layer.services.llm_client import LLMRequestError, MalformedResponseError

API_KEY = "test-trust-layer-key"
HEADERS = {"x-api-key": API_KEY}


def test_analyze_without_issue_key_returns_text_and_pdf(make_client, mock_llm, mock_jira):
    """Correct key, no issueKey: 200 with text and PDF path, no Jira upload."""
    client = make_client(jira_client=mock_jira)

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["result"] == mock_llm.generate.return_value
    assert body["result"]
    assert body["pdf"].endswith(".pdf")
    assert os.path.isfile(body["pdf"])
    assert "pdfUrl" not in body
    assert "jira" not in body
    assert mock_jira.attach_file.call_count == 0


def test_prompt_is_unchanged_without_github_url(make_client, mock_llm):
    client = make_client()

    client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    mock_llm.generate.assert_called_once_with("hello")


def test_wrong_api_key_returns_403_without_provider_call(make_client, mock_llm):
    client = make_client()

    response = client.post("/analyze", json={"prompt": "hello"}, headers={"x-api-key": "nope"})

    assert response.status_code == 403
    assert response.json() == {"error": "Unauthorized"}
    mock_llm.generate.assert_not_called()


def test_missing_api_key_returns_403(make_client, mock_llm):
    client = make_client()

    response = client.post("/analyze", json={"prompt": "hello"})

    assert response.status_code == 403
    assert response.json() == {"error": "Unauthorized"}


def test_unset_shared_secret_rejects_everything(make_client, mock_llm):
    client = make_client(trust_layer_key=None)

    response = client.post("/analyze", json={"prompt": "hello"}, headers={"x-api-key": ""})

    assert response.status_code == 403
    mock_llm.generate.assert_not_called()


def test_missing_provider_credential_is_misconfiguration(make_client, mock_llm):
    client = make_client(openai_api_key=None)

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Server misconfiguration"}
    mock_llm.generate.assert_not_called()


def test_gemini_provider_requires_gemini_key(make_client, mock_llm):
    client = make_client(ai_provider="gemini", gemini_api_key=None)

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Server misconfiguration"}


def test_provider_failure_returns_500(make_client, mock_llm):
    mock_llm.generate.side_effect = LLMRequestError("Gemini API returned HTTP 502", status=502)
    client = make_client()

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "AI request failed"}


def test_malformed_provider_response_returns_500(make_client, mock_llm):
    mock_llm.generate.side_effect = MalformedResponseError("no candidates")
    client = make_client()

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "AI request failed"}


def test_invalid_body_returns_400(make_client, mock_llm):
    client = make_client()

    response = client.post("/analyze", json={"issueKey": "ABC-1"}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    mock_llm.generate.assert_not_called()


def test_github_url_enriches_prompt(make_client, mock_llm):
    client = make_client()
    snapshot = RepoSnapshot(owner="octocat", repo="Hello-World", readme="Hi there", files=["src/app.py"])
    client.app.state.github_client = Mock()
    client.app.state.github_client.fetch_repo_contents.return_value = snapshot

    response = client.post(
        "/analyze",
        json={"prompt": "hello", "githubUrl": "https://github.com/octocat/Hello-World"},
        headers=HEADERS
    )

    assert response.status_code == 200
    sent_prompt = mock_llm.generate.call_args[0][0]
    assert sent_prompt.startswith("hello")
    assert "octocat/Hello-World" in sent_prompt
    assert "- src/app.py" in sent_prompt


def test_github_fetch_failure_keeps_prompt(make_client, mock_llm):
    client = make_client()
    client.app.state.github_client = Mock()
    client.app.state.github_client.fetch_repo_contents.return_value = None

    response = client.post(
        "/analyze",
        json={"prompt": "hello", "githubUrl": "https://example.com/not-github"},
        headers=HEADERS
    )

    assert response.status_code == 200
    mock_llm.generate.assert_called_once_with("hello")


def test_public_base_url_returns_pdf_link(make_client):
    client = make_client(public_base_url="https://trust.example.com/")

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-1"}, headers=HEADERS)

    body = response.json()
    assert body["pdfUrl"] == "https://trust.example.com/pdfs/AI_Analysis_ABC-1.pdf"
    assert "pdf" not in body


def test_background_attachment_is_reported_as_processing(make_client, mock_jira):
    client = make_client(jira_client=mock_jira)

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-1"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["jira"] == "processing"
    # TestClient runs background tasks before returning
    args, kwargs = mock_jira.attach_file.call_args
    assert args[0] == "ABC-1"
    assert args[1].endswith("AI_Analysis_ABC-1.pdf")
    assert kwargs == {"public_url": None, "add_comment": True}

    status = client.get("/attachments/ABC-1", headers=HEADERS)
    assert status.status_code == 200
    assert status.json()["state"] == "completed"
    assert status.json()["result"]["attempts"] == 1


def test_background_failure_is_visible_in_status(make_client, mock_jira):
    mock_jira.attach_file.return_value = AttachmentResult.failure(
        AttachmentErrorKind.RETRIES_EXHAUSTED, status=503, details="unavailable", attempts=3
    )
    client = make_client(jira_client=mock_jira)

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-2"}, headers=HEADERS)

    assert response.status_code == 200
    status = client.get("/attachments/ABC-2", headers=HEADERS).json()
    assert status["state"] == "failed"
    assert status["error"] == "retries_exhausted"


def test_sync_attachment_success(make_client, mock_jira):
    client = make_client(jira_client=mock_jira, attach_mode="sync")

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-1"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["jira"] == "attached"
    mock_jira.attach_file.assert_called_once()


def test_sync_attachment_failure_returns_500(make_client, mock_jira):
    mock_jira.attach_file.return_value = AttachmentResult.failure(
        AttachmentErrorKind.NON_RETRYABLE, status=401, details={"errorMessages": ["bad token"]}, attempts=1
    )
    client = make_client(jira_client=mock_jira, attach_mode="sync")

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-1"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Jira attachment failed"}


def test_issue_key_without_jira_config_is_skipped(make_client):
    client = make_client(jira_client=None)

    response = client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-1"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["jira"] == "skipped"


def test_strict_renderer_without_issue_key_is_server_error(make_client):
    client = make_client(pdf_require_issue_key=True)

    response = client.post("/analyze", json={"prompt": "hello"}, headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_generated_pdf_is_served(make_client):
    client = make_client()
    client.post("/analyze", json={"prompt": "hello", "issueKey": "ABC-9"}, headers=HEADERS)

    response = client.get("/pdfs/AI_Analysis_ABC-9.pdf")

    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_unknown_attachment_status_is_404(make_client):
    client = make_client()

    response = client.get("/attachments/NOPE-1", headers=HEADERS)

    assert response.status_code == 404
    assert response.json() == {"error": "No attachment job for issue"}


def test_attachment_status_requires_api_key(make_client):
    client = make_client()

    response = client.get("/attachments/ABC-1")

    assert response.status_code == 403


def test_health(make_client):
    client = make_client()

    assert client.get("/health").json() == {"status": "healthy"}


def test_attachment_registry_capacity_comes_from_settings(make_client):
    client = make_client(attachment_status_max_entries=5)

    assert client.app.state.attachment_tracker.max_entries == 5


def test_non_json_body_returns_400(make_client, mock_llm):
    client = make_client()

    response = client.post(
        "/analyze",
        content=b"prompt=hello",
        headers={**HEADERS, "Content-Type": "text/plain"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    mock_llm.generate.assert_not_called()
