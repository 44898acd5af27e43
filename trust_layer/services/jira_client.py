"""
Jira client for uploading analysis PDFs as issue attachments.

Uploads are retried on transient failures (connection errors, timeouts, 5xx)
and abandoned immediately on client-error statuses. A follow-up comment with
the public PDF link is best-effort only.
"""
import logging
import os
import time
import urllib.parse
from typing import Any, Dict, List, Optional
import requests
from requests.auth import HTTPBasicAuth
from trust_layer.models.artifacts import AttachmentErrorKind, AttachmentResult

logger = logging.getLogger(__name__)

NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 413, 415})
MAX_LOGGED_BODY_CHARS = 500


class JiraClientError(Exception):
    """Raised when Jira API calls fail."""
    pass


class JiraClient:
    """Client for attaching files and comments to Jira issues."""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        max_retries: int = 2,
        retry_delay: float = 2.0,
        upload_timeout: float = 30.0,
        comment_timeout: float = 15.0
    ):
        """
        Initialize Jira client.

        Args:
            base_url: Jira instance URL (e.g., "https://yourcompany.atlassian.net")
            email: Jira user email for authentication
            api_token: Jira API token for authentication
            max_retries: Retries after the first upload attempt (default: 2)
            retry_delay: Base delay in seconds; attempt N waits retry_delay * N
            upload_timeout: Per-attempt upload timeout in seconds
            comment_timeout: Timeout in seconds for comment posting
        """
        self.jira_url = (base_url or "").rstrip("/")
        self.email = email
        self.api_token = api_token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.upload_timeout = upload_timeout
        self.comment_timeout = comment_timeout

        if not self.jira_url:
            raise JiraClientError("JIRA_BASE_URL cannot be empty")
        if not self.email:
            raise JiraClientError("JIRA_EMAIL cannot be empty")
        if not self.api_token:
            raise JiraClientError("JIRA_API_TOKEN cannot be empty")

    @property
    def _auth(self) -> HTTPBasicAuth:
        return HTTPBasicAuth(self.email, self.api_token)

    def attach_file(
        self,
        issue_key: str,
        file_path: str,
        public_url: Optional[str] = None,
        add_comment: bool = False
    ) -> AttachmentResult:
        """
        Upload a local file as an attachment to a Jira issue.

        Args:
            issue_key: Jira issue key (e.g., "ABC-123")
            file_path: Local path of the file to upload
            public_url: Optional externally reachable link to the same file
            add_comment: Post a comment referencing both copies after upload
                         (only when public_url is given)

        Returns:
            AttachmentResult. Failures are returned, not raised:
            - file_not_found: local file missing, no request was sent
            - non_retryable: Jira answered 400/401/403/413/415
            - retries_exhausted: transient failures outlasted the retry budget
        """
        if not os.path.isfile(file_path):
            logger.error("Attachment source not found: %s", file_path)
            return AttachmentResult.failure(
                AttachmentErrorKind.FILE_NOT_FOUND,
                details=f"File does not exist: {file_path}"
            )

        url = f"{self.jira_url}/rest/api/3/issue/{_issue_path(issue_key)}/attachments"
        filename = os.path.basename(file_path)
        headers = {"Accept": "application/json", "X-Atlassian-Token": "no-check"}
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            status: Optional[int] = None
            try:
                with open(file_path, "rb") as fh:
                    response = requests.post(
                        url,
                        auth=self._auth,
                        headers=headers,
                        files={"file": (filename, fh, "application/pdf")},
                        timeout=self.upload_timeout
                    )
                status = response.status_code
                if response.ok:
                    logger.info("Jira attach HTTP %s for %s (attempt %d)", status, issue_key, attempt)
                    result = self._parse_attachment_response(response, filename, attempt)
                    if public_url and add_comment:
                        self._post_link_comment(issue_key, result, public_url)
                    return result
                details: Any = _response_details(response)
            except requests.exceptions.RequestException as e:
                details = str(e)

            logger.error(
                "Jira attach attempt %d/%d failed for %s: status=%s details=%s",
                attempt, total_attempts, issue_key, status, str(details)[:MAX_LOGGED_BODY_CHARS]
            )

            if status in NON_RETRYABLE_STATUSES:
                return AttachmentResult.failure(
                    AttachmentErrorKind.NON_RETRYABLE,
                    status=status,
                    details=details,
                    attempts=attempt
                )

            if attempt == total_attempts:
                return AttachmentResult.failure(
                    AttachmentErrorKind.RETRIES_EXHAUSTED,
                    status=status,
                    details=details,
                    attempts=attempt
                )

            time.sleep(self.retry_delay * attempt)

        # Unreachable: the loop always returns on its last attempt
        raise JiraClientError("Attachment retry loop exited without a result")

    def _parse_attachment_response(
        self,
        response: requests.Response,
        local_filename: str,
        attempts: int
    ) -> AttachmentResult:
        """
        Extract the first attachment from an upload response.

        Jira answers with a bare list of attachment objects; some proxies wrap
        it as {"values": [...]}.
        """
        try:
            body = response.json()
        except ValueError:
            body = None

        attachments: List[Dict[str, Any]] = []
        if isinstance(body, list):
            attachments = body
        elif isinstance(body, dict) and isinstance(body.get("values"), list):
            attachments = body["values"]

        attachment = attachments[0] if attachments and isinstance(attachments[0], dict) else None
        if attachment is None:
            logger.warning("Jira attach succeeded but response has no attachment object")
            return AttachmentResult(success=True, filename=local_filename, attempts=attempts)

        logger.info("Attached %s -> %s", attachment.get("filename"), attachment.get("content"))
        return AttachmentResult(
            success=True,
            filename=attachment.get("filename") or local_filename,
            url=attachment.get("content"),
            size=attachment.get("size"),
            attempts=attempts
        )

    def _post_link_comment(self, issue_key: str, result: AttachmentResult, public_url: str) -> None:
        """Best-effort comment; failures are logged and never change the upload result."""
        lines = ["AI analysis PDF attached."]
        if result.url:
            lines.append(f"Jira copy: {result.url}")
        lines.append(f"Public link: {public_url}")
        try:
            self.add_comment(issue_key, "\n".join(lines))
        except JiraClientError as e:
            logger.warning("Failed to add Jira comment with public link on %s: %s", issue_key, e)

    def add_comment(self, issue_key: str, comment_text: str) -> Dict[str, Any]:
        """
        Add a comment to a Jira issue.

        Args:
            issue_key: Jira issue key (e.g., "ABC-123")
            comment_text: Plain text comment to add (preserves newlines)

        Returns:
            Jira API response with comment ID

        Raises:
            JiraClientError: If comment addition fails
        """
        # Format comment as ADF (Atlassian Document Format), one paragraph per line
        content = []
        for line in comment_text.split("\n"):
            if line.strip():
                content.append({"type": "paragraph", "content": [{"type": "text", "text": line}]})
            else:
                content.append({"type": "paragraph", "content": []})

        payload = {"body": {"type": "doc", "version": 1, "content": content}}
        url = f"{self.jira_url}/rest/api/3/issue/{_issue_path(issue_key)}/comment"

        try:
            response = requests.post(
                url,
                auth=self._auth,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                json=payload,
                timeout=self.comment_timeout
            )
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            raise JiraClientError(f"Failed to add comment to issue {issue_key}: {str(e)}")
        except ValueError as e:
            raise JiraClientError(f"Invalid comment response for issue {issue_key}: {str(e)}")


def _response_details(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:MAX_LOGGED_BODY_CHARS]


def _issue_path(issue_key: str) -> str:
    # Keeps "/", "?" and "#" in a key from leaving the /issue/<key> path segment
    return urllib.parse.quote(str(issue_key), safe="")
