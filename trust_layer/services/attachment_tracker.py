"""
Supervised background attachment jobs.

The /analyze handler responds before the Jira upload finishes. Each job's
outcome is recorded here (keyed by issue key, latest job wins) so callers can
poll it, and every failure is logged with its classification.
"""
import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Optional
from trust_layer.models.artifacts import AttachmentResult, AttachmentState, AttachmentStatus
from trust_layer.services.jira_client import JiraClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


class AttachmentTracker:
    """
    Thread-safe in-memory registry of attachment job states.

    Holds at most max_entries issue keys; recording a key moves it to the
    newest position and the least recently updated key is evicted first.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._statuses: "OrderedDict[str, AttachmentStatus]" = OrderedDict()

    def _set(self, status: AttachmentStatus) -> AttachmentStatus:
        with self._lock:
            self._statuses[status.issue_key] = status
            self._statuses.move_to_end(status.issue_key)
            while len(self._statuses) > self.max_entries:
                evicted, _ = self._statuses.popitem(last=False)
                logger.debug("Evicted attachment status for %s", evicted)
        return status

    def size(self) -> int:
        with self._lock:
            return len(self._statuses)

    def mark_pending(self, issue_key: str, filename: str) -> AttachmentStatus:
        return self._set(AttachmentStatus(issue_key=issue_key, state=AttachmentState.PENDING, filename=filename))

    def mark_processing(self, issue_key: str, filename: str) -> AttachmentStatus:
        return self._set(AttachmentStatus(issue_key=issue_key, state=AttachmentState.PROCESSING, filename=filename))

    def mark_finished(self, issue_key: str, filename: str, result: AttachmentResult) -> AttachmentStatus:
        state = AttachmentState.COMPLETED if result.success else AttachmentState.FAILED
        error = None if result.success else result.error_kind.value
        return self._set(AttachmentStatus(
            issue_key=issue_key,
            state=state,
            filename=filename,
            result=result,
            error=error,
            updated_at=datetime.now()
        ))

    def mark_crashed(self, issue_key: str, filename: str, error: str) -> AttachmentStatus:
        return self._set(AttachmentStatus(
            issue_key=issue_key,
            state=AttachmentState.FAILED,
            filename=filename,
            error=error
        ))

    def get(self, issue_key: str) -> Optional[AttachmentStatus]:
        with self._lock:
            return self._statuses.get(issue_key)


def run_attachment_job(
    tracker: AttachmentTracker,
    jira_client: JiraClient,
    issue_key: str,
    file_path: str,
    filename: str,
    public_url: Optional[str] = None,
    add_comment: bool = False
) -> AttachmentStatus:
    """
    Upload a PDF and record the outcome; never raises.

    Runs after the HTTP response has been sent, so the tracker and the log are
    the only places its result can surface.
    """
    tracker.mark_processing(issue_key, filename)
    try:
        result = jira_client.attach_file(
            issue_key,
            file_path,
            public_url=public_url,
            add_comment=add_comment
        )
    except Exception as e:
        logger.exception("Background attachment crashed: issue=%s file=%s", issue_key, filename)
        return tracker.mark_crashed(issue_key, filename, f"{type(e).__name__}: {e}")

    if result.success:
        logger.info("Background attachment completed: issue=%s file=%s attempts=%d",
                    issue_key, result.filename, result.attempts)
    else:
        logger.error(
            "Background attachment failed: issue=%s file=%s kind=%s status=%s attempts=%d",
            issue_key, filename, result.error_kind.value, result.status, result.attempts
        )
    return tracker.mark_finished(issue_key, filename, result)
