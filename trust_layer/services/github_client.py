"""
GitHub client for fetching a bounded snapshot of a repository.

Only the README, the recursive file listing, and a few explicitly fetched
file snippets are retrieved. Any failure degrades to less context rather
than failing the analysis request.
"""
import logging
import re
import urllib.parse
from typing import Dict, List, Optional, Tuple
import requests
from trust_layer.models.artifacts import RepoSnapshot

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"github\.com/([^/\s]+)/([^/\s?#]+)(?:[/?#]|$)")
RAW_ACCEPT = "application/vnd.github.v3.raw"
JSON_ACCEPT = "application/vnd.github.v3+json"


class RepoFetchError(Exception):
    """Raised when a repository URL cannot be resolved to owner/repo."""
    pass


def parse_github_url(url: str) -> Tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub repository URL.

    Accepts https://github.com/<owner>/<repo>[.git][/...].

    Raises:
        RepoFetchError: If the URL does not point at a GitHub repository
    """
    match = GITHUB_URL_PATTERN.search(url or "")
    if not match:
        raise RepoFetchError(f"Invalid GitHub URL: {url}")
    owner = match.group(1)
    repo = re.sub(r"\.git$", "", match.group(2))
    if not repo:
        raise RepoFetchError(f"Invalid GitHub URL: {url}")
    return owner, repo


class GitHubClient:
    """Read-only client for the GitHub REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_base: str = "https://api.github.com",
        tree_ref: str = "HEAD",
        max_files: int = 50,
        snippet_files: int = 5,
        snippet_chars: int = 1500,
        timeout: float = 30.0
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.tree_ref = tree_ref
        self.max_files = max_files
        self.snippet_files = snippet_files
        self.snippet_chars = snippet_chars
        self.timeout = timeout

    def _headers(self, accept: str) -> Dict[str, str]:
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def fetch_repo_contents(self, url: str) -> Optional[RepoSnapshot]:
        """
        Fetch README, file listing, and snippets for a repository.

        Args:
            url: Repository URL (e.g., "https://github.com/owner/repo")

        Returns:
            RepoSnapshot, or None if the URL is invalid or GitHub is unreachable
        """
        try:
            owner, repo = parse_github_url(url)
        except RepoFetchError as e:
            logger.error("GitHub fetch skipped: %s", e)
            return None

        try:
            readme = self._fetch_readme(owner, repo)
            files = self._fetch_file_list(owner, repo)
            snippets = self._fetch_snippets(owner, repo, files[: self.snippet_files])
        except requests.exceptions.RequestException as e:
            logger.error("GitHub fetch failed for %s/%s: %s", owner, repo, e)
            return None

        logger.info("Fetched %s/%s: readme=%d chars, files=%d, snippets=%d",
                    owner, repo, len(readme), len(files), len(snippets))
        return RepoSnapshot(owner=owner, repo=repo, readme=readme, files=files, snippets=snippets)

    def _fetch_readme(self, owner: str, repo: str) -> str:
        response = requests.get(
            f"{self.api_base}/repos/{owner}/{repo}/contents/README.md",
            headers=self._headers(RAW_ACCEPT),
            timeout=self.timeout
        )
        if not response.ok:
            logger.warning("No README.md found in %s/%s (HTTP %s)", owner, repo, response.status_code)
            return ""
        return response.text

    def _fetch_file_list(self, owner: str, repo: str) -> List[str]:
        response = requests.get(
            f"{self.api_base}/repos/{owner}/{repo}/git/trees/{self.tree_ref}",
            headers=self._headers(JSON_ACCEPT),
            params={"recursive": "1"},
            timeout=self.timeout
        )
        if not response.ok:
            logger.warning("File tree unavailable for %s/%s (HTTP %s)", owner, repo, response.status_code)
            return []
        try:
            tree = response.json().get("tree", [])
        except (ValueError, AttributeError):
            logger.warning("Malformed file tree response for %s/%s", owner, repo)
            return []

        # Blobs only, in the order GitHub returns them
        paths = [
            item["path"]
            for item in tree
            if isinstance(item, dict) and item.get("type") == "blob" and item.get("path")
        ]
        return paths[: self.max_files]

    def _fetch_snippets(self, owner: str, repo: str, paths: List[str]) -> Dict[str, str]:
        """Fetch raw contents per file; the tree listing carries no file bodies."""
        snippets: Dict[str, str] = {}
        for path in paths:
            try:
                response = requests.get(
                    f"{self.api_base}/repos/{owner}/{repo}/contents/{urllib.parse.quote(path)}",
                    headers=self._headers(RAW_ACCEPT),
                    timeout=self.timeout
                )
            except requests.exceptions.RequestException as e:
                logger.debug("Skipping snippet for %s: %s", path, e)
                continue
            if not response.ok:
                logger.debug("Skipping snippet for %s (HTTP %s)", path, response.status_code)
                continue
            text = response.text
            if len(text) > self.snippet_chars:
                text = text[: self.snippet_chars] + "\n... (truncated)"
            snippets[path] = text
        return snippets
