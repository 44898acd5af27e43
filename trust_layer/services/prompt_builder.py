"""
Prompt enrichment with repository context.
"""
from typing import Optional
from trust_layer.models.artifacts import RepoSnapshot

DEFAULT_SUMMARY_MAX_CHARS = 15_000
README_MAX_CHARS = 4_000
TRUNCATION_MARKER = "\n... (truncated)"


def build_repo_summary(snapshot: RepoSnapshot, max_chars: int = DEFAULT_SUMMARY_MAX_CHARS) -> str:
    """
    Build a bounded plain-text summary of a repository snapshot.

    The summary lists the README (truncated), all file paths, and the
    per-file snippets, and never exceeds max_chars.
    """
    sections = [f"Repository: {snapshot.owner}/{snapshot.repo}"]

    if snapshot.readme.strip():
        readme = snapshot.readme.strip()
        if len(readme) > README_MAX_CHARS:
            readme = readme[:README_MAX_CHARS] + TRUNCATION_MARKER
        sections.append(f"README:\n{readme}")

    if snapshot.files:
        sections.append("Files:\n" + "\n".join(f"- {path}" for path in snapshot.files))

    for path, snippet in snapshot.snippets.items():
        sections.append(f"--- {path} ---\n{snippet}")

    summary = "\n\n".join(sections)
    if len(summary) > max_chars:
        summary = summary[: max(0, max_chars - len(TRUNCATION_MARKER))] + TRUNCATION_MARKER
    return summary


def enrich_prompt(
    prompt: str,
    snapshot: Optional[RepoSnapshot],
    max_chars: int = DEFAULT_SUMMARY_MAX_CHARS
) -> str:
    """Append repository context to the prompt; without a snapshot the prompt is returned unchanged."""
    if snapshot is None:
        return prompt
    summary = build_repo_summary(snapshot, max_chars=max_chars)
    return f"{prompt}\n\n--- Repository context ---\n{summary}"
