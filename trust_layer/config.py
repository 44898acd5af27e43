"""
Environment configuration and constants.
"""
from functools import lru_cache
from typing import List, Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables from .env file at module import time
load_dotenv()

SUPPORTED_PROVIDERS = ("openai", "gemini")
ATTACH_MODES = ("background", "sync")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_title: str = "Trust Layer"
    api_version: str = "0.1.0"
    trust_layer_key: Optional[str] = None

    # Generative-text provider
    ai_provider: str = "openai"
    ai_temperature: float = 0.2
    ai_max_output_tokens: int = 2048
    ai_request_timeout: float = 120.0

    # OpenAI Configuration
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"

    # Gemini Configuration
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # GitHub Configuration
    github_token: Optional[str] = None
    github_api_base: str = "https://api.github.com"
    github_tree_ref: str = "HEAD"
    github_max_files: int = 50
    github_snippet_files: int = 5
    github_snippet_chars: int = 1500
    github_timeout: float = 30.0
    repo_summary_max_chars: int = 15_000

    # Jira Configuration
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_max_retries: int = 2
    jira_retry_delay_seconds: float = 2.0
    jira_upload_timeout: float = 30.0
    jira_comment_timeout: float = 15.0
    jira_add_comment: bool = True

    # PDF output
    pdf_output_dir: str = "/tmp/public_pdfs"
    pdf_require_issue_key: bool = False
    serve_pdfs: bool = True
    public_base_url: Optional[str] = None

    # Application Configuration
    attach_mode: str = "background"
    attachment_status_max_entries: int = 1000
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_allowed_origins: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables that aren't defined in the model

    @property
    def provider_api_key(self) -> Optional[str]:
        """Credential for the configured provider (None for unknown providers)."""
        provider = self.ai_provider.strip().lower()
        if provider == "openai":
            return self.openai_api_key
        if provider == "gemini":
            return self.gemini_api_key
        return None

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_base_url and self.jira_email and self.jira_api_token)

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    def public_pdf_url(self, filename: str) -> Optional[str]:
        """Externally reachable link to a generated PDF, if a public base URL is configured."""
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/pdfs/{filename}"


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance (built once at startup)."""
    return Settings()
