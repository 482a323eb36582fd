"""Configuration management for flow replay."""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutionBackend(str, Enum):
    """Execution backends a flow can be replayed against."""
    DOCUMENT = "document"  # In-page, same document
    PLAYWRIGHT = "playwright"  # Remote browser over playwright
    WEBDRIVER = "webdriver"  # Remote browser over W3C WebDriver


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWREPLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_json: bool = Field(False, description="Render logs as JSON")

    # Timeouts
    default_timeout_ms: int = Field(5000, description="Per-step resolution timeout")
    navigation_timeout_ms: int = Field(30000, description="Navigation timeout")
    poll_interval_ms: int = Field(100, description="Locator resolution poll interval")

    # Locator scoring. Empirical values, tune per site.
    min_confidence_score: int = Field(80, description="Minimum score to accept one of several candidates")
    score_test_id: int = Field(120, description="Weight for a matching test-id attribute")
    score_label_exact: int = Field(100, description="Weight for an exact label text match")
    score_label_partial: int = Field(50, description="Weight for a substring label text match")
    score_form_field_index: int = Field(90, description="Weight for a matching form field position")
    score_placeholder: int = Field(70, description="Weight for a matching placeholder")
    score_aria_label: int = Field(60, description="Weight for a matching aria-label")
    score_tag_name: int = Field(20, description="Weight for a matching tag name")
    score_role: int = Field(10, description="Weight for a matching role")

    # Run policy
    stop_on_error: bool = Field(True, description="Abort the run on the first failed step")
    step_delay_ms: int = Field(0, description="Delay between consecutive steps")

    # Browser
    backend: ExecutionBackend = Field(ExecutionBackend.PLAYWRIGHT, description="Default execution backend")
    browser_type: str = Field("chromium", description="Playwright browser type")
    headless: bool = Field(True, description="Run the browser headless")
    viewport_width: int = Field(1280, description="Viewport width")
    viewport_height: int = Field(720, description="Viewport height")
    webdriver_url: str = Field("http://localhost:4444", description="WebDriver server URL")

    # Collaborators
    backend_endpoint: Optional[str] = Field(None, description="HTTP endpoint that receives flow documents")
    flow_storage_path: str = Field("flow.json", description="File used by the JSON flow store")


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
