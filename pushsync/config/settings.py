"""
Configuration management for the GitHub push sync service.

This module provides environment-based configuration using Pydantic Settings.
Supports loading from .env files, environment variables, and provides
startup validation with clear error messages.
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pushsync.utils.logging import get_logger

logger = get_logger(__name__)


class SyncSettings(BaseSettings):
    """
    Service settings loaded from environment variables.

    All settings can be overridden via environment variables or a .env file.
    Priority: Environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown environment variables
    )

    # ======================
    # GitHub Configuration
    # ======================
    github_webhook_secret: Optional[str] = None
    """Secret entered on the repository's Webhook settings page."""
    github_username: Optional[str] = None
    """Username for basic auth against raw.githubusercontent.com (private repos)."""
    github_password: Optional[str] = None
    """Password or token paired with github_username."""

    # ======================
    # Sync Configuration
    # ======================
    watched_branch: str = "main"
    """Branch whose pushes are replicated."""
    folder_scope: str = ""
    """Repository folder to replicate; empty replicates the whole repository."""
    target_folder: Optional[str] = None
    """Local directory that receives the changes."""
    sync_comment: Optional[str] = None
    """Comment injected into downloaded .php, .css and .js files."""
    download_timeout_seconds: float = 30.0
    """Upper bound for a single file download."""
    dry_run: bool = False
    """List the changes instead of applying them."""

    # ======================
    # Application Settings
    # ======================
    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""
    environment: str = "development"
    """Application environment (development, staging, production)."""

    # ======================
    # Validators
    # ======================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        return upper_v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production"}
        lower_v = v.lower()
        if lower_v not in valid_envs:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {', '.join(sorted(valid_envs))}"
            )
        return lower_v

    @field_validator("folder_scope")
    @classmethod
    def normalize_folder_scope(cls, v: str) -> str:
        """Strip surrounding slashes so 'docs/' and '/docs' both mean 'docs'."""
        return v.strip().strip("/")

    @field_validator("watched_branch")
    @classmethod
    def validate_watched_branch(cls, v: str) -> str:
        branch = v.strip()
        if branch.startswith("refs/heads/"):
            branch = branch[len("refs/heads/"):]
        if not branch:
            raise ValueError("watched_branch must not be empty")
        return branch

    @field_validator("download_timeout_seconds")
    @classmethod
    def validate_download_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"download_timeout_seconds must be positive, got {v}")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def has_webhook_secret(self) -> bool:
        """Check if webhook secret is configured."""
        return bool(self.github_webhook_secret and self.github_webhook_secret != "your_webhook_secret_here")

    @property
    def has_github_credentials(self) -> bool:
        """Check if basic-auth credentials for raw content are configured."""
        return bool(self.github_username and self.github_password)

    def validate_for_startup(self) -> list[str]:
        """
        Validate configuration for startup and return warnings.

        Raises ValueError for critical missing configurations in production.
        """
        warnings = []
        errors = []

        if not self.has_webhook_secret:
            if self.is_production:
                errors.append("GITHUB_WEBHOOK_SECRET is required in production")
            else:
                warnings.append(
                    "GITHUB_WEBHOOK_SECRET not configured - webhook signature validation disabled"
                )

        if not self.target_folder and not self.dry_run:
            if self.is_production:
                errors.append("TARGET_FOLDER is required in production unless DRY_RUN is set")
            else:
                warnings.append(
                    "TARGET_FOLDER not configured - push deliveries will be rejected"
                )

        if bool(self.github_username) != bool(self.github_password):
            warnings.append(
                "Only one of GITHUB_USERNAME / GITHUB_PASSWORD is set - downloads will be anonymous"
            )

        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)

        return warnings

    def log_configuration_summary(self) -> None:
        """Log a summary of the current configuration (without secrets)."""
        logger.info(
            "configuration_summary",
            environment=self.environment,
            log_level=self.log_level,
            watched_branch=self.watched_branch,
            folder_scope=self.folder_scope or None,
            target_folder=self.target_folder,
            webhook_secret_configured=self.has_webhook_secret,
            github_credentials_configured=self.has_github_credentials,
            comment_configured=bool(self.sync_comment),
            download_timeout_seconds=self.download_timeout_seconds,
            dry_run=self.dry_run,
        )


@lru_cache()
def get_settings() -> SyncSettings:
    """
    Get the global service settings (cached).

    Returns:
        SyncSettings: The configured service settings.
    """
    return SyncSettings()
