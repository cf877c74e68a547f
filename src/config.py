"""Configuration for the application."""

import os
from typing import List, Optional
from dotenv import load_dotenv

from src.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Configuration for the Slack private API session service."""

    # Browser settings
    headless: bool = os.environ.get("HEADLESS", "true").lower() == "true"
    browser_ws_endpoint: str = os.environ.get("BROWSER_WS_ENDPOINT", "")
    screenshot_dir: str = os.environ.get("SCREENSHOT_DIR", "screenshots")

    # API settings
    api_host: str = os.environ.get("API_HOST", "0.0.0.0")
    api_port: int = int(os.environ.get("PORT", "3000"))
    debug: bool = os.environ.get("DEBUG", "false").lower() == "true"

    # Slack workspace
    slack_base_url: str = os.environ.get("SLACK_BASE_URL", "https://app.slack.com/client")
    slack_team_id: str = os.environ.get("SLACK_TEAM_ID", "")
    slack_workspace_name: str = os.environ.get("SLACK_WORKSPACE_NAME", "")
    slack_login_email: str = os.environ.get("SLACK_LOGIN_EMAIL", "")
    token_capture_timeout_ms: int = int(os.environ.get("TOKEN_CAPTURE_TIMEOUT_MS", "30000"))
    login_max_wait_minutes: float = float(os.environ.get("LOGIN_MAX_WAIT_MINUTES", "3"))

    # Cookie storage configuration
    storage_type: str = os.environ.get("STORAGE_TYPE", "gcs")
    gcp_project_id: str = os.environ.get("GCP_PROJECT_ID", "")
    google_application_credentials: str = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    gcp_credentials_base64: str = os.environ.get("GCP_CREDENTIALS_BASE64", "")
    gcs_bucket_name: str = os.environ.get("GCS_BUCKET_NAME", "")
    gcs_cookies_filename: str = os.environ.get("GCS_COOKIES_FILENAME", "cookies.json")
    local_storage_dir: str = os.environ.get("LOCAL_STORAGE_DIR", ".")

    # CAPTCHA solving service
    captcha_provider: str = os.environ.get("CAPTCHA_PROVIDER", "capsolver")
    capsolver_api_key: str = os.environ.get("CAPSOLVER_API_KEY", "")
    solvecaptcha_api_key: str = os.environ.get("SOLVECAPTCHA_API_KEY", "")
    captcha_max_attempts: int = int(os.environ.get("CAPTCHA_MAX_ATTEMPTS", "60"))
    captcha_poll_interval_ms: int = int(os.environ.get("CAPTCHA_POLL_INTERVAL_MS", "5000"))
    captcha_request_timeout: float = float(os.environ.get("CAPTCHA_REQUEST_TIMEOUT", "30"))

    # Gmail inbox for Slack confirmation codes
    gmail_client_id: str = os.environ.get("GMAIL_CLIENT_ID", "")
    gmail_client_secret: str = os.environ.get("GMAIL_CLIENT_SECRET", "")
    gmail_redirect_uri: str = os.environ.get(
        "GMAIL_REDIRECT_URI", "http://localhost:3000/oauth2callback"
    )
    gmail_token_path: str = os.environ.get("GMAIL_TOKEN_PATH", "gmail-token.json")
    gmail_poll_interval_seconds: float = float(
        os.environ.get("GMAIL_POLL_INTERVAL_SECONDS", "5")
    )

    @property
    def workspace_url(self) -> str:
        """Slack client URL for the configured team."""
        return f"{self.slack_base_url.rstrip('/')}/{self.slack_team_id}"

    def missing(self, *names: str) -> List[str]:
        """Return the names of settings that are empty."""
        return [name for name in names if not getattr(self, name, None)]

    def validate_required(self, *names: str, context: Optional[str] = None) -> None:
        """Raise ConfigurationError if any of the named settings is empty."""
        missing = self.missing(*names)
        if missing:
            where = f" for {context}" if context else ""
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required settings{where}: {env_names}")


# Global settings instance
settings = Settings()

# Debug logging for environment variables
import logging
logger = logging.getLogger(__name__)
logger.info(f"CAPSOLVER_API_KEY loaded: {'***' if settings.capsolver_api_key else 'NOT SET'}")
logger.info(f"SOLVECAPTCHA_API_KEY loaded: {'***' if settings.solvecaptcha_api_key else 'NOT SET'}")
logger.info(f"GMAIL_CLIENT_SECRET loaded: {'***' if settings.gmail_client_secret else 'NOT SET'}")
logger.info(f"GCP_CREDENTIALS_BASE64 loaded: {'***' if settings.gcp_credentials_base64 else 'NOT SET'}")
