"""Application configuration using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Storage
    data_dir: str = "data"
    database_url: str = "sqlite+aiosqlite:///./data/tracker.db"

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    app_host: str = "0.0.0.0"
    app_port: int = 3000

    # Civil day used for the daily check gate
    timezone: str = "Europe/Dublin"

    # ==========================================================================
    # Run Gate
    # ==========================================================================
    lock_file_name: str = "run.lock"
    lock_stale_seconds: int = 60 * 60  # 1 hour

    # ==========================================================================
    # Browser / Session Settings
    # ==========================================================================
    profile_dir_name: str = "playwright-profile"
    storage_state_file: str = "storage.json"
    storage_reload_age_seconds: float = 5.0  # Reload contexts if another writer saved the identity this recently
    maps_home_url: str = "https://www.google.com/maps"
    viewport_width: int = 1280
    viewport_height: int = 800
    browser_locale: str = "en-US"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    browser_channel: str = "chromium"
    browser_headless: bool = True  # Status and extraction context; login is always visible
    auth_cookie_names: list[str] = ["SID", "HSID", "SSID"]

    # ==========================================================================
    # Timeouts (seconds)
    # ==========================================================================
    page_load_timeout: float = 30.0
    selector_wait_timeout: float = 10.0  # Structural marker wait, allowed to fail
    field_extraction_timeout: float = 10.0  # Per-field race
    query_timeout: float = 1.0  # Single DOM query inside a strategy
    visibility_check_timeout: float = 0.3
    settle_delay_seconds: float = 1.5
    status_settle_delay_seconds: float = 2.0
    login_check_timeout: float = 5.0
    login_poll_interval_seconds: float = 5.0
    login_max_wait_seconds: float = 10 * 60  # 10 minutes

    # Performance thresholds (seconds) for slow-operation warnings
    slow_navigation_seconds: float = 5.0
    slow_extraction_seconds: float = 10.0

    # ==========================================================================
    # Screenshots
    # ==========================================================================
    screenshot_dir_name: str = "screenshots"
    screenshot_width: int = 1280
    screenshot_height: int = 800
    screenshot_settle_seconds: float = 1.0

    # ==========================================================================
    # Check Orchestration
    # ==========================================================================
    check_all_concurrency: int = 3

    # ==========================================================================
    # Google OAuth / Sheets / Drive
    # ==========================================================================
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:3000/api/auth/callback"
    google_credentials_file: str = "credentials.json"
    google_token_file: str = "token.json"
    drive_root_folder_name: str = "Google Business Tracker"
    drive_screenshots_folder_name: str = "screenshots"
    sheet_title_prefix: str = "Google Business - "
    sheet_tab_name: str = "Snapshots"

    # ==========================================================================
    # Scheduler
    # ==========================================================================
    scheduler_enabled: bool = True
    daily_check_hour: int = 6
    daily_check_minute: int = 0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def lock_path(self) -> Path:
        return self.data_path / self.lock_file_name

    @property
    def profile_path(self) -> Path:
        return self.data_path / self.profile_dir_name

    @property
    def storage_state_path(self) -> Path:
        return self.profile_path / self.storage_state_file

    @property
    def screenshot_path(self) -> Path:
        return self.data_path / self.screenshot_dir_name

    @property
    def token_path(self) -> Path:
        return self.data_path / self.google_token_file

    @property
    def credentials_path(self) -> Path:
        return self.data_path / self.google_credentials_file


settings = Settings()
