"""Configuration loader and validator for the sheet -> calendar sync."""

import json
import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import ConfigError

DEFAULT_DATA_RANGE = "A2:AZ"
DEFAULT_TIMEZONE = "Asia/Jerusalem"
DEFAULT_PROCESSED_COLUMN = 36   # AK
DEFAULT_EVENT_ID_COLUMN = 37    # AL

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


def _as_bool(value, key: str) -> bool:
    """YAML booleans pass through; quoted true/false words are converted."""
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigError(f"{key} must be true or false, got {value!r}.")


@dataclass
class GoogleConfig:
    credentials_json_path: str = "./secrets/service_account.json"


@dataclass
class RateLimitConfig:
    sheets_per_minute: int = 40
    calendar_per_minute: int = 300
    min_call_interval: float = 0.2
    max_retries: int = 5
    base_backoff: float = 2.0


@dataclass
class AppConfig:
    state_dir: str = "./state"
    log_dir: str = "./logs"
    log_level: str = "INFO"


@dataclass
class SyncConfig:
    """Per-user sync settings. One spreadsheet tab mirrored into one calendar."""
    user_id: str
    spreadsheet_id: str = ""
    sheet_name: str = ""
    calendar_id: str = ""
    data_range: str = DEFAULT_DATA_RANGE
    timezone: str = DEFAULT_TIMEZONE
    enabled: bool = True
    processed_column_index: int = DEFAULT_PROCESSED_COLUMN
    processed_marker: str = "PROCESSED"
    update_processed_status: bool = True
    event_id_column_index: int = DEFAULT_EVENT_ID_COLUMN
    write_event_ids: bool = True
    default_start_time: str = "17:00"
    default_duration_hours: float = 3.0
    batch_size: int = 10
    scan_window_days: int = 7

    @staticmethod
    def from_dict(raw: dict) -> "SyncConfig":
        user_id = str(raw.get("user_id", "")).strip()
        if not user_id:
            raise ConfigError("Every entry under 'users' needs a user_id.")
        return SyncConfig(
            user_id=user_id,
            spreadsheet_id=str(raw.get("spreadsheet_id", "")).strip(),
            sheet_name=str(raw.get("sheet_name", "")).strip(),
            calendar_id=str(raw.get("calendar_id", "")).strip(),
            data_range=raw.get("data_range", DEFAULT_DATA_RANGE),
            timezone=raw.get("timezone", DEFAULT_TIMEZONE),
            enabled=_as_bool(raw.get("enabled", True), "enabled"),
            processed_column_index=int(raw.get("processed_column_index", DEFAULT_PROCESSED_COLUMN)),
            processed_marker=raw.get("processed_marker", "PROCESSED"),
            update_processed_status=_as_bool(
                raw.get("update_processed_status", True), "update_processed_status"),
            event_id_column_index=int(raw.get("event_id_column_index", DEFAULT_EVENT_ID_COLUMN)),
            write_event_ids=_as_bool(raw.get("write_event_ids", True), "write_event_ids"),
            default_start_time=str(raw.get("default_start_time", "17:00")),
            default_duration_hours=float(raw.get("default_duration_hours", 3.0)),
            batch_size=int(raw.get("batch_size", 10)),
            scan_window_days=int(raw.get("scan_window_days", 7)),
        )

    def require_calendar(self):
        """Fail fast before touching the calendar."""
        if not self.calendar_id or self.calendar_id.startswith("PASTE_"):
            raise ConfigError(f"Calendar ID not configured for user '{self.user_id}'.")

    def require_spreadsheet(self):
        """Fail fast before touching the spreadsheet."""
        if not self.spreadsheet_id or self.spreadsheet_id.startswith("PASTE_"):
            raise ConfigError(
                f"spreadsheet_id not configured for user '{self.user_id}'. "
                "Open your Google Sheet and copy the ID from the URL."
            )
        if not self.sheet_name:
            raise ConfigError(f"sheet_name not configured for user '{self.user_id}'.")
        if not self.data_range:
            raise ConfigError(f"data_range not configured for user '{self.user_id}'.")

    def validate(self):
        self.require_spreadsheet()
        self.require_calendar()
        if self.batch_size < 1:
            raise ConfigError("batch_size must be at least 1.")
        if self.default_duration_hours <= 0:
            raise ConfigError("default_duration_hours must be positive.")


@dataclass
class Config:
    google: GoogleConfig
    app: AppConfig
    rate_limits: RateLimitConfig
    users: Dict[str, SyncConfig] = field(default_factory=dict)
    config_path: str = ""

    @staticmethod
    def load(config_path: str) -> "Config":
        """Load config from YAML file and validate."""
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if not raw or not isinstance(raw, dict):
            raise ConfigError(f"Config file is empty or invalid: {config_path}")

        for section in ["google", "users"]:
            if section not in raw:
                raise ConfigError(f"Missing required config section: '{section}'")

        google_raw = raw["google"] or {}
        if not google_raw.get("credentials_json_path"):
            raise ConfigError("google.credentials_json_path is required.")
        google = GoogleConfig(credentials_json_path=google_raw["credentials_json_path"])

        app_raw = raw.get("app") or {}
        app = AppConfig(
            state_dir=app_raw.get("state_dir", "./state"),
            log_dir=app_raw.get("log_dir", "./logs"),
            log_level=app_raw.get("log_level", "INFO"),
        )

        rl_raw = raw.get("rate_limits") or {}
        rate_limits = RateLimitConfig(
            sheets_per_minute=int(rl_raw.get("sheets_per_minute", 40)),
            calendar_per_minute=int(rl_raw.get("calendar_per_minute", 300)),
            min_call_interval=float(rl_raw.get("min_call_interval", 0.2)),
            max_retries=int(rl_raw.get("max_retries", 5)),
            base_backoff=float(rl_raw.get("base_backoff", 2.0)),
        )

        users_raw = raw["users"]
        if not isinstance(users_raw, list) or not users_raw:
            raise ConfigError("'users' must be a non-empty list of sync configurations.")

        users: Dict[str, SyncConfig] = {}
        for entry in users_raw:
            sync = SyncConfig.from_dict(entry or {})
            if sync.user_id in users:
                raise ConfigError(f"Duplicate user_id in config: '{sync.user_id}'")
            users[sync.user_id] = sync

        return Config(
            google=google,
            app=app,
            rate_limits=rate_limits,
            users=users,
            config_path=str(path.resolve()),
        )

    def get_user(self, user_id: Optional[str] = None) -> SyncConfig:
        """Return one user's sync config. With no id, the config must have exactly one user."""
        if user_id is None:
            if len(self.users) != 1:
                raise ConfigError(
                    f"Config has {len(self.users)} users; pass --user to pick one."
                )
            return next(iter(self.users.values()))
        if user_id not in self.users:
            raise ConfigError(f"Configuration not found for user '{user_id}'.")
        return self.users[user_id]

    def enabled_users(self) -> List[SyncConfig]:
        return [u for u in self.users.values() if u.enabled]

    def ensure_state_dirs(self):
        """Create state and log directories if they don't exist."""
        for d in [self.app.state_dir, self.app.log_dir]:
            if d:
                os.makedirs(d, exist_ok=True)

    def materialize_secrets_from_env(self):
        """Write the service account file from SERVICE_ACCOUNT_JSON (CI/cloud use)."""
        value = os.environ.get("SERVICE_ACCOUNT_JSON")
        if not value:
            return
        try:
            json.loads(value)
        except json.JSONDecodeError:
            raise ConfigError("Env var SERVICE_ACCOUNT_JSON is not valid JSON.")
        target = self.google.credentials_json_path
        if os.path.dirname(target):
            os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            f.write(value)
