from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os

load_dotenv()


def _env(name: str, default: str | None = None):
    return Field(default_factory=lambda: os.getenv(name, default))


def _int_env(name: str, default: int):
    def read() -> int:
        raw = os.getenv(name, "").strip()
        return int(raw) if raw.isdigit() else default

    return Field(default_factory=read)


def _float_env(name: str, default: float):
    def read() -> float:
        raw = os.getenv(name, "").strip()
        try:
            return float(raw) if raw else default
        except ValueError:
            return default

    return Field(default_factory=read)


class Settings(BaseModel):
    # "mock" wires in-memory fakes, "live" talks to Drive / Asana / Slack
    integrations_provider: str = _env("INTEGRATIONS_PROVIDER", "mock")
    store_backend: str = _env("STORE_BACKEND", "json")
    data_dir: str = _env("DATA_DIR", "out/submissions")

    google_drive_access_token: str | None = _env("GOOGLE_DRIVE_ACCESS_TOKEN")
    google_drive_al_shared_drive_id: str = _env("GOOGLE_DRIVE_AL_SHARED_DRIVE_ID", "")
    google_drive_mz_shared_drive_id: str = _env("GOOGLE_DRIVE_MZ_SHARED_DRIVE_ID", "")

    asana_access_token: str | None = _env("ASANA_ACCESS_TOKEN")
    asana_project_id: str = _env("ASANA_PROJECT_ID", "1211223909834951")

    slack_tech_alert_webhook: str | None = _env("SLACK_TECH_ALERT_WEBHOOK")
    slack_success_webhook: str | None = _env("SLACK_SUCCESS_WEBHOOK")

    app_url: str = _env("APP_URL", "http://localhost:8000")
    http_timeout_seconds: float = _float_env("HTTP_TIMEOUT_SECONDS", 30.0)

    submit_rate_limit: int = _int_env("SUBMIT_RATE_LIMIT", 5)
    read_rate_limit: int = _int_env("READ_RATE_LIMIT", 100)
    rate_limit_window_seconds: int = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)


def get_settings() -> Settings:
    # re-read env each time (good for tests)
    return Settings()
