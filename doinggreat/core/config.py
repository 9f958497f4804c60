import os
from pathlib import Path
from pydantic import BaseModel

# Local state lives next to the user, not the package (SQLite store, logs).
DEFAULT_STATE_DIR = os.path.join(Path.home(), ".doinggreat")


def _default_database_url(state_dir: str) -> str:
    return f"sqlite:///{os.path.join(state_dir, 'moments.db')}"


class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV", "local")
    state_dir: str = os.getenv("YADG_STATE_DIR", DEFAULT_STATE_DIR)
    database_url: str = os.getenv("DATABASE_URL", "") or _default_database_url(
        os.getenv("YADG_STATE_DIR", DEFAULT_STATE_DIR)
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Remote API: anonymous per-device id + static app token
    api_base_url: str = os.getenv("YADG_API_BASE_URL", "https://1test1.xyz/api/v1")
    app_token: str = os.getenv("YADG_APP_TOKEN", "")
    user_id_header: str = "x-user-id"
    app_token_header: str = "x-app-token"
    network_timeout: float = float(os.getenv("YADG_NETWORK_TIMEOUT", "30"))

    # Transient failure retries (exponential backoff with jitter)
    max_retries: int = int(os.getenv("YADG_MAX_RETRIES", "3"))
    initial_retry_delay: float = 1.0

    # AI praise enrichment polling after a moment is created
    praise_polling_interval: float = float(os.getenv("YADG_PRAISE_POLL_INTERVAL", "2"))
    max_praise_polls: int = int(os.getenv("YADG_MAX_PRAISE_POLLS", "10"))

    # Background sync of unsynced moments
    sync_poll_interval: float = float(os.getenv("YADG_SYNC_POLL_INTERVAL", "3"))

    refresh_page_size: int = 50
    next_page_size: int = 20
    timeline_page_size: int = 20
    timeline_popup_cooldown_minutes: int = 30


settings = Settings()
