import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        remote_url: Optional[str],
        remote_user_id: str,
        remote_timeout_secs: float,
        sync_interval_secs: int,
        alert_interval_minutes: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.remote_url = remote_url
        self.remote_user_id = remote_user_id
        self.remote_timeout_secs = remote_timeout_secs
        self.sync_interval_secs = sync_interval_secs
        self.alert_interval_minutes = alert_interval_minutes

    @property
    def sync_enabled(self) -> bool:
        return bool(self.remote_url)


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCEHUB_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "financehub.db"
    database_url = os.getenv("FINANCEHUB_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCEHUB_TIMEZONE", "Europe/Lisbon")
    remote_url = os.getenv("FINANCEHUB_REMOTE_URL", "").strip().rstrip("/") or None
    remote_user_id = os.getenv("FINANCEHUB_REMOTE_USER_ID", "default")
    remote_timeout_secs = float(os.getenv("FINANCEHUB_REMOTE_TIMEOUT_SECS", "10"))
    sync_interval_secs = int(os.getenv("FINANCEHUB_SYNC_INTERVAL_SECS", "60"))
    alert_interval_minutes = int(os.getenv("FINANCEHUB_ALERT_INTERVAL_MINUTES", "60"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        remote_url=remote_url,
        remote_user_id=remote_user_id,
        remote_timeout_secs=remote_timeout_secs,
        sync_interval_secs=sync_interval_secs,
        alert_interval_minutes=alert_interval_minutes,
    )
