import logging
import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        safety_net_hours: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.safety_net_hours = safety_net_hours


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("PLANLEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "planledger.db"
    database_url = os.getenv("PLANLEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("PLANLEDGER_TIMEZONE", "Europe/Berlin")
    log_level = os.getenv("PLANLEDGER_LOG_LEVEL", "INFO").upper()
    safety_net_hours = int(os.getenv("PLANLEDGER_SAFETY_NET_HOURS", "6"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        safety_net_hours=max(0, safety_net_hours),
    )


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
