import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    app_name: str = "Fingerprint Enrollment Backend"
    app_env: str = "development"
    port: int = 3000
    database_url: str = "sqlite+aiosqlite:///./fingerprint_database.sqlite"
    db_echo: bool = False
    agent_url: str = "http://127.0.0.1:5000"
    agent_timeout: float = 30.0
    agent_connect_timeout: float = 5.0
    event_relay_enabled: bool = True
    event_reconnect_delay: float = 5.0
    event_queue_size: int = 100
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            app_env=os.getenv("APP_ENV", cls.app_env),
            port=int(os.getenv("PORT", cls.port)),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            db_echo=_env_bool("DB_ECHO", cls.db_echo),
            agent_url=os.getenv("AGENT_URL", cls.agent_url).rstrip("/"),
            agent_timeout=float(os.getenv("AGENT_TIMEOUT", cls.agent_timeout)),
            agent_connect_timeout=float(os.getenv("AGENT_CONNECT_TIMEOUT", cls.agent_connect_timeout)),
            event_relay_enabled=_env_bool("EVENT_RELAY_ENABLED", cls.event_relay_enabled),
            event_reconnect_delay=float(os.getenv("EVENT_RECONNECT_DELAY", cls.event_reconnect_delay)),
            event_queue_size=int(os.getenv("EVENT_QUEUE_SIZE", cls.event_queue_size)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )


settings = Settings.from_env()
