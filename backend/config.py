import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "https://task-manager-38.web.app",
    "https://task-manager-38.firebaseapp.com",
]


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _database_url(env) -> str:
    url = env.get("DATABASE_URL", "").strip()
    if url:
        return url
    username = env.get("MONGODB_USERNAME", "")
    password = env.get("MONGODB_PASSWORD", "")
    if username and password:
        host = env.get("MONGODB_HOST", "cluster0.0b1vd.mongodb.net")
        app_name = env.get("MONGODB_APP_NAME", "Cluster0")
        return (
            f"mongodb+srv://{quote_plus(username)}:{quote_plus(password)}@{host}/"
            f"?retryWrites=true&w=majority&appName={app_name}"
        )
    return "mongodb://localhost:27017"


def _cors_origins(raw: Optional[str]) -> List[str]:
    if raw is None:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "task-manager"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    explicit_connect: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        """Build settings from the process environment (after loading .env)."""
        if env is None:
            load_dotenv()
            env = os.environ
        return cls(
            port=int(env.get("PORT", "3000")),
            database_url=_database_url(env),
            database_name=env.get("DATABASE_NAME", "task-manager"),
            cors_origins=_cors_origins(env.get("CORS_ORIGINS")),
            explicit_connect=_as_bool(env.get("MONGODB_EXPLICIT_CONNECT")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
