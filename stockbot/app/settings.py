from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

from stockbot.app.errors import ConfigError

DEFAULT_TICKERS_PATH = str(Path(__file__).resolve().parent.parent / "data" / "tickers_with_price.json")

def _get_env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v == "":
        raise ConfigError(f"Missing required env var: {name}")
    return v

def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"Env var {name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"Env var {name} must be positive, got {value}")
    return value

@dataclass(frozen=True)
class Settings:
    # Storage
    store_backend: str
    mongo_uri: str | None
    mongo_db: str

    # Sessions
    session_ttl_seconds: int
    context_window: int

    # Agent (Cerebras)
    cerebras_api_key: str | None
    agent_model: str
    agent_max_tool_loops: int

    # Data
    tickers_path: str

    log_level: str

def load_settings() -> Settings:
    backend = os.getenv("STORE_BACKEND", "mongo").lower().strip()
    if backend not in {"mongo", "memory"}:
        raise ConfigError(f"Unknown STORE_BACKEND: {backend}")

    return Settings(
        store_backend=backend,
        mongo_uri=_get_env("MONGO_URI") if backend == "mongo" else os.getenv("MONGO_URI"),
        mongo_db=os.getenv("MONGO_DB", "stock_assistant"),
        session_ttl_seconds=_get_int("SESSION_TTL_SECONDS", 24 * 60 * 60),
        context_window=_get_int("CONTEXT_WINDOW", 20),
        cerebras_api_key=os.getenv("CEREBRAS_API_KEY"),
        agent_model=os.getenv("AGENT_MODEL", "llama3.1-8b"),
        agent_max_tool_loops=_get_int("AGENT_MAX_TOOL_LOOPS", 6),
        tickers_path=os.getenv("TICKERS_PATH", DEFAULT_TICKERS_PATH),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
